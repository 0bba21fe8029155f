"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from matrixgen.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """The engine runtime built during application startup."""
    return request.app.state.runtime
