"""Generation settings API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from matrixgen.api.deps import get_runtime
from matrixgen.runtime import Runtime
from matrixgen.schemas.settings import GenerationSettingsRead, GenerationSettingsUpdate

router = APIRouter()


@router.get("", response_model=GenerationSettingsRead)
async def get_settings(runtime: Runtime = Depends(get_runtime)):
    return GenerationSettingsRead.from_settings(runtime.settings_store.get())


@router.put("", response_model=GenerationSettingsRead)
async def update_settings(data: GenerationSettingsUpdate, runtime: Runtime = Depends(get_runtime)):
    """Partial update; applies to jobs dispatched from now on."""
    try:
        updated = runtime.settings_store.update(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))
    return GenerationSettingsRead.from_settings(updated)
