"""MatrixGen — FastAPI application entry point.

Builds the engine runtime on startup (provider registry, job queue,
scheduler, snapshot writer), mounts the API routes and configures CORS.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from matrixgen import __version__
from matrixgen.api.router import api_router
from matrixgen.config import get_settings
from matrixgen.runtime import Runtime, build_runtime

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    runtime_factory: Callable[[], Runtime] | None = None,
    *,
    run_scheduler: bool = True,
) -> FastAPI:
    """Build the application. ``runtime_factory`` lets tests inject fakes."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build and start the runtime on startup, stop it on shutdown."""
        logger.info("%s starting up...", settings.APP_NAME)
        runtime = (runtime_factory or build_runtime)()
        app.state.runtime = runtime
        await runtime.start(run_scheduler=run_scheduler)
        logger.info(
            "Providers: %s", ", ".join(d.id for d in runtime.registry.get_all()),
        )

        yield

        await runtime.stop()
        logger.info("%s shut down", settings.APP_NAME)

    app = FastAPI(
        title="MatrixGen API",
        description="Generation job orchestration for interchangeable image and video providers",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # CORS: frontend dev server origins, overridable via CORS_ORIGINS
    cors_origins = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:1420,http://localhost:5173,http://127.0.0.1:1420,http://127.0.0.1:5173",
    ).split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"service": settings.APP_NAME, "status": "running", "version": __version__}

    @app.get("/health")
    async def health():
        """Detailed health check."""
        runtime: Runtime | None = getattr(app.state, "runtime", None)
        details: dict[str, Any] = {"status": "healthy"}
        if runtime is not None:
            details.update(
                scheduler_running=runtime.scheduler.running,
                active_sessions=runtime.scheduler.active_sessions,
                jobs=runtime.queue.stats(),
                snapshot_backend=runtime.settings.SNAPSHOT_BACKEND,
            )
        return details

    return app


app = create_app()
