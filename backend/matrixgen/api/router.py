"""Master API router — mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from matrixgen.api.actors import router as actors_router
from matrixgen.api.jobs import router as jobs_router
from matrixgen.api.providers import router as providers_router
from matrixgen.api.settings import router as settings_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])
api_router.include_router(providers_router, prefix="/providers", tags=["Providers"])
api_router.include_router(settings_router, prefix="/settings", tags=["Settings"])
api_router.include_router(actors_router, prefix="/actors", tags=["Actors"])
