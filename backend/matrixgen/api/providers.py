"""Provider registry API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from matrixgen.api.deps import get_runtime
from matrixgen.models.job import MediaType
from matrixgen.runtime import Runtime
from matrixgen.schemas.provider import ProviderModels, ProviderRead, ReloadResult

router = APIRouter()


@router.get("", response_model=list[ProviderRead])
async def list_providers(runtime: Runtime = Depends(get_runtime)):
    """Built-in providers first, then external plugins."""
    return runtime.registry.to_dict_list()


@router.get("/{provider_id}/models", response_model=ProviderModels)
async def provider_models(
    provider_id: str,
    media_type: MediaType = MediaType.VIDEO,
    runtime: Runtime = Depends(get_runtime),
):
    if not runtime.registry.has(provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    adapter = runtime.registry.get(provider_id)
    return {
        "provider_id": provider_id,
        "media_type": media_type.value,
        "models": list(adapter.descriptor.supported_models(media_type)),
    }


@router.post("/reload", response_model=ReloadResult)
async def reload_providers(runtime: Runtime = Depends(get_runtime)):
    """Rediscover plugin scripts. Running jobs keep the adapter they started with."""
    report = runtime.registry.reload()
    return {**report.to_dict(), "providers": runtime.registry.to_dict_list()}
