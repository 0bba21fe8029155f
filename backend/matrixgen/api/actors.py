"""Actor (character) registration API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from matrixgen.api.deps import get_runtime
from matrixgen.models.job import MediaType
from matrixgen.runtime import Runtime
from matrixgen.schemas.actor import ActorCreate, ActorRead, ActorResult
from matrixgen.services.actor_pipeline import ActorRegistration
from matrixgen.services.errors import (
    ActorRegistrationError,
    ParameterValidationError,
    UnsupportedCapabilityError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _provider_and_key(runtime: Runtime, provider_id: str | None, api_key: str | None) -> tuple[str, str]:
    # Actors are attached to video generation, so video overrides apply
    settings = runtime.settings_store.get()
    return (
        provider_id or settings.provider_for(MediaType.VIDEO),
        api_key or settings.credential_for(MediaType.VIDEO),
    )


@router.post("", response_model=list[ActorResult])
async def register_actors(data: ActorCreate, runtime: Runtime = Depends(get_runtime)):
    """Register every item; each result carries its actor or its error."""
    provider_id, api_key = _provider_and_key(runtime, data.provider_id, data.api_key)
    requests = [
        ActorRegistration(
            provider_id=provider_id,
            credential=api_key,
            image_path=item.image_path,
            audio_path=item.audio_path,
            timestamps=item.timestamps,
            from_task=item.from_task,
        )
        for item in data.items
    ]
    results = await runtime.actors.register_many(requests)
    return [
        {"image_path": r.request.image_path, "actor": r.actor, "error": r.error}
        for r in results
    ]


@router.get("", response_model=list[ActorRead])
async def list_actors(
    provider_id: str | None = None,
    api_key: str | None = None,
    runtime: Runtime = Depends(get_runtime),
):
    provider_id, api_key = _provider_and_key(runtime, provider_id, api_key)
    try:
        return await runtime.actors.list_actors(provider_id, api_key)
    except UnsupportedCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ActorRegistrationError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/{actor_id}", status_code=204)
async def delete_actor(
    actor_id: str,
    provider_id: str | None = None,
    api_key: str | None = None,
    runtime: Runtime = Depends(get_runtime),
):
    provider_id, api_key = _provider_and_key(runtime, provider_id, api_key)
    try:
        await runtime.actors.delete_actor(provider_id, api_key, actor_id)
    except (UnsupportedCapabilityError, ParameterValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ActorRegistrationError as e:
        raise HTTPException(status_code=502, detail=str(e))
