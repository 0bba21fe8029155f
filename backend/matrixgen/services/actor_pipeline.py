"""Actor (character) registration pipeline.

image (+ optional audio) ──ffmpeg──→ short MP4 ──upload──→ public URL
    ──provider create-actor request──→ Actor

Every request is validated before any encoding or network I/O. Batches run
concurrently and each item reports its own actor or error; one failed item
never aborts its siblings. Encoding is serialized by the ``MediaEncoder``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Any

from matrixgen.services.blob_store import BlobStore
from matrixgen.services.errors import (
    ActorRegistrationError,
    GatewayError,
    MatrixGenError,
    ParameterValidationError,
    UnsupportedCapabilityError,
)
from matrixgen.services.gateway import Gateway
from matrixgen.services.media_encoder import MediaEncoder
from matrixgen.services.providers.base import Actor, ProviderAdapter, RequestSpec
from matrixgen.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMPS = "0,3"

_TIMEOUT_HINT = (
    "the provider did not respond in time or the connection was reset; "
    "the clip may be too large or the network unstable, please retry later"
)


@dataclass(frozen=True)
class ActorRegistration:
    provider_id: str
    credential: str
    image_path: str
    audio_path: str | None = None
    timestamps: str = DEFAULT_TIMESTAMPS
    from_task: str | None = None


@dataclass(frozen=True)
class ActorRegistrationResult:
    request: ActorRegistration
    actor: Actor | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.actor is not None


def parse_timestamps(timestamps: str, clip_seconds: int) -> tuple[float, float]:
    """``"start,end"`` → (start, end) with 0 ≤ start < end ≤ clip_seconds."""
    parts = [p.strip() for p in (timestamps or "").split(",")]
    if len(parts) != 2:
        raise ParameterValidationError(f"timestamps must be 'start,end', got {timestamps!r}")
    try:
        start, end = float(parts[0]), float(parts[1])
    except ValueError:
        raise ParameterValidationError(f"timestamps must be numeric, got {timestamps!r}") from None
    if not 0 <= start < end <= clip_seconds:
        raise ParameterValidationError(
            f"timestamps must satisfy 0 <= start < end <= {clip_seconds}, got {timestamps!r}"
        )
    return start, end


def _friendly_gateway_error(e: GatewayError) -> str:
    if e.status_code is None:
        text = str(e).lower()
        if "timed out" in text or "reset" in text or "timeout" in text:
            return f"{_TIMEOUT_HINT} ({e})"
    return str(e)


def _error_message(data: Any) -> str:
    if isinstance(data, dict):
        for key in ("msg", "message", "error"):
            value = data.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if value:
                return str(value)
    return "provider returned no actor"


class ActorRegistrationService:
    def __init__(
        self,
        registry: ProviderRegistry,
        gateway: Gateway,
        encoder: MediaEncoder,
        blob_store: BlobStore,
        *,
        clip_seconds: int = 3,
        work_dir: str | None = None,
    ) -> None:
        self._registry = registry
        self._gateway = gateway
        self._encoder = encoder
        self._blob_store = blob_store
        self.clip_seconds = clip_seconds
        self.work_dir = work_dir

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _actor_adapter(self, provider_id: str) -> ProviderAdapter:
        adapter = self._registry.get(provider_id)
        if not adapter.supports_actors:
            raise UnsupportedCapabilityError(
                f"actor management is not supported by provider {adapter.id}"
            )
        return adapter

    def validate(self, request: ActorRegistration) -> ProviderAdapter:
        adapter = self._actor_adapter(request.provider_id)
        if not request.credential:
            raise ParameterValidationError("an API key is required to register actors")
        if not request.image_path or not os.path.isfile(request.image_path):
            raise ParameterValidationError(f"image file not found: {request.image_path}")
        if request.audio_path and not os.path.isfile(request.audio_path):
            raise ParameterValidationError(f"audio file not found: {request.audio_path}")
        parse_timestamps(request.timestamps, self.clip_seconds)
        return adapter

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register(self, request: ActorRegistration) -> Actor:
        adapter = self.validate(request)

        with tempfile.TemporaryDirectory(prefix="matrixgen-actor-", dir=self.work_dir) as tmp:
            clip_path = os.path.join(tmp, f"actor_{uuid.uuid4().hex[:8]}.mp4")
            await self._encoder.image_to_video(
                request.image_path, clip_path, self.clip_seconds, request.audio_path,
            )
            video_url = await self._blob_store.upload(clip_path)

        spec = adapter.build_create_actor_request(
            request.credential, video_url, request.timestamps, request.from_task,
        )
        data = await self._execute(spec)
        actor = adapter.parse_actor_response(data)
        if actor is None:
            raise ActorRegistrationError(f"actor registration failed: {_error_message(data)}")

        logger.info("Registered actor %s (@%s) on %s", actor.id, actor.username, adapter.id)
        return actor

    async def register_many(self, requests: list[ActorRegistration]) -> list[ActorRegistrationResult]:
        """Register every item concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self._register_one(r) for r in requests)))

    async def _register_one(self, request: ActorRegistration) -> ActorRegistrationResult:
        try:
            actor = await self.register(request)
        except MatrixGenError as e:
            logger.warning("Actor registration for %s failed: %s", request.image_path, e)
            return ActorRegistrationResult(request=request, error=str(e))
        except Exception as e:
            logger.exception("Actor registration for %s crashed", request.image_path)
            return ActorRegistrationResult(request=request, error=f"unexpected error: {e}")
        return ActorRegistrationResult(request=request, actor=actor)

    async def list_actors(self, provider_id: str, credential: str) -> list[Actor]:
        adapter = self._actor_adapter(provider_id)
        spec = adapter.build_list_actors_request(credential)
        data = await self._execute(spec)
        return adapter.parse_actor_list_response(data)

    async def delete_actor(self, provider_id: str, credential: str, actor_id: str) -> None:
        if not actor_id:
            raise ParameterValidationError("actor id is required")
        adapter = self._actor_adapter(provider_id)
        spec = adapter.build_delete_actor_request(credential, actor_id)
        await self._execute(spec)
        logger.info("Deleted actor %s on %s", actor_id, adapter.id)

    async def _execute(self, spec: RequestSpec) -> Any:
        try:
            response = await self._gateway.execute(spec)
        except GatewayError as e:
            raise ActorRegistrationError(_friendly_gateway_error(e)) from e
        return response.data
