"""GeekNow cloud provider (Sora / Veo video, DALL-E / MJ image).

Image generation is synchronous (the submit response already carries the
URL). Video generation is the async task pattern:
  POST /v1/videos (multipart) → task id → GET /v1/videos/{id} until done.

Also implements Sora character (actor) management under /sora/v1/characters.
"""

from __future__ import annotations

import logging
from typing import Any

from matrixgen.models.job import MediaType
from matrixgen.services.providers.base import (
    Completed,
    Failed,
    GenerationRequest,
    Processing,
    ProviderAdapter,
    ProviderDescriptor,
    RequestSpec,
    StatusResult,
    SubmitResult,
    bearer_headers,
    coerce_progress,
    dig,
    map_video_size,
    normalize_base_url,
    normalize_status,
    parse_duration,
)

logger = logging.getLogger(__name__)

_DEFAULT_HOST = "https://api.geeknow.top"

# Model aliases the API does not accept verbatim
_MODEL_ALIASES = {
    "sora_2_0": "sora-2",
    "sora_2_0_turbo": "sora-2",
}

_VEO_SECONDS = 8  # Veo only renders 8-second clips

# Displayed progress stays inside this window until the task finishes
_PROGRESS_FLOOR = 10
_PROGRESS_CEILING = 99

_MISSING_TASK_CODES = ("task_not_exist", "task_not_found")


class GeekNowAdapter(ProviderAdapter):
    """Adapter for the GeekNow Sora/Veo cloud API."""

    descriptor = ProviderDescriptor(
        id="sora-veo-cloud",
        name="Sora/Veo Cloud API",
        description="GeekNow cloud API for Sora and Veo video, DALL-E and MJ images, and Sora characters.",
        models={
            MediaType.IMAGE: ("dall-e-3", "mj-v6"),
            MediaType.VIDEO: ("sora_2_0", "sora_2_0_turbo", "sora-2", "veo_3_1-fast", "veo_3_1-pro"),
        },
    )

    def __init__(self, host: str = _DEFAULT_HOST) -> None:
        self._base = normalize_base_url(host)

    def _host(self) -> str:
        return self._base

    # --- generation ---

    def build_submit_request(self, request: GenerationRequest) -> RequestSpec:
        host = self._host()

        if request.media_type is MediaType.IMAGE:
            return RequestSpec(
                method="POST",
                url=f"{host}/v1/images/generations",
                headers=bearer_headers(request.credential),
                body={
                    "model": request.model,
                    "prompt": request.prompt,
                    "n": 1,
                    "size": "1024x1024",
                    "response_format": "url",
                },
            )

        model = _MODEL_ALIASES.get(request.model, request.model)
        if "veo" in model:
            seconds = _VEO_SECONDS
        else:
            seconds = 15 if parse_duration(request.video_duration) >= 15 else 10

        return RequestSpec(
            method="POST",
            url=f"{host}/v1/videos",
            headers=bearer_headers(request.credential, json_body=False),
            body={
                "model": model,
                "prompt": request.prompt,
                "size": map_video_size(request.aspect_ratio),
                "seconds": str(seconds),
            },
            multipart=True,
        )

    def parse_submit_response(self, raw: Any) -> SubmitResult:
        # Image: {"data": [{"url": ...}]} is already done
        image_url = dig(raw, "data", 0, "url")
        if isinstance(image_url, str) and image_url:
            return SubmitResult(task_id=None, status=Completed(image_url))

        task_id = dig(raw, "id")
        if not task_id:
            message = dig(raw, "error", "message") or dig(raw, "message")
            return SubmitResult(task_id=None, message=str(message) if message else None)

        status = normalize_status(dig(raw, "status"), url=dig(raw, "video_url"))
        if isinstance(status, Completed):
            return SubmitResult(task_id=str(task_id), status=status)
        return SubmitResult(task_id=str(task_id), status=Processing(0))

    def build_status_request(self, task_id: str, credential: str) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=f"{self._host()}/v1/videos/{task_id}",
            headers=bearer_headers(credential, json_body=False),
        )

    def parse_status_response(self, raw: Any) -> StatusResult:
        if dig(raw, "code") in _MISSING_TASK_CODES:
            return Failed(f"task no longer exists ({dig(raw, 'code')})")

        reason = dig(raw, "error", "message") or dig(raw, "message")
        result = normalize_status(
            dig(raw, "status"),
            url=dig(raw, "video_url") or dig(raw, "url"),
            reason=str(reason) if reason else None,
        )
        if isinstance(result, Processing):
            progress = coerce_progress(dig(raw, "progress"))
            if progress is not None:
                progress = max(_PROGRESS_FLOOR, min(_PROGRESS_CEILING, progress))
            return Processing(progress)
        return result

    # --- actors (Sora characters) ---

    def build_create_actor_request(
        self,
        credential: str,
        video_url: str,
        timestamps: str,
        from_task: str | None = None,
    ) -> RequestSpec:
        body: dict[str, Any] = {"url": video_url, "timestamps": timestamps}
        if from_task:
            body["from_task"] = from_task
        return RequestSpec(
            method="POST",
            url=f"{self._host()}/sora/v1/characters",
            headers=bearer_headers(credential),
            body=body,
        )

    def build_list_actors_request(self, credential: str) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=f"{self._host()}/sora/v1/characters",
            headers=bearer_headers(credential),
        )

    def build_delete_actor_request(self, credential: str, actor_id: str) -> RequestSpec:
        return RequestSpec(
            method="DELETE",
            url=f"{self._host()}/sora/v1/characters/{actor_id}",
            headers=bearer_headers(credential),
        )
