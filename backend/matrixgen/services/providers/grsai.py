"""Grsai aggregate provider (Sora-2, Veo3, Nano-Banana).

Every endpoint answers with an envelope ``{"code": int, "msg": str, "data": ...}``.
Tasks are submitted with ``webHook: "-1"`` so the API returns an id to poll
instead of calling back, then polled via POST /v1/draw/result.

Grsai offers no character (actor) management.
"""

from __future__ import annotations

from typing import Any

from matrixgen.models.job import MediaType
from matrixgen.services.errors import ParameterValidationError
from matrixgen.services.providers.base import (
    GenerationRequest,
    ProviderAdapter,
    ProviderDescriptor,
    RequestSpec,
    StatusResult,
    SubmitResult,
    bearer_headers,
    dig,
    map_aspect_ratio,
    normalize_base_url,
    normalize_status,
    parse_duration,
)

_DEFAULT_HOST = "https://grsai.dakka.com.cn"


class GrsaiAdapter(ProviderAdapter):
    """Adapter for the Grsai aggregate API."""

    descriptor = ProviderDescriptor(
        id="grsai-provider",
        name="Grsai (Sora/Veo/Nano)",
        description="Aggregate API for Sora-2, Veo3 and Nano-Banana models.",
        models={
            MediaType.VIDEO: (
                "sora_2_0", "sora_2_0_turbo", "sora-2",
                "veo3.1-fast", "veo3.1-pro", "veo3-fast", "veo3-pro",
            ),
            MediaType.IMAGE: (
                "nano-banana-fast", "nano-banana", "nano-banana-pro",
                "nano-banana-pro-vt", "nano-banana-pro-cl",
                "nano-banana-pro-vip", "nano-banana-pro-4k-vip",
            ),
        },
    )

    def __init__(self, host: str = _DEFAULT_HOST) -> None:
        self._host = normalize_base_url(host)

    def _endpoint(self, request: GenerationRequest) -> str:
        if request.media_type is MediaType.IMAGE:
            return "/v1/draw/nano-banana"
        if "sora" in request.model:
            return "/v1/video/sora-video"
        if "veo" in request.model:
            return "/v1/video/veo"
        raise ParameterValidationError(f"Unknown Grsai video model: {request.model}")

    def build_submit_request(self, request: GenerationRequest) -> RequestSpec:
        body: dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "webHook": "-1",
            "shutProgress": False,
            "aspectRatio": map_aspect_ratio(request.aspect_ratio),
        }
        if request.media_type is MediaType.VIDEO:
            body["duration"] = parse_duration(request.video_duration)

        return RequestSpec(
            method="POST",
            url=f"{self._host}{self._endpoint(request)}",
            headers=bearer_headers(request.credential),
            body=body,
        )

    def parse_submit_response(self, raw: Any) -> SubmitResult:
        if dig(raw, "code") != 0:
            msg = dig(raw, "msg")
            return SubmitResult(task_id=None, message=str(msg) if msg else None)
        task_id = dig(raw, "data", "id")
        if not task_id:
            return SubmitResult(task_id=None)
        return SubmitResult(task_id=str(task_id))

    def build_status_request(self, task_id: str, credential: str) -> RequestSpec:
        return RequestSpec(
            method="POST",
            url=f"{self._host}/v1/draw/result",
            headers=bearer_headers(credential),
            body={"id": task_id},
        )

    def parse_status_response(self, raw: Any) -> StatusResult:
        # Non-zero envelope codes (-22 "not ready yet", busy, ...) are transient;
        # only the task status "failed" ends a job
        code = dig(raw, "code")
        if isinstance(code, int) and code != 0:
            return normalize_status(None)

        task = dig(raw, "data")
        # Veo returns a flat url, Sora / Nano a results list
        url = dig(task, "url")
        if not isinstance(url, str) or not url:
            url = dig(task, "results", 0, "url")
        reason = dig(task, "failure_reason") or dig(task, "error")
        return normalize_status(
            dig(task, "status"),
            url=url if isinstance(url, str) else None,
            progress=dig(task, "progress"),
            reason=str(reason) if reason else None,
        )
