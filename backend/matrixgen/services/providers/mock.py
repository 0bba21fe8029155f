"""Universal mock provider — the registry's fallback adapter.

Requests target ``loopback://`` URLs, which the gateway answers in-process
by echoing the request body. Submission always completes synchronously
with a deterministic sample URL, so an unknown or unconfigured provider id
still yields a working (if fake) pipeline.
"""

from __future__ import annotations

import zlib
from typing import Any

from matrixgen.models.job import MediaType
from matrixgen.services.providers.base import (
    Completed,
    GenerationRequest,
    Processing,
    ProviderAdapter,
    ProviderDescriptor,
    RequestSpec,
    StatusResult,
    SubmitResult,
    dig,
)

MOCK_PROVIDER_ID = "universal-mock"

SAMPLE_VIDEO_URL = "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerJoyrides.mp4"
_SAMPLE_IMAGE_URL = "https://picsum.photos/seed/{seed}/1024/1024"


def mock_result_url(prompt: str, media_type: MediaType | str) -> str:
    if MediaType(media_type) is MediaType.VIDEO:
        return SAMPLE_VIDEO_URL
    seed = zlib.crc32(prompt.encode("utf-8")) % 1000
    return _SAMPLE_IMAGE_URL.format(seed=seed)


class UniversalMockAdapter(ProviderAdapter):
    """Generic adapter for development and unconfigured providers."""

    descriptor = ProviderDescriptor(
        id=MOCK_PROVIDER_ID,
        name="Universal / Mock Adapter",
        description="Generic adapter for development; completes instantly with sample media.",
        models={
            MediaType.IMAGE: ("dall-e-3", "stable-diffusion-xl", "midjourney-v6"),
            MediaType.VIDEO: (
                "sora_2_0", "sora_2_0_turbo", "veo_3_1-fast",
                "gen-2", "gen-3-alpha", "kling-1.0",
            ),
        },
    )

    def build_submit_request(self, request: GenerationRequest) -> RequestSpec:
        return RequestSpec(
            method="POST",
            url=f"loopback://{MOCK_PROVIDER_ID}/generate",
            headers={"Content-Type": "application/json"},
            body={
                "id": f"mock-{zlib.crc32(request.prompt.encode('utf-8')):08x}",
                "status": "completed",
                "url": mock_result_url(request.prompt, request.media_type),
                "model": request.model,
            },
        )

    def parse_submit_response(self, raw: Any) -> SubmitResult:
        task_id = dig(raw, "id")
        url = dig(raw, "url")
        if isinstance(url, str) and url:
            return SubmitResult(task_id=task_id, status=Completed(url))
        return SubmitResult(task_id=task_id)

    def build_status_request(self, task_id: str, credential: str) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=f"loopback://{MOCK_PROVIDER_ID}/tasks/{task_id}",
            body={"status": "completed", "url": SAMPLE_VIDEO_URL},
        )

    def parse_status_response(self, raw: Any) -> StatusResult:
        url = dig(raw, "url")
        if isinstance(url, str) and url:
            return Completed(url)
        return Processing(None)
