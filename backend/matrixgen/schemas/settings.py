"""Pydantic v2 schemas for user-facing generation settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from matrixgen.config import Settings
from matrixgen.models.job import MediaType

AspectRatio = Literal["1920x1080", "1080x1920", "1024x1024"]
VideoDuration = Literal["10s", "15s"]


class GenerationSettings(BaseModel):
    """Live generation options, read by the scheduler and sessions at dispatch time.

    Per-media provider ids and API keys override the global ones when set.
    """

    provider_id: str = Field("sora-veo-cloud", min_length=1)
    api_key: str = ""
    base_url: str = ""
    image_provider_id: str | None = None
    video_provider_id: str | None = None
    image_api_key: str | None = None
    video_api_key: str | None = None
    image_model: str = "dall-e-3"
    video_model: str = "veo_3_1-fast"
    aspect_ratio: AspectRatio = "1920x1080"
    video_duration: VideoDuration = "15s"
    batch_size: int = Field(2, ge=1, le=10)
    concurrency: int = Field(20, ge=1, le=20)
    media_type: MediaType = MediaType.VIDEO

    @classmethod
    def from_app_settings(cls, settings: Settings) -> GenerationSettings:
        return cls(
            provider_id=settings.DEFAULT_PROVIDER_ID,
            api_key=settings.DEFAULT_API_KEY,
            base_url=settings.DEFAULT_BASE_URL,
            image_model=settings.DEFAULT_IMAGE_MODEL,
            video_model=settings.DEFAULT_VIDEO_MODEL,
            aspect_ratio=settings.DEFAULT_ASPECT_RATIO,
            video_duration=settings.DEFAULT_VIDEO_DURATION,
            batch_size=settings.DEFAULT_BATCH_SIZE,
            concurrency=settings.DEFAULT_CONCURRENCY,
        )

    def provider_for(self, media_type: MediaType) -> str:
        override = self.image_provider_id if media_type is MediaType.IMAGE else self.video_provider_id
        return override or self.provider_id

    def credential_for(self, media_type: MediaType) -> str:
        override = self.image_api_key if media_type is MediaType.IMAGE else self.video_api_key
        return override or self.api_key

    def model_for(self, media_type: MediaType) -> str:
        return self.image_model if media_type is MediaType.IMAGE else self.video_model


class GenerationSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    provider_id: str | None = Field(None, min_length=1)
    api_key: str | None = None
    base_url: str | None = None
    image_provider_id: str | None = None
    video_provider_id: str | None = None
    image_api_key: str | None = None
    video_api_key: str | None = None
    image_model: str | None = None
    video_model: str | None = None
    aspect_ratio: AspectRatio | None = None
    video_duration: VideoDuration | None = None
    batch_size: int | None = Field(None, ge=1, le=10)
    concurrency: int | None = Field(None, ge=1, le=20)
    media_type: MediaType | None = None


class GenerationSettingsRead(BaseModel):
    """Settings as returned by the API; API keys are reported, not echoed."""

    provider_id: str
    base_url: str
    image_provider_id: str | None = None
    video_provider_id: str | None = None
    image_model: str
    video_model: str
    aspect_ratio: str
    video_duration: str
    batch_size: int
    concurrency: int
    media_type: MediaType
    has_api_key: bool = False
    has_image_api_key: bool = False
    has_video_api_key: bool = False

    @classmethod
    def from_settings(cls, s: GenerationSettings) -> GenerationSettingsRead:
        return cls(
            **s.model_dump(exclude={"api_key", "image_api_key", "video_api_key"}),
            has_api_key=bool(s.api_key),
            has_image_api_key=bool(s.image_api_key),
            has_video_api_key=bool(s.video_api_key),
        )
