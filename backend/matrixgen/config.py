"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MatrixGen engine settings.

    Loaded from environment variables or .env file. User-facing generation
    options (provider, model, batch size, ...) live in
    ``schemas.settings.GenerationSettings``; the ``DEFAULT_*`` values below
    seed them at startup.
    """

    # --- Application ---
    APP_NAME: str = "MatrixGen"
    DEBUG: bool = False

    # --- External provider plugins ---
    PLUGINS_DIR: str = "plugins"

    # --- Scheduling / polling ---
    SCHEDULER_TICK_SECONDS: float = 0.5
    POLL_INTERVAL_SECONDS: float = 3.0
    POLL_MAX_ATTEMPTS_IMAGE: int = 300   # 15 min at 3 s
    POLL_MAX_ATTEMPTS_VIDEO: int = 600   # 30 min at 3 s

    # --- Gateway ---
    GATEWAY_TIMEOUT: float = 480.0
    GATEWAY_CONNECT_TIMEOUT: float = 300.0

    # --- Job snapshot ---
    SNAPSHOT_BACKEND: str = "memory"  # "redis" or "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    JOB_SNAPSHOT_KEY: str = "matrixgen:jobs"
    JOB_SNAPSHOT_LIMIT: int = 500

    # --- Actor registration ---
    ACTOR_CLIP_SECONDS: int = 3
    FFMPEG_BINARY: str = "ffmpeg"
    FFMPEG_TIMEOUT: int = 120
    BLOB_UPLOAD_URL: str = "https://catbox.moe/user/api.php"
    BLOB_UPLOAD_TIMEOUT: float = 120.0

    # --- Generation defaults ---
    DEFAULT_PROVIDER_ID: str = "sora-veo-cloud"
    DEFAULT_API_KEY: str = ""
    DEFAULT_BASE_URL: str = ""
    DEFAULT_IMAGE_MODEL: str = "dall-e-3"
    DEFAULT_VIDEO_MODEL: str = "veo_3_1-fast"
    DEFAULT_ASPECT_RATIO: str = "1920x1080"
    DEFAULT_VIDEO_DURATION: str = "15s"
    DEFAULT_BATCH_SIZE: int = 2
    DEFAULT_CONCURRENCY: int = 20

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
