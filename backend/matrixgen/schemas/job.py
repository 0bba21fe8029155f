"""Pydantic v2 schemas for generation jobs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from matrixgen.models.job import JobStatus, MediaType


class JobCreate(BaseModel):
    """Queue jobs: ``batch_size`` jobs for every non-blank prompt."""

    prompts: list[str] = Field(..., min_length=1)
    media_type: MediaType | None = None
    batch_size: int | None = Field(None, ge=1, le=10)


class JobRead(BaseModel):
    id: str
    prompt: str
    media_type: MediaType
    status: JobStatus
    progress: int
    result_url: str | None = None
    error: str | None = None
    created_at: float
    provider_id: str | None = None
    file_name: str | None = None
    finished_at: float | None = None

    model_config = {"from_attributes": True}


class JobStats(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class JobCancelResult(BaseModel):
    id: str
    cancelled: bool
    status: JobStatus


class ClearFinishedResult(BaseModel):
    removed: int
