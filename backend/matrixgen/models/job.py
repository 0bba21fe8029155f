"""Job model — one user-requested generation unit."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from matrixgen.services.errors import JobStateError


class JobStatus(str, enum.Enum):
    """Job lifecycle statuses."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class MediaType(str, enum.Enum):
    """Kind of media a job produces."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass
class Job:
    """A unit of generation work.

    ``id``, ``prompt``, ``media_type`` and ``created_at`` never change after
    creation. The mutators below enforce the lifecycle
    PENDING → PROCESSING → COMPLETED | FAILED; a terminal job rejects every
    further mutation.
    """

    prompt: str
    media_type: MediaType
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    result_url: str | None = None
    error: str | None = None
    created_at: float = field(default_factory=time.time)
    provider_id: str | None = None
    file_name: str | None = None
    finished_at: float | None = None

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def mark_processing(self, provider_id: str | None = None) -> None:
        if self.status is not JobStatus.PENDING:
            raise JobStateError(f"Job {self.id} cannot be claimed from {self.status.value}")
        self.status = JobStatus.PROCESSING
        self.progress = 0
        self.provider_id = provider_id

    def set_progress(self, progress: int) -> None:
        if self.status is not JobStatus.PROCESSING:
            raise JobStateError(f"Job {self.id} is not processing ({self.status.value})")
        self.progress = max(0, min(100, int(progress)))

    def mark_completed(self, result_url: str) -> None:
        if self.status is not JobStatus.PROCESSING:
            raise JobStateError(f"Job {self.id} cannot complete from {self.status.value}")
        if not result_url:
            raise JobStateError(f"Job {self.id} cannot complete without a result URL")
        self.status = JobStatus.COMPLETED
        self.result_url = result_url
        self.error = None
        self.progress = 100
        self.finished_at = time.time()
        self.file_name = suggested_file_name(self)

    def mark_failed(self, error: str) -> None:
        # Pending jobs may fail too (cancelled before dispatch).
        if self.status.is_terminal:
            raise JobStateError(f"Job {self.id} already finished as {self.status.value}")
        self.status = JobStatus.FAILED
        self.error = error or "unknown error"
        self.result_url = None
        self.finished_at = time.time()

    # ------------------------------------------------------------------
    # Plain-data conversion (job snapshot)
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "media_type": self.media_type.value,
            "status": self.status.value,
            "progress": self.progress,
            "result_url": self.result_url,
            "error": self.error,
            "created_at": self.created_at,
            "provider_id": self.provider_id,
            "file_name": self.file_name,
            "finished_at": self.finished_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            id=str(data["id"]),
            prompt=str(data.get("prompt", "")),
            media_type=MediaType(data.get("media_type", MediaType.VIDEO.value)),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            progress=int(data.get("progress") or 0),
            result_url=data.get("result_url"),
            error=data.get("error"),
            created_at=float(data.get("created_at") or time.time()),
            provider_id=data.get("provider_id"),
            file_name=data.get("file_name"),
            finished_at=data.get("finished_at"),
        )


def suggested_file_name(job: Job) -> str:
    """Download name for a finished job, e.g. ``Video_20260118_3fa2c1.mp4``."""
    is_video = job.media_type is MediaType.VIDEO
    prefix = "Video" if is_video else "Image"
    ext = "mp4" if is_video else "png"
    date_str = datetime.fromtimestamp(job.finished_at or time.time()).strftime("%Y%m%d")
    return f"{prefix}_{date_str}_{job.id[:6]}.{ext}"
