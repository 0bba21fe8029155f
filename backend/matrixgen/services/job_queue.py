"""In-memory job queue — the canonical collection of generation jobs.

The queue is only ever touched from the event loop thread, and every method
is synchronous, so a claim can never interleave with another claim.
Sessions report progress and outcomes through it; the scheduler is the only
caller of ``claim_next``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from matrixgen.models.job import Job, JobStatus, MediaType
from matrixgen.services.errors import JobNotFoundError, ParameterValidationError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10
SNAPSHOT_LIMIT = 500

INTERRUPTED_ERROR = "interrupted before completion"
CANCELLED_ERROR = "cancelled"

JobListener = Callable[[], None]


def validate_batch_size(batch_size: int) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ParameterValidationError(f"batch size must be an integer, got {batch_size!r}")
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ParameterValidationError(
            f"batch size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
        )
    return batch_size


class JobQueue:
    """Ordered (creation order) collection of jobs plus their state transitions."""

    def __init__(self, snapshot_limit: int = SNAPSHOT_LIMIT) -> None:
        self._jobs: dict[str, Job] = {}
        self._listeners: list[JobListener] = []
        self.snapshot_limit = snapshot_limit

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def add_job(self, prompt: str, media_type: MediaType) -> Job:
        if not prompt or not prompt.strip():
            raise ParameterValidationError("prompt must not be empty")
        job = Job(prompt=prompt.strip(), media_type=MediaType(media_type))
        self._jobs[job.id] = job
        self._notify()
        return job

    def add_batch(self, prompt: str, media_type: MediaType, batch_size: int) -> list[Job]:
        """Create ``batch_size`` independent jobs for the same prompt."""
        validate_batch_size(batch_size)
        if not prompt or not prompt.strip():
            raise ParameterValidationError("prompt must not be empty")
        jobs = [Job(prompt=prompt.strip(), media_type=MediaType(media_type)) for _ in range(batch_size)]
        for job in jobs:
            self._jobs[job.id] = job
        logger.info("Queued %d %s job(s)", len(jobs), MediaType(media_type).value)
        self._notify()
        return jobs

    def add_prompts(self, prompts: Iterable[str], media_type: MediaType, batch_size: int) -> list[Job]:
        """Queue ``batch_size`` jobs for every non-blank prompt."""
        validate_batch_size(batch_size)
        cleaned = [p.strip() for p in prompts if p and p.strip()]
        if not cleaned:
            raise ParameterValidationError("at least one non-empty prompt is required")
        jobs = [
            Job(prompt=prompt, media_type=MediaType(media_type))
            for prompt in cleaned
            for _ in range(batch_size)
        ]
        for job in jobs:
            self._jobs[job.id] = job
        logger.info(
            "Queued %d %s job(s) from %d prompt(s)",
            len(jobs), MediaType(media_type).value, len(cleaned),
        )
        self._notify()
        return jobs

    # ------------------------------------------------------------------
    # Scheduler / session reporting
    # ------------------------------------------------------------------

    def claim_next(self, provider_id: str | None = None) -> Job | None:
        """Flip the oldest PENDING job to PROCESSING and return it."""
        for job in self._jobs.values():
            if job.status is JobStatus.PENDING:
                job.mark_processing(provider_id)
                self._notify()
                return job
        return None

    def report_progress(self, job_id: str, progress: int) -> Job:
        job = self.get(job_id)
        job.set_progress(progress)
        self._notify()
        return job

    def report_completed(self, job_id: str, result_url: str) -> Job:
        job = self.get(job_id)
        job.mark_completed(result_url)
        logger.info("Job %s completed: %s", job_id, result_url)
        self._notify()
        return job

    def report_failed(self, job_id: str, error: str) -> Job:
        job = self.get(job_id)
        job.mark_failed(error)
        logger.info("Job %s failed: %s", job_id, error)
        self._notify()
        return job

    def cancel(self, job_id: str) -> bool:
        """Fail a PENDING job immediately. Returns False for any other state."""
        job = self.get(job_id)
        if job.status is not JobStatus.PENDING:
            return False
        job.mark_failed(CANCELLED_ERROR)
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, media_type: MediaType | None = None, newest_first: bool = True) -> list[Job]:
        jobs = [j for j in self._jobs.values() if media_type is None or j.media_type is MediaType(media_type)]
        if newest_first:
            jobs.reverse()
        return jobs

    def count(self, status: JobStatus | None = None) -> int:
        if status is None:
            return len(self._jobs)
        return sum(1 for j in self._jobs.values() if j.status is status)

    def stats(self, media_type: MediaType | None = None) -> dict[str, int]:
        jobs = self.list_jobs(media_type, newest_first=False)
        result = {s.value.lower(): 0 for s in JobStatus}
        for job in jobs:
            result[job.status.value.lower()] += 1
        result["total"] = len(jobs)
        return result

    def clear_finished(self, media_type: MediaType | None = None) -> int:
        """Drop terminal jobs (optionally of one media type); returns how many."""
        doomed = [
            job_id for job_id, job in self._jobs.items()
            if job.status.is_terminal and (media_type is None or job.media_type is MediaType(media_type))
        ]
        for job_id in doomed:
            del self._jobs[job_id]
        if doomed:
            self._notify()
        return len(doomed)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> list[dict[str, Any]]:
        """Newest ``snapshot_limit`` jobs as plain dicts, newest first."""
        return [job.to_dict() for job in self.list_jobs()[: self.snapshot_limit]]

    def restore(self, records: Iterable[dict[str, Any]]) -> int:
        """Repopulate from a snapshot.

        Sessions do not survive a restart, so jobs persisted mid-flight come
        back FAILED. Records are re-ordered by creation time.
        """
        restored: list[Job] = []
        for record in records:
            try:
                job = Job.from_dict(record)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed job record: %r", record)
                continue
            if job.status is JobStatus.PROCESSING:
                job.mark_failed(INTERRUPTED_ERROR)
            restored.append(job)

        restored.sort(key=lambda j: j.created_at)
        for job in restored:
            self._jobs.setdefault(job.id, job)

        interrupted = sum(1 for j in restored if j.error == INTERRUPTED_ERROR)
        if restored:
            logger.info("Restored %d job(s), %d interrupted", len(restored), interrupted)
            self._notify()
        return len(restored)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: JobListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.warning("Job queue listener failed", exc_info=True)
