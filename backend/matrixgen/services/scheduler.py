"""Job scheduler — dispatches PENDING jobs to sessions under a concurrency cap.

Every tick (0.5 s by default) claims at most one job, so a burst of new jobs
ramps up gradually. The claim happens synchronously before any ``await``,
so two ticks can never dispatch the same job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from matrixgen.models.job import Job, JobStatus
from matrixgen.schemas.settings import GenerationSettings
from matrixgen.services.errors import JobNotFoundError
from matrixgen.services.job_queue import INTERRUPTED_ERROR, JobQueue
from matrixgen.services.session import CANCELLED_BY_USER, GenerationSession

logger = logging.getLogger(__name__)


class Scheduler:
    """Periodic dispatcher holding one ``asyncio.Task`` per running session."""

    def __init__(
        self,
        queue: JobQueue,
        session: GenerationSession,
        settings_provider: Callable[[], GenerationSettings],
        *,
        tick_seconds: float = 0.5,
    ) -> None:
        self._queue = queue
        self._session = session
        self._settings_provider = settings_provider
        self.tick_seconds = tick_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def active_sessions(self) -> int:
        return len(self._tasks)

    def tick(self) -> Job | None:
        """Dispatch the oldest PENDING job if there is headroom.

        Must be called from inside a running event loop.
        """
        settings = self._settings_provider()
        if self._queue.count(JobStatus.PROCESSING) >= settings.concurrency:
            return None

        # Provider id is recorded on the job for display; the session
        # resolves the adapter itself from the same settings.
        peek = next(
            (j for j in self._queue.list_jobs(newest_first=False) if j.status is JobStatus.PENDING),
            None,
        )
        if peek is None:
            return None
        job = self._queue.claim_next(settings.provider_for(peek.media_type))
        if job is None:
            return None

        task = asyncio.create_task(self._session.run(job, settings), name=f"job-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda t, job_id=job.id: self._on_session_done(job_id, t))
        logger.debug("Dispatched job %s (%s)", job.id, job.media_type.value)
        return job

    def _on_session_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            # A task cancelled before its first step never enters run()
            try:
                job = self._queue.get(job_id)
            except JobNotFoundError:
                return
            if not job.status.is_terminal:
                self._queue.report_failed(job_id, CANCELLED_BY_USER)
        elif task.exception() is not None:
            logger.error("Session for job %s crashed: %s", job_id, task.exception())

    def cancel(self, job_id: str) -> bool:
        """Cancel a job: PENDING fails immediately, PROCESSING has its session cancelled.

        Returns False when the job is already finished. Raises
        ``JobNotFoundError`` for an unknown id.
        """
        job = self._queue.get(job_id)
        if job.status is JobStatus.PENDING:
            return self._queue.cancel(job_id)
        task = self._tasks.get(job_id)
        if job.status is JobStatus.PROCESSING and task is not None and not task.done():
            task.cancel()
            logger.info("Cancelling job %s", job_id)
            return True
        return False

    def _interrupt(self, job_id: str) -> None:
        try:
            job = self._queue.get(job_id)
        except JobNotFoundError:
            return
        if not job.status.is_terminal:
            self._queue.report_failed(job_id, INTERRUPTED_ERROR)

    async def _run_loop(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(self.tick_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run_loop(), name="matrixgen-scheduler")
        logger.info("Scheduler started (tick=%.2fs)", self.tick_seconds)

    async def stop(self) -> None:
        """Stop ticking and cancel every in-flight session.

        Jobs still running are failed as interrupted, not as user cancellations.
        """
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        tasks = list(self._tasks.items())
        for job_id, task in tasks:
            self._interrupt(job_id)
            task.cancel()
        if tasks:
            await asyncio.gather(*(task for _, task in tasks), return_exceptions=True)
        logger.info("Scheduler stopped, %d session(s) cancelled", len(tasks))
