"""Generation session driver — submits one job and polls it to a terminal state.

Submitted ──(task id)──→ Polling ──→ Completed | Failed
    └──(Completed in submit response)──→ Completed
    └──(no task id / submit error)──→ Failed

Submission fails fast: any error there fails the job with no retry.
Polling is forgiving: a round whose request or parse fails is logged and
skipped, and only the attempt budget ends the loop.

Provider, model and credential are read from the live ``GenerationSettings``
when the session starts, so a settings change applies to jobs dispatched
after it.
"""

from __future__ import annotations

import asyncio
import logging

from matrixgen.models.job import Job, MediaType
from matrixgen.schemas.settings import GenerationSettings
from matrixgen.services.errors import (
    GatewayError,
    ParameterValidationError,
    PollingTimeout,
    PollingTransientError,
    ProviderError,
    TaskCreationFailed,
)
from matrixgen.services.gateway import Gateway
from matrixgen.services.job_queue import JobQueue
from matrixgen.services.providers.base import (
    Completed,
    Failed,
    GenerationRequest,
    ProviderAdapter,
    StatusResult,
    SubmitResult,
)
from matrixgen.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)

CANCELLED_BY_USER = "cancelled by user"


class GenerationSession:
    """Drives jobs through submit → poll → terminal; one ``run`` call per job."""

    def __init__(
        self,
        registry: ProviderRegistry,
        gateway: Gateway,
        queue: JobQueue,
        *,
        poll_interval: float = 3.0,
        max_attempts_image: int = 300,
        max_attempts_video: int = 600,
    ) -> None:
        self._registry = registry
        self._gateway = gateway
        self._queue = queue
        self.poll_interval = poll_interval
        self.max_attempts_image = max_attempts_image
        self.max_attempts_video = max_attempts_video

    def max_attempts(self, media_type: MediaType) -> int:
        if media_type is MediaType.IMAGE:
            return self.max_attempts_image
        return self.max_attempts_video

    async def run(self, job: Job, settings: GenerationSettings) -> None:
        """Run a claimed (PROCESSING) job to completion or failure.

        Never raises, except ``asyncio.CancelledError`` after the job has
        been failed as cancelled.
        """
        try:
            await self._drive(job, settings)
        except asyncio.CancelledError:
            self._fail(job, CANCELLED_BY_USER)
            raise
        except Exception as e:
            logger.exception("Job %s: unexpected session error", job.id)
            self._fail(job, f"unexpected error: {e}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _drive(self, job: Job, settings: GenerationSettings) -> None:
        media_type = job.media_type
        adapter = self._registry.get(settings.provider_for(media_type))
        credential = settings.credential_for(media_type)
        request = GenerationRequest(
            prompt=job.prompt,
            credential=credential,
            base_url=settings.base_url,
            model=settings.model_for(media_type),
            aspect_ratio=settings.aspect_ratio,
            media_type=media_type,
            video_duration=settings.video_duration,
        )

        try:
            submitted = await self._submit(adapter, request)
        except (GatewayError, ParameterValidationError, TaskCreationFailed, ProviderError) as e:
            self._fail(job, str(e))
            return

        if isinstance(submitted.status, Completed):
            self._complete(job, submitted.status.url)
            return

        task_id = submitted.task_id or ""
        logger.info("Job %s: task %s created on %s", job.id, task_id, adapter.id)

        try:
            outcome = await self._poll(job, adapter, task_id, credential)
        except PollingTimeout as e:
            self._fail(job, str(e))
            return

        if isinstance(outcome, Completed):
            self._complete(job, outcome.url)
        else:
            self._fail(job, f"provider reported failure: {outcome.reason}")

    async def _submit(self, adapter: ProviderAdapter, request: GenerationRequest) -> SubmitResult:
        try:
            spec = adapter.build_submit_request(request)
        except ParameterValidationError:
            raise
        except Exception as e:
            raise TaskCreationFailed(f"could not build submit request: {e}") from e

        response = await self._gateway.execute(spec)
        result = adapter.parse_submit_response(response.data)

        if isinstance(result.status, Completed):
            return result
        if isinstance(result.status, Failed):
            raise ProviderError(f"provider reported failure: {result.status.reason}")
        if not result.task_id:
            message = "provider did not return a task identifier"
            if result.message:
                message = f"{message}: {result.message}"
            raise TaskCreationFailed(message)
        return result

    async def _poll(
        self,
        job: Job,
        adapter: ProviderAdapter,
        task_id: str,
        credential: str,
    ) -> Completed | Failed:
        max_attempts = self.max_attempts(job.media_type)
        for attempt in range(1, max_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            try:
                status = await self._poll_once(adapter, task_id, credential)
            except PollingTransientError as e:
                logger.warning(
                    "Job %s: poll %d/%d failed, retrying: %s", job.id, attempt, max_attempts, e,
                )
                continue

            if isinstance(status, (Completed, Failed)):
                return status

            logger.debug("Job %s: poll %d/%d progress=%s", job.id, attempt, max_attempts, status.progress)
            if status.progress is not None:
                self._queue.report_progress(job.id, status.progress)

        raise PollingTimeout(f"generation timed out after {max_attempts} polling attempts")

    async def _poll_once(self, adapter: ProviderAdapter, task_id: str, credential: str) -> StatusResult:
        try:
            spec = adapter.build_status_request(task_id, credential)
            response = await self._gateway.execute(spec)
            return adapter.parse_status_response(response.data)
        except GatewayError as e:
            raise PollingTransientError(str(e)) from e
        except Exception as e:
            raise PollingTransientError(f"{type(e).__name__}: {e}") from e

    def _complete(self, job: Job, url: str) -> None:
        if not job.status.is_terminal:
            self._queue.report_completed(job.id, url)

    def _fail(self, job: Job, error: str) -> None:
        if not job.status.is_terminal:
            self._queue.report_failed(job.id, error)
