"""Submit/poll session driver scenarios."""

import asyncio

import pytest

from matrixgen.models.job import JobStatus, MediaType
from matrixgen.services.errors import GatewayError
from matrixgen.services.job_queue import JobQueue
from matrixgen.services.providers import builtin_adapters
from matrixgen.services.registry import ProviderRegistry
from matrixgen.services.session import CANCELLED_BY_USER, GenerationSession

from conftest import ScriptedGateway


def _setup(gateway, media_type=MediaType.VIDEO, **session_kw):
    queue = JobQueue()
    (job,) = queue.add_batch("a dragon over a city", media_type, 1)
    queue.claim_next("sora-veo-cloud")
    session = GenerationSession(
        ProviderRegistry(builtin_adapters()), gateway, queue, poll_interval=0, **session_kw,
    )
    return queue, job, session


@pytest.mark.asyncio
async def test_async_task_completes_after_polling(gen_settings):
    gateway = ScriptedGateway(
        {"id": "T1", "status": "queued"},
        {"status": "in_progress", "progress": 30},
        {"status": "completed", "video_url": "https://cdn/v.mp4"},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://cdn/v.mp4"
    assert job.progress == 100
    assert job.error is None
    assert [c.url for c in gateway.calls] == [
        "https://api.geeknow.top/v1/videos",
        "https://api.geeknow.top/v1/videos/T1",
        "https://api.geeknow.top/v1/videos/T1",
    ]


@pytest.mark.asyncio
async def test_progress_is_reported_between_polls(gen_settings):
    seen = []
    gateway = ScriptedGateway(
        {"id": "T1"},
        {"status": "in_progress", "progress": 40},
        {"status": "in_progress", "progress": 25},
        {"status": "completed", "video_url": "https://cdn/v.mp4"},
    )
    queue, job, session = _setup(gateway)
    queue.add_listener(lambda: seen.append(job.progress) if job.status is JobStatus.PROCESSING else None)

    await session.run(job, gen_settings)

    # Clamped but not monotonic
    assert seen == [40, 25]


@pytest.mark.asyncio
async def test_synchronous_image_completes_without_polling(gen_settings):
    gateway = ScriptedGateway({"data": [{"url": "https://img/cat.png"}]})
    queue, job, session = _setup(gateway, MediaType.IMAGE)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://img/cat.png"
    assert job.file_name.endswith(".png")
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_provider_failure_reason_is_recorded(gen_settings):
    gateway = ScriptedGateway(
        {"id": "T2"},
        {"status": "in_progress", "progress": 55},
        {"status": "failed", "error": {"message": "content policy"}},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.FAILED
    assert job.error == "provider reported failure: content policy"
    assert job.result_url is None
    assert job.progress == 55


@pytest.mark.asyncio
async def test_missing_task_id_fails_without_polling(gen_settings):
    gateway = ScriptedGateway({"error": {"message": "invalid api key"}})
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.FAILED
    assert job.error == "provider did not return a task identifier: invalid api key"
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_submit_gateway_error_fails_fast(gen_settings):
    gateway = ScriptedGateway(GatewayError("HTTP 500 from upstream", status_code=500))
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.FAILED
    assert "HTTP 500" in job.error
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_submit_validation_error_fails_job(gen_settings):
    settings = gen_settings.model_copy(update={"provider_id": "grsai-provider", "video_model": "kling-1.0"})
    gateway = ScriptedGateway()
    queue, job, session = _setup(gateway)

    await session.run(job, settings)

    assert job.status is JobStatus.FAILED
    assert "Unknown Grsai video model" in job.error
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_transient_poll_errors_are_retried(gen_settings):
    gateway = ScriptedGateway(
        {"id": "T3"},
        GatewayError("request timed out: GET ..."),
        {"raw_response": "<html>502</html>", "status": 502},
        {"status": "completed", "video_url": "https://cdn/ok.mp4"},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://cdn/ok.mp4"


@pytest.mark.asyncio
async def test_polling_budget_exhaustion_times_out(gen_settings):
    gateway = ScriptedGateway({"id": "T4"}, *[{"status": "in_progress"}] * 3)
    queue, job, session = _setup(gateway, max_attempts_video=3)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.FAILED
    assert job.error == "generation timed out after 3 polling attempts"
    assert len(gateway.calls) == 4


@pytest.mark.asyncio
async def test_completed_without_url_waits_for_the_url(gen_settings):
    gateway = ScriptedGateway(
        {"id": "T5"},
        {"status": "completed"},
        {"status": "completed", "video_url": "https://x/v.mp4"},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, gen_settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://x/v.mp4"
    assert len(gateway.calls) == 3


@pytest.mark.asyncio
async def test_unknown_provider_falls_back_to_mock(gen_settings):
    settings = gen_settings.model_copy(update={"provider_id": "nobody"})
    gateway = ScriptedGateway()
    queue, job, session = _setup(gateway)

    await session.run(job, settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url.endswith(".mp4")
    assert gateway.remote_calls == []


@pytest.mark.asyncio
async def test_per_media_overrides_pick_provider_and_key(gen_settings):
    settings = gen_settings.model_copy(
        update={"video_provider_id": "grsai-provider", "video_api_key": "sk-video", "video_model": "sora-2"},
    )
    gateway = ScriptedGateway(
        {"code": 0, "data": {"id": "g1"}},
        {"code": 0, "data": {"status": "succeeded", "url": "https://g/v.mp4"}},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, settings)

    assert job.result_url == "https://g/v.mp4"
    assert gateway.calls[0].url == "https://grsai.dakka.com.cn/v1/video/sora-video"
    assert gateway.calls[0].headers["Authorization"] == "Bearer sk-video"


class _HangingGateway:
    def __init__(self):
        self.submitted = asyncio.Event()

    async def execute(self, spec, credential=None):
        if spec.method == "POST":
            self.submitted.set()
            from matrixgen.services.gateway import GatewayResponse
            return GatewayResponse(200, {"id": "T9"})
        await asyncio.sleep(3600)


@pytest.mark.asyncio
async def test_cancellation_records_single_failure(gen_settings):
    gateway = _HangingGateway()
    queue, job, session = _setup(gateway)
    transitions = []
    queue.add_listener(lambda: transitions.append(job.status))

    task = asyncio.create_task(session.run(job, gen_settings))
    await gateway.submitted.wait()
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert job.status is JobStatus.FAILED
    assert job.error == CANCELLED_BY_USER
    assert transitions.count(JobStatus.FAILED) == 1


@pytest.mark.asyncio
async def test_rejected_status_query_keeps_polling(gen_settings):
    settings = gen_settings.model_copy(update={"provider_id": "grsai-provider", "video_model": "sora-2"})
    gateway = ScriptedGateway(
        {"code": 0, "data": {"id": "g-9"}},
        {"code": -1, "msg": "server busy"},
        {"code": 0, "data": {"status": "succeeded", "results": [{"url": "https://r/9.mp4"}]}},
    )
    queue, job, session = _setup(gateway)

    await session.run(job, settings)

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "https://r/9.mp4"
    assert len(gateway.calls) == 3
