"""Job model lifecycle and the in-memory job queue."""

import pytest

from matrixgen.models.job import Job, JobStatus, MediaType
from matrixgen.services.errors import JobNotFoundError, JobStateError, ParameterValidationError
from matrixgen.services.job_queue import INTERRUPTED_ERROR, JobQueue


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------

def test_job_lifecycle_to_completed():
    job = Job(prompt="p", media_type=MediaType.VIDEO)
    job.mark_processing("sora-veo-cloud")
    job.set_progress(140)
    assert job.progress == 100
    job.set_progress(20)
    assert job.progress == 20  # progress may regress

    job.mark_completed("https://v/1.mp4")
    assert job.status is JobStatus.COMPLETED
    assert job.progress == 100
    assert job.error is None
    assert job.file_name.startswith("Video_") and job.file_name.endswith(f"_{job.id[:6]}.mp4")


def test_terminal_job_rejects_mutation():
    job = Job(prompt="p", media_type=MediaType.IMAGE)
    job.mark_processing()
    job.mark_failed("boom")
    assert job.result_url is None

    with pytest.raises(JobStateError):
        job.mark_completed("https://late")
    with pytest.raises(JobStateError):
        job.mark_failed("again")
    with pytest.raises(JobStateError):
        job.set_progress(50)


def test_pending_job_cannot_complete_or_report_progress():
    job = Job(prompt="p", media_type=MediaType.IMAGE)
    with pytest.raises(JobStateError):
        job.mark_completed("https://x")
    with pytest.raises(JobStateError):
        job.set_progress(10)


def test_job_dict_round_trip_keeps_fields():
    job = Job(prompt="p", media_type=MediaType.IMAGE)
    restored = Job.from_dict(job.to_dict())
    assert restored == job


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------

def test_add_batch_creates_independent_jobs():
    queue = JobQueue()
    jobs = queue.add_batch("a fox", MediaType.IMAGE, 3)
    assert len(jobs) == 3
    assert len({j.id for j in jobs}) == 3
    assert all(j.status is JobStatus.PENDING for j in jobs)


@pytest.mark.parametrize("size", [0, 11, -1])
def test_add_batch_rejects_out_of_range(size):
    with pytest.raises(ParameterValidationError):
        JobQueue().add_batch("p", MediaType.IMAGE, size)


def test_add_prompts_skips_blank_prompts():
    queue = JobQueue()
    jobs = queue.add_prompts(["one", "  ", "", "two"], MediaType.VIDEO, 2)
    assert [j.prompt for j in jobs] == ["one", "one", "two", "two"]


def test_add_prompts_requires_a_prompt():
    with pytest.raises(ParameterValidationError):
        JobQueue().add_prompts(["", " "], MediaType.VIDEO, 1)


def test_claim_next_is_fifo_and_never_double_claims():
    queue = JobQueue()
    first, second = queue.add_batch("p", MediaType.VIDEO, 2)

    assert queue.claim_next("x") is first
    assert first.status is JobStatus.PROCESSING and first.provider_id == "x"
    assert queue.claim_next("x") is second
    assert queue.claim_next("x") is None


def test_cancel_only_affects_pending():
    queue = JobQueue()
    a, b = queue.add_batch("p", MediaType.VIDEO, 2)
    queue.claim_next()

    assert queue.cancel(b.id) is True
    assert b.status is JobStatus.FAILED and b.error == "cancelled"
    assert queue.cancel(a.id) is False
    assert a.status is JobStatus.PROCESSING


def test_get_unknown_job_raises():
    with pytest.raises(JobNotFoundError):
        JobQueue().get("nope")


def test_list_stats_and_clear_finished():
    queue = JobQueue()
    v1, v2 = queue.add_batch("v", MediaType.VIDEO, 2)
    (img,) = queue.add_batch("i", MediaType.IMAGE, 1)
    queue.claim_next()
    queue.report_completed(v1.id, "https://v/1.mp4")
    queue.cancel(img.id)

    assert [j.id for j in queue.list_jobs()] == [img.id, v2.id, v1.id]
    assert [j.id for j in queue.list_jobs(MediaType.VIDEO, newest_first=False)] == [v1.id, v2.id]
    assert queue.stats() == {"pending": 1, "processing": 0, "completed": 1, "failed": 1, "total": 3}
    assert queue.stats(MediaType.IMAGE)["failed"] == 1

    assert queue.clear_finished(MediaType.VIDEO) == 1
    assert queue.count() == 2
    assert queue.clear_finished() == 1
    assert [j.id for j in queue.list_jobs()] == [v2.id]


def test_listeners_fire_on_mutation():
    queue = JobQueue()
    calls = []
    queue.add_listener(lambda: calls.append(1))

    (job,) = queue.add_batch("p", MediaType.IMAGE, 1)
    queue.claim_next()
    queue.report_progress(job.id, 50)
    queue.report_failed(job.id, "x")

    assert len(calls) == 4


def test_failing_listener_does_not_break_queue():
    queue = JobQueue()

    def bad():
        raise RuntimeError("listener bug")

    queue.add_listener(bad)
    assert len(queue.add_batch("p", MediaType.IMAGE, 2)) == 2


def test_snapshot_is_capped_newest_first():
    queue = JobQueue(snapshot_limit=5)
    jobs = queue.add_batch("p", MediaType.IMAGE, 10)
    snap = queue.snapshot()
    assert len(snap) == 5
    assert snap[0]["id"] == jobs[-1].id


def test_restore_fails_interrupted_jobs():
    source = JobQueue()
    done, running, waiting = source.add_batch("p", MediaType.VIDEO, 3)
    source.claim_next()
    source.report_completed(done.id, "https://v")
    source.claim_next()

    target = JobQueue()
    assert target.restore(source.snapshot() + [{"bogus": True}]) == 3

    assert target.get(done.id).status is JobStatus.COMPLETED
    assert target.get(running.id).status is JobStatus.FAILED
    assert target.get(running.id).error == INTERRUPTED_ERROR
    assert target.get(waiting.id).status is JobStatus.PENDING
    assert target.claim_next() is target.get(waiting.id)
