"""Generation job API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from matrixgen.api.deps import get_runtime
from matrixgen.models.job import MediaType
from matrixgen.runtime import Runtime
from matrixgen.schemas.job import ClearFinishedResult, JobCancelResult, JobCreate, JobRead, JobStats
from matrixgen.services.errors import JobNotFoundError, ParameterValidationError

router = APIRouter()


@router.post("", response_model=list[JobRead], status_code=201)
async def create_jobs(data: JobCreate, runtime: Runtime = Depends(get_runtime)):
    """Queue ``batch_size`` jobs for every non-blank prompt."""
    settings = runtime.settings_store.get()
    media_type = data.media_type or settings.media_type
    batch_size = data.batch_size or settings.batch_size
    try:
        return runtime.queue.add_prompts(data.prompts, media_type, batch_size)
    except ParameterValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=list[JobRead])
async def list_jobs(media_type: MediaType | None = None, runtime: Runtime = Depends(get_runtime)):
    """List jobs, newest first."""
    return runtime.queue.list_jobs(media_type)


@router.get("/stats", response_model=JobStats)
async def job_stats(media_type: MediaType | None = None, runtime: Runtime = Depends(get_runtime)):
    return runtime.queue.stats(media_type)


@router.delete("/finished", response_model=ClearFinishedResult)
async def clear_finished(media_type: MediaType | None = None, runtime: Runtime = Depends(get_runtime)):
    """Remove completed and failed jobs."""
    return {"removed": runtime.queue.clear_finished(media_type)}


@router.get("/{job_id}", response_model=JobRead)
async def get_job(job_id: str, runtime: Runtime = Depends(get_runtime)):
    try:
        return runtime.queue.get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.post("/{job_id}/cancel", response_model=JobCancelResult)
async def cancel_job(job_id: str, runtime: Runtime = Depends(get_runtime)):
    """Cancel a pending or running job. Finished jobs are left untouched."""
    try:
        cancelled = runtime.scheduler.cancel(job_id)
        job = runtime.queue.get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"id": job.id, "cancelled": cancelled, "status": job.status}
