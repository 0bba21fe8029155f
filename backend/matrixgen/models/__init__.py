"""Domain models."""

from matrixgen.models.job import Job, JobStatus, MediaType

__all__ = ["Job", "JobStatus", "MediaType"]
