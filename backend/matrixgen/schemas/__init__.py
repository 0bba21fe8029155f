"""Pydantic v2 schemas package."""

from matrixgen.schemas.actor import ActorCreate, ActorItem, ActorRead, ActorResult
from matrixgen.schemas.job import ClearFinishedResult, JobCancelResult, JobCreate, JobRead, JobStats
from matrixgen.schemas.provider import ProviderModels, ProviderRead, ReloadResult
from matrixgen.schemas.settings import (
    GenerationSettings,
    GenerationSettingsRead,
    GenerationSettingsUpdate,
)

__all__ = [
    "ActorCreate",
    "ActorItem",
    "ActorRead",
    "ActorResult",
    "ClearFinishedResult",
    "JobCancelResult",
    "JobCreate",
    "JobRead",
    "JobStats",
    "ProviderModels",
    "ProviderRead",
    "ReloadResult",
    "GenerationSettings",
    "GenerationSettingsRead",
    "GenerationSettingsUpdate",
]
