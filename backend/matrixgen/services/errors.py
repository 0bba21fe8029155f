"""Exception taxonomy for the generation engine.

Job-level failures (task creation, provider failure, timeout) are captured
into ``Job.error`` by the session driver and never escape it. Plugin
validation failures are handled at registry load time and only logged.
"""

from __future__ import annotations

from typing import Any


class MatrixGenError(Exception):
    """Base class for all engine errors."""


class GatewayError(MatrixGenError):
    """A request could not be executed, or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.data = data


class TaskCreationFailed(MatrixGenError):
    """Submission succeeded at the transport level but no task id came back."""


class ProviderError(MatrixGenError):
    """The provider reported a terminal failure for a task."""


class PollingTransientError(MatrixGenError):
    """One poll round failed to execute or decode; the loop keeps going."""


class PollingTimeout(MatrixGenError):
    """The polling attempt budget ran out without a terminal status."""


class ParameterValidationError(MatrixGenError, ValueError):
    """Caller-supplied parameters are malformed; raised before any network call."""


class PluginValidationError(MatrixGenError):
    """An external provider script does not satisfy the adapter protocol."""


class UnsupportedCapabilityError(MatrixGenError):
    """The selected provider does not implement an optional capability."""


class ActorRegistrationError(MatrixGenError):
    """Encoding, upload or provider registration of an actor failed."""


class JobNotFoundError(MatrixGenError, KeyError):
    """No job with the given id exists in the queue."""


class JobStateError(MatrixGenError):
    """A job mutation was attempted from a state that does not allow it."""
