"""Provider adapter protocol.

An adapter translates between the engine and one provider's wire format.
It never performs I/O: it builds ``RequestSpec`` values that the gateway
executes, and parses the raw responses the gateway hands back.

Status vocabularies differ per provider ("succeeded", "completed",
"success", "failed", "cancelled", ...). Adapters reduce them to the tagged
variant ``Processing | Completed | Failed`` so callers never inspect raw
strings. Parse methods must not raise: unexpected payloads mean
``Processing(None)``, i.e. keep waiting.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from matrixgen.models.job import MediaType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


@dataclass(frozen=True)
class RequestSpec:
    """Transport-agnostic description of one HTTP request."""
    method: HttpMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    multipart: bool = False


@dataclass(frozen=True)
class GenerationRequest:
    """Everything an adapter needs to build a submit request."""
    prompt: str
    credential: str
    base_url: str
    model: str
    aspect_ratio: str
    media_type: MediaType
    video_duration: str = "10s"


@dataclass(frozen=True)
class Processing:
    progress: int | None = None


@dataclass(frozen=True)
class Completed:
    url: str


@dataclass(frozen=True)
class Failed:
    reason: str


StatusResult = Union[Processing, Completed, Failed]


@dataclass(frozen=True)
class SubmitResult:
    """Provider correlation id plus normalized status after submission."""
    task_id: str | None
    status: StatusResult = field(default_factory=Processing)
    message: str | None = None


@dataclass(frozen=True)
class ProviderDescriptor:
    """Presentation metadata for a registered provider."""
    id: str
    name: str
    description: str
    version: str = "1.0.0"
    models: dict[MediaType, tuple[str, ...]] = field(default_factory=dict)
    builtin: bool = True

    def supported_models(self, media_type: MediaType) -> tuple[str, ...]:
        return self.models.get(media_type, ())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "builtin": self.builtin,
            "models": {mt.value: list(models) for mt, models in self.models.items()},
        }


@dataclass(frozen=True)
class Actor:
    """A reusable reference entity registered with a provider."""
    id: str
    username: str
    permalink: str = ""
    profile_picture_url: str = ""
    profile_desc: str | None = None


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

ACTOR_METHODS = (
    "build_create_actor_request",
    "build_list_actors_request",
    "build_delete_actor_request",
)


class ProviderAdapter(ABC):
    """Capability contract every provider implementation satisfies.

    Actor management is optional: a provider offers it by defining all of
    ``build_create_actor_request(credential, video_url, timestamps,
    from_task=None)``, ``build_list_actors_request(credential)`` and
    ``build_delete_actor_request(credential, actor_id)``.
    """

    descriptor: ProviderDescriptor

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def supports_actors(self) -> bool:
        return all(callable(getattr(self, name, None)) for name in ACTOR_METHODS)

    @abstractmethod
    def build_submit_request(self, request: GenerationRequest) -> RequestSpec:
        ...

    @abstractmethod
    def parse_submit_response(self, raw: Any) -> SubmitResult:
        ...

    @abstractmethod
    def build_status_request(self, task_id: str, credential: str) -> RequestSpec:
        ...

    @abstractmethod
    def parse_status_response(self, raw: Any) -> StatusResult:
        ...

    def parse_actor_response(self, raw: Any) -> Actor | None:
        """Extract the created actor from a wrapped or bare payload."""
        payload = raw
        if isinstance(raw, dict) and raw.get("code") == 0 and isinstance(raw.get("data"), dict):
            payload = raw["data"]
        return _actor_from_mapping(payload)

    def parse_actor_list_response(self, raw: Any) -> list[Actor]:
        """Accept a bare list, ``{data: [...]}`` or ``{data: {...}}``."""
        items: list[Any] = []
        if isinstance(raw, list):
            items = raw
        elif isinstance(raw, dict):
            data = raw.get("data")
            if isinstance(data, list):
                items = data
            elif isinstance(data, dict):
                items = [data]
        actors = []
        for item in items:
            actor = _actor_from_mapping(item)
            if actor is not None:
                actors.append(actor)
        return actors


def _actor_from_mapping(payload: Any) -> Actor | None:
    if not isinstance(payload, dict):
        return None
    actor_id = payload.get("id")
    username = payload.get("username")
    if not actor_id or not username:
        return None
    return Actor(
        id=str(actor_id),
        username=str(username),
        permalink=str(payload.get("permalink") or ""),
        profile_picture_url=str(payload.get("profile_picture_url") or ""),
        profile_desc=payload.get("profile_desc"),
    )


# ---------------------------------------------------------------------------
# Shared helpers for adapters
# ---------------------------------------------------------------------------

COMPLETED_STATUSES = frozenset({"succeeded", "succeed", "completed", "complete", "success"})
FAILED_STATUSES = frozenset({"failed", "failure", "error", "cancelled", "canceled"})


def normalize_status(
    raw_status: Any,
    *,
    url: str | None = None,
    progress: Any = None,
    reason: str | None = None,
) -> StatusResult:
    """Reduce a raw provider status string to the tagged variant.

    A "completed" status without a URL stays in progress: some providers
    flip the status before the result URL is attached.
    """
    status = raw_status.strip().lower() if isinstance(raw_status, str) else ""
    if status in COMPLETED_STATUSES:
        if url:
            return Completed(url)
        return Processing(coerce_progress(progress))
    if status in FAILED_STATUSES:
        return Failed(reason or f"task {status}")
    return Processing(coerce_progress(progress))


def coerce_progress(value: Any) -> int | None:
    """Parse a provider progress value; ``None`` when absent or garbled."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().rstrip("%"))
    except ValueError:
        return None
    if number != number:  # NaN
        return None
    return int(max(0.0, min(100.0, number)))


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` on any missing step."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current


def normalize_base_url(url: str) -> str:
    """Strip trailing slashes and a trailing ``/v1`` so paths can be appended."""
    clean = (url or "").strip().rstrip("/")
    if clean.endswith("/v1"):
        clean = clean[:-3]
    return clean


def map_aspect_ratio(ratio: str) -> str:
    """Resolution or ratio string → ``W:H`` ratio; unknown values default to 16:9."""
    return {
        "16:9": "16:9",
        "1920x1080": "16:9",
        "9:16": "9:16",
        "1080x1920": "9:16",
        "1:1": "1:1",
        "1024x1024": "1:1",
        "4:3": "4:3",
        "3:4": "3:4",
    }.get(ratio, "16:9")


def map_video_size(ratio: str) -> str:
    """Resolution string → provider frame size (``1280x720`` by default)."""
    return {
        "1080x1920": "720x1280",
        "9:16": "720x1280",
        "1024x1024": "1024x1024",
        "1:1": "1024x1024",
    }.get(ratio, "1280x720")


def parse_duration(duration: str | int | None, default: int = 10) -> int:
    """``"15s"`` → 15."""
    if isinstance(duration, int):
        return duration
    match = re.search(r"(\d+)", duration or "")
    return int(match.group(1)) if match else default


def bearer_headers(credential: str | None, *, json_body: bool = True) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {credential or ''}"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers
