"""External provider plugins.

A plugin is a Python file in ``settings.PLUGINS_DIR``. It is imported with
``importlib`` and must expose, either at module level or on a module-level
``plugin`` object:

    MANIFEST = {"id": ..., "name": ..., "version": ..., "description": ...,
                "models": {"image": [...], "video": [...]}}   # models optional
    def build_submit_request(request) -> dict | RequestSpec
    def parse_submit_response(raw) -> dict | SubmitResult
    def build_status_request(task_id, credential) -> dict | RequestSpec
    def parse_status_response(raw) -> dict | str | StatusResult

and optionally ``build_create_actor_request``, ``build_list_actors_request``
and ``build_delete_actor_request`` (all three, or actor support stays off).

Files whose name starts with ``_`` are skipped. A file that fails to import
or validate is logged and excluded; the others still load.
"""

from __future__ import annotations

import importlib.util
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

from matrixgen.models.job import MediaType
from matrixgen.services.errors import PluginValidationError
from matrixgen.services.providers.base import (
    ACTOR_METHODS,
    Actor,
    Completed,
    Failed,
    GenerationRequest,
    Processing,
    ProviderAdapter,
    ProviderDescriptor,
    RequestSpec,
    StatusResult,
    SubmitResult,
    normalize_status,
)

logger = logging.getLogger(__name__)

REQUIRED_FUNCTIONS = (
    "build_submit_request",
    "parse_submit_response",
    "build_status_request",
    "parse_status_response",
)
MANIFEST_FIELDS = ("id", "name", "version", "description")


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def coerce_request_spec(value: Any) -> RequestSpec:
    """Accept a ``RequestSpec`` or a plain mapping with the same keys."""
    if isinstance(value, RequestSpec):
        return value
    if not isinstance(value, Mapping):
        raise PluginValidationError(f"expected a request mapping, got {type(value).__name__}")
    method = str(value.get("method", "GET")).upper()
    if method not in ("GET", "POST", "PUT", "DELETE"):
        raise PluginValidationError(f"unsupported HTTP method: {method}")
    url = value.get("url")
    if not isinstance(url, str) or not url:
        raise PluginValidationError("request is missing a url")
    return RequestSpec(
        method=method,  # type: ignore[arg-type]
        url=url,
        headers={str(k): str(v) for k, v in (value.get("headers") or {}).items()},
        body=value.get("body"),
        multipart=bool(value.get("multipart", False)),
    )


def coerce_status(value: Any) -> StatusResult:
    """Reduce whatever a plugin returned to ``Processing | Completed | Failed``."""
    if isinstance(value, (Processing, Completed, Failed)):
        return value
    if isinstance(value, str):
        return normalize_status(value)
    if isinstance(value, Mapping):
        url = value.get("url") or value.get("result_url")
        reason = value.get("error") or value.get("reason")
        return normalize_status(
            value.get("status"),
            url=str(url) if url else None,
            progress=value.get("progress"),
            reason=str(reason) if reason else None,
        )
    return Processing(None)


def coerce_submit(value: Any) -> SubmitResult:
    if isinstance(value, SubmitResult):
        return value
    if not isinstance(value, Mapping):
        return SubmitResult(task_id=None)
    task_id = value.get("task_id") or value.get("id")
    status = coerce_status(value) if value.get("status") else Processing(None)
    message = value.get("message")
    return SubmitResult(
        task_id=str(task_id) if task_id else None,
        status=status,
        message=str(message) if message else None,
    )


# ---------------------------------------------------------------------------
# Adapter wrapper
# ---------------------------------------------------------------------------

class ScriptProviderAdapter(ProviderAdapter):
    """Wraps a validated plugin module behind the ``ProviderAdapter`` contract.

    Build functions may raise (their errors reach the session as submit
    failures). Parse functions never raise: a plugin exception degrades to
    ``Processing(None)`` / ``SubmitResult(None)``.
    """

    def __init__(self, descriptor: ProviderDescriptor, plugin: Any, source: str = "") -> None:
        self.descriptor = descriptor
        self._plugin = plugin
        self.source = source
        # Actor capability only when the plugin defines all of it
        if all(callable(getattr(plugin, name, None)) for name in ACTOR_METHODS):
            for name in ACTOR_METHODS:
                setattr(self, name, self._wrap_builder(getattr(plugin, name)))

    @staticmethod
    def _wrap_builder(fn: Callable[..., Any]) -> Callable[..., RequestSpec]:
        def build(*args: Any, **kwargs: Any) -> RequestSpec:
            return coerce_request_spec(fn(*args, **kwargs))
        return build

    def build_submit_request(self, request: GenerationRequest) -> RequestSpec:
        return coerce_request_spec(self._plugin.build_submit_request(request))

    def parse_submit_response(self, raw: Any) -> SubmitResult:
        try:
            return coerce_submit(self._plugin.parse_submit_response(raw))
        except Exception:
            logger.warning("Plugin %s failed to parse submit response", self.id, exc_info=True)
            return SubmitResult(task_id=None)

    def build_status_request(self, task_id: str, credential: str) -> RequestSpec:
        return coerce_request_spec(self._plugin.build_status_request(task_id, credential))

    def parse_status_response(self, raw: Any) -> StatusResult:
        try:
            return coerce_status(self._plugin.parse_status_response(raw))
        except Exception:
            logger.warning("Plugin %s failed to parse status response", self.id, exc_info=True)
            return Processing(None)

    def parse_actor_response(self, raw: Any) -> Actor | None:
        custom = getattr(self._plugin, "parse_actor_response", None)
        if callable(custom):
            try:
                result = custom(raw)
            except Exception:
                logger.warning("Plugin %s failed to parse actor response", self.id, exc_info=True)
                return None
            if isinstance(result, Actor) or result is None:
                return result
            return super().parse_actor_response(result)
        return super().parse_actor_response(raw)


# ---------------------------------------------------------------------------
# Validation & discovery
# ---------------------------------------------------------------------------

def _descriptor_from_manifest(manifest: Any) -> ProviderDescriptor:
    if not isinstance(manifest, Mapping):
        raise PluginValidationError("MANIFEST is missing or not a mapping")
    for key in MANIFEST_FIELDS:
        value = manifest.get(key)
        if not isinstance(value, str) or not value.strip():
            raise PluginValidationError(f"MANIFEST.{key} must be a non-empty string")

    models: dict[MediaType, tuple[str, ...]] = {}
    raw_models = manifest.get("models") or {}
    if not isinstance(raw_models, Mapping):
        raise PluginValidationError("MANIFEST.models must be a mapping")
    for media, names in raw_models.items():
        try:
            media_type = MediaType(media)
        except ValueError:
            raise PluginValidationError(f"MANIFEST.models has unknown media type {media!r}") from None
        if not isinstance(names, (list, tuple)) or not all(isinstance(n, str) for n in names):
            raise PluginValidationError(f"MANIFEST.models.{media} must be a list of strings")
        models[media_type] = tuple(names)

    return ProviderDescriptor(
        id=manifest["id"].strip(),
        name=manifest["name"],
        description=manifest["description"],
        version=manifest["version"],
        models=models,
        builtin=False,
    )


def validate_plugin(plugin: Any, source: str = "") -> ScriptProviderAdapter:
    """Structurally check a plugin object and wrap it; raises ``PluginValidationError``."""
    manifest = getattr(plugin, "MANIFEST", None)
    if manifest is None:
        manifest = getattr(plugin, "manifest", None)
    descriptor = _descriptor_from_manifest(manifest)

    missing = [name for name in REQUIRED_FUNCTIONS if not callable(getattr(plugin, name, None))]
    if missing:
        raise PluginValidationError(f"missing required function(s): {', '.join(missing)}")

    return ScriptProviderAdapter(descriptor, plugin, source=source)


class PluginLoader:
    """Discovers and validates provider plugins in one directory."""

    def __init__(self, plugins_dir: str | Path) -> None:
        self.plugins_dir = Path(plugins_dir)

    def discover(self) -> tuple[list[ScriptProviderAdapter], dict[str, str]]:
        """Load every plugin file.

        Returns (valid adapters, {file name: rejection reason}).
        """
        adapters: list[ScriptProviderAdapter] = []
        rejected: dict[str, str] = {}

        if not self.plugins_dir.is_dir():
            logger.info("Plugin directory %s not found, no external providers", self.plugins_dir)
            return adapters, rejected

        for path in sorted(self.plugins_dir.glob("*.py")):
            if path.name.startswith("_"):
                continue
            try:
                adapters.append(self.load_file(path))
            except PluginValidationError as e:
                logger.warning("Rejected plugin %s: %s", path.name, e)
                rejected[path.name] = str(e)

        return adapters, rejected

    def load_file(self, path: Path) -> ScriptProviderAdapter:
        module_name = f"matrixgen_plugin_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginValidationError("cannot build an import spec")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except (Exception, SystemExit) as e:
            raise PluginValidationError(f"import failed: {e}") from e

        plugin = getattr(module, "plugin", module)
        return validate_plugin(plugin, source=path.name)
