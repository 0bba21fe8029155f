"""Provider registry — resolves provider ids to adapters.

Usage:
    registry = ProviderRegistry(builtin_adapters(), PluginLoader("plugins"))
    registry.reload()
    adapter = registry.get("sora-veo-cloud")   # unknown ids → universal-mock
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from matrixgen.services.plugin_loader import PluginLoader
from matrixgen.services.providers.base import ProviderAdapter, ProviderDescriptor
from matrixgen.services.providers.mock import MOCK_PROVIDER_ID, UniversalMockAdapter

logger = logging.getLogger(__name__)


@dataclass
class ReloadReport:
    """Outcome of one plugin rediscovery."""
    loaded: list[str] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"loaded": list(self.loaded), "rejected": dict(self.rejected)}


class ProviderRegistry:
    """Built-in adapters plus a swappable set of external plugin adapters.

    ``get`` never fails: unknown or empty ids resolve to the universal mock.
    ``reload`` replaces the external set with a single reference swap, so
    a lookup sees either the old set or the new one, never a mix.
    """

    def __init__(
        self,
        builtins: Iterable[ProviderAdapter] = (),
        loader: PluginLoader | None = None,
    ) -> None:
        self._builtins: dict[str, ProviderAdapter] = {}
        self._externals: dict[str, ProviderAdapter] = {}
        self._loader = loader
        for adapter in builtins:
            self.register_builtin(adapter)
        if MOCK_PROVIDER_ID not in self._builtins:
            self.register_builtin(UniversalMockAdapter())

    def register_builtin(self, adapter: ProviderAdapter) -> None:
        self._builtins[adapter.id] = adapter

    def reload(self) -> ReloadReport:
        """Rediscover external plugins and swap them in."""
        report = ReloadReport()
        if self._loader is None:
            self._externals = {}
            return report

        adapters, rejected = self._loader.discover()
        report.rejected.update(rejected)

        fresh: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            source = getattr(adapter, "source", adapter.id)
            if adapter.id in self._builtins:
                logger.warning(
                    "Plugin %s uses built-in provider id %s, ignored", source, adapter.id,
                )
                report.rejected[source] = f"provider id {adapter.id} is reserved by a built-in"
                continue
            if adapter.id in fresh:
                logger.warning("Plugin %s duplicates provider id %s, ignored", source, adapter.id)
                report.rejected[source] = f"duplicate provider id {adapter.id}"
                continue
            fresh[adapter.id] = adapter
            report.loaded.append(adapter.id)

        self._externals = fresh
        logger.info(
            "Provider registry loaded: %d built-in, %d external, %d rejected",
            len(self._builtins), len(fresh), len(report.rejected),
        )
        return report

    def get(self, provider_id: str | None) -> ProviderAdapter:
        if provider_id:
            adapter = self._builtins.get(provider_id) or self._externals.get(provider_id)
            if adapter is not None:
                return adapter
            logger.debug("Unknown provider %r, falling back to %s", provider_id, MOCK_PROVIDER_ID)
        return self._builtins[MOCK_PROVIDER_ID]

    def has(self, provider_id: str) -> bool:
        return provider_id in self._builtins or provider_id in self._externals

    def get_all(self) -> list[ProviderDescriptor]:
        """Built-ins first (registration order), then externals."""
        externals = self._externals
        return [a.descriptor for a in self._builtins.values()] + [
            a.descriptor for a in externals.values()
        ]

    def to_dict_list(self) -> list[dict[str, Any]]:
        result = []
        for adapter in list(self._builtins.values()) + list(self._externals.values()):
            item = adapter.descriptor.to_dict()
            item["supports_actors"] = adapter.supports_actors
            result.append(item)
        return result
