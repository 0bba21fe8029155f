"""Built-in provider adapters."""

from __future__ import annotations

from matrixgen.services.providers.base import ProviderAdapter
from matrixgen.services.providers.geeknow import GeekNowAdapter
from matrixgen.services.providers.grsai import GrsaiAdapter
from matrixgen.services.providers.mock import MOCK_PROVIDER_ID, UniversalMockAdapter

__all__ = [
    "MOCK_PROVIDER_ID",
    "GeekNowAdapter",
    "GrsaiAdapter",
    "ProviderAdapter",
    "UniversalMockAdapter",
    "builtin_adapters",
]


def builtin_adapters() -> list[ProviderAdapter]:
    """Fresh instances of every built-in adapter, mock first."""
    return [UniversalMockAdapter(), GeekNowAdapter(), GrsaiAdapter()]
