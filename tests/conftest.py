"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``matrixgen``
package regardless of how pytest is invoked, and provides shared fakes.
"""
import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from matrixgen.config import Settings  # noqa: E402
from matrixgen.schemas.settings import GenerationSettings  # noqa: E402
from matrixgen.services.gateway import LOOPBACK_SCHEME, GatewayResponse  # noqa: E402

PLUGINS_DIR = os.path.join(ROOT, "plugins")


class ScriptedGateway:
    """Gateway fake that replays canned payloads in order.

    Each scripted item is either a payload (returned as the response data)
    or an exception instance (raised). Loopback requests are echoed like
    the real gateway does and do not consume script items.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def execute(self, spec, credential=None):
        self.calls.append(spec)
        if spec.url.startswith(LOOPBACK_SCHEME):
            return GatewayResponse(status=200, data=spec.body if spec.body is not None else {})
        if not self.responses:
            raise AssertionError(f"unexpected request: {spec.method} {spec.url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return GatewayResponse(status=200, data=item)

    @property
    def remote_calls(self):
        return [c for c in self.calls if not c.url.startswith(LOOPBACK_SCHEME)]


@pytest.fixture
def gen_settings():
    return GenerationSettings(provider_id="sora-veo-cloud", api_key="sk-test")


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        PLUGINS_DIR=str(tmp_path / "plugins"),
        SNAPSHOT_BACKEND="memory",
        SCHEDULER_TICK_SECONDS=0.01,
        POLL_INTERVAL_SECONDS=0,
        DEFAULT_API_KEY="sk-test",
    )
