"""HTTP gateway — executes the ``RequestSpec`` values adapters build.

Adapters never perform I/O themselves; the session driver and the actor
pipeline hand their request specs to a ``Gateway``. The default
implementation wraps a shared ``httpx.AsyncClient``.

Usage:
    gateway = HttpGateway()
    resp = await gateway.execute(spec)
    resp.data  # decoded JSON, or {"raw_response": text, "status": code}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from matrixgen.services.errors import GatewayError
from matrixgen.services.providers.base import RequestSpec

logger = logging.getLogger(__name__)

LOOPBACK_SCHEME = "loopback://"


@dataclass(frozen=True)
class GatewayResponse:
    status: int
    data: Any


class Gateway(Protocol):
    async def execute(self, spec: RequestSpec, credential: str | None = None) -> GatewayResponse:
        ...


def _form_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _decode_body(response: httpx.Response) -> Any:
    text = response.text
    if not text:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"raw_response": text, "status": response.status_code}


class HttpGateway:
    """``Gateway`` backed by ``httpx.AsyncClient``.

    * ``loopback://`` URLs are answered in-process by echoing the request
      body (used by the universal mock adapter).
    * ``spec.multipart`` sends every body field as a multipart form field,
      stringified (non-strings JSON-encoded).
    * Non-2xx statuses and transport errors raise ``GatewayError``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 480.0,
        connect_timeout: float = 300.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
        )
        self._own_client = client is None

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def execute(self, spec: RequestSpec, credential: str | None = None) -> GatewayResponse:
        if spec.url.startswith(LOOPBACK_SCHEME):
            logger.debug("Loopback %s %s", spec.method, spec.url)
            return GatewayResponse(status=200, data=spec.body if spec.body is not None else {})

        headers = dict(spec.headers)
        has_auth = any(k.lower() == "authorization" for k in headers)
        if credential and not has_auth:
            headers["Authorization"] = f"Bearer {credential}"

        kwargs: dict[str, Any] = {"headers": headers}
        if spec.method != "GET" and spec.body is not None:
            if spec.multipart:
                # httpx picks its own multipart boundary
                headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
                kwargs["headers"] = headers
                kwargs["files"] = {
                    key: (None, _form_value(value))
                    for key, value in (spec.body or {}).items()
                    if value is not None
                }
            else:
                kwargs["json"] = spec.body

        try:
            response = await self._client.request(spec.method, spec.url, **kwargs)
        except httpx.TimeoutException as e:
            raise GatewayError(f"request timed out: {spec.method} {spec.url}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"request failed: {spec.method} {spec.url}: {e}") from e

        data = _decode_body(response)
        if not response.is_success:
            logger.warning("Gateway %s %s → HTTP %d", spec.method, spec.url, response.status_code)
            raise GatewayError(
                f"HTTP {response.status_code} from {spec.url}",
                status_code=response.status_code,
                data=data,
            )
        return GatewayResponse(status=response.status_code, data=data)
