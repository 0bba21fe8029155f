"""HttpGateway against httpx.MockTransport."""

import json

import httpx
import pytest

from matrixgen.services.errors import GatewayError
from matrixgen.services.gateway import HttpGateway
from matrixgen.services.providers.base import RequestSpec


def _gateway(handler):
    return HttpGateway(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_json_request_and_bearer_credential():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "T1"})

    resp = await _gateway(handler).execute(
        RequestSpec(method="POST", url="https://p.test/submit", body={"prompt": "x"}),
        credential="sk-1",
    )

    assert resp.status == 200
    assert resp.data == {"id": "T1"}
    assert seen == {"auth": "Bearer sk-1", "body": {"prompt": "x"}}


@pytest.mark.asyncio
async def test_existing_authorization_header_wins():
    def handler(request):
        return httpx.Response(200, json={"auth": request.headers["authorization"]})

    resp = await _gateway(handler).execute(
        RequestSpec(method="GET", url="https://p.test/s", headers={"Authorization": "Bearer mine"}),
        credential="other",
    )
    assert resp.data == {"auth": "Bearer mine"}


@pytest.mark.asyncio
async def test_get_sends_no_body():
    def handler(request):
        assert request.content == b""
        return httpx.Response(200, json={})

    await _gateway(handler).execute(RequestSpec(method="GET", url="https://p.test/s", body={"ignored": 1}))


@pytest.mark.asyncio
async def test_multipart_fields_are_stringified():
    seen = {}

    def handler(request):
        seen["content_type"] = request.headers["content-type"]
        seen["content"] = request.content.decode()
        return httpx.Response(200, json={"id": "v1"})

    await _gateway(handler).execute(
        RequestSpec(
            method="POST",
            url="https://p.test/v1/videos",
            headers={"Authorization": "Bearer k", "Content-Type": "application/json"},
            body={"model": "sora-2", "seconds": 15, "extra": {"a": 1}},
            multipart=True,
        )
    )

    assert seen["content_type"].startswith("multipart/form-data")
    assert 'name="model"' in seen["content"] and "sora-2" in seen["content"]
    assert 'name="seconds"' in seen["content"] and "\r\n15\r\n" in seen["content"]
    assert '{"a": 1}' in seen["content"]


@pytest.mark.asyncio
async def test_non_json_body_is_wrapped():
    def handler(request):
        return httpx.Response(200, text="OK but not json")

    resp = await _gateway(handler).execute(RequestSpec(method="GET", url="https://p.test/s"))
    assert resp.data == {"raw_response": "OK but not json", "status": 200}


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status_and_data():
    def handler(request):
        return httpx.Response(429, json={"error": "slow down"})

    with pytest.raises(GatewayError) as exc:
        await _gateway(handler).execute(RequestSpec(method="GET", url="https://p.test/s"))
    assert exc.value.status_code == 429
    assert exc.value.data == {"error": "slow down"}


@pytest.mark.asyncio
async def test_transport_errors_become_gateway_errors():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError, match="timed out") as exc:
        await _gateway(handler).execute(RequestSpec(method="GET", url="https://p.test/s"))
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_loopback_echoes_body_without_network():
    def handler(request):
        raise AssertionError("network must not be used")

    body = {"id": "mock-1", "status": "completed", "url": "https://m"}
    resp = await _gateway(handler).execute(
        RequestSpec(method="POST", url="loopback://universal-mock/generate", body=body)
    )
    assert resp.status == 200
    assert resp.data == body
