"""
Test Network Client

Mapping of HTTP outcomes onto the consentkit error types, using
httpx.MockTransport in place of the network.
"""

import json

import httpx
import pytest

from consentkit.common.exceptions import InvalidConfigUrlError, NetworkError
from consentkit.services.network.client import NOT_MODIFIED, parse_request_url

from .conftest import CONFIG_URL, MALFORMED_URLS, RecordingHandler, make_client


@pytest.mark.asyncio
async def test_returns_body_on_2xx():
    handler = RecordingHandler(httpx.Response(200, content=b"{\"ok\": true}"))
    client = make_client(handler)

    body = await client.request(CONFIG_URL)

    assert body == b"{\"ok\": true}"
    assert handler.requests[0].method == "GET"
    await client.close()


@pytest.mark.asyncio
async def test_not_modified_returns_empty_body():
    client = make_client(RecordingHandler(httpx.Response(304)))

    assert await client.request(CONFIG_URL) == NOT_MODIFIED
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 500, 503])
async def test_non_2xx_raises_network_error(status):
    client = make_client(RecordingHandler(httpx.Response(status, content=b"oops")))

    with pytest.raises(NetworkError) as exc_info:
        await client.request(CONFIG_URL)

    assert exc_info.value.status_code == status
    assert exc_info.value.detail == f"HTTP {status}, data: 4 bytes"
    await client.close()


@pytest.mark.asyncio
async def test_transport_error_raises_network_error():
    client = make_client(RecordingHandler(httpx.ConnectError("connection refused")))

    with pytest.raises(NetworkError) as exc_info:
        await client.request(CONFIG_URL)

    assert exc_info.value.status_code is None
    assert "ConnectError" in exc_info.value.detail
    await client.close()


@pytest.mark.asyncio
async def test_timeout_raises_network_error():
    client = make_client(RecordingHandler(httpx.ReadTimeout("slow")))

    with pytest.raises(NetworkError) as exc_info:
        await client.request(CONFIG_URL)

    assert "Timeout contacting cdn.example.com" in exc_info.value.detail
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("url", MALFORMED_URLS)
async def test_bad_url_raises_before_sending(url):
    handler = RecordingHandler()
    client = make_client(handler)

    with pytest.raises(InvalidConfigUrlError):
        await client.request(url)

    assert handler.requests == []
    await client.close()


@pytest.mark.asyncio
async def test_post_sends_json_body():
    handler = RecordingHandler(httpx.Response(200))
    client = make_client(handler)

    await client.request("https://consent.example.com/save_preferences", method="POST", json_body={"a": 1})

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {"a": 1}
    await client.close()


@pytest.mark.asyncio
async def test_get_sends_query_params():
    handler = RecordingHandler(httpx.Response(200))
    client = make_client(handler)

    await client.request("https://consent.example.com/save_open", params={"consent_id": "abc"})

    assert handler.requests[0].url.params["consent_id"] == "abc"
    await client.close()


@pytest.mark.asyncio
async def test_client_is_reused_and_recreated_after_close():
    client = make_client(RecordingHandler(httpx.Response(200)))

    first = await client._get_client()
    assert await client._get_client() is first

    await client.close()
    assert await client._get_client() is not first
    await client.close()


def test_parse_request_url_accepts_ports_and_ip_literals():
    assert parse_request_url("https://cdn.example.com:8443/config.json").port == 8443
    assert parse_request_url("http://[::1]:8080/config.json").host == "::1"
    assert parse_request_url("http://127.0.0.1/config.json").host == "127.0.0.1"
