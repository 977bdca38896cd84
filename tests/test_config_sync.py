"""
Test Config Syncer

Network fetch with cache fallback, parse-error reporting and the rule that
an invalid config is never cached.
"""

import json

import httpx
import pytest

from consentkit.common.config import load_consent_config
from consentkit.common.exceptions import NetworkError, ParseError, StorageError, ValidationError
from consentkit.common.state import StateKey
from consentkit.services.config.sync import ConfigSyncer

from .conftest import CONFIG_URL, RecordingHandler, make_client


def _json_response(data: dict) -> httpx.Response:
    return httpx.Response(200, content=json.dumps(data).encode("utf-8"))


def _syncer(handler, store, retrying) -> ConfigSyncer:
    return ConfigSyncer(make_client(handler), store, retrying)


def _older(config_dict: dict) -> dict:
    older = json.loads(json.dumps(config_dict))
    older["version"] = "v-2023-01-01"
    return older


@pytest.mark.asyncio
async def test_fetch_returns_and_caches_config(store, retrying, config_dict):
    handler = RecordingHandler(_json_response(config_dict))
    syncer = _syncer(handler, store, retrying)

    config = await syncer.fetch(CONFIG_URL)

    assert config.version == "v-2024-06-01"
    assert store.load_config_cache() == config
    assert str(handler.requests[0].url) == CONFIG_URL


@pytest.mark.asyncio
async def test_network_failure_falls_back_to_cache(store, retrying, config):
    store.save_config_cache(config)
    syncer = _syncer(RecordingHandler(httpx.ConnectError("down")), store, retrying)

    assert await syncer.fetch(CONFIG_URL) == config


@pytest.mark.asyncio
async def test_http_error_falls_back_to_cache(store, retrying, config):
    store.save_config_cache(config)
    syncer = _syncer(RecordingHandler(httpx.Response(503)), store, retrying)

    assert await syncer.fetch(CONFIG_URL) == config


@pytest.mark.asyncio
async def test_network_failure_without_cache_raises(store, retrying):
    syncer = _syncer(RecordingHandler(httpx.Response(500)), store, retrying)

    with pytest.raises(NetworkError) as exc_info:
        await syncer.fetch(CONFIG_URL)
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_not_modified_uses_cache(store, retrying, config):
    store.save_config_cache(config)
    syncer = _syncer(RecordingHandler(httpx.Response(304)), store, retrying)

    assert await syncer.fetch(CONFIG_URL) == config


@pytest.mark.asyncio
async def test_not_modified_without_cache_raises(store, retrying):
    syncer = _syncer(RecordingHandler(httpx.Response(304)), store, retrying)

    with pytest.raises(ParseError) as exc_info:
        await syncer.fetch(CONFIG_URL)
    assert exc_info.value.detail == "304 Not Modified but no cached config. Size: 0"


@pytest.mark.asyncio
async def test_unparseable_body_without_cache_reports_preview(store, retrying):
    body = b"<html>" + b"x" * 500 + b"</html>"
    syncer = _syncer(RecordingHandler(httpx.Response(200, content=body)), store, retrying)

    with pytest.raises(ParseError) as exc_info:
        await syncer.fetch(CONFIG_URL)

    detail = exc_info.value.detail
    assert detail.startswith(f"Parse failed ({len(body)} bytes): <html>xxx")
    assert detail.endswith("x" * 194)
    assert "</html>" not in detail


@pytest.mark.asyncio
async def test_unparseable_body_falls_back_to_cache(store, retrying, config):
    store.save_config_cache(config)
    syncer = _syncer(RecordingHandler(httpx.Response(200, content=b"{\"version\": 1}")), store, retrying)

    assert await syncer.fetch(CONFIG_URL) == config


@pytest.mark.asyncio
async def test_invalid_config_is_rejected_and_not_cached(store, retrying, config, config_dict):
    store.save_config_cache(config)
    config_dict["version"] = "v-broken"
    config_dict["consentMode"] = "sometimes"
    syncer = _syncer(RecordingHandler(_json_response(config_dict)), store, retrying)

    with pytest.raises(ValidationError):
        await syncer.fetch(CONFIG_URL)

    assert store.load_config_cache().version == "v-2024-06-01"


@pytest.mark.asyncio
async def test_cache_failing_validation_is_not_served(store, retrying, config_dict):
    config_dict["consentMode"] = "sometimes"
    store.write(StateKey.CONFIG_CACHE, config_dict)
    syncer = _syncer(RecordingHandler(httpx.ConnectError("down")), store, retrying)

    with pytest.raises(NetworkError):
        await syncer.fetch(CONFIG_URL)


@pytest.mark.asyncio
async def test_fresh_config_overwrites_cache(store, retrying, config_dict):
    store.save_config_cache(load_consent_config(_older(config_dict)))
    syncer = _syncer(RecordingHandler(_json_response(config_dict)), store, retrying)

    await syncer.fetch(CONFIG_URL)

    assert store.load_config_cache().version == "v-2024-06-01"


@pytest.mark.asyncio
async def test_cache_write_failure_still_returns_config(store, retrying, config_dict, monkeypatch):
    def broken_save(config):
        raise StorageError("disk full")

    monkeypatch.setattr(store, "save_config_cache", broken_save)
    syncer = _syncer(RecordingHandler(_json_response(config_dict)), store, retrying)

    config = await syncer.fetch(CONFIG_URL)
    assert config.version == "v-2024-06-01"


@pytest.mark.asyncio
async def test_fetch_with_retry_recovers(store, retrying, sleeps, config_dict):
    handler = RecordingHandler(
        httpx.Response(502),
        httpx.ConnectError("reset"),
        _json_response(config_dict),
    )
    syncer = _syncer(handler, store, retrying)

    config = await syncer.fetch_with_retry(CONFIG_URL)

    assert config.version == "v-2024-06-01"
    assert len(handler.requests) == 3
    assert sleeps.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_fetch_with_retry_gives_up(store, retrying, sleeps):
    handler = RecordingHandler(httpx.Response(500))
    syncer = _syncer(handler, store, retrying)

    with pytest.raises(NetworkError):
        await syncer.fetch_with_retry(CONFIG_URL)

    assert len(handler.requests) == retrying.max_attempts
    assert len(sleeps.delays) == retrying.max_attempts - 1
