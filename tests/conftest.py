"""Shared fixtures for consentkit tests."""

import copy
import json
from pathlib import Path

import httpx
import pytest

from consentkit.common.config import load_consent_config
from consentkit.common.state import ConsentStore
from consentkit.services.network.client import NetworkClient
from consentkit.services.network.retry import RetryingTransport

FIXTURES = Path(__file__).parent / "fixtures"

CONFIG_URL = "https://cdn.example.com/consent/config.json"

# Rejected before any request is made
MALFORMED_URLS = [
    "ftp://cdn.example.com/config.json",
    "https:///config.json",
    "https://",
    "config.json",
    "not a url",
    "http://[::1/config.json",
    "https://cdn.example.com:99999/config.json",
    "https://exa mple.com/config.json",
]


@pytest.fixture(scope="session")
def base_config_dict() -> dict:
    with open(FIXTURES / "consent-config.json", "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def config_dict(base_config_dict) -> dict:
    """Mutable copy of the fixture config"""
    return copy.deepcopy(base_config_dict)


@pytest.fixture
def config(config_dict):
    return load_consent_config(config_dict)


@pytest.fixture
def store(tmp_path) -> ConsentStore:
    return ConsentStore(tmp_path / "state")


class SleepRecorder:
    """Stands in for asyncio.sleep so retries never wait"""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retrying(sleeps) -> RetryingTransport:
    return RetryingTransport(max_attempts=5, base_delay=0.25, sleep=sleeps)


class RecordingHandler:
    """
    httpx.MockTransport handler that records requests and replays a
    scripted list of responses (the last one repeats).
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [httpx.Response(200)]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response


def make_client(handler) -> NetworkClient:
    return NetworkClient(transport=httpx.MockTransport(handler))
