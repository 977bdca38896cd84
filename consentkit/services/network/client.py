"""
Network Client

Thin async HTTP layer over a reused httpx client. Maps every transport
outcome onto the consentkit error taxonomy so callers only deal with
ConsentError subclasses.
"""

import re
from typing import Any

import httpx

from ...common.exceptions import InvalidConfigUrlError, NetworkError
from ...common.logging_setup import get_service_logger

logger = get_service_logger("network.client")

# Empty body returned for 304 Not Modified (signals "use the cache")
NOT_MODIFIED = b""

# Hostname, IPv4 or bracket-less IPv6 literal, as httpx encodes it
VALID_HOST = re.compile(rb"^[A-Za-z0-9._~:-]+$")
MAX_PORT = 65535


def parse_request_url(url: str) -> httpx.URL:
    """
    Parse an absolute http(s) URL.

    Raises:
        InvalidConfigUrlError: If the URL does not parse, is not http(s),
            has no usable host or has a port out of range
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        raise InvalidConfigUrlError(url) from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidConfigUrlError(url)
    if not parsed.raw_host or not VALID_HOST.match(parsed.raw_host):
        raise InvalidConfigUrlError(url)
    if parsed.port is not None and not 0 < parsed.port <= MAX_PORT:
        raise InvalidConfigUrlError(url)
    return parsed


class NetworkClient:
    """
    HTTP client for config fetches and event delivery.

    Reuses a single AsyncClient to avoid connection overhead per request.
    A custom transport can be supplied (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        url: str,
        method: str = "GET",
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        """
        Make an HTTP request.

        Returns:
            Response body; NOT_MODIFIED (empty) for a 304

        Raises:
            InvalidConfigUrlError: If the URL is malformed
            NetworkError: On transport failure or a non-2xx status
        """
        parsed = parse_request_url(url)

        request_headers = dict(headers or {})
        if json_body is not None:
            request_headers.setdefault("Content-Type", "application/json")

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                parsed,
                json=json_body,
                params=params,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timeout contacting {parsed.host}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{e.__class__.__name__}: {e}") from e

        # 304 has no body; check before anything else
        if response.status_code == 304:
            return NOT_MODIFIED

        body = response.content
        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"HTTP {response.status_code}, data: {len(body)} bytes",
                status_code=response.status_code,
            )

        logger.debug(
            f"{method} {parsed.host}{parsed.path} -> {response.status_code} ({len(body)} bytes)"
        )
        return body
