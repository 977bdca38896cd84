"""
Configuration Sync

Fetches the consent configuration document and keeps the local cache
current. Favors availability over freshness: on network or parse failure
the last known good config is served from the cache.

A config that decodes but fails validation is rejected outright. It is
never cached and never silently replaced by the cache. A cached config
that no longer validates counts as no cache at all.
"""

from ...common.config import ConsentConfig, load_consent_config
from ...common.exceptions import NetworkError, ParseError, StorageError
from ...common.logging_setup import get_service_logger, log_config_source
from ...common.state import ConsentStore
from ..network.client import NOT_MODIFIED, NetworkClient
from ..network.retry import RetryingTransport
from .validator import ConfigValidator

logger = get_service_logger("config.sync")

# Characters of the payload included in parse error messages
PREVIEW_LENGTH = 200


class ConfigSyncer:
    """Fetches, validates and caches the consent configuration"""

    def __init__(
        self,
        client: NetworkClient,
        store: ConsentStore,
        transport: RetryingTransport,
        validator: ConfigValidator | None = None,
    ):
        self.client = client
        self.store = store
        self.transport = transport
        self.validator = validator or ConfigValidator()

    async def fetch(self, url: str) -> ConsentConfig:
        """
        Single fetch attempt with cache fallback.

        Raises:
            NetworkError: Network failed and no cache exists
            ParseError: Payload unusable (or 304) and no cache exists
            ValidationError: Payload decoded but is not a valid config
        """
        try:
            data = await self.client.request(url, method="GET")
        except NetworkError as e:
            return self._fallback_to_cache(reason=str(e), error=e)

        if data == NOT_MODIFIED:
            return self._fallback_to_cache(
                reason="not modified",
                error=ParseError(
                    f"304 Not Modified but no cached config. Size: {len(data)}"
                ),
            )

        try:
            config = load_consent_config(data)
        except ParseError as e:
            preview = data[:PREVIEW_LENGTH].decode("utf-8", errors="replace")
            logger.warning(f"Config parse failed ({len(data)} bytes): {e.detail}")
            return self._fallback_to_cache(
                reason="parse failed",
                error=ParseError(f"Parse failed ({len(data)} bytes): {preview}"),
            )

        self.validator.validate(config)

        try:
            self.store.save_config_cache(config)
        except StorageError as e:
            # Fresh config is still usable; only the offline copy is stale
            logger.error(f"Failed to cache config {config.version}: {e}")
        log_config_source(logger, "network", config.version)
        return config

    async def fetch_with_retry(self, url: str) -> ConsentConfig:
        """Fetch with exponential-backoff retry"""
        return await self.transport.retry(lambda: self.fetch(url), label="config fetch")

    def _fallback_to_cache(self, reason: str, error: Exception) -> ConsentConfig:
        cached = self.store.load_config_cache()
        if cached is None or not self.validator.is_valid(cached):
            raise error

        log_config_source(logger, "cache", cached.version, reason=reason)
        return cached
