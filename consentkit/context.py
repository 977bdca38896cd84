"""
Consent Context

Public entry point. One ConsentContext owns its store, HTTP client, retry
transport, config syncer, delivery layer, policy engine and event bus.
Create as many as needed; nothing is process-global.

Usage:
    async with ConsentContext(settings) as consent:
        await consent.initialize("https://consent.example.com/config.json")
        if consent.should_display_banner():
            await consent.present_banner(show_my_banner)
"""

import asyncio
from typing import Awaitable, Callable, Protocol

import httpx

from .common.config import ConsentConfig
from .common.events import ConsentEventBus, PreferencesListener
from .common.exceptions import (
    ConsentError,
    InvalidConfigUrlError,
    InvalidConfigurationError,
    NotInitializedError,
)
from .common.logging_setup import get_service_logger
from .common.preferences import CategoryConsent, ConsentPreferences
from .common.settings import EngineSettings
from .common.state import ConsentStore
from .services.config.sync import ConfigSyncer
from .services.config.validator import ConfigValidator
from .services.delivery.event_sync import EventDeliverySync, FlushResult
from .services.network.client import NetworkClient, parse_request_url
from .services.network.retry import RetryingTransport
from .services.policy.engine import ConsentPolicyEngine

logger = get_service_logger("context")


class BannerPresenter(Protocol):
    """
    Presentation-layer contract.

    Receives the config and the effective preferences at open time and
    returns the user's confirmed preferences, or None if dismissed.
    """

    def __call__(
        self,
        config: ConsentConfig,
        preferences: ConsentPreferences | None,
    ) -> Awaitable[ConsentPreferences | None]: ...


class ConsentContext:
    """
    Consent SDK facade.

    Lifecycle: Uninitialized -> initialize() -> Ready -> reset() -> Uninitialized.
    Queries that need an engine raise NotInitializedError before the first
    initialize().
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        store: ConsentStore | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_bus: ConsentEventBus | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.store = store or ConsentStore(self.settings.state_dir)
        self.events = event_bus or ConsentEventBus()
        self.client = NetworkClient(
            timeout=self.settings.request_timeout_s,
            transport=http_transport,
        )
        self.transport = RetryingTransport(
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.base_delay_s,
            sleep=sleep,
        )

        self._engine: ConsentPolicyEngine | None = None
        self._config_url: str | None = None
        self._background_tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "ConsentContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_config_url(config_url: str) -> str:
        """Return the URL host, or raise before any network call"""
        try:
            parsed = parse_request_url(config_url)
        except InvalidConfigUrlError as e:
            raise InvalidConfigurationError(
                f"Config URL must be an http(s) URL with a valid host and port: {config_url}"
            ) from e
        return parsed.host

    async def initialize(self, config_url: str | None = None) -> ConsentConfig:
        """
        Load the consent configuration and become Ready.

        Pending events from earlier sessions are flushed in the background
        once the config is loaded.

        Raises:
            InvalidConfigurationError: Missing or malformed URL, non-http(s)
                scheme, no host or port out of range
            ConsentError: Config could not be fetched and no cache exists
        """
        url = config_url or self.settings.config_url
        if not url:
            raise InvalidConfigurationError("No config URL given")
        host = self._validate_config_url(url)

        self._config_url = url
        syncer = ConfigSyncer(self.client, self.store, self.transport, ConfigValidator())
        delivery = EventDeliverySync(self.client, self.store, self.transport, privacy_domain=host)
        engine = ConsentPolicyEngine(
            self.store,
            syncer,
            delivery,
            optin_defaults_disabled=self.settings.optin_defaults_disabled,
        )

        config = await engine.load_config(url)
        self._engine = engine

        task = asyncio.create_task(self._flush_silently(engine))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

        return config

    async def _flush_silently(self, engine: ConsentPolicyEngine) -> None:
        try:
            await engine.retry_pending_requests()
        except ConsentError as e:
            logger.warning(f"Background flush of pending events failed: {e}")

    def _require_engine(self) -> ConsentPolicyEngine:
        if self._engine is None:
            raise NotInitializedError()
        return self._engine

    # ------------------------------------------------------------------
    # Consent status
    # ------------------------------------------------------------------

    def should_display_banner(self) -> bool:
        return self._require_engine().should_display_banner()

    def has_user_consent(self) -> bool:
        return self._require_engine().has_user_consent()

    def get_user_preferences(self) -> ConsentPreferences | None:
        return self._require_engine().get_user_preferences()

    def get_categories(self) -> ConsentPreferences | None:
        """Saved preferences if any, else defaults; use this to render state"""
        return self._require_engine().get_categories()

    def is_category_enabled(self, gtm_key: str) -> bool:
        return self._require_engine().is_category_enabled(gtm_key)

    def get_essential_categories(self) -> list[str]:
        return self._require_engine().get_essential_categories()

    def get_config(self) -> ConsentConfig | None:
        """Current configuration, or None if not initialized"""
        return self._engine.config if self._engine else None

    # ------------------------------------------------------------------
    # Consent management
    # ------------------------------------------------------------------

    async def save_preferences(self, preferences: ConsentPreferences) -> None:
        """
        Save preferences locally and deliver them to the backend.

        Subscribers are notified only after delivery succeeded.

        Raises:
            NotInitializedError: No config loaded
            ConsentError: Local save or delivery failed
        """
        await self._require_engine().save_preferences(preferences)
        self.events.publish(preferences)

    def _default_preferences(self) -> ConsentPreferences:
        defaults = self._require_engine().get_default_preferences()
        if defaults is None:
            raise NotInitializedError()
        return defaults

    async def accept_all(self) -> ConsentPreferences:
        """Enable every category"""
        preferences = ConsentPreferences(
            is_customised=True,
            cookie_options=[
                CategoryConsent(gtm_key=option.gtm_key, is_enabled=True)
                for option in self._default_preferences().cookie_options
            ],
        )
        await self.save_preferences(preferences)
        return preferences

    async def reject_all(self) -> ConsentPreferences:
        """Enable only essential categories"""
        defaults = self._default_preferences()
        essential = set(self._require_engine().get_essential_categories())
        preferences = ConsentPreferences(
            is_customised=True,
            cookie_options=[
                CategoryConsent(gtm_key=option.gtm_key, is_enabled=option.gtm_key in essential)
                for option in defaults.cookie_options
            ],
        )
        await self.save_preferences(preferences)
        return preferences

    async def track_banner_shown(self) -> None:
        await self._require_engine().track_banner_open()

    async def retry_pending_requests(self) -> FlushResult:
        if self._engine is None:
            return FlushResult(0, 0)
        return await self._engine.retry_pending_requests()

    def reset(self) -> None:
        """Clear all consent data"""
        if self._engine is not None:
            self._engine.reset()

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    async def present_banner(self, presenter: BannerPresenter) -> ConsentPreferences | None:
        """
        Hand the current state to a presenter and save what it returns.

        Returns:
            The saved preferences, or None if the user dismissed the banner
            or the save failed
        """
        engine = self._engine
        if engine is None or engine.config is None:
            return None

        chosen = await presenter(engine.config, engine.get_categories())
        if chosen is None:
            return None

        try:
            await self.save_preferences(chosen)
        except ConsentError as e:
            logger.warning(f"Preferences from banner not fully saved: {e}")
            return None
        return chosen

    def subscribe(self, listener: PreferencesListener) -> Callable[[], None]:
        """Listen for saved preferences; returns an unsubscribe callable"""
        return self.events.subscribe(listener)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Wait for background work, then release the HTTP client"""
        try:
            if self._background_tasks:
                await asyncio.gather(*self._background_tasks)
        finally:
            await self.client.close()
