"""
Consent Policy Engine

Decides whether the banner must be shown and what the effective category
state is, by combining the loaded config with persisted state:

- saved preferences win over config defaults
- a saved config version that differs from the current one re-prompts
- essential categories come from the always-on flag, with a name-based
  fallback for configs that omit the flag

Queries never raise when no config is loaded; they answer False / None / [].
"""

from typing import Iterator

from ...common.config import ConsentConfig, ConsentMode
from ...common.exceptions import NotInitializedError
from ...common.logging_setup import get_service_logger
from ...common.preferences import CategoryConsent, ConsentPreferences
from ...common.state import ConsentStore
from ..config.sync import ConfigSyncer
from ..delivery.event_sync import EventDeliverySync, FlushResult

logger = get_service_logger("policy.engine")

# Fallback marker for essential categories in initialCategories.initial
ESSENTIAL_NAME_MARKER = "essential"


class ConsentPolicyEngine:
    """Decision core over one loaded configuration"""

    def __init__(
        self,
        store: ConsentStore,
        syncer: ConfigSyncer,
        delivery: EventDeliverySync,
        optin_defaults_disabled: bool = False,
    ):
        self.store = store
        self.syncer = syncer
        self.delivery = delivery
        self.optin_defaults_disabled = optin_defaults_disabled
        self._config: ConsentConfig | None = None

    @property
    def config(self) -> ConsentConfig | None:
        """Current loaded configuration (read-only)"""
        return self._config

    @property
    def is_ready(self) -> bool:
        return self._config is not None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def load_config(self, url: str) -> ConsentConfig:
        """Fetch (with retry and cache fallback) and make the config current"""
        config = await self.syncer.fetch_with_retry(url)
        self._config = config
        self.delivery.privacy_domain = config.privacy_domain
        logger.info(
            f"Consent config {config.version} active "
            f"(mode: {config.consent_mode}, show banner: {config.show_banner})",
            extra={"config_version": config.version},
        )
        return config

    # ------------------------------------------------------------------
    # Consent checks
    # ------------------------------------------------------------------

    def should_display_banner(self) -> bool:
        """
        True when the banner should be shown automatically.

        Precedence: config loaded -> showBanner flag -> preferences saved
        -> saved version matches current config version.
        """
        config = self._config
        if config is None:
            return False

        if not config.show_banner:
            return False

        if self.store.load_preferences() is None:
            return True

        return self.store.load_config_version() != config.version

    def has_user_consent(self) -> bool:
        return self.store.load_preferences() is not None

    def get_user_preferences(self) -> ConsentPreferences | None:
        return self.store.load_preferences()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @staticmethod
    def _iter_category_keys(config: ConsentConfig) -> Iterator[str]:
        yield from config.initial_categories.initial
        for category in config.iter_categories():
            yield category.gtm_key

    @classmethod
    def get_all_category_keys(cls, config: ConsentConfig) -> set[str]:
        """initialCategories.initial plus every key declared in any layer"""
        return set(cls._iter_category_keys(config))

    def get_default_preferences(self) -> ConsentPreferences | None:
        """
        Default (uncustomised) preferences for the loaded config.

        Every category is enabled. With optin_defaults_disabled set and an
        opt-in config, only essential categories start enabled.
        """
        config = self._config
        if config is None:
            return None

        keys = list(dict.fromkeys(self._iter_category_keys(config)))

        if self.optin_defaults_disabled and config.consent_mode == ConsentMode.OPT_IN.value:
            essential = set(self.get_essential_categories())
            options = [CategoryConsent(gtm_key=key, is_enabled=key in essential) for key in keys]
        else:
            options = [CategoryConsent(gtm_key=key, is_enabled=True) for key in keys]

        return ConsentPreferences(is_customised=False, cookie_options=options)

    def get_categories(self) -> ConsentPreferences | None:
        """What is currently true: saved preferences, else defaults"""
        saved = self.store.load_preferences()
        if saved is not None:
            return saved
        return self.get_default_preferences()

    def is_category_enabled(self, gtm_key: str) -> bool:
        preferences = self.store.load_preferences()
        if preferences is not None:
            return preferences.is_category_enabled(gtm_key)

        # Before any save only the configured initial set counts
        if self._config is None:
            return False
        return gtm_key in self._config.initial_categories.initial

    def get_essential_categories(self) -> list[str]:
        """GTM keys of categories the user cannot disable"""
        config = self._config
        if config is None:
            return []

        essential_keys: list[str] = []
        for element in config.category_elements():
            for category in element.consent_layer_categories or []:
                if category.always_on and category.gtm_key not in essential_keys:
                    essential_keys.append(category.gtm_key)

        # Name heuristic for configs without an always_on flag
        for gtm_key in config.initial_categories.initial:
            if ESSENTIAL_NAME_MARKER in gtm_key.lower() and gtm_key not in essential_keys:
                essential_keys.append(gtm_key)

        return essential_keys

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_preferences(self, preferences: ConsentPreferences) -> None:
        """
        Persist preferences locally, then deliver them to the backend.

        The local write commits before any network attempt.

        Raises:
            NotInitializedError: No config loaded
            StorageError: Local persistence failed (nothing was sent)
            ConsentError: Backend delivery failed (event queued for retry)
        """
        config = self._config
        if config is None:
            raise NotInitializedError()

        self.store.save_preferences(preferences)
        self.store.save_config_version(config.version)
        logger.info(
            f"Preferences saved locally ({len(preferences.enabled_keys())}/"
            f"{len(preferences.cookie_options)} enabled)",
            extra={"config_version": config.version},
        )

        await self.delivery.send_preferences(preferences, config)

    async def track_banner_open(self) -> None:
        config = self._config
        if config is None:
            raise NotInitializedError()

        await self.delivery.send_open_event(config)

    async def retry_pending_requests(self) -> FlushResult:
        return await self.delivery.flush_pending()

    def reset(self) -> None:
        """Clear all consent data and forget the loaded config"""
        self.store.clear_all()
        self._config = None
        logger.info("Consent engine reset")
