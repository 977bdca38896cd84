"""
consentkit - client-side consent policy engine

Fetches a remote consent configuration, decides when to prompt, resolves
the effective category state and delivers the user's decision to the
backend with at-least-once semantics.
"""

from .common import (
    CategoryConsent,
    ConsentConfig,
    ConsentError,
    ConsentEventBus,
    ConsentPreferences,
    ConsentStore,
    EngineSettings,
    InvalidConfigurationError,
    InvalidConfigUrlError,
    NetworkError,
    NotInitializedError,
    ParseError,
    StorageError,
    ValidationError,
    load_consent_config,
    load_settings,
)
from .context import BannerPresenter, ConsentContext
from .services.delivery import FlushResult

__version__ = "0.1.0"

__all__ = [
    "BannerPresenter",
    "CategoryConsent",
    "ConsentConfig",
    "ConsentContext",
    "ConsentError",
    "ConsentEventBus",
    "ConsentPreferences",
    "ConsentStore",
    "EngineSettings",
    "FlushResult",
    "InvalidConfigurationError",
    "InvalidConfigUrlError",
    "NetworkError",
    "NotInitializedError",
    "ParseError",
    "StorageError",
    "ValidationError",
    "load_consent_config",
    "load_settings",
]
