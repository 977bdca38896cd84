"""
Common Utilities

Shared modules used across all services:
- config.py - Remote consent configuration model
- preferences.py - Consent preferences model
- state.py - Persistent file-based consent state
- settings.py - Local engine settings (YAML + environment)
- events.py - Preference-change event bus
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- timestamp.py - ISO-8601 helpers
"""

from .config import (
    ConsentConfig,
    ConsentLayer,
    ConsentLayerElement,
    ConsentLayerCategory,
    InitialCategories,
    Layout,
    ConsentMode,
    ElementType,
    CategoryPrimitive,
    ButtonAction,
    load_consent_config,
)
from .preferences import CategoryConsent, ConsentPreferences
from .state import ConsentStore, PendingEvent, Endpoint, StateKey
from .settings import EngineSettings, load_settings
from .events import ConsentEventBus
from .exceptions import (
    ConsentError,
    NotInitializedError,
    InvalidConfigurationError,
    InvalidConfigUrlError,
    NetworkError,
    ParseError,
    StorageError,
    ValidationError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    configure_service_loggers,
    log_config_source,
    log_delivery,
    log_flush,
)

__all__ = [
    # Config
    "ConsentConfig",
    "ConsentLayer",
    "ConsentLayerElement",
    "ConsentLayerCategory",
    "InitialCategories",
    "Layout",
    "ConsentMode",
    "ElementType",
    "CategoryPrimitive",
    "ButtonAction",
    "load_consent_config",
    # Preferences
    "CategoryConsent",
    "ConsentPreferences",
    # State
    "ConsentStore",
    "PendingEvent",
    "Endpoint",
    "StateKey",
    # Settings
    "EngineSettings",
    "load_settings",
    # Events
    "ConsentEventBus",
    # Exceptions
    "ConsentError",
    "NotInitializedError",
    "InvalidConfigurationError",
    "InvalidConfigUrlError",
    "NetworkError",
    "ParseError",
    "StorageError",
    "ValidationError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "configure_service_loggers",
    "log_config_source",
    "log_delivery",
    "log_flush",
]
