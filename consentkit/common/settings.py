"""
Engine Settings

Local (host-side) settings for the consent engine, loaded from a YAML file
with environment-variable overrides. These are distinct from the remote
consent configuration fetched by the config syncer.

Example config.yaml:

    consent:
      config_url: https://consent.example.com/config.json
      state_dir: /var/lib/consentkit
    network:
      max_attempts: 5
      base_delay_s: 0.25
      request_timeout_s: 30
    logging:
      level: INFO
      format: json
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InvalidConfigurationError
from .logging_setup import configure_service_loggers, get_service_logger
from .state import STATE_DIR

logger = get_service_logger("settings")


class EngineSettings(BaseModel):
    """Runtime settings for a consent context"""
    config_url: str | None = None
    state_dir: Path = STATE_DIR
    max_attempts: int = Field(default=5, ge=1, le=20)
    base_delay_s: float = Field(default=0.25, ge=0.0)
    request_timeout_s: float = Field(default=30.0, gt=0.0)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    # Opt-in configs start with non-essential categories disabled
    optin_defaults_disabled: bool = False


def find_settings_path() -> Path | None:
    """First existing settings file, or None"""
    possible_paths = [
        os.environ.get("CONSENTKIT_CONFIG"),
        "/etc/consentkit/config.yaml",
        Path.home() / ".config" / "consentkit" / "config.yaml",
    ]

    for path in possible_paths:
        if path and Path(path).exists():
            return Path(path)

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML settings file; problems are logged, never raised"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing settings: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Settings file {path} must contain a mapping")
        return {}
    return data


def load_settings(path: Path | str | None = None, **overrides: Any) -> EngineSettings:
    """
    Build settings from YAML, then environment, then keyword overrides.

    The resulting log level and format are applied to every consentkit
    logger.

    Args:
        path: Explicit settings file (default: search standard locations)
        **overrides: Field values that win over file and environment

    Raises:
        InvalidConfigurationError: If a value fails validation
    """
    settings_path = Path(path) if path else find_settings_path()
    raw = _load_yaml(settings_path) if settings_path else {}

    consent_section = raw.get("consent", {}) or {}
    network_section = raw.get("network", {}) or {}
    logging_section = raw.get("logging", {}) or {}

    values: dict[str, Any] = {
        "config_url": os.environ.get("CONSENTKIT_CONFIG_URL") or consent_section.get("config_url"),
        "state_dir": os.environ.get("CONSENTKIT_STATE_DIR") or consent_section.get("state_dir"),
        "optin_defaults_disabled": consent_section.get("optin_defaults_disabled"),
        "max_attempts": network_section.get("max_attempts"),
        "base_delay_s": network_section.get("base_delay_s"),
        "request_timeout_s": network_section.get("request_timeout_s"),
        "log_level": os.environ.get("CONSENTKIT_LOG_LEVEL") or logging_section.get("level"),
        "log_format": os.environ.get("CONSENTKIT_LOG_FORMAT") or logging_section.get("format"),
    }
    values.update(overrides)

    try:
        settings = EngineSettings(**{k: v for k, v in values.items() if v is not None})
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidConfigurationError(f"{location}: {first['msg']}") from e

    # Process-wide: applies to every consentkit logger
    configure_service_loggers(settings.log_level, json_format=settings.log_format == "json")
    return settings
