"""
Delivery Payloads

Wire schemas for the two backend endpoints. Field names match the backend
exactly; payloads are stored as-is in the pending-event queue.
"""

from typing import Any

from pydantic import BaseModel, Field

from ...common.config import ConsentConfig
from ...common.preferences import ConsentPreferences
from ...common.timestamp import utc_now_iso


class CookieOption(BaseModel):
    gtm_key: str
    is_enabled: bool


class SavePreferencesPayload(BaseModel):
    """Body of POST /save_preferences"""
    dg_customer_id: str
    consent_id: str
    config_version: str
    is_customised: bool
    cookie_options: list[CookieOption]
    timestamp: str = Field(default_factory=utc_now_iso)

    @classmethod
    def build(
        cls,
        preferences: ConsentPreferences,
        config: ConsentConfig,
        consent_id: str,
    ) -> "SavePreferencesPayload":
        return cls(
            dg_customer_id=config.dg_customer_id,
            consent_id=consent_id,
            config_version=config.version,
            is_customised=preferences.is_customised,
            cookie_options=[
                CookieOption(gtm_key=option.gtm_key, is_enabled=option.is_enabled)
                for option in preferences.cookie_options
            ],
        )


class SaveOpenPayload(BaseModel):
    """Query parameters of GET /save_open"""
    dg_customer_id: str
    consent_id: str
    config_version: str
    timestamp: str = Field(default_factory=utc_now_iso)

    @classmethod
    def build(cls, config: ConsentConfig, consent_id: str) -> "SaveOpenPayload":
        return cls(
            dg_customer_id=config.dg_customer_id,
            consent_id=consent_id,
            config_version=config.version,
        )


def to_query_params(payload: dict[str, Any]) -> dict[str, str]:
    """Flatten a stored open-event payload into string query parameters"""
    params = {}
    for key, value in payload.items():
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif value is not None:
            params[key] = str(value)
    return params
