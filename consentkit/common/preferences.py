"""
Consent Preferences

The user's (or the default) per-category consent state. Encoded with the
same key names the stored preferences have always used so existing saved
data keeps decoding.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CategoryConsent(BaseModel):
    """Consent status for a single category"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    gtm_key: str
    is_enabled: bool = Field(alias="isEnabled")


class ConsentPreferences(BaseModel):
    """
    Whether the user customised their choice, plus one entry per category.

    At most one entry exists per GTM key. When duplicates are supplied the
    first position is kept and the last value wins.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_customised: bool = Field(alias="isCustomised")
    cookie_options: list[CategoryConsent] = Field(default_factory=list, alias="cookieOptions")

    @model_validator(mode="after")
    def _collapse_duplicate_keys(self) -> "ConsentPreferences":
        merged: dict[str, bool] = {}
        for option in self.cookie_options:
            merged[option.gtm_key] = option.is_enabled

        if len(merged) != len(self.cookie_options):
            # frozen model: bypass __setattr__ for the normalized list
            object.__setattr__(
                self,
                "cookie_options",
                [CategoryConsent(gtm_key=key, is_enabled=value) for key, value in merged.items()],
            )
        return self

    @classmethod
    def from_mapping(cls, options: dict[str, bool], is_customised: bool = True) -> "ConsentPreferences":
        """Build preferences from {gtm_key: enabled}"""
        return cls(
            is_customised=is_customised,
            cookie_options=[
                CategoryConsent(gtm_key=key, is_enabled=enabled)
                for key, enabled in options.items()
            ],
        )

    def is_category_enabled(self, gtm_key: str) -> bool:
        """True if the category is present and enabled"""
        for option in self.cookie_options:
            if option.gtm_key == gtm_key:
                return option.is_enabled
        return False

    def with_category(self, gtm_key: str, enabled: bool) -> "ConsentPreferences":
        """Copy with one category set (appended if new), marked as customised"""
        options = {option.gtm_key: option.is_enabled for option in self.cookie_options}
        options[gtm_key] = enabled
        return ConsentPreferences.from_mapping(options, is_customised=True)

    def enabled_keys(self) -> list[str]:
        """GTM keys of every enabled category, in order"""
        return [option.gtm_key for option in self.cookie_options if option.is_enabled]

    def as_mapping(self) -> dict[str, bool]:
        return {option.gtm_key: option.is_enabled for option in self.cookie_options}

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
