"""
Consent Configuration Model

Typed, immutable representation of the remote consent configuration
document. Field names are snake_case; the wire names are kept as aliases so
the same models decode the backend JSON and re-encode it for the cache.

Translation maps arrive either as an array of {"locale": ...} objects or as
an object keyed by locale. Both shapes are normalized into
{locale: translation} while decoding.
"""

import json
from enum import Enum
from typing import Annotated, Any, Iterator

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError


class ConsentMode(str, Enum):
    """Jurisdictional consent posture"""
    OPT_IN = "optin"
    OPT_OUT = "optout"


class ElementType(str, Enum):
    """Layer element kinds"""
    TEXT = "ConsentLayerTextElement"
    BUTTON = "ConsentLayerButtonElement"
    LINK = "ConsentLayerLinkElement"
    CATEGORY = "ConsentLayerCategoryElement"
    TRACKING_DETAILS = "ConsentLayerTrackingDetailsElement"
    BROWSER_SIGNAL_NOTICE = "ConsentLayerBrowserSignalNoticeElement"


class CategoryPrimitive(str, Enum):
    """Category kinds understood by the backend"""
    ESSENTIAL = "dg-category-essential"
    PERFORMANCE = "dg-category-performance"
    FUNCTIONAL = "dg-category-functional"
    MARKETING = "dg-category-marketing"


class ButtonAction(str, Enum):
    """Button actions the validator cares about"""
    OPEN_LAYER = "open_layer"


def normalize_locale_map(value: Any) -> Any:
    """Turn an array of locale-tagged translations into a map keyed by locale"""
    if isinstance(value, list):
        return {
            item["locale"]: item
            for item in value
            if isinstance(item, dict) and item.get("locale")
        }
    return value


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Plugins(_ConfigModel):
    """Plugin configuration flags"""
    script_control: bool = Field(default=False, alias="scriptControl")
    all_cookie_subdomains: bool = Field(default=False, alias="allCookieSubdomains")
    cookie_blocking: bool = Field(default=False, alias="cookieBlocking")
    local_storage_blocking: bool = Field(default=False, alias="localStorageBlocking")
    sync_ot_consent: bool = Field(default=False, alias="syncOTConsent")


class ConsentPolicy(_ConfigModel):
    """Consent policy descriptor"""
    name: str = ""
    is_default: bool = Field(default=False, alias="default")


class InitialCategories(_ConfigModel):
    """Default category keys plus GPC/DNT/opt-out overrides"""
    respect_gpc: bool = False
    respect_dnt: bool = False
    respect_optout: bool = False
    initial: list[str] = Field(default_factory=list)
    gpc: list[str] = Field(default_factory=list)
    optout: list[str] = Field(default_factory=list)


class ElementTranslation(_ConfigModel):
    """Translation for an element"""
    id: str | None = None
    locale: str | None = None
    value: str | None = None
    text: str | None = None
    url: str | None = None


class LocalizedValue(_ConfigModel):
    """Tracking-details link and browser-signal notice translations"""
    id: str | None = None
    locale: str | None = None
    value: str | None = None


class CategoryTranslation(_ConfigModel):
    """Translation for a category"""
    id: str | None = None
    locale: str | None = None
    name: str | None = None
    description: str | None = None
    essential_label: str | None = None
    tracking_details_link: str | None = None


ElementTranslations = Annotated[dict[str, ElementTranslation], BeforeValidator(normalize_locale_map)]
LocalizedValues = Annotated[dict[str, LocalizedValue], BeforeValidator(normalize_locale_map)]
CategoryTranslations = Annotated[dict[str, CategoryTranslation], BeforeValidator(normalize_locale_map)]


class LinkItem(_ConfigModel):
    """A link within a link element"""
    id: str
    order: int = 0
    translations: ElementTranslations = Field(default_factory=dict)


class ConsentLayerCategory(_ConfigModel):
    """A tracking category declared inside a category element"""
    id: str
    consent_category_id: str = ""
    order: int = 0
    hidden: bool = False
    primitive: str
    always_on: bool = False
    gtm_key: str
    uuids: list[str] = Field(default_factory=list)
    cookie_patterns: list[str] = Field(default_factory=list)
    translations: CategoryTranslations = Field(default_factory=dict)
    show_tracking_details_link: bool = False


class ConsentLayerElement(_ConfigModel):
    """
    A UI element within a consent layer.

    Only `id`, `order` and `type` are common; the remaining fields apply to
    specific element types and are None elsewhere.
    """
    id: str
    order: int
    type: str

    # Text
    style: str | None = None

    # Button
    button_action: str | None = None
    target_consent_layer: str | None = None
    categories: list[str] | None = None

    # Link
    links: list[LinkItem] | None = None

    # Category
    consent_layer_categories: list[ConsentLayerCategory] | None = None
    show_tracking_details_link: bool | None = None
    consent_layer_categories_config_id: str | None = None
    tracking_details_link_translations: LocalizedValues | None = None

    # Browser signal notice
    show_icon: bool | None = None
    consent_layer_browser_signal_notice_config_id: str | None = None
    browser_signal_notice_translations: LocalizedValues | None = None

    # Tracking details
    show_tracking_services: bool | None = None
    show_cookies: bool | None = None
    show_icons: bool | None = None
    group_by_vendor: bool | None = None

    translations: ElementTranslations | None = None

    @property
    def is_category_element(self) -> bool:
        return self.type == ElementType.CATEGORY.value


class ConsentLayer(_ConfigModel):
    """A single screen in the consent flow"""
    id: str
    name: str = ""
    theme: str = ""
    position: str = ""
    show_close_button: bool = False
    banner_api_id: str = ""
    elements: list[ConsentLayerElement] = Field(default_factory=list)


class Layout(_ConfigModel):
    """Layer graph: the entry layer plus every layer by id"""
    id: str = ""
    name: str = ""
    description: str | None = None
    status: str = ""
    default_layout: bool = False
    collapsed_on_mobile: bool = False
    first_layer_id: str
    gpc_dnt_layer_id: str | None = None
    consent_layers: dict[str, ConsentLayer]


class ConsentConfig(_ConfigModel):
    """Root configuration object for the consent banner"""
    version: str
    consent_container_version_id: str = Field(default="", alias="consentContainerVersionId")
    dg_customer_id: str = Field(alias="dgCustomerId")
    publish_date: int = Field(default=0, alias="p")
    dch: str = ""
    dc: str = ""
    privacy_domain: str = Field(alias="privacyDomain")
    plugins: Plugins = Field(default_factory=Plugins)
    test_mode: bool = Field(default=False, alias="testMode")
    ignore_do_not_track: bool = Field(default=False, alias="ignoreDoNotTrack")
    tracking_details_url: str = Field(default="", alias="trackingDetailsUrl")
    consent_mode: str = Field(alias="consentMode")
    show_banner: bool = Field(alias="showBanner")
    consent_policy: ConsentPolicy = Field(default_factory=ConsentPolicy, alias="consentPolicy")
    gpp_us_nat: bool = Field(default=False, alias="gppUsNat")
    initial_categories: InitialCategories = Field(alias="initialCategories")
    layout: Layout

    def iter_elements(self) -> Iterator[ConsentLayerElement]:
        """Every element of every layer, in layer declaration order"""
        for layer in self.layout.consent_layers.values():
            yield from layer.elements

    def category_elements(self) -> list[ConsentLayerElement]:
        """Every category-group element across all layers"""
        return [e for e in self.iter_elements() if e.is_category_element]

    def iter_categories(self) -> Iterator[ConsentLayerCategory]:
        """Every category declared in any category-group element"""
        for element in self.iter_elements():
            yield from element.consent_layer_categories or []

    def to_wire(self) -> dict[str, Any]:
        """Dump back into the wire JSON shape"""
        return self.model_dump(mode="json", by_alias=True)


def load_consent_config(data: dict[str, Any] | str | bytes) -> ConsentConfig:
    """
    Decode a configuration document.

    Args:
        data: Parsed JSON object, or raw JSON text/bytes

    Returns:
        Decoded ConsentConfig (not yet validated)

    Raises:
        ParseError: If the payload is not JSON or does not match the schema
    """
    try:
        if isinstance(data, (str, bytes, bytearray)):
            data = json.loads(data)
        if not isinstance(data, dict):
            raise ParseError(f"expected a JSON object, got {type(data).__name__}")
        return ConsentConfig.model_validate(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"invalid JSON: {e}") from e
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ParseError(
            f"{e.error_count()} schema error(s), first at {location}: {first['msg']}"
        ) from e
