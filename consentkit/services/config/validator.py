"""
Configuration Validator

Structural and semantic checks on a decoded consent configuration.
Fails fast: the first violation found is raised, checks run in a fixed
order so the reported reason is deterministic.
"""

from ...common.config import (
    ButtonAction,
    CategoryPrimitive,
    ConsentConfig,
    ConsentLayerElement,
    ConsentMode,
    ElementType,
)
from ...common.exceptions import ValidationError
from ...common.logging_setup import get_service_logger

logger = get_service_logger("config.validator")

VALID_CONSENT_MODES = {mode.value for mode in ConsentMode}
VALID_ELEMENT_TYPES = {element_type.value for element_type in ElementType}
VALID_PRIMITIVES = {primitive.value for primitive in CategoryPrimitive}


class ConfigValidator:
    """Validates consent configuration structure"""

    def validate(self, config: ConsentConfig) -> None:
        """
        Validate configuration.

        Raises:
            ValidationError: On the first rule the config violates
        """
        try:
            self._validate_required_fields(config)
            self._validate_layers(config)
            self._validate_elements(config)
            self._validate_categories(config)
        except ValidationError as e:
            logger.warning(
                f"Config validation failed: {e.reason}",
                extra={"config_version": config.version},
            )
            raise

        logger.debug("Config validation passed")

    def is_valid(self, config: ConsentConfig) -> bool:
        try:
            self.validate(config)
        except ValidationError:
            return False
        return True

    def _validate_required_fields(self, config: ConsentConfig) -> None:
        if not config.version:
            raise ValidationError("Missing required field: version")

        if not config.dg_customer_id:
            raise ValidationError("Missing required field: dgCustomerId")

        if not config.privacy_domain:
            raise ValidationError("Missing required field: privacyDomain")

        if config.consent_mode not in VALID_CONSENT_MODES:
            raise ValidationError(f"Invalid consentMode: {config.consent_mode}")

    def _validate_layers(self, config: ConsentConfig) -> None:
        layers = config.layout.consent_layers

        if not layers:
            raise ValidationError("No consent layers defined")

        if config.layout.first_layer_id not in layers:
            raise ValidationError(
                f"firstLayerId '{config.layout.first_layer_id}' does not reference an existing layer"
            )

        for layer_id, layer in layers.items():
            if not layer.elements:
                raise ValidationError(f"Layer '{layer_id}' has no elements")

    def _validate_elements(self, config: ConsentConfig) -> None:
        layers = config.layout.consent_layers

        for element in config.iter_elements():
            if element.type not in VALID_ELEMENT_TYPES:
                raise ValidationError(f"Invalid element type: {element.type}")

            if element.button_action == ButtonAction.OPEN_LAYER.value:
                target_id = element.target_consent_layer
                if not target_id:
                    raise ValidationError(
                        "Button with action 'open_layer' must specify targetConsentLayer"
                    )
                if target_id not in layers:
                    raise ValidationError(f"Button target layer '{target_id}' does not exist")

            if not element.is_category_element and not element.translations:
                raise ValidationError(f"Element '{element.id}' has no translations")

    def _validate_categories(self, config: ConsentConfig) -> None:
        for element in config.category_elements():
            self._validate_category_element(element)

    def _validate_category_element(self, element: ConsentLayerElement) -> None:
        categories = element.consent_layer_categories
        if not categories:
            raise ValidationError(f"Category element '{element.id}' has no categories")

        seen_keys: set[str] = set()
        for category in categories:
            if category.primitive not in VALID_PRIMITIVES:
                raise ValidationError(f"Invalid category primitive: {category.primitive}")

            if not category.gtm_key:
                raise ValidationError(f"Category '{category.id}' has empty gtmKey")

            if category.gtm_key in seen_keys:
                raise ValidationError(
                    f"Duplicate gtmKey '{category.gtm_key}' in category element '{element.id}'"
                )
            seen_keys.add(category.gtm_key)

            if not category.translations:
                raise ValidationError(f"Category '{category.id}' has no translations")
