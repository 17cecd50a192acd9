"""Factory for text classification services."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from waivern_pii_discovery.errors import LLMConfigurationError
from waivern_pii_discovery.llm.anthropic import AnthropicClassificationService
from waivern_pii_discovery.llm.base import TextClassificationService
from waivern_pii_discovery.llm.configuration import LLMServiceConfiguration
from waivern_pii_discovery.llm.openai import OpenAIClassificationService

logger = logging.getLogger(__name__)


class ClassificationServiceFactory:
    """Creates text classification services with graceful degradation.

    ``create`` returns None when no usable configuration exists, so callers
    fall back to deterministic classification instead of failing.
    """

    def __init__(self, config: LLMServiceConfiguration | None = None) -> None:
        """Initialise the factory.

        Args:
            config: Optional explicit configuration. If None, configuration is
                read from environment variables.

        """
        self._config = config

    def _get_config(self) -> LLMServiceConfiguration | None:
        if self._config:
            return self._config

        try:
            return LLMServiceConfiguration.from_properties({})
        except ValidationError as e:
            logger.debug(f"Cannot create LLM configuration from environment: {e}")
            return None

    def can_create(self) -> bool:
        """Check whether a service can be created with current configuration."""
        return self._get_config() is not None

    def create(self) -> TextClassificationService | None:
        """Create a classification service, or None if unavailable."""
        config = self._get_config()
        if not config:
            logger.info("No LLM configured - using keyword fallback classifier only")
            return None

        try:
            service = create_service(config)
        except LLMConfigurationError as e:
            logger.warning(f"Failed to create LLM service: {e}")
            return None

        logger.info(
            f"LLM service created (provider={config.provider}, "
            f"model={config.get_default_model()})"
        )
        return service


def create_service(config: LLMServiceConfiguration) -> TextClassificationService:
    """Create the service for the configured provider.

    Raises:
        LLMConfigurationError: If the provider is unsupported or misconfigured

    """
    if config.provider == "anthropic":
        return AnthropicClassificationService(
            model_name=config.get_default_model(),
            api_key=config.api_key,
            timeout=config.timeout,
        )
    if config.provider == "openai":
        return OpenAIClassificationService(
            model_name=config.get_default_model(),
            api_key=config.api_key or None,
            base_url=config.base_url,
            timeout=config.timeout,
        )
    raise LLMConfigurationError(
        f"Unsupported LLM provider: '{config.provider}'. "
        "Supported providers: 'anthropic', 'openai'."
    )
