"""Configuration for the text classification service."""

from __future__ import annotations

import os
from typing import Any, Final, NamedTuple, Self, override

from pydantic import Field, field_validator, model_validator

from waivern_pii_discovery.configuration import BaseServiceConfiguration


class _ProviderSettings(NamedTuple):
    default_model: str
    api_key_env: str
    model_env: str
    base_url_env: str | None = None


PROVIDERS: Final[dict[str, _ProviderSettings]] = {
    "anthropic": _ProviderSettings("claude-sonnet-4-5", "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL"),
    "openai": _ProviderSettings("gpt-4o", "OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL"),
}


class LLMServiceConfiguration(BaseServiceConfiguration):
    """Which chat model classifies field samples, and how to reach it.

    OpenAI-compatible endpoints (Azure OpenAI, Ollama) are selected with
    ``provider="openai"`` and a ``base_url``; such endpoints may run without
    an API key.

    Example:
        ```python
        # Provider, key and model from the environment
        config = LLMServiceConfiguration.from_properties({})

        # Local Ollama
        config = LLMServiceConfiguration(
            provider="openai", base_url="http://localhost:11434/v1", model="llama3"
        )
        ```

    """

    provider: str = Field(description="anthropic or openai")
    api_key: str = Field(default="", description="Provider API key")
    model: str | None = Field(default=None, description="Provider default if None")
    base_url: str | None = Field(default=None, description="OpenAI-compatible endpoint")
    timeout: float = Field(default=60.0, gt=0)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        provider = v.strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Provider must be one of {sorted(PROVIDERS)}, got: {v}")
        return provider

    @model_validator(mode="after")
    def validate_api_key(self) -> Self:
        if not self.api_key.strip() and not self.base_url:
            raise ValueError("API key cannot be empty")
        return self

    @classmethod
    @override
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration, filling missing properties from the environment.

        ``LLM_PROVIDER`` picks the provider (anthropic by default). The key,
        model and endpoint then come from that provider's variables, for
        example ``OPENAI_API_KEY``, ``OPENAI_MODEL`` and ``OPENAI_BASE_URL``.

        Raises:
            ValidationError: If the resulting configuration is invalid

        """
        data = dict(properties)
        data.setdefault("provider", os.getenv("LLM_PROVIDER", "anthropic"))

        settings = PROVIDERS.get(str(data["provider"]).strip().lower())
        if settings is not None:
            data.setdefault("api_key", os.getenv(settings.api_key_env, ""))
            if "model" not in data and (model := os.getenv(settings.model_env)):
                data["model"] = model
            if (
                "base_url" not in data
                and settings.base_url_env
                and (base_url := os.getenv(settings.base_url_env))
            ):
                data["base_url"] = base_url

        return cls.model_validate(data)

    def get_default_model(self) -> str:
        """Return the configured model or the provider's default."""
        return self.model or PROVIDERS[self.provider].default_model
