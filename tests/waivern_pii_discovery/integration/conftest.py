"""Provider settings for integration tests that call real LLM APIs.

Each fixture skips the test when its API key is missing.
Run with: pytest -m integration
"""

import os

import pytest

from waivern_pii_discovery.llm import LLMServiceConfiguration


def _api_key_or_skip(variable: str) -> str:
    api_key = os.getenv(variable, "").strip()
    if not api_key:
        pytest.skip(f"{variable} not set")
    return api_key


@pytest.fixture
def anthropic_config() -> LLMServiceConfiguration:
    return LLMServiceConfiguration(
        provider="anthropic",
        api_key=_api_key_or_skip("ANTHROPIC_API_KEY"),
        model=os.getenv("ANTHROPIC_MODEL"),
    )


@pytest.fixture
def openai_config() -> LLMServiceConfiguration:
    """OpenAI, or any compatible endpoint named by OPENAI_BASE_URL."""
    return LLMServiceConfiguration(
        provider="openai",
        api_key=_api_key_or_skip("OPENAI_API_KEY"),
        model=os.getenv("OPENAI_MODEL"),
        base_url=os.getenv("OPENAI_BASE_URL"),
    )
