"""Text classification capability backed by LangChain chat models."""

from waivern_pii_discovery.llm.anthropic import AnthropicClassificationService
from waivern_pii_discovery.llm.base import TextClassificationService
from waivern_pii_discovery.llm.configuration import LLMServiceConfiguration
from waivern_pii_discovery.llm.factory import ClassificationServiceFactory, create_service
from waivern_pii_discovery.llm.openai import OpenAIClassificationService

__all__ = [
    "AnthropicClassificationService",
    "ClassificationServiceFactory",
    "LLMServiceConfiguration",
    "OpenAIClassificationService",
    "TextClassificationService",
    "create_service",
]
