"""Anthropic text classification service."""

from __future__ import annotations

import logging
from typing import override

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import SecretStr

from waivern_pii_discovery.errors import LLMConfigurationError, LLMConnectionError
from waivern_pii_discovery.llm.base import TextClassificationService

logger = logging.getLogger(__name__)


class AnthropicClassificationService(TextClassificationService):
    """Text classification through Anthropic's Claude models via LangChain."""

    def __init__(self, model_name: str, api_key: str, timeout: float = 60.0) -> None:
        """Initialise the Anthropic service.

        Args:
            model_name: The Anthropic model to use
            api_key: Anthropic API key
            timeout: Request timeout in seconds

        Raises:
            LLMConfigurationError: If the API key is empty

        """
        if not api_key:
            raise LLMConfigurationError(
                "Anthropic API key is required. Set ANTHROPIC_API_KEY environment "
                "variable or provide api_key parameter."
            )

        self._model = model_name
        self._llm = ChatAnthropic(
            model_name=model_name,
            api_key=SecretStr(api_key),
            temperature=0,
            max_tokens_to_sample=256,
            timeout=timeout,
            stop=None,
        )
        logger.info(f"Initialised Anthropic classification service with model: {model_name}")

    @property
    @override
    def model_name(self) -> str:
        return self._model

    @override
    async def classify(self, system_instruction: str, user_text: str) -> str:
        try:
            logger.debug(f"Classifying text (length: {len(user_text)} chars)")
            response = await self._llm.ainvoke(
                [SystemMessage(content=system_instruction), HumanMessage(content=user_text)]
            )
            return self._extract_content(response)
        except Exception as e:
            logger.error(f"Anthropic classification request failed: {e}")
            raise LLMConnectionError(f"LLM classification failed: {e}") from e
