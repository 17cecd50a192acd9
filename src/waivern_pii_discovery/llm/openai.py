"""OpenAI and OpenAI-compatible text classification service."""

from __future__ import annotations

import logging
from typing import override

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from waivern_pii_discovery.errors import LLMConfigurationError, LLMConnectionError
from waivern_pii_discovery.llm.base import TextClassificationService

logger = logging.getLogger(__name__)

# Local OpenAI-compatible servers such as Ollama ignore the key but the
# client requires one.
_LOCAL_PLACEHOLDER_KEY = "not-needed"


class OpenAIClassificationService(TextClassificationService):
    """Text classification through OpenAI models via LangChain.

    A ``base_url`` points the client at an OpenAI-compatible endpoint (Azure
    OpenAI deployments, Ollama), in which case the API key may be omitted.
    """

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialise the OpenAI service.

        Args:
            model_name: The model (or deployment) to use
            api_key: OpenAI API key
            base_url: Optional OpenAI-compatible endpoint
            timeout: Request timeout in seconds

        Raises:
            LLMConfigurationError: If neither an API key nor a base URL is given

        """
        if not api_key and not base_url:
            raise LLMConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY environment variable "
                "or configure OPENAI_BASE_URL for a local endpoint."
            )

        self._model = model_name
        self._llm = ChatOpenAI(
            model=model_name,
            api_key=SecretStr(api_key or _LOCAL_PLACEHOLDER_KEY),
            base_url=base_url,
            temperature=0,
            timeout=timeout,
        )
        endpoint = base_url or "api.openai.com"
        logger.info(
            f"Initialised OpenAI classification service with model: {model_name} ({endpoint})"
        )

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
            logger.error(f"OpenAI classification request failed: {e}")
            raise LLMConnectionError(f"LLM classification failed: {e}") from e
