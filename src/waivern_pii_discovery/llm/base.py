"""Base text classification service interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from langchain_core.messages import BaseMessage


class TextClassificationService(ABC):
    """Abstract base class for text classification capabilities.

    A service takes a fixed system instruction and a user text and returns the
    raw model reply. Callers treat the reply as untrusted and validate it.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name being used."""

    @abstractmethod
    async def classify(self, system_instruction: str, user_text: str) -> str:
        """Send one classification request.

        Args:
            system_instruction: Fixed instruction describing the output contract
            user_text: Text to classify

        Returns:
            Raw response text

        Raises:
            LLMConnectionError: If the request fails

        """

    def _extract_content(self, response: BaseMessage) -> str:
        """Extract string content from a LangChain response.

        LangChain responses carry either a plain string, a list of content
        blocks or a dict. Text is extracted from each shape.

        Args:
            response: LangChain BaseMessage response

        Returns:
            Extracted text content as string

        """
        content = response.content  # type: ignore[reportUnknownMemberType,reportUnknownVariableType]

        if isinstance(content, str):
            return content.strip()

        if isinstance(content, list):  # type: ignore[reportUnnecessaryIsInstance]
            text_parts: list[str] = []
            for item in content:  # type: ignore[reportUnknownVariableType]
                if isinstance(item, dict) and "text" in item:
                    text_parts.append(str(item["text"]))  # type: ignore[reportUnknownArgumentType]
                else:
                    text_parts.append(str(item))  # type: ignore[reportUnknownArgumentType]
            return " ".join(text_parts).strip()

        if isinstance(content, dict) and "text" in content:  # type: ignore[reportUnnecessaryIsInstance]
            return str(content["text"]).strip()  # type: ignore[reportUnknownArgumentType]

        return str(content).strip()
