"""Probabilistic PII classifier backed by a text classification service.

The LLM reply is untrusted. It must contain a JSON object that validates
against ``LLMClassificationResponse``; anything else (connection failure,
prose, missing keys, out-of-range confidence, unknown type) is recovered by
the deterministic ``FallbackClassifier``. Classifier malformation never
reaches the caller.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from waivern_pii_discovery.classifier.fallback import FallbackClassifier
from waivern_pii_discovery.classifier.json_utils import extract_json_object
from waivern_pii_discovery.classifier.models import (
    ClassifierResult,
    LLMClassificationResponse,
)
from waivern_pii_discovery.classifier.prompts import (
    SYSTEM_INSTRUCTION,
    build_field_prompt,
)
from waivern_pii_discovery.errors import LLMServiceError
from waivern_pii_discovery.llm.base import TextClassificationService
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    FieldIdentity,
    status_for_confidence,
)

logger = logging.getLogger(__name__)


class MalformedResponseError(ValueError):
    """Raised when an LLM reply cannot be turned into a classification."""

    pass


def parse_classifier_response(raw_response: str) -> ClassifierResult:
    """Parse and validate a raw LLM reply.

    Args:
        raw_response: Text returned by the classification service

    Returns:
        Validated classifier result

    Raises:
        MalformedResponseError: If the reply has no valid JSON object or the
            object fails schema validation

    """
    try:
        payload = json.loads(extract_json_object(raw_response))
    except ValueError as e:
        # json.JSONDecodeError is a ValueError subclass
        raise MalformedResponseError(f"No parseable JSON object: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError("Response JSON is not an object")

    try:
        validated = LLMClassificationResponse.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Response failed validation: {e}") from e

    return ClassifierResult(
        type=validated.type,
        confidence=validated.confidence,
        reason=validated.reason,
    )


class ProbabilisticClassifier:
    """Classify sampled values through the LLM with a deterministic fallback."""

    def __init__(
        self,
        service: TextClassificationService | None,
        fallback: FallbackClassifier | None = None,
    ) -> None:
        """Initialise the classifier.

        Args:
            service: Text classification service, or None to use only the
                keyword fallback
            fallback: Fallback classifier (a default one is created if None)

        """
        self._service = service
        self._fallback = fallback or FallbackClassifier()

    async def classify(self, sample_value: str, field_name: str) -> ClassifierResult:
        """Classify one sampled value of a field.

        Args:
            sample_value: Sampled value or text segment
            field_name: Field name giving context

        Returns:
            Validated classification; never raises on classifier misbehaviour

        """
        if self._service is None:
            return self._fallback.classify(field_name, "no classifier configured")

        try:
            raw_response = await self._service.classify(
                SYSTEM_INSTRUCTION, build_field_prompt(field_name, sample_value)
            )
        except LLMServiceError as e:
            logger.warning(f"Classifier unavailable for '{field_name}', using fallback: {e}")
            return self._fallback.classify(field_name, "classifier unavailable")

        try:
            return parse_classifier_response(raw_response)
        except MalformedResponseError as e:
            logger.warning(f"Malformed classifier output for '{field_name}', using fallback: {e}")
            return self._fallback.classify(field_name, "malformed classifier output")

    async def classify_field(
        self, field: FieldIdentity, sample_value: str
    ) -> ClassificationOutcome:
        """Classify a sampled value and map the confidence onto a status."""
        result = await self.classify(sample_value, field.field_name)
        return ClassificationOutcome.build(
            field=field,
            pii_type=result.type,
            source=ClassificationSource.PROBABILISTIC,
            confidence=result.confidence,
            status=status_for_confidence(result.confidence),
            reason=result.reason,
        )
