"""Probabilistic PII classification with deterministic fallback."""

from waivern_pii_discovery.classifier.fallback import FallbackClassifier
from waivern_pii_discovery.classifier.json_utils import extract_json_object
from waivern_pii_discovery.classifier.models import (
    ClassifierResult,
    LLMClassificationResponse,
)
from waivern_pii_discovery.classifier.probabilistic import (
    MalformedResponseError,
    ProbabilisticClassifier,
    parse_classifier_response,
)

__all__ = [
    "ClassifierResult",
    "FallbackClassifier",
    "LLMClassificationResponse",
    "MalformedResponseError",
    "ProbabilisticClassifier",
    "extract_json_object",
    "parse_classifier_response",
]
