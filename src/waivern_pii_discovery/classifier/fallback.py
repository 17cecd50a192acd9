"""Deterministic keyword fallback for the probabilistic classifier."""

from __future__ import annotations

import logging
from typing import Final

from waivern_pii_discovery.classifier.models import ClassifierResult
from waivern_pii_discovery.pattern_matcher import field_name_tokens
from waivern_pii_discovery.taxonomy import NO_PII_TYPE

logger = logging.getLogger(__name__)

# Checked in order; the first keyword found in the field name wins.
FALLBACK_KEYWORDS: Final[tuple[tuple[tuple[str, ...], str, float], ...]] = (
    (("email",), "email", 0.9),
    (("phone", "mobile"), "phone", 0.9),
    (("aadhaar",), "aadhaar", 0.95),
    (("pan",), "pan", 0.95),
    (("salary",), "salary", 0.9),
)


class FallbackClassifier:
    """Keyword classifier used when the LLM is unavailable or misbehaves.

    Matching is token-aware: ``pan`` matches ``pan_number`` or ``panNo`` but
    not ``company``. Longer keywords also match as substrings of a token, so
    ``emailaddress`` is still an email column.
    """

    def classify(self, field_name: str, cause: str) -> ClassifierResult:
        """Classify a field from its name alone.

        Args:
            field_name: Field name to inspect
            cause: Why the fallback was used, recorded in the reason

        Returns:
            Keyword classification, or ``none`` with confidence 0.0

        """
        tokens = field_name_tokens(field_name)
        for keywords, pii_type, confidence in FALLBACK_KEYWORDS:
            if any(_token_matches(token, keyword) for token in tokens for keyword in keywords):
                logger.debug(f"Fallback matched '{pii_type}' for field '{field_name}'")
                return ClassifierResult(
                    type=pii_type,
                    confidence=confidence,
                    reason=f"Fallback keyword match on field name ({cause})",
                    used_fallback=True,
                )

        return ClassifierResult(
            type=NO_PII_TYPE,
            confidence=0.0,
            reason=f"Fallback: not PII ({cause})",
            used_fallback=True,
        )


def _token_matches(token: str, keyword: str) -> bool:
    if token == keyword:
        return True
    # Short keywords like "pan" only match whole tokens.
    return len(keyword) > 3 and keyword in token
