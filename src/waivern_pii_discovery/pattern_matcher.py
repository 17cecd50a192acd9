"""Deterministic pattern matcher for PII values.

ORDERED RULES
=============

Field mode (``detect``) applies an ordered list of rules to a single
(value, field name) pair. The first matching rule wins; there is no scoring
across rules. Rules combine a value-shape predicate with a field-name keyword
predicate:

1. bank_account  9-18 digits, banking keyword, no ``id`` token
2. aadhaar       exactly 12 digits, aadhaar keyword, no banking keyword
3. pan           AAAAA9999A
4. credit_card   16 digits, card keyword
5. phone         Indian mobile number, phone keyword
6. email         something@domain.tld
7. address       address-like words or address column, longer than 10 chars
8. dob           date column, ISO or DD/MM/YYYY value
9. name          name column, letters, spaces and dots only

Bank accounts are checked before Aadhaar numbers so that a 12 digit value in
a ``bank_account`` column is never reported as an Aadhaar number.

Text mode (``detect_in_text``) scans a free-text segment for occurrences and
reports the first rule with at least one hit together with its match count.

Every match is reported with confidence 1.0, source ``pattern`` and status
``auto_classified``; pattern matches never go to human review.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from pydantic import BaseModel, ConfigDict

from waivern_pii_discovery.taxonomy import (
    PIICategory,
    RiskLevel,
    calculate_risk,
    category_for_type,
)
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    FieldIdentity,
)

logger = logging.getLogger(__name__)

BANKING_KEYWORDS: Final = ("account", "acc_no", "ac_no", "bank", "iban")
AADHAAR_KEYWORDS: Final = ("aadhaar", "adhaar", "uidai")
CARD_KEYWORDS: Final = ("card", "credit", "debit", "cc_no")
PHONE_KEYWORDS: Final = ("phone", "mobile", "contact", "cell", "whatsapp")
ADDRESS_FIELD_KEYWORDS: Final = ("address", "residence", "location")
ADDRESS_VALUE_KEYWORDS: Final = (
    "road",
    "street",
    "nagar",
    "lane",
    "colony",
    "apartment",
    "marg",
    "sector",
    "pincode",
    "zip",
)
DOB_KEYWORDS: Final = ("dob", "birth")
NAME_EXCLUDED_KEYWORDS: Final = ("file", "prod", "user")

_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_BANK_ACCOUNT_SHAPE = re.compile(r"^\d{9,18}$")
_AADHAAR_SHAPE = re.compile(r"^\d{12}$")
_PAN_SHAPE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
_CARD_SHAPE = re.compile(r"^\d{16}$")
_PHONE_SHAPE = re.compile(r"^(\+91|0)?[6-9]\d{9}$")
_EMAIL_SHAPE = re.compile(r"\S+@\S+\.\S+")
_DATE_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}$|^\d{2}/\d{2}/\d{4}$")
_NAME_SHAPE = re.compile(r"^[a-zA-Z\s.]+$")

_TEXT_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_TEXT_PHONE = re.compile(r"(?<![\d+])(?:\+91[\s-]?|0)?[6-9]\d{9}(?!\d)")
_TEXT_DIGIT_RUN = re.compile(r"(?<!\d)\d{9,18}(?!\d)")
_TEXT_AADHAAR = re.compile(r"(?<!\d)\d{4}\s?\d{4}\s?\d{4}(?!\d)")
_TEXT_PAN = re.compile(r"\b[A-Z]{5}[0-9]{4}[A-Z]\b")
_TEXT_CARD = re.compile(r"(?<!\d)(?:\d{4}[\s-]?){3}\d{4}(?!\d)")


class PatternMatch(BaseModel):
    """A deterministic classification produced by the pattern matcher."""

    model_config = ConfigDict(frozen=True)

    type: str
    category: PIICategory | None
    risk: RiskLevel | None
    reason: str
    match_count: int | None = None
    confidence: float = 1.0
    source: ClassificationSource = ClassificationSource.PATTERN
    status: ClassificationStatus = ClassificationStatus.AUTO_CLASSIFIED

    def to_outcome(self, field: FieldIdentity) -> ClassificationOutcome:
        """Attach this match to the field it was found in."""
        return ClassificationOutcome(
            field=field,
            type=self.type,
            category=self.category,
            risk=self.risk,
            source=self.source,
            confidence=self.confidence,
            status=self.status,
            reason=self.reason,
            match_count=self.match_count,
        )


def field_name_tokens(field_name: str) -> list[str]:
    """Split a field name into lowercase tokens.

    ``customerAccountID`` and ``customer_account_id`` both yield
    ``["customer", "account", "id"]``.
    """
    spaced = _CAMEL_BOUNDARY.sub("_", field_name)
    return [token for token in _TOKEN_SPLIT.split(spaced.lower()) if token]


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


@dataclass(frozen=True, slots=True)
class _FieldContext:
    value: str
    digits: str
    lower_field: str
    tokens: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class _FieldRule:
    pii_type: str
    predicate: Callable[[_FieldContext], bool]
    reason: str


def _is_bank_account(ctx: _FieldContext) -> bool:
    return (
        bool(_BANK_ACCOUNT_SHAPE.match(ctx.digits))
        and _contains_any(ctx.lower_field, BANKING_KEYWORDS)
        and "id" not in ctx.tokens
    )


def _is_aadhaar(ctx: _FieldContext) -> bool:
    return (
        bool(_AADHAAR_SHAPE.match(ctx.digits))
        and _contains_any(ctx.lower_field, AADHAAR_KEYWORDS)
        and not _contains_any(ctx.lower_field, BANKING_KEYWORDS)
    )


def _is_pan(ctx: _FieldContext) -> bool:
    return bool(_PAN_SHAPE.match(ctx.value.strip()))


def _is_credit_card(ctx: _FieldContext) -> bool:
    return bool(_CARD_SHAPE.match(ctx.digits)) and _contains_any(
        ctx.lower_field, CARD_KEYWORDS
    )


def _is_phone(ctx: _FieldContext) -> bool:
    return bool(_PHONE_SHAPE.match(ctx.digits)) and _contains_any(
        ctx.lower_field, PHONE_KEYWORDS
    )


def _is_email(ctx: _FieldContext) -> bool:
    return bool(_EMAIL_SHAPE.search(ctx.value))


def _is_address(ctx: _FieldContext) -> bool:
    looks_like_address = _contains_any(
        ctx.value.lower(), ADDRESS_VALUE_KEYWORDS
    ) or _contains_any(ctx.lower_field, ADDRESS_FIELD_KEYWORDS)
    return looks_like_address and len(ctx.value) > 10


def _is_dob(ctx: _FieldContext) -> bool:
    return _contains_any(ctx.lower_field, DOB_KEYWORDS) and bool(
        _DATE_SHAPE.match(ctx.value.strip())
    )


def _is_name(ctx: _FieldContext) -> bool:
    if "name" not in ctx.lower_field or _contains_any(
        ctx.lower_field, NAME_EXCLUDED_KEYWORDS
    ):
        return False
    value = ctx.value.strip()
    return bool(_NAME_SHAPE.match(value)) and len(value) > 2


# Order matters: first match wins.
_FIELD_RULES: Final[tuple[_FieldRule, ...]] = (
    _FieldRule("bank_account", _is_bank_account, "9-18 digit value in a banking column"),
    _FieldRule("aadhaar", _is_aadhaar, "12 digit value in an Aadhaar column"),
    _FieldRule("pan", _is_pan, "value has PAN shape"),
    _FieldRule("credit_card", _is_credit_card, "16 digit value in a card column"),
    _FieldRule("phone", _is_phone, "mobile number in a phone column"),
    _FieldRule("email", _is_email, "value has email shape"),
    _FieldRule("address", _is_address, "address-like value"),
    _FieldRule("dob", _is_dob, "date value in a birth date column"),
    _FieldRule("name", _is_name, "alphabetic value in a name column"),
)


class PIIPatternMatcher:
    """Deterministic regex and keyword classifier."""

    def detect(self, value: str, field_name: str) -> PatternMatch | None:
        """Classify a single value in the context of its field name.

        Args:
            value: Sampled value as text
            field_name: Column, key or header the value was read from

        Returns:
            The first matching rule's classification, or None when no rule
            matches

        """
        if not value or not value.strip():
            return None

        ctx = _FieldContext(
            value=value,
            digits=_WHITESPACE.sub("", value),
            lower_field=field_name.lower(),
            tokens=tuple(field_name_tokens(field_name)),
        )
        for rule in _FIELD_RULES:
            if rule.predicate(ctx):
                logger.debug(f"Pattern rule '{rule.pii_type}' matched field '{field_name}'")
                return _build_match(rule.pii_type, f"Pattern match: {rule.reason}")
        return None

    def detect_in_text(self, text: str, segment_label: str) -> PatternMatch | None:
        """Scan a free-text segment for PII occurrences.

        Context keywords are looked up in the segment text itself, since a
        segment label carries no column semantics.

        Args:
            text: Segment text
            segment_label: Label of the segment, used for logging only

        Returns:
            The first rule with at least one occurrence, with ``match_count``
            set, or None

        """
        if not text or not text.strip():
            return None

        lower_text = text.lower()
        checks: tuple[tuple[str, int], ...] = (
            ("email", len(_TEXT_EMAIL.findall(text))),
            ("phone", len(_TEXT_PHONE.findall(text))),
            (
                "bank_account",
                len(_TEXT_DIGIT_RUN.findall(text))
                if _contains_any(lower_text, BANKING_KEYWORDS)
                else 0,
            ),
            (
                "aadhaar",
                len(_TEXT_AADHAAR.findall(text))
                if _contains_any(lower_text, AADHAAR_KEYWORDS)
                else 0,
            ),
            ("pan", len(_TEXT_PAN.findall(text))),
            (
                "credit_card",
                len(_TEXT_CARD.findall(text))
                if _contains_any(lower_text, CARD_KEYWORDS)
                else 0,
            ),
        )
        for pii_type, count in checks:
            if count:
                logger.debug(
                    f"Text pattern '{pii_type}' matched {count} time(s) in '{segment_label}'"
                )
                return _build_match(
                    pii_type,
                    f"Pattern match: {count} {pii_type} occurrence(s) in text",
                    match_count=count,
                )
        return None


def _build_match(
    pii_type: str, reason: str, match_count: int | None = None
) -> PatternMatch:
    category = category_for_type(pii_type)
    return PatternMatch(
        type=pii_type,
        category=category,
        risk=calculate_risk(category) if category else None,
        reason=reason,
        match_count=match_count,
    )
