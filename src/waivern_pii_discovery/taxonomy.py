"""Statutory PII taxonomy and risk calculation.

The taxonomy is closed: every PII type tag belongs to exactly one category,
and every category maps to a base risk level. Classifier output outside this
taxonomy is treated as malformed.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

NO_PII_TYPE: Final[str] = "none"


class PIICategory(StrEnum):
    """Coarse statutory categories of personal data."""

    IDENTITY = "IDENTITY"
    CONTACT = "CONTACT"
    GOVERNMENT_ID = "GOVERNMENT_ID"
    FINANCIAL = "FINANCIAL"
    LOCATION = "LOCATION"
    HEALTH = "HEALTH"
    CHILDREN = "CHILDREN"
    EMPLOYEE = "EMPLOYEE"
    DIGITAL = "DIGITAL"
    BEHAVIORAL = "BEHAVIORAL"


class RiskLevel(StrEnum):
    """Risk level attached to a classification."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class SensitivityLevel(StrEnum):
    """Sensitivity label derived from risk and volume."""

    PUBLIC = "Public"
    INTERNAL = "Internal"
    SENSITIVE = "Sensitive"
    CRITICAL = "Critical"


class ProtectionStatus(StrEnum):
    """How stored personal data is protected."""

    ENCRYPTED = "Encrypted"
    CLEARTEXT = "Cleartext"
    MASKED = "Masked"


PII_TYPES_BY_CATEGORY: Final[dict[PIICategory, tuple[str, ...]]] = {
    PIICategory.IDENTITY: (
        "full_name",
        "name",
        "first_name",
        "last_name",
        "username",
        "gender",
        "photo",
        "dob",
    ),
    PIICategory.CONTACT: ("email", "phone", "whatsapp"),
    PIICategory.GOVERNMENT_ID: (
        "aadhaar",
        "pan",
        "passport",
        "voter_id",
        "driving_license",
        "gstin",
    ),
    PIICategory.FINANCIAL: (
        "bank_account",
        "ifsc",
        "credit_card",
        "debit_card",
        "upi",
        "cvv",
    ),
    PIICategory.LOCATION: (
        "address",
        "city",
        "state",
        "pincode",
        "country",
        "ip_address",
    ),
    PIICategory.HEALTH: ("medical_record", "diagnosis", "insurance", "health"),
    PIICategory.CHILDREN: ("child_name", "age_of_minor", "school"),
    PIICategory.EMPLOYEE: ("employee_id", "salary", "payroll", "designation"),
    PIICategory.DIGITAL: ("device_id", "cookie", "session_id", "mac_address"),
    PIICategory.BEHAVIORAL: ("purchase_history", "preferences"),
}

_CATEGORY_BY_TYPE: Final[dict[str, PIICategory]] = {
    pii_type: category
    for category, pii_types in PII_TYPES_BY_CATEGORY.items()
    for pii_type in pii_types
}

# Synonyms seen in classifier output, mapped onto canonical type tags
PII_TYPE_ALIASES: Final[dict[str, str]] = {
    "mobile": "phone",
    "phone_number": "phone",
    "email_address": "email",
    "account_number": "bank_account",
    "bank_details": "bank_account",
    "date_of_birth": "dob",
    "birth_date": "dob",
    "zip": "pincode",
    "zipcode": "pincode",
    "postal_code": "pincode",
    "aadhar": "aadhaar",
    "pan_number": "pan",
    "cookies": "cookie",
}

RISK_BY_CATEGORY: Final[dict[PIICategory, RiskLevel]] = {
    PIICategory.GOVERNMENT_ID: RiskLevel.HIGH,
    PIICategory.FINANCIAL: RiskLevel.HIGH,
    PIICategory.HEALTH: RiskLevel.HIGH,
    PIICategory.CHILDREN: RiskLevel.HIGH,
    PIICategory.CONTACT: RiskLevel.MEDIUM,
    PIICategory.LOCATION: RiskLevel.MEDIUM,
    PIICategory.DIGITAL: RiskLevel.MEDIUM,
    PIICategory.IDENTITY: RiskLevel.LOW,
    PIICategory.EMPLOYEE: RiskLevel.LOW,
    PIICategory.BEHAVIORAL: RiskLevel.LOW,
}

_BASE_SCORES: Final[dict[RiskLevel, int]] = {
    RiskLevel.HIGH: 50,
    RiskLevel.MEDIUM: 30,
    RiskLevel.LOW: 10,
}


def all_pii_types() -> frozenset[str]:
    """Return every canonical PII type tag in the taxonomy."""
    return frozenset(_CATEGORY_BY_TYPE)


def normalise_pii_type(raw_type: str) -> str | None:
    """Normalise a raw type label onto the closed taxonomy.

    Lowercases, converts spaces and hyphens to underscores and resolves
    aliases.

    Args:
        raw_type: Type label as produced by a classifier

    Returns:
        Canonical type tag, ``"none"``, or None when the label is outside
        the taxonomy

    """
    cleaned = raw_type.strip().lower().replace("-", "_").replace(" ", "_")
    if not cleaned or cleaned in {NO_PII_TYPE, "null", "not_pii"}:
        return NO_PII_TYPE
    cleaned = PII_TYPE_ALIASES.get(cleaned, cleaned)
    if cleaned in _CATEGORY_BY_TYPE:
        return cleaned
    return None


def category_for_type(pii_type: str) -> PIICategory | None:
    """Look up the statutory category for a canonical PII type tag."""
    return _CATEGORY_BY_TYPE.get(pii_type)


def calculate_risk(
    category: PIICategory | None,
    volume: int | None = None,
    protection: ProtectionStatus | None = None,
    process_count: int | None = None,
) -> RiskLevel:
    """Derive a risk level from a category and optional modifiers.

    Without modifiers the category's base risk is returned. With modifiers a
    score is built from the base risk, raised by record volume and the number
    of processing activities, and lowered when the data is encrypted or masked.

    Args:
        category: Statutory category, None for unknown
        volume: Number of records holding the data
        protection: How the data is protected at rest
        process_count: Number of processing activities using the data

    Returns:
        Risk level

    """
    base_risk = RISK_BY_CATEGORY.get(category, RiskLevel.LOW) if category else RiskLevel.LOW

    if volume is None and protection is None and process_count is None:
        return base_risk

    score = _BASE_SCORES[base_risk]

    if volume:
        if volume > 10_000:
            score += 20
        elif volume > 1_000:
            score += 10

    if protection in (ProtectionStatus.ENCRYPTED, ProtectionStatus.MASKED):
        score -= 20

    if process_count and process_count > 5:
        score += 10

    if score >= 60:
        return RiskLevel.HIGH
    if score >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_sensitivity(risk: RiskLevel, volume: int = 0) -> SensitivityLevel:
    """Derive a sensitivity label from risk and record volume."""
    if risk is RiskLevel.HIGH:
        return SensitivityLevel.CRITICAL if volume > 100_000 else SensitivityLevel.SENSITIVE
    if risk is RiskLevel.MEDIUM:
        return SensitivityLevel.INTERNAL
    return SensitivityLevel.PUBLIC
