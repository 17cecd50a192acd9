"""Tests for the PII taxonomy and risk calculation."""

import pytest

from waivern_pii_discovery.taxonomy import (
    NO_PII_TYPE,
    PII_TYPES_BY_CATEGORY,
    PIICategory,
    ProtectionStatus,
    RiskLevel,
    SensitivityLevel,
    all_pii_types,
    calculate_risk,
    calculate_sensitivity,
    category_for_type,
    normalise_pii_type,
)


class TestTaxonomyShape:
    def test_every_type_belongs_to_exactly_one_category(self) -> None:
        """No type tag is listed under two categories."""
        listed = [t for types in PII_TYPES_BY_CATEGORY.values() for t in types]

        assert len(listed) == len(set(listed))
        assert set(listed) == all_pii_types()

    def test_every_category_has_types(self) -> None:
        assert set(PII_TYPES_BY_CATEGORY) == set(PIICategory)

    @pytest.mark.parametrize(
        ("pii_type", "category"),
        [
            ("email", PIICategory.CONTACT),
            ("aadhaar", PIICategory.GOVERNMENT_ID),
            ("bank_account", PIICategory.FINANCIAL),
            ("salary", PIICategory.EMPLOYEE),
            ("dob", PIICategory.IDENTITY),
        ],
    )
    def test_category_for_type(self, pii_type: str, category: PIICategory) -> None:
        assert category_for_type(pii_type) is category

    def test_unknown_type_has_no_category(self) -> None:
        assert category_for_type("favourite_colour") is None


class TestNormalisePIIType:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Email", "email"),
            ("phone number", "phone"),
            ("Account-Number", "bank_account"),
            ("aadhar", "aadhaar"),
            ("  pan  ", "pan"),
        ],
    )
    def test_normalises_aliases_and_case(self, raw: str, expected: str) -> None:
        assert normalise_pii_type(raw) == expected

    @pytest.mark.parametrize("raw", ["none", "NONE", "null", "not pii", ""])
    def test_non_pii_labels(self, raw: str) -> None:
        assert normalise_pii_type(raw) == NO_PII_TYPE

    def test_label_outside_taxonomy(self) -> None:
        """Labels outside the closed taxonomy are rejected."""
        assert normalise_pii_type("social_security_number") is None


class TestCalculateRisk:
    def test_base_risk_without_modifiers(self) -> None:
        assert calculate_risk(PIICategory.FINANCIAL) is RiskLevel.HIGH
        assert calculate_risk(PIICategory.CONTACT) is RiskLevel.MEDIUM
        assert calculate_risk(PIICategory.BEHAVIORAL) is RiskLevel.LOW

    def test_unknown_category_is_low(self) -> None:
        assert calculate_risk(None) is RiskLevel.LOW

    def test_encryption_lowers_risk(self) -> None:
        """Encrypted financial data drops from high to medium."""
        risk = calculate_risk(
            PIICategory.FINANCIAL, volume=10, protection=ProtectionStatus.ENCRYPTED
        )

        assert risk is RiskLevel.MEDIUM

    def test_volume_and_processing_raise_risk(self) -> None:
        """Large, widely processed identity data becomes medium risk."""
        risk = calculate_risk(PIICategory.IDENTITY, volume=50_000, process_count=8)

        assert risk is RiskLevel.MEDIUM

    def test_cleartext_high_volume_stays_high(self) -> None:
        risk = calculate_risk(
            PIICategory.GOVERNMENT_ID,
            volume=2_000,
            protection=ProtectionStatus.CLEARTEXT,
        )

        assert risk is RiskLevel.HIGH


class TestCalculateSensitivity:
    @pytest.mark.parametrize(
        ("risk", "volume", "expected"),
        [
            (RiskLevel.HIGH, 500_000, SensitivityLevel.CRITICAL),
            (RiskLevel.HIGH, 10, SensitivityLevel.SENSITIVE),
            (RiskLevel.MEDIUM, 500_000, SensitivityLevel.INTERNAL),
            (RiskLevel.LOW, 0, SensitivityLevel.PUBLIC),
        ],
    )
    def test_sensitivity(
        self, risk: RiskLevel, volume: int, expected: SensitivityLevel
    ) -> None:
        assert calculate_sensitivity(risk, volume) is expected
