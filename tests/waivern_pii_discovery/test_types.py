"""Tests for the core data model."""

from collections.abc import Callable

import pytest
from pydantic import ValidationError

from waivern_pii_discovery.taxonomy import PIICategory, RiskLevel
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    ConfirmationRequest,
    ConfirmationStatus,
    Decision,
    DiscoveredEntity,
    EntityKind,
    FieldIdentity,
    SourceType,
    status_for_confidence,
)


class TestStatusForConfidence:
    """Confidence gating of probabilistic outcomes."""

    @pytest.mark.parametrize(
        ("confidence", "expected"),
        [
            (1.0, ClassificationStatus.AUTO_CLASSIFIED),
            (0.80, ClassificationStatus.AUTO_CLASSIFIED),
            (0.79, ClassificationStatus.NEEDS_CONFIRMATION),
            (0.50, ClassificationStatus.NEEDS_CONFIRMATION),
            (0.49, ClassificationStatus.DISCARDED),
            (0.0, ClassificationStatus.DISCARDED),
        ],
    )
    def test_thresholds(self, confidence: float, expected: ClassificationStatus) -> None:
        """Boundaries are inclusive on the lower end."""
        assert status_for_confidence(confidence) is expected


class TestFieldIdentity:
    def test_rule_key_is_lowercased_field_name(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        assert make_field("Customer_Email").rule_key == "customer_email"

    def test_segment_rule_key_is_bound_to_document(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        segment = make_field("Segment_3", locator="/share/Notes.txt", text_segment=True)

        assert segment.rule_key == "/share/notes.txt#segment_3"

    def test_entity_kind_follows_source_type(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        table_field = make_field()
        file_field = make_field(
            "segment_0",
            locator="/data/notes.txt",
            source_type=SourceType.FILE,
            source_subtype="local",
            text_segment=True,
        )

        assert table_field.entity_kind is EntityKind.TABLE
        assert file_field.entity_kind is EntityKind.FILE

    def test_empty_field_name_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FieldIdentity(
                source_type=SourceType.DATABASE,
                source_subtype="sqlite",
                locator="crm/customers",
                field_name="",
            )

    def test_str(self, make_field: Callable[..., FieldIdentity]) -> None:
        assert str(make_field("phone")) == "crm/customers.phone"


class TestClassificationOutcome:
    def test_build_derives_category_and_risk(
        self, make_outcome: Callable[..., ClassificationOutcome]
    ) -> None:
        outcome = make_outcome(pii_type="aadhaar", confidence=0.9)

        assert outcome.category is PIICategory.GOVERNMENT_ID
        assert outcome.risk is RiskLevel.HIGH
        assert outcome.status is ClassificationStatus.AUTO_CLASSIFIED

    def test_auto_classified_is_pii(
        self, make_outcome: Callable[..., ClassificationOutcome]
    ) -> None:
        assert make_outcome(confidence=0.95).is_pii is True

    def test_needs_confirmation_is_not_pii_yet(
        self, make_outcome: Callable[..., ClassificationOutcome]
    ) -> None:
        """Medium confidence outcomes only count once confirmed."""
        assert make_outcome(confidence=0.65).is_pii is False

    def test_confirmed_is_pii(self, make_outcome: Callable[..., ClassificationOutcome]) -> None:
        outcome = make_outcome(confidence=0.65, status=ClassificationStatus.CONFIRMED)

        assert outcome.is_pii is True

    def test_none_type_is_never_pii(
        self, make_outcome: Callable[..., ClassificationOutcome]
    ) -> None:
        outcome = make_outcome(pii_type="none", confidence=1.0)

        assert outcome.category is None
        assert outcome.is_pii is False

    def test_is_pii_is_serialised(
        self, make_outcome: Callable[..., ClassificationOutcome]
    ) -> None:
        assert make_outcome(confidence=0.9).model_dump()["is_pii"] is True

    def test_confidence_out_of_range_is_rejected(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        with pytest.raises(ValidationError):
            ClassificationOutcome(
                field=make_field(),
                type="email",
                source=ClassificationSource.PROBABILISTIC,
                confidence=1.5,
                status=ClassificationStatus.AUTO_CLASSIFIED,
            )


class TestConfirmationRequest:
    def _request(
        self, make_field: Callable[..., FieldIdentity], status: ConfirmationStatus
    ) -> ConfirmationRequest:
        return ConfirmationRequest(
            id="req-1",
            pass_id="pass-1",
            field=make_field(),
            suggested_type="email",
            category=PIICategory.CONTACT,
            risk=RiskLevel.MEDIUM,
            confidence=0.65,
            status=status,
        )

    @pytest.mark.parametrize(
        ("status", "decision"),
        [
            (ConfirmationStatus.CONFIRMED, Decision.YES),
            (ConfirmationStatus.REJECTED, Decision.NO),
            (ConfirmationStatus.PENDING, None),
            (ConfirmationStatus.SKIPPED, None),
            (ConfirmationStatus.OVERRIDDEN, None),
        ],
    )
    def test_decision(
        self,
        make_field: Callable[..., FieldIdentity],
        status: ConfirmationStatus,
        decision: Decision | None,
    ) -> None:
        assert self._request(make_field, status).decision == decision

    def test_confirmed_outcome_has_full_confidence(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        request = self._request(make_field, ConfirmationStatus.CONFIRMED)

        outcome = request.to_outcome(ClassificationStatus.CONFIRMED)

        assert outcome.confidence == 1.0
        assert outcome.type == "email"
        assert outcome.is_pii is True

    def test_pending_outcome_keeps_confidence(
        self, make_field: Callable[..., FieldIdentity]
    ) -> None:
        request = self._request(make_field, ConfirmationStatus.PENDING)

        outcome = request.to_outcome(ClassificationStatus.NEEDS_CONFIRMATION)

        assert outcome.confidence == 0.65


class TestDiscoveredEntity:
    def test_field_carries_entity_identity(self, customers_table: DiscoveredEntity) -> None:
        field = customers_table.field("email")

        assert field.locator == "crm/customers"
        assert field.source_type is SourceType.DATABASE
        assert field.source_subtype == "sqlite"
        assert field.text_segment is False
