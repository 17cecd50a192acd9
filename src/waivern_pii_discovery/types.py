"""Core data model for PII discovery.

Value objects shared by the pattern matcher, the probabilistic classifier,
the classification pipeline, the confirmation workflow and the provenance
graph writer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Final, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field

from waivern_pii_discovery.taxonomy import (
    NO_PII_TYPE,
    PIICategory,
    RiskLevel,
    calculate_risk,
    category_for_type,
)

AUTO_CLASSIFY_THRESHOLD: Final[float] = 0.80
CONFIRMATION_THRESHOLD: Final[float] = 0.50


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class SourceType(StrEnum):
    """Kind of data source a field was discovered in."""

    DATABASE = "database"
    DOCUMENT_STORE = "document_store"
    FILE = "file"


class EntityKind(StrEnum):
    """Graph label of a discovered storage entity."""

    TABLE = "Table"
    FILE = "File"


class ClassificationSource(StrEnum):
    """Which pipeline stage produced a decision."""

    PATTERN = "pattern"
    LEARNED_RULE = "learned_rule"
    PROBABILISTIC = "probabilistic"


class ClassificationStatus(StrEnum):
    """Lifecycle status of a classification outcome."""

    AUTO_CLASSIFIED = "auto_classified"
    NEEDS_CONFIRMATION = "needs_confirmation"
    DISCARDED = "discarded"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    OVERRIDDEN = "overridden"


class ConfirmationStatus(StrEnum):
    """Status of a durable confirmation request row."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"
    OVERRIDDEN = "OVERRIDDEN"


class Decision(StrEnum):
    """Human decision on a confirmation request."""

    YES = "YES"
    NO = "NO"
    NOT_SURE = "NOT_SURE"


def status_for_confidence(confidence: float) -> ClassificationStatus:
    """Map a probabilistic confidence onto a classification status.

    | confidence        | status             |
    |-------------------|--------------------|
    | >= 0.80           | auto_classified    |
    | 0.50 <= c < 0.80  | needs_confirmation |
    | < 0.50            | discarded          |
    """
    if confidence >= AUTO_CLASSIFY_THRESHOLD:
        return ClassificationStatus.AUTO_CLASSIFIED
    if confidence >= CONFIRMATION_THRESHOLD:
        return ClassificationStatus.NEEDS_CONFIRMATION
    return ClassificationStatus.DISCARDED


class FieldIdentity(BaseModel):
    """Natural key of a classified field.

    ``locator`` is the id of the discovered entity holding the field (a
    ``database/table`` pair, a collection, or a file path). ``field_name`` is
    the column, document key, spreadsheet header or text segment label.
    """

    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    source_subtype: str = Field(min_length=1)
    locator: str = Field(min_length=1)
    field_name: str = Field(min_length=1)
    text_segment: bool = False

    @property
    def rule_key(self) -> str:
        """Key used for learned rule lookups.

        Column-like fields share rules by name across sources. Text segment
        labels repeat in every document, so a segment rule is bound to its
        document as ``locator#label``.
        """
        if self.text_segment:
            return f"{self.locator}#{self.field_name}".lower()
        return self.field_name.lower()

    @property
    def entity_kind(self) -> EntityKind:
        """Graph label of the entity holding this field."""
        return EntityKind.FILE if self.source_type is SourceType.FILE else EntityKind.TABLE

    def __str__(self) -> str:
        """Return a compact human-readable identity."""
        return f"{self.locator}.{self.field_name}"


class ClassificationOutcome(BaseModel):
    """Result of classifying one field in one pipeline pass."""

    model_config = ConfigDict(frozen=True)

    field: FieldIdentity
    type: str
    category: PIICategory | None = None
    risk: RiskLevel | None = None
    source: ClassificationSource
    confidence: float = Field(ge=0.0, le=1.0)
    status: ClassificationStatus
    reason: str = ""
    match_count: int | None = None

    @classmethod
    def build(  # noqa: PLR0913
        cls,
        field: FieldIdentity,
        pii_type: str,
        source: ClassificationSource,
        confidence: float,
        status: ClassificationStatus,
        reason: str,
        match_count: int | None = None,
    ) -> Self:
        """Create an outcome, deriving category and risk from the type."""
        category = category_for_type(pii_type)
        return cls(
            field=field,
            type=pii_type,
            category=category,
            risk=calculate_risk(category) if category else None,
            source=source,
            confidence=confidence,
            status=status,
            reason=reason,
            match_count=match_count,
        )

    @computed_field
    @property
    def is_pii(self) -> bool:
        """Whether this outcome counts as PII.

        A ``needs_confirmation`` outcome is not PII until a reviewer confirms it.
        """
        return self.type != NO_PII_TYPE and self.status in (
            ClassificationStatus.AUTO_CLASSIFIED,
            ClassificationStatus.CONFIRMED,
        )


class ConfirmationRequest(BaseModel):
    """Durable review request for a ``needs_confirmation`` outcome.

    Rows form an append-only decision chain through ``previous_decision_id``.
    """

    id: str
    pass_id: str
    field: FieldIdentity
    suggested_type: str
    category: PIICategory | None = None
    risk: RiskLevel | None = None
    source: ClassificationSource = ClassificationSource.PROBABILISTIC
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = ""
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    override_reason: str | None = None
    overridden_by: str | None = None
    previous_decision_id: str | None = None

    @property
    def decision(self) -> Decision | None:
        """The decision this row currently records, if resolved."""
        if self.status is ConfirmationStatus.CONFIRMED:
            return Decision.YES
        if self.status is ConfirmationStatus.REJECTED:
            return Decision.NO
        return None

    def to_outcome(self, status: ClassificationStatus) -> ClassificationOutcome:
        """Rebuild the classification outcome this request carries."""
        return ClassificationOutcome(
            field=self.field,
            type=self.suggested_type,
            category=self.category,
            risk=self.risk,
            source=self.source,
            confidence=(
                1.0
                if status in (ClassificationStatus.CONFIRMED, ClassificationStatus.REJECTED)
                else self.confidence
            ),
            status=status,
            reason=self.reason,
        )


class LearnedRule(BaseModel):
    """User-curated classification keyed by ``FieldIdentity.rule_key``.

    ``field_name`` holds that key: a lowercased column name, or
    ``locator#label`` for a text segment.
    """

    model_config = ConfigDict(frozen=True)

    field_name: str
    is_pii: bool
    pii_type: str = NO_PII_TYPE
    updated_at: datetime = Field(default_factory=utc_now)


class DiscoveredEntity(BaseModel):
    """A raw Table or File found by scanning."""

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    kind: EntityKind
    source_type: SourceType
    source_subtype: str
    container: str

    def field(self, field_name: str, text_segment: bool = False) -> FieldIdentity:
        """Build the identity of a field held by this entity."""
        return FieldIdentity(
            source_type=self.source_type,
            source_subtype=self.source_subtype,
            locator=self.entity_id,
            field_name=field_name,
            text_segment=text_segment,
        )


class DataAsset(BaseModel):
    """Governed grouping of personal data declared by a compliance officer."""

    model_config = ConfigDict(frozen=True)

    asset_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    personal_data_categories: tuple[str, ...] = ()


AutoLinkConfidence = Literal["High", "Medium"]
AutoLinkMethod = Literal["PIITypeMatch", "NameMatch"]


class AutoLinkProposal(BaseModel):
    """Provisional link suggested between a discovered entity and an asset."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    entity_name: str
    asset_id: str
    asset_name: str
    confidence: AutoLinkConfidence
    method: AutoLinkMethod


class AutoLinkReport(BaseModel):
    """Summary of one auto-link pass."""

    proposed: list[AutoLinkProposal] = Field(default_factory=list)
    flagged_for_review: list[str] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)


class ScanReport(BaseModel):
    """Partial-success summary of one classification pass."""

    pass_id: str
    source: str
    entities_scanned: int = 0
    entities_failed: list[str] = Field(default_factory=list)
    fields_scanned: int = 0
    auto_classified: int = 0
    needs_confirmation: int = 0
    discarded: int = 0
    failed_fields: list[str] = Field(default_factory=list)
    outcomes: list[ClassificationOutcome] = Field(default_factory=list)
