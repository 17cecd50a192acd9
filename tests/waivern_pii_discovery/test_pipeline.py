"""Tests for the classification pipeline."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from waivern_pii_discovery.classifier import ProbabilisticClassifier
from waivern_pii_discovery.confirmation import ConfirmationService
from waivern_pii_discovery.errors import ExtractionError
from waivern_pii_discovery.graph import ProvenanceGraphWriter
from waivern_pii_discovery.pattern_matcher import PIIPatternMatcher
from waivern_pii_discovery.pipeline import ClassificationPipeline, PipelineConfig
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.sources import SourceField
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    DiscoveredEntity,
    EntityKind,
    FieldIdentity,
    SourceType,
)

LLM_REPLIES = {
    "notes": '{"type": "phone", "confidence": 0.65, "reason": "maybe a contact number"}',
    "remarks": '{"type": "none", "confidence": 0.1, "reason": "free comment"}',
    "segment_1": '{"type": "health", "confidence": 0.85, "reason": "diagnosis text"}',
    "segment_2": '{"type": "health", "confidence": 0.6, "reason": "may describe a condition"}',
}


class FakeSource:
    """In-memory source reader."""

    def __init__(
        self,
        fields_by_entity: dict[DiscoveredEntity, list[SourceField]],
        failing: set[str] | None = None,
        listing_error: bool = False,
        unsampled: dict[str, list[str]] | None = None,
    ) -> None:
        self._fields_by_entity = fields_by_entity
        self._unsampled = unsampled or {}
        self._failing = failing or set()
        self._listing_error = listing_error

    @property
    def description(self) -> str:
        return "fake:crm"

    async def list_entities(self) -> list[DiscoveredEntity]:
        if self._listing_error:
            raise ExtractionError("connection refused")
        return list(self._fields_by_entity)

    async def sample_fields(self, entity: DiscoveredEntity, limit: int) -> list[SourceField]:
        if entity.entity_id in self._failing:
            raise ExtractionError(f"cannot read {entity.entity_id}")
        return [
            field.model_copy(update={"values": field.values[:limit]})
            for field in self._fields_by_entity[entity]
        ]

    async def read_values(
        self, entity: DiscoveredEntity, field_name: str, limit: int
    ) -> list[str]:
        if field_name in self._unsampled:
            return self._unsampled[field_name][:limit]
        for field in self._fields_by_entity[entity]:
            if field.name == field_name:
                return field.values[:limit]
        return []


def _reply_for(_system_instruction: str, user_text: str) -> str:
    for field_name, reply in LLM_REPLIES.items():
        if f'Column Name: "{field_name}"' in user_text:
            return reply
    return "I am not sure"


@pytest.fixture
def customers_fields() -> list[SourceField]:
    return [
        SourceField(name="email", values=["ravi@example.com", "priya@example.com"]),
        SourceField(name="account_number", values=["123456789012"]),
        SourceField(name="notes", values=["call after 6", "prefers email"]),
        SourceField(name="remarks", values=["good customer"]),
        SourceField(name="created_at", values=[]),
    ]


@pytest.fixture
def pipeline_factory(
    llm_service: AsyncMock,
    rule_store: LearnedRuleStore,
    confirmation_service: ConfirmationService,
    graph_writer: ProvenanceGraphWriter,
) -> Callable[..., ClassificationPipeline]:
    llm_service.classify.side_effect = _reply_for

    def _make(config: PipelineConfig | None = None) -> ClassificationPipeline:
        return ClassificationPipeline(
            pattern_matcher=PIIPatternMatcher(),
            rule_store=rule_store,
            classifier=ProbabilisticClassifier(llm_service),
            confirmation_service=confirmation_service,
            graph_writer=graph_writer,
            config=config,
        )

    return _make


@pytest.fixture
def pipeline(pipeline_factory: Callable[..., ClassificationPipeline]) -> ClassificationPipeline:
    return pipeline_factory()


class TestRun:
    async def test_routes_outcomes_by_status(
        self,
        pipeline: ClassificationPipeline,
        customers_table: DiscoveredEntity,
        customers_fields: list[SourceField],
        graph_writer: ProvenanceGraphWriter,
        confirmation_service: ConfirmationService,
    ) -> None:
        report = await pipeline.run(FakeSource({customers_table: customers_fields}))

        assert report.source == "fake:crm"
        assert report.entities_scanned == 1
        assert report.fields_scanned == 5
        assert report.auto_classified == 2
        assert report.needs_confirmation == 1
        assert report.discarded == 1
        assert report.failed_fields == []
        assert await graph_writer.entity_pii_types("crm/customers") == {
            "email",
            "bank_account",
        }
        pending = await confirmation_service.get_pending_confirmations()
        assert [(r.field.field_name, r.suggested_type) for r in pending] == [("notes", "phone")]
        assert pending[0].pass_id == report.pass_id

    async def test_pattern_matches_skip_the_classifier(
        self,
        pipeline: ClassificationPipeline,
        customers_table: DiscoveredEntity,
        llm_service: AsyncMock,
    ) -> None:
        fields = [SourceField(name="pan", values=["ABCDE1234F"])]

        report = await pipeline.run(FakeSource({customers_table: fields}))

        assert report.outcomes[0].source is ClassificationSource.PATTERN
        llm_service.classify.assert_not_awaited()

    async def test_second_pass_creates_no_duplicate_request(
        self,
        pipeline: ClassificationPipeline,
        customers_table: DiscoveredEntity,
        customers_fields: list[SourceField],
        confirmation_service: ConfirmationService,
    ) -> None:
        """Running twice over the same source leaves one PENDING request per field."""
        source = FakeSource({customers_table: customers_fields})

        first = await pipeline.run(source)
        second = await pipeline.run(source)

        pending = await confirmation_service.get_pending_confirmations()
        assert first.pass_id != second.pass_id
        assert len(pending) == 1
        assert pending[0].pass_id == first.pass_id

    async def test_listing_failure_is_reported(self, pipeline: ClassificationPipeline) -> None:
        report = await pipeline.run(FakeSource({}, listing_error=True))

        assert report.entities_failed == ["fake:crm"]
        assert report.entities_scanned == 0

    async def test_entity_failure_does_not_abort_pass(
        self,
        pipeline: ClassificationPipeline,
        customers_table: DiscoveredEntity,
        customers_fields: list[SourceField],
    ) -> None:
        broken = customers_table.model_copy(update={"entity_id": "crm/broken", "name": "broken"})
        source = FakeSource(
            {broken: customers_fields, customers_table: customers_fields},
            failing={"crm/broken"},
        )

        report = await pipeline.run(source)

        assert report.entities_failed == ["crm/broken"]
        assert report.entities_scanned == 1

    async def test_field_failure_is_reported(
        self,
        pipeline_factory: Callable[..., ClassificationPipeline],
        customers_table: DiscoveredEntity,
        llm_service: AsyncMock,
    ) -> None:
        """Unexpected errors fail the field, not the pass."""
        llm_service.classify.side_effect = RuntimeError("boom")
        fields = [
            SourceField(name="email", values=["ravi@example.com"]),
            SourceField(name="notes", values=["call after 6"]),
        ]

        report = await pipeline_factory().run(FakeSource({customers_table: fields}))

        assert report.failed_fields == ["crm/customers.notes"]
        assert report.auto_classified == 1

    async def test_bounded_concurrency(
        self,
        pipeline_factory: Callable[..., ClassificationPipeline],
        customers_table: DiscoveredEntity,
        customers_fields: list[SourceField],
    ) -> None:
        pipeline = pipeline_factory(PipelineConfig(max_concurrency=3, sample_size=1))

        report = await pipeline.run(FakeSource({customers_table: customers_fields}))

        assert pipeline.config.max_concurrency == 3
        assert report.fields_scanned == 5
        assert report.auto_classified == 2


    async def test_empty_sample_reads_values_directly(
        self,
        pipeline: ClassificationPipeline,
        customers_table: DiscoveredEntity,
        graph_writer: ProvenanceGraphWriter,
    ) -> None:
        """Sampled rows that are all empty for a column fall back to a direct read."""
        source = FakeSource(
            {customers_table: [SourceField(name="alt_contact", values=[])]},
            unsampled={"alt_contact": ["ravi@example.com"]},
        )

        report = await pipeline.run(source)

        assert report.auto_classified == 1
        assert await graph_writer.entity_pii_types("crm/customers") == {"email"}


class TestLearnedRules:
    async def test_rule_decides_before_classifier(
        self,
        pipeline: ClassificationPipeline,
        rule_store: LearnedRuleStore,
        graph_writer: ProvenanceGraphWriter,
        make_field: Callable[..., FieldIdentity],
        llm_service: AsyncMock,
    ) -> None:
        await rule_store.upsert("NOTES", is_pii=True, pii_type="address")

        outcome = await pipeline.classify_field(make_field("notes"), ["anything"], "pass-1")

        assert outcome is not None
        assert outcome.source is ClassificationSource.LEARNED_RULE
        assert outcome.type == "address"
        assert outcome.confidence == 1.0
        assert outcome.status is ClassificationStatus.AUTO_CLASSIFIED
        llm_service.classify.assert_not_awaited()
        classification = await graph_writer.field_classification(make_field("notes"))
        assert classification is not None
        assert classification["source"] == "learned_rule"

    async def test_not_pii_rule_overrides_patterns(
        self,
        pipeline: ClassificationPipeline,
        rule_store: LearnedRuleStore,
        graph_writer: ProvenanceGraphWriter,
        make_field: Callable[..., FieldIdentity],
    ) -> None:
        """A human 'not PII' judgement beats the email pattern."""
        await rule_store.upsert("email", is_pii=False, pii_type="email")

        outcome = await pipeline.classify_field(
            make_field("email"), ["support@example.com"], "pass-1"
        )

        assert outcome is not None
        assert outcome.type == "none"
        assert outcome.is_pii is False
        assert await graph_writer.field_classification(make_field("email")) is None

    async def test_not_pii_rule_clears_stale_classification(
        self,
        pipeline: ClassificationPipeline,
        rule_store: LearnedRuleStore,
        graph_writer: ProvenanceGraphWriter,
        make_field: Callable[..., FieldIdentity],
        make_outcome: Callable[..., ClassificationOutcome],
    ) -> None:
        await graph_writer.upsert_classification(make_outcome(field_name="notes", confidence=0.9))
        await rule_store.upsert("notes", is_pii=False, pii_type="email")

        await pipeline.classify_field(make_field("notes"), ["call after 6"], "pass-1")

        assert await graph_writer.field_classification(make_field("notes")) is None


class TestTextSegments:
    @pytest.fixture
    def notes_file(self) -> DiscoveredEntity:
        return DiscoveredEntity(
            entity_id="/share/notes.txt",
            name="notes.txt",
            kind=EntityKind.FILE,
            source_type=SourceType.FILE,
            source_subtype="local",
            container="/share",
        )

    async def test_segment_pattern_match_counts_occurrences(
        self,
        pipeline: ClassificationPipeline,
        notes_file: DiscoveredEntity,
        rule_store: LearnedRuleStore,
    ) -> None:
        """A name-keyed column rule does not reach segments with that label."""
        await rule_store.upsert("segment_1", is_pii=False, pii_type="none")
        fields = [
            SourceField(
                name="segment_1",
                values=["Write to ravi@example.com or priya@example.com."],
                text_segment=True,
            )
        ]

        report = await pipeline.run(FakeSource({notes_file: fields}))

        outcome = report.outcomes[0]
        assert outcome.type == "email"
        assert outcome.match_count == 2
        assert outcome.field.text_segment is True

    async def test_segment_without_pattern_goes_to_classifier(
        self,
        pipeline: ClassificationPipeline,
        notes_file: DiscoveredEntity,
        graph_writer: ProvenanceGraphWriter,
    ) -> None:
        fields = [
            SourceField(
                name="segment_1",
                values=["Patient reported chest pain and was referred to cardiology."],
                text_segment=True,
            )
        ]

        report = await pipeline.run(FakeSource({notes_file: fields}))

        assert report.auto_classified == 1
        assert report.outcomes[0].type == "health"
        assert await graph_writer.entity_pii_types("/share/notes.txt") == {"health"}

    async def test_segment_rule_is_bound_to_its_document(
        self,
        pipeline: ClassificationPipeline,
        notes_file: DiscoveredEntity,
        rule_store: LearnedRuleStore,
    ) -> None:
        other_file = notes_file.model_copy(
            update={"entity_id": "/share/other.txt", "name": "other.txt"}
        )
        await rule_store.upsert("/share/notes.txt#segment_1", is_pii=False, pii_type="none")
        segment = SourceField(
            name="segment_1", values=["Write to ravi@example.com."], text_segment=True
        )

        report = await pipeline.run(
            FakeSource({notes_file: [segment], other_file: [segment]})
        )

        by_locator = {o.field.locator: o for o in report.outcomes}
        assert by_locator["/share/notes.txt"].source is ClassificationSource.LEARNED_RULE
        assert by_locator["/share/notes.txt"].type == "none"
        assert by_locator["/share/other.txt"].type == "email"

    async def test_rejected_segment_is_not_asked_again(
        self,
        pipeline: ClassificationPipeline,
        notes_file: DiscoveredEntity,
        confirmation_service: ConfirmationService,
        rule_store: LearnedRuleStore,
    ) -> None:
        source = FakeSource(
            {
                notes_file: [
                    SourceField(
                        name="segment_2",
                        values=["Mentioned feeling unwell during the last visit."],
                        text_segment=True,
                    )
                ]
            }
        )
        first = await pipeline.run(source)
        [request] = await confirmation_service.get_pending_confirmations()
        await confirmation_service.resolve(request.id, "NO", "dpo")

        second = await pipeline.run(source)

        assert first.needs_confirmation == 1
        assert second.needs_confirmation == 0
        assert second.outcomes[0].source is ClassificationSource.LEARNED_RULE
        assert await confirmation_service.get_pending_confirmations() == []
        assert await rule_store.lookup("segment_2") is None
        assert await rule_store.lookup("/share/notes.txt#segment_2") is not None

    async def test_blank_segment_produces_no_outcome(
        self, pipeline: ClassificationPipeline, make_field: Callable[..., FieldIdentity]
    ) -> None:
        field = make_field("segment_1", text_segment=True)

        assert await pipeline.classify_field(field, ["   "], "pass-1") is None
