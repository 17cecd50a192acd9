"""Classification pipeline.

Every field of every discovered entity runs through three short-circuit
gates in order:

1. Learned rule store (segments are keyed per document)
2. Deterministic pattern matcher over the sampled values
3. Probabilistic classifier, one sampled value at a time

Fields are independent, so they run through a bounded worker pool. Each
field's persistence is a single transaction: an auto-classified outcome is
one graph transaction, a ``needs_confirmation`` outcome is one request row.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from waivern_pii_discovery.classifier import ProbabilisticClassifier
from waivern_pii_discovery.confirmation import ConfirmationService
from waivern_pii_discovery.errors import SourceError
from waivern_pii_discovery.graph import ProvenanceGraphWriter
from waivern_pii_discovery.pattern_matcher import PIIPatternMatcher
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.sources import SourceField, SourceReader
from waivern_pii_discovery.taxonomy import NO_PII_TYPE
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    DiscoveredEntity,
    FieldIdentity,
    ScanReport,
)

logger = logging.getLogger(__name__)


class PipelineConfig(BaseModel):
    """Sampling and concurrency limits for a classification pass."""

    model_config = ConfigDict(frozen=True)

    sample_size: int = Field(default=10, ge=1)
    max_concurrency: int = Field(default=1, ge=1)
    max_segment_chars: int = Field(default=3000, ge=1)
    max_segments: int = Field(default=20, ge=1)


@dataclass
class _PassContext:
    """Internal state for a single classification pass."""

    report: ScanReport
    semaphore: asyncio.Semaphore


class ClassificationPipeline:
    """Runs learned rules, patterns and the probabilistic classifier over a source."""

    def __init__(  # noqa: PLR0913
        self,
        pattern_matcher: PIIPatternMatcher,
        rule_store: LearnedRuleStore,
        classifier: ProbabilisticClassifier,
        confirmation_service: ConfirmationService,
        graph_writer: ProvenanceGraphWriter,
        config: PipelineConfig | None = None,
    ) -> None:
        """Initialise the pipeline with its collaborators.

        Args:
            pattern_matcher: Deterministic classifier
            rule_store: Learned rule store consulted first
            classifier: Probabilistic classifier consulted last
            confirmation_service: Workflow receiving needs_confirmation outcomes
            graph_writer: Writer receiving auto-classified outcomes
            config: Sampling and concurrency limits

        """
        self._pattern_matcher = pattern_matcher
        self._rule_store = rule_store
        self._classifier = classifier
        self._confirmation_service = confirmation_service
        self._graph_writer = graph_writer
        self._config = config or PipelineConfig()

    @property
    def config(self) -> PipelineConfig:
        """Sampling and concurrency limits in use."""
        return self._config

    async def run(self, source: SourceReader) -> ScanReport:
        """Run one classification pass over every entity of a source.

        Entity and field failures are logged and reported; they never abort
        the pass.

        Args:
            source: Source reader to scan

        Returns:
            Counts and outcomes of the pass

        """
        ctx = _PassContext(
            report=ScanReport(pass_id=uuid.uuid4().hex, source=source.description),
            semaphore=asyncio.Semaphore(self._config.max_concurrency),
        )
        logger.info(f"Starting classification pass {ctx.report.pass_id} on {source.description}")

        try:
            entities = await source.list_entities()
        except SourceError as e:
            logger.error(f"Failed to list entities in {source.description}: {e}")
            ctx.report.entities_failed.append(source.description)
            return ctx.report

        for entity in entities:
            await self._scan_entity(source, entity, ctx)

        report = ctx.report
        logger.info(
            f"Classification pass {report.pass_id} finished: "
            f"{report.entities_scanned} entities, {report.fields_scanned} fields, "
            f"{report.auto_classified} auto-classified, "
            f"{report.needs_confirmation} awaiting confirmation, "
            f"{report.discarded} discarded, {len(report.failed_fields)} failed"
        )
        return report

    async def classify_field(
        self, field_identity: FieldIdentity, values: list[str], pass_id: str
    ) -> ClassificationOutcome | None:
        """Classify one field and persist the outcome.

        Args:
            field_identity: Identity of the field
            values: Sampled values (a single segment text for free-text fields)
            pass_id: Identifier of the current pass

        Returns:
            The outcome that stopped classification, or None when no stage
            produced one

        """
        outcome = await self._decide(field_identity, values)
        if outcome is None:
            return None

        if outcome.type == NO_PII_TYPE:
            logger.debug(f"{field_identity} is not PII ({outcome.source})")
            if outcome.source is ClassificationSource.LEARNED_RULE:
                await self._graph_writer.remove_classification(field_identity)
        elif outcome.status is ClassificationStatus.AUTO_CLASSIFIED:
            await self._graph_writer.upsert_classification(outcome)
        elif outcome.status is ClassificationStatus.NEEDS_CONFIRMATION:
            await self._confirmation_service.create_request(outcome, pass_id)
        else:
            logger.debug(
                f"Discarded {outcome.type} for {field_identity} "
                f"(confidence {outcome.confidence:.2f})"
            )
        return outcome

    async def _scan_entity(
        self, source: SourceReader, entity: DiscoveredEntity, ctx: _PassContext
    ) -> None:
        try:
            fields = await source.sample_fields(entity, self._config.sample_size)
        except SourceError as e:
            logger.warning(f"Skipping {entity.entity_id}: {e}")
            ctx.report.entities_failed.append(entity.entity_id)
            return

        await self._graph_writer.upsert_discovered_entity(entity)
        ctx.report.entities_scanned += 1

        identities = [entity.field(f.name, text_segment=f.text_segment) for f in fields]
        tasks = [
            self._run_field(source, entity, identity, source_field, ctx)
            for identity, source_field in zip(identities, fields, strict=True)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for identity, result in zip(identities, results, strict=True):
            ctx.report.fields_scanned += 1
            if isinstance(result, BaseException):
                logger.warning(f"Failed to classify {identity}: {result}")
                ctx.report.failed_fields.append(str(identity))
            elif result is not None:
                self._record(ctx.report, result)

    async def _run_field(
        self,
        source: SourceReader,
        entity: DiscoveredEntity,
        identity: FieldIdentity,
        source_field: SourceField,
        ctx: _PassContext,
    ) -> ClassificationOutcome | None:
        async with ctx.semaphore:
            values = source_field.values
            if not values and not identity.text_segment:
                # Sampled rows can all be empty for a sparse column.
                values = await source.read_values(
                    entity, identity.field_name, self._config.sample_size
                )
            return await self.classify_field(identity, values, ctx.report.pass_id)

    async def _decide(
        self, identity: FieldIdentity, values: list[str]
    ) -> ClassificationOutcome | None:
        rule = await self._rule_store.lookup(identity.rule_key)
        if rule is not None:
            return ClassificationOutcome.build(
                field=identity,
                pii_type=rule.pii_type if rule.is_pii else NO_PII_TYPE,
                source=ClassificationSource.LEARNED_RULE,
                confidence=1.0,
                status=ClassificationStatus.AUTO_CLASSIFIED,
                reason=f"Learned rule for '{rule.field_name}'",
            )

        if identity.text_segment:
            return await self._decide_text_segment(identity, values)

        for value in values:
            match = self._pattern_matcher.detect(value, identity.field_name)
            if match is not None:
                return match.to_outcome(identity)

        if not values:
            return None
        # Every probabilistic status stops sampling, so the first value decides.
        return await self._classifier.classify_field(identity, values[0])

    async def _decide_text_segment(
        self, identity: FieldIdentity, values: list[str]
    ) -> ClassificationOutcome | None:
        text = "\n\n".join(values)
        if not text.strip():
            return None

        match = self._pattern_matcher.detect_in_text(text, identity.field_name)
        if match is not None:
            return match.to_outcome(identity)

        return await self._classifier.classify_field(
            identity, text[: self._config.max_segment_chars]
        )

    @staticmethod
    def _record(report: ScanReport, outcome: ClassificationOutcome) -> None:
        report.outcomes.append(outcome)
        if outcome.type == NO_PII_TYPE or outcome.status is ClassificationStatus.DISCARDED:
            report.discarded += 1
        elif outcome.status is ClassificationStatus.AUTO_CLASSIFIED:
            report.auto_classified += 1
        elif outcome.status is ClassificationStatus.NEEDS_CONFIRMATION:
            report.needs_confirmation += 1
