"""Outward operations of the PII discovery core.

``PIIDiscoveryService`` is the single entry point used by the CLI (and by any
other caller). It wires the components together through constructor
injection; ``from_configuration`` builds the default component graph.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Self

from waivern_pii_discovery.autolink import AutoLinkResolver
from waivern_pii_discovery.classifier import ProbabilisticClassifier
from waivern_pii_discovery.configuration import PIIDiscoveryConfiguration
from waivern_pii_discovery.confirmation import ConfirmationService
from waivern_pii_discovery.database import SQLiteDatabase
from waivern_pii_discovery.graph import (
    AssetLink,
    GraphStore,
    InMemoryGraphStore,
    JsonFileGraphStore,
    ProvenanceGraphWriter,
)
from waivern_pii_discovery.llm import ClassificationServiceFactory, LLMServiceConfiguration
from waivern_pii_discovery.pattern_matcher import PIIPatternMatcher
from waivern_pii_discovery.pipeline import ClassificationPipeline, PipelineConfig
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.sources import LocalFileSource, SourceReader, TextExtractor
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    AutoLinkReport,
    ConfirmationRequest,
    DataAsset,
    Decision,
    DiscoveredEntity,
    LearnedRule,
    ScanReport,
)

logger = logging.getLogger(__name__)


class PIIDiscoveryService:
    """Facade over scanning, confirmation, graph and auto-link operations."""

    def __init__(  # noqa: PLR0913
        self,
        database: SQLiteDatabase,
        graph_store: GraphStore,
        pipeline: ClassificationPipeline,
        confirmation_service: ConfirmationService,
        graph_writer: ProvenanceGraphWriter,
        rule_store: LearnedRuleStore,
        auto_link_resolver: AutoLinkResolver,
    ) -> None:
        self._database = database
        self._graph_store = graph_store
        self._pipeline = pipeline
        self._confirmation_service = confirmation_service
        self._graph_writer = graph_writer
        self._rule_store = rule_store
        self._auto_link_resolver = auto_link_resolver

    @classmethod
    def from_configuration(
        cls,
        config: PIIDiscoveryConfiguration,
        llm_config: LLMServiceConfiguration | None = None,
    ) -> Self:
        """Build the service and its collaborators from configuration.

        Args:
            config: Storage, sampling and concurrency settings
            llm_config: Explicit LLM settings; read from the environment if None

        Returns:
            Ready-to-use service; call ``close`` when done

        Raises:
            StoreError: If the relational store cannot be opened

        """
        config.ensure_directories()

        database = SQLiteDatabase(config.database_path)
        try:
            return cls._assemble(database, config, llm_config)
        except Exception:
            database.close()
            raise

    @classmethod
    def _assemble(
        cls,
        database: SQLiteDatabase,
        config: PIIDiscoveryConfiguration,
        llm_config: LLMServiceConfiguration | None,
    ) -> Self:
        graph_store: GraphStore = (
            InMemoryGraphStore()
            if config.uses_in_memory_graph
            else JsonFileGraphStore(Path(config.graph_path))
        )
        graph_writer = ProvenanceGraphWriter(graph_store)
        rule_store = LearnedRuleStore(database)
        confirmation_service = ConfirmationService(database, graph_writer)

        llm_service = (
            ClassificationServiceFactory(llm_config).create() if config.llm_enabled else None
        )
        if llm_service is None:
            logger.info("Probabilistic stage will use the keyword fallback classifier")

        pipeline = ClassificationPipeline(
            pattern_matcher=PIIPatternMatcher(),
            rule_store=rule_store,
            classifier=ProbabilisticClassifier(llm_service),
            confirmation_service=confirmation_service,
            graph_writer=graph_writer,
            config=PipelineConfig(
                sample_size=config.sample_size,
                max_concurrency=config.max_concurrency,
            ),
        )

        return cls(
            database=database,
            graph_store=graph_store,
            pipeline=pipeline,
            confirmation_service=confirmation_service,
            graph_writer=graph_writer,
            rule_store=rule_store,
            auto_link_resolver=AutoLinkResolver(graph_writer),
        )

    def file_source(
        self,
        root: Path,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
        max_files: int = 1000,
    ) -> LocalFileSource:
        """Create a local file source whose segment limits match the pipeline."""
        pipeline_config = self._pipeline.config
        return LocalFileSource(
            root,
            extractor=TextExtractor(
                max_segment_chars=pipeline_config.max_segment_chars,
                max_segments=pipeline_config.max_segments,
            ),
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
            max_files=max_files,
        )

    # Scanning

    async def run_classification_pass(self, source: SourceReader) -> ScanReport:
        """Classify every field of every entity held by a source."""
        return await self._pipeline.run(source)

    # Confirmation workflow

    async def get_pending_confirmations(self) -> list[ConfirmationRequest]:
        return await self._confirmation_service.get_pending_confirmations()

    async def get_resolved_confirmations(self) -> list[ConfirmationRequest]:
        return await self._confirmation_service.get_resolved_confirmations()

    async def get_decision_chain(self, request_id: str) -> list[ConfirmationRequest]:
        return await self._confirmation_service.get_decision_chain(request_id)

    async def resolve(
        self, request_id: str, decision: Decision | str, actor: str = "system"
    ) -> ConfirmationRequest:
        return await self._confirmation_service.resolve(request_id, decision, actor)

    async def override(
        self, request_id: str, decision: Decision | str, reason: str, actor: str
    ) -> ConfirmationRequest:
        return await self._confirmation_service.override(request_id, decision, reason, actor)

    async def list_learned_rules(self) -> list[LearnedRule]:
        """Return every learned rule, column names and per-document segment keys."""
        return await self._rule_store.list_rules()

    # Governance graph

    async def run_auto_link_pass(self) -> AutoLinkReport:
        """Propose provisional asset links for unmapped entities."""
        return await self._auto_link_resolver.run()

    async def link_entity_to_asset(self, entity_id: str, asset_id: str) -> AssetLink:
        """Write a confirmed asset link, superseding any provisional one."""
        return await self._graph_writer.link_entity_to_asset(entity_id, asset_id)

    async def register_data_asset(self, asset: DataAsset) -> None:
        await self._graph_writer.upsert_data_asset(asset)

    async def list_unmapped_discoveries(self) -> list[DiscoveredEntity]:
        """Return discovered entities with no asset link of either kind."""
        return await self._graph_writer.list_unmapped_entities()

    async def list_asset_link_proposals(self) -> list[AutoLinkProposal]:
        """Return provisional asset links that still await confirmation."""
        return await self._graph_writer.list_provisional_links()

    async def close(self) -> None:
        """Release the relational and graph stores."""
        await self._graph_store.close()
        self._database.close()
