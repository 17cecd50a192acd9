"""Shared fixtures for waivern-pii-discovery tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock

import pytest

from waivern_pii_discovery.confirmation import ConfirmationService
from waivern_pii_discovery.database import SQLiteDatabase
from waivern_pii_discovery.graph import InMemoryGraphStore, ProvenanceGraphWriter
from waivern_pii_discovery.llm import TextClassificationService
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.types import (
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    DiscoveredEntity,
    EntityKind,
    FieldIdentity,
    SourceType,
    status_for_confidence,
)

type FieldFactory = Callable[..., FieldIdentity]
type OutcomeFactory = Callable[..., ClassificationOutcome]

# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def database() -> Iterator[SQLiteDatabase]:
    """Fresh in-memory relational store."""
    db = SQLiteDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    """Fresh in-memory graph store."""
    return InMemoryGraphStore()


@pytest.fixture
def graph_writer(graph_store: InMemoryGraphStore) -> ProvenanceGraphWriter:
    return ProvenanceGraphWriter(graph_store)


@pytest.fixture
def rule_store(database: SQLiteDatabase) -> LearnedRuleStore:
    return LearnedRuleStore(database)


@pytest.fixture
def confirmation_service(
    database: SQLiteDatabase, graph_writer: ProvenanceGraphWriter
) -> ConfirmationService:
    return ConfirmationService(database, graph_writer)


# =============================================================================
# Domain objects
# =============================================================================


@pytest.fixture
def customers_table() -> DiscoveredEntity:
    """A table entity in a SQLite customers database."""
    return DiscoveredEntity(
        entity_id="crm/customers",
        name="customers",
        kind=EntityKind.TABLE,
        source_type=SourceType.DATABASE,
        source_subtype="sqlite",
        container="crm",
    )


@pytest.fixture
def make_field() -> FieldFactory:
    """Factory for field identities in the crm/customers table by default."""

    def _make(
        field_name: str = "email",
        locator: str = "crm/customers",
        source_type: SourceType = SourceType.DATABASE,
        source_subtype: str = "sqlite",
        text_segment: bool = False,
    ) -> FieldIdentity:
        return FieldIdentity(
            source_type=source_type,
            source_subtype=source_subtype,
            locator=locator,
            field_name=field_name,
            text_segment=text_segment,
        )

    return _make


@pytest.fixture
def make_outcome(make_field: FieldFactory) -> OutcomeFactory:
    """Factory for probabilistic outcomes whose status follows the confidence."""

    def _make(
        field_name: str = "email",
        pii_type: str = "email",
        confidence: float = 0.65,
        status: ClassificationStatus | None = None,
        locator: str = "crm/customers",
        source: ClassificationSource = ClassificationSource.PROBABILISTIC,
    ) -> ClassificationOutcome:
        return ClassificationOutcome.build(
            field=make_field(field_name, locator=locator),
            pii_type=pii_type,
            source=source,
            confidence=confidence,
            status=status or status_for_confidence(confidence),
            reason="test outcome",
        )

    return _make


# =============================================================================
# LLM capability
# =============================================================================


@pytest.fixture
def llm_service() -> AsyncMock:
    """Text classification service whose replies are set per test."""
    service = AsyncMock(spec=TextClassificationService)
    service.model_name = "test-model"
    return service
