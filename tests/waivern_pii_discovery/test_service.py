"""End-to-end tests for the discovery service facade."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest
from langchain_core.messages import AIMessage

from waivern_pii_discovery import PIIDiscoveryConfiguration, PIIDiscoveryService
from waivern_pii_discovery.database import SQLiteDatabase
from waivern_pii_discovery.errors import GraphStoreError
from waivern_pii_discovery.graph import EdgeType
from waivern_pii_discovery.llm import LLMServiceConfiguration
from waivern_pii_discovery.sources import SQLiteSource
from waivern_pii_discovery.types import ConfirmationStatus, DataAsset, Decision


@pytest.fixture
def crm_database(tmp_path: Path) -> Path:
    path = tmp_path / "crm.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE customers (email TEXT, notes TEXT, order_total TEXT);
        INSERT INTO customers VALUES ('ravi@example.com', 'ring after six', '120.50');
        CREATE TABLE audit_log (event TEXT);
        INSERT INTO audit_log VALUES ('login');
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def config(tmp_path: Path) -> PIIDiscoveryConfiguration:
    return PIIDiscoveryConfiguration(
        database_path=str(tmp_path / "state" / "pii.db"),
        graph_path=str(tmp_path / "state" / "graph.json"),
    )


@pytest.fixture
def chat_model() -> Iterator[Mock]:
    """Anthropic chat model answering 'phone, 0.6' for notes and 'none' otherwise."""

    async def _reply(messages: list[object]) -> AIMessage:
        user_text = str(getattr(messages[1], "content", ""))
        if 'Column Name: "notes"' in user_text:
            return AIMessage(content='{"type": "phone", "confidence": 0.6, "reason": "maybe"}')
        return AIMessage(content='{"type": "none", "confidence": 0.05, "reason": "not PII"}')

    with patch("waivern_pii_discovery.llm.anthropic.ChatAnthropic") as mock_chat:
        model = Mock()
        model.ainvoke = AsyncMock(side_effect=_reply)
        mock_chat.return_value = model
        yield model


def _service(config: PIIDiscoveryConfiguration) -> PIIDiscoveryService:
    return PIIDiscoveryService.from_configuration(
        config, LLMServiceConfiguration(provider="anthropic", api_key="test-key")
    )


class TestDiscoveryWorkflow:
    async def test_scan_confirm_and_reopen(
        self,
        config: PIIDiscoveryConfiguration,
        crm_database: Path,
        chat_model: Mock,
    ) -> None:
        """State written by one service instance is visible to the next one."""
        service = _service(config)
        try:
            report = await service.run_classification_pass(SQLiteSource(crm_database))
            pending = await service.get_pending_confirmations()
            resolved = await service.resolve(pending[0].id, Decision.YES, "dpo@example.com")
        finally:
            await service.close()

        assert report.entities_scanned == 2
        assert report.auto_classified == 1
        assert report.needs_confirmation == 1
        assert report.discarded == 2
        assert resolved.status is ConfirmationStatus.CONFIRMED

        reopened = PIIDiscoveryService.from_configuration(
            config.model_copy(update={"llm_enabled": False})
        )
        try:
            assert await reopened.get_pending_confirmations() == []
            history = await reopened.get_resolved_confirmations()
            rules = await reopened.list_learned_rules()
            unmapped = await reopened.list_unmapped_discoveries()
        finally:
            await reopened.close()

        assert [request.id for request in history] == [resolved.id]
        assert [(rule.field_name, rule.pii_type) for rule in rules] == [("notes", "phone")]
        assert {entity.entity_id for entity in unmapped} == {"crm/customers", "crm/audit_log"}

    async def test_override_through_service(
        self,
        config: PIIDiscoveryConfiguration,
        crm_database: Path,
        chat_model: Mock,
    ) -> None:
        service = _service(config)
        try:
            await service.run_classification_pass(SQLiteSource(crm_database))
            request = (await service.get_pending_confirmations())[0]
            await service.resolve(request.id, "NO")
            replacement = await service.override(request.id, "YES", "it is a phone", "dpo")
            chain = await service.get_decision_chain(replacement.id)
        finally:
            await service.close()

        assert [r.status for r in chain] == [
            ConfirmationStatus.CONFIRMED,
            ConfirmationStatus.OVERRIDDEN,
        ]

    async def test_governance_linking(
        self,
        config: PIIDiscoveryConfiguration,
        crm_database: Path,
        chat_model: Mock,
    ) -> None:
        service = _service(config)
        try:
            await service.run_classification_pass(SQLiteSource(crm_database))
            await service.register_data_asset(
                DataAsset(
                    asset_id="customer-data",
                    name="Customer Data",
                    personal_data_categories=("email", "address"),
                )
            )
            await service.register_data_asset(DataAsset(asset_id="audit", name="Audit"))
            report = await service.run_auto_link_pass()
            proposed = await service.list_asset_link_proposals()
            link = await service.link_entity_to_asset("crm/customers", "audit")
            still_proposed = await service.list_asset_link_proposals()
            unmapped = await service.list_unmapped_discoveries()
        finally:
            await service.close()

        assert {p.entity_id: p.method for p in report.proposed} == {
            "crm/customers": "PIITypeMatch",
            "crm/audit_log": "NameMatch",
        }
        assert sorted(proposed, key=lambda p: p.entity_id) == sorted(
            report.proposed, key=lambda p: p.entity_id
        )
        assert [p.entity_id for p in still_proposed] == ["crm/audit_log"]
        assert link.edge_type is EdgeType.PART_OF_DATA_ASSET
        assert unmapped == []


class TestFromConfiguration:
    async def test_in_memory_stores_without_llm(self, crm_database: Path) -> None:
        """With the LLM disabled the keyword fallback decides."""
        service = PIIDiscoveryService.from_configuration(
            PIIDiscoveryConfiguration(
                database_path=":memory:", graph_path="memory", llm_enabled=False
            )
        )
        try:
            report = await service.run_classification_pass(SQLiteSource(crm_database))
        finally:
            await service.close()

        assert report.auto_classified == 1
        assert report.needs_confirmation == 0

    def test_database_closed_when_assembly_fails(
        self, config: PIIDiscoveryConfiguration
    ) -> None:
        with (
            patch(
                "waivern_pii_discovery.service.JsonFileGraphStore",
                side_effect=GraphStoreError("Failed to load provenance graph"),
            ),
            patch.object(
                SQLiteDatabase, "close", autospec=True, side_effect=SQLiteDatabase.close
            ) as close,
            pytest.raises(GraphStoreError, match="provenance graph"),
        ):
            PIIDiscoveryService.from_configuration(config)

        close.assert_called_once()

    def test_file_source_uses_pipeline_limits(self, tmp_path: Path) -> None:
        service = PIIDiscoveryService.from_configuration(
            PIIDiscoveryConfiguration(
                database_path=":memory:", graph_path="memory", llm_enabled=False
            )
        )
        (tmp_path / "a.txt").write_text("hello")

        source = service.file_source(tmp_path, include_patterns=["*.txt"], max_files=5)

        assert [path.name for path in source.collect_files()] == ["a.txt"]
