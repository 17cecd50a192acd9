"""Tests for the auto-link resolver."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from waivern_pii_discovery.autolink import (
    AutoLinkResolver,
    declared_pii_types,
    name_matches,
    score_assets,
)
from waivern_pii_discovery.graph import EdgeType, ProvenanceGraphWriter
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    ClassificationOutcome,
    DataAsset,
    DiscoveredEntity,
    EntityKind,
    SourceType,
)

type OutcomeFactory = Callable[..., ClassificationOutcome]

CUSTOMER_DATA = DataAsset(
    asset_id="customer-data",
    name="Customer Data",
    personal_data_categories=("email", "Phone Number", "address"),
)
HR_DATA = DataAsset(
    asset_id="hr-data",
    name="HR Records",
    personal_data_categories=("salary", "pan", "email"),
)
MARKETING = DataAsset(
    asset_id="marketing",
    name="Marketing Leads",
    personal_data_categories=("email",),
)


def _table(name: str, container: str = "crm") -> DiscoveredEntity:
    return DiscoveredEntity(
        entity_id=f"{container}/{name}",
        name=name,
        kind=EntityKind.TABLE,
        source_type=SourceType.DATABASE,
        source_subtype="sqlite",
        container=container,
    )


@pytest.fixture
def resolver(graph_writer: ProvenanceGraphWriter) -> AutoLinkResolver:
    return AutoLinkResolver(graph_writer)


class TestScoring:
    def test_declared_types_are_normalised(self) -> None:
        assert declared_pii_types(CUSTOMER_DATA) == {"email", "phone", "address"}

    def test_only_positive_scores_are_kept(self) -> None:
        scores = score_assets({"email", "phone"}, [CUSTOMER_DATA, HR_DATA, MARKETING])

        assert scores == {"customer-data": 2, "hr-data": 1, "marketing": 1}
        assert score_assets({"aadhaar"}, [CUSTOMER_DATA]) == {}

    def test_name_matches_both_directions(self) -> None:
        assert name_matches("leads", [CUSTOMER_DATA, MARKETING]) == [MARKETING]
        assert name_matches("customer data archive", [CUSTOMER_DATA, HR_DATA]) == [
            CUSTOMER_DATA
        ]
        assert name_matches("  ", [CUSTOMER_DATA]) == []


class TestEvaluate:
    def test_unique_top_score_of_two_is_high(self, resolver: AutoLinkResolver) -> None:
        outcome = resolver.evaluate(
            _table("customers"), {"email", "phone"}, [CUSTOMER_DATA, HR_DATA]
        )

        assert isinstance(outcome, AutoLinkProposal)
        assert outcome.asset_id == "customer-data"
        assert outcome.confidence == "High"
        assert outcome.method == "PIITypeMatch"

    def test_unique_top_score_of_one_is_medium(self, resolver: AutoLinkResolver) -> None:
        outcome = resolver.evaluate(_table("payroll"), {"salary"}, [CUSTOMER_DATA, HR_DATA])

        assert isinstance(outcome, AutoLinkProposal)
        assert outcome.asset_id == "hr-data"
        assert outcome.confidence == "Medium"

    def test_tied_scores_are_flagged_for_review(self, resolver: AutoLinkResolver) -> None:
        """Ambiguity is never resolved automatically."""
        outcome = resolver.evaluate(
            _table("contacts"), {"email"}, [CUSTOMER_DATA, HR_DATA, MARKETING]
        )

        assert outcome == "review"

    def test_name_match_without_pii_overlap(self, resolver: AutoLinkResolver) -> None:
        outcome = resolver.evaluate(_table("leads"), set(), [CUSTOMER_DATA, MARKETING])

        assert isinstance(outcome, AutoLinkProposal)
        assert outcome.asset_id == "marketing"
        assert outcome.confidence == "Medium"
        assert outcome.method == "NameMatch"

    def test_several_name_matches_are_flagged(self, resolver: AutoLinkResolver) -> None:
        assets = [
            DataAsset(asset_id="a", name="Orders"),
            DataAsset(asset_id="b", name="Orders Archive"),
        ]

        assert resolver.evaluate(_table("orders"), set(), assets) == "review"

    def test_no_candidate(self, resolver: AutoLinkResolver) -> None:
        assert resolver.evaluate(_table("audit_log"), set(), [CUSTOMER_DATA]) == "unmatched"


class TestRun:
    @pytest.fixture
    async def populated(
        self, graph_writer: ProvenanceGraphWriter, make_outcome: OutcomeFactory
    ) -> ProvenanceGraphWriter:
        """Three tables: one clear match, one tie, one without candidates."""
        for asset in (CUSTOMER_DATA, HR_DATA, MARKETING):
            await graph_writer.upsert_data_asset(asset)
        for name in ("customers", "contacts", "audit_log"):
            await graph_writer.upsert_discovered_entity(_table(name))

        await graph_writer.upsert_classification(
            make_outcome("email", "email", 0.9, locator="crm/customers")
        )
        await graph_writer.upsert_classification(
            make_outcome("mobile", "phone", 1.0, locator="crm/customers")
        )
        await graph_writer.upsert_classification(
            make_outcome("email", "email", 0.9, locator="crm/contacts")
        )
        return graph_writer

    async def test_run_reports_every_entity(
        self, resolver: AutoLinkResolver, populated: ProvenanceGraphWriter
    ) -> None:
        report = await resolver.run()

        assert [p.entity_id for p in report.proposed] == ["crm/customers"]
        assert report.flagged_for_review == ["crm/contacts"]
        assert report.unmatched == ["crm/audit_log"]

        link = await populated.asset_link_for("crm/customers")
        assert link is not None
        assert link.edge_type is EdgeType.AUTO_LINKED_TO
        assert link.asset_id == "customer-data"

    async def test_tied_entity_gets_no_link(
        self, resolver: AutoLinkResolver, populated: ProvenanceGraphWriter
    ) -> None:
        await resolver.run()

        assert await populated.asset_link_for("crm/contacts") is None

    async def test_second_run_skips_linked_entities(
        self, resolver: AutoLinkResolver, populated: ProvenanceGraphWriter
    ) -> None:
        await resolver.run()

        report = await resolver.run()

        assert report.proposed == []
        assert "crm/customers" not in report.unmatched + report.flagged_for_review

    async def test_confirmed_links_are_never_touched(
        self, resolver: AutoLinkResolver, populated: ProvenanceGraphWriter
    ) -> None:
        await populated.link_entity_to_asset("crm/customers", "hr-data")

        report = await resolver.run()

        link = await populated.asset_link_for("crm/customers")
        assert link is not None
        assert link.asset_id == "hr-data"
        assert link.confirmed is True
        assert all(p.entity_id != "crm/customers" for p in report.proposed)
