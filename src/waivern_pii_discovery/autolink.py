"""Auto-link resolver.

Proposes provisional links between unmapped discovered entities and declared
data assets. The resolver is additive: it only looks at entities with no
asset link at all, only ever writes ``AUTO_LINKED_TO`` edges and never touches
learned rules or confirmed links. Ambiguity is never auto-resolved; tied
candidates are flagged for review and nothing is proposed.

Scoring:

1. Score each asset by how many of the entity's PII types it declares.
2. A unique top score > 0 proposes that asset: High when the score is 2 or
   more, Medium otherwise (PIITypeMatch).
3. A tie at the top score flags the entity for review.
4. With no PII-type overlap at all, a case-insensitive substring match
   between entity and asset names proposes the single matching asset
   (Medium, NameMatch). Several name matches are flagged for review.
"""

from __future__ import annotations

import logging
from typing import Literal

from waivern_pii_discovery.graph.writer import ProvenanceGraphWriter
from waivern_pii_discovery.taxonomy import normalise_pii_type
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    AutoLinkReport,
    DataAsset,
    DiscoveredEntity,
)

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_SCORE = 2

type AutoLinkVerdict = Literal["review", "unmatched"]


def declared_pii_types(asset: DataAsset) -> set[str]:
    """Normalise an asset's declared categories onto taxonomy type tags."""
    declared: set[str] = set()
    for raw in asset.personal_data_categories:
        normalised = normalise_pii_type(raw)
        declared.add(normalised if normalised is not None else raw.strip().lower())
    return declared


def score_assets(pii_types: set[str], assets: list[DataAsset]) -> dict[str, int]:
    """Count overlapping PII types per asset, keeping only positive scores."""
    scores: dict[str, int] = {}
    for asset in assets:
        score = len(pii_types & declared_pii_types(asset))
        if score > 0:
            scores[asset.asset_id] = score
    return scores


def name_matches(entity_name: str, assets: list[DataAsset]) -> list[DataAsset]:
    """Return assets whose name contains, or is contained in, the entity name."""
    needle = entity_name.strip().lower()
    if not needle:
        return []
    return [
        asset
        for asset in assets
        if (name := asset.name.strip().lower()) and (name in needle or needle in name)
    ]


class AutoLinkResolver:
    """Periodic reconciliation of unmapped entities against data assets."""

    def __init__(self, graph_writer: ProvenanceGraphWriter) -> None:
        self._graph_writer = graph_writer

    async def run(self) -> AutoLinkReport:
        """Run one auto-link pass over every unmapped entity.

        Returns:
            Proposed links, entities flagged for review and entities with no
            candidate

        """
        report = AutoLinkReport()
        entities = await self._graph_writer.list_unmapped_entities()
        assets = await self._graph_writer.list_data_assets()
        logger.info(
            f"Auto-link pass: {len(entities)} unmapped entities, {len(assets)} data assets"
        )

        for entity in entities:
            pii_types = await self._graph_writer.entity_pii_types(entity.entity_id)
            outcome = self.evaluate(entity, pii_types, assets)

            if isinstance(outcome, AutoLinkProposal):
                if await self._graph_writer.propose_asset_link(outcome):
                    report.proposed.append(outcome)
                    logger.info(
                        f"Auto-linked '{entity.name}' -> '{outcome.asset_name}' "
                        f"({outcome.confidence}, {outcome.method})"
                    )
            elif outcome == "review":
                report.flagged_for_review.append(entity.entity_id)
            else:
                report.unmatched.append(entity.entity_id)

        logger.info(
            f"Auto-link pass complete: {len(report.proposed)} proposed, "
            f"{len(report.flagged_for_review)} flagged for review, "
            f"{len(report.unmatched)} unmatched"
        )
        return report

    def evaluate(
        self, entity: DiscoveredEntity, pii_types: set[str], assets: list[DataAsset]
    ) -> AutoLinkProposal | AutoLinkVerdict:
        """Decide what to do with one entity.

        Returns:
            A proposal, ``"review"`` for an ambiguous entity or ``"unmatched"``

        """
        assets_by_id = {asset.asset_id: asset for asset in assets}
        scores = score_assets(pii_types, assets)

        if scores:
            top_score = max(scores.values())
            leaders = [asset_id for asset_id, score in scores.items() if score == top_score]
            if len(leaders) > 1:
                logger.warning(
                    f"Multiple data assets tied for '{entity.name}' "
                    f"({', '.join(sorted(leaders))}). Flagged for review."
                )
                return "review"

            asset = assets_by_id[leaders[0]]
            return AutoLinkProposal(
                entity_id=entity.entity_id,
                entity_name=entity.name,
                asset_id=asset.asset_id,
                asset_name=asset.name,
                confidence="High" if top_score >= HIGH_CONFIDENCE_SCORE else "Medium",
                method="PIITypeMatch",
            )

        candidates = name_matches(entity.name, assets)
        if len(candidates) == 1:
            asset = candidates[0]
            return AutoLinkProposal(
                entity_id=entity.entity_id,
                entity_name=entity.name,
                asset_id=asset.asset_id,
                asset_name=asset.name,
                confidence="Medium",
                method="NameMatch",
            )
        if len(candidates) > 1:
            logger.warning(
                f"Multiple data assets match the name '{entity.name}'. Flagged for review."
            )
            return "review"

        return "unmatched"
