"""Provenance graph writer.

Maps discovery results onto the labeled graph:

    (Database|Storage)-[:CONTAINS]->(Table|File)-[:HAS_FIELD]->(Field)
    (Field)-[:IS_PII]->(PII)-[:BELONGS_TO]->(Category)
                       (PII)-[:HAS_RISK]->(RiskLevel)
    (Table|File)-[:PART_OF_DATA_ASSET | AUTO_LINKED_TO]->(DataAsset)

Invariants enforced here:

- A field has at most one IS_PII edge. Any previous edge is deleted in the
  same transaction that writes the new one.
- A discovered entity has at most one asset link. A confirmed link replaces
  any provisional or confirmed link regardless of target; a provisional link
  is only written for an entity that has no link at all.
- Every multi-statement write is one graph transaction.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from waivern_pii_discovery.errors import GraphEntityNotFoundError, GraphStoreError
from waivern_pii_discovery.graph.store import (
    GraphNode,
    GraphReader,
    GraphStore,
    GraphTransaction,
    NodeRef,
)
from waivern_pii_discovery.taxonomy import calculate_sensitivity
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    ClassificationOutcome,
    ClassificationStatus,
    DataAsset,
    DiscoveredEntity,
    EntityKind,
    FieldIdentity,
    SourceType,
    utc_now,
)

logger = logging.getLogger(__name__)


class NodeLabel(StrEnum):
    """Node labels used in the provenance graph."""

    DATABASE = "Database"
    STORAGE = "Storage"
    TABLE = "Table"
    FILE = "File"
    FIELD = "Field"
    PII = "PII"
    CATEGORY = "Category"
    RISK_LEVEL = "RiskLevel"
    DATA_ASSET = "DataAsset"


class EdgeType(StrEnum):
    """Edge types used in the provenance graph."""

    CONTAINS = "CONTAINS"
    HAS_FIELD = "HAS_FIELD"
    IS_PII = "IS_PII"
    BELONGS_TO = "BELONGS_TO"
    HAS_RISK = "HAS_RISK"
    PART_OF_DATA_ASSET = "PART_OF_DATA_ASSET"
    AUTO_LINKED_TO = "AUTO_LINKED_TO"


ASSET_LINK_TYPES = (EdgeType.PART_OF_DATA_ASSET, EdgeType.AUTO_LINKED_TO)

_GRAPH_STATUSES = (ClassificationStatus.AUTO_CLASSIFIED, ClassificationStatus.CONFIRMED)


class AssetLink(BaseModel):
    """The single outgoing asset link of a discovered entity."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    asset_id: str
    edge_type: EdgeType
    properties: dict[str, Any]

    @property
    def confirmed(self) -> bool:
        """Whether this is a confirmed (not provisional) link."""
        return self.edge_type is EdgeType.PART_OF_DATA_ASSET


def field_key(field: FieldIdentity) -> str:
    """Graph key of a Field node."""
    return f"{field.locator}#{field.field_name}"


def _entity_label(kind: EntityKind) -> NodeLabel:
    return NodeLabel.FILE if kind is EntityKind.FILE else NodeLabel.TABLE


def _container_label(source_type: SourceType) -> NodeLabel:
    return NodeLabel.STORAGE if source_type is SourceType.FILE else NodeLabel.DATABASE


def _entity_refs(entity_id: str) -> tuple[NodeRef, NodeRef]:
    return NodeRef(NodeLabel.TABLE, entity_id), NodeRef(NodeLabel.FILE, entity_id)


def _find_entity_node(reader: GraphReader, entity_id: str) -> GraphNode | None:
    for ref in _entity_refs(entity_id):
        node = reader.get_node(ref)
        if node is not None:
            return node
    return None


def _node_to_entity(node: GraphNode) -> DiscoveredEntity:
    props = node.properties
    return DiscoveredEntity(
        entity_id=node.key,
        name=props.get("name", node.key),
        kind=EntityKind(node.label),
        source_type=SourceType(props.get("source_type", SourceType.DATABASE)),
        source_subtype=props.get("source_subtype", "unknown"),
        container=props.get("container", ""),
    )


def _asset_link(reader: GraphReader, entity_ref: NodeRef) -> AssetLink | None:
    for edge_type in ASSET_LINK_TYPES:
        edges = reader.outgoing(entity_ref, edge_type)
        if edges:
            edge = edges[0]
            return AssetLink(
                entity_id=entity_ref.key,
                asset_id=edge.target.key,
                edge_type=edge_type,
                properties=edge.properties,
            )
    return None


class ProvenanceGraphWriter:
    """Idempotent writer for discovery results and asset links."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def upsert_discovered_entity(self, entity: DiscoveredEntity) -> None:
        """Create or update a Table/File node and its container."""
        async with self._store.transaction() as tx:
            self._merge_entity(tx, entity)

    async def upsert_classification(self, outcome: ClassificationOutcome) -> None:
        """Write the single active PII classification for a field.

        Args:
            outcome: An ``auto_classified`` or ``confirmed`` outcome with a
                PII type

        Raises:
            GraphStoreError: If the outcome must not be written to the graph

        """
        if outcome.status not in _GRAPH_STATUSES or not outcome.is_pii:
            raise GraphStoreError(
                f"Only auto-classified or confirmed PII can be written, got "
                f"status={outcome.status} type={outcome.type} for {outcome.field}"
            )

        async with self._store.transaction() as tx:
            entity_ref = self._merge_entity_for_field(tx, outcome.field)
            field_ref = tx.merge_node(
                NodeLabel.FIELD,
                field_key(outcome.field),
                {
                    "name": outcome.field.field_name,
                    "locator": outcome.field.locator,
                    "text_segment": outcome.field.text_segment,
                },
            )
            tx.merge_edge(EdgeType.HAS_FIELD, entity_ref, field_ref)

            removed = tx.delete_edges(field_ref, EdgeType.IS_PII)
            sensitivity = (
                calculate_sensitivity(outcome.risk, outcome.match_count or 0)
                if outcome.risk
                else None
            )

            pii_ref = tx.merge_node(
                NodeLabel.PII,
                outcome.type,
                {"type": outcome.type, "default_risk": outcome.risk},
            )
            if outcome.category is not None:
                category_ref = tx.merge_node(
                    NodeLabel.CATEGORY, outcome.category, {"name": outcome.category}
                )
                tx.merge_edge(EdgeType.BELONGS_TO, pii_ref, category_ref)
            if outcome.risk is not None:
                risk_ref = tx.merge_node(
                    NodeLabel.RISK_LEVEL, outcome.risk, {"level": outcome.risk}
                )
                tx.merge_edge(EdgeType.HAS_RISK, pii_ref, risk_ref)

            tx.merge_edge(
                EdgeType.IS_PII,
                field_ref,
                pii_ref,
                {
                    "source": outcome.source,
                    "confidence": outcome.confidence,
                    "status": outcome.status,
                    "reason": outcome.reason,
                    "risk": outcome.risk,
                    "sensitivity": sensitivity,
                    "match_count": outcome.match_count,
                    "detected_at": utc_now().isoformat(),
                },
            )

        logger.debug(
            f"Graph classification written: {outcome.field} -> {outcome.type} "
            f"(replaced {removed} edge(s))"
        )

    async def remove_classification(self, field: FieldIdentity) -> bool:
        """Delete the active PII classification of a field.

        Returns:
            True if an edge was removed

        """
        async with self._store.transaction() as tx:
            removed = tx.delete_edges(
                NodeRef(NodeLabel.FIELD, field_key(field)), EdgeType.IS_PII
            )
        if removed:
            logger.info(f"Graph classification removed for {field}")
        return removed > 0

    # ------------------------------------------------------------------
    # Data assets and links
    # ------------------------------------------------------------------

    async def upsert_data_asset(self, asset: DataAsset) -> None:
        """Create or update a DataAsset node."""
        async with self._store.transaction() as tx:
            tx.merge_node(
                NodeLabel.DATA_ASSET,
                asset.asset_id,
                {
                    "name": asset.name,
                    "personal_data_categories": list(asset.personal_data_categories),
                },
            )

    async def link_entity_to_asset(self, entity_id: str, asset_id: str) -> AssetLink:
        """Write a confirmed asset link, replacing any existing link.

        Raises:
            GraphEntityNotFoundError: If the entity or the asset does not exist

        """
        async with self._store.transaction() as tx:
            entity_ref, asset_ref = self._resolve_link_endpoints(tx, entity_id, asset_id)

            for edge_type in ASSET_LINK_TYPES:
                tx.delete_edges(entity_ref, edge_type)
            edge = tx.merge_edge(
                EdgeType.PART_OF_DATA_ASSET,
                entity_ref,
                asset_ref,
                {"linked_at": utc_now().isoformat()},
            )

        logger.info(f"Entity '{entity_id}' linked to data asset '{asset_id}'")
        return AssetLink(
            entity_id=entity_id,
            asset_id=asset_id,
            edge_type=EdgeType.PART_OF_DATA_ASSET,
            properties=edge.properties,
        )

    async def propose_asset_link(self, proposal: AutoLinkProposal) -> bool:
        """Write a provisional link for an entity that has no link yet.

        The check and the write happen in one transaction, so a confirmed
        link written concurrently is never displaced.

        Returns:
            True if the provisional link was written

        Raises:
            GraphEntityNotFoundError: If the entity or the asset does not exist

        """
        async with self._store.transaction() as tx:
            entity_ref, asset_ref = self._resolve_link_endpoints(
                tx, proposal.entity_id, proposal.asset_id
            )
            if _asset_link(tx, entity_ref) is not None:
                logger.debug(f"Entity '{proposal.entity_id}' already linked, not proposing")
                return False

            tx.merge_edge(
                EdgeType.AUTO_LINKED_TO,
                entity_ref,
                asset_ref,
                {
                    "confidence": proposal.confidence,
                    "method": proposal.method,
                    "proposed_at": utc_now().isoformat(),
                },
            )
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entity(self, entity_id: str) -> DiscoveredEntity | None:
        """Return a discovered entity by id."""
        reader = await self._store.snapshot()
        node = _find_entity_node(reader, entity_id)
        return _node_to_entity(node) if node else None

    async def list_unmapped_entities(self) -> list[DiscoveredEntity]:
        """Return entities with neither a confirmed nor a provisional link."""
        reader = await self._store.snapshot()
        return [
            _node_to_entity(node)
            for label in (NodeLabel.TABLE, NodeLabel.FILE)
            for node in reader.nodes(label)
            if _asset_link(reader, node.ref) is None
        ]

    async def list_provisional_links(self) -> list[AutoLinkProposal]:
        """Return every AUTO_LINKED_TO proposal still awaiting confirmation.

        Ordered by asset id, then entity id.
        """
        reader = await self._store.snapshot()
        proposals = []
        for asset in reader.nodes(NodeLabel.DATA_ASSET):
            edges = sorted(
                reader.incoming(asset.ref, EdgeType.AUTO_LINKED_TO),
                key=lambda edge: edge.source.key,
            )
            for edge in edges:
                entity = reader.get_node(edge.source)
                entity_name = entity.properties.get("name", edge.source.key) if entity else ""
                proposals.append(
                    AutoLinkProposal(
                        entity_id=edge.source.key,
                        entity_name=entity_name or edge.source.key,
                        asset_id=asset.key,
                        asset_name=asset.properties.get("name", asset.key),
                        confidence=edge.properties["confidence"],
                        method=edge.properties["method"],
                    )
                )
        return proposals

    async def list_data_assets(self) -> list[DataAsset]:
        """Return every declared data asset."""
        reader = await self._store.snapshot()
        return [
            DataAsset(
                asset_id=node.key,
                name=node.properties.get("name", node.key),
                personal_data_categories=tuple(
                    node.properties.get("personal_data_categories", [])
                ),
            )
            for node in reader.nodes(NodeLabel.DATA_ASSET)
        ]

    async def entity_pii_types(self, entity_id: str) -> set[str]:
        """Return the PII types currently classified on an entity's fields."""
        reader = await self._store.snapshot()
        node = _find_entity_node(reader, entity_id)
        if node is None:
            return set()
        return {
            pii_edge.target.key
            for field_edge in reader.outgoing(node.ref, EdgeType.HAS_FIELD)
            for pii_edge in reader.outgoing(field_edge.target, EdgeType.IS_PII)
        }

    async def field_classification(self, field: FieldIdentity) -> dict[str, Any] | None:
        """Return the active IS_PII edge of a field as ``{type, ...props}``."""
        reader = await self._store.snapshot()
        edges = reader.outgoing(NodeRef(NodeLabel.FIELD, field_key(field)), EdgeType.IS_PII)
        if not edges:
            return None
        return {"type": edges[0].target.key, **edges[0].properties}

    async def asset_link_for(self, entity_id: str) -> AssetLink | None:
        """Return the asset link of an entity, if any."""
        reader = await self._store.snapshot()
        node = _find_entity_node(reader, entity_id)
        return _asset_link(reader, node.ref) if node else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _merge_entity(self, tx: GraphTransaction, entity: DiscoveredEntity) -> NodeRef:
        container_ref = tx.merge_node(
            _container_label(entity.source_type),
            entity.container,
            {"name": entity.container, "source_subtype": entity.source_subtype},
        )
        entity_ref = tx.merge_node(
            _entity_label(entity.kind),
            entity.entity_id,
            {
                "name": entity.name,
                "source_type": entity.source_type,
                "source_subtype": entity.source_subtype,
                "container": entity.container,
            },
        )
        tx.merge_edge(EdgeType.CONTAINS, container_ref, entity_ref)
        return entity_ref

    def _merge_entity_for_field(self, tx: GraphTransaction, field: FieldIdentity) -> NodeRef:
        existing = _find_entity_node(tx, field.locator)
        if existing is not None:
            return existing.ref

        container, _, name = field.locator.rpartition("/")
        return self._merge_entity(
            tx,
            DiscoveredEntity(
                entity_id=field.locator,
                name=name or field.locator,
                kind=field.entity_kind,
                source_type=field.source_type,
                source_subtype=field.source_subtype,
                container=container or field.source_subtype,
            ),
        )

    def _resolve_link_endpoints(
        self, tx: GraphTransaction, entity_id: str, asset_id: str
    ) -> tuple[NodeRef, NodeRef]:
        entity = _find_entity_node(tx, entity_id)
        if entity is None:
            raise GraphEntityNotFoundError(f"Discovered entity '{entity_id}' does not exist")
        asset_ref = NodeRef(NodeLabel.DATA_ASSET, asset_id)
        if tx.get_node(asset_ref) is None:
            raise GraphEntityNotFoundError(f"Data asset '{asset_id}' does not exist")
        return entity.ref, asset_ref
