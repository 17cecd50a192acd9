"""Generic labeled graph store interface.

The store exposes a small fixed set of parameterised operations instead of
free-form queries:

- reads: ``get_node``, ``nodes``, ``outgoing``, ``incoming``
- writes: ``merge_node``, ``merge_edge``, ``delete_edges``

Writes only happen through ``async with store.transaction() as tx``. A
transaction works on a private copy of the graph which replaces the committed
graph when the block exits normally; on error it is discarded. Readers using
``snapshot()`` therefore never observe a partially applied transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from waivern_pii_discovery.errors import GraphEntityNotFoundError


class NodeRef(NamedTuple):
    """Key of a node: its label plus a label-unique key."""

    label: str
    key: str


class GraphNode(BaseModel):
    """A labeled node with properties."""

    model_config = ConfigDict(frozen=True)

    label: str
    key: str
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def ref(self) -> NodeRef:
        """Reference to this node."""
        return NodeRef(self.label, self.key)


class GraphEdge(BaseModel):
    """A typed, directed edge with properties."""

    model_config = ConfigDict(frozen=True)

    type: str
    source: NodeRef
    target: NodeRef
    properties: dict[str, Any] = Field(default_factory=dict)


type EdgeKey = tuple[str, NodeRef, NodeRef]


class GraphState:
    """Nodes and edges of a graph, copied on write by transactions."""

    def __init__(
        self,
        nodes: dict[NodeRef, GraphNode] | None = None,
        edges: dict[EdgeKey, GraphEdge] | None = None,
    ) -> None:
        self.nodes: dict[NodeRef, GraphNode] = nodes if nodes is not None else {}
        self.edges: dict[EdgeKey, GraphEdge] = edges if edges is not None else {}

    def copy(self) -> GraphState:
        """Return a copy sharing the immutable node and edge objects."""
        return GraphState(dict(self.nodes), dict(self.edges))

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary."""
        return {
            "nodes": [node.model_dump(mode="json") for node in self.nodes.values()],
            "edges": [edge.model_dump(mode="json") for edge in self.edges.values()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GraphState:
        """Rebuild a state serialised with ``to_dict``."""
        state = cls()
        for raw_node in data.get("nodes", []):
            node = GraphNode.model_validate(raw_node)
            state.nodes[node.ref] = node
        for raw_edge in data.get("edges", []):
            edge = GraphEdge.model_validate(raw_edge)
            state.edges[(edge.type, edge.source, edge.target)] = edge
        return state


class GraphReader:
    """Read operations over one consistent graph state."""

    def __init__(self, state: GraphState) -> None:
        self._state = state

    def get_node(self, ref: NodeRef) -> GraphNode | None:
        """Return a node by reference, or None."""
        return self._state.nodes.get(ref)

    def nodes(self, label: str) -> list[GraphNode]:
        """Return every node carrying a label, ordered by key."""
        return sorted(
            (node for node in self._state.nodes.values() if node.label == label),
            key=lambda node: node.key,
        )

    def outgoing(self, source: NodeRef, edge_type: str | None = None) -> list[GraphEdge]:
        """Return edges leaving a node, optionally of one type."""
        return [
            edge
            for edge in self._state.edges.values()
            if edge.source == source and (edge_type is None or edge.type == edge_type)
        ]

    def incoming(self, target: NodeRef, edge_type: str | None = None) -> list[GraphEdge]:
        """Return edges entering a node, optionally of one type."""
        return [
            edge
            for edge in self._state.edges.values()
            if edge.target == target and (edge_type is None or edge.type == edge_type)
        ]


class GraphTransaction(GraphReader):
    """Write operations applied to a transaction's private graph state."""

    def merge_node(
        self, label: str, key: str, properties: Mapping[str, Any] | None = None
    ) -> NodeRef:
        """Create a node or merge properties into the existing one."""
        ref = NodeRef(label, key)
        existing = self._state.nodes.get(ref)
        merged = {**(existing.properties if existing else {}), **(properties or {})}
        self._state.nodes[ref] = GraphNode(label=label, key=key, properties=merged)
        return ref

    def merge_edge(
        self,
        edge_type: str,
        source: NodeRef,
        target: NodeRef,
        properties: Mapping[str, Any] | None = None,
    ) -> GraphEdge:
        """Create an edge or replace the properties of the existing one.

        Raises:
            GraphEntityNotFoundError: If either endpoint does not exist

        """
        for endpoint in (source, target):
            if endpoint not in self._state.nodes:
                raise GraphEntityNotFoundError(
                    f"{endpoint.label} node '{endpoint.key}' does not exist"
                )
        edge = GraphEdge(
            type=edge_type, source=source, target=target, properties=dict(properties or {})
        )
        self._state.edges[(edge_type, source, target)] = edge
        return edge

    def delete_edges(
        self, source: NodeRef, edge_type: str, target_label: str | None = None
    ) -> int:
        """Delete a node's outgoing edges of a type.

        Args:
            source: Node the edges leave
            edge_type: Edge type to delete
            target_label: Only delete edges into nodes with this label

        Returns:
            Number of edges deleted

        """
        doomed = [
            key
            for key, edge in self._state.edges.items()
            if edge.source == source
            and edge.type == edge_type
            and (target_label is None or edge.target.label == target_label)
        ]
        for key in doomed:
            del self._state.edges[key]
        return len(doomed)


class GraphStore(ABC):
    """Abstract base class for labeled graph stores."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[GraphTransaction]:
        """Open a write transaction.

        Usage::

            async with store.transaction() as tx:
                tx.merge_node("Table", "db/customers", {"name": "customers"})

        Raises:
            GraphStoreError: If the committed state cannot be persisted

        """

    @abstractmethod
    async def snapshot(self) -> GraphReader:
        """Return a reader over the latest committed graph state."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""
