"""Provenance graph: labeled graph store and writer."""

from waivern_pii_discovery.graph.filesystem import JsonFileGraphStore
from waivern_pii_discovery.graph.in_memory import InMemoryGraphStore
from waivern_pii_discovery.graph.store import (
    GraphEdge,
    GraphNode,
    GraphReader,
    GraphState,
    GraphStore,
    GraphTransaction,
    NodeRef,
)
from waivern_pii_discovery.graph.writer import (
    AssetLink,
    EdgeType,
    NodeLabel,
    ProvenanceGraphWriter,
    field_key,
)

__all__ = [
    "AssetLink",
    "EdgeType",
    "GraphEdge",
    "GraphNode",
    "GraphReader",
    "GraphState",
    "GraphStore",
    "GraphTransaction",
    "InMemoryGraphStore",
    "JsonFileGraphStore",
    "NodeLabel",
    "NodeRef",
    "ProvenanceGraphWriter",
    "field_key",
]
