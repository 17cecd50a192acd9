"""JSON file graph store implementation.

Persists the whole committed graph as one JSON document. A commit writes the
new state to a temporary file beside the target and atomically replaces the
target, so a crash mid-write never leaves a truncated graph behind.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import override

import aiofiles

from waivern_pii_discovery.errors import GraphStoreError
from waivern_pii_discovery.graph.in_memory import InMemoryGraphStore
from waivern_pii_discovery.graph.store import GraphState

logger = logging.getLogger(__name__)


class JsonFileGraphStore(InMemoryGraphStore):
    """Graph store persisted to a local JSON file with aiofiles."""

    def __init__(self, path: Path) -> None:
        """Initialise the store.

        The file is read lazily on first use; a missing file means an empty
        graph.

        Args:
            path: JSON file holding the graph (e.g., Path('.waivern/graph.json'))

        """
        super().__init__()
        self._path = path
        self._loaded = False

    @property
    def path(self) -> Path:
        """The file backing the graph."""
        return self._path

    @override
    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        if self._path.exists():
            try:
                async with aiofiles.open(self._path) as f:
                    content = await f.read()
                self._state = GraphState.from_dict(json.loads(content))
            except (OSError, ValueError) as e:
                raise GraphStoreError(
                    f"Failed to load provenance graph from '{self._path}': {e}"
                ) from e
            logger.debug(
                f"Loaded provenance graph from {self._path} "
                f"({len(self._state.nodes)} nodes, {len(self._state.edges)} edges)"
            )

        self._loaded = True

    @override
    async def _persist(self, state: GraphState) -> None:
        temp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "w") as f:
                await f.write(json.dumps(state.to_dict(), indent=2, default=str))
            os.replace(temp_path, self._path)
        except OSError as e:
            raise GraphStoreError(
                f"Failed to persist provenance graph to '{self._path}': {e}"
            ) from e
