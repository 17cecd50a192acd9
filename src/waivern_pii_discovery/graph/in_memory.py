"""In-memory graph store implementation.

Provides the graph store for tests and single-process runs without
persistence. No thread safety is needed since asyncio runs in a single
thread; an ``asyncio.Lock`` serialises write transactions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import override

from waivern_pii_discovery.graph.store import (
    GraphReader,
    GraphState,
    GraphStore,
    GraphTransaction,
)

logger = logging.getLogger(__name__)


class InMemoryGraphStore(GraphStore):
    """Graph store keeping the committed state in memory.

    Each transaction copies the committed state, applies its writes to the
    copy and swaps it in on success. Snapshots hold on to the state object they
    were created from, so they stay consistent while later transactions commit.
    """

    def __init__(self, state: GraphState | None = None) -> None:
        self._state = state or GraphState()
        self._lock = asyncio.Lock()

    @override
    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        async with self._lock:
            await self._ensure_loaded()
            working = self._state.copy()
            yield GraphTransaction(working)
            await self._persist(working)
            self._state = working

    @override
    async def snapshot(self) -> GraphReader:
        await self._ensure_loaded()
        return GraphReader(self._state)

    async def _ensure_loaded(self) -> None:
        """Load the committed state from a backend; nothing to do in memory."""

    async def _persist(self, state: GraphState) -> None:
        """Persist a state before it becomes visible; nothing to do in memory."""
