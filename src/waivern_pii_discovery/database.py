"""SQLite system of record for confirmation requests and learned rules.

Every unit of work runs inside ``SQLiteDatabase.transaction()``, which takes
the database write lock up front (``BEGIN IMMEDIATE``) before any row is
read. Inside one process an ``asyncio.Lock`` additionally serialises
transactions, so a read-check-write sequence on a confirmation request can
never interleave with another one. This is the ``SELECT ... FOR UPDATE``
equivalent for SQLite.

``DatabaseTransaction`` methods are plain synchronous ``sqlite3`` calls; they
are only valid while the transaction that produced them is open.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from waivern_pii_discovery.errors import StoreError
from waivern_pii_discovery.types import (
    ClassificationSource,
    ConfirmationRequest,
    ConfirmationStatus,
    FieldIdentity,
    LearnedRule,
    SourceType,
)

logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE = ":memory:"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS confirmation_requests (
    id TEXT PRIMARY KEY,
    pass_id TEXT NOT NULL,
    source_type TEXT NOT NULL,
    source_subtype TEXT NOT NULL,
    locator TEXT NOT NULL,
    field_name TEXT NOT NULL,
    text_segment INTEGER NOT NULL DEFAULT 0,
    suggested_type TEXT NOT NULL,
    category TEXT,
    risk TEXT,
    source TEXT NOT NULL,
    confidence REAL NOT NULL CHECK (confidence >= 0.0 AND confidence <= 1.0),
    reason TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    resolved_at TEXT,
    resolved_by TEXT,
    override_reason TEXT,
    overridden_by TEXT,
    previous_decision_id TEXT REFERENCES confirmation_requests (id)
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_confirmation_requests_pending_field
    ON confirmation_requests (source_type, source_subtype, locator, field_name)
    WHERE status = 'PENDING';

CREATE INDEX IF NOT EXISTS ix_confirmation_requests_status
    ON confirmation_requests (status, confidence);

CREATE TABLE IF NOT EXISTS learned_rules (
    field_name TEXT PRIMARY KEY,
    is_pii INTEGER NOT NULL,
    pii_type TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_REQUEST_COLUMNS = (
    "id",
    "pass_id",
    "source_type",
    "source_subtype",
    "locator",
    "field_name",
    "text_segment",
    "suggested_type",
    "category",
    "risk",
    "source",
    "confidence",
    "reason",
    "status",
    "created_at",
    "resolved_at",
    "resolved_by",
    "override_reason",
    "overridden_by",
    "previous_decision_id",
)

_SELECT_REQUESTS = f"SELECT {', '.join(_REQUEST_COLUMNS)} FROM confirmation_requests"  # noqa: S608


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _request_to_row(request: ConfirmationRequest) -> tuple[Any, ...]:
    return (
        request.id,
        request.pass_id,
        request.field.source_type.value,
        request.field.source_subtype,
        request.field.locator,
        request.field.field_name,
        int(request.field.text_segment),
        request.suggested_type,
        request.category.value if request.category else None,
        request.risk.value if request.risk else None,
        request.source.value,
        request.confidence,
        request.reason,
        request.status.value,
        _isoformat(request.created_at),
        _isoformat(request.resolved_at),
        request.resolved_by,
        request.override_reason,
        request.overridden_by,
        request.previous_decision_id,
    )


def _row_to_request(row: sqlite3.Row) -> ConfirmationRequest:
    return ConfirmationRequest(
        id=row["id"],
        pass_id=row["pass_id"],
        field=FieldIdentity(
            source_type=SourceType(row["source_type"]),
            source_subtype=row["source_subtype"],
            locator=row["locator"],
            field_name=row["field_name"],
            text_segment=bool(row["text_segment"]),
        ),
        suggested_type=row["suggested_type"],
        category=row["category"],
        risk=row["risk"],
        source=ClassificationSource(row["source"]),
        confidence=row["confidence"],
        reason=row["reason"],
        status=ConfirmationStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        resolved_at=(
            datetime.fromisoformat(row["resolved_at"]) if row["resolved_at"] else None
        ),
        resolved_by=row["resolved_by"],
        override_reason=row["override_reason"],
        overridden_by=row["overridden_by"],
        previous_decision_id=row["previous_decision_id"],
    )


def _row_to_rule(row: sqlite3.Row) -> LearnedRule:
    return LearnedRule(
        field_name=row["field_name"],
        is_pii=bool(row["is_pii"]),
        pii_type=row["pii_type"],
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class DatabaseTransaction:
    """Parameterised statements available inside an open transaction."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    # ------------------------------------------------------------------
    # Confirmation requests
    # ------------------------------------------------------------------

    def insert_request(self, request: ConfirmationRequest) -> None:
        """Insert a confirmation request row."""
        placeholders = ", ".join("?" for _ in _REQUEST_COLUMNS)
        self._connection.execute(
            f"INSERT INTO confirmation_requests ({', '.join(_REQUEST_COLUMNS)}) "  # noqa: S608
            f"VALUES ({placeholders})",
            _request_to_row(request),
        )

    def get_request(self, request_id: str) -> ConfirmationRequest | None:
        """Fetch a confirmation request by id."""
        row = self._connection.execute(
            f"{_SELECT_REQUESTS} WHERE id = ?", (request_id,)
        ).fetchone()
        return _row_to_request(row) if row else None

    def find_pending(self, field: FieldIdentity) -> ConfirmationRequest | None:
        """Fetch the PENDING request for a field, if any."""
        row = self._connection.execute(
            f"{_SELECT_REQUESTS} WHERE source_type = ? AND source_subtype = ? "
            "AND locator = ? AND field_name = ? AND status = ?",
            (
                field.source_type.value,
                field.source_subtype,
                field.locator,
                field.field_name,
                ConfirmationStatus.PENDING.value,
            ),
        ).fetchone()
        return _row_to_request(row) if row else None

    def list_requests(
        self,
        statuses: Iterable[ConfirmationStatus],
        min_confidence: float = 0.0,
        order_by: str = "confidence",
    ) -> list[ConfirmationRequest]:
        """List requests in the given statuses.

        Args:
            statuses: Statuses to include
            min_confidence: Lowest confidence to include
            order_by: ``confidence`` (highest first) or ``recent`` (newest
                first)

        Returns:
            Matching requests

        """
        status_values = [status.value for status in statuses]
        if not status_values:
            return []
        order_clause = {
            "confidence": "confidence DESC, created_at ASC",
            "recent": "COALESCE(resolved_at, created_at) DESC, rowid DESC",
        }[order_by]
        placeholders = ", ".join("?" for _ in status_values)
        rows = self._connection.execute(
            f"{_SELECT_REQUESTS} WHERE status IN ({placeholders}) "
            f"AND confidence >= ? ORDER BY {order_clause}",
            (*status_values, min_confidence),
        ).fetchall()
        return [_row_to_request(row) for row in rows]

    def update_request_status(
        self,
        request_id: str,
        status: ConfirmationStatus,
        resolved_at: datetime | None = None,
        resolved_by: str | None = None,
    ) -> None:
        """Change a request's status flag, recording who resolved it."""
        self._connection.execute(
            "UPDATE confirmation_requests SET status = ?, "
            "resolved_at = COALESCE(?, resolved_at), "
            "resolved_by = COALESCE(?, resolved_by) WHERE id = ?",
            (status.value, _isoformat(resolved_at), resolved_by, request_id),
        )

    # ------------------------------------------------------------------
    # Learned rules
    # ------------------------------------------------------------------

    def get_rule(self, rule_key: str) -> LearnedRule | None:
        """Fetch the learned rule for a lowercased field name."""
        row = self._connection.execute(
            "SELECT field_name, is_pii, pii_type, updated_at FROM learned_rules "
            "WHERE field_name = ?",
            (rule_key,),
        ).fetchone()
        return _row_to_rule(row) if row else None

    def upsert_rule(self, rule: LearnedRule) -> None:
        """Insert or replace a learned rule (last write wins)."""
        self._connection.execute(
            "INSERT INTO learned_rules (field_name, is_pii, pii_type, updated_at) "
            "VALUES (?, ?, ?, ?) ON CONFLICT (field_name) DO UPDATE SET "
            "is_pii = excluded.is_pii, pii_type = excluded.pii_type, "
            "updated_at = excluded.updated_at",
            (rule.field_name, int(rule.is_pii), rule.pii_type, rule.updated_at.isoformat()),
        )

    def list_rules(self) -> list[LearnedRule]:
        """List all learned rules ordered by field name."""
        rows = self._connection.execute(
            "SELECT field_name, is_pii, pii_type, updated_at FROM learned_rules "
            "ORDER BY field_name"
        ).fetchall()
        return [_row_to_rule(row) for row in rows]


class SQLiteDatabase:
    """SQLite connection with serialised, write-locked transactions."""

    def __init__(self, database_path: str = IN_MEMORY_DATABASE) -> None:
        """Open the database and create the schema if needed.

        Args:
            database_path: SQLite file path, or ``:memory:``

        Raises:
            StoreError: If the database cannot be opened or initialised

        """
        self._database_path = database_path
        self._lock = asyncio.Lock()
        try:
            if database_path != IN_MEMORY_DATABASE:
                Path(database_path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transactions are managed explicitly.
            self._connection = sqlite3.connect(
                database_path, isolation_level=None, check_same_thread=False
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to open database '{database_path}': {e}") from e

        logger.debug(f"Opened SQLite database: {database_path}")

    @property
    def database_path(self) -> str:
        """Path of the open database."""
        return self._database_path

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseTransaction]:
        """Run a unit of work in one write-locked transaction.

        Commits when the block exits normally and rolls back on any
        exception, so no partial effect is ever visible.

        Raises:
            StoreError: If SQLite fails; other exceptions propagate unchanged
                after rollback

        """
        async with self._lock:
            try:
                self._connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreError(f"Failed to begin transaction: {e}") from e

            try:
                yield DatabaseTransaction(self._connection)
            except sqlite3.Error as e:
                self._rollback()
                raise StoreError(f"Database operation failed: {e}") from e
            except BaseException:
                self._rollback()
                raise

            try:
                self._connection.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise StoreError(f"Failed to commit transaction: {e}") from e

    def _rollback(self) -> None:
        if self._connection.in_transaction:
            self._connection.execute("ROLLBACK")
            logger.debug("Transaction rolled back")

    def close(self) -> None:
        """Close the connection."""
        self._connection.close()
