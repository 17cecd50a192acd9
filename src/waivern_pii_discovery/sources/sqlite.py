"""SQLite source reader."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path

from waivern_pii_discovery.errors import ExtractionError, SourceConfigError
from waivern_pii_discovery.sources.base import SourceField, stringify
from waivern_pii_discovery.types import DiscoveredEntity, EntityKind, SourceType

logger = logging.getLogger(__name__)

SOURCE_SUBTYPE = "sqlite"


def is_safe_identifier(name: str) -> bool:
    """Check that a table or column name is safe to quote into SQL."""
    return bool(name) and name.replace("_", "").replace("-", "").isalnum()


class SQLiteSource:
    """Reads tables and sampled column values from a SQLite database file.

    The database is opened read-only. Table and column names that are not
    plain identifiers are skipped.
    """

    def __init__(self, database_path: Path) -> None:
        """Initialise the reader.

        Args:
            database_path: SQLite database file

        Raises:
            SourceConfigError: If the file does not exist

        """
        if not database_path.is_file():
            raise SourceConfigError(f"SQLite database file not found: {database_path}")
        self._database_path = database_path
        self._database_name = database_path.stem

    @property
    def description(self) -> str:
        return f"sqlite:{self._database_path}"

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(f"file:{self._database_path}?mode=ro", uri=True)

    async def list_entities(self) -> list[DiscoveredEntity]:
        return await asyncio.to_thread(self._list_entities)

    async def sample_fields(self, entity: DiscoveredEntity, limit: int) -> list[SourceField]:
        return await asyncio.to_thread(self._sample_fields, entity.name, limit)

    async def read_values(
        self, entity: DiscoveredEntity, field_name: str, limit: int
    ) -> list[str]:
        return await asyncio.to_thread(self._read_values, entity.name, field_name, limit)

    def _list_entities(self) -> list[DiscoveredEntity]:
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' "
                    "AND name NOT LIKE 'sqlite_%' ORDER BY name"
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ExtractionError(f"Failed to list tables in {self._database_path}: {e}") from e

        entities: list[DiscoveredEntity] = []
        for (table_name,) in rows:
            if not is_safe_identifier(table_name):
                logger.warning(f"Skipping table with unsafe name: {table_name!r}")
                continue
            entities.append(
                DiscoveredEntity(
                    entity_id=f"{self._database_name}/{table_name}",
                    name=table_name,
                    kind=EntityKind.TABLE,
                    source_type=SourceType.DATABASE,
                    source_subtype=SOURCE_SUBTYPE,
                    container=self._database_name,
                )
            )
        return entities

    def _sample_fields(self, table_name: str, limit: int) -> list[SourceField]:
        if not is_safe_identifier(table_name):
            raise ExtractionError(f"Unsafe table name: {table_name!r}")

        try:
            conn = self._connect()
            try:
                columns = [
                    info[1]
                    for info in conn.execute(f"PRAGMA table_info(`{table_name}`)").fetchall()
                    if is_safe_identifier(info[1])
                ]
                if not columns:
                    return []
                column_list = ", ".join(f"`{column}`" for column in columns)
                rows = conn.execute(
                    f"SELECT {column_list} FROM `{table_name}` LIMIT ?",  # noqa: S608
                    (limit,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ExtractionError(f"Failed to sample table {table_name}: {e}") from e

        fields: list[SourceField] = []
        for index, column in enumerate(columns):
            values = [text for row in rows if (text := stringify(row[index])) is not None]
            fields.append(SourceField(name=column, values=values))
        return fields

    def _read_values(self, table_name: str, column: str, limit: int) -> list[str]:
        if not (is_safe_identifier(table_name) and is_safe_identifier(column)):
            raise ExtractionError(f"Unsafe identifier: {table_name!r}.{column!r}")

        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    f"SELECT `{column}` FROM `{table_name}` "  # noqa: S608
                    f"WHERE `{column}` IS NOT NULL LIMIT ?",
                    (limit,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ExtractionError(f"Failed to read {table_name}.{column}: {e}") from e

        return [text for (value,) in rows if (text := stringify(value)) is not None]
