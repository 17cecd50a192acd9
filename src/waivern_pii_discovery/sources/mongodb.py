"""MongoDB source reader."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from waivern_pii_discovery.errors import ExtractionError, SourceConfigError
from waivern_pii_discovery.sources.base import (
    SourceField,
    collect_fields,
    flatten_document,
)
from waivern_pii_discovery.types import DiscoveredEntity, EntityKind, SourceType

logger = logging.getLogger(__name__)

type MongoDocument = dict[str, Any]

SOURCE_SUBTYPE = "mongodb"

# Object ids identify documents, not people.
_SKIPPED_KEYS = frozenset({"_id"})


class MongoDBSource:
    """Reads collections and sampled document values from MongoDB.

    Nested documents are flattened with dotted keys (``address.city``), so
    each leaf key becomes a field.
    """

    def __init__(
        self,
        uri: str,
        database: str,
        client: MongoClient[MongoDocument] | None = None,
    ) -> None:
        """Initialise the reader.

        Args:
            uri: MongoDB connection URI
            database: Database name to read
            client: Existing client to use instead of connecting to ``uri``

        Raises:
            SourceConfigError: If the URI or database name is empty

        """
        if not uri.strip() and client is None:
            raise SourceConfigError("MongoDB uri is required")
        if not database.strip():
            raise SourceConfigError("MongoDB database is required")

        self._uri = uri.strip()
        self._database_name = database.strip()
        self._client: MongoClient[MongoDocument] = client or MongoClient(
            self._uri, serverSelectionTimeoutMS=5000
        )

    @property
    def description(self) -> str:
        return f"mongodb:{self._database_name}"

    async def list_entities(self) -> list[DiscoveredEntity]:
        return await asyncio.to_thread(self._list_entities)

    async def sample_fields(self, entity: DiscoveredEntity, limit: int) -> list[SourceField]:
        return await asyncio.to_thread(self._sample_fields, entity.name, limit)

    async def read_values(
        self, entity: DiscoveredEntity, field_name: str, limit: int
    ) -> list[str]:
        return await asyncio.to_thread(self._read_values, entity.name, field_name, limit)

    def close(self) -> None:
        """Close the client connection."""
        self._client.close()

    def _list_entities(self) -> list[DiscoveredEntity]:
        try:
            names = sorted(self._client[self._database_name].list_collection_names())
        except PyMongoError as e:
            raise ExtractionError(
                f"Failed to list collections in {self._database_name}: {e}"
            ) from e

        return [
            DiscoveredEntity(
                entity_id=f"{self._database_name}/{name}",
                name=name,
                kind=EntityKind.TABLE,
                source_type=SourceType.DOCUMENT_STORE,
                source_subtype=SOURCE_SUBTYPE,
                container=self._database_name,
            )
            for name in names
            if not name.startswith("system.")
        ]

    def _sample_fields(self, collection_name: str, limit: int) -> list[SourceField]:
        try:
            documents: list[Mapping[str, Any]] = list(
                self._client[self._database_name][collection_name].find().limit(limit)
            )
        except PyMongoError as e:
            raise ExtractionError(f"Failed to sample collection {collection_name}: {e}") from e

        return collect_fields(documents, limit, skip_keys=_SKIPPED_KEYS)

    def _read_values(self, collection_name: str, field_name: str, limit: int) -> list[str]:
        try:
            documents: list[Mapping[str, Any]] = list(
                self._client[self._database_name][collection_name]
                .find({field_name: {"$exists": True, "$ne": None}}, {field_name: 1})
                .limit(limit)
            )
        except PyMongoError as e:
            raise ExtractionError(
                f"Failed to read {collection_name}.{field_name}: {e}"
            ) from e

        values = [
            text
            for document in documents
            for key, text in flatten_document(document)
            if key == field_name
        ]
        return values[:limit]
