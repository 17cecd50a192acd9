"""Source reader contract shared by every storage backend.

The classification pipeline depends only on ``SourceReader``; each backend
(SQLite, MongoDB, local files) is one implementation of it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from waivern_pii_discovery.types import DiscoveredEntity


class SourceField(BaseModel):
    """A field of a discovered entity with its sampled values.

    For free-text documents each text segment is a field whose single value
    is the segment text and ``text_segment`` is set.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    values: list[str] = Field(default_factory=list)
    text_segment: bool = False


@runtime_checkable
class SourceReader(Protocol):
    """Minimal contract for reading entities and sampled values from a source."""

    @property
    def description(self) -> str:
        """Human-readable description of the source, used in scan reports."""
        ...

    async def list_entities(self) -> list[DiscoveredEntity]:
        """List the tables, collections or files held by the source."""
        ...

    async def sample_fields(self, entity: DiscoveredEntity, limit: int) -> list[SourceField]:
        """Return the entity's fields with at most ``limit`` sampled values each."""
        ...

    async def read_values(
        self, entity: DiscoveredEntity, field_name: str, limit: int
    ) -> list[str]:
        """Return at most ``limit`` non-empty values of one field."""
        ...


def stringify(value: Any) -> str | None:
    """Convert a raw scalar into sample text, or None when it carries nothing."""
    if value is None or isinstance(value, bytes | bytearray | memoryview):
        return None
    text = str(value).strip()
    return text or None


def flatten_document(document: Mapping[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(dotted_key, value)`` pairs for every scalar in a nested document.

    Lists of scalars yield one pair per element under the list's key; lists of
    documents are flattened under the list's key as well.
    """
    for key, value in document.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from flatten_document(value, dotted)
        elif isinstance(value, list | tuple):
            for item in value:
                if isinstance(item, Mapping):
                    yield from flatten_document(item, dotted)
                elif (text := stringify(item)) is not None:
                    yield dotted, text
        elif (text := stringify(value)) is not None:
            yield dotted, text


def collect_fields(
    records: list[Mapping[str, Any]],
    limit: int,
    skip_keys: frozenset[str] = frozenset(),
) -> list[SourceField]:
    """Group flattened record values by key, keeping at most ``limit`` per key.

    Keys keep the order in which they are first seen.
    """
    values_by_key: dict[str, list[str]] = {}
    for record in records:
        for key, text in flatten_document(record):
            if key in skip_keys:
                continue
            bucket = values_by_key.setdefault(key, [])
            if len(bucket) < limit:
                bucket.append(text)
    return [SourceField(name=key, values=values) for key, values in values_by_key.items()]
