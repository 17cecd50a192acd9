"""Local filesystem source reader."""

from __future__ import annotations

import logging
from pathlib import Path

import aiofiles
import pathspec

from waivern_pii_discovery.errors import ExtractionError, SourceConfigError
from waivern_pii_discovery.sources.base import SourceField
from waivern_pii_discovery.sources.extraction import TextExtractor
from waivern_pii_discovery.types import DiscoveredEntity, EntityKind, SourceType

logger = logging.getLogger(__name__)

SOURCE_SUBTYPE = "local"


class LocalFileSource:
    """Reads files under a directory (or a single file) as discovered entities.

    Include and exclude patterns use Git-style wildmatch semantics relative to
    the root, so ``**/*.csv`` matches both root-level and nested CSV files.
    Include patterns are applied first, then exclude patterns.
    """

    def __init__(  # noqa: PLR0913
        self,
        root: Path,
        extractor: TextExtractor | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
        max_files: int = 1000,
        max_file_size: int = 10 * 1024 * 1024,
    ) -> None:
        """Initialise the reader.

        Args:
            root: Directory to walk, or a single file
            extractor: Text extractor (a default one is created if None)
            include_patterns: Glob patterns a file must match
            exclude_patterns: Glob patterns a file must not match
            max_files: Maximum number of files to list
            max_file_size: Files larger than this many bytes are skipped

        Raises:
            SourceConfigError: If the root does not exist or limits are invalid

        """
        if not root.exists():
            raise SourceConfigError(f"Path does not exist: {root}")
        if max_files <= 0 or max_file_size <= 0:
            raise SourceConfigError("max_files and max_file_size must be positive")

        self._root = root.resolve()
        self._extractor = extractor or TextExtractor()
        self._include_spec = (
            pathspec.PathSpec.from_lines("gitwildmatch", include_patterns)
            if include_patterns is not None
            else None
        )
        self._exclude_spec = (
            pathspec.PathSpec.from_lines("gitwildmatch", exclude_patterns)
            if exclude_patterns is not None
            else None
        )
        self._max_files = max_files
        self._max_file_size = max_file_size

    @property
    def description(self) -> str:
        return f"files:{self._root}"

    def _should_include(self, path: Path) -> bool:
        relative_path = path.relative_to(self._root).as_posix()
        if self._include_spec is not None and not self._include_spec.match_file(relative_path):
            return False
        if self._exclude_spec is not None and self._exclude_spec.match_file(relative_path):
            return False
        return True

    def collect_files(self) -> list[Path]:
        """Collect the files to scan, honouring patterns and limits."""
        if self._root.is_file():
            return [self._root]

        files: list[Path] = []
        for file_path in sorted(self._root.rglob("*")):
            if not file_path.is_file():
                continue
            if not self._should_include(file_path):
                logger.debug(f"Filtering file: {file_path}")
                continue
            if file_path.stat().st_size > self._max_file_size:
                logger.warning(
                    f"Skipping {file_path}: larger than {self._max_file_size} bytes"
                )
                continue

            files.append(file_path)
            if len(files) >= self._max_files:
                logger.warning(
                    f"Reached maximum file limit ({self._max_files}), stopping collection"
                )
                break

        logger.info(f"Collected {len(files)} files from {self._root}")
        return files

    async def list_entities(self) -> list[DiscoveredEntity]:
        container = str(self._root.parent if self._root.is_file() else self._root)
        return [
            DiscoveredEntity(
                entity_id=path.as_posix(),
                name=path.name,
                kind=EntityKind.FILE,
                source_type=SourceType.FILE,
                source_subtype=SOURCE_SUBTYPE,
                container=container,
            )
            for path in self.collect_files()
        ]

    async def sample_fields(self, entity: DiscoveredEntity, limit: int) -> list[SourceField]:
        content = await self._read_bytes(Path(entity.entity_id))
        return self._extractor.extract(content, entity.name, sample_size=limit).fields

    async def read_values(
        self, entity: DiscoveredEntity, field_name: str, limit: int
    ) -> list[str]:
        for field in await self.sample_fields(entity, limit):
            if field.name == field_name:
                return field.values[:limit]
        return []

    async def _read_bytes(self, path: Path) -> bytes:
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read(self._max_file_size + 1)
        except OSError as e:
            raise ExtractionError(f"Failed to read {path}: {e}") from e
