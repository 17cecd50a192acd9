"""Text and value extraction from raw file content.

Structured formats yield named fields with sampled values:

- CSV: one field per header
- JSON / JSON Lines: one field per (dotted) key of the records

Plain text formats yield free-text segments of bounded size. Binary office
formats need a dedicated converter and are rejected with ``ExtractionError``.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import PurePath
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field

from waivern_pii_discovery.errors import ExtractionError
from waivern_pii_discovery.sources.base import SourceField, collect_fields

logger = logging.getLogger(__name__)

UNSUPPORTED_BINARY_SUFFIXES: Final = frozenset(
    {".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods"}
)
TEXT_SUFFIXES: Final = frozenset(
    {
        ".txt",
        ".text",
        ".md",
        ".log",
        ".xml",
        ".html",
        ".htm",
        ".yaml",
        ".yml",
        ".ini",
        ".cfg",
        ".sql",
        ".eml",
    }
)
JSON_LINES_SUFFIXES: Final = frozenset({".jsonl", ".ndjson"})


class ExtractedContent(BaseModel):
    """Fields and text segments extracted from one file."""

    model_config = ConfigDict(frozen=True)

    fields: list[SourceField] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Whether nothing was extracted."""
        return not self.fields


class TextExtractor:
    """Converts raw file bytes into classifiable fields."""

    def __init__(
        self,
        max_segment_chars: int = 3000,
        max_segments: int = 20,
        encoding: str = "utf-8",
    ) -> None:
        """Initialise the extractor.

        Args:
            max_segment_chars: Maximum characters per text segment
            max_segments: Maximum number of text segments per file
            encoding: Text encoding of input files

        """
        self._max_segment_chars = max_segment_chars
        self._max_segments = max_segments
        self._encoding = encoding

    def extract(self, content: bytes, filename: str, sample_size: int = 10) -> ExtractedContent:
        """Extract fields from file content.

        Args:
            content: Raw file bytes
            filename: File name, used to pick the format
            sample_size: Maximum values kept per structured field

        Returns:
            Extracted fields

        Raises:
            ExtractionError: If the format is unsupported or the content is
                not valid for its format

        """
        suffix = PurePath(filename).suffix.lower()

        if suffix in UNSUPPORTED_BINARY_SUFFIXES:
            raise ExtractionError(
                f"Unsupported binary format '{suffix}' for {filename}; "
                "a document converter is required"
            )

        text = self._decode(content, filename)

        if suffix == ".csv":
            return ExtractedContent(fields=self._extract_csv(text, filename, sample_size))
        if suffix == ".json":
            return ExtractedContent(fields=self._extract_json(text, filename, sample_size))
        if suffix in JSON_LINES_SUFFIXES:
            return ExtractedContent(
                fields=self._extract_json_lines(text, filename, sample_size)
            )
        if suffix not in TEXT_SUFFIXES:
            logger.debug(f"Treating {filename} as plain text")
        return ExtractedContent(fields=self.segment_text(text))

    def segment_text(self, text: str) -> list[SourceField]:
        """Split free text into bounded segments.

        Paragraphs are packed into segments of at most ``max_segment_chars``
        characters; overlong paragraphs are cut. At most ``max_segments``
        segments are returned.
        """
        segments: list[str] = []
        current = ""

        for paragraph in (p.strip() for p in text.split("\n\n")):
            if not paragraph:
                continue
            while len(paragraph) > self._max_segment_chars:
                if current:
                    segments.append(current)
                    current = ""
                segments.append(paragraph[: self._max_segment_chars])
                paragraph = paragraph[self._max_segment_chars :]
            candidate = f"{current}\n\n{paragraph}" if current else paragraph
            if len(candidate) > self._max_segment_chars:
                segments.append(current)
                current = paragraph
            else:
                current = candidate
        if current:
            segments.append(current)

        if len(segments) > self._max_segments:
            logger.debug(
                f"Truncating {len(segments)} text segments to {self._max_segments}"
            )
        return [
            SourceField(name=f"segment_{index}", values=[segment], text_segment=True)
            for index, segment in enumerate(segments[: self._max_segments], start=1)
        ]

    def _decode(self, content: bytes, filename: str) -> str:
        try:
            return content.decode(self._encoding)
        except UnicodeDecodeError as e:
            raise ExtractionError(f"{filename} is not {self._encoding} text: {e}") from e

    def _extract_csv(self, text: str, filename: str, sample_size: int) -> list[SourceField]:
        try:
            reader = csv.DictReader(io.StringIO(text))
            rows: list[dict[str, Any]] = []
            for row in reader:
                rows.append({key: value for key, value in row.items() if key})
                if len(rows) >= sample_size:
                    break
        except csv.Error as e:
            raise ExtractionError(f"Invalid CSV in {filename}: {e}") from e
        return collect_fields(rows, sample_size)

    def _extract_json(self, text: str, filename: str, sample_size: int) -> list[SourceField]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Invalid JSON in {filename}: {e}") from e

        if isinstance(data, dict):
            data = [data]
        if isinstance(data, list) and all(isinstance(item, dict) for item in data):
            return collect_fields(data[:sample_size], sample_size)

        # Arrays of scalars or mixed content carry no field names.
        return self.segment_text(json.dumps(data, ensure_ascii=False, indent=1))

    def _extract_json_lines(
        self, text: str, filename: str, sample_size: int
    ) -> list[SourceField]:
        records: list[dict[str, Any]] = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ExtractionError(
                    f"Invalid JSON on line {line_number} of {filename}: {e}"
                ) from e
            if isinstance(record, dict):
                records.append(record)
            if len(records) >= sample_size:
                break
        return collect_fields(records, sample_size)
