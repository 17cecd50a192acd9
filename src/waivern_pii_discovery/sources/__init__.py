"""Source readers and text extraction."""

from waivern_pii_discovery.sources.base import SourceField, SourceReader
from waivern_pii_discovery.sources.extraction import ExtractedContent, TextExtractor
from waivern_pii_discovery.sources.filesystem import LocalFileSource
from waivern_pii_discovery.sources.mongodb import MongoDBSource
from waivern_pii_discovery.sources.sqlite import SQLiteSource

__all__ = [
    "ExtractedContent",
    "LocalFileSource",
    "MongoDBSource",
    "SQLiteSource",
    "SourceField",
    "SourceReader",
    "TextExtractor",
]
