"""CLI command implementations for classification passes."""

from __future__ import annotations

import logging
from pathlib import Path

from waivern_pii_discovery.cli.errors import cli_error_handler
from waivern_pii_discovery.cli.formatting import OutputFormatter
from waivern_pii_discovery.cli.infrastructure import build_configuration, run_with_service
from waivern_pii_discovery.logging import setup_logging
from waivern_pii_discovery.service import PIIDiscoveryService
from waivern_pii_discovery.sources import MongoDBSource, SQLiteSource
from waivern_pii_discovery.types import ScanReport

logger = logging.getLogger(__name__)


def scan_sqlite_command(  # noqa: PLR0913
    source_path: Path,
    database_path: str | None,
    graph_path: str | None,
    sample_size: int | None,
    verbose: bool = False,
    log_level: str = "INFO",
) -> None:
    """Classify every column of every table in a SQLite file."""
    setup_logging(level="DEBUG" if verbose else log_level)
    with cli_error_handler("scan-sqlite", "Scan failed"):
        config = build_configuration(database_path, graph_path, sample_size=sample_size)
        source = SQLiteSource(source_path)

        async def _scan(service: PIIDiscoveryService) -> ScanReport:
            return await service.run_classification_pass(source)

        report = run_with_service(config, _scan)
        OutputFormatter().format_scan_report(report, verbose)


def scan_mongodb_command(  # noqa: PLR0913
    uri: str,
    database: str,
    database_path: str | None,
    graph_path: str | None,
    sample_size: int | None,
    verbose: bool = False,
    log_level: str = "INFO",
) -> None:
    """Classify every key of every collection in a MongoDB database."""
    setup_logging(level="DEBUG" if verbose else log_level)
    with cli_error_handler("scan-mongodb", "Scan failed"):
        config = build_configuration(database_path, graph_path, sample_size=sample_size)

        async def _scan(service: PIIDiscoveryService) -> ScanReport:
            source = MongoDBSource(uri, database)
            try:
                return await service.run_classification_pass(source)
            finally:
                source.close()

        report = run_with_service(config, _scan)
        OutputFormatter().format_scan_report(report, verbose)


def scan_files_command(  # noqa: PLR0913
    root: Path,
    include: list[str] | None,
    exclude: list[str] | None,
    max_files: int,
    database_path: str | None,
    graph_path: str | None,
    verbose: bool = False,
    log_level: str = "INFO",
) -> None:
    """Classify fields and text segments of local files."""
    setup_logging(level="DEBUG" if verbose else log_level)
    with cli_error_handler("scan-files", "Scan failed"):
        config = build_configuration(database_path, graph_path)

        async def _scan(service: PIIDiscoveryService) -> ScanReport:
            source = service.file_source(
                root,
                include_patterns=include or None,
                exclude_patterns=exclude or None,
                max_files=max_files,
            )
            return await service.run_classification_pass(source)

        report = run_with_service(config, _scan)
        OutputFormatter().format_scan_report(report, verbose)
