"""Command-line interface for PII discovery.

Commands cover:
- Classification passes over SQLite, MongoDB and local files
- The confirmation workflow (pending, resolve, override, history)
- Data assets and asset links (add-asset, link, autolink, unmapped)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from waivern_pii_discovery.cli import (
    add_asset_command,
    autolink_command,
    history_command,
    link_command,
    override_command,
    pending_command,
    proposals_command,
    resolve_command,
    rules_command,
    scan_files_command,
    scan_mongodb_command,
    scan_sqlite_command,
    unmapped_command,
)

# Values already set in the environment take precedence over .env
load_dotenv()

app = typer.Typer(name="waivern-pii", help="Discover, confirm and govern PII.")

DatabaseOption = Annotated[
    str | None,
    typer.Option(
        "--database",
        help="SQLite file holding confirmation requests and learned rules",
        rich_help_panel="Storage",
        show_default=".waivern/pii_discovery.db",
    ),
]
GraphOption = Annotated[
    str | None,
    typer.Option(
        "--graph",
        help="Provenance graph JSON file, or 'memory'",
        rich_help_panel="Storage",
        show_default=".waivern/provenance_graph.json",
    ),
]
LogLevelOption = Annotated[
    str,
    typer.Option(
        "--log-level",
        help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        case_sensitive=False,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="List every outcome and log at DEBUG level"),
]
SampleSizeOption = Annotated[
    int | None,
    typer.Option("--sample-size", help="Rows sampled per field", min=1, show_default="10"),
]
ActorOption = Annotated[
    str, typer.Option("--actor", help="Who is making the decision")
]


@app.command(name="scan-sqlite")
def scan_sqlite(  # noqa: PLR0913 - CLI entry point with many options
    source: Annotated[
        Path,
        typer.Argument(
            help="SQLite database file to scan",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    database: DatabaseOption = None,
    graph: GraphOption = None,
    sample_size: SampleSizeOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Classify every column of a SQLite database.

    Example:
        waivern-pii scan-sqlite customers.db --sample-size 20 -v

    """
    scan_sqlite_command(source, database, graph, sample_size, verbose, log_level)


@app.command(name="scan-mongodb")
def scan_mongodb(  # noqa: PLR0913 - CLI entry point with many options
    uri: Annotated[str, typer.Argument(help="MongoDB connection URI")],
    mongo_database: Annotated[str, typer.Argument(help="Database name to scan")],
    database: DatabaseOption = None,
    graph: GraphOption = None,
    sample_size: SampleSizeOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Classify every document key of a MongoDB database."""
    scan_mongodb_command(
        uri, mongo_database, database, graph, sample_size, verbose, log_level
    )


@app.command(name="scan-files")
def scan_files(  # noqa: PLR0913 - CLI entry point with many options
    root: Annotated[
        Path, typer.Argument(help="Directory or file to scan", exists=True, readable=True)
    ],
    include: Annotated[
        list[str] | None,
        typer.Option("--include", "-i", help="Glob pattern a file must match (repeatable)"),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", "-e", help="Glob pattern to skip (repeatable)"),
    ] = None,
    max_files: Annotated[
        int, typer.Option("--max-files", help="Maximum number of files to scan", min=1)
    ] = 1000,
    database: DatabaseOption = None,
    graph: GraphOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Classify fields and text segments of local files.

    Example:
        waivern-pii scan-files ./exports --include "**/*.csv" --exclude "tmp/**"

    """
    scan_files_command(
        root, include, exclude, max_files, database, graph, verbose, log_level
    )


@app.command()
def pending(
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List confirmation requests awaiting a decision."""
    pending_command(database, graph, log_level)


@app.command()
def resolve(  # noqa: PLR0913 - CLI entry point with many options
    request_id: Annotated[str, typer.Argument(help="Confirmation request ID")],
    decision: Annotated[str, typer.Argument(help="YES, NO or NOT_SURE")],
    actor: ActorOption = "cli",
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Resolve a pending confirmation request."""
    resolve_command(request_id, decision, actor, database, graph, log_level)


@app.command()
def override(  # noqa: PLR0913 - CLI entry point with many options
    request_id: Annotated[str, typer.Argument(help="Confirmation request ID")],
    decision: Annotated[str, typer.Argument(help="YES or NO")],
    reason: Annotated[str, typer.Option("--reason", "-r", help="Why the decision changes")],
    actor: ActorOption = "cli",
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Reverse a confirmed or rejected decision, keeping its history."""
    override_command(request_id, decision, reason, actor, database, graph, log_level)


@app.command()
def history(
    request_id: Annotated[
        str | None,
        typer.Argument(help="Show the decision chain of this request instead"),
    ] = None,
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Show resolved confirmations or one request's decision chain."""
    history_command(request_id, database, graph, log_level)


@app.command()
def rules(
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List learned rules taught by resolved decisions."""
    rules_command(database, graph, log_level)


@app.command()
def autolink(
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Propose provisional data asset links for unmapped discoveries."""
    autolink_command(database, graph, log_level)


@app.command()
def proposals(
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List provisional data asset links awaiting confirmation."""
    proposals_command(database, graph, log_level)


@app.command()
def link(
    entity_id: Annotated[str, typer.Argument(help="Discovered entity ID")],
    asset_id: Annotated[str, typer.Argument(help="Data asset ID")],
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Confirm a link between a discovered entity and a data asset."""
    link_command(entity_id, asset_id, database, graph, log_level)


@app.command(name="add-asset")
def add_asset(  # noqa: PLR0913 - CLI entry point with many options
    asset_id: Annotated[str, typer.Argument(help="Data asset ID")],
    name: Annotated[str, typer.Argument(help="Data asset name")],
    category: Annotated[
        list[str] | None,
        typer.Option(
            "--category", "-c", help="Declared personal data type, e.g. email (repeatable)"
        ),
    ] = None,
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Declare a data asset and the personal data it holds."""
    add_asset_command(asset_id, name, category, database, graph, log_level)


@app.command()
def unmapped(
    database: DatabaseOption = None,
    graph: GraphOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List discovered entities with no data asset link."""
    unmapped_command(database, graph, log_level)


if __name__ == "__main__":
    app()
