"""Error display and exit codes for CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import override

import typer
from rich.console import Console
from rich.panel import Panel

from waivern_pii_discovery.errors import (
    ConfigurationError,
    ConfirmationNotFoundError,
    GraphEntityNotFoundError,
    PIIDiscoveryError,
    StoreError,
)

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class CLIError(Exception):
    """A failed command together with the error that caused it."""

    def __init__(self, command: str, cause: Exception) -> None:
        super().__init__(str(cause))
        self.command = command
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self.cause).__name__

    @override
    def __str__(self) -> str:
        return f"waivern-pii {self.command}: {super().__str__()}"


def hint_for(error: Exception) -> str | None:
    """Return a follow-up suggestion for errors the user can fix."""
    if isinstance(error, ConfigurationError):
        return "Check --database/--graph and the PII_DISCOVERY_* environment variables."
    if isinstance(error, ConfirmationNotFoundError):
        return "Run 'waivern-pii pending' or 'waivern-pii history' to list request IDs."
    if isinstance(error, GraphEntityNotFoundError):
        return "Run 'waivern-pii unmapped' for entity IDs; declare assets with 'add-asset'."
    if isinstance(error, StoreError):
        return "Is another process holding the database? Retry once it finishes."
    return None


def report_error(error: CLIError, title: str) -> None:
    body = f"[red]{error}[/red]"
    hint = hint_for(error.cause)
    if hint:
        body += f"\n[dim]{hint}[/dim]"
    console.print(Panel(body, title=f"❌ {title}", subtitle=error.kind, border_style="red"))


@contextmanager
def cli_error_handler(command: str, title: str) -> Generator[None]:
    """Turn failures inside a command into an error panel and exit code 1.

    Known discovery errors are reported without a traceback; anything else is
    logged with one.
    """
    try:
        yield
    except PIIDiscoveryError as e:
        error = CLIError(command, e)
        logger.error("%s: %s", title, error)
        report_error(error, title)
        raise typer.Exit(1) from e
    except Exception as e:
        error = CLIError(command, e)
        logger.exception("Unexpected failure in '%s'", command)
        report_error(error, title)
        raise typer.Exit(1) from e
