"""CLI command implementations for the confirmation workflow."""

from __future__ import annotations

import logging

from waivern_pii_discovery.cli.errors import cli_error_handler
from waivern_pii_discovery.cli.formatting import OutputFormatter
from waivern_pii_discovery.cli.infrastructure import build_configuration, run_with_service
from waivern_pii_discovery.logging import setup_logging
from waivern_pii_discovery.service import PIIDiscoveryService
from waivern_pii_discovery.types import ConfirmationRequest, LearnedRule

logger = logging.getLogger(__name__)


def pending_command(
    database_path: str | None, graph_path: str | None, log_level: str = "INFO"
) -> None:
    """List requests awaiting a human decision."""
    setup_logging(level=log_level)
    with cli_error_handler("pending", "Failed to list pending confirmations"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _pending(service: PIIDiscoveryService) -> list[ConfirmationRequest]:
            return await service.get_pending_confirmations()

        requests = run_with_service(config, _pending)
        OutputFormatter().format_requests(requests, "Pending confirmations")


def resolve_command(  # noqa: PLR0913
    request_id: str,
    decision: str,
    actor: str,
    database_path: str | None,
    graph_path: str | None,
    log_level: str = "INFO",
) -> None:
    """Record a YES, NO or NOT_SURE decision on a pending request."""
    setup_logging(level=log_level)
    with cli_error_handler("resolve", "Failed to resolve request"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _resolve(service: PIIDiscoveryService) -> ConfirmationRequest:
            return await service.resolve(request_id, decision, actor)

        OutputFormatter().format_request(run_with_service(config, _resolve))


def override_command(  # noqa: PLR0913
    request_id: str,
    decision: str,
    reason: str,
    actor: str,
    database_path: str | None,
    graph_path: str | None,
    log_level: str = "INFO",
) -> None:
    """Reverse a confirmed or rejected decision."""
    setup_logging(level=log_level)
    with cli_error_handler("override", "Failed to override decision"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _override(service: PIIDiscoveryService) -> ConfirmationRequest:
            return await service.override(request_id, decision, reason, actor)

        OutputFormatter().format_request(run_with_service(config, _override))


def history_command(
    request_id: str | None,
    database_path: str | None,
    graph_path: str | None,
    log_level: str = "INFO",
) -> None:
    """Show resolved requests, or the decision chain of one request."""
    setup_logging(level=log_level)
    with cli_error_handler("history", "Failed to load decision history"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _history(service: PIIDiscoveryService) -> list[ConfirmationRequest]:
            if request_id:
                return await service.get_decision_chain(request_id)
            return await service.get_resolved_confirmations()

        title = f"Decision chain of {request_id}" if request_id else "Resolved confirmations"
        OutputFormatter().format_requests(run_with_service(config, _history), title)


def rules_command(
    database_path: str | None, graph_path: str | None, log_level: str = "INFO"
) -> None:
    """List the learned rules taught by resolved decisions."""
    setup_logging(level=log_level)
    with cli_error_handler("rules", "Failed to list learned rules"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _rules(service: PIIDiscoveryService) -> list[LearnedRule]:
            return await service.list_learned_rules()

        OutputFormatter().format_rules(run_with_service(config, _rules))
