"""CLI command implementations for data assets and asset links."""

from __future__ import annotations

import logging

from waivern_pii_discovery.cli.errors import cli_error_handler
from waivern_pii_discovery.cli.formatting import OutputFormatter, console
from waivern_pii_discovery.cli.infrastructure import build_configuration, run_with_service
from waivern_pii_discovery.graph import AssetLink
from waivern_pii_discovery.logging import setup_logging
from waivern_pii_discovery.service import PIIDiscoveryService
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    AutoLinkReport,
    DataAsset,
    DiscoveredEntity,
)

logger = logging.getLogger(__name__)


def autolink_command(
    database_path: str | None, graph_path: str | None, log_level: str = "INFO"
) -> None:
    """Propose provisional links for unmapped entities."""
    setup_logging(level=log_level)
    with cli_error_handler("autolink", "Auto-link pass failed"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _autolink(service: PIIDiscoveryService) -> AutoLinkReport:
            return await service.run_auto_link_pass()

        OutputFormatter().format_auto_link_report(run_with_service(config, _autolink))


def link_command(
    entity_id: str,
    asset_id: str,
    database_path: str | None,
    graph_path: str | None,
    log_level: str = "INFO",
) -> None:
    """Confirm the link between an entity and a data asset."""
    setup_logging(level=log_level)
    with cli_error_handler("link", "Failed to link entity"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _link(service: PIIDiscoveryService) -> AssetLink:
            return await service.link_entity_to_asset(entity_id, asset_id)

        OutputFormatter().format_link(run_with_service(config, _link))


def add_asset_command(  # noqa: PLR0913
    asset_id: str,
    name: str,
    categories: list[str] | None,
    database_path: str | None,
    graph_path: str | None,
    log_level: str = "INFO",
) -> None:
    """Declare or update a data asset."""
    setup_logging(level=log_level)
    with cli_error_handler("add-asset", "Failed to register data asset"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)
        asset = DataAsset(
            asset_id=asset_id, name=name, personal_data_categories=tuple(categories or ())
        )

        async def _register(service: PIIDiscoveryService) -> None:
            await service.register_data_asset(asset)

        run_with_service(config, _register)
        console.print(f"[green]Registered data asset[/green] {asset.asset_id} ({asset.name})")


def unmapped_command(
    database_path: str | None, graph_path: str | None, log_level: str = "INFO"
) -> None:
    """List discovered entities with no asset link."""
    setup_logging(level=log_level)
    with cli_error_handler("unmapped", "Failed to list unmapped discoveries"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _unmapped(service: PIIDiscoveryService) -> list[DiscoveredEntity]:
            return await service.list_unmapped_discoveries()

        OutputFormatter().format_entities(run_with_service(config, _unmapped))


def proposals_command(
    database_path: str | None, graph_path: str | None, log_level: str = "INFO"
) -> None:
    """List provisional asset links awaiting confirmation."""
    setup_logging(level=log_level)
    with cli_error_handler("proposals", "Failed to list asset link proposals"):
        config = build_configuration(database_path, graph_path, llm_enabled=False)

        async def _proposals(service: PIIDiscoveryService) -> list[AutoLinkProposal]:
            return await service.list_asset_link_proposals()

        OutputFormatter().format_proposals(run_with_service(config, _proposals))
