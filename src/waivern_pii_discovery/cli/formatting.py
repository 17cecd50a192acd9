"""Output formatting for CLI commands."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from waivern_pii_discovery.graph import AssetLink
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    AutoLinkReport,
    ConfirmationRequest,
    DiscoveredEntity,
    LearnedRule,
    ScanReport,
)

logger = logging.getLogger(__name__)
console = Console()


class OutputFormatter:
    """Handles formatting CLI output for different commands."""

    STATUS_STYLES = {
        "auto_classified": "green",
        "needs_confirmation": "yellow",
        "discarded": "dim",
        "PENDING": "yellow",
        "CONFIRMED": "green",
        "REJECTED": "red",
        "SKIPPED": "dim",
        "OVERRIDDEN": "magenta",
    }

    def _styled(self, status: str) -> str:
        style = self.STATUS_STYLES.get(status, "white")
        return f"[{style}]{status}[/{style}]"

    def format_scan_report(self, report: ScanReport, verbose: bool = False) -> None:
        """Print the summary of a classification pass.

        Args:
            report: Report returned by the pipeline
            verbose: Also list every outcome

        """
        summary = (
            f"[bold]Source:[/bold] {report.source}\n"
            f"[bold]Pass:[/bold] {report.pass_id}\n"
            f"[bold]Entities:[/bold] {report.entities_scanned} scanned, "
            f"{len(report.entities_failed)} failed\n"
            f"[bold]Fields:[/bold] {report.fields_scanned} scanned, "
            f"{len(report.failed_fields)} failed\n"
            f"[green]Auto-classified:[/green] {report.auto_classified}  "
            f"[yellow]Awaiting confirmation:[/yellow] {report.needs_confirmation}  "
            f"[dim]Discarded:[/dim] {report.discarded}"
        )
        console.print(Panel(summary, title="🔍 Classification Pass", border_style="blue"))

        if verbose and report.outcomes:
            table = Table(title="Outcomes", show_header=True, header_style="bold magenta")
            table.add_column("Field", style="cyan")
            table.add_column("Type")
            table.add_column("Source")
            table.add_column("Confidence", justify="right")
            table.add_column("Status")
            for outcome in report.outcomes:
                table.add_row(
                    str(outcome.field),
                    outcome.type,
                    outcome.source,
                    f"{outcome.confidence:.2f}",
                    self._styled(outcome.status),
                )
            console.print(table)

        for entity_id in report.entities_failed:
            console.print(f"[red]Failed entity:[/red] {entity_id}")
        for field in report.failed_fields:
            console.print(f"[red]Failed field:[/red] {field}")

    def format_requests(self, requests: list[ConfirmationRequest], title: str) -> None:
        """Print confirmation requests as a table."""
        if not requests:
            console.print(f"[dim]No {title.lower()}.[/dim]")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Field")
        table.add_column("Suggested type")
        table.add_column("Risk")
        table.add_column("Confidence", justify="right")
        table.add_column("Status")
        table.add_column("By")
        for request in requests:
            table.add_row(
                request.id,
                str(request.field),
                request.suggested_type,
                request.risk or "-",
                f"{request.confidence:.2f}",
                self._styled(request.status),
                request.resolved_by or "-",
            )
        console.print(table)

    def format_request(self, request: ConfirmationRequest) -> None:
        """Print a single request after a transition."""
        lines = [
            f"[bold]ID:[/bold] {request.id}",
            f"[bold]Field:[/bold] {request.field}",
            f"[bold]Type:[/bold] {request.suggested_type}",
            f"[bold]Status:[/bold] {self._styled(request.status)}",
        ]
        if request.override_reason:
            lines.append(f"[bold]Override reason:[/bold] {request.override_reason}")
        if request.previous_decision_id:
            lines.append(f"[bold]Previous decision:[/bold] {request.previous_decision_id}")
        console.print(Panel("\n".join(lines), title="✅ Request updated", border_style="green"))

    def _proposal_table(self, proposals: list[AutoLinkProposal], title: str) -> Table:
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Entity", style="cyan")
        table.add_column("Data asset")
        table.add_column("Confidence")
        table.add_column("Method")
        for proposal in proposals:
            table.add_row(
                f"{proposal.entity_name} ({proposal.entity_id})",
                f"{proposal.asset_name} ({proposal.asset_id})",
                proposal.confidence,
                proposal.method,
            )
        return table

    def format_auto_link_report(self, report: AutoLinkReport) -> None:
        """Print proposals and flagged entities of an auto-link pass."""
        console.print(self._proposal_table(report.proposed, "🔗 Auto-link proposals"))

        for entity_id in report.flagged_for_review:
            console.print(f"[yellow]Flagged for review:[/yellow] {entity_id}")
        console.print(
            f"[dim]{len(report.unmatched)} entities had no candidate data asset.[/dim]"
        )

    def format_proposals(self, proposals: list[AutoLinkProposal]) -> None:
        """Print provisional asset links awaiting confirmation."""
        if not proposals:
            console.print("[dim]No provisional asset links awaiting confirmation.[/dim]")
            return
        console.print(self._proposal_table(proposals, "Provisional asset links"))
        console.print("[dim]Confirm one with: waivern-pii link <entity-id> <asset-id>[/dim]")

    def format_rules(self, rules: list[LearnedRule]) -> None:
        """Print learned rules."""
        if not rules:
            console.print("[dim]No learned rules.[/dim]")
            return

        table = Table(title="Learned rules", show_header=True, header_style="bold magenta")
        table.add_column("Rule key", style="cyan")
        table.add_column("PII")
        table.add_column("Type")
        table.add_column("Updated")
        for rule in rules:
            table.add_row(
                rule.field_name,
                "[red]yes[/red]" if rule.is_pii else "[green]no[/green]",
                rule.pii_type,
                rule.updated_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)

    def format_entities(self, entities: list[DiscoveredEntity]) -> None:
        """Print discovered entities with no asset link."""
        if not entities:
            console.print("[green]Every discovered entity is linked to a data asset.[/green]")
            return

        table = Table(title="Unmapped discoveries", show_header=True, header_style="bold magenta")
        table.add_column("Entity ID", style="cyan")
        table.add_column("Kind")
        table.add_column("Source")
        table.add_column("Container")
        for entity in entities:
            table.add_row(
                entity.entity_id,
                entity.kind,
                f"{entity.source_type}/{entity.source_subtype}",
                entity.container,
            )
        console.print(table)

    def format_link(self, link: AssetLink) -> None:
        """Print a confirmed asset link."""
        console.print(
            f"[green]Linked[/green] {link.entity_id} → {link.asset_id} ({link.edge_type})"
        )
