"""CLI command implementations for PII discovery."""

from waivern_pii_discovery.cli.confirm import (
    history_command,
    override_command,
    pending_command,
    resolve_command,
    rules_command,
)
from waivern_pii_discovery.cli.errors import CLIError
from waivern_pii_discovery.cli.governance import (
    add_asset_command,
    autolink_command,
    link_command,
    proposals_command,
    unmapped_command,
)
from waivern_pii_discovery.cli.scan import (
    scan_files_command,
    scan_mongodb_command,
    scan_sqlite_command,
)

__all__ = [
    "CLIError",
    "add_asset_command",
    "autolink_command",
    "history_command",
    "link_command",
    "override_command",
    "pending_command",
    "proposals_command",
    "resolve_command",
    "rules_command",
    "scan_files_command",
    "scan_mongodb_command",
    "scan_sqlite_command",
    "unmapped_command",
]
