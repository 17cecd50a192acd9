"""Shared CLI infrastructure setup."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from waivern_pii_discovery.configuration import PIIDiscoveryConfiguration
from waivern_pii_discovery.errors import ConfigurationError
from waivern_pii_discovery.service import PIIDiscoveryService

logger = logging.getLogger(__name__)


def build_configuration(
    database_path: str | None = None,
    graph_path: str | None = None,
    **overrides: Any,
) -> PIIDiscoveryConfiguration:
    """Build configuration from CLI options with environment fallback.

    Options left as None fall through to the environment and then to defaults.

    Raises:
        ConfigurationError: If the resulting settings are invalid

    """
    properties: dict[str, Any] = {
        key: value
        for key, value in {
            "database_path": database_path,
            "graph_path": graph_path,
            **overrides,
        }.items()
        if value is not None
    }
    try:
        return PIIDiscoveryConfiguration.from_properties(properties)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def run_with_service[T](
    config: PIIDiscoveryConfiguration,
    operation: Callable[[PIIDiscoveryService], Awaitable[T]],
) -> T:
    """Build the service, run one async operation against it and close it."""

    async def _run() -> T:
        service = PIIDiscoveryService.from_configuration(config)
        try:
            return await operation(service)
        finally:
            await service.close()

    logger.debug(
        f"Using database {config.database_path} and graph {config.graph_path}"
    )
    return asyncio.run(_run())
