"""Configuration for the PII discovery service.

Configuration objects support both explicit instantiation and environment
variable fallback through ``from_properties``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Final, Self, override

from pydantic import BaseModel, ConfigDict, Field, field_validator

IN_MEMORY_GRAPH: Final[str] = "memory"

_TRUTHY: Final = ("true", "1", "yes", "on")


class BaseServiceConfiguration(BaseModel):
    """Base class for service configurations.

    Features:
        - Pydantic validation for type safety
        - Immutable (frozen) for configuration integrity
        - from_properties() factory method for dictionary-based creation
        - Strict validation (no extra fields allowed)

    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
    )

    @classmethod
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration from a properties dictionary.

        Subclasses override this method to add environment variable fallback.

        Args:
            properties: Dictionary containing configuration properties

        Returns:
            Validated configuration instance

        Raises:
            ValidationError: If properties are invalid or missing required fields

        """
        return cls.model_validate(properties)


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


class PIIDiscoveryConfiguration(BaseServiceConfiguration):
    """Configuration for the discovery service with environment fallback.

    Attributes:
        database_path: SQLite file holding confirmation requests and learned
            rules (``:memory:`` for an in-process database)
        graph_path: JSON file backing the provenance graph, or ``memory`` for
            the in-memory graph store
        sample_size: Rows sampled per field
        max_concurrency: Fields classified concurrently
        llm_enabled: Whether to use the LLM-backed classifier at all

    Example:
        ```python
        # Zero-config (reads from environment)
        config = PIIDiscoveryConfiguration.from_properties({})

        # Explicit properties override environment
        config = PIIDiscoveryConfiguration.from_properties({
            "database_path": ":memory:",
            "graph_path": "memory",
        })
        ```

    """

    database_path: str = Field(
        default=".waivern/pii_discovery.db",
        description="SQLite database path",
    )
    graph_path: str = Field(
        default=".waivern/provenance_graph.json",
        description="Provenance graph JSON file, or 'memory'",
    )
    sample_size: int = Field(default=10, ge=1, le=1000)
    max_concurrency: int = Field(default=1, ge=1, le=64)
    llm_enabled: bool = Field(default=True)

    @field_validator("database_path", "graph_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate that a path setting is not empty."""
        if not v or not v.strip():
            raise ValueError("Path cannot be empty")
        return v.strip()

    @classmethod
    @override
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration from properties with environment fallback.

        Environment variables used:
        - PII_DISCOVERY_DATABASE_PATH
        - PII_DISCOVERY_GRAPH_PATH
        - PII_DISCOVERY_SAMPLE_SIZE
        - PII_DISCOVERY_MAX_CONCURRENCY
        - PII_DISCOVERY_LLM_ENABLED ("true"/"1"/"yes")

        Args:
            properties: Configuration properties dictionary

        Returns:
            Validated configuration instance

        Raises:
            ValidationError: If configuration is invalid

        """
        config_data = properties.copy()

        env_map = {
            "database_path": "PII_DISCOVERY_DATABASE_PATH",
            "graph_path": "PII_DISCOVERY_GRAPH_PATH",
            "sample_size": "PII_DISCOVERY_SAMPLE_SIZE",
            "max_concurrency": "PII_DISCOVERY_MAX_CONCURRENCY",
        }
        for key, env_var in env_map.items():
            if key not in config_data:
                value = os.getenv(env_var)
                if value:
                    config_data[key] = value

        if "llm_enabled" not in config_data:
            config_data["llm_enabled"] = env_flag("PII_DISCOVERY_LLM_ENABLED", True)

        return cls.model_validate(config_data)

    @property
    def uses_in_memory_graph(self) -> bool:
        """Whether the provenance graph lives only in memory."""
        return self.graph_path.lower() == IN_MEMORY_GRAPH

    def ensure_directories(self) -> None:
        """Create parent directories for file-backed stores."""
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        if not self.uses_in_memory_graph:
            Path(self.graph_path).parent.mkdir(parents=True, exist_ok=True)
