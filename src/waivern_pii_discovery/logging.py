"""Logging configuration for PII discovery.

Applies ``config/logging.yaml`` (shipped inside the package) through
``logging.config.dictConfig``. Any configuration error falls back to basic
console logging.
"""

from __future__ import annotations

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, cast

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "logging.yaml"


class LoggingError(Exception):
    """Exception raised for logging configuration errors."""

    pass


def load_config(config_path: Path) -> dict[str, Any]:
    """Load logging configuration from a YAML file.

    Raises:
        LoggingError: If the file cannot be read or is not a mapping

    """
    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoggingError(f"Failed to parse YAML config {config_path}: {e}") from e
    except OSError as e:
        raise LoggingError(f"Failed to read config file {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise LoggingError(f"Invalid configuration format in {config_path}")
    return cast(dict[str, Any], config)


def _apply_level(config: dict[str, Any], level: str) -> None:
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise LoggingError(f"Invalid log level: {level}")

    for logger_name, logger_config in config.get("loggers", {}).items():
        if logger_name.startswith("waivern_pii_discovery"):
            logger_config["level"] = level.upper()
    if "root" in config:
        config["root"]["level"] = level.upper()

    # Handlers only get more verbose, never quieter than configured.
    for handler_config in config.get("handlers", {}).values():
        if isinstance(handler_config, dict) and "level" in handler_config:
            current = getattr(logging, cast(str, handler_config["level"]), logging.INFO)
            if numeric_level < current:
                handler_config["level"] = level.upper()


def _create_log_directories(config: dict[str, Any]) -> None:
    for handler_config in config.get("handlers", {}).values():
        if isinstance(handler_config, dict) and "filename" in handler_config:
            Path(cast(str, handler_config["filename"])).parent.mkdir(
                parents=True, exist_ok=True
            )


def setup_logging(
    level: str | None = None,
    config_path: Path | str | None = None,
    force_basic: bool = False,
) -> None:
    """Configure logging using dictConfig.

    Args:
        level: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        config_path: Logging configuration file; the packaged default if None
        force_basic: Skip the YAML configuration and use basic console logging

    """
    if force_basic:
        _setup_basic_logging(level or "INFO")
        return

    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    try:
        config = load_config(path)
        if level:
            _apply_level(config, level)
        _create_log_directories(config)
        logging.config.dictConfig(config)
        logging.getLogger(__name__).debug("Logging configured from: %s", path)
    except (LoggingError, KeyError, ValueError, TypeError) as e:
        fallback_level = level or "INFO"
        _setup_basic_logging(fallback_level)
        logging.getLogger(__name__).warning(
            "Failed to configure logging from file (%s), using basic console logging at %s level",
            e,
            fallback_level,
        )


def _setup_basic_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
