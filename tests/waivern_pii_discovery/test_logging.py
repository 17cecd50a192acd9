"""Tests for logging configuration and setup."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml

from waivern_pii_discovery.logging import (
    DEFAULT_CONFIG_PATH,
    LoggingError,
    load_config,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Undo global logging changes made by setup_logging."""
    root = logging.getLogger()
    package_logger = logging.getLogger("waivern_pii_discovery")
    root_level, root_handlers = root.level, list(root.handlers)
    yield
    root.setLevel(root_level)
    root.handlers[:] = root_handlers
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


class TestLoadConfig:
    def test_packaged_config(self) -> None:
        config = load_config(DEFAULT_CONFIG_PATH)

        assert config["version"] == 1
        assert "waivern_pii_discovery" in config["loggers"]
        assert "console" in config["handlers"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(LoggingError, match="Failed to read config file"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("version: [1\n")

        with pytest.raises(LoggingError, match="Failed to parse YAML"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- version\n- 1\n")

        with pytest.raises(LoggingError, match="Invalid configuration format"):
            load_config(path)


class TestSetupLogging:
    def test_default_configuration(self) -> None:
        setup_logging()

        package_logger = logging.getLogger("waivern_pii_discovery")
        assert package_logger.level == logging.INFO
        assert package_logger.propagate is False
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_level_override_applies_to_package_and_root(self) -> None:
        setup_logging(level="debug")

        assert logging.getLogger("waivern_pii_discovery").level == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("pymongo").level == logging.WARNING

    def test_quieter_level_keeps_handler_level(self) -> None:
        setup_logging(level="ERROR")

        package_logger = logging.getLogger("waivern_pii_discovery")
        assert package_logger.level == logging.ERROR
        assert package_logger.handlers[0].level == logging.INFO

    def test_missing_config_falls_back_to_basic(self, tmp_path: Path) -> None:
        setup_logging(level="WARNING", config_path=tmp_path / "absent.yaml")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert root.handlers

    def test_invalid_level_falls_back_to_info(self) -> None:
        setup_logging(level="LOUD")

        assert logging.getLogger().level == logging.INFO

    def test_force_basic(self) -> None:
        setup_logging(level="DEBUG", force_basic=True)

        assert logging.getLogger().level == logging.DEBUG

    def test_creates_log_file_directories(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "pii.log"
        config_path = tmp_path / "logging.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "version": 1,
                    "disable_existing_loggers": False,
                    "handlers": {
                        "file": {
                            "class": "logging.FileHandler",
                            "level": "INFO",
                            "filename": str(log_file),
                        }
                    },
                    "root": {"level": "INFO", "handlers": ["file"]},
                }
            )
        )

        setup_logging(config_path=config_path)
        logging.getLogger("some.module").info("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.parent.is_dir()
        assert "written to file" in log_file.read_text()
        for handler in logging.getLogger().handlers:
            handler.close()
