"""Unit tests for logging configuration."""

import logging
from pathlib import Path

import pytest

from ms365_mcp.logging_config import configure_logging, logger


@pytest.fixture
def clean_logger():
    """Detach and restore the package logger's handlers around a test."""
    saved = logger.handlers[:]
    level = logger.level
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved
    logger.setLevel(level)


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_should_write_log_files(self, clean_logger, tmp_path: Path) -> None:
        """Verify file handlers are created and no console output by default."""
        configure_logging(log_dir=tmp_path)

        assert (tmp_path / "mcp-server.log").exists()
        assert (tmp_path / "error.log").exists()
        assert not any(type(h) is logging.StreamHandler for h in clean_logger.handlers)

    def test_should_log_to_stderr_when_verbose(self, clean_logger, tmp_path: Path) -> None:
        """Verify --verbose adds a console handler."""
        configure_logging(verbose=True, log_dir=tmp_path)

        assert any(type(h) is logging.StreamHandler for h in clean_logger.handlers)

    def test_should_stay_silent_when_requested(
        self, clean_logger, tmp_path: Path, monkeypatch
    ) -> None:
        """Verify SILENT=true suppresses console output even when verbose."""
        monkeypatch.setenv("SILENT", "true")

        configure_logging(verbose=True, log_dir=tmp_path)

        assert not any(type(h) is logging.StreamHandler for h in clean_logger.handlers)

    def test_should_honour_log_level(self, clean_logger, tmp_path: Path, monkeypatch) -> None:
        """Verify LOG_LEVEL sets the package logger level."""
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging(log_dir=tmp_path)

        assert clean_logger.level == logging.DEBUG

    def test_should_not_duplicate_handlers(self, clean_logger, tmp_path: Path) -> None:
        """Verify repeated configuration is a no-op."""
        configure_logging(log_dir=tmp_path)
        count = len(clean_logger.handlers)

        configure_logging(log_dir=tmp_path)

        assert len(clean_logger.handlers) == count
