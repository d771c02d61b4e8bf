"""Logging configuration for ms365-mcp.

Logs go to files under ``logs/`` (everything at the configured level to
mcp-server.log, errors also to error.log). Console output is opt-in via
``--verbose`` and always on stderr, since stdout carries the MCP protocol.

Environment Variables:
    LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR; default: INFO).
    SILENT: Set to "true" to suppress console output even when verbose.
"""

import logging
import os
import sys
from pathlib import Path

# Create logger for the package
logger = logging.getLogger("ms365_mcp")

DEFAULT_LOG_DIR = Path.cwd() / "logs"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _is_silent() -> bool:
    return os.environ.get("SILENT", "").lower() == "true"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> None:
    """Configure logging for ms365-mcp.

    Args:
        verbose: Also log to stderr (unless SILENT=true).
        log_dir: Directory for log files. Defaults to ./logs.
    """
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Only add handlers if not already configured
    if logger.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    directory = log_dir or DEFAULT_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)

    main_handler = logging.FileHandler(directory / "mcp-server.log")
    main_handler.setFormatter(formatter)
    logger.addHandler(main_handler)

    error_handler = logging.FileHandler(directory / "error.log")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    if verbose and not _is_silent():
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%H:%M:%S")
        )
        logger.addHandler(console)
