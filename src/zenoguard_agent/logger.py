"""Logging configuration."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional
from rich.logging import RichHandler

from .config import default_config_dir

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rotation: 10 MB per file, 5 backups
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str) -> int:
    """Map a CLI log level name to a logging level, defaulting to INFO."""
    return _LEVELS.get((level or "").lower(), logging.INFO)


def _file_handler(log_file: str) -> logging.Handler:
    """Rotating file handler, falling back to the user directory if needed."""
    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    except OSError:
        fallback = default_config_dir() / "agent.log"
        fallback.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            fallback, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the agent's root logger once.

    Console output goes through rich; the log file is rotated by size.
    """
    logger = logging.getLogger("zenoguard_agent")
    logger.setLevel(parse_level(level))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file))

    return logger
