"""Logging configuration for FMC Comic.

Provides centralized logging setup with:
- File handler with rotation (10MB, 5 backups)
- Rich console handler with colored output
- Consistent formatting across the server, the reader core and the CLI
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


LOG_FILENAME = "fmc.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_logging_initialized = False


def _get_data_dir() -> Path:
    """Return the data directory (same as config.DATA_DIR without circular import)."""
    env = os.environ.get("DATA_DIR")
    if env:
        return Path(env)
    return Path(__file__).resolve().parents[1]


def setup_logging(log_level: str = "INFO", log_to_file: bool = True) -> None:
    """Initialize logging with file and console handlers.

    Args:
        log_level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Also write everything (DEBUG and up) to fmc.log in DATA_DIR
    """
    global _logging_initialized

    if _logging_initialized:
        return

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    if log_to_file:
        data_dir = _get_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            data_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    console = Console(theme=Theme({"logging.level.info": "bold cyan"}))
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    # Route alembic through our handlers
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers = []
    alembic_logger.propagate = True

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the specified module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance for the module
    """
    return logging.getLogger(name)
