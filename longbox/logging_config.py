"""Logging configuration for Longbox.

One call to ``setup_logging`` wires the root logger to:
- a rotating ``longbox.log`` in the data directory (10MB, 5 backups)
- a Rich console handler at the requested level
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_FILENAME = "longbox.log"

_logging_initialized = False


def _default_log_dir() -> Path:
    # Mirrors config.DATA_DIR; config imports this module so it can't be used here.
    env = os.environ.get("DATA_DIR")
    if env:
        return Path(env)
    return Path(__file__).resolve().parents[1]


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """Initialize logging with file and console handlers. Safe to call twice.

    Args:
        log_level: Console level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Where longbox.log goes; defaults to the data directory
    """
    global _logging_initialized

    if _logging_initialized:
        return

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    target_dir = log_dir or _default_log_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        target_dir / LOG_FILENAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console = Console(theme=Theme({"logging.level.info": "bold cyan"}))
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(numeric_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    # Route alembic through our handlers
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers = []
    alembic_logger.propagate = True

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """Return the module logger (callers pass ``__name__``)."""
    return logging.getLogger(name)
