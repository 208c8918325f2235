"""Alembic migration helpers for Longbox.

This is the only module in the project that imports alembic directly.
Everything else (CLI, tests) goes through the functions below, passing the
engine that the rest of the application uses.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine

from .config import PROJECT_ROOT
from .logging_config import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = PROJECT_ROOT / "migrations"


def _alembic_cfg(connection: Optional[Connection] = None) -> AlembicConfig:
    """Build an AlembicConfig without an ini file.

    env.py picks the live connection up from ``config.attributes``.
    """
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def _backup_db(db_path: Path) -> None:
    """Copy longbox.db -> longbox.db.bak (overwrite previous backup)."""
    if db_path.exists():
        shutil.copy2(db_path, db_path.with_suffix(".db.bak"))


def head_revision() -> str:
    script = ScriptDirectory.from_config(_alembic_cfg())
    return script.get_current_head() or "unknown"


def current_revision(engine: Engine) -> Optional[str]:
    with engine.connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def get_status(engine: Engine) -> tuple[Optional[str], str]:
    """Return (current_revision, head_revision); current is None when unstamped."""
    return current_revision(engine), head_revision()


def run_migrations(engine: Engine, db_path: Optional[Path] = None, backup: bool = True) -> None:
    """Run ``alembic upgrade head``, copying the database file first if asked."""
    if backup and db_path is not None:
        _backup_db(db_path)
    with engine.begin() as conn:
        alembic_command.upgrade(_alembic_cfg(conn), "head")


def stamp_if_needed(engine: Engine) -> bool:
    """Stamp a database created by ``init_db`` (tables, no version) to head.

    Returns True when a stamp was written.
    """
    tables = set(inspect(engine).get_table_names())
    if "issue" not in tables or "alembic_version" in tables:
        return False
    logger.info("Stamping unversioned database to head")
    with engine.begin() as conn:
        alembic_command.stamp(_alembic_cfg(conn), "head")
    return True
