"""Engine (connection pool) construction and schema setup using SQLModel.

The engine is built once at startup and handed by reference to the scanner
and to every request handler; there is no module-level engine.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlmodel import SQLModel, create_engine

from .logging_config import get_logger

logger = get_logger(__name__)

# rowid doubles as the issue id
FTS_DDL = "CREATE VIRTUAL TABLE IF NOT EXISTS issue_fts USING fts5(comicinfo)"

BUSY_TIMEOUT_SECONDS = 30


def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        # WAL lets page reads proceed while the scanner writes
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def create_db_engine(db_path: Path, pool_size: int = 5) -> Engine:
    """Create the bounded connection pool for the SQLite catalog.

    Callers wait without a deadline when every connection is checked out.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=None,
        connect_args={
            "check_same_thread": False,
            "timeout": BUSY_TIMEOUT_SECONDS,
        },
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def init_db(engine: Engine) -> None:
    """Create tables (and the full-text index) if they don't exist yet."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(text(FTS_DDL))


def reset_database(engine: Engine, db_path: Path) -> None:
    """Delete the database file and recreate the schema."""
    engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        candidate = Path(f"{db_path}{suffix}")
        if candidate.exists():
            candidate.unlink()
    logger.info(f"Removed database {db_path}")
    init_db(engine)
