"""Alembic migration environment.

The caller (``longbox.migrations``) hands over a live connection from the
application's engine through ``config.attributes`` so migrations run on the
same database and pool the application uses.
"""

from __future__ import annotations

from alembic import context
from sqlmodel import SQLModel

# Register all tables on SQLModel.metadata before Alembic inspects it.
from longbox import models as _models  # noqa: F401

target_metadata = SQLModel.metadata


def run_migrations_online() -> None:
    """Run migrations with the connection passed in by the caller."""
    connection = context.config.attributes.get("connection")
    if connection is None:
        raise RuntimeError(
            "No connection supplied. Run migrations through longbox.migrations."
        )

    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError(
        "Offline migration mode is not supported. "
        "Run without --sql."
    )
else:
    run_migrations_online()
