"""Alembic migration environment.

Imports the engine and metadata from the FMC server package so that
migrations use the exact same database connection the application does.
"""

from __future__ import annotations

from alembic import context
from sqlmodel import SQLModel

from server.database import get_engine

# Register the mapping table on SQLModel.metadata before Alembic inspects it.
from server import models as _models  # noqa: F401

target_metadata = SQLModel.metadata


def run_migrations_online() -> None:
    """Run migrations with a real database connection."""
    with get_engine().connect() as conn:
        context.configure(
            connection=conn,
            target_metadata=target_metadata,
            render_as_batch=conn.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


# Only online mode is supported.
if context.is_offline_mode():
    raise RuntimeError(
        "Offline migration mode is not supported. "
        "Run without --sql."
    )
else:
    run_migrations_online()
