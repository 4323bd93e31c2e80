"""Alembic migration helpers for FMC Comic.

This is the only module in the project that imports alembic directly.
Everything else (CLI, serve) goes through the functions below.
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

from .config import PROJECT_ROOT
from .database import get_engine
from .logging_config import get_logger

logger = get_logger(__name__)


def _alembic_cfg() -> AlembicConfig:
    """Build an AlembicConfig that points at our alembic.ini."""
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    # Absolute script_location so it works from any working directory.
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    return cfg


def _sqlite_db_path() -> Optional[Path]:
    """Database file behind the engine, or None for in-memory/server databases."""
    url = get_engine().url
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


def _backup_db() -> None:
    """Copy mappings.db -> mappings.db.bak (overwrite previous backup)."""
    db_path = _sqlite_db_path()
    if db_path and db_path.exists():
        shutil.copy2(db_path, db_path.with_suffix(db_path.suffix + ".bak"))
        logger.debug(f"Backed up {db_path.name}")


def _has_table(name: str) -> bool:
    return inspect(get_engine()).has_table(name)


def run_migrations(backup: bool = True) -> None:
    """Run ``alembic upgrade head``.

    If *backup* is True and the database is a SQLite file, a copy is made first.
    """
    if backup:
        _backup_db()
    alembic_command.upgrade(_alembic_cfg(), "head")


def stamp_if_needed() -> None:
    """Stamp a database whose tables came from ``create_all`` to the current head.

    No-op when the DB is already under Alembic or has no mappings table yet.
    """
    if _has_table("alembic_version") or not _has_table("mappings"):
        return
    alembic_command.stamp(_alembic_cfg(), "head")


def get_status() -> tuple[str | None, str]:
    """Return (current_revision, head_revision).

    current_revision is None when the DB has never been stamped/migrated.
    """
    script = ScriptDirectory.from_config(_alembic_cfg())
    head_rev: str = script.get_current_head() or "unknown"

    with get_engine().connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    return current, head_rev
