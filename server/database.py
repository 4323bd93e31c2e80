"""Database connection and session management using SQLModel."""

from __future__ import annotations

from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlmodel import Session, SQLModel, create_engine

from .config import get_config
from .logging_config import get_logger

logger = get_logger(__name__)


def build_engine(url: str, connect_timeout: int = 5) -> Engine:
    """Create an engine; SQLite gets check_same_thread=False for FastAPI threads."""
    if make_url(url).get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False, "timeout": connect_timeout}
    else:
        connect_args = {"connect_timeout": connect_timeout}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


_config = get_config()
DATABASE_URL = _config.database_url
engine = build_engine(DATABASE_URL, _config.database.connect_timeout)


def get_engine() -> Engine:
    """Return the global engine instance."""
    return engine


def get_session() -> Generator[Session, None, None]:
    """Dependency for FastAPI or context manager for scripts."""
    with Session(get_engine()) as session:
        yield session


def init_db() -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    current = get_engine()
    if current.dialect.name == "sqlite":
        with current.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL;")

    SQLModel.metadata.create_all(current)


def ping() -> None:
    """Round-trip a trivial query; raises on any connection failure."""
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


def reset_database() -> None:
    """Drop and recreate every table."""
    from . import models  # noqa: F401

    SQLModel.metadata.drop_all(get_engine())
    init_db()
