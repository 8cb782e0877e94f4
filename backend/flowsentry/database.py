"""Async SQLAlchemy engine and session factory for the alert log."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import DATABASE_URL

log = logging.getLogger(__name__)


def make_engine(url: str = DATABASE_URL) -> AsyncEngine:
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine()

async_session_factory = make_session_factory(engine)


def ensure_sqlite_dir(url: URL) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables if they don't exist. Safe for first-run bootstrap."""
    from .db_models import Base  # noqa: F811

    bind = bind or engine
    ensure_sqlite_dir(bind.url)
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables ensured.")


async def close_db(bind: AsyncEngine | None = None) -> None:
    await (bind or engine).dispose()
    log.info("Database connections closed.")
