"""
Database session management.

Flow:
  1. A FastAPI route depends on get_db(); one AsyncSession is opened for the
     lifetime of the request.
  2. Services issue their queries through that session and commit every
     write before returning, so the change is stored before the response
     goes out. FastAPI may run dependency teardown after the response has
     been sent.
  3. Teardown commits anything left over (normally nothing); on an
     exception it rolls back. The connection goes back to the pool.

Background extraction tasks never borrow a request session. They open their
own from the sessionmaker handed to the task runner (AsyncSessionLocal in
production). get_system_db() serves startup bootstrap only.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from docextract.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Create an AsyncEngine for the given URL.

    SQLite cannot take pool sizing arguments; an in-memory SQLite database is
    pinned to a single connection so every session sees the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(database_url, echo=echo, **kwargs)

        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,          # detect stale connections before use
        pool_recycle=3600,           # recycle connections every hour
        echo=echo,
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM objects usable after commit
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine(settings.database_url, echo=settings.db_echo_sql)
AsyncSessionLocal = build_sessionmaker(engine)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a request-scoped session.

    Usage in a route:
        @router.get("/extractions")
        async def list_extractions(db: AsyncSession = Depends(get_db)): ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# System session (startup bootstrap)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def get_system_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session with no request attached, committed on exit. Used by the
    startup superadmin seed.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Schema + health helpers
# ---------------------------------------------------------------------------

async def create_schema(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables. Migration tooling is out of scope."""
    from docextract.models.extractions import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ensured | url=%s", (bind or engine).url.render_as_string(hide_password=True))


async def check_db_health() -> dict:
    """Ping the database; used by /ready endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("Database ping failed | error=%s", exc)
        return {"status": "error", "detail": str(exc)}
