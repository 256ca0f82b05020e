"""
Async database access for the classroom progress service.

SQLAlchemy Core over asyncpg for the application; Alembic gets a
synchronous psycopg2 URL for the same DATABASE_URL.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .tables import metadata  # noqa: F401 - exported for Alembic

ASYNC_SCHEME = "postgresql+asyncpg://"
SYNC_SCHEME = "postgresql://"

_engine: AsyncEngine | None = None


def _with_scheme(database_url: str, scheme: str) -> str:
    """Swap the driver part of a postgres URL (postgres://, postgresql://, +asyncpg)."""
    for prefix in (ASYNC_SCHEME, SYNC_SCHEME, "postgres://"):
        if database_url.startswith(prefix):
            return scheme + database_url[len(prefix) :]
    raise ValueError(f"Unsupported DATABASE_URL scheme: {database_url.split(':', 1)[0]}")


def _get_database_url() -> str:
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set.")
    return _with_scheme(database_url, ASYNC_SCHEME)


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _get_database_url(),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Read-only style access; nothing is committed.

    Usage:
        async with get_connection() as conn:
            rows = (await conn.execute(select(lessons))).mappings().all()
    """
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """Connection inside a transaction: commits on exit, rolls back on error."""
    async with get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose the pool. Called on app shutdown and between test modules."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """psycopg2 URL for Alembic, which runs migrations synchronously."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL must be set for migrations")
    return _with_scheme(database_url, SYNC_SCHEME)
