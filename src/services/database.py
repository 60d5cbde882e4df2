"""asyncpg connection pool and query helpers.

Every route talks to Postgres through these helpers; nothing else holds a
connection.  ``ensure_schema()`` applies ``schema.sql`` (idempotent
``CREATE ... IF NOT EXISTS`` statements) once at startup.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("florence.db")

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at app startup."""
    global _pool
    s = settings or get_settings()
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.database_pool_min,
        max_size=s.database_pool_max,
        command_timeout=30,
    )
    logger.info(
        "Database pool initialized (min=%d, max=%d)",
        s.database_pool_min,
        s.database_pool_max,
    )
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized — call init_pool() first")
    return _pool


async def ensure_schema() -> None:
    """Create missing tables and columns from schema.sql."""
    sql = _SCHEMA_PATH.read_text(encoding="utf-8")
    async with get_pool().acquire() as conn:
        await conn.execute(sql)
    logger.info("Database schema verified")


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a connection inside a transaction.

    Usage::

        async with get_connection() as conn:
            await conn.execute("UPDATE tours SET paid = $1 WHERE id = $2", True, 42)
    """
    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(query: str, *args: Any) -> str:
    """Execute a single statement and return its status (e.g. 'DELETE 1')."""
    async with get_connection() as conn:
        return await conn.execute(query, *args)


async def fetch(query: str, *args: Any) -> list[asyncpg.Record]:
    async with get_connection() as conn:
        return await conn.fetch(query, *args)


async def fetchrow(query: str, *args: Any) -> asyncpg.Record | None:
    async with get_connection() as conn:
        return await conn.fetchrow(query, *args)


async def fetchval(query: str, *args: Any) -> Any:
    async with get_connection() as conn:
        return await conn.fetchval(query, *args)


def affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status string ('UPDATE 3' -> 3)."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0
