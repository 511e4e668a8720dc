"""
Async PostgreSQL connection pool module.

Provides the asyncpg pool singleton behind the document repository. All JSON
documents (daily complaint batches, payments, prospects, overseas sales, P&L
configuration history) live in a single `json_document` table keyed by a
path-like string such as `complaints-daily/2026-01-14`.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Create the pool and the document table at application startup
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool at application shutdown
- execute_query_one / execute_command: convenience helpers

Connection Pool Configuration:
- min_size: 1
- max_size: 10
- command_timeout: 60 seconds

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In services
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow("SELECT payload FROM json_document WHERE key = $1", key)

    # At application shutdown
    await close_db()
"""

import logging
from typing import Any, Optional

import asyncpg
from asyncpg import Pool

from prospect_dashboard.core.config import get_settings


logger = logging.getLogger(__name__)


# =============================================================================
# Schema
# =============================================================================

DOCUMENT_TABLE_DDL: str = """
    CREATE TABLE IF NOT EXISTS json_document (
        key         TEXT PRIMARY KEY,
        payload     JSONB NOT NULL,
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool and the document table.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=1,
            max_size=10,
            command_timeout=60,
        )

        async with _pool.acquire() as conn:
            await conn.execute(DOCUMENT_TABLE_DDL)

        logger.info("json_document table ready")

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    if _pool is None:
        return await init_db()

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool.

    Safe to call when the pool was never initialized.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Query Helpers
# =============================================================================

async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """
    Execute a query and return a single row or None.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def execute_command(query: str, *args: Any) -> str:
    """
    Execute a command (INSERT/UPDATE/DELETE) and return the status string,
    e.g. 'INSERT 0 1' or 'DELETE 3'.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.execute(query, *args)
