"""
Async Postgres helpers for the page and comment stores.

The in-memory stores are used when no database URL is configured.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def get_database_url() -> Optional[str]:
    """
    Prefer a direct (non-pooler) URL for long-lived backends if provided.
    """
    return os.environ.get("DATABASE_URL_DIRECT") or os.environ.get("DATABASE_URL")


def is_database_configured() -> bool:
    return bool(get_database_url())


async def get_pool() -> Optional[asyncpg.Pool]:
    global _pool
    if _pool is not None:
        return _pool

    dsn = get_database_url()
    if not dsn:
        return None

    min_size = int(os.environ.get("DATABASE_POOL_MIN_SIZE", "1"))
    max_size = int(os.environ.get("DATABASE_POOL_MAX_SIZE", "5"))

    # Statement cache off so PgBouncer-style poolers behave like direct connections.
    _pool = await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        statement_cache_size=0,
    )

    logger.info("Postgres pool initialized (min=%s max=%s)", min_size, max_size)
    return _pool


async def fetchrow(query: str, *args):
    pool = await get_pool()
    if not pool:
        return None
    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def fetch(query: str, *args):
    pool = await get_pool()
    if not pool:
        return []
    async with pool.acquire() as conn:
        return await conn.fetch(query, *args)


async def fetchval(query: str, *args):
    pool = await get_pool()
    if not pool:
        return None
    async with pool.acquire() as conn:
        return await conn.fetchval(query, *args)


async def execute(query: str, *args):
    pool = await get_pool()
    if not pool:
        return None
    async with pool.acquire() as conn:
        return await conn.execute(query, *args)


async def apply_schema() -> bool:
    """Create the CMS tables if they do not exist yet."""
    pool = await get_pool()
    if not pool:
        return False
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.acquire() as conn:
        await conn.execute(sql)
    logger.info("Database schema applied from %s", SCHEMA_PATH.name)
    return True


async def close_pool() -> None:
    """Close the global asyncpg pool (used during graceful shutdown)."""
    global _pool
    if _pool is None:
        return
    try:
        await _pool.close()
    finally:
        _pool = None
