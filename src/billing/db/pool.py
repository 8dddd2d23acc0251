"""Postgres pool backing the advisory reconciliation locks.

Only the "advisory" reconcile_lock mode needs a database. Each held lock
pins one pooled connection for the length of a reconciliation, so
db_pool_max bounds how many subscriptions can reconcile at once.
"""

import asyncio
import logging
from typing import Optional

import asyncpg

from billing.config import get_config

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
CLOSE_TIMEOUT = 5.0

_pool: Optional[asyncpg.Pool] = None


async def _open_pool(dsn: str, min_size: int, max_size: int) -> asyncpg.Pool:
    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size),
            timeout=CONNECT_TIMEOUT,
        )
    except asyncio.TimeoutError:
        raise asyncio.TimeoutError(
            f"Lock database unreachable after {CONNECT_TIMEOUT:g} seconds"
        )
    if pool is None:
        raise RuntimeError("asyncpg returned no pool")
    return pool


async def _verify_lock_support(pool: asyncpg.Pool) -> None:
    """Check the server can derive advisory lock keys from subscription ids."""
    async with pool.acquire() as conn:
        key = await conn.fetchval("SELECT hashtextextended($1, 0)", "billing")
    if key is None:
        raise RuntimeError("hashtextextended returned NULL")


async def get_pool() -> asyncpg.Pool:
    """
    Return the shared lock pool, opening it on first use.

    Raises:
        ValueError: If db_dsn is not configured
        asyncio.TimeoutError: If the server does not answer within CONNECT_TIMEOUT
        RuntimeError: If the server cannot compute advisory lock keys
    """
    global _pool

    if _pool is not None:
        return _pool

    config = get_config()
    if config.db_dsn is None:
        raise ValueError("db_dsn not configured")

    pool = await _open_pool(str(config.db_dsn), config.db_pool_min, config.db_pool_max)

    # hashtextextended needs PostgreSQL 11+
    try:
        await _verify_lock_support(pool)
    except Exception as e:
        await pool.close()
        raise RuntimeError(f"Lock database check failed: {e}") from e

    _pool = pool
    logger.info(
        f"Lock pool ready: min={config.db_pool_min}, max={config.db_pool_max} "
        f"concurrent reconciliations"
    )
    return _pool


async def close_pool() -> None:
    """
    Close the lock pool if one was opened.

    A reconciliation still holding its lock connection would block a
    graceful close, so after CLOSE_TIMEOUT the pool is terminated. Postgres
    releases session advisory locks when their connection drops.
    """
    global _pool
    pool, _pool = _pool, None
    if pool is None:
        return

    try:
        await asyncio.wait_for(pool.close(), timeout=CLOSE_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning(
            f"Lock pool close timed out after {CLOSE_TIMEOUT:g} seconds; "
            "terminating held lock connections"
        )
        pool.terminate()
