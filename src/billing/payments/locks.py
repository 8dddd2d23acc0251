"""Per-subscription locks serializing reconciliations.

Two reconciliations of the same subscription racing each other can delete
the item the other one just kept. A ``SubscriptionLocks`` implementation
makes them take turns:

- ``NoSubscriptionLocks``: no guard, callers must not overlap.
- ``LocalSubscriptionLocks``: one ``asyncio.Lock`` per subscription id,
  effective within a single process.
- ``AdvisorySubscriptionLocks``: Postgres session advisory lock keyed on the
  subscription id, effective across processes sharing the database.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Protocol

import asyncpg

logger = logging.getLogger(__name__)


class SubscriptionLocks(Protocol):
    def hold(self, subscription_id: str) -> AbstractAsyncContextManager[None]: ...


class NoSubscriptionLocks:
    @asynccontextmanager
    async def hold(self, subscription_id: str) -> AsyncIterator[None]:
        yield


class LocalSubscriptionLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, subscription_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(subscription_id, asyncio.Lock())
        self._waiters[subscription_id] = self._waiters.get(subscription_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[subscription_id] -= 1
            if self._waiters[subscription_id] == 0:
                del self._waiters[subscription_id]
                del self._locks[subscription_id]

    def is_held(self, subscription_id: str) -> bool:
        lock = self._locks.get(subscription_id)
        return lock is not None and lock.locked()


class AdvisorySubscriptionLocks:
    def __init__(self, pool_factory: Callable[[], Awaitable[asyncpg.Pool]]) -> None:
        self._pool_factory = pool_factory

    @asynccontextmanager
    async def hold(self, subscription_id: str) -> AsyncIterator[None]:
        pool = await self._pool_factory()

        # Session-level advisory locks belong to the connection, so the same
        # connection must be held until unlock.
        async with pool.acquire() as conn:
            await conn.execute(
                "SELECT pg_advisory_lock(hashtextextended($1, 0))",
                subscription_id,
            )
            logger.debug(f"Acquired advisory lock for subscription {subscription_id}")
            try:
                yield
            finally:
                await conn.execute(
                    "SELECT pg_advisory_unlock(hashtextextended($1, 0))",
                    subscription_id,
                )
                logger.debug(f"Released advisory lock for subscription {subscription_id}")
