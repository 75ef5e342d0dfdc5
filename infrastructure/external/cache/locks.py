"""
Per-order locks serializing payment state transitions.

Redis-backed when ``REDIS__URL`` is configured so several workers share the
mutex; otherwise an in-process ``asyncio.Lock`` registry.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import Settings
from core.logging_config import get_logger
from domain.common.exceptions import OrderLockedException


logger = get_logger(__name__)


class RedisOrderLock:
    def __init__(
        self,
        url: str,
        *,
        namespace: str = "genpay-connector",
        timeout: int = 30,
        blocking_timeout: int = 10,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self._client = client or aioredis.from_url(url, decode_responses=True)
        self._namespace = namespace
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, order_id: int) -> str:
        return f"{self._namespace}:lock:order:{order_id}"

    @asynccontextmanager
    async def lock(self, order_id: int) -> AsyncIterator[None]:
        lock_key = self._key(order_id)
        lock = self._client.lock(
            lock_key,
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise OrderLockedException(order_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except RedisError as e:
                logger.error("order_lock_release_failed", key=lock_key, error=str(e))

    async def close(self) -> None:
        await self._client.aclose()


class InProcessOrderLock:
    """asyncio.Lock per order id; an entry lives only while someone holds or awaits it."""

    def __init__(self, *, blocking_timeout: float = 10) -> None:
        self._blocking_timeout = blocking_timeout
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @property
    def active_orders(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def lock(self, order_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._users[order_id] = self._users.get(order_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._blocking_timeout)
            except asyncio.TimeoutError:
                raise OrderLockedException(order_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[order_id] -= 1
            if not self._users[order_id]:
                del self._users[order_id]
                del self._locks[order_id]

    async def close(self) -> None:
        self._locks.clear()
        self._users.clear()


def create_order_lock(settings: Settings):
    if settings.redis.url:
        return RedisOrderLock(
            settings.redis.url,
            namespace=settings.redis.namespace,
            timeout=settings.ORDER_LOCK_TIMEOUT,
            blocking_timeout=settings.ORDER_LOCK_BLOCKING_TIMEOUT,
        )
    return InProcessOrderLock(blocking_timeout=settings.ORDER_LOCK_BLOCKING_TIMEOUT)
