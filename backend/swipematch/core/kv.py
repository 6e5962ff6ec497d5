import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from swipematch.core.config import LOCK_TIMEOUT_SECONDS, LOCK_WAIT_SECONDS
from swipematch.core.errors import LockUnavailableError, StorageError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Shared counters and mutual-exclusion used by the swipe flows."""

    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key`` and return the new value; the key expires
        ``ttl_seconds`` after its first increment."""

    def lock(self, key: str) -> AsyncContextManager[None]:
        """Hold an exclusive lock on ``key`` for the duration of the block."""


class MemoryKeyValueStore:
    """Single-process store backed by dicts and asyncio locks."""

    _PURGE_THRESHOLD = 1024

    def __init__(self, lock_wait_seconds: float = LOCK_WAIT_SECONDS):
        self.lock_wait_seconds = lock_wait_seconds
        self._counters: dict[str, tuple[int, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def incr(self, key: str, ttl_seconds: int) -> int:
        now = time.monotonic()
        if len(self._counters) > self._PURGE_THRESHOLD:
            self._counters = {k: v for k, v in self._counters.items() if v[1] > now}

        count, expires_at = self._counters.get(key, (0, 0.0))
        if expires_at <= now:
            count, expires_at = 0, now + ttl_seconds
        count += 1
        self._counters[key] = (count, expires_at)
        return count

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.lock_wait_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"⏳ Timed out waiting for lock '{key}'")
                raise LockUnavailableError(f"Could not acquire lock '{key}'")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                self._locks.pop(key, None)


class RedisKeyValueStore:
    """Store shared by every API process, built on redis-py's asyncio client."""

    def __init__(self, client: redis.Redis,
                 lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
                 lock_wait_seconds: float = LOCK_WAIT_SECONDS):
        self.client = client
        self.lock_timeout_seconds = lock_timeout_seconds
        self.lock_wait_seconds = lock_wait_seconds

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            count = await self.client.incr(key)
            if count == 1:
                await self.client.expire(key, ttl_seconds)
            return int(count)
        except RedisError as e:
            logger.error(f"❌ Redis counter failure for '{key}': {e}")
            raise StorageError("Counter store unavailable") from e

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self.client.lock(
            f"lock:{key}",
            timeout=self.lock_timeout_seconds,
            blocking_timeout=self.lock_wait_seconds,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error(f"❌ Redis lock failure for '{key}': {e}")
            raise StorageError("Lock store unavailable") from e
        if not acquired:
            logger.warning(f"⏳ Timed out waiting for lock '{key}'")
            raise LockUnavailableError(f"Could not acquire lock '{key}'")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired while held; the next holder may already own it
                logger.warning(f"⚠️  Lock '{key}' lost before release: {e}")


def build_kv_store(redis_client: Optional[redis.Redis]) -> KeyValueStore:
    if redis_client is None:
        logger.info("🧠 Using in-process key-value store (REDIS_URI not set)")
        return MemoryKeyValueStore()
    return RedisKeyValueStore(redis_client)
