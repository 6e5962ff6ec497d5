import asyncio

import pytest
from redis.exceptions import RedisError

from swipematch.core.errors import LockUnavailableError, StorageError
from swipematch.core.kv import MemoryKeyValueStore, RedisKeyValueStore, build_kv_store
from swipematch.services.rate_limit import check_rate_limit


class _FakeLock:
    def __init__(self, acquired=True):
        self.acquired = acquired
        self.released = False

    async def acquire(self):
        return self.acquired

    async def release(self):
        self.released = True


class _FakeRedis:
    def __init__(self, acquired=True, fail=False):
        self.values = {}
        self.expires = {}
        self.fail = fail
        self.last_lock = _FakeLock(acquired)

    async def incr(self, key):
        if self.fail:
            raise RedisError("connection refused")
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.expires[key] = seconds

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.last_lock.name = name
        return self.last_lock


def test_memory_incr_counts_and_expires():
    store = MemoryKeyValueStore()

    async def scenario():
        first = await store.incr("hits", 60)
        second = await store.incr("hits", 60)
        expired = await store.incr("short", 0)
        restarted = await store.incr("short", 0)
        return first, second, expired, restarted

    assert asyncio.run(scenario()) == (1, 2, 1, 1)


def test_memory_lock_times_out_while_held():
    store = MemoryKeyValueStore(lock_wait_seconds=0.05)

    async def scenario():
        async with store.lock("quota:alice"):
            with pytest.raises(LockUnavailableError):
                async with store.lock("quota:alice"):
                    pass
            # Other keys stay independent
            async with store.lock("quota:bob"):
                pass

    asyncio.run(scenario())
    assert store._locks == {}


def test_memory_lock_serializes_holders():
    store = MemoryKeyValueStore()
    events = []

    async def worker(name):
        async with store.lock("match:a:b"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    async def scenario():
        await asyncio.gather(worker("one"), worker("two"))

    asyncio.run(scenario())
    assert events in (
        ["one-in", "one-out", "two-in", "two-out"],
        ["two-in", "two-out", "one-in", "one-out"],
    )


def test_build_kv_store_picks_backend():
    assert isinstance(build_kv_store(None), MemoryKeyValueStore)
    assert isinstance(build_kv_store(_FakeRedis()), RedisKeyValueStore)


def test_redis_incr_sets_ttl_on_first_increment():
    client = _FakeRedis()
    store = RedisKeyValueStore(client)

    async def scenario():
        return await store.incr("rl:like", 60), await store.incr("rl:like", 60)

    assert asyncio.run(scenario()) == (1, 2)
    assert client.expires == {"rl:like": 60}


def test_redis_errors_become_storage_errors():
    store = RedisKeyValueStore(_FakeRedis(fail=True))
    with pytest.raises(StorageError):
        asyncio.run(store.incr("rl:like", 60))


def test_redis_lock_not_acquired():
    client = _FakeRedis(acquired=False)
    store = RedisKeyValueStore(client)

    async def scenario():
        async with store.lock("quota:alice"):
            pass

    with pytest.raises(LockUnavailableError):
        asyncio.run(scenario())
    assert client.last_lock.name == "lock:quota:alice"


def test_redis_lock_released_after_block():
    client = _FakeRedis()
    store = RedisKeyValueStore(client)

    async def scenario():
        async with store.lock("quota:alice"):
            assert client.last_lock.released is False

    asyncio.run(scenario())
    assert client.last_lock.released is True


def test_rate_limit_fixed_window(database):
    async def scenario():
        return [await check_rate_limit(database, "match_like:alice", 2, 60) for _ in range(3)]

    first, second, third = asyncio.run(scenario())
    assert first == 0 and second == 0
    assert 1 <= third <= 60
