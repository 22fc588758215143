"""ContextCache: single-flight builds, LRU eviction, TTL and invalidation."""

import asyncio

import pytest

from application.concurrency import KeyedLock
from application.services.context_cache import ContextCache
from conftest import budget_fixture_snapshot


class CountingFinancialRepo:
    def __init__(self, delay=0.0):
        self.calls = 0
        self.delay = delay
        self.release = None
        self.error = None

    async def get_snapshot(self, user_id):
        self.calls += 1
        if self.release is not None:
            await self.release.wait()
        elif self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return budget_fixture_snapshot(user_id)


class EmptyConversationRepo:
    async def recent(self, user_id, session_id, limit):
        return []


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def repo():
    return CountingFinancialRepo()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(repo, clock):
    return ContextCache(repo, EmptyConversationRepo(), max_entries=3, ttl_s=60, clock=clock)


async def test_concurrent_misses_build_once(clock):
    repo = CountingFinancialRepo(delay=0.05)
    cache = ContextCache(repo, EmptyConversationRepo(), clock=clock)
    results = await asyncio.gather(*(cache.get_or_build("u1", "s1", "budget_coach") for _ in range(10)))
    assert repo.calls == 1
    assert all(r is results[0] for r in results)
    stats = cache.stats()
    assert stats.misses == 1
    assert stats.hits == 9


async def test_entries_are_per_agent(cache, repo):
    await cache.get_or_build("u1", "s1", "budget_coach")
    await cache.get_or_build("u1", "s1", "insight_generator")
    await cache.get_or_build("u1", "s1", "budget_coach")
    assert repo.calls == 2


async def test_lru_eviction_keeps_recently_used(cache):
    for agent in ("a", "b", "c"):
        await cache.get_or_build("u1", "s1", agent)
    await cache.get_or_build("u1", "s1", "a")  # touch a
    await cache.get_or_build("u1", "s1", "d")  # evicts b
    assert ("u1", "s1", "b") not in cache
    assert ("u1", "s1", "a") in cache
    assert cache.keys()[-1] == ("u1", "s1", "d")
    assert cache.stats().evictions == 1


async def test_ttl_expiry(cache, repo, clock):
    await cache.get_or_build("u1", "s1", "a")
    clock.now += 59
    await cache.get_or_build("u1", "s1", "a")
    assert repo.calls == 1
    clock.now += 1
    await cache.get_or_build("u1", "s1", "a")
    assert repo.calls == 2
    assert cache.stats().expirations == 1


async def test_purge_expired(cache, clock):
    await cache.get_or_build("u1", "s1", "a")
    await cache.get_or_build("u1", "s2", "a")
    clock.now += 61
    assert cache.purge_expired() == 2
    assert len(cache) == 0


async def test_invalidate_drops_every_agent_for_session(cache):
    await cache.get_or_build("u1", "s1", "a")
    await cache.get_or_build("u1", "s1", "b")
    await cache.get_or_build("u1", "s2", "a")
    assert cache.invalidate("u1", "s1") == 2
    assert cache.keys() == [("u1", "s2", "a")]


async def test_invalidate_during_build_is_not_cached(cache, repo):
    repo.release = asyncio.Event()
    build = asyncio.create_task(cache.get_or_build("u1", "s1", "a"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    cache.invalidate("u1", "s1")
    repo.release.set()
    context = await build
    assert context.user_id == "u1"
    assert ("u1", "s1", "a") not in cache


async def test_failed_build_after_invalidate_does_not_block_caching(cache, repo):
    repo.release = asyncio.Event()
    repo.error = RuntimeError("database unavailable")
    build = asyncio.create_task(cache.get_or_build("u1", "s1", "a"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    cache.invalidate("u1", "s1")
    repo.release.set()
    with pytest.raises(RuntimeError):
        await build

    repo.release = None
    repo.error = None
    await cache.get_or_build("u1", "s1", "a")
    await cache.get_or_build("u1", "s1", "a")
    assert repo.calls == 2
    assert ("u1", "s1", "a") in cache


async def test_sweeper_start_stop(cache):
    cache.start()
    cache.start()
    await cache.stop()
    await cache.stop()


async def test_sweeper_purges_idle_expired_entries(repo, clock):
    cache = ContextCache(repo, EmptyConversationRepo(), ttl_s=60, sweep_interval_s=0.01, clock=clock)
    await cache.get_or_build("u1", "s1", "a")
    await cache.get_or_build("u1", "s2", "b")
    clock.now += 61
    cache.start()
    try:
        await asyncio.sleep(0.05)
    finally:
        await cache.stop()
    assert len(cache) == 0
    assert cache.stats().expirations == 2
    assert repo.calls == 2


def test_capacity_must_be_positive(repo):
    with pytest.raises(ValueError):
        ContextCache(repo, EmptyConversationRepo(), max_entries=0)


async def test_keyed_lock_forgets_released_keys():
    locks = KeyedLock()
    async with locks.hold("k"):
        assert len(locks) == 1
    assert len(locks) == 0
