"""Tests for the read-through cache backends"""

import pytest

from cartwhisper.utils.cache import MemoryTTLCache, RedisTTLCache, reco_cache_key


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_memory_cache_expiry_and_stale_reads():
    clock = Clock()
    cache = MemoryTTLCache(default_ttl=60, clock=clock)
    await cache.set("k", [1, 2])

    assert await cache.get("k") == [1, 2]
    clock.now += 61
    assert await cache.get("k") is None
    assert await cache.get_stale("k") == [1, 2]


@pytest.mark.asyncio
async def test_memory_cache_sweep_and_stats():
    clock = Clock()
    cache = MemoryTTLCache(default_ttl=60, clock=clock)
    await cache.set("old", "x")
    await cache.set("fresh", "y", ttl=600)
    clock.now += 120

    stats = await cache.stats()
    assert stats["total"] == 2 and stats["expired"] == 1

    assert await cache.sweep() == 1
    assert await cache.get_stale("old") is None
    assert await cache.get("fresh") == "y"


@pytest.mark.asyncio
async def test_memory_cache_delete_prefix():
    cache = MemoryTTLCache()
    await cache.set(reco_cache_key("a.myshopify.com", "gid://shopify/Product/1", 3), [])
    await cache.set(reco_cache_key("a.myshopify.com", "gid://shopify/Product/2", 3), [])
    await cache.set(reco_cache_key("b.myshopify.com", "gid://shopify/Product/1", 3), [])

    assert await cache.delete_prefix("a.myshopify.com:") == 2
    assert (await cache.stats())["total"] == 1


@pytest.mark.asyncio
async def test_redis_cache_round_trip(fake_redis):
    cache = RedisTTLCache(fake_redis, default_ttl=60, stale_grace=600)
    await cache.set("shop:p1:3", [{"id": "p2"}])

    assert await cache.get("shop:p1:3") == [{"id": "p2"}]
    assert await fake_redis.ttl("reco:shop:p1:3") > 60


@pytest.mark.asyncio
async def test_redis_cache_serves_stale_after_ttl(fake_redis, monkeypatch):
    import cartwhisper.utils.cache as cache_mod

    cache = RedisTTLCache(fake_redis, default_ttl=60, stale_grace=600)
    await cache.set("k", "v")

    real_time = cache_mod.time.time
    monkeypatch.setattr(cache_mod.time, "time", lambda: real_time() + 120)

    assert await cache.get("k") is None
    assert await cache.get_stale("k") == "v"


@pytest.mark.asyncio
async def test_redis_cache_delete_prefix_and_stats(fake_redis):
    cache = RedisTTLCache(fake_redis, default_ttl=60)
    await cache.set("a:1", 1)
    await cache.set("a:2", 2)
    await cache.set("b:1", 3)

    assert await cache.delete_prefix("a:") == 2
    assert (await cache.stats())["total"] == 1
    assert await cache.get_stale("b:1") == 3
