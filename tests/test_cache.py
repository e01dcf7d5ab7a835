"""
Cache Tests

Tests for the memory and Redis backends, get_or_set and user invalidation.
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from serptrack.cache import CacheKeys, CacheTTL, MemoryCache, RedisCache, get_cache, get_or_set, invalidate_user_cache
from serptrack.cache import store


# =============================================================================
# FIXTURES
# =============================================================================

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCache(clock=clock)


# =============================================================================
# MEMORY CACHE TESTS
# =============================================================================

class TestMemoryCache:
    """Tests for the in-process backend."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache):
        await cache.set("key", {"rank": 3, "url": "https://example.com"}, ttl=60)

        assert await cache.get("key") == {"rank": 3, "url": "https://example.com"}

    @pytest.mark.asyncio
    async def test_missing_key(self, cache):
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_entry_expires(self, cache, clock):
        await cache.set("key", "value", ttl=timedelta(seconds=30))

        clock.now += 29
        assert await cache.get("key") == "value"

        clock.now += 2
        assert await cache.get("key") is None
        assert (await cache.stats())["total"] == 0

    @pytest.mark.asyncio
    async def test_values_are_json_shaped(self, cache):
        await cache.set("key", {"when": timedelta(seconds=1), "items": (1, 2)}, ttl=60)

        assert await cache.get("key") == {"when": "0:00:01", "items": [1, 2]}

    @pytest.mark.asyncio
    async def test_delete(self, cache):
        await cache.set("key", 1, ttl=60)

        assert await cache.delete("key") is True
        assert await cache.delete("key") is False
        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_delete_prefix(self, cache):
        await cache.set("user:1:tokens", 5, ttl=60)
        await cache.set("user:1:dashboard:30", {}, ttl=60)
        await cache.set("user:2:tokens", 7, ttl=60)

        assert await cache.delete_prefix("user:1") == 2
        assert await cache.get("user:2:tokens") == 7

    @pytest.mark.asyncio
    async def test_stats_counts_expired(self, cache, clock):
        await cache.set("short", 1, ttl=10)
        await cache.set("long", 2, ttl=100)
        clock.now += 50

        assert await cache.stats() == {"backend": "memory", "total": 2, "active": 1, "expired": 1}

    @pytest.mark.asyncio
    async def test_clear(self, cache):
        await cache.set("key", 1, ttl=60)
        await cache.clear()

        assert (await cache.stats())["total"] == 0


class TestEviction:
    """Tests for bounded growth of the memory cache."""

    @pytest.fixture(autouse=True)
    def small_limits(self, monkeypatch):
        monkeypatch.setattr(store, "MAX_ENTRIES", 5)
        monkeypatch.setattr(store, "TRIM_THRESHOLD", 4)
        monkeypatch.setattr(store, "TRIM_BATCH", 2)

    @pytest.mark.asyncio
    async def test_expired_entries_dropped_first(self, cache, clock):
        for index in range(3):
            await cache.set(f"old-{index}", index, ttl=10)
        clock.now += 20
        for index in range(3):
            await cache.set(f"new-{index}", index, ttl=10)

        stats = await cache.stats()
        assert stats["total"] == 3
        assert stats["expired"] == 0

    @pytest.mark.asyncio
    async def test_entries_closest_to_expiry_evicted(self, cache):
        for index in range(6):
            await cache.set(f"key-{index}", index, ttl=100 + index)

        assert await cache.get("key-0") is None
        assert await cache.get("key-1") is None
        assert await cache.get("key-5") == 5
        assert (await cache.stats())["total"] == 4


# =============================================================================
# REDIS CACHE TESTS
# =============================================================================

class TestRedisCache:
    """Tests for the Redis backend with a mocked client."""

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value='{"rank": 4}')
        client.set = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        client.dbsize = AsyncMock(return_value=12)
        return client

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, redis_client):
        cache = RedisCache(client=redis_client)

        assert await cache.get("key") == {"rank": 4}

    @pytest.mark.asyncio
    async def test_set_uses_millisecond_ttl(self, redis_client):
        cache = RedisCache(client=redis_client)

        assert await cache.set("key", {"rank": 4}, ttl=timedelta(minutes=1)) is True
        redis_client.set.assert_awaited_once_with("key", '{"rank": 4}', px=60000)

    @pytest.mark.asyncio
    async def test_errors_become_misses(self, redis_client):
        redis_client.get.side_effect = RedisConnectionError("down")
        redis_client.set.side_effect = RedisConnectionError("down")
        cache = RedisCache(client=redis_client)

        assert await cache.get("key") is None
        assert await cache.set("key", 1, ttl=60) is False

    @pytest.mark.asyncio
    async def test_delete_prefix_scans_keys(self, redis_client):
        async def scan_iter(match):
            assert match == "user:1*"
            for key in ("user:1:tokens", "user:1:dashboard:30"):
                yield key

        redis_client.scan_iter = scan_iter
        cache = RedisCache(client=redis_client)

        assert await cache.delete_prefix("user:1") == 2

    @pytest.mark.asyncio
    async def test_stats(self, redis_client):
        cache = RedisCache(client=redis_client)

        assert await cache.stats() == {"backend": "redis", "total": 12, "active": 12, "expired": 0}


# =============================================================================
# HELPERS
# =============================================================================

class TestGetOrSet:
    """Tests for read-through caching."""

    @pytest.mark.asyncio
    async def test_computes_once(self, memory_cache):
        calls = []

        async def fetcher():
            calls.append(1)
            return {"total": 3}

        first = await get_or_set("admin:stats", CacheTTL.ADMIN_STATS, fetcher)
        second = await get_or_set("admin:stats", CacheTTL.ADMIN_STATS, fetcher)

        assert first == second == {"total": 3}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_miss_returns_stored_shape(self, memory_cache):
        async def fetcher():
            return {"pair": (1, 2)}

        assert await get_or_set("key", 60, fetcher) == {"pair": [1, 2]}

    @pytest.mark.asyncio
    async def test_invalidate_user_cache(self, memory_cache):
        await memory_cache.set(CacheKeys.user_tokens("u1"), 5, ttl=60)
        await memory_cache.set(CacheKeys.analytics_summary("u1"), {}, ttl=60)
        await memory_cache.set(CacheKeys.serp_features("u1", ":30"), {}, ttl=60)
        await memory_cache.set(CacheKeys.rank_distribution("u1"), {}, ttl=60)
        await memory_cache.set(CacheKeys.user_tokens("u2"), 9, ttl=60)

        await invalidate_user_cache("u1")

        assert (await memory_cache.stats())["total"] == 1
        assert await memory_cache.get(CacheKeys.user_tokens("u2")) == 9

    def test_memory_backend_without_redis_url(self, monkeypatch):
        monkeypatch.setattr(store.get_settings(), "REDIS_URL", None)
        store.set_cache(None)

        assert isinstance(get_cache(), MemoryCache)


class TestCacheKeys:
    """Tests for key builders."""

    def test_location_search_is_case_insensitive(self):
        assert CacheKeys.location_search("New York") == CacheKeys.location_search("new york")

    def test_user_keys_share_prefix(self):
        prefixes = CacheKeys.user_prefixes("u1")

        for key in (
            CacheKeys.user_tokens("u1"),
            CacheKeys.user_dashboard("u1", 7),
            CacheKeys.analytics_summary("u1"),
            CacheKeys.serp_features("u1"),
            CacheKeys.rank_distribution("u1"),
        ):
            assert any(key.startswith(prefix) for prefix in prefixes)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
