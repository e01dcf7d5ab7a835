"""
Cache Backends

Async key/value cache with TTLs:
- MemoryCache: process-local dict, bounded by expiry-ordered eviction
- RedisCache: redis.asyncio, used when REDIS_URL is configured

Values are JSON-serialized so both backends return the same shapes.
Backend failures are logged and treated as cache misses.
"""

import json
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from redis.asyncio import Redis
from redis.exceptions import RedisError

from serptrack.cache.config import CacheKeys
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)

TTL = Union[timedelta, float, int]

MAX_ENTRIES = 5000
TRIM_THRESHOLD = 4000
TRIM_BATCH = 1000


def _seconds(ttl: TTL) -> float:
    return ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)


def _serialize(value: Any) -> str:
    return json.dumps(value, default=str)


class MemoryCache:
    """
    In-process cache.

    When the entry count passes MAX_ENTRIES, expired entries are dropped;
    if more than TRIM_THRESHOLD remain, the TRIM_BATCH entries closest to
    expiry are evicted.
    """

    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        payload, expires = entry
        if self._clock() > expires:
            del self._entries[key]
            return None

        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: TTL) -> bool:
        self._entries[key] = (_serialize(value), self._clock() + _seconds(ttl))
        if len(self._entries) > MAX_ENTRIES:
            self._evict()
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()

    async def stats(self) -> Dict[str, Any]:
        now = self._clock()
        expired = sum(1 for _, expires in self._entries.values() if now > expires)
        return {
            "backend": self.backend,
            "total": len(self._entries),
            "active": len(self._entries) - expired,
            "expired": expired,
        }

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, (_, expires) in self._entries.items() if now > expires]:
            del self._entries[key]

        if len(self._entries) > TRIM_THRESHOLD:
            oldest = sorted(self._entries.items(), key=lambda item: item[1][1])[:TRIM_BATCH]
            for key, _ in oldest:
                del self._entries[key]
            logger.debug(f"Evicted {len(oldest)} cache entries")

    async def close(self) -> None:
        return None


class RedisCache:
    """
    Redis-backed cache (graceful degradation: errors become misses).
    """

    backend = "redis"

    def __init__(self, redis_url: str = None, client: Optional[Redis] = None):
        self._redis = client or Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        try:
            payload = await self._redis.get(key)
        except RedisError as e:
            logger.warning(f"Redis get failed for {key}: {e}")
            return None
        return json.loads(payload) if payload is not None else None

    async def set(self, key: str, value: Any, ttl: TTL) -> bool:
        try:
            await self._redis.set(key, _serialize(value), px=int(_seconds(ttl) * 1000))
            return True
        except RedisError as e:
            logger.warning(f"Redis set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._redis.delete(key))
        except RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
            return False

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            async for key in self._redis.scan_iter(match=f"{prefix}*"):
                deleted += await self._redis.delete(key)
        except RedisError as e:
            logger.warning(f"Redis prefix delete failed for {prefix}: {e}")
        return deleted

    async def clear(self) -> None:
        await self._redis.flushdb()

    async def stats(self) -> Dict[str, Any]:
        try:
            total = await self._redis.dbsize()
        except RedisError as e:
            logger.warning(f"Redis stats failed: {e}")
            return {"backend": self.backend, "error": str(e)}
        # Redis drops expired keys itself
        return {"backend": self.backend, "total": total, "active": total, "expired": 0}

    async def close(self) -> None:
        await self._redis.aclose()


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_cache: Optional[Union[MemoryCache, RedisCache]] = None


def get_cache() -> Union[MemoryCache, RedisCache]:
    """Process-wide cache; Redis when REDIS_URL is set, memory otherwise."""
    global _cache
    if _cache is None:
        redis_url = get_settings().REDIS_URL
        if redis_url:
            logger.info("Using Redis cache backend")
            _cache = RedisCache(redis_url)
        else:
            _cache = MemoryCache()
    return _cache


def set_cache(cache: Optional[Union[MemoryCache, RedisCache]]) -> None:
    global _cache
    _cache = cache


async def get_or_set(
    key: str,
    ttl: TTL,
    fetcher: Callable[[], Awaitable[Any]],
) -> Any:
    """Return the cached value or compute, store and return it."""
    cache = get_cache()
    cached = await cache.get(key)
    if cached is not None:
        return cached

    value = await fetcher()
    await cache.set(key, value, ttl)
    # Return the stored shape so hits and misses look identical
    return json.loads(_serialize(value))


async def invalidate_user_cache(user_id) -> None:
    cache = get_cache()
    for prefix in CacheKeys.user_prefixes(user_id):
        await cache.delete_prefix(prefix)
