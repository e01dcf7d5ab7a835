"""
Application Cache

Usage:
    from serptrack.cache import CacheKeys, CacheTTL, get_or_set

    data = await get_or_set(CacheKeys.admin_stats(), CacheTTL.ADMIN_STATS, compute)
"""

from serptrack.cache.config import CacheKeys, CacheTTL
from serptrack.cache.store import (
    MemoryCache,
    RedisCache,
    get_cache,
    set_cache,
    get_or_set,
    invalidate_user_cache,
)

__all__ = [
    "CacheKeys",
    "CacheTTL",
    "MemoryCache",
    "RedisCache",
    "get_cache",
    "set_cache",
    "get_or_set",
    "invalidate_user_cache",
]
