"""
Cache Configuration

TTLs and key builders for the application cache.
"""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class CacheTTL:
    """Cache TTL configuration by data type."""

    USER_TOKENS: timedelta = timedelta(minutes=1)
    LOCATION_SEARCH: timedelta = timedelta(hours=1)
    ADMIN_STATS: timedelta = timedelta(minutes=5)
    USER_DASHBOARD: timedelta = timedelta(minutes=2)
    ANALYTICS_SUMMARY: timedelta = timedelta(minutes=10)
    SERP_FEATURES: timedelta = timedelta(minutes=30)
    SYSTEM_HEALTH: timedelta = timedelta(seconds=30)


class CacheKeys:
    """Cache key builders. User-scoped keys start with a per-user prefix."""

    @staticmethod
    def user_tokens(user_id) -> str:
        return f"user:{user_id}:tokens"

    @staticmethod
    def location_search(query: str) -> str:
        return f"loc:{query.lower()}"

    @staticmethod
    def admin_stats() -> str:
        return "admin:stats"

    @staticmethod
    def user_dashboard(user_id, days: int = 30) -> str:
        return f"user:{user_id}:dashboard:{days}"

    @staticmethod
    def analytics_summary(user_id) -> str:
        return f"analytics:{user_id}:summary"

    @staticmethod
    def serp_features(user_id, suffix: str = "") -> str:
        return f"serp:{user_id}:features{suffix}"

    @staticmethod
    def system_health() -> str:
        return "system:health"

    @staticmethod
    def rank_distribution(user_id) -> str:
        return f"rank:{user_id}:distribution"

    @staticmethod
    def user_prefixes(user_id) -> list:
        return [f"user:{user_id}", f"analytics:{user_id}", f"serp:{user_id}", f"rank:{user_id}"]
