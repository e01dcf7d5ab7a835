"""Admin operations: token adjustments, statistics, API usage and health."""

from serptrack.admin.service import (
    AdminError,
    adjust_tokens,
    get_admin_overview,
    get_api_usage,
    get_system_health,
    get_user_stats,
)

__all__ = [
    "AdminError",
    "adjust_tokens",
    "get_admin_overview",
    "get_api_usage",
    "get_system_health",
    "get_user_stats",
]
