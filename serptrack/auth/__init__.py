"""
Authentication Module

Bearer JWT validation with local user sync, role checks and
per-user rate limiting.

Usage:
    from serptrack.auth import get_current_user, require_admin

    @router.get("/protected")
    async def protected_route(user: User = Depends(get_current_user)):
        return {"user": user.email}

    @router.get("/admin-only")
    async def admin_route(user: User = Depends(require_admin)):
        return {"admin": user.email}
"""

from serptrack.auth.config import AuthConfig, get_auth_config
from serptrack.auth.models import User, UserRole
from serptrack.auth.jwt import JWTError, create_access_token, verify_access_token
from serptrack.auth.sync import sync_user_from_token, get_user_by_id, get_user_by_email
from serptrack.auth.rate_limit import RateLimiter, check_rank_limiter
from serptrack.auth.dependencies import (
    get_current_user,
    require_admin,
    check_rank_rate_limit,
)

__all__ = [
    # Config
    "AuthConfig",
    "get_auth_config",
    # Models
    "User",
    "UserRole",
    # JWT
    "JWTError",
    "create_access_token",
    "verify_access_token",
    # Sync
    "sync_user_from_token",
    "get_user_by_id",
    "get_user_by_email",
    # Rate limiting
    "RateLimiter",
    "check_rank_limiter",
    # Dependencies
    "get_current_user",
    "require_admin",
    "check_rank_rate_limit",
]
