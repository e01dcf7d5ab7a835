"""
FastAPI Authentication Dependencies

Provides dependency injection for authentication, authorization and
per-user rate limiting.
"""

import logging
from math import ceil
from typing import Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from serptrack.database.session import get_db
from serptrack.auth.models import User, UserRole
from serptrack.auth.jwt import verify_access_token, JWTError
from serptrack.auth.sync import sync_user_from_token
from serptrack.auth.config import get_auth_config
from serptrack.auth.rate_limit import check_rank_limiter
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)

# HTTP Bearer token extraction
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    Validates JWT, syncs user to local DB, returns User object.

    Raises:
        HTTPException 401: If not authenticated
        HTTPException 403: If user is disabled
    """
    config = get_auth_config()

    # If auth is disabled (local dev), return a dev user
    if not config.auth_enabled:
        return _get_dev_user(db)

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_access_token(credentials.credentials)
        user = sync_user_from_token(db, payload)
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the current user to be an admin.

    Raises:
        HTTPException 403: If user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def check_rank_rate_limit(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Fixed-window limit on rank checks per user.

    Raises:
        HTTPException 429: With Retry-After when the window is exhausted
    """
    limit = get_settings().CHECK_RANK_RATE_LIMIT
    outcome = check_rank_limiter.check(str(current_user.id), limit)

    if not outcome["success"]:
        retry_after = max(1, ceil(outcome["reset"] - outcome["now"]))
        logger.warning(f"Rate limit hit for user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(outcome["limit"]),
                "X-RateLimit-Remaining": "0",
            },
        )
    return current_user


def _get_dev_user(db: Session) -> User:
    """
    Get or create a development user when auth is disabled.
    """
    dev_email = "dev@serptrack.local"
    user = db.query(User).filter(User.email == dev_email).first()

    if not user:
        user = User(
            id=uuid4(),
            email=dev_email,
            name="Development User",
            role=UserRole.ADMIN,  # Dev user gets admin for testing
            is_active=True,
            request_tokens=1000,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user
