"""
JWT Token Validation

Validates HS256 bearer tokens signed with the shared JWT_SECRET.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWTError

from serptrack.auth.config import get_auth_config

logger = logging.getLogger(__name__)


class JWTError(Exception):
    """Custom JWT validation error."""
    pass


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Args:
        token: The JWT token from the Authorization header

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid, expired, or malformed
    """
    config = get_auth_config()
    if not config.jwt_secret:
        raise JWTError("JWT_SECRET not configured")

    options = {"require": ["sub"]}
    if not config.jwt_audience:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            audience=config.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.InvalidAudienceError:
        raise JWTError("Invalid token audience")
    except jwt.InvalidSignatureError:
        raise JWTError("Invalid token signature")
    except jwt.MissingRequiredClaimError:
        raise JWTError("Token missing 'sub' claim (user ID)")
    except jwt.DecodeError as e:
        raise JWTError(f"Token decode error: {str(e)}")
    except PyJWTError as e:
        raise JWTError(f"Token validation error: {str(e)}")

    if not payload.get("sub"):
        raise JWTError("Token missing 'sub' claim (user ID)")

    return payload


def create_access_token(
    user_id: str,
    email: str,
    name: Optional[str] = None,
    expires_in: timedelta = timedelta(days=7),
) -> str:
    """Sign a token for a user (scripts and tests)."""
    config = get_auth_config()
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "iat": now,
        "exp": now + expires_in,
    }
    if config.jwt_audience:
        payload["aud"] = config.jwt_audience
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def extract_user_info(payload: Dict[str, Any]) -> Dict[str, Any]:
    """User fields carried by a verified payload."""
    metadata = payload.get("user_metadata") or {}
    return {
        "id": payload.get("sub"),
        "email": payload.get("email"),
        "name": payload.get("name") or metadata.get("full_name") or metadata.get("name"),
    }
