"""
User Synchronization

Creates the local user on first access from a verified token and keeps
email, name, role and activity timestamp current afterwards.
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.auth.models import User, UserRole
from serptrack.auth.config import get_auth_config
from serptrack.auth.jwt import JWTError, extract_user_info

logger = logging.getLogger(__name__)


def sync_user_from_token(
    db: Session,
    jwt_payload: Dict[str, Any],
) -> User:
    """
    Sync user from a JWT payload to the local database.

    Args:
        db: Database session
        jwt_payload: Verified JWT payload

    Returns:
        Local User record (created or updated)
    """
    user_info = extract_user_info(jwt_payload)
    try:
        user_id = UUID(str(user_info["id"]))
    except ValueError:
        raise JWTError("Token 'sub' claim is not a valid user ID")

    email = (user_info.get("email") or "").lower()
    if not email:
        raise JWTError("Token missing 'email' claim")

    config = get_auth_config()
    user = db.query(User).filter(User.id == user_id).first()

    if user is None:
        logger.info(f"Creating new user: {email}")

        role = UserRole.USER
        if email in config.admin_emails:
            role = UserRole.ADMIN
            logger.info(f"Auto-promoting {email} to admin")

        user = User(
            id=user_id,
            email=email,
            name=user_info.get("name"),
            role=role,
            is_active=True,
            request_tokens=1,
            plan_slug="free",
            last_active_at=datetime.utcnow(),
        )
        db.add(user)
    else:
        user.email = email
        user.name = user_info.get("name") or user.name
        user.last_active_at = datetime.utcnow()

        if email in config.admin_emails and user.role != UserRole.ADMIN:
            logger.info(f"Promoting {email} to admin")
            user.role = UserRole.ADMIN

    db.commit()
    db.refresh(user)
    return user


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get user by email."""
    return db.query(User).filter(User.email == email.lower()).first()
