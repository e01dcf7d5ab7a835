"""
Authentication Models

User model and role enum, stored alongside the tracking tables.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, String, Boolean, DateTime, Enum, Index, Integer, Uuid

from serptrack.database.models import Base


class UserRole(enum.Enum):
    """User role for access control."""
    USER = "user"      # Basic tier results only
    ADMIN = "admin"    # Comprehensive results, admin endpoints


class User(Base):
    """
    Local user record, created from the first verified token.

    The id matches the token's ``sub`` claim.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)

    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))

    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Billing
    request_tokens = Column(Integer, default=1, nullable=False)
    plan_slug = Column(String(100), default="free")

    last_active_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_user_role", "role"),
        Index("idx_user_tokens", "request_tokens"),
    )

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
