"""
Authentication Configuration

Settings for JWT validation and auth behavior.
"""

import os
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings


def parse_admin_emails_from_env() -> list[str]:
    """Parse ADMIN_EMAILS env var as comma-separated string."""
    raw = os.getenv("ADMIN_EMAILS", "")
    if not raw:
        return []
    return [email.strip().lower() for email in raw.split(",") if email.strip()]


class AuthConfig(BaseSettings):
    """Authentication configuration loaded from environment."""

    # JWT Settings
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""  # Empty disables audience verification

    # Auth behavior
    auth_enabled: bool = True  # Set to False for local dev without auth

    # Parsed manually in get_auth_config(); BaseSettings would JSON-decode it
    admin_emails: list[str] = Field(
        default_factory=list,
        validation_alias="__ADMIN_EMAILS_DO_NOT_AUTO_LOAD__"
    )

    class Config:
        env_prefix = ""
        extra = "ignore"
        populate_by_name = True

    @property
    def is_configured(self) -> bool:
        return bool(self.jwt_secret)


@lru_cache()
def get_auth_config() -> AuthConfig:
    """Get cached auth configuration."""
    return AuthConfig(
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_audience=os.getenv("JWT_AUDIENCE", ""),
        auth_enabled=os.getenv("AUTH_ENABLED", "true").lower() == "true",
        admin_emails=parse_admin_emails_from_env(),
    )
