"""
Authentication Tests

Tests for JWT validation, user sync, auth dependencies and rate limiting.
"""

import pytest
from datetime import datetime, timedelta
from uuid import UUID, uuid4
from unittest.mock import Mock, patch

import jwt
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from serptrack.auth.config import AuthConfig
from serptrack.auth.dependencies import check_rank_rate_limit, get_current_user, require_admin
from serptrack.auth.jwt import JWTError, create_access_token, extract_user_info, verify_access_token
from serptrack.auth.models import User, UserRole
from serptrack.auth.rate_limit import RateLimiter, check_rank_limiter
from serptrack.auth.sync import get_user_by_email, get_user_by_id, sync_user_from_token


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def auth_config():
    """Create test auth config."""
    return AuthConfig(
        jwt_secret="super-secret-jwt-key-for-testing",
        jwt_algorithm="HS256",
        jwt_audience="serptrack",
        auth_enabled=True,
        admin_emails=["admin@test.com"],
    )


@pytest.fixture
def patched_config(auth_config):
    """Patch every module that reads the auth config."""
    with patch("serptrack.auth.jwt.get_auth_config", return_value=auth_config), \
         patch("serptrack.auth.sync.get_auth_config", return_value=auth_config), \
         patch("serptrack.auth.dependencies.get_auth_config", return_value=auth_config):
        yield auth_config


@pytest.fixture
def valid_jwt_payload():
    """Create valid JWT payload."""
    return {
        "sub": str(uuid4()),
        "email": "User@Test.com",
        "name": "Test User",
        "aud": "serptrack",
        "exp": int((datetime.utcnow() + timedelta(hours=1)).timestamp()),
        "iat": int(datetime.utcnow().timestamp()),
    }


@pytest.fixture
def create_test_token(auth_config):
    """Factory to create test JWT tokens."""
    def _create(payload: dict) -> str:
        return jwt.encode(payload, auth_config.jwt_secret, algorithm=auth_config.jwt_algorithm)
    return _create


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# =============================================================================
# JWT VALIDATION TESTS
# =============================================================================

class TestJWTValidation:
    """Tests for JWT token validation."""

    def test_valid_token(self, patched_config, valid_jwt_payload, create_test_token):
        """Test that a valid token is accepted."""
        payload = verify_access_token(create_test_token(valid_jwt_payload))

        assert payload["sub"] == valid_jwt_payload["sub"]
        assert payload["email"] == valid_jwt_payload["email"]

    def test_expired_token(self, patched_config, valid_jwt_payload, create_test_token):
        """Test that expired tokens are rejected."""
        valid_jwt_payload["exp"] = int((datetime.utcnow() - timedelta(hours=1)).timestamp())

        with pytest.raises(JWTError, match="expired"):
            verify_access_token(create_test_token(valid_jwt_payload))

    def test_invalid_signature(self, patched_config, valid_jwt_payload):
        """Test that tokens with invalid signatures are rejected."""
        token = jwt.encode(valid_jwt_payload, "wrong-secret", algorithm="HS256")

        with pytest.raises(JWTError, match="signature"):
            verify_access_token(token)

    def test_missing_sub_claim(self, patched_config, valid_jwt_payload, create_test_token):
        """Test that tokens without 'sub' claim are rejected."""
        del valid_jwt_payload["sub"]

        with pytest.raises(JWTError, match="sub"):
            verify_access_token(create_test_token(valid_jwt_payload))

    def test_invalid_audience(self, patched_config, valid_jwt_payload, create_test_token):
        """Test that tokens with wrong audience are rejected."""
        valid_jwt_payload["aud"] = "wrong-audience"

        with pytest.raises(JWTError, match="audience"):
            verify_access_token(create_test_token(valid_jwt_payload))

    def test_audience_optional_when_not_configured(self, valid_jwt_payload):
        config = AuthConfig(jwt_secret="secret", jwt_audience="")
        del valid_jwt_payload["aud"]
        token = jwt.encode(valid_jwt_payload, "secret", algorithm="HS256")

        with patch("serptrack.auth.jwt.get_auth_config", return_value=config):
            assert verify_access_token(token)["sub"] == valid_jwt_payload["sub"]

    def test_malformed_token(self, patched_config):
        with pytest.raises(JWTError, match="decode"):
            verify_access_token("not-a-jwt")

    def test_no_jwt_secret_configured(self):
        """Test error when JWT secret not configured."""
        with patch("serptrack.auth.jwt.get_auth_config", return_value=AuthConfig(jwt_secret="")):
            with pytest.raises(JWTError, match="not configured"):
                verify_access_token("any-token")

    def test_created_token_round_trips(self, patched_config):
        user_id = uuid4()

        payload = verify_access_token(create_access_token(user_id, "a@test.com", "A"))

        assert payload["sub"] == str(user_id)
        assert payload["aud"] == "serptrack"
        assert payload["name"] == "A"


class TestExtractUserInfo:
    """Tests for extracting user info from JWT payload."""

    def test_top_level_name(self, valid_jwt_payload):
        info = extract_user_info(valid_jwt_payload)

        assert info == {
            "id": valid_jwt_payload["sub"],
            "email": "User@Test.com",
            "name": "Test User",
        }

    def test_metadata_name(self):
        """Name falls back to user_metadata (full_name, then name)."""
        info = extract_user_info({"sub": "1", "user_metadata": {"name": "Google User"}})

        assert info["name"] == "Google User"
        assert info["email"] is None


# =============================================================================
# USER SYNC TESTS
# =============================================================================

class TestUserSync:
    """Tests for user synchronization."""

    def test_sync_creates_new_user(self, db, patched_config, valid_jwt_payload):
        """Test that a new user is created on first sync."""
        user = sync_user_from_token(db, valid_jwt_payload)

        assert user.id == UUID(valid_jwt_payload["sub"])
        assert user.email == "user@test.com"
        assert user.role == UserRole.USER
        assert user.request_tokens == 1
        assert user.plan_slug == "free"

    def test_sync_updates_existing_user(self, db, patched_config, valid_jwt_payload):
        """Test that existing user is updated on subsequent sync."""
        first = sync_user_from_token(db, valid_jwt_payload)
        first.request_tokens = 9
        db.commit()

        valid_jwt_payload["email"] = "renamed@test.com"
        valid_jwt_payload["name"] = None
        second = sync_user_from_token(db, valid_jwt_payload)

        assert second.id == first.id
        assert second.email == "renamed@test.com"
        assert second.name == "Test User"
        assert second.request_tokens == 9
        assert db.query(User).count() == 1

    def test_sync_auto_promotes_admin(self, db, patched_config, valid_jwt_payload):
        """Test that admin emails are auto-promoted."""
        valid_jwt_payload["email"] = "ADMIN@test.com"

        user = sync_user_from_token(db, valid_jwt_payload)

        assert user.role == UserRole.ADMIN

    def test_sync_promotes_existing_user(self, db, patched_config, make_user, valid_jwt_payload):
        existing = make_user(email="admin@test.com")
        valid_jwt_payload.update({"sub": str(existing.id), "email": "admin@test.com"})

        assert sync_user_from_token(db, valid_jwt_payload).role == UserRole.ADMIN

    def test_sync_requires_email(self, patched_config):
        mock_db = Mock()

        with pytest.raises(JWTError, match="email"):
            sync_user_from_token(mock_db, {"sub": str(uuid4())})

        mock_db.add.assert_not_called()

    def test_sync_rejects_non_uuid_subject(self, patched_config):
        with pytest.raises(JWTError, match="valid user ID"):
            sync_user_from_token(Mock(), {"sub": "user-123", "email": "a@test.com"})

    def test_lookup_by_email_is_case_insensitive(self, db, make_user):
        user = make_user(email="mixed@test.com")

        assert get_user_by_email(db, "MIXED@test.com").id == user.id

    def test_lookup_by_id(self, db, make_user):
        user = make_user()

        assert get_user_by_id(db, user.id).email == user.email
        assert get_user_by_id(db, uuid4()) is None


# =============================================================================
# DEPENDENCY TESTS
# =============================================================================

class TestGetCurrentUser:
    """Tests for the get_current_user dependency."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, db, patched_config):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, db=db)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_invalid_token(self, db, patched_config):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer("garbage"), db=db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token_syncs_user(self, db, patched_config, valid_jwt_payload, create_test_token):
        user = await get_current_user(credentials=bearer(create_test_token(valid_jwt_payload)), db=db)

        assert user.email == "user@test.com"

    @pytest.mark.asyncio
    async def test_disabled_user(self, db, patched_config, make_user, create_test_token, valid_jwt_payload):
        disabled = make_user(email="user@test.com", is_active=False)
        valid_jwt_payload["sub"] = str(disabled.id)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(create_test_token(valid_jwt_payload)), db=db)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_dev_user_when_auth_disabled(self, db):
        config = AuthConfig(auth_enabled=False)

        with patch("serptrack.auth.dependencies.get_auth_config", return_value=config):
            first = await get_current_user(credentials=None, db=db)
            second = await get_current_user(credentials=None, db=db)

        assert first.email == "dev@serptrack.local"
        assert first.is_admin
        assert first.request_tokens == 1000
        assert second.id == first.id


class TestRequireAdmin:
    """Tests for the require_admin dependency."""

    @pytest.mark.asyncio
    async def test_admin_passes(self, admin_user):
        assert await require_admin(current_user=admin_user) is admin_user

    @pytest.mark.asyncio
    async def test_user_rejected(self, user):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(current_user=user)

        assert exc_info.value.status_code == 403


# =============================================================================
# RATE LIMITING TESTS
# =============================================================================

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Tests for the fixed-window limiter."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(interval=60, clock=FakeClock())

        outcomes = [limiter.check("user", limit=3) for _ in range(4)]

        assert [o["success"] for o in outcomes] == [True, True, True, False]
        assert [o["remaining"] for o in outcomes] == [2, 1, 0, 0]
        assert outcomes[0]["reset"] == 1060.0

    def test_window_restarts_after_expiry(self):
        clock = FakeClock()
        limiter = RateLimiter(interval=60, clock=clock)
        limiter.check("user", limit=1)
        assert not limiter.check("user", limit=1)["success"]

        clock.now += 61

        assert limiter.check("user", limit=1)["success"]

    def test_keys_are_independent(self):
        limiter = RateLimiter(interval=60, clock=FakeClock())
        limiter.check("a", limit=1)

        assert limiter.check("b", limit=1)["success"]

    def test_cleanup_drops_expired_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(interval=60, clock=clock)
        limiter.check("a", limit=1)
        clock.now += 30
        limiter.check("b", limit=1)
        clock.now += 31

        assert limiter.cleanup() == 1

    def test_check_prunes_expired_windows_each_interval(self):
        clock = FakeClock()
        limiter = RateLimiter(interval=60, clock=clock)
        for token in ("a", "b", "c"):
            limiter.check(token, limit=1)

        clock.now += 30
        limiter.check("d", limit=1)
        assert len(limiter._windows) == 4

        clock.now += 31
        limiter.check("d", limit=1)

        assert sorted(limiter._windows) == ["d"]

    @pytest.mark.asyncio
    async def test_dependency_returns_429_with_retry_after(self, user, monkeypatch):
        from serptrack.auth import dependencies

        monkeypatch.setattr(dependencies.get_settings(), "CHECK_RANK_RATE_LIMIT", 1)
        assert await check_rank_rate_limit(current_user=user) is user

        with pytest.raises(HTTPException) as exc_info:
            await check_rank_rate_limit(current_user=user)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["X-RateLimit-Remaining"] == "0"
        assert 1 <= int(exc_info.value.headers["Retry-After"]) <= 60
        check_rank_limiter.reset()


# =============================================================================
# USER MODEL TESTS
# =============================================================================

class TestUserModel:
    """Tests for User model."""

    def test_is_admin(self):
        assert User(id=uuid4(), email="a@test.com", role=UserRole.ADMIN).is_admin is True
        assert User(id=uuid4(), email="u@test.com", role=UserRole.USER).is_admin is False

    def test_user_repr(self):
        user = User(id=uuid4(), email="user@test.com", role=UserRole.USER)

        assert "user@test.com" in repr(user)
        assert "user" in repr(user)

    def test_config_is_configured(self, auth_config):
        assert auth_config.is_configured is True
        assert AuthConfig(jwt_secret="").is_configured is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
