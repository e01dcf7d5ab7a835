"""
Pytest Configuration and Shared Fixtures

Provides an in-memory database, a fresh memory cache, a DataForSEO client
backed by httpx.MockTransport, and factories for users, SERPs and rankings.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import serptrack.auth.models  # noqa: F401  (registers the users table)
from serptrack.auth.models import User, UserRole
from serptrack.auth.rate_limit import check_rank_limiter
from serptrack.cache import MemoryCache, set_cache
from serptrack.database.models import Base, RankingResult, SearchHistory
from serptrack.database.session import configure_engine, get_session_factory
from serptrack.dataforseo.client import DataForSEOClient, RetryConfig, set_dataforseo_client


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    configure_engine(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()
    configure_engine(None)


@pytest.fixture
def db(engine):
    session = get_session_factory()()
    yield session
    session.close()


# ============================================================================
# Process-wide state
# ============================================================================

@pytest.fixture(autouse=True)
def memory_cache():
    """Fresh memory cache per test."""
    cache = MemoryCache()
    set_cache(cache)
    yield cache
    set_cache(None)


@pytest.fixture(autouse=True)
def reset_shared_state():
    yield
    set_dataforseo_client(None)
    check_rank_limiter.reset()


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def make_user(db) -> Callable[..., User]:
    def _make(email: Optional[str] = None, role: UserRole = UserRole.USER, tokens: int = 5, **fields) -> User:
        fields.setdefault("name", "Test User")
        fields.setdefault("is_active", True)
        fields.setdefault("last_active_at", datetime.utcnow())
        user = User(
            id=uuid4(),
            email=email or f"user-{uuid4().hex[:8]}@test.com",
            role=role,
            request_tokens=tokens,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user(email="user@test.com")


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(email="admin@test.com", role=UserRole.ADMIN, tokens=100)


# ============================================================================
# DataForSEO
# ============================================================================

def api_response(result: Optional[List[Dict[str, Any]]] = None, cost: float = 0.0006, **task) -> Dict[str, Any]:
    """Envelope DataForSEO wraps every response in."""
    return {
        "status_code": 20000,
        "status_message": "Ok.",
        "cost": cost,
        "tasks_count": 1,
        "tasks": [{
            "id": task.get("id", "task-1"),
            "status_code": task.get("status_code", 20000),
            "status_message": "Ok.",
            "cost": cost,
            "result": result,
        }],
    }


def organic(rank: int, domain: str, **fields) -> Dict[str, Any]:
    item = {
        "type": "organic",
        "rank_group": rank,
        "rank_absolute": rank,
        "position": "left",
        "page": 1,
        "domain": domain,
        "url": f"https://{domain}/page-{rank}",
        "title": f"Result {rank} on {domain}",
        "description": f"Description {rank}",
    }
    item.update(fields)
    return item


def make_serp(keyword: str = "rank tracker", domains: Optional[List[str]] = None, extra_items=None, **fields) -> Dict[str, Any]:
    """Raw SERP with organic results for the given domains, in order."""
    domains = domains if domains is not None else ["alpha.com", "example.com", "gamma.com"]
    items = list(extra_items or []) + [organic(index + 1, domain) for index, domain in enumerate(domains)]
    serp = {
        "keyword": keyword,
        "check_url": f"https://www.google.com/search?q={keyword.replace(' ', '+')}",
        "se_results_count": 1250000,
        "items_count": len(items),
        "items": items,
    }
    serp.update(fields)
    return serp


@pytest.fixture
def serp_factory():
    return make_serp


@pytest.fixture
def credit_log() -> List[Dict[str, Any]]:
    return []


@pytest.fixture
def make_client(credit_log) -> Callable[..., DataForSEOClient]:
    """
    Factory for clients answering through a handler.

    The handler receives the httpx.Request and returns a dict (sent as
    JSON with status 200) or an httpx.Response.
    """
    clients = []

    def _make(handler: Callable[[httpx.Request], Any], max_retries: int = 0) -> DataForSEOClient:
        def respond(request: httpx.Request) -> httpx.Response:
            outcome = handler(request)
            if isinstance(outcome, httpx.Response):
                return outcome
            return httpx.Response(200, json=outcome)

        client = DataForSEOClient(
            login="login",
            password="password",
            retry_config=RetryConfig(max_retries=max_retries, initial_delay=0, max_delay=0),
            transport=httpx.MockTransport(respond),
            credit_tracker=lambda **usage: credit_log.append(usage),
        )
        clients.append(client)
        return client

    yield _make


def request_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode()) if request.content else None


# ============================================================================
# Stored data
# ============================================================================

@pytest.fixture
def add_ranking(db) -> Callable[..., RankingResult]:
    """Insert a ranking row; ``days_ago`` sets created_at."""
    def _add(user: User, keyword: str, rank: Optional[int], domain: str = "example.com",
             days_ago: float = 0, **fields) -> RankingResult:
        row = RankingResult(
            user_id=user.id,
            domain=domain,
            keyword=keyword,
            location="United States",
            location_code=2840,
            language="en",
            device="desktop",
            os="windows",
            rank=rank,
            rank_group=rank,
            created_at=datetime.utcnow() - timedelta(days=days_ago),
            **fields,
        )
        db.add(row)
        db.commit()
        return row
    return _add


@pytest.fixture
def add_search(db) -> Callable[..., SearchHistory]:
    def _add(user: User, domain: str = "example.com", keywords=None, days_ago: float = 0, **fields) -> SearchHistory:
        keywords = keywords or ["rank tracker"]
        history = SearchHistory(
            user_id=user.id,
            domain=domain,
            location="United States",
            location_code=2840,
            keywords=keywords,
            keyword_count=len(keywords),
            created_at=datetime.utcnow() - timedelta(days=days_ago),
            **fields,
        )
        db.add(history)
        db.commit()
        return history
    return _add
