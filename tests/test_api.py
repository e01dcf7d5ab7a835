"""
API Tests

Route-level tests through FastAPI's TestClient: envelopes, auth guards,
rank checks, jobs, exports, keyword lists, plans, admin and locations.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from api.app import app
from serptrack.auth.config import AuthConfig
from serptrack.auth.dependencies import get_current_user
from serptrack.auth.models import User
from serptrack.catalog.plans import seed_default_plans
from serptrack.database.models import Job, Location
from serptrack.database.session import get_db
from serptrack.dataforseo.client import set_dataforseo_client
from serptrack.utils.config import get_settings

from conftest import api_response, make_serp


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def client(engine):
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Authenticate requests as the given user, loaded in the request's session."""
    def _login(user: User) -> None:
        user_id = user.id

        def current_user(db: Session = Depends(get_db)) -> User:
            return db.get(User, user_id)

        app.dependency_overrides[get_current_user] = current_user
    return _login


@pytest.fixture
def live_serp(make_client):
    """Answer every live regular request with a SERP where example.com ranks 2nd."""
    calls = []

    def handler(request):
        calls.append(request)
        return api_response([make_serp()])

    set_dataforseo_client(make_client(handler))
    return calls


# =============================================================================
# HEALTH & AUTH
# =============================================================================

class TestHealth:
    """Tests for liveness endpoints."""

    def test_root(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "SERPTrack"}

    def test_health_reports_database(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "healthy"
        assert body["database"] == "connected"


class TestAuthGuards:
    """Tests for authentication and authorization on routes."""

    def test_missing_token_is_401_envelope(self, client):
        with patch("serptrack.auth.dependencies.get_auth_config", return_value=AuthConfig(jwt_secret="secret")):
            response = client.get("/api/history")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Authentication required"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_admin_routes_reject_users(self, client, login, user):
        login(user)

        response = client.get("/api/admin/stats")

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"


# =============================================================================
# RANK CHECKS
# =============================================================================

class TestCheckRank:
    """Tests for the live rank-check endpoints."""

    def test_regular_check(self, client, login, user, live_serp, db):
        login(user)

        response = client.post("/api/check-rank/regular", json={
            "domain": "example.com",
            "keywords": ["rank tracker"],
            "location_code": 2840,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["tokensRemaining"] == 4
        assert body["results"][0]["rank"] == 2
        assert body["results"][0]["source"] == "api"
        assert "top_rankers" not in body["results"][0]
        assert len(live_serp) == 1

        db.expire_all()
        assert db.get(User, user.id).request_tokens == 4

    @pytest.mark.parametrize("payload, message", [
        ({"keywords": ["seo"]}, "Domain is required."),
        ({"domain": "example.com", "keywords": "seo"}, "Keywords must be provided as an array."),
        ({"domain": "example.com", "keywords": []}, "At least one keyword is required."),
    ])
    def test_validation(self, client, login, user, payload, message):
        login(user)

        response = client.post("/api/check-rank/regular", json=payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": message}

    def test_no_tokens(self, client, login, make_user):
        login(make_user(tokens=0))

        response = client.post("/api/check-rank/regular", json={"domain": "example.com", "keywords": ["seo"]})

        assert response.status_code == 403
        assert response.json()["tokensRemaining"] == 0
        assert "Insufficient request tokens" in response.json()["error"]

    def test_advanced_disabled(self, client, login, admin_user, monkeypatch):
        monkeypatch.setattr(get_settings(), "ADVANCED_API_ENABLED", False)
        login(admin_user)

        response = client.post("/api/check-rank", json={"domain": "example.com", "keywords": ["seo"]})

        assert response.status_code == 503
        assert "Advanced API is currently disabled" in response.json()["error"]

    def test_rate_limited(self, client, login, user, monkeypatch):
        monkeypatch.setattr(get_settings(), "CHECK_RANK_RATE_LIMIT", 1)
        login(user)

        client.post("/api/check-rank/regular", json={})
        response = client.post("/api/check-rank/regular", json={})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Limit"] == "1"


class TestResults:
    """Tests for search results and export."""

    @pytest.fixture
    def history(self, user, add_search, add_ranking):
        search = add_search(user, "example.com", ["rank tracker", "serp api"], task_ids=["t-1", "t-2"])
        add_ranking(user, "rank tracker", 2, task_id="t-1", title="Rank Tracker",
                    url="https://example.com/a", top_rankers=[{"domain": "alpha.com"}])
        add_ranking(user, "serp api", None, task_id="t-2", top_rankers=[])
        return search

    def test_results_in_task_order(self, client, login, user, history):
        login(user)

        body = client.get(f"/api/check-rank/results/{history.id}").json()

        assert body["status"] == "completed"
        assert [item["keyword"] for item in body["results"]] == ["rank tracker", "serp api"]

    def test_export_csv(self, client, login, user, history):
        login(user)

        response = client.get(f"/api/check-rank/results/{history.id}/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        assert response.text.split("\n")[1:] == [
            "rank tracker,2,https://example.com/a,Rank Tracker,alpha.com,-,-",
            "serp api,-,-,-,-,-,-",
        ]

    def test_export_json(self, client, login, user, history):
        login(user)

        response = client.get(f"/api/check-rank/results/{history.id}/export", params={"format": "json"})

        assert response.json()[0]["competitor1"] == "alpha.com"

    def test_export_rejects_unknown_format(self, client, login, user, history):
        login(user)

        response = client.get(f"/api/check-rank/results/{history.id}/export", params={"format": "xml"})

        assert response.status_code == 400

    def test_other_users_history_is_hidden(self, client, login, make_user, history):
        login(make_user())

        assert client.get(f"/api/check-rank/results/{history.id}").status_code == 404


# =============================================================================
# JOBS
# =============================================================================

class TestJobRoutes:
    """Tests for bulk job endpoints."""

    def test_create_list_get_cancel(self, client, login, user, db):
        login(user)

        with patch("api.jobs.process_job", new=AsyncMock()) as process:
            created = client.post("/api/jobs", json={"domain": "example.com", "keywords": ["a", "b"]}).json()

        job_id = created["jobId"]
        process.assert_called_once()
        assert "2 keywords" in created["message"]

        listed = client.get("/api/jobs").json()
        assert [job["id"] for job in listed["jobs"]] == [job_id]
        assert listed["pagination"]["total"] == 1

        detail = client.get(f"/api/jobs/{job_id}").json()
        assert detail["job"]["status"] == "pending"
        assert detail["job"]["results"] == []

        assert client.delete(f"/api/jobs/{job_id}").json()["success"] is True
        assert client.delete(f"/api/jobs/{job_id}").status_code == 404

        db.expire_all()
        assert db.query(Job).one().status.value == "cancelled"

    def test_unknown_job(self, client, login, user):
        login(user)

        response = client.get(f"/api/jobs/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "Job not found."

    def test_invalid_job_request(self, client, login, user):
        login(user)

        assert client.post("/api/jobs", json={"domain": "example.com"}).status_code == 400

    def test_cron_triggers(self, client):
        with patch("api.jobs.poll_and_process_jobs", new=AsyncMock(return_value={})) as jobs_loop, \
             patch("api.jobs.poll_dataforseo_tasks", new=AsyncMock(return_value={})) as poll_loop:
            assert client.get("/api/jobs/process").json()["success"] is True
            assert client.get("/api/dataforseo/poll").json()["success"] is True

        jobs_loop.assert_awaited_once()
        poll_loop.assert_awaited_once()


# =============================================================================
# HISTORY & ANALYTICS
# =============================================================================

class TestUserRoutes:
    """Tests for history, tokens and analytics routes."""

    def test_tokens(self, client, login, user):
        login(user)

        assert client.get("/api/user/tokens").json() == {"tokens": 5}

    def test_history(self, client, login, user, add_search):
        add_search(user, "example.com", ["rank tracker"])
        login(user)

        body = client.get("/api/history").json()

        assert body["success"] is True
        assert len(body["history"]) == 1

    def test_visibility_has_private_cache_headers(self, client, login, user, add_ranking):
        add_ranking(user, "rank tracker", 1)
        login(user)

        response = client.get("/api/analytics/visibility", params={"days": 7})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.headers["Cache-Control"].startswith("private")

    def test_days_out_of_range(self, client, login, user):
        login(user)

        response = client.get("/api/analytics/visibility", params={"days": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"
        assert "query.days" in response.json()["meta"]["errors"]

    def test_keywords_paginated(self, client, login, user, add_ranking):
        for keyword in ("a", "b", "c"):
            add_ranking(user, keyword, 5)
        login(user)

        body = client.get("/api/analytics/keywords", params={"limit": 2}).json()

        assert body["pagination"]["total"] == 3
        assert body["pagination"]["hasNext"] is True
        assert len(body["data"]["keywords"]) == 2

    def test_unknown_keyword(self, client, login, user):
        login(user)

        assert client.get("/api/analytics/keywords/never-tracked").status_code == 404


# =============================================================================
# KEYWORD LISTS
# =============================================================================

class TestKeywordListRoutes:
    """Tests for keyword list endpoints."""

    def test_lifecycle(self, client, login, user):
        login(user)

        created = client.post("/api/v1/keyword-lists", json={
            "name": "Main",
            "domain": "www.example.com",
            "keywords": ["rank tracker"],
            "trackingFrequency": "daily",
        })
        assert created.status_code == 201
        list_id = created.json()["data"]["id"]
        assert created.json()["data"]["domain"] == "example.com"

        added = client.post(f"/api/v1/keyword-lists/{list_id}/keywords", json={"keywords": ["serp api"]}).json()
        assert added["message"] == "Added 1 keyword(s)"

        updated = client.patch(f"/api/v1/keyword-lists/{list_id}", json={"autoTrack": True}).json()
        assert updated["data"]["autoTrack"] is True
        assert updated["data"]["trackingFrequency"] == "daily"

        noted = client.patch(f"/api/v1/keyword-lists/{list_id}/keywords", json={
            "keyword": "serp api",
            "notes": "watch",
        }).json()
        assert noted["data"]["notes"] == "watch"

        removed = client.request("DELETE", f"/api/v1/keyword-lists/{list_id}/keywords",
                                 json={"keywords": ["rank tracker"]}).json()
        assert removed["data"] == {"removed": 1, "total": 1}

        assert client.delete(f"/api/v1/keyword-lists/{list_id}").json()["success"] is True
        assert client.get(f"/api/v1/keyword-lists/{list_id}").status_code == 404

    def test_duplicate_domain(self, client, login, user):
        login(user)
        client.post("/api/v1/keyword-lists", json={"name": "Main", "domain": "example.com"})

        response = client.post("/api/v1/keyword-lists", json={"name": "Again", "domain": "example.com"})

        assert response.status_code == 400
        assert "per domain" in response.json()["error"]


# =============================================================================
# PLANS, ADMIN & LOCATIONS
# =============================================================================

class TestPublicRoutes:
    """Tests for routes without authentication."""

    def test_plans(self, client, db):
        seed_default_plans(db)

        response = client.get("/api/v1/plans")

        assert [plan["slug"] for plan in response.json()["data"]] == ["free", "basic", "pro", "enterprise"]
        assert response.headers["Cache-Control"] == "public, max-age=300, stale-while-revalidate=30"

    def test_locations(self, client, db):
        db.add(Location(location_code=2826, location_name="United Kingdom",
                        location_type="Country", country_iso_code="GB"))
        db.commit()

        response = client.get("/api/locations", params={"q": "united"})

        assert response.json()["data"][0]["location_code"] == 2826
        assert "max-age=3600" in response.headers["Cache-Control"]


class TestAdminRoutes:
    """Tests for admin endpoints."""

    def test_adjust_tokens(self, client, login, admin_user, user, db):
        login(admin_user)

        response = client.post(f"/api/v1/admin/users/{user.id}/tokens", json={"amount": 10, "operation": "add"})

        assert response.json()["data"]["newTokens"] == 15
        assert response.json()["message"] == "Tokens added successfully"
        db.expire_all()
        assert db.get(User, user.id).request_tokens == 15

    def test_adjust_tokens_validation(self, client, login, admin_user, user):
        login(admin_user)

        response = client.post(f"/api/v1/admin/users/{user.id}/tokens", json={"amount": "ten"})

        assert response.status_code == 400
        assert response.json()["error"] == "Amount is required and must be a number"

    def test_seed_plans_twice(self, client, login, admin_user):
        login(admin_user)

        assert client.put("/api/v1/admin/plans/seed").status_code == 200
        assert client.put("/api/v1/admin/plans/seed").status_code == 400
        assert len(client.get("/api/v1/admin/plans").json()["data"]) == 4

    def test_stats_and_health(self, client, login, admin_user):
        login(admin_user)

        assert client.get("/api/admin/stats").json()["data"]["usersByRole"]["admin"] == 1
        assert client.get("/api/v1/admin/system/health").json()["data"]["status"] == "healthy"
        assert client.get("/api/admin/api-usage").json()["data"]["totalRequests"] == 0
