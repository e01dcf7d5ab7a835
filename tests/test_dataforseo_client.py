"""
DataForSEO Client Tests

Retry behaviour, API error handling and credit tracking of the HTTP client.
"""

import base64

import httpx
import pytest

from serptrack.dataforseo.client import (
    DataForSEOClient,
    DataForSEOError,
    RetryConfig,
    get_dataforseo_client,
    set_dataforseo_client,
)

from conftest import api_response, request_body


class TestRequests:
    """Tests for request shaping."""

    @pytest.mark.asyncio
    async def test_single_payload_is_wrapped_in_list(self, make_client):
        seen = {}

        def handler(request):
            seen["body"] = request_body(request)
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return api_response([{"keyword": "seo"}])

        client = make_client(handler)
        await client.post("/serp/google/organic/live/regular", {"keyword": "seo"})

        assert seen["body"] == [{"keyword": "seo"}]
        assert seen["path"] == "/v3/serp/google/organic/live/regular"
        expected = base64.b64encode(b"login:password").decode()
        assert seen["auth"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_get_sends_no_body(self, make_client):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request_body(request)
            return api_response([])

        client = make_client(handler)
        await client.get("serp/google/organic/tasks_ready")

        assert seen == {"method": "GET", "body": None}

    @pytest.mark.asyncio
    async def test_closed_client_raises(self, make_client):
        client = make_client(lambda request: api_response([]))
        await client.close()

        with pytest.raises(DataForSEOError, match="closed"):
            await client.get("/serp/google/organic/tasks_ready")


class TestErrors:
    """Tests for API and HTTP errors."""

    @pytest.mark.asyncio
    async def test_api_status_code_raises(self, make_client):
        client = make_client(lambda request: {
            "status_code": 40101,
            "status_message": "Authentication failed",
            "tasks": [],
        })

        with pytest.raises(DataForSEOError) as exc_info:
            await client.post("/serp/google/organic/live/regular", {"keyword": "seo"})

        assert exc_info.value.status_code == 40101
        assert "Authentication failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_api_errors_are_not_retried(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return {"status_code": 40501, "status_message": "Invalid field"}

        client = make_client(handler, max_retries=3)
        with pytest.raises(DataForSEOError):
            await client.post("/serp/google/organic/live/regular", {"keyword": "seo"})

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_http_errors_are_retried(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return api_response([{"keyword": "seo"}])

        client = make_client(handler, max_retries=3)
        response = await client.get("/serp/google/organic/task_get/advanced/task-1")

        assert len(calls) == 3
        assert response["status_code"] == 20000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("endpoint", [
        "/serp/google/organic/task_post",
        "/serp/google/organic/live/regular",
        "/serp/google/organic/live/advanced",
    ])
    async def test_billed_posts_are_sent_once(self, make_client, endpoint):
        calls = []

        def handler(request):
            calls.append(request.method)
            if len(calls) == 1:
                return httpx.Response(502)
            return api_response([{"keyword": "seo"}])

        client = make_client(handler, max_retries=2)
        with pytest.raises(DataForSEOError) as exc_info:
            await client.post(endpoint, {"keyword": "seo"})

        assert calls == ["POST"]
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_post_timeout_is_not_retried(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler, max_retries=2)
        with pytest.raises(DataForSEOError, match="Request timed out"):
            await client.post("/serp/google/organic/task_post", {"keyword": "seo"})

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted_raises_last_error(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, max_retries=2)
        with pytest.raises(DataForSEOError) as exc_info:
            await client.get("/serp/google/organic/tasks_ready")

        assert len(calls) == 3
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_client_errors_fail_immediately(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        client = make_client(handler, max_retries=3)
        with pytest.raises(DataForSEOError):
            await client.get("/serp/google/organic/tasks_ready")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_error_is_wrapped(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(DataForSEOError, match="HTTP error"):
            await client.get("/serp/google/organic/tasks_ready")


class TestCreditTracking:
    """Tests for per-user credit usage recording."""

    @pytest.mark.asyncio
    async def test_cost_is_tracked_for_user(self, make_client, credit_log):
        client = make_client(lambda request: api_response([{"keyword": "seo"}], cost=0.002))

        await client.post("/serp/google/organic/live/advanced", {"keyword": "seo"}, user_id="user-1")

        assert len(credit_log) == 1
        usage = credit_log[0]
        assert usage["user_id"] == "user-1"
        assert usage["credits_used"] == 0.002
        assert usage["api_endpoint"] == "/serp/google/organic/live/advanced"
        assert usage["request_params"] == [{"keyword": "seo"}]
        assert usage["response_status"] == 20000
        assert usage["timestamp"] is not None

    @pytest.mark.asyncio
    async def test_no_tracking_without_user(self, make_client, credit_log):
        client = make_client(lambda request: api_response([{"keyword": "seo"}], cost=0.002))

        await client.post("/serp/google/organic/live/advanced", {"keyword": "seo"})

        assert credit_log == []

    @pytest.mark.asyncio
    async def test_no_tracking_without_cost(self, make_client, credit_log):
        client = make_client(lambda request: api_response([], cost=0))

        await client.get("/serp/google/organic/tasks_ready", user_id="user-1")

        assert credit_log == []

    @pytest.mark.asyncio
    async def test_tracker_failure_does_not_fail_request(self):
        def tracker(**usage):
            raise RuntimeError("database down")

        client = DataForSEOClient(
            login="login",
            password="password",
            retry_config=RetryConfig(max_retries=0, initial_delay=0),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=api_response([]))),
            credit_tracker=tracker,
        )

        response = await client.post("/serp/google/organic/task_post", {"keyword": "seo"}, user_id="u")
        assert response["status_code"] == 20000
        await client.close()


class TestAccount:
    """Tests for balance checks."""

    @pytest.mark.asyncio
    async def test_balance_is_read_from_user_data(self, make_client):
        client = make_client(lambda request: {
            "status_code": 20000,
            "tasks": [{"result": [{"money": {"balance": 42.5}}]}],
        })

        assert await client.get_account_balance() == 42.5
        assert await client.has_sufficient_balance(10) is True
        assert await client.has_sufficient_balance(100) is False

    @pytest.mark.asyncio
    async def test_balance_is_zero_on_failure(self, make_client):
        client = make_client(lambda request: httpx.Response(500))

        assert await client.get_account_balance() == 0


class TestSharedClient:
    """Tests for the process-wide client."""

    def test_missing_credentials_raise(self, monkeypatch):
        from serptrack.dataforseo import client as client_module

        settings = client_module.get_settings()
        monkeypatch.setattr(settings, "DATAFORSEO_LOGIN", None)
        monkeypatch.setattr(settings, "DATAFORSEO_PASSWORD", None)
        set_dataforseo_client(None)

        with pytest.raises(DataForSEOError, match="credentials"):
            get_dataforseo_client()

    def test_set_client_replaces_shared_instance(self, make_client):
        client = make_client(lambda request: api_response([]))
        set_dataforseo_client(client)

        assert get_dataforseo_client() is client
