"""
Utility Tests

Tests for pagination, response envelopes and result export.
"""

import json
from datetime import datetime

import pytest

from serptrack.utils.export import export_as_csv, export_as_json, prepare_export_data
from serptrack.utils.pagination import (
    build_cursor_pagination,
    build_pagination,
    decode_cursor,
    encode_cursor,
    paginate,
    parse_pagination,
)
from serptrack.utils.responses import (
    error_response,
    forbidden_response,
    not_found_response,
    rate_limit_response,
    success_body,
    success_response,
    unauthorized_response,
    validation_error,
    with_cache_headers,
)


# =============================================================================
# PAGINATION
# =============================================================================

class TestParsePagination:
    """Tests for query normalization."""

    def test_defaults(self):
        assert parse_pagination() == {
            "page": 1,
            "limit": 20,
            "skip": 0,
            "cursor": None,
            "sort_by": "createdAt",
            "sort_order": "desc",
        }

    def test_limit_is_clamped(self):
        assert parse_pagination(limit="500")["limit"] == 100
        assert parse_pagination(limit="0")["limit"] == 1

    def test_garbage_falls_back_to_defaults(self):
        params = parse_pagination(page="abc", limit="x", sort_order="sideways")

        assert params["page"] == 1
        assert params["limit"] == 20
        assert params["sort_order"] == "desc"

    def test_skip_follows_page(self):
        params = parse_pagination(page=3, limit=25, sort_order="ASC")

        assert params["skip"] == 50
        assert params["sort_order"] == "asc"


class TestPaginationMeta:
    """Tests for pagination metadata."""

    def test_middle_page(self):
        assert build_pagination(page=2, limit=10, total=35) == {
            "page": 2,
            "limit": 10,
            "total": 35,
            "totalPages": 4,
            "hasNext": True,
            "hasPrev": True,
        }

    def test_empty_result(self):
        meta = build_pagination(page=1, limit=20, total=0)

        assert meta["totalPages"] == 0
        assert meta["hasNext"] is False
        assert meta["hasPrev"] is False

    def test_paginate_slices(self):
        assert paginate(list(range(10)), page=2, limit=4) == [4, 5, 6, 7]
        assert paginate(list(range(10)), page=4, limit=4) == []


class TestCursors:
    """Tests for keyset cursors."""

    def test_datetime_cursor(self):
        moment = datetime(2024, 5, 1, 12, 30)

        assert decode_cursor(encode_cursor(moment)) == "2024-05-01T12:30:00"

    def test_invalid_cursor(self):
        assert decode_cursor("%%%not-base64") is None

    def test_cursor_meta_with_more_rows(self):
        items = [{"id": "a"}, {"id": "b"}, {"id": "c"}]

        meta = build_cursor_pagination(items, limit=2)

        assert meta["hasMore"] is True
        assert decode_cursor(meta["nextCursor"]) == "b"

    def test_cursor_meta_last_page(self):
        meta = build_cursor_pagination([{"id": "a"}], limit=2)

        assert meta == {"limit": 2, "hasMore": False, "nextCursor": None}


# =============================================================================
# RESPONSES
# =============================================================================

class TestResponses:
    """Tests for the response envelope."""

    def test_success_body_omits_empty_fields(self):
        assert success_body({"id": 1}) == {"success": True, "data": {"id": 1}}

    def test_success_response_encodes_datetimes(self):
        response = success_response({"at": datetime(2024, 1, 2)}, message="ok", status_code=201)

        body = json.loads(response.body)
        assert response.status_code == 201
        assert body == {"success": True, "data": {"at": "2024-01-02T00:00:00"}, "message": "ok"}

    def test_error_response(self):
        response = error_response("Something broke", 500)

        assert response.status_code == 500
        assert json.loads(response.body) == {"success": False, "error": "Something broke"}

    def test_validation_error_lists_fields(self):
        response = validation_error({"domain": "Domain is required"})

        body = json.loads(response.body)
        assert response.status_code == 400
        assert body["error"] == "Validation failed"
        assert body["meta"] == {"errors": {"domain": "Domain is required"}}

    def test_not_found(self):
        response = not_found_response("Job")

        assert response.status_code == 404
        assert json.loads(response.body)["error"] == "Job not found"

    @pytest.mark.parametrize("build, status, message", [
        (unauthorized_response, 401, "Authentication required"),
        (forbidden_response, 403, "Access denied"),
    ])
    def test_auth_failures(self, build, status, message):
        response = build()

        assert response.status_code == status
        assert json.loads(response.body) == {"success": False, "error": message}

    def test_rate_limit_sets_retry_after(self):
        response = rate_limit_response(retry_after=12)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"

    def test_cache_headers(self):
        response = with_cache_headers(success_response([]), public=True, max_age=300, stale_while_revalidate=60)

        assert response.headers["Cache-Control"] == "public, max-age=300, stale-while-revalidate=60"

    def test_cache_headers_private_by_default(self):
        response = with_cache_headers(success_response([]))

        assert response.headers["Cache-Control"].startswith("private")


# =============================================================================
# EXPORT
# =============================================================================

@pytest.fixture
def results():
    return [
        {
            "keyword": "rank tracker",
            "rank": 2,
            "url": "https://example.com/page-2",
            "title": "Rank Tracker, Free",
            "top_rankers": [{"domain": "alpha.com"}, {"domain": "example.com"}, {"domain": "gamma.com"}, {"domain": "delta.com"}],
        },
        {
            "keyword": "serp api",
            "rank": None,
            "url": None,
            "title": None,
            "top_rankers": [{"domain": "alpha.com"}],
        },
    ]


class TestExport:
    """Tests for CSV and JSON export."""

    def test_prepare_keeps_top_three_competitors(self, results):
        rows = prepare_export_data(results)

        assert rows[0]["competitor1"] == "alpha.com"
        assert rows[0]["competitor3"] == "gamma.com"
        assert "competitor4" not in rows[0]
        assert "competitor2" not in rows[1]

    def test_csv(self, results):
        lines = export_as_csv(prepare_export_data(results)).split("\n")

        assert lines[0] == "Keyword,Rank,URL,Title,Competitor 1,Competitor 2,Competitor 3"
        assert lines[1] == 'rank tracker,2,https://example.com/page-2,"Rank Tracker, Free",alpha.com,example.com,gamma.com'
        assert lines[2] == "serp api,-,-,-,alpha.com,-,-"
        assert len(lines) == 3

    def test_json(self, results):
        text = export_as_json(prepare_export_data(results))

        assert json.loads(text)[1] == {
            "keyword": "serp api",
            "rank": None,
            "url": None,
            "title": None,
            "competitor1": "alpha.com",
        }
        assert '\n  {' in text
