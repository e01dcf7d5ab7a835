"""
Catalog Tests

Tests for keyword lists, subscription plans and location search.
"""

import pytest

from serptrack.catalog import (
    DEFAULT_PLANS,
    KeywordListError,
    PlanSeedError,
    add_keywords,
    create_list,
    delete_list,
    get_active_plans,
    get_list,
    get_lists,
    list_to_dict,
    merge_locations,
    normalize_domain,
    plan_to_dict,
    populate_locations,
    rank_locations,
    remove_keywords,
    search_locations,
    seed_default_plans,
    update_keyword,
    update_list,
)
from serptrack.catalog.locations import match_quality
from serptrack.database.models import Location, TrackingFrequency

from conftest import api_response


# =============================================================================
# KEYWORD LISTS
# =============================================================================

@pytest.fixture
def keyword_list(db, user):
    return create_list(
        db,
        user.id,
        name="  Main  ",
        domain="https://www.Example.com/",
        keywords=["Rank Tracker", " rank tracker ", "", {"keyword": "SERP API", "notes": "priority"}],
    )


class TestNormalizeDomain:
    """Tests for domain normalization."""

    @pytest.mark.parametrize("raw", [
        "example.com",
        "EXAMPLE.com",
        "https://example.com",
        "http://www.example.com/",
        "  www.example.com  ",
    ])
    def test_variants(self, raw):
        assert normalize_domain(raw) == "example.com"


class TestKeywordLists:
    """Tests for list CRUD."""

    def test_create_normalizes(self, keyword_list):
        assert keyword_list.name == "Main"
        assert keyword_list.domain == "example.com"
        assert [entry["keyword"] for entry in keyword_list.keywords] == ["rank tracker", "serp api"]
        assert keyword_list.keywords[1]["notes"] == "priority"
        assert keyword_list.tracking_frequency == TrackingFrequency.MANUAL
        assert keyword_list.location == "United States"

    def test_entries_carry_ids(self, keyword_list):
        ids = [entry["id"] for entry in keyword_list.keywords]

        assert len(set(ids)) == 2
        assert keyword_list.keywords[0]["latest_rank"] is None

    def test_name_and_domain_required(self, db, user):
        with pytest.raises(KeywordListError, match="required"):
            create_list(db, user.id, name="", domain="example.com")

    def test_one_list_per_domain(self, db, user, keyword_list):
        with pytest.raises(KeywordListError) as exc_info:
            create_list(db, user.id, name="Second", domain="example.com")

        assert exc_info.value.status_code == 400

    def test_invalid_frequency(self, db, user):
        with pytest.raises(KeywordListError, match="frequency"):
            create_list(db, user.id, name="Main", domain="other.com", tracking_frequency="hourly")

    def test_notes_length_limit(self, db, user):
        with pytest.raises(KeywordListError, match="500"):
            create_list(db, user.id, name="Main", domain="other.com", keywords=[{"keyword": "a", "notes": "x" * 501}])

    def test_lists_are_scoped_to_owner(self, db, keyword_list, make_user):
        other = make_user()

        with pytest.raises(KeywordListError) as exc_info:
            get_list(db, other.id, keyword_list.id)

        assert exc_info.value.status_code == 404
        assert get_lists(db, other.id) == []

    def test_get_lists_filters(self, db, user, keyword_list):
        create_list(db, user.id, name="Paused", domain="paused.com")
        update_list(db, user.id, get_lists(db, user.id, domain="paused.com")[0].id, {"is_active": False})

        assert [item.domain for item in get_lists(db, user.id)] == ["example.com"]
        assert len(get_lists(db, user.id, active_only=False)) == 2

    def test_update_list(self, db, user, keyword_list):
        updated = update_list(db, user.id, keyword_list.id, {
            "name": " Renamed ",
            "tracking_frequency": "weekly",
            "auto_track": True,
            "domain": "ignored.com",
        })

        assert updated.name == "Renamed"
        assert updated.tracking_frequency == TrackingFrequency.WEEKLY
        assert updated.auto_track is True
        assert updated.domain == "example.com"

    def test_update_rejects_blank_name(self, db, user, keyword_list):
        with pytest.raises(KeywordListError, match="empty"):
            update_list(db, user.id, keyword_list.id, {"name": "   "})

    def test_delete_list(self, db, user, keyword_list):
        delete_list(db, user.id, keyword_list.id)

        assert get_lists(db, user.id, active_only=False) == []

    def test_to_dict(self, keyword_list):
        data = list_to_dict(keyword_list)

        assert data["keywordCount"] == 2
        assert data["trackingFrequency"] == "manual"
        assert data["languageName"] == "English"


class TestListKeywords:
    """Tests for keyword add, remove and notes."""

    def test_add_skips_existing(self, db, user, keyword_list):
        outcome = add_keywords(db, user.id, keyword_list.id, ["RANK TRACKER", "seo audit", "seo audit"])

        assert outcome["added"] == 1
        assert outcome["total"] == 3
        assert outcome["keywords"][0]["keyword"] == "seo audit"

    def test_add_requires_new_keywords(self, db, user, keyword_list):
        with pytest.raises(KeywordListError, match="already exist"):
            add_keywords(db, user.id, keyword_list.id, ["rank tracker"])

    def test_add_requires_array(self, db, user, keyword_list):
        with pytest.raises(KeywordListError, match="array"):
            add_keywords(db, user.id, keyword_list.id, "rank tracker")

    def test_remove_by_text_and_id(self, db, user, keyword_list):
        add_keywords(db, user.id, keyword_list.id, ["seo audit"])
        serp_api_id = keyword_list.keywords[1]["id"]

        outcome = remove_keywords(db, user.id, keyword_list.id, keywords=["Rank Tracker"], keyword_ids=[serp_api_id])

        assert outcome == {"removed": 2, "total": 1}
        db.refresh(keyword_list)
        assert [entry["keyword"] for entry in keyword_list.keywords] == ["seo audit"]

    def test_remove_requires_targets(self, db, user, keyword_list):
        with pytest.raises(KeywordListError):
            remove_keywords(db, user.id, keyword_list.id)

    def test_update_notes_by_id(self, db, user, keyword_list):
        keyword_id = keyword_list.keywords[0]["id"]

        entry = update_keyword(db, user.id, keyword_list.id, keyword_id=keyword_id, notes="watch this")

        assert entry["notes"] == "watch this"
        db.refresh(keyword_list)
        assert keyword_list.keywords[0]["notes"] == "watch this"

    def test_update_notes_by_text(self, db, user, keyword_list):
        entry = update_keyword(db, user.id, keyword_list.id, keyword="SERP API", notes=None)

        assert entry["notes"] == "priority"

    def test_update_unknown_keyword(self, db, user, keyword_list):
        with pytest.raises(KeywordListError) as exc_info:
            update_keyword(db, user.id, keyword_list.id, keyword="missing", notes="x")

        assert exc_info.value.status_code == 404


# =============================================================================
# PLANS
# =============================================================================

class TestPlans:
    """Tests for the plan catalog."""

    def test_seed_and_list(self, db):
        seeded = seed_default_plans(db)

        plans = get_active_plans(db)
        assert len(seeded) == len(DEFAULT_PLANS)
        assert [plan.slug for plan in plans] == ["free", "basic", "pro", "enterprise"]
        assert plans[0].is_default is True

    def test_seed_twice_fails(self, db):
        seed_default_plans(db)

        with pytest.raises(PlanSeedError):
            seed_default_plans(db)

    def test_inactive_plans_hidden(self, db):
        plans = seed_default_plans(db)
        plans[1].is_active = False
        db.commit()

        assert "basic" not in [plan.slug for plan in get_active_plans(db)]

    def test_plan_dict(self, db):
        pro = [plan for plan in seed_default_plans(db) if plan.slug == "pro"][0]

        data = plan_to_dict(pro)

        assert data["price"] == {"monthly": 49, "yearly": 490, "currency": "USD"}
        assert data["badge"] == "Most Popular"
        assert data["features"]["teamMembers"] == 5
        assert data["limits"]["keywordsPerSearch"] == 50


# =============================================================================
# LOCATIONS
# =============================================================================

def location(code, name, kind="City", country="US"):
    return {
        "location_code": code,
        "location_name": name,
        "location_type": kind,
        "country_iso_code": country,
    }


class TestRankLocations:
    """Tests for location scoring."""

    def test_match_quality(self):
        assert match_quality("London", "london") == 1000
        assert match_quality("London,England", "lon") == 500
        assert match_quality("Greater London", "lon") == 300
        assert match_quality("Barcelona", "lon") == 100

    def test_priority_country_first(self):
        ranked = rank_locations(
            [location(1, "Paris,France", country="FR"), location(2, "Paris,Texas,United States")],
            "paris",
            priority_country="us",
        )

        assert [item["id"] for item in ranked] == [2, 1]

    def test_country_beats_city_on_same_match(self):
        ranked = rank_locations(
            [location(1, "Georgia", kind="City"), location(2, "Georgia", kind="Country", country="GE")],
            "georgia",
        )

        assert ranked[0]["id"] == 2
        assert ranked[0]["subtext"] == "Country • GE"

    def test_result_shape(self):
        item = rank_locations([location(2840, "United States", kind="Country")], "united")[0]

        assert item == {
            "id": 2840,
            "name": "United States",
            "subtext": "Country • US",
            "value": "United States",
            "type": "Country",
            "location_code": 2840,
            "country_iso_code": "US",
        }


class TestSearchLocations:
    """Tests for location search against the database."""

    @pytest.fixture
    def stored(self, db):
        db.add_all([
            Location(location_code=2840, location_name="United States", location_type="Country", country_iso_code="US"),
            Location(location_code=1023191, location_name="New York,New York,United States",
                     location_type="City", country_iso_code="US"),
            Location(location_code=9999, location_name="10001,New York,United States",
                     location_type="Postal Code", country_iso_code="US"),
        ])
        db.commit()

    @pytest.mark.asyncio
    async def test_short_query(self, db):
        assert await search_locations(db, "n") == []
        assert await search_locations(db, None) == []

    @pytest.mark.asyncio
    async def test_excludes_postal_codes(self, db, stored):
        results = await search_locations(db, "New York")

        assert [item["id"] for item in results] == [1023191]

    @pytest.mark.asyncio
    async def test_results_are_cached(self, db, stored, memory_cache):
        await search_locations(db, "United")

        assert await memory_cache.get("loc:united") is not None


class TestPopulateLocations:
    """Tests for merging and storing DataForSEO locations."""

    def test_merge_prefers_labs(self):
        merged = merge_locations(
            [location(1, "Old Name"), location(2, "Serp Only")],
            [dict(location(1, "New Name"), available_languages=[{"language_code": "en"}])],
        )

        by_code = {item["location_code"]: item for item in merged}
        assert by_code[1]["location_name"] == "New Name"
        assert by_code[1]["available_languages"] == [{"language_code": "en"}]
        assert by_code[2]["available_languages"] == []

    @pytest.mark.asyncio
    async def test_populate_upserts(self, db, make_client):
        db.add(Location(location_code=1, location_name="Stale", location_type="City", country_iso_code="US"))
        db.commit()

        def handler(request):
            if request.url.path.endswith("/serp/google/locations"):
                return api_response([location(1, "Fresh"), location(2, "Added")])
            return api_response([location(3, "Labs", kind="Country", country="SE")])

        summary = await populate_locations(db, client=make_client(handler))

        assert summary == {"inserted": 2, "updated": 1, "errors": 0, "total": 3}
        assert db.query(Location).filter(Location.location_code == 1).one().location_name == "Fresh"
