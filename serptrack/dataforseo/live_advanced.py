"""
Live Advanced SERP API

Full SERP data with every feature block and the advanced
request parameters (search_param, browser screen, rectangles).
Cost: ~$0.002 per request.
"""

import logging
from typing import Any, Dict, Optional

from serptrack.dataforseo.client import DataForSEOClient, get_dataforseo_client
from serptrack.dataforseo.types import APIResult, LiveSERPParams, DEFAULT_LOCATION_CODE
from serptrack.dataforseo.utils import (
    build_stop_crawl_on_match,
    extract_comprehensive_serp_data,
    extract_top_rankers,
    find_domain_ranking,
)

logger = logging.getLogger(__name__)

ENDPOINT = "/serp/google/organic/live/advanced"


def build_payload(params: LiveSERPParams) -> Dict[str, Any]:
    """Request body for live advanced (location name wins over code)."""
    payload: Dict[str, Any] = {
        "keyword": params.keyword,
        "language_code": params.language_code or "en",
        "device": params.device or "desktop",
        "os": params.os or "windows",
        "depth": params.depth or 100,
        "max_crawl_pages": params.max_crawl_pages or 10,
        "calculate_rectangles": bool(params.calculate_rectangles),
    }

    if params.location_name:
        payload["location_name"] = params.location_name
    elif params.location_code:
        payload["location_code"] = params.location_code
    else:
        payload["location_code"] = DEFAULT_LOCATION_CODE

    for optional in (
        "search_param",
        "browser_screen_width",
        "browser_screen_height",
        "browser_screen_resolution_ratio",
    ):
        value = getattr(params, optional)
        if value:
            payload[optional] = value

    if params.stop_crawl_on_match:
        payload["stop_crawl_on_match"] = [m.to_dict() for m in params.stop_crawl_on_match]

    return payload


async def fetch_live_advanced(
    params: LiveSERPParams,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Fetch a full SERP through the live advanced endpoint."""
    try:
        client = client or get_dataforseo_client()
        response = await client.post(ENDPOINT, build_payload(params), user_id=user_id)

        tasks = response.get("tasks") or []
        if tasks and tasks[0].get("result"):
            return APIResult.ok(tasks[0]["result"][0], response.get("cost"))

        return APIResult.fail("No results returned from API")

    except Exception as e:
        logger.error(f"Live Advanced API error for '{params.keyword}': {e}")
        return APIResult.fail(str(e) or "Failed to fetch advanced ranking data")


async def search_domain_ranking_advanced(
    domain: str,
    keyword: str,
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    language_code: Optional[str] = None,
    device: Optional[str] = None,
    os: Optional[str] = None,
    depth: Optional[int] = None,
    max_crawl_pages: Optional[int] = None,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """
    Comprehensive ranking of a domain for one keyword.

    Data keys: keyword, ranking_data (None when not found), top_rankers,
    metrics (se_results_count, spell, refinement_chips), found.
    """
    params = LiveSERPParams(
        keyword=keyword,
        location_code=location_code,
        location_name=location_name,
        language_code=language_code or "en",
        device=device or "desktop",
        os=os or "windows",
        depth=depth or 100,
        max_crawl_pages=max_crawl_pages or 10,
        stop_crawl_on_match=build_stop_crawl_on_match(domain),
    )

    result = await fetch_live_advanced(params, user_id=user_id, client=client)
    if not result.success:
        return result

    items = result.data.get("items") or []
    domain_item = find_domain_ranking(items, domain)

    data = {
        "keyword": keyword,
        "ranking_data": (
            extract_comprehensive_serp_data(domain_item, result.data.get("check_url"))
            if domain_item else None
        ),
        "top_rankers": extract_top_rankers(items, 3),
        "metrics": {
            "se_results_count": result.data.get("se_results_count") or 0,
            "spell": result.data.get("spell"),
            "refinement_chips": result.data.get("refinement_chips"),
        },
        "found": domain_item is not None,
    }
    return APIResult.ok(data, result.cost)


async def get_full_serp_analysis(
    keyword: str,
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    language_code: Optional[str] = None,
    device: Optional[str] = None,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """SERP items grouped by feature type, with rectangles calculated."""
    result = await fetch_live_advanced(
        LiveSERPParams(
            keyword=keyword,
            location_code=location_code,
            location_name=location_name,
            language_code=language_code,
            device=device,
            calculate_rectangles=True,
        ),
        user_id=user_id,
        client=client,
    )
    if not result.success:
        return result

    items = result.data.get("items") or []

    def of_type(item_type: str):
        return [item for item in items if item.get("type") == item_type]

    data = {
        "keyword": keyword,
        "total_results": result.data.get("se_results_count") or 0,
        "organic_results": of_type("organic"),
        "featured_snippets": [item for item in items if item.get("is_featured_snippet")],
        "people_also_ask": of_type("people_also_ask"),
        "related_searches": of_type("related_searches"),
        "images": of_type("images"),
        "videos": of_type("video"),
    }
    return APIResult.ok(data, result.cost)
