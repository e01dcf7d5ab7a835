"""
Live Regular SERP API

Fast synchronous lookups with basic ranking data.
Cost: ~$0.0006 per request.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from serptrack.dataforseo.client import DataForSEOClient, get_dataforseo_client
from serptrack.dataforseo.types import APIResult, LiveSERPParams, DEFAULT_LOCATION_CODE
from serptrack.dataforseo.utils import (
    COST_LIVE_REGULAR,
    build_stop_crawl_on_match,
    extract_basic_serp_data,
    find_domain_ranking,
)

logger = logging.getLogger(__name__)

ENDPOINT = "/serp/google/organic/live/regular"
REQUEST_DELAY = 0.1  # seconds between sequential requests


def build_payload(params: LiveSERPParams) -> Dict[str, Any]:
    """Request body for live regular (location code wins over name)."""
    payload: Dict[str, Any] = {
        "keyword": params.keyword,
        "language_code": params.language_code or "en",
        "device": params.device or "desktop",
        "os": params.os or "windows",
        "depth": params.depth or 100,
        "max_crawl_pages": params.max_crawl_pages or 1,
    }

    if params.location_code:
        payload["location_code"] = params.location_code
    elif params.location_name:
        payload["location_name"] = params.location_name
    else:
        payload["location_code"] = DEFAULT_LOCATION_CODE

    if params.stop_crawl_on_match:
        payload["stop_crawl_on_match"] = [m.to_dict() for m in params.stop_crawl_on_match]

    return payload


async def fetch_live_regular(
    params: LiveSERPParams,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """
    Fetch a SERP through the live regular endpoint.

    Returns:
        APIResult with the first task result (keyword, items, ...)
    """
    try:
        client = client or get_dataforseo_client()
        response = await client.post(ENDPOINT, build_payload(params), user_id=user_id)

        tasks = response.get("tasks") or []
        if tasks and tasks[0].get("result"):
            return APIResult.ok(tasks[0]["result"][0], response.get("cost"))

        return APIResult.fail("No results returned from API")

    except Exception as e:
        logger.error(f"Live Regular API error for '{params.keyword}': {e}")
        return APIResult.fail(str(e) or "Failed to fetch ranking data")


async def search_domain_ranking_regular(
    domain: str,
    keyword: str,
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    language_code: Optional[str] = None,
    device: Optional[str] = None,
    os: Optional[str] = None,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Basic ranking of a domain for one keyword."""
    params = LiveSERPParams(
        keyword=keyword,
        location_code=location_code,
        location_name=location_name,
        language_code=language_code or "en",
        device=device or "desktop",
        os=os or "windows",
        stop_crawl_on_match=build_stop_crawl_on_match(domain),
    )

    result = await fetch_live_regular(params, user_id=user_id, client=client)
    if not result.success:
        return result

    domain_item = find_domain_ranking(result.data.get("items") or [], domain)
    if domain_item:
        data = {"keyword": keyword, **extract_basic_serp_data(domain_item), "found": True}
    else:
        data = {
            "keyword": keyword,
            "rank": None,
            "url": None,
            "title": None,
            "description": None,
            "found": False,
        }
    return APIResult.ok(data, result.cost)


async def batch_search_live_regular(
    keywords: List[str],
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    language_code: Optional[str] = None,
    device: Optional[str] = None,
    os: Optional[str] = None,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
    delay: float = REQUEST_DELAY,
) -> APIResult:
    """
    Live regular lookups for several keywords, one after another.

    Succeeds when at least one keyword returned a SERP.
    """
    results = []
    errors = []

    for keyword in keywords:
        result = await fetch_live_regular(
            LiveSERPParams(
                keyword=keyword,
                location_code=location_code,
                location_name=location_name,
                language_code=language_code,
                device=device,
                os=os,
            ),
            user_id=user_id,
            client=client,
        )
        if result.success:
            results.append(result.data)
        else:
            errors.append(f"{keyword}: {result.error}")

        await asyncio.sleep(delay)

    if not results:
        return APIResult.fail(f"All requests failed: {', '.join(errors)}")

    return APIResult.ok(results, len(results) * COST_LIVE_REGULAR)
