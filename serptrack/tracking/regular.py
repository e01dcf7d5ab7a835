"""
Synchronous Rank Checks

Checks every keyword of a request immediately through a live endpoint:
- regular mode: live regular, basic extraction (one request token)
- advanced mode: live advanced, comprehensive extraction

Results younger than RESULT_CACHE_DAYS are reused instead of calling the API.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from serptrack.auth.models import User
from serptrack.cache import invalidate_user_cache
from serptrack.database.repository import (
    create_ranking_result,
    create_search_history,
    find_cached_result,
)
from serptrack.dataforseo.client import DataForSEOClient
from serptrack.dataforseo.extraction import extract_basic_result, extract_comprehensive_result
from serptrack.dataforseo.live_advanced import fetch_live_advanced
from serptrack.dataforseo.live_regular import fetch_live_regular
from serptrack.dataforseo.types import LiveSERPParams, StopCrawlOnMatch
from serptrack.dataforseo.utils import strip_www
from serptrack.tracking.records import RankLookup, filter_for_role, ranking_to_dict
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)

TRACKING_DEPTH = 20


class InsufficientTokensError(Exception):
    """User has no request tokens left."""
    pass


def _cached_payload(cached, keyword: str) -> Dict[str, Any]:
    payload = ranking_to_dict(cached)
    payload.update({"keyword": keyword, "source": "cache"})
    return payload


def _error_payload(keyword: str, message: str) -> Dict[str, Any]:
    return {
        "keyword": keyword,
        "rank": None,
        "url": None,
        "title": None,
        "description": None,
        "source": "error",
        "message": message,
    }


def _params(lookup: RankLookup, keyword: str, max_crawl_pages: int) -> LiveSERPParams:
    return LiveSERPParams(
        keyword=keyword,
        location_code=lookup.location_code,
        location_name=None if lookup.location_code else lookup.location_name,
        language_code=lookup.filters["language"],
        device=lookup.filters["device"],
        os=lookup.filters["os"],
        depth=TRACKING_DEPTH,
        max_crawl_pages=max_crawl_pages,
        stop_crawl_on_match=[StopCrawlOnMatch(match_value=strip_www(lookup.domain))],
    )


def _row_fields(lookup: RankLookup, user: User, keyword: str) -> Dict[str, Any]:
    return {
        "user_id": user.id,
        "domain": lookup.domain,
        "keyword": keyword,
        "location": lookup.location,
        "location_code": lookup.stored_location_code,
        "language": lookup.filters["language"],
        "device": lookup.filters["device"],
        "os": lookup.filters["os"],
        "depth": TRACKING_DEPTH,
    }


async def _check_regular(
    db: Session,
    user: User,
    lookup: RankLookup,
    keyword: str,
    client: Optional[DataForSEOClient],
) -> Dict[str, Any]:
    result = await fetch_live_regular(_params(lookup, keyword, 1), user_id=user.id, client=client)
    if not result.success:
        return _error_payload(keyword, result.error)

    basic = extract_basic_result(result.data, lookup.domain)
    metrics = basic["metrics"]
    row = create_ranking_result(
        db,
        **_row_fields(lookup, user, keyword),
        rank=basic["rank"],
        rank_group=basic["rank"],
        rank_absolute=basic["rank_absolute"],
        page=basic["page"],
        url=basic["url"],
        title=basic["title"],
        description=basic["description"],
        top_rankers=basic["top_rankers"],
        se_results_count=metrics["se_results_count"],
        spell=metrics["spell"],
        refinement_chips=metrics["refinement_chips"],
    )

    payload = ranking_to_dict(row)
    payload["source"] = "api"
    return payload


async def _check_advanced(
    db: Session,
    user: User,
    lookup: RankLookup,
    keyword: str,
    client: Optional[DataForSEOClient],
) -> Dict[str, Any]:
    result = await fetch_live_advanced(_params(lookup, keyword, 1), user_id=user.id, client=client)
    if not result.success:
        return _error_payload(keyword, result.error)

    data = extract_comprehensive_result(result.data, lookup.domain)
    feature_counts = data.pop("feature_counts")
    data.pop("keyword", None)
    row = create_ranking_result(db, **_row_fields(lookup, user, keyword), **data)

    payload = ranking_to_dict(row)
    payload.update({"source": "api", "featureCounts": feature_counts})
    return payload


async def run_rank_check(
    db: Session,
    user: User,
    lookup: RankLookup,
    advanced: bool = False,
    client: Optional[DataForSEOClient] = None,
) -> Dict[str, Any]:
    """
    Check every keyword of a lookup and spend one request token.

    Per-keyword failures are reported inline with source "error".

    Raises:
        InsufficientTokensError: when the user has no tokens left

    Returns:
        {results, tokensRemaining}; results filtered by the user's role
    """
    if (user.request_tokens or 0) <= 0:
        raise InsufficientTokensError()

    settings = get_settings()

    create_search_history(
        db,
        user_id=user.id,
        domain=lookup.domain,
        location=lookup.location,
        location_code=lookup.location_code,
        keywords=lookup.keywords,
        filters=lookup.filters,
    )
    db.commit()

    results: List[Dict[str, Any]] = []
    check = _check_advanced if advanced else _check_regular

    for keyword in lookup.keywords:
        try:
            cached = find_cached_result(
                db,
                domain=lookup.domain,
                keyword=keyword,
                location_code=lookup.location_code,
                filters=lookup.filters,
                max_age_days=settings.RESULT_CACHE_DAYS,
            )
            if cached:
                results.append(_cached_payload(cached, keyword))
                continue

            results.append(await check(db, user, lookup, keyword, client))
            db.commit()

        except Exception as e:
            db.rollback()
            logger.error(f"Error processing keyword '{keyword}': {e}")
            results.append(_error_payload(keyword, str(e)))

    user.request_tokens = (user.request_tokens or 0) - 1
    db.commit()
    await invalidate_user_cache(user.id)

    logger.info(f"User {user.id} used 1 token. Remaining: {user.request_tokens}")

    return {
        "results": [filter_for_role(result, user.is_admin) for result in results],
        "tokensRemaining": user.request_tokens,
    }
