"""
SERP Feature Analytics

How often tracked SERPs carry AI overviews, People Also Ask, featured
snippets, local packs, sitelinks, images and FAQ blocks. Cached per
user, domain and window for CacheTTL.SERP_FEATURES.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, window_start
from serptrack.analytics.scoring import day_of, feature_stat, group_by, has_local_pack, percent
from serptrack.cache import CacheKeys, CacheTTL, get_or_set

logger = logging.getLogger(__name__)

FEATURE_KEYWORD_LIMIT = 20

FEATURE_CHECKS = {
    "aiOverview": lambda row: bool(row.is_ai_overview),
    "peopleAlsoAsk": lambda row: bool(row.is_people_also_ask),
    "featuredSnippet": lambda row: bool(row.is_featured_snippet),
    "localPack": has_local_pack,
    "sitelinks": lambda row: bool(row.links),
    "images": lambda row: bool(row.images),
    "faq": lambda row: bool(row.faq),
}


def _keywords_with(rows: List[Any], check, extra=None) -> List[Dict[str, Any]]:
    """Latest sighting per domain+keyword of a feature, newest first."""
    matching = [row for row in rows if check(row)]
    entries = []
    for (domain, keyword), group in group_by(matching, lambda row: (row.domain, row.keyword)).items():
        latest = group[-1]
        entry = {"domain": domain, "keyword": keyword, "rank": latest.rank, "lastSeen": latest.created_at}
        if extra:
            entry.update(extra(latest))
        entries.append(entry)
    entries.sort(key=lambda entry: entry["lastSeen"], reverse=True)
    return entries[:FEATURE_KEYWORD_LIMIT]


def build_serp_features(rows: List[Any], days: int, start: datetime, domain: Optional[str]) -> Dict[str, Any]:
    total = len(rows)
    features = {
        name: feature_stat(len([row for row in rows if check(row)]), total)
        for name, check in FEATURE_CHECKS.items()
    }

    trends = []
    for date, group in group_by(rows, day_of).items():
        day_total = len(group)
        ai = len([row for row in group if row.is_ai_overview])
        trends.append({
            "date": date,
            "total": day_total,
            "aiOverview": ai,
            "paa": len([row for row in group if row.is_people_also_ask]),
            "featuredSnippet": len([row for row in group if row.is_featured_snippet]),
            "aiOverviewPercent": percent(ai, day_total),
        })

    presence = None
    if domain:
        in_ai = len([row for row in rows if row.is_ai_overview and row.rank is not None])
        presence = {"inAiOverview": in_ai, "percent": percent(in_ai, total)}

    return {
        "period": {"days": days, "startDate": start, "endDate": datetime.utcnow()},
        "filters": {"domain": domain},
        "summary": {"totalChecks": total, "features": features},
        "domainPresence": presence,
        "trends": trends,
        "keywords": {
            "withAiOverview": _keywords_with(rows, FEATURE_CHECKS["aiOverview"]),
            "withPaa": _keywords_with(
                rows,
                FEATURE_CHECKS["peopleAlsoAsk"],
                extra=lambda row: {"paaCount": len(row.people_also_ask or [])},
            ),
            "withFeaturedSnippet": _keywords_with(rows, FEATURE_CHECKS["featuredSnippet"]),
        },
    }


async def get_serp_features(
    db: Session,
    user_id: UUID,
    days: int = 30,
    domain: Optional[str] = None,
) -> Dict[str, Any]:
    async def compute() -> Dict[str, Any]:
        start = window_start(days)
        rows = load_rankings(db, user_id, since=start, domain=domain)
        return build_serp_features(rows, days, start, domain)

    key = CacheKeys.serp_features(user_id, f":{domain or 'all'}:{days}")
    return await get_or_set(key, CacheTTL.SERP_FEATURES, compute)
