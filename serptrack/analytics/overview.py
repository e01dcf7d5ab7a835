"""
Overview & Dashboard

The analytics overview (chart data for a window) and the cached
dashboard summary shown after login.
"""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, load_searches, window_start
from serptrack.analytics.scoring import (
    RANK_BUCKETS,
    day_of,
    feature_stat,
    group_by,
    has_knowledge_panel,
    has_local_pack,
    mean,
    rank_bucket,
    rank_change,
    ranks_of,
    round1,
)
from serptrack.cache import CacheKeys, CacheTTL, get_or_set

logger = logging.getLogger(__name__)

DASHBOARD_DAYS = 30
TOP_KEYWORD_LIMIT = 10
LOCATION_LIMIT = 10
TOP_DOMAIN_LIMIT = 5
RECENT_SEARCH_LIMIT = 5

BUCKET_LABELS = {key: label for _, key, label in RANK_BUCKETS}
BUCKET_LABELS["notRanked"] = "Not Ranked"

FEATURE_CHART = [
    ("AI Overview", "#8b5cf6", lambda row: bool(row.is_ai_overview)),
    ("People Also Ask", "#3b82f6", lambda row: bool(row.is_people_also_ask)),
    ("Featured Snippet", "#10b981", lambda row: bool(row.is_featured_snippet)),
    ("Local Pack", "#f59e0b", has_local_pack),
    ("Knowledge Panel", "#ef4444", has_knowledge_panel),
]


def _changes(rows: List[Any]) -> List[int]:
    """First-to-last rank change per keyword+domain where both ends are ranked."""
    changes = []
    for group in group_by(rows, lambda row: (row.keyword, row.domain)).values():
        change = rank_change(group[0].rank, group[-1].rank)
        if change is not None:
            changes.append(change)
    return changes


# =============================================================================
# OVERVIEW
# =============================================================================

def get_overview(db: Session, user_id: UUID, days: int = 30) -> Dict[str, Any]:
    start = window_start(days)
    rows = load_rankings(db, user_id, since=start)
    searches = load_searches(db, user_id, since=start)
    ranked = [row for row in rows if row.rank is not None]

    activity = []
    for date, group in group_by(reversed(searches), day_of).items():
        activity.append({
            "date": date,
            "searches": len(group),
            "keywords": sum(len(row.keywords or []) for row in group),
        })

    buckets: Dict[str, int] = {}
    for row in rows:
        bucket = rank_bucket(row.rank)
        buckets[bucket] = buckets.get(bucket, 0) + 1
    distribution = [
        {"range": BUCKET_LABELS[key], "count": buckets[key]}
        for key in list(BUCKET_LABELS)
        if key in buckets
    ]

    top_keywords = []
    for keyword, group in group_by(ranked, lambda row: row.keyword).items():
        latest = group[-1]
        if latest.rank <= 20:
            top_keywords.append({
                "keyword": keyword,
                "currentRank": latest.rank,
                "bestRank": min(row.rank for row in group),
                "domain": latest.domain,
                "checks": len(group),
            })
    top_keywords.sort(key=lambda entry: entry["currentRank"])

    chart = [
        {"name": name, "value": len([row for row in rows if check(row)]), "color": color}
        for name, color, check in FEATURE_CHART
    ]

    locations = [
        {
            "location": location or "Unknown",
            "count": len(group),
            "avgRank": round1(mean(ranks_of(group))),
        }
        for location, group in group_by(rows, lambda row: row.location).items()
    ]
    locations.sort(key=lambda entry: entry["count"], reverse=True)

    changes = _changes(rows)

    daily = []
    for date, group in group_by(ranked, day_of).items():
        ranks = ranks_of(group)
        daily.append({
            "date": date,
            "avgRank": round1(mean(ranks)),
            "minRank": min(ranks),
            "maxRank": max(ranks),
            "count": len(ranks),
        })

    return {
        "period": {"days": days, "startDate": start},
        "searchActivity": activity,
        "rankDistribution": distribution,
        "topKeywords": top_keywords[:TOP_KEYWORD_LIMIT],
        "serpFeatures": {
            "total": len(rows),
            "chart": [entry for entry in chart if entry["value"] > 0],
        },
        "locationStats": locations[:LOCATION_LIMIT],
        "rankChanges": {
            "improved": len([c for c in changes if c > 0]),
            "declined": len([c for c in changes if c < 0]),
            "stable": len([c for c in changes if c == 0]),
            "netChange": sum(changes),
        },
        "dailyStats": daily,
    }


# =============================================================================
# DASHBOARD
# =============================================================================

def build_dashboard(db: Session, user_id: UUID) -> Dict[str, Any]:
    rows = load_rankings(db, user_id)
    recent = load_rankings(db, user_id, since=window_start(DASHBOARD_DAYS))
    searches = load_searches(db, user_id)
    ranks = ranks_of(rows)

    distribution = {key: 0 for key in BUCKET_LABELS}
    for rank in ranks:
        distribution[rank_bucket(rank)] += 1
    distribution["notRanked"] = len(rows) - len(ranks)

    changes = _changes(recent)

    top_domains = []
    for domain, group in group_by(searches, lambda row: row.domain).items():
        domain_ranks = [row.rank for row in rows if row.domain == domain and row.rank is not None]
        top_domains.append({
            "domain": domain,
            "searches": len(group),
            "keywords": sum(len(row.keywords or []) for row in group),
            "avgRank": round1(mean(domain_ranks)),
        })
    top_domains.sort(key=lambda entry: entry["searches"], reverse=True)

    total = len(recent)
    return {
        "summary": {
            "totalKeywords": len(rows),
            "rankedKeywords": len(ranks),
            "notRanked": len(rows) - len(ranks),
            "avgRank": round1(mean(ranks)),
        },
        "rankDistribution": distribution,
        "recentChanges": {
            "improved": len([c for c in changes if c > 0]),
            "declined": len([c for c in changes if c < 0]),
            "unchanged": len([c for c in changes if c == 0]),
        },
        "serpFeatures": {
            "total": total,
            "aiOverview": feature_stat(len([r for r in recent if r.is_ai_overview]), total),
            "peopleAlsoAsk": feature_stat(len([r for r in recent if r.is_people_also_ask]), total),
            "featuredSnippet": feature_stat(len([r for r in recent if r.is_featured_snippet]), total),
        },
        "topDomains": top_domains[:TOP_DOMAIN_LIMIT],
        "recentSearches": [
            {
                "id": str(row.id),
                "domain": row.domain,
                "keywords": len(row.keywords or []),
                "location": row.location,
                "createdAt": row.created_at,
            }
            for row in searches[:RECENT_SEARCH_LIMIT]
        ],
    }


async def get_dashboard(db: Session, user_id: UUID) -> Dict[str, Any]:
    """Dashboard summary, cached for CacheTTL.USER_DASHBOARD."""
    async def compute() -> Dict[str, Any]:
        return build_dashboard(db, user_id)

    return await get_or_set(CacheKeys.user_dashboard(user_id), CacheTTL.USER_DASHBOARD, compute)
