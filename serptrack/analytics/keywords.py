"""
Keyword Analytics

List view: one entry per keyword and domain with rank stats, a rank
filter, sorting (nulls last), pagination and a trend label.
Detail view: per-domain stats, daily rank history and SERP feature
history of a single keyword.
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, window_start
from serptrack.analytics.scoring import (
    day_of,
    group_by,
    in_top,
    max_or_none,
    mean,
    min_or_none,
    percent,
    rank_change,
    ranks_of,
    round1,
    sort_nulls_last,
)

RANK_FILTERS = {
    "top10": lambda rank: in_top(rank, 10),
    "top20": lambda rank: in_top(rank, 20),
    "top50": lambda rank: in_top(rank, 50),
    "top100": lambda rank: in_top(rank, 100),
    "notRanked": lambda rank: rank is None,
}


def trend_label(stats: Dict[str, Any]) -> str:
    if stats["totalChecks"] == 1:
        return "new"
    change = stats["rankChange"]
    if change is not None and change > 0:
        return "improving"
    if change is not None and change < 0:
        return "declining"
    return "stable"


def keyword_stats(rows: List[Any]) -> List[Dict[str, Any]]:
    """Stats per keyword and domain; rows must be oldest first."""
    stats = []
    for (keyword, domain), group in group_by(rows, lambda row: (row.keyword, row.domain)).items():
        ranks = ranks_of(group)
        current, first = group[-1].rank, group[0].rank
        stats.append({
            "keyword": keyword,
            "domain": domain,
            "currentRank": current,
            "bestRank": min_or_none(ranks),
            "worstRank": max_or_none(ranks),
            "avgRank": round1(mean(ranks)),
            "totalChecks": len(group),
            "lastChecked": group[-1].created_at,
            "firstChecked": group[0].created_at,
            "rankChange": rank_change(first, current),
            "hasAiOverview": any(row.is_ai_overview for row in group),
            "hasPaa": any(row.is_people_also_ask for row in group),
            "hasFeaturedSnippet": any(row.is_featured_snippet for row in group),
        })
    return stats


def list_keywords(
    db: Session,
    user_id: UUID,
    pagination: Dict[str, Any],
    domain: Optional[str] = None,
    rank_filter: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int, Dict[str, int]]:
    """
    Paginated keyword stats.

    Returns:
        (page of keywords, filtered total, summary)
    """
    stats = keyword_stats(load_rankings(db, user_id, domain=domain))

    filtered = stats
    predicate = RANK_FILTERS.get(rank_filter or "")
    if predicate:
        filtered = [entry for entry in stats if predicate(entry["currentRank"])]

    filtered = sort_nulls_last(
        filtered,
        pagination["sort_by"],
        descending=pagination["sort_order"] != "asc",
    )

    skip, limit = pagination["skip"], pagination["limit"]
    page = [{**entry, "trend": trend_label(entry)} for entry in filtered[skip:skip + limit]]

    summary = {
        "totalKeywords": len(filtered),
        "rankedKeywords": len([k for k in filtered if k["currentRank"] is not None]),
        "top10": len([k for k in filtered if in_top(k["currentRank"], 10)]),
        "top20": len([k for k in filtered if in_top(k["currentRank"], 20)]),
        "improving": len([k for k in stats if (k["rankChange"] or 0) > 0]),
        "declining": len([k for k in stats if (k["rankChange"] or 0) < 0]),
    }
    return page, len(filtered), summary


def keyword_detail(
    db: Session,
    user_id: UUID,
    keyword: str,
    domain: Optional[str] = None,
    days: int = 30,
) -> Dict[str, Any]:
    """Everything tracked for one keyword (case-insensitive exact match)."""
    start = window_start(days)
    needle = keyword.lower()
    rows = [
        row for row in load_rankings(db, user_id, domain=domain)
        if (row.keyword or "").lower() == needle
    ]
    recent = [row for row in rows if row.created_at >= start]

    stats = []
    for name, group in group_by(rows, lambda row: row.domain).items():
        ranks = ranks_of(group)
        stats.append({
            "domain": name,
            "currentRank": group[-1].rank,
            "bestRank": min_or_none(ranks),
            "worstRank": max_or_none(ranks),
            "avgRank": round1(mean(ranks)),
            "totalChecks": len(group),
            "lastChecked": group[-1].created_at,
            "firstChecked": group[0].created_at,
            "location": group[-1].location,
            "hasAiOverview": any(row.is_ai_overview for row in group),
            "hasPaa": any(row.is_people_also_ask for row in group),
        })

    history: Dict[str, List[Dict[str, Any]]] = {}
    for (date, name), group in group_by(recent, lambda row: (day_of(row), row.domain)).items():
        history.setdefault(name, []).append({
            "date": date,
            "rank": group[-1].rank,
            "hasAiOverview": any(row.is_ai_overview for row in group),
        })

    feature_history = []
    for date, group in group_by(recent, day_of).items():
        total = len(group)
        feature_history.append({
            "date": date,
            "total": total,
            "aiOverviewPercent": percent(len([r for r in group if r.is_ai_overview]), total),
            "paaPercent": percent(len([r for r in group if r.is_people_also_ask]), total),
        })

    return {
        "keyword": keyword,
        "period": {"days": days, "startDate": start},
        "domains": list(dict.fromkeys(row.domain for row in rows)),
        "stats": stats,
        "rankHistory": history,
        "serpFeatureHistory": feature_history,
    }
