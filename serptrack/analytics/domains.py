"""Domain analytics: paginated domain list and a per-domain detail view."""

from typing import Any, Dict, List, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, load_searches, window_start
from serptrack.analytics.scoring import (
    day_of,
    feature_stat,
    group_by,
    max_or_none,
    mean,
    min_or_none,
    ranks_of,
    round1,
    sort_nulls_last,
)

DETAIL_KEYWORD_LIMIT = 50


def list_domains(
    db: Session,
    user_id: UUID,
    pagination: Dict[str, Any],
) -> Tuple[List[Dict[str, Any]], int]:
    """Searched domains, most recently searched first, with ranking stats."""
    searches = group_by(load_searches(db, user_id), lambda row: row.domain)
    total = len(searches)

    skip, limit = pagination["skip"], pagination["limit"]
    page = list(searches.items())[skip:skip + limit]

    result = []
    for domain, rows in page:
        rankings = load_rankings(db, user_id, domain=domain)
        ranks = ranks_of(rankings)
        result.append({
            "domain": domain,
            "searches": len(rows),
            "lastSearched": rows[0].created_at,
            "avgRank": round1(mean(ranks)),
            "bestRank": min_or_none(ranks),
            "totalKeywords": len(rankings),
            "rankedKeywords": len(ranks),
        })
    return result, total


def domain_detail(db: Session, user_id: UUID, domain: str, days: int = 30) -> Dict[str, Any]:
    start = window_start(days)
    all_rows = load_rankings(db, user_id, domain=domain)
    recent = [row for row in all_rows if row.created_at >= start]
    recent_ranks = ranks_of(recent)

    keywords = []
    for keyword, group in group_by(all_rows, lambda row: row.keyword).items():
        ranks = ranks_of(group)
        keywords.append({
            "keyword": keyword,
            "currentRank": group[-1].rank,
            "avgRank": round1(mean(ranks)),
            "bestRank": min_or_none(ranks),
            "checks": len(group),
            "lastChecked": group[-1].created_at,
            "hasAiOverview": any(row.is_ai_overview for row in group),
            "hasPaa": any(row.is_people_also_ask for row in group),
        })
    keywords = sort_nulls_last(keywords, "currentRank", descending=False)[:DETAIL_KEYWORD_LIMIT]

    history = []
    for date, group in group_by([row for row in recent if row.rank is not None], day_of).items():
        ranks = ranks_of(group)
        history.append({
            "date": date,
            "avgRank": round1(mean(ranks)),
            "bestRank": min(ranks),
            "keywords": len(ranks),
        })

    total = len(recent)
    return {
        "domain": domain,
        "period": {"days": days, "startDate": start},
        "summary": {
            "totalChecks": total,
            "uniqueKeywords": len({row.keyword for row in recent}),
            "rankedKeywords": len(recent_ranks),
            "avgRank": round1(mean(recent_ranks)),
            "bestRank": min_or_none(recent_ranks),
            "worstRank": max_or_none(recent_ranks),
        },
        "serpFeatures": {
            "aiOverview": feature_stat(len([r for r in recent if r.is_ai_overview]), total),
            "peopleAlsoAsk": feature_stat(len([r for r in recent if r.is_people_also_ask]), total),
            "featuredSnippet": feature_stat(len([r for r in recent if r.is_featured_snippet]), total),
        },
        "keywords": keywords,
        "rankHistory": history,
    }
