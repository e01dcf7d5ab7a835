"""
Visibility Analytics

Visibility score trend, per-domain visibility and market share, rank
brackets over time, page-two opportunities, week-over-week comparison
and the biggest keyword movers.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, window_start
from serptrack.analytics.scoring import (
    bracket,
    count_where,
    day_of,
    group_by,
    in_top,
    mean,
    percent,
    rank_change,
    ranks_of,
    round1,
    tenth,
    visibility_percent,
)

logger = logging.getLogger(__name__)

OPPORTUNITY_LIMIT = 15
MOVER_LIMIT = 10


def _keyword_domain(row) -> tuple:
    return (row.keyword, row.domain)


def visibility_trend(rows: List[Any]) -> List[Dict[str, Any]]:
    trend = []
    for date, day_rows in group_by(rows, day_of).items():
        ranks = [row.rank for row in day_rows]
        trend.append({
            "date": date,
            "score": visibility_percent(ranks),
            "keywords": len(ranks),
            "ranked": len([rank for rank in ranks if rank is not None]),
        })
    return sorted(trend, key=lambda day: day["date"])


def domain_visibility(rows: List[Any]) -> List[Dict[str, Any]]:
    """Visibility per domain from the latest rank of each keyword."""
    latest = {key: group[-1].rank for key, group in group_by(rows, _keyword_domain).items()}

    domains: Dict[str, List[Optional[int]]] = {}
    for (_, domain), rank in latest.items():
        domains.setdefault(domain, []).append(rank)

    result = []
    for domain, ranks in domains.items():
        ranked = len([rank for rank in ranks if rank is not None])
        top10 = len([rank for rank in ranks if in_top(rank, 10)])
        result.append({
            "domain": domain,
            "visibilityScore": visibility_percent(ranks),
            "keywords": len(ranks),
            "rankedKeywords": ranked,
            "top3": len([rank for rank in ranks if in_top(rank, 3)]),
            "top10": top10,
            "top20": len([rank for rank in ranks if in_top(rank, 20)]),
            "marketShare": percent(top10, ranked),
        })
    return sorted(result, key=lambda entry: entry["keywords"], reverse=True)


def rank_brackets(rows: List[Any]) -> List[Dict[str, Any]]:
    result = []
    for date, day_rows in group_by(rows, day_of).items():
        counts = {"top3": 0, "top10": 0, "top20": 0, "top50": 0, "beyond50": 0, "notRanked": 0}
        for row in day_rows:
            counts[bracket(row.rank)] += 1
        result.append({"date": date, **counts})
    return sorted(result, key=lambda day: day["date"])


def opportunities(rows: List[Any]) -> List[Dict[str, Any]]:
    """Keywords sitting on page two (ranks 11-20)."""
    candidates = [row for row in rows if row.rank is not None and 10 < row.rank <= 20]

    result = []
    for (keyword, domain), group in group_by(candidates, _keyword_domain).items():
        current = group[-1].rank
        result.append({
            "keyword": keyword,
            "domain": domain,
            "currentRank": current,
            "bestRank": min(row.rank for row in group),
            "potential": current - 10,
        })
    result.sort(key=lambda entry: entry["currentRank"])
    return result[:OPPORTUNITY_LIMIT]


def _week_stats(rows: List[Any]) -> Dict[str, Any]:
    avg = mean(ranks_of(rows))
    return {
        "avgRank": round1(avg),
        "top10": count_where(rows, lambda row: in_top(row.rank, 10)),
    }


def week_over_week(rows: List[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Last 7 days against the 7 before; unranked rows are left out of both."""
    now = now or datetime.utcnow()
    this_week_start = now - timedelta(days=7)
    last_week_start = now - timedelta(days=14)

    this_week = _week_stats([row for row in rows if row.created_at >= this_week_start])
    last_week = _week_stats([
        row for row in rows if last_week_start <= row.created_at < this_week_start
    ])

    avg_change = None
    if this_week["avgRank"] and last_week["avgRank"]:
        avg_change = tenth(last_week["avgRank"] - this_week["avgRank"])

    return {
        "thisWeek": this_week,
        "lastWeek": last_week,
        "changes": {
            "avgRank": avg_change,
            "top10": this_week["top10"] - last_week["top10"],
        },
    }


def movers(rows: List[Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Keywords with the largest first-to-last rank change in the window."""
    moved = []
    for (keyword, domain), group in group_by(rows, _keyword_domain).items():
        change = rank_change(group[0].rank, group[-1].rank)
        if change:
            moved.append({
                "keyword": keyword,
                "domain": domain,
                "from": group[0].rank,
                "to": group[-1].rank,
                "change": change,
            })

    improvers = sorted((m for m in moved if m["change"] > 0), key=lambda m: -m["change"])
    decliners = sorted((m for m in moved if m["change"] < 0), key=lambda m: m["change"])

    return {
        "improvers": improvers[:MOVER_LIMIT],
        "decliners": [
            {**m, "change": abs(m["change"])} for m in decliners[:MOVER_LIMIT]
        ],
    }


def get_visibility(
    db: Session,
    user_id: UUID,
    days: int = 30,
    domain: Optional[str] = None,
) -> Dict[str, Any]:
    start = window_start(days)
    rows = load_rankings(db, user_id, since=start, domain=domain)
    # Domain visibility always covers every domain of the user
    all_rows = rows if not domain else load_rankings(db, user_id, since=start)

    return {
        "period": {"days": days, "startDate": start},
        "visibilityTrend": visibility_trend(rows),
        "domainVisibility": domain_visibility(all_rows),
        "rankBrackets": rank_brackets(rows),
        "opportunities": opportunities(rows),
        "weekOverWeek": week_over_week(rows),
        "movers": movers(rows),
    }
