"""Ranking trends per day, week or month."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, window_start
from serptrack.analytics.scoring import group_by, mean, period_key, round1, round_half_up, tenth

GRANULARITIES = ("day", "week", "month")
KEYWORD_TREND_LIMIT = 20


def summarize_trend(periods: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Direction of the average rank from the first to the last period."""
    summary: Dict[str, Any] = {
        "startAvg": periods[0]["avgRank"] if periods else None,
        "endAvg": periods[-1]["avgRank"] if periods else None,
        "change": None,
        "changePercent": None,
        "trend": "stable",
    }

    if summary["startAvg"] and summary["endAvg"]:
        change = tenth(summary["startAvg"] - summary["endAvg"])
        summary["change"] = change
        summary["changePercent"] = round_half_up(change / summary["startAvg"] * 100)
        if change > 0:
            summary["trend"] = "improving"
        elif change < 0:
            summary["trend"] = "declining"

    return summary


def get_rank_trends(
    db: Session,
    user_id: UUID,
    days: int = 30,
    domain: Optional[str] = None,
    keyword: Optional[str] = None,
    granularity: str = "day",
) -> Dict[str, Any]:
    start = window_start(days)
    rows = load_rankings(db, user_id, since=start, domain=domain, ranked_only=True)
    if keyword:
        needle = keyword.lower()
        rows = [row for row in rows if needle in (row.keyword or "").lower()]

    bucket = granularity if granularity in GRANULARITIES else "day"
    periods = []
    for key, group in group_by(rows, lambda row: period_key(row.created_at, bucket)).items():
        ranks = [row.rank for row in group]
        periods.append({
            "date": key,
            "avgRank": round1(mean(ranks)),
            "bestRank": min(ranks),
            "worstRank": max(ranks),
            "keywordCount": len(ranks),
            "rankedCount": len([rank for rank in ranks if rank <= 100]),
        })
    periods.sort(key=lambda period: period["date"])

    keyword_trends = []
    if domain:
        for name, group in group_by(rows, lambda row: row.keyword).items():
            oldest, latest = group[0].rank, group[-1].rank
            keyword_trends.append({
                "keyword": name,
                "startRank": oldest,
                "endRank": latest,
                "change": oldest - latest if oldest and latest else None,
            })
        keyword_trends.sort(key=lambda entry: entry["endRank"])
        keyword_trends = keyword_trends[:KEYWORD_TREND_LIMIT]

    return {
        "period": {
            "days": days,
            "granularity": granularity,
            "startDate": start,
            "endDate": datetime.utcnow(),
        },
        "filters": {"domain": domain, "keyword": keyword},
        "summary": summarize_trend(periods),
        "trends": periods,
        "keywordTrends": keyword_trends,
    }
