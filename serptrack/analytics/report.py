"""
SEO Performance Report

Compares the current window against the window before it and breaks the
current one down by keyword growth, gainers and losers, SERP feature
trend, device, weekday, keyword intent and domain health.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.analytics.queries import load_rankings, load_searches, window_start
from serptrack.analytics.scoring import (
    WEEKDAY_NAMES,
    classify_intent,
    day_of,
    group_by,
    has_local_pack,
    in_top,
    mean,
    percent,
    rank_change,
    ranks_of,
    round1,
    round_half_up,
    tenth,
    weekday_index,
)

MOVER_LIMIT = 10


def _period_stats(rows: List[Any]) -> Dict[str, Any]:
    return {
        "avgRank": mean(ranks_of(rows)),
        "top10": len([row for row in rows if in_top(row.rank, 10)]),
        "ranked": len(ranks_of(rows)),
    }


def _moves(rows: List[Any]) -> List[Dict[str, Any]]:
    moves = []
    for (keyword, domain), group in group_by(rows, lambda row: (row.keyword, row.domain)).items():
        change = rank_change(group[0].rank, group[-1].rank)
        if change is not None:
            moves.append({
                "keyword": keyword,
                "domain": domain,
                "from": group[0].rank,
                "to": group[-1].rank,
                "change": change,
            })
    return moves


def domain_health(rows: List[Any]) -> List[Dict[str, Any]]:
    """
    Health per domain on a 0-100 scale:
    30 for ranked share, 40 for top-10 share of ranked, 30 for improved share of moved.
    """
    domains: Dict[str, List[tuple]] = {}
    for (domain, _), group in group_by(rows, lambda row: (row.domain, row.keyword)).items():
        domains.setdefault(domain, []).append((group[-1].rank, group[0].rank))

    result = []
    for domain, pairs in domains.items():
        latest = [current for current, _ in pairs]
        ranked = len([rank for rank in latest if rank is not None])
        top10 = len([rank for rank in latest if in_top(rank, 10)])
        improved = len([1 for current, first in pairs
                        if current is not None and first is not None and current < first])
        declined = len([1 for current, first in pairs
                        if current is not None and first is not None and current > first])

        score = (
            ranked / len(pairs) * 30
            + top10 / max(ranked, 1) * 40
            + improved / max(improved + declined, 1) * 30
        )
        if improved > declined:
            trend = "up"
        elif improved < declined:
            trend = "down"
        else:
            trend = "stable"

        result.append({
            "domain": domain,
            "keywords": len(pairs),
            "ranked": ranked,
            "top10": top10,
            "avgRank": round1(mean([rank for rank in latest if rank is not None])),
            "healthScore": round_half_up(score),
            "trend": trend,
        })
    result.sort(key=lambda entry: entry["keywords"], reverse=True)
    return result


def keyword_intents(rows: List[Any]) -> List[Dict[str, Any]]:
    intents: Dict[str, List[Optional[int]]] = {}
    for keyword, group in group_by(rows, lambda row: row.keyword).items():
        intents.setdefault(classify_intent(keyword), []).append(group[-1].rank)

    result = []
    for intent, ranks in intents.items():
        top10 = len([rank for rank in ranks if in_top(rank, 10)])
        result.append({
            "intent": intent,
            "count": len(ranks),
            "avgRank": round1(mean([rank for rank in ranks if rank is not None])),
            "top10": top10,
            "top10Rate": percent(top10, len(ranks)),
        })
    return result


def get_report(
    db: Session,
    user_id: UUID,
    days: int = 30,
    domain: Optional[str] = None,
) -> Dict[str, Any]:
    start = window_start(days)
    previous_start = start - timedelta(days=days)

    current_rows = load_rankings(db, user_id, since=start, domain=domain)
    previous_rows = load_rankings(db, user_id, since=previous_start, until=start, domain=domain)

    current = _period_stats(current_rows)
    previous = _period_stats(previous_rows)
    total = len(current_rows)

    moves = _moves(current_rows)
    gainers = sorted((m for m in moves if m["change"] > 0), key=lambda m: -m["change"])
    losers = sorted((m for m in moves if m["change"] < 0), key=lambda m: m["change"])

    serp_trend = []
    for date, group in group_by(current_rows, day_of).items():
        day_total = len(group)
        serp_trend.append({
            "date": date,
            "aiOverview": percent(len([r for r in group if r.is_ai_overview]), day_total),
            "paa": percent(len([r for r in group if r.is_people_also_ask]), day_total),
            "featuredSnippet": percent(len([r for r in group if r.is_featured_snippet]), day_total),
            "localPack": percent(len([r for r in group if has_local_pack(r)]), day_total),
        })

    devices = group_by(load_searches(db, user_id, since=start), lambda row: row.device or "desktop")
    device_breakdown = sorted(
        ({"device": device, "count": len(group)} for device, group in devices.items()),
        key=lambda entry: entry["count"],
        reverse=True,
    )

    weekdays = group_by(
        sorted((row for row in current_rows if row.rank is not None),
               key=lambda row: weekday_index(row.created_at)),
        lambda row: weekday_index(row.created_at),
    )
    by_weekday = [
        {
            "day": WEEKDAY_NAMES[index - 1],
            "avgRank": round1(mean(ranks_of(group))),
            "checks": len(group),
        }
        for index, group in weekdays.items()
    ]

    avg_change = None
    if current["avgRank"] and previous["avgRank"]:
        avg_change = tenth(previous["avgRank"] - current["avgRank"])

    return {
        "period": {"days": days, "startDate": start, "previousStartDate": previous_start},
        "summary": {
            "totalChecks": total,
            "uniqueKeywords": len({row.keyword for row in current_rows}),
            "uniqueDomains": len({row.domain for row in current_rows}),
            "avgRank": round1(current["avgRank"]),
            "top3": len([row for row in current_rows if in_top(row.rank, 3)]),
            "top10": current["top10"],
            "top20": len([row for row in current_rows if in_top(row.rank, 20)]),
            "ranked": current["ranked"],
            "rankRate": percent(current["ranked"], total),
            "aiOverviewRate": percent(len([r for r in current_rows if r.is_ai_overview]), total),
            "paaRate": percent(len([r for r in current_rows if r.is_people_also_ask]), total),
        },
        "comparison": {
            "avgRankChange": avg_change,
            "top10Change": current["top10"] - previous["top10"],
            "rankedChange": current["ranked"] - previous["ranked"],
        },
        "keywordGrowth": [
            {"date": date, "keywords": len({row.keyword for row in group})}
            for date, group in group_by(current_rows, day_of).items()
        ],
        "topGainers": [
            {"keyword": m["keyword"], "domain": m["domain"], "from": m["from"], "to": m["to"],
             "improvement": m["change"]}
            for m in gainers[:MOVER_LIMIT]
        ],
        "topLosers": [
            {"keyword": m["keyword"], "domain": m["domain"], "from": m["from"], "to": m["to"],
             "drop": abs(m["change"])}
            for m in losers[:MOVER_LIMIT]
        ],
        "serpTrend": serp_trend,
        "deviceBreakdown": device_breakdown,
        "rankByDayOfWeek": by_weekday,
        "keywordIntents": keyword_intents(current_rows),
        "domainHealth": domain_health(load_rankings(db, user_id, since=start)),
    }
