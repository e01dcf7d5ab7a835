"""
Analytics Scoring

Shared scoring and grouping helpers for the analytics read models:
- visibility score per rank
- rank brackets and keyword intent classification
- rounding that matches the dashboard (half up, one decimal)
"""

import math
import re
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

DAY_FORMAT = "%Y-%m-%d"
WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


# =============================================================================
# SCORES
# =============================================================================

def visibility_score(rank: Optional[int]) -> float:
    """
    Visibility points for one ranking.

    Position 1 earns 100 points, decaying in steps down to zero past 100.
    """
    if not rank or rank > 100:
        return 0
    if rank == 1:
        return 100
    if rank <= 3:
        return 95 - (rank - 1) * 5
    if rank <= 10:
        return 80 - (rank - 3) * 5
    if rank <= 20:
        return 40 - (rank - 10) * 2
    if rank <= 50:
        return 20 - (rank - 20) * 0.4
    return max(0, 10 - (rank - 50) * 0.2)


def visibility_percent(ranks: Sequence[Optional[int]]) -> int:
    """Share of the maximum score; unranked entries count toward the maximum."""
    if not ranks:
        return 0
    total = sum(visibility_score(rank) for rank in ranks if rank is not None)
    return round_half_up(total / (len(ranks) * 100) * 100)


# =============================================================================
# ROUNDING & STATS
# =============================================================================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def tenth(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def round1(value: Optional[float]) -> Optional[float]:
    """One decimal, half up; falsy values become None."""
    if not value:
        return None
    return tenth(value)


def percent(count: int, total: int) -> int:
    return round_half_up(count / total * 100) if total else 0


def ranks_of(rows: Iterable[Any]) -> List[int]:
    return [row.rank for row in rows if row.rank is not None]


def mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def min_or_none(values: Sequence[int]) -> Optional[int]:
    return min(values) if values else None


def max_or_none(values: Sequence[int]) -> Optional[int]:
    return max(values) if values else None


def rank_change(first: Optional[int], last: Optional[int]) -> Optional[int]:
    """Positive when the ranking moved up."""
    if first is None or last is None:
        return None
    return first - last


def count_where(rows: Iterable[Any], predicate: Callable[[Any], bool]) -> int:
    return sum(1 for row in rows if predicate(row))


def in_top(rank: Optional[int], limit: int) -> bool:
    return rank is not None and rank <= limit


# =============================================================================
# GROUPING
# =============================================================================

def group_by(rows: Iterable[T], key: Callable[[T], Any]) -> "OrderedDict[Any, List[T]]":
    """Group preserving first-seen order of keys and row order within groups."""
    groups: "OrderedDict[Any, List[T]]" = OrderedDict()
    for row in rows:
        groups.setdefault(key(row), []).append(row)
    return groups


def day_of(row: Any) -> str:
    return row.created_at.strftime(DAY_FORMAT)


def period_key(moment: datetime, granularity: str) -> str:
    if granularity == "week":
        return f"{moment.year}-W{moment.isocalendar()[1]:02d}"
    if granularity == "month":
        return moment.strftime("%Y-%m")
    return moment.strftime(DAY_FORMAT)


def weekday_index(moment: datetime) -> int:
    """1 = Sunday ... 7 = Saturday."""
    return (moment.weekday() + 1) % 7 + 1


def sort_nulls_last(items: List[Dict[str, Any]], field: str, descending: bool) -> List[Dict[str, Any]]:
    """Sort dicts by a field; missing and None values always go last."""
    present = [item for item in items if item.get(field) is not None]
    missing = [item for item in items if item.get(field) is None]
    present.sort(key=lambda item: item[field], reverse=descending)
    return present + missing


# =============================================================================
# CLASSIFICATION
# =============================================================================

RANK_BUCKETS = [
    (3, "top3", "Top 3"),
    (10, "top10", "Top 10"),
    (20, "top20", "Top 20"),
    (50, "top50", "Top 50"),
    (100, "top100", "Top 100"),
]


def rank_bucket(rank: Optional[int]) -> str:
    """Bucket key: top3, top10, top20, top50, top100 or notRanked."""
    if rank is not None:
        for limit, key, _ in RANK_BUCKETS:
            if rank <= limit:
                return key
    return "notRanked"


def bracket(rank: Optional[int]) -> str:
    """Exclusive bracket for stacked charts: top3, top10, top20, top50, beyond50, notRanked."""
    if rank is None:
        return "notRanked"
    if rank <= 3:
        return "top3"
    if rank <= 10:
        return "top10"
    if rank <= 20:
        return "top20"
    if rank <= 50:
        return "top50"
    return "beyond50"


INTENT_PATTERNS = [
    ("transactional", re.compile(r"buy|price|cost|cheap|deal|discount|shop|order", re.I)),
    ("informational", re.compile(r"how|what|why|when|where|guide|tutorial|tips|learn", re.I)),
    ("commercial", re.compile(r"best|top|review|compare|vs|alternative", re.I)),
    ("local", re.compile(r"near me|location|address|directions|hours", re.I)),
]


def classify_intent(keyword: str) -> str:
    """First matching intent, navigational otherwise."""
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(keyword or ""):
            return intent
    return "navigational"


# =============================================================================
# SERP FEATURES
# =============================================================================

def has_local_pack(row: Any) -> bool:
    return "local_pack" in (row.item_types or [])


def has_knowledge_panel(row: Any) -> bool:
    return "knowledge_graph" in (row.item_types or [])


def feature_stat(count: int, total: int) -> Dict[str, int]:
    return {"count": count, "percent": percent(count, total)}
