"""
Repository Layer - Clean Interface for Data Operations

Small functions shared by the tracking services, routers and scripts:
- credit usage logging (called by the DataForSEO client)
- search history and cached ranking lookups
- ranking result and master SERP persistence
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from .models import CreditUsage, MasterSERP, RankingResult, SearchHistory
from .session import get_db_context

logger = logging.getLogger(__name__)


def as_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """Coerce a path/token id into a UUID, None when malformed."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


# =============================================================================
# CREDIT USAGE
# =============================================================================

def record_credit_usage(
    user_id: Union[str, UUID],
    api_endpoint: str,
    credits_used: float,
    request_params: Any = None,
    response_status: Optional[int] = None,
    timestamp: Optional[datetime] = None,
    db: Optional[Session] = None,
) -> None:
    """
    Log credits spent by a user.

    Uses the given session when provided, otherwise its own transaction.
    """
    usage = CreditUsage(
        user_id=as_uuid(user_id),
        api_endpoint=api_endpoint,
        credits_used=credits_used,
        request_params=request_params,
        response_status=response_status,
        timestamp=timestamp or datetime.utcnow(),
    )

    if db is not None:
        db.add(usage)
        return

    with get_db_context() as session:
        session.add(usage)

    logger.debug(f"Recorded {credits_used} credits for user {user_id} on {api_endpoint}")


# =============================================================================
# SEARCH HISTORY
# =============================================================================

def create_search_history(
    db: Session,
    user_id: UUID,
    domain: str,
    location: str,
    location_code: Optional[int],
    keywords: List[str],
    filters: Dict[str, str],
    task_ids: Optional[List[str]] = None,
) -> SearchHistory:
    history = SearchHistory(
        user_id=user_id,
        domain=domain,
        location=location,
        location_code=location_code or 0,
        keywords=list(keywords),
        keyword_count=len(keywords),
        language=filters.get("language", "en"),
        device=filters.get("device", "desktop"),
        os=filters.get("os", "windows"),
        task_ids=list(task_ids or []),
    )
    db.add(history)
    db.flush()
    return history


# =============================================================================
# RANKING RESULTS
# =============================================================================

def find_cached_result(
    db: Session,
    domain: str,
    keyword: str,
    location_code: Optional[int],
    filters: Dict[str, str],
    max_age_days: int,
) -> Optional[RankingResult]:
    """Newest ranking for the exact lookup, if younger than ``max_age_days``."""
    cutoff = datetime.utcnow() - timedelta(days=max_age_days)
    return (
        db.query(RankingResult)
        .filter(
            RankingResult.domain == domain,
            RankingResult.keyword == keyword,
            RankingResult.location_code == (location_code or 0),
            RankingResult.language == filters.get("language", "en"),
            RankingResult.device == filters.get("device", "desktop"),
            RankingResult.os == filters.get("os", "windows"),
            RankingResult.created_at >= cutoff,
        )
        .order_by(RankingResult.created_at.desc())
        .first()
    )


def create_ranking_result(db: Session, **fields: Any) -> RankingResult:
    """Insert a ranking row, ignoring keys that are not columns."""
    columns = RankingResult.__table__.columns.keys()
    result = RankingResult(**{k: v for k, v in fields.items() if k in columns})
    db.add(result)
    db.flush()
    return result


def get_results_by_task_ids(db: Session, task_ids: Iterable[str]) -> Dict[str, RankingResult]:
    task_ids = list(task_ids)
    if not task_ids:
        return {}
    rows = db.query(RankingResult).filter(RankingResult.task_id.in_(task_ids)).all()
    return {row.task_id: row for row in rows}


# =============================================================================
# MASTER SERPS
# =============================================================================

def get_master_serps(db: Session, task_ids: Iterable[str]) -> Dict[str, MasterSERP]:
    task_ids = list(task_ids)
    if not task_ids:
        return {}
    rows = db.query(MasterSERP).filter(MasterSERP.task_id.in_(task_ids)).all()
    return {row.task_id: row for row in rows}


def save_master_serp(
    db: Session,
    task_id: str,
    data: Dict[str, Any],
    domain: Optional[str] = None,
    ranks: Optional[Dict[str, Any]] = None,
) -> MasterSERP:
    """Insert or refresh the raw SERP stored for a task."""
    item_types = {item.get("type") for item in data.get("items") or []}

    record = db.query(MasterSERP).filter(MasterSERP.task_id == task_id).first()
    if record is None:
        record = MasterSERP(task_id=task_id)
        db.add(record)

    record.data = data
    record.keyword = data.get("keyword")
    record.is_ai_overview = "ai_overview" in item_types
    record.is_people_also_ask = "people_also_ask" in item_types
    if domain is not None:
        record.domain = domain
        record.ranks = ranks

    db.flush()
    return record
