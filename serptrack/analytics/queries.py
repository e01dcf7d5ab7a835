"""Row loaders shared by the analytics views."""

from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.database.models import RankingResult, SearchHistory


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.utcnow()) - timedelta(days=days)


def load_rankings(
    db: Session,
    user_id: UUID,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    domain: Optional[str] = None,
    ranked_only: bool = False,
) -> List[RankingResult]:
    """A user's ranking rows, oldest first."""
    query = db.query(RankingResult).filter(RankingResult.user_id == user_id)
    if since is not None:
        query = query.filter(RankingResult.created_at >= since)
    if until is not None:
        query = query.filter(RankingResult.created_at < until)
    if domain:
        query = query.filter(RankingResult.domain == domain)
    if ranked_only:
        query = query.filter(RankingResult.rank.isnot(None))
    return query.order_by(RankingResult.created_at.asc()).all()


def load_searches(
    db: Session,
    user_id: UUID,
    since: Optional[datetime] = None,
) -> List[SearchHistory]:
    """A user's searches, newest first."""
    query = db.query(SearchHistory).filter(SearchHistory.user_id == user_id)
    if since is not None:
        query = query.filter(SearchHistory.created_at >= since)
    return query.order_by(SearchHistory.created_at.desc()).all()
