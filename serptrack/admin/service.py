"""
Admin Operations

Token adjustments with an audit trail, user and platform statistics,
DataForSEO credit usage and system health.
"""

import logging
import platform
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from serptrack.analytics.scoring import day_of, group_by, rank_bucket
from serptrack.auth.models import User, UserRole
from serptrack.cache import CacheKeys, CacheTTL, get_cache, get_or_set, invalidate_user_cache
from serptrack.database.models import CreditUsage, MasterSERP, RankingResult, SearchHistory
from serptrack.database.session import get_db_info

logger = logging.getLogger(__name__)

TOKEN_OPERATIONS = ("add", "subtract", "set")
LOW_TOKEN_THRESHOLD = 10
RECENT_LOG_LIMIT = 50
TOP_LIMIT = 10

_started_at = time.time()


class AdminError(Exception):
    """Rejected admin operation; carries the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# =============================================================================
# TOKENS
# =============================================================================

async def adjust_tokens(
    db: Session,
    admin: User,
    user_id: UUID,
    amount: Any,
    operation: str = "add",
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Add, subtract or set a user's request tokens (never below zero).

    The change is written to credit usage as an audit entry and the
    user's cached data is dropped.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise AdminError("Amount is required and must be a number")
    if operation not in TOKEN_OPERATIONS:
        raise AdminError("Operation must be one of: add, subtract, set")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AdminError("User not found", status_code=404)

    previous = user.request_tokens or 0
    if operation == "add":
        new_tokens = previous + amount
    elif operation == "subtract":
        new_tokens = max(0, previous - amount)
    else:
        new_tokens = max(0, amount)
    new_tokens = int(new_tokens)

    if operation == "subtract":
        credits = -amount
    elif operation == "add":
        credits = amount
    else:
        credits = new_tokens - previous

    user.request_tokens = new_tokens
    db.add(CreditUsage(
        user_id=user.id,
        api_endpoint="admin/tokens/adjust",
        credits_used=credits,
        request_params={
            "operation": operation,
            "amount": amount,
            "reason": reason,
            "previousTokens": previous,
            "newTokens": new_tokens,
            "adjustedBy": str(admin.id),
        },
        response_status=200,
        timestamp=datetime.utcnow(),
    ))
    db.commit()

    await invalidate_user_cache(user.id)
    logger.info(f"Admin {admin.id} {operation} {amount} tokens for user {user.id}: {previous} -> {new_tokens}")

    verb = {"set": "set to", "add": "added", "subtract": "subtracted"}[operation]
    return {
        "userId": str(user.id),
        "previousTokens": previous,
        "newTokens": new_tokens,
        "operation": operation,
        "amount": amount,
        "message": f"Tokens {verb} successfully",
    }


# =============================================================================
# STATISTICS
# =============================================================================

def build_user_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    by_role = {role.value: 0 for role in UserRole}
    for role, count in db.query(User.role, func.count(User.id)).group_by(User.role).all():
        by_role[role.value if isinstance(role, UserRole) else str(role)] = count

    return {
        "totalUsers": db.query(User).count(),
        "activeToday": db.query(User).filter(User.last_active_at >= today).count(),
        "lowTokenUsers": db.query(User).filter(User.request_tokens <= LOW_TOKEN_THRESHOLD).count(),
        "usersByRole": by_role,
    }


async def get_user_stats(db: Session) -> Dict[str, Any]:
    """User counts, cached for CacheTTL.ADMIN_STATS."""
    async def compute() -> Dict[str, Any]:
        return build_user_stats(db)

    return await get_or_set(CacheKeys.admin_stats(), CacheTTL.ADMIN_STATS, compute)


def build_admin_overview(db: Session, days: int = 30) -> Dict[str, Any]:
    start = datetime.utcnow() - timedelta(days=days)
    searches = (
        db.query(SearchHistory)
        .filter(SearchHistory.created_at >= start)
        .order_by(SearchHistory.created_at.asc())
        .all()
    )
    credits = (
        db.query(func.coalesce(func.sum(CreditUsage.credits_used), 0), func.count(CreditUsage.id))
        .filter(CreditUsage.timestamp >= start)
        .one()
    )

    keyword_counts: Dict[str, int] = {}
    for search in searches:
        for keyword in search.keywords or []:
            keyword_counts[keyword] = keyword_counts.get(keyword, 0) + 1

    domain_counts = {domain: len(rows) for domain, rows in group_by(searches, lambda row: row.domain).items()}

    distribution: Dict[str, int] = {}
    ranked = db.query(RankingResult.rank).filter(
        RankingResult.created_at >= start, RankingResult.rank.isnot(None)
    )
    for (rank,) in ranked:
        bucket = rank_bucket(rank)
        distribution[bucket] = distribution.get(bucket, 0) + 1

    def top(counts: Dict[str, int], label: str):
        ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:TOP_LIMIT]
        return [{label: name, "count": count} for name, count in ordered]

    return {
        "period": {"days": days, "startDate": start, "endDate": datetime.utcnow()},
        "summary": {
            "totalUsers": db.query(User).count(),
            "newUsers": db.query(User).filter(User.created_at >= start).count(),
            "activeUsers": db.query(User).filter(User.last_active_at >= start).count(),
            "totalSearches": db.query(SearchHistory).count(),
            "recentSearches": len(searches),
            "totalRankings": db.query(RankingResult).count(),
            "totalCreditsUsed": float(credits[0] or 0),
            "totalApiRequests": credits[1],
        },
        "charts": {
            "searchesByDay": [
                {
                    "date": date,
                    "searches": len(rows),
                    "keywords": sum(len(row.keywords or []) for row in rows),
                }
                for date, rows in group_by(searches, day_of).items()
            ],
        },
        "rankings": {
            "topDomains": top(domain_counts, "domain"),
            "topKeywords": top(keyword_counts, "keyword"),
            "distribution": distribution,
        },
    }


async def get_admin_overview(db: Session, days: int = 30) -> Dict[str, Any]:
    async def compute() -> Dict[str, Any]:
        return build_admin_overview(db, days)

    return await get_or_set(f"{CacheKeys.admin_stats()}:overview:{days}", CacheTTL.ADMIN_STATS, compute)


def get_api_usage(db: Session) -> Dict[str, Any]:
    """Credits spent overall and per endpoint, with the latest log entries."""
    total_credits, total_requests = db.query(
        func.coalesce(func.sum(CreditUsage.credits_used), 0), func.count(CreditUsage.id)
    ).one()

    per_endpoint = (
        db.query(
            CreditUsage.api_endpoint,
            func.sum(CreditUsage.credits_used),
            func.count(CreditUsage.id),
            func.max(CreditUsage.timestamp),
        )
        .group_by(CreditUsage.api_endpoint)
        .order_by(func.sum(CreditUsage.credits_used).desc())
        .all()
    )

    recent = (
        db.query(CreditUsage, User)
        .outerjoin(User, User.id == CreditUsage.user_id)
        .order_by(CreditUsage.timestamp.desc())
        .limit(RECENT_LOG_LIMIT)
        .all()
    )

    return {
        "totalCredits": float(total_credits or 0),
        "totalRequests": total_requests,
        "usageByEndpoint": [
            {"endpoint": endpoint, "totalCredits": float(credits or 0), "count": count, "lastUsed": last_used}
            for endpoint, credits, count, last_used in per_endpoint
        ],
        "recentLogs": [
            {
                "id": str(usage.id),
                "user": {"id": str(user.id), "name": user.name, "email": user.email} if user else None,
                "apiEndpoint": usage.api_endpoint,
                "creditsUsed": usage.credits_used,
                "requestParams": usage.request_params,
                "responseStatus": usage.response_status,
                "timestamp": usage.timestamp,
            }
            for usage, user in recent
        ],
    }


# =============================================================================
# HEALTH
# =============================================================================

async def build_system_health(db: Session) -> Dict[str, Any]:
    info = get_db_info()
    return {
        "status": "healthy" if info["connected"] else "degraded",
        "timestamp": datetime.utcnow(),
        "uptime": round(time.time() - _started_at, 1),
        "database": {
            "status": "connected" if info["connected"] else "disconnected",
            "type": info["database_type"],
            "tables": info["table_count"],
            "error": info.get("error"),
        },
        "collections": {
            "users": db.query(User).count(),
            "searchHistory": db.query(SearchHistory).count(),
            "rankingResults": db.query(RankingResult).count(),
            "masterSerp": db.query(MasterSERP).count(),
            "creditUsage": db.query(CreditUsage).count(),
        },
        "cache": await get_cache().stats(),
        "runtime": {
            "python": platform.python_version(),
            "platform": platform.system().lower(),
            "arch": platform.machine(),
        },
    }


async def get_system_health(db: Session) -> Dict[str, Any]:
    """Health snapshot, cached for CacheTTL.SYSTEM_HEALTH."""
    async def compute() -> Dict[str, Any]:
        return await build_system_health(db)

    return await get_or_set(CacheKeys.system_health(), CacheTTL.SYSTEM_HEALTH, compute)
