"""
Analytics API

Read models over the current user's rankings. Every endpoint accepts
``days`` (default 30).

Endpoints:
- GET /api/analytics/visibility
- GET /api/analytics/trends
- GET /api/analytics/serp-features
- GET /api/analytics/keywords
- GET /api/analytics/keywords/{keyword}
- GET /api/analytics/domains
- GET /api/analytics/domains/{domain}
- GET /api/analytics/overview
- GET /api/analytics/dashboard
- GET /api/analytics/report
- GET /api/analytics/ranking-history
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from serptrack.analytics import (
    domain_detail,
    get_dashboard,
    get_overview,
    get_rank_trends,
    get_report,
    get_serp_features,
    get_visibility,
    keyword_detail,
    list_domains,
    list_keywords,
)
from serptrack.auth.dependencies import get_current_user
from serptrack.auth.models import User
from serptrack.database.session import get_db
from serptrack.tracking import ranking_history
from serptrack.utils.pagination import build_pagination, parse_pagination
from serptrack.utils.responses import success_response, with_cache_headers

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/analytics",
    tags=["Analytics"],
    dependencies=[Depends(get_current_user)],
)

DAYS = Query(30, ge=1, le=365)


def _cached(data, max_age: int = 60, **extra):
    return with_cache_headers(success_response(data, **extra), max_age=max_age)


# =============================================================================
# VISIBILITY & TRENDS
# =============================================================================

@router.get("/visibility")
async def visibility(
    days: int = DAYS,
    domain: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cached(get_visibility(db, user.id, days=days, domain=domain))


@router.get("/trends")
async def trends(
    days: int = DAYS,
    domain: Optional[str] = None,
    keyword: Optional[str] = None,
    granularity: Literal["day", "week", "month"] = "day",
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = get_rank_trends(db, user.id, days=days, domain=domain, keyword=keyword, granularity=granularity)
    return _cached(data)


@router.get("/serp-features")
async def serp_features(
    days: int = DAYS,
    domain: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await get_serp_features(db, user.id, days=days, domain=domain)
    return _cached(data, max_age=300)


@router.get("/ranking-history")
async def get_ranking_history(
    domain: Optional[str] = None,
    keyword: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Rank points for one domain and keyword, oldest first."""
    if not domain or not keyword:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Domain and keyword are required")
    return {"success": True, "history": ranking_history(db, domain, keyword)}


# =============================================================================
# KEYWORDS & DOMAINS
# =============================================================================

@router.get("/keywords")
async def keywords(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    domain: Optional[str] = None,
    rank_filter: Optional[str] = Query(None, alias="rankFilter"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    pagination = parse_pagination(page, limit, sort_by, sort_order, default_sort_by="lastChecked")
    items, total, summary = list_keywords(db, user.id, pagination, domain=domain, rank_filter=rank_filter)
    return _cached(
        {"keywords": items, "summary": summary},
        pagination=build_pagination(pagination["page"], pagination["limit"], total),
    )


@router.get("/keywords/{keyword}")
async def keyword(
    keyword: str,
    days: int = DAYS,
    domain: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = keyword_detail(db, user.id, keyword, domain=domain, days=days)
    if not data.get("stats"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Keyword not found")
    return _cached(data)


@router.get("/domains")
async def domains(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    pagination = parse_pagination(page, limit, default_limit=10)
    items, total = list_domains(db, user.id, pagination)
    return _cached(
        {"domains": items},
        pagination=build_pagination(pagination["page"], pagination["limit"], total),
    )


@router.get("/domains/{domain}")
async def domain(
    domain: str,
    days: int = DAYS,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cached(domain_detail(db, user.id, domain, days=days))


# =============================================================================
# SUMMARIES
# =============================================================================

@router.get("/overview")
async def overview(
    days: int = DAYS,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cached(get_overview(db, user.id, days=days))


@router.get("/dashboard")
async def dashboard(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cached(await get_dashboard(db, user.id))


@router.get("/report")
async def report(
    days: int = DAYS,
    domain: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _cached(get_report(db, user.id, days=days, domain=domain), max_age=300)
