"""
Subscription Plans

Default plan catalog, the public list of active plans and the admin seed.
Limits use -1 for unlimited.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from serptrack.database.models import Plan

logger = logging.getLogger(__name__)


class PlanSeedError(Exception):
    """Plans already exist; seeding would duplicate them."""
    pass


def _features(
    ai_overview: bool,
    serp_analysis: bool,
    export: bool,
    api: bool,
    support: bool,
    white_label: bool,
    reports: bool,
    team: int,
) -> Dict[str, Any]:
    return {
        "aiOverviewTracking": ai_overview,
        "serpFeatureAnalysis": serp_analysis,
        "exportData": export,
        "apiAccess": api,
        "prioritySupport": support,
        "whiteLabel": white_label,
        "customReports": reports,
        "teamMembers": team,  # 0 = none, -1 = unlimited
    }


DEFAULT_PLANS: List[Dict[str, Any]] = [
    {
        "name": "Free",
        "slug": "free",
        "description": "Perfect for getting started with basic keyword tracking",
        "price_monthly": 0,
        "price_yearly": 0,
        "limits": {
            "keywordSearches": 50,
            "keywordsPerSearch": 5,
            "searchHistoryDays": 7,
            "backlinksChecks": 0,
            "siteAudits": 0,
            "competitorAnalysis": 0,
            "contentOptimization": 0,
            "apiRequestsPerDay": 50,
            "apiRequestsPerMonth": 500,
        },
        "features": _features(False, False, False, False, False, False, False, 0),
        "is_default": True,
        "sort_order": 0,
        "color": "#6b7280",
    },
    {
        "name": "Basic",
        "slug": "basic",
        "description": "For individuals and small projects needing more power",
        "price_monthly": 19,
        "price_yearly": 190,
        "limits": {
            "keywordSearches": 500,
            "keywordsPerSearch": 20,
            "searchHistoryDays": 30,
            "backlinksChecks": 100,
            "siteAudits": 5,
            "competitorAnalysis": 10,
            "contentOptimization": 0,
            "apiRequestsPerDay": 500,
            "apiRequestsPerMonth": 10000,
        },
        "features": _features(True, True, True, False, False, False, False, 0),
        "sort_order": 1,
        "color": "#3b82f6",
    },
    {
        "name": "Pro",
        "slug": "pro",
        "description": "For professionals and growing businesses",
        "price_monthly": 49,
        "price_yearly": 490,
        "limits": {
            "keywordSearches": 2000,
            "keywordsPerSearch": 50,
            "searchHistoryDays": 90,
            "backlinksChecks": 500,
            "siteAudits": 20,
            "competitorAnalysis": 50,
            "contentOptimization": 100,
            "apiRequestsPerDay": 2000,
            "apiRequestsPerMonth": 50000,
        },
        "features": _features(True, True, True, True, True, False, True, 5),
        "sort_order": 2,
        "color": "#8b5cf6",
        "badge": "Most Popular",
    },
    {
        "name": "Enterprise",
        "slug": "enterprise",
        "description": "For large teams and agencies with unlimited needs",
        "price_monthly": 149,
        "price_yearly": 1490,
        "limits": {
            "keywordSearches": -1,
            "keywordsPerSearch": 100,
            "searchHistoryDays": 365,
            "backlinksChecks": -1,
            "siteAudits": -1,
            "competitorAnalysis": -1,
            "contentOptimization": -1,
            "apiRequestsPerDay": -1,
            "apiRequestsPerMonth": -1,
        },
        "features": _features(True, True, True, True, True, True, True, -1),
        "sort_order": 3,
        "color": "#f59e0b",
        "badge": "Best Value",
    },
]


def plan_to_dict(plan: Plan) -> Dict[str, Any]:
    return {
        "id": str(plan.id),
        "name": plan.name,
        "slug": plan.slug,
        "description": plan.description,
        "price": {
            "monthly": plan.price_monthly,
            "yearly": plan.price_yearly,
            "currency": plan.currency,
        },
        "limits": plan.limits or {},
        "features": plan.features or {},
        "isActive": plan.is_active,
        "isDefault": plan.is_default,
        "sortOrder": plan.sort_order,
        "color": plan.color,
        "badge": plan.badge,
        "createdAt": plan.created_at,
        "updatedAt": plan.updated_at,
    }


def get_active_plans(db: Session) -> List[Plan]:
    return (
        db.query(Plan)
        .filter(Plan.is_active.is_(True))
        .order_by(Plan.sort_order.asc())
        .all()
    )


def seed_default_plans(db: Session) -> List[Plan]:
    """
    Insert DEFAULT_PLANS.

    Raises:
        PlanSeedError: when any plan already exists
    """
    if db.query(Plan).count() > 0:
        raise PlanSeedError("Plans already exist. Delete existing plans first to re-seed.")

    plans = [Plan(**dict(data, is_active=True)) for data in DEFAULT_PLANS]
    db.add_all(plans)
    db.commit()
    for plan in plans:
        db.refresh(plan)

    logger.info(f"Seeded {len(plans)} default plans")
    return plans
