"""
Admin API

All endpoints require an admin user.

Endpoints:
- POST /api/v1/admin/users/{user_id}/tokens - Add, subtract or set request tokens
- GET /api/admin/stats - User statistics
- GET /api/admin/api-usage - DataForSEO credit usage
- GET /api/v1/admin/analytics/overview - Platform activity
- GET /api/v1/admin/system/health - Database, cache and runtime status
- GET /api/v1/admin/plans - Every plan, active or not
- PUT /api/v1/admin/plans/seed - Insert the default plans
"""

import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from serptrack.admin import (
    AdminError,
    adjust_tokens,
    get_admin_overview,
    get_api_usage,
    get_system_health,
    get_user_stats,
)
from serptrack.auth.dependencies import require_admin
from serptrack.auth.models import User
from serptrack.catalog.plans import PlanSeedError, plan_to_dict, seed_default_plans
from serptrack.database.models import Plan
from serptrack.database.session import get_db
from serptrack.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter(
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class TokenAdjustmentRequest(BaseModel):
    """Token change; amount is checked by the service so bad input gets its message."""
    amount: Any = None
    operation: str = "add"
    reason: Optional[str] = None


# =============================================================================
# USERS
# =============================================================================

@router.post("/api/v1/admin/users/{user_id}/tokens")
async def adjust_user_tokens(
    user_id: UUID,
    request: TokenAdjustmentRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        outcome = await adjust_tokens(
            db,
            admin,
            user_id,
            amount=request.amount,
            operation=request.operation,
            reason=request.reason,
        )
    except AdminError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return success_response(outcome, outcome["message"])


@router.get("/api/admin/stats")
async def user_stats(db: Session = Depends(get_db)):
    return success_response(await get_user_stats(db))


# =============================================================================
# USAGE & HEALTH
# =============================================================================

@router.get("/api/admin/api-usage")
async def api_usage(db: Session = Depends(get_db)):
    return success_response(get_api_usage(db))


@router.get("/api/v1/admin/analytics/overview")
async def admin_overview(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    return success_response(await get_admin_overview(db, days=days))


@router.get("/api/v1/admin/system/health")
async def system_health(db: Session = Depends(get_db)):
    return success_response(await get_system_health(db))


# =============================================================================
# PLANS
# =============================================================================

@router.get("/api/v1/admin/plans")
async def all_plans(db: Session = Depends(get_db)):
    plans = db.query(Plan).order_by(Plan.sort_order.asc()).all()
    return success_response([plan_to_dict(plan) for plan in plans])


@router.put("/api/v1/admin/plans/seed")
async def seed_plans(db: Session = Depends(get_db)):
    try:
        plans = seed_default_plans(db)
    except PlanSeedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return success_response(
        [plan_to_dict(plan) for plan in plans],
        f"Seeded {len(plans)} default plans",
    )
