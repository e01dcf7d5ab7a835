"""
Plans API

Endpoints:
- GET /api/v1/plans - Active subscription plans (public)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from serptrack.catalog.plans import get_active_plans, plan_to_dict
from serptrack.database.session import get_db
from serptrack.utils.responses import success_response, with_cache_headers

router = APIRouter(prefix="/api/v1/plans", tags=["Plans"])


@router.get("")
async def list_plans(db: Session = Depends(get_db)):
    plans = [plan_to_dict(plan) for plan in get_active_plans(db)]
    return with_cache_headers(success_response(plans), public=True, max_age=300)
