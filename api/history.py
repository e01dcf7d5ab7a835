"""
Results & History API

Endpoints:
- GET /api/result/{task_id} - Raw SERP of one task
- GET /api/history - Last searches of the current user
- GET /api/user/history - Searches grouped by domain
- GET /api/user/tokens - Remaining request tokens
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from serptrack.auth.dependencies import get_current_user
from serptrack.auth.models import User
from serptrack.cache import CacheKeys, CacheTTL, get_or_set
from serptrack.database.session import get_db
from serptrack.tracking import get_task_serp, recent_searches, user_search_history

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["History"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/result/{task_id}")
async def get_result(
    task_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stored SERP, fetched from DataForSEO when missing."""
    serp = await get_task_serp(db, user, task_id)
    if serp is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")
    return {"success": True, "data": serp}


@router.get("/history")
async def get_recent_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "history": recent_searches(db, user.id)}


@router.get("/user/history")
async def get_user_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "history": user_search_history(db, user.id)}


@router.get("/user/tokens")
async def get_user_tokens(user: User = Depends(get_current_user)):
    async def compute():
        return {"tokens": user.request_tokens or 0}

    return await get_or_set(CacheKeys.user_tokens(user.id), CacheTTL.USER_TOKENS, compute)
