"""
Rank Check API

Endpoints:
- POST /api/check-rank/regular - Live regular rank check
- POST /api/check-rank - Live advanced rank check (feature flagged)
- GET /api/check-rank/results/{history_id} - Results of a search, collecting finished tasks
- GET /api/check-rank/results/{history_id}/export - CSV or JSON download
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from serptrack.auth.dependencies import check_rank_rate_limit, get_current_user
from serptrack.auth.models import User
from serptrack.database.session import get_db
from serptrack.tracking import (
    InsufficientTokensError,
    LookupValidationError,
    RankLookup,
    build_lookup,
    get_history,
    get_history_results,
    run_rank_check,
)
from serptrack.utils.config import get_settings
from serptrack.utils.export import export_as_csv, export_as_json, prepare_export_data
from serptrack.utils.responses import error_body

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/check-rank",
    tags=["Rank Checks"],
    dependencies=[Depends(get_current_user)],
)

INSUFFICIENT_TOKENS = "Insufficient request tokens. Please contact support to purchase more tokens."
ADVANCED_DISABLED = (
    "Advanced API is currently disabled. Please use the Regular mode for ranking checks."
)
EXPORT_FORMATS = ("csv", "json")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RankCheckRequest(BaseModel):
    """
    Rank-check request.

    keywords is left untyped so a non-list answers with the
    rank-check validation message rather than a schema error.
    """
    domain: Optional[str] = None
    keywords: Any = None
    location: Optional[str] = None
    location_code: Optional[int] = None
    location_name: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_lookup(request: RankCheckRequest) -> RankLookup:
    """Validated lookup, or 400 with the validation message."""
    try:
        return build_lookup(
            domain=request.domain,
            keywords=request.keywords,
            location=request.location,
            location_code=request.location_code,
            location_name=request.location_name,
            filters=request.filters,
        )
    except LookupValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def _run(db: Session, user: User, request: RankCheckRequest, advanced: bool):
    lookup = to_lookup(request)
    try:
        outcome = await run_rank_check(db, user, lookup, advanced=advanced)
    except InsufficientTokensError:
        return JSONResponse(
            {**error_body(INSUFFICIENT_TOKENS), "tokensRemaining": 0},
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return {"success": True, **outcome}


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/regular")
async def check_rank_regular(
    request: RankCheckRequest,
    user: User = Depends(check_rank_rate_limit),
    db: Session = Depends(get_db),
):
    """Check keyword ranks through the live regular endpoint."""
    return await _run(db, user, request, advanced=False)


@router.post("")
async def check_rank_advanced(
    request: RankCheckRequest,
    user: User = Depends(check_rank_rate_limit),
    db: Session = Depends(get_db),
):
    """Check keyword ranks through the live advanced endpoint, when enabled."""
    if not get_settings().ADVANCED_API_ENABLED:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=ADVANCED_DISABLED)
    return await _run(db, user, request, advanced=True)


@router.get("/results/{history_id}")
async def get_results(
    history_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    history = get_history(db, user.id, history_id)
    if history is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History not found")
    return await get_history_results(db, user, history)


@router.get("/results/{history_id}/export")
async def export_results(
    history_id: UUID,
    format: str = Query("csv"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download the results of a search as CSV or JSON."""
    if format not in EXPORT_FORMATS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Format must be csv or json")

    history = get_history(db, user.id, history_id)
    if history is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History not found")

    outcome = await get_history_results(db, user, history)
    rows = prepare_export_data(outcome["results"])
    filename = f"rankings-{history.domain}-{datetime.utcnow():%Y-%m-%d}.{format}"

    if format == "csv":
        content, media_type = export_as_csv(rows), "text/csv"
    else:
        content, media_type = export_as_json(rows), "application/json"

    logger.info(f"Exported {len(rows)} results of search {history_id} as {format}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
