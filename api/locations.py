"""
Locations API

Endpoints:
- GET /api/locations?q= - Ranked DataForSEO locations matching a query
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from serptrack.catalog.locations import search_locations
from serptrack.database.session import get_db
from serptrack.utils.responses import with_cache_headers, success_response

router = APIRouter(prefix="/api/locations", tags=["Locations"])


@router.get("")
async def locations(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    results = await search_locations(db, q)
    return with_cache_headers(success_response(results), public=True, max_age=3600)
