"""
Keyword Lists API

Endpoints:
- GET /api/v1/keyword-lists - Lists of the current user
- POST /api/v1/keyword-lists - Create a list (one per domain)
- GET /api/v1/keyword-lists/{list_id} - One list
- PATCH /api/v1/keyword-lists/{list_id} - Update list settings
- DELETE /api/v1/keyword-lists/{list_id} - Delete a list
- POST /api/v1/keyword-lists/{list_id}/keywords - Add keywords
- DELETE /api/v1/keyword-lists/{list_id}/keywords - Remove keywords by text or id
- PATCH /api/v1/keyword-lists/{list_id}/keywords - Update a keyword's notes
"""

import logging
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from serptrack.auth.dependencies import get_current_user
from serptrack.auth.models import User
from serptrack.catalog import keyword_lists as lists
from serptrack.catalog.keyword_lists import KeywordListError, list_to_dict
from serptrack.database.session import get_db
from serptrack.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/keyword-lists",
    tags=["Keyword Lists"],
    dependencies=[Depends(get_current_user)],
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class _CamelModel(BaseModel):
    class Config:
        populate_by_name = True


class CreateListRequest(_CamelModel):
    name: Optional[str] = None
    domain: Optional[str] = None
    location: Optional[str] = None
    location_code: Optional[int] = Field(None, alias="locationCode")
    language: Optional[str] = None
    language_name: Optional[str] = Field(None, alias="languageName")
    keywords: Optional[List[Any]] = None
    auto_track: bool = Field(False, alias="autoTrack")
    tracking_frequency: Optional[str] = Field(None, alias="trackingFrequency")


class UpdateListRequest(_CamelModel):
    """Only the fields present in the body are applied."""
    name: Optional[str] = None
    location: Optional[str] = None
    location_code: Optional[int] = Field(None, alias="locationCode")
    language: Optional[str] = None
    language_name: Optional[str] = Field(None, alias="languageName")
    is_active: Optional[bool] = Field(None, alias="isActive")
    auto_track: Optional[bool] = Field(None, alias="autoTrack")
    tracking_frequency: Optional[str] = Field(None, alias="trackingFrequency")


class AddKeywordsRequest(_CamelModel):
    keywords: Any = None


class RemoveKeywordsRequest(_CamelModel):
    keywords: Optional[List[str]] = None
    keyword_ids: Optional[List[str]] = Field(None, alias="keywordIds")


class UpdateKeywordRequest(_CamelModel):
    keyword_id: Optional[str] = Field(None, alias="keywordId")
    keyword: Optional[str] = None
    notes: Optional[str] = None


def _fail(error: KeywordListError):
    raise HTTPException(status_code=error.status_code, detail=error.message)


# =============================================================================
# LISTS
# =============================================================================

@router.get("")
async def get_keyword_lists(
    domain: Optional[str] = None,
    active: bool = Query(True),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = lists.get_lists(db, user.id, domain=domain, active_only=active)
    return success_response([list_to_dict(row) for row in rows])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_keyword_list(
    request: CreateListRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        keyword_list = lists.create_list(
            db,
            user.id,
            name=request.name,
            domain=request.domain,
            location=request.location,
            location_code=request.location_code,
            language=request.language,
            language_name=request.language_name,
            keywords=request.keywords,
            auto_track=request.auto_track,
            tracking_frequency=request.tracking_frequency,
        )
    except KeywordListError as e:
        _fail(e)
    return success_response(list_to_dict(keyword_list), "Keyword list created successfully", status_code=201)


@router.get("/{list_id}")
async def get_keyword_list(
    list_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        keyword_list = lists.get_list(db, user.id, list_id)
    except KeywordListError as e:
        _fail(e)
    return success_response(list_to_dict(keyword_list))


@router.patch("/{list_id}")
async def update_keyword_list(
    list_id: UUID,
    request: UpdateListRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        keyword_list = lists.update_list(db, user.id, list_id, request.model_dump(exclude_unset=True))
    except KeywordListError as e:
        _fail(e)
    return success_response(list_to_dict(keyword_list))


@router.delete("/{list_id}")
async def delete_keyword_list(
    list_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        lists.delete_list(db, user.id, list_id)
    except KeywordListError as e:
        _fail(e)
    return success_response(None, "Keyword list deleted successfully")


# =============================================================================
# KEYWORDS
# =============================================================================

@router.post("/{list_id}/keywords")
async def add_list_keywords(
    list_id: UUID,
    request: AddKeywordsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        outcome = lists.add_keywords(db, user.id, list_id, request.keywords)
    except KeywordListError as e:
        _fail(e)
    return success_response(outcome, f"Added {outcome['added']} keyword(s)")


@router.delete("/{list_id}/keywords")
async def remove_list_keywords(
    list_id: UUID,
    request: RemoveKeywordsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        outcome = lists.remove_keywords(
            db, user.id, list_id, keywords=request.keywords, keyword_ids=request.keyword_ids
        )
    except KeywordListError as e:
        _fail(e)
    return success_response(outcome, f"Removed {outcome['removed']} keyword(s)")


@router.patch("/{list_id}/keywords")
async def update_list_keyword(
    list_id: UUID,
    request: UpdateKeywordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        entry = lists.update_keyword(
            db,
            user.id,
            list_id,
            keyword_id=request.keyword_id,
            keyword=request.keyword,
            notes=request.notes,
        )
    except KeywordListError as e:
        _fail(e)
    return success_response(entry)
