"""
Keyword Lists

Saved keyword sets per domain. A user may keep DEFAULT_LISTS_PER_DOMAIN
lists for a domain; keywords are stored lowercased and trimmed, each with
its own id, timestamps and optional notes.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID, uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from serptrack.database.models import KeywordList, TrackingFrequency

logger = logging.getLogger(__name__)

DEFAULT_LISTS_PER_DOMAIN = 1
MAX_NOTES_LENGTH = 500

UPDATABLE_FIELDS = (
    "name",
    "location",
    "location_code",
    "language",
    "language_name",
    "is_active",
    "auto_track",
    "tracking_frequency",
)

KeywordInput = Union[str, Dict[str, Any]]


class KeywordListError(Exception):
    """Rejected keyword list operation; carries the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# =============================================================================
# HELPERS
# =============================================================================

def normalize_domain(domain: str) -> str:
    """Lowercase, without scheme, leading www. or trailing slash."""
    normalized = re.sub(r"^(https?://)?(www\.)?", "", domain.strip().lower())
    return re.sub(r"/$", "", normalized)


def normalize_keyword(value: KeywordInput) -> str:
    text = value.get("keyword") or "" if isinstance(value, dict) else value
    return str(text).lower().strip()


def _check_notes(notes: Optional[str]) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise KeywordListError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")


def make_entry(keyword: str, notes: Optional[str] = None) -> Dict[str, Any]:
    _check_notes(notes)
    return {
        "id": str(uuid4()),
        "keyword": keyword,
        "added_at": datetime.utcnow().isoformat(),
        "last_checked_at": None,
        "latest_rank": None,
        "best_rank": None,
        "notes": notes,
    }


def _new_entries(values: Iterable[KeywordInput], existing: Iterable[str]) -> List[Dict[str, Any]]:
    """Entries for keywords not already present; blanks and repeats dropped."""
    seen = {keyword.lower() for keyword in existing}
    entries = []
    for value in values:
        keyword = normalize_keyword(value)
        if not keyword or keyword in seen:
            continue
        seen.add(keyword)
        notes = value.get("notes") if isinstance(value, dict) else None
        entries.append(make_entry(keyword, notes))
    return entries


def _parse_frequency(value: Optional[str]) -> TrackingFrequency:
    try:
        return TrackingFrequency(value or TrackingFrequency.MANUAL.value)
    except ValueError:
        raise KeywordListError(f"Invalid tracking frequency: {value}")


def list_to_dict(keyword_list: KeywordList) -> Dict[str, Any]:
    return {
        "id": str(keyword_list.id),
        "name": keyword_list.name,
        "domain": keyword_list.domain,
        "location": keyword_list.location,
        "locationCode": keyword_list.location_code,
        "language": keyword_list.language,
        "languageName": keyword_list.language_name,
        "keywords": list(keyword_list.keywords or []),
        "keywordCount": keyword_list.keyword_count,
        "isActive": keyword_list.is_active,
        "autoTrack": keyword_list.auto_track,
        "trackingFrequency": keyword_list.tracking_frequency.value if keyword_list.tracking_frequency else None,
        "lastTrackedAt": keyword_list.last_tracked_at,
        "createdAt": keyword_list.created_at,
        "updatedAt": keyword_list.updated_at,
    }


def _save_keywords(keyword_list: KeywordList, keywords: List[Dict[str, Any]]) -> None:
    keyword_list.keywords = keywords
    keyword_list.updated_at = datetime.utcnow()
    flag_modified(keyword_list, "keywords")


# =============================================================================
# LISTS
# =============================================================================

def get_lists(
    db: Session,
    user_id: UUID,
    domain: Optional[str] = None,
    active_only: bool = True,
) -> List[KeywordList]:
    query = db.query(KeywordList).filter(KeywordList.user_id == user_id)
    if domain:
        query = query.filter(KeywordList.domain == domain.lower())
    if active_only:
        query = query.filter(KeywordList.is_active.is_(True))
    return query.order_by(KeywordList.updated_at.desc()).all()


def get_list(db: Session, user_id: UUID, list_id: UUID) -> KeywordList:
    keyword_list = (
        db.query(KeywordList)
        .filter(KeywordList.id == list_id, KeywordList.user_id == user_id)
        .first()
    )
    if keyword_list is None:
        raise KeywordListError("Keyword list not found", status_code=404)
    return keyword_list


def create_list(
    db: Session,
    user_id: UUID,
    name: Optional[str],
    domain: Optional[str],
    location: Optional[str] = None,
    location_code: Optional[int] = None,
    language: Optional[str] = None,
    language_name: Optional[str] = None,
    keywords: Optional[List[KeywordInput]] = None,
    auto_track: bool = False,
    tracking_frequency: Optional[str] = None,
) -> KeywordList:
    if not name or not domain:
        raise KeywordListError("Name and domain are required")

    normalized = normalize_domain(domain)
    existing = (
        db.query(KeywordList)
        .filter(KeywordList.user_id == user_id, KeywordList.domain == normalized)
        .count()
    )
    if existing >= DEFAULT_LISTS_PER_DOMAIN:
        raise KeywordListError(
            f"You can only have {DEFAULT_LISTS_PER_DOMAIN} list(s) per domain. "
            "Delete an existing list first."
        )

    keyword_list = KeywordList(
        user_id=user_id,
        name=name.strip(),
        domain=normalized,
        location=location or "United States",
        location_code=location_code or None,
        language=language or "en",
        language_name=language_name or "English",
        keywords=_new_entries(keywords or [], []),
        auto_track=bool(auto_track),
        tracking_frequency=_parse_frequency(tracking_frequency),
    )
    db.add(keyword_list)
    db.commit()
    db.refresh(keyword_list)

    logger.info(f"Created keyword list {keyword_list.id} for {normalized}")
    return keyword_list


def update_list(db: Session, user_id: UUID, list_id: UUID, changes: Dict[str, Any]) -> KeywordList:
    """Apply the given settings; keys outside UPDATABLE_FIELDS are ignored."""
    keyword_list = get_list(db, user_id, list_id)

    for field in UPDATABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "name":
            if not value or not str(value).strip():
                raise KeywordListError("Name cannot be empty")
            value = str(value).strip()
        elif field == "tracking_frequency":
            value = _parse_frequency(value)
        setattr(keyword_list, field, value)

    keyword_list.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(keyword_list)
    return keyword_list


def delete_list(db: Session, user_id: UUID, list_id: UUID) -> None:
    keyword_list = get_list(db, user_id, list_id)
    db.delete(keyword_list)
    db.commit()
    logger.info(f"Deleted keyword list {list_id}")


# =============================================================================
# KEYWORDS
# =============================================================================

def add_keywords(
    db: Session,
    user_id: UUID,
    list_id: UUID,
    keywords: Any,
) -> Dict[str, Any]:
    if not keywords or not isinstance(keywords, list):
        raise KeywordListError("Keywords array is required")

    keyword_list = get_list(db, user_id, list_id)
    current = list(keyword_list.keywords or [])
    added = _new_entries(keywords, [entry["keyword"] for entry in current])
    if not added:
        raise KeywordListError("All keywords already exist in the list")

    _save_keywords(keyword_list, current + added)
    db.commit()

    return {"added": len(added), "total": len(current) + len(added), "keywords": added}


def remove_keywords(
    db: Session,
    user_id: UUID,
    list_id: UUID,
    keywords: Optional[List[str]] = None,
    keyword_ids: Optional[List[str]] = None,
) -> Dict[str, int]:
    if not keywords and not keyword_ids:
        raise KeywordListError("Keywords or keywordIds array is required")

    keyword_list = get_list(db, user_id, list_id)
    current = list(keyword_list.keywords or [])

    drop_keywords = {normalize_keyword(keyword) for keyword in keywords or []}
    drop_ids = {str(keyword_id) for keyword_id in keyword_ids or []}
    remaining = [
        entry for entry in current
        if entry["keyword"].lower() not in drop_keywords and entry.get("id") not in drop_ids
    ]

    _save_keywords(keyword_list, remaining)
    db.commit()

    return {"removed": len(current) - len(remaining), "total": len(remaining)}


def update_keyword(
    db: Session,
    user_id: UUID,
    list_id: UUID,
    keyword_id: Optional[str] = None,
    keyword: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Update the notes of one keyword, found by id or by text."""
    if not keyword_id and not keyword:
        raise KeywordListError("keywordId or keyword is required")
    _check_notes(notes)

    keyword_list = get_list(db, user_id, list_id)
    entries = [dict(entry) for entry in keyword_list.keywords or []]

    target = None
    for entry in entries:
        if keyword_id and entry.get("id") == keyword_id:
            target = entry
        elif not keyword_id and entry["keyword"].lower() == keyword.lower():
            target = entry
        if target is not None:
            break

    if target is None:
        raise KeywordListError("Keyword not found in list", status_code=404)

    if notes is not None:
        target["notes"] = notes

    _save_keywords(keyword_list, entries)
    db.commit()
    return target
