"""
Locations

Search over the DataForSEO location table and the merge/upsert used to
populate it from the SERP and Labs location endpoints.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from serptrack.cache import CacheKeys, CacheTTL, get_or_set
from serptrack.database.models import Location
from serptrack.dataforseo.client import DataForSEOClient, get_dataforseo_client
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)

SERP_LOCATIONS_ENDPOINT = "/serp/google/locations"
LABS_LOCATIONS_ENDPOINT = "/dataforseo_labs/locations_and_languages"

MIN_QUERY_LENGTH = 2
CANDIDATE_LIMIT = 500
RESULT_LIMIT = 20
MIN_MATCH_QUALITY = 50
PRIORITY_COUNTRY_BOOST = 2000
EXCLUDED_TYPES = ("Postal Code", "Municipality")


# =============================================================================
# SCORING
# =============================================================================

def match_quality(name: str, query: str) -> int:
    """Exact 1000, prefix 500, word start 300, substring 100, anything else 10."""
    lower_name = name.lower()
    lower_query = query.lower()

    if lower_name == lower_query:
        return 1000
    if lower_name.startswith(lower_query):
        return 500
    if re.search(r"\b" + re.escape(lower_query), lower_name):
        return 300
    if lower_query in lower_name:
        return 100
    return 10


def type_boost(location_type: Optional[str]) -> int:
    kind = (location_type or "").lower()
    if kind == "country":
        return 500
    if kind in ("state", "province"):
        return 400
    if kind == "city":
        return 300
    return 100


def rank_locations(
    locations: List[Dict[str, Any]],
    query: str,
    priority_country: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Score, filter and order location dicts; returns the top RESULT_LIMIT formatted."""
    priority = (priority_country or "").upper()

    scored = []
    for location in locations:
        quality = match_quality(location["location_name"], query)
        if quality < MIN_MATCH_QUALITY:
            continue
        is_priority = bool(priority) and (location.get("country_iso_code") or "").upper() == priority
        score = (
            quality * 2
            + type_boost(location.get("location_type"))
            + (PRIORITY_COUNTRY_BOOST if is_priority else 0)
        )
        scored.append((is_priority, score, location))

    scored.sort(key=lambda entry: (not entry[0], -entry[1], entry[2]["location_name"].lower()))

    return [
        {
            "id": location["location_code"],
            "name": location["location_name"],
            "subtext": f"{location.get('location_type')} • {location.get('country_iso_code')}",
            "value": location["location_name"],
            "type": location.get("location_type"),
            "location_code": location["location_code"],
            "country_iso_code": location.get("country_iso_code"),
        }
        for _, _, location in scored[:RESULT_LIMIT]
    ]


def _candidates(db: Session, query: str) -> List[Dict[str, Any]]:
    pattern = f"%{query}%"
    rows = (
        db.query(Location)
        .filter(
            or_(Location.location_name.ilike(pattern), Location.country_iso_code.ilike(pattern)),
            or_(Location.location_type.is_(None), Location.location_type.notin_(EXCLUDED_TYPES)),
        )
        .limit(CANDIDATE_LIMIT)
        .all()
    )
    return [
        {
            "location_code": row.location_code,
            "location_name": row.location_name,
            "location_type": row.location_type,
            "country_iso_code": row.country_iso_code,
        }
        for row in rows
    ]


async def search_locations(db: Session, query: Optional[str]) -> List[Dict[str, Any]]:
    """Ranked location matches, cached per lowercased query for CacheTTL.LOCATION_SEARCH."""
    if not query or len(query) < MIN_QUERY_LENGTH:
        return []

    async def compute() -> List[Dict[str, Any]]:
        return rank_locations(
            _candidates(db, query),
            query,
            priority_country=get_settings().LOCATION_PRIORITY_COUNTRY,
        )

    return await get_or_set(CacheKeys.location_search(query), CacheTTL.LOCATION_SEARCH, compute)


# =============================================================================
# POPULATION
# =============================================================================

async def fetch_locations(endpoint: str, client: Optional[DataForSEOClient] = None) -> List[Dict[str, Any]]:
    client = client or get_dataforseo_client()
    response = await client.get(endpoint)
    tasks = response.get("tasks") or []
    result = tasks[0].get("result") if tasks else None
    if not result:
        logger.warning(f"No locations found in response from {endpoint}")
        return []
    logger.info(f"Fetched {len(result)} locations from {endpoint}")
    return result


def merge_locations(
    serp_locations: List[Dict[str, Any]],
    labs_locations: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Merge by location_code; Labs entries win and carry the language data."""
    merged: Dict[int, Dict[str, Any]] = {}
    for location in serp_locations:
        merged[location["location_code"]] = {**location, "available_languages": []}
    for location in labs_locations:
        existing = merged.get(location["location_code"], {})
        merged[location["location_code"]] = {
            **existing,
            **location,
            "available_languages": location.get("available_languages") or [],
        }
    return list(merged.values())


def save_locations(db: Session, locations: List[Dict[str, Any]]) -> Dict[str, int]:
    """Upsert by location_code; one failing row does not stop the rest."""
    summary = {"inserted": 0, "updated": 0, "errors": 0}

    for data in locations:
        try:
            row = db.query(Location).filter(Location.location_code == data["location_code"]).first()
            is_new = row is None
            if is_new:
                row = Location(location_code=data["location_code"])
                db.add(row)
            else:
                row.updated_at = datetime.utcnow()

            row.location_name = data["location_name"]
            row.location_code_parent = data.get("location_code_parent")
            row.country_iso_code = data.get("country_iso_code")
            row.location_type = data.get("location_type")
            row.available_languages = data.get("available_languages") or []
            db.commit()
            summary["inserted" if is_new else "updated"] += 1
        except Exception as e:
            db.rollback()
            summary["errors"] += 1
            logger.error(f"Error saving location {data.get('location_code')}: {e}")

    return summary


async def populate_locations(db: Session, client: Optional[DataForSEOClient] = None) -> Dict[str, int]:
    serp = await fetch_locations(SERP_LOCATIONS_ENDPOINT, client=client)
    labs = await fetch_locations(LABS_LOCATIONS_ENDPOINT, client=client)
    merged = merge_locations(serp, labs)
    logger.info(f"Merged {len(merged)} unique locations")

    summary = save_locations(db, merged)
    summary["total"] = db.query(Location).count()
    return summary
