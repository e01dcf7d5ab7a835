"""
Rank Lookup Records

Validation of incoming rank-check requests and the dict shapes
ranking rows are returned in.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from serptrack.database.models import Job, RankingResult, SearchHistory
from serptrack.dataforseo.types import DEFAULT_LOCATION_CODE

DEFAULT_FILTERS = {"language": "en", "device": "desktop", "os": "windows"}

# Fields a regular user sees in a rank check response
USER_RESULT_FIELDS = ("keyword", "rank", "url", "title", "description", "source", "message")


class LookupValidationError(ValueError):
    """Rank-check request rejected before any API call."""
    pass


@dataclass
class RankLookup:
    """A validated rank-check request."""
    domain: str
    keywords: List[str]
    location: str
    location_code: Optional[int]  # None when only a location name was given
    location_name: Optional[str] = None
    filters: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FILTERS))

    @property
    def stored_location_code(self) -> int:
        return self.location_code or 0


def build_lookup(
    domain: Any,
    keywords: Any,
    location: Optional[str] = None,
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
) -> RankLookup:
    """
    Validate and normalize a rank-check request.

    Raises:
        LookupValidationError: with the user-facing message
    """
    if not domain or not str(domain).strip():
        raise LookupValidationError("Domain is required.")
    if keywords is None or not isinstance(keywords, list):
        raise LookupValidationError("Keywords must be provided as an array.")
    if len(keywords) == 0:
        raise LookupValidationError("At least one keyword is required.")

    filters = filters or {}
    search_filters = {
        key: filters.get(key) or default for key, default in DEFAULT_FILTERS.items()
    }

    final_code = location_code or (None if location_name else DEFAULT_LOCATION_CODE)

    return RankLookup(
        domain=str(domain).strip(),
        keywords=[str(keyword) for keyword in keywords],
        location=location_name or location or "Unknown",
        location_code=final_code,
        location_name=location_name,
        filters=search_filters,
    )


def dedupe(keywords: List[str]) -> List[str]:
    """Unique keywords, first occurrence wins."""
    return list(dict.fromkeys(keywords))


# =============================================================================
# SERIALIZATION
# =============================================================================

def ranking_to_dict(result: RankingResult) -> Dict[str, Any]:
    """Full ranking row as returned to admins and the results page."""
    return {
        "id": str(result.id),
        "taskId": result.task_id,
        "keyword": result.keyword,
        "domain": result.domain,
        "location": result.location,
        "location_code": result.location_code,

        # Tracked domain
        "rank": result.rank,
        "rank_group": result.rank_group,
        "rank_absolute": result.rank_absolute,
        "position": result.position,
        "page": result.page,
        "url": result.url,
        "title": result.title,
        "description": result.description,
        "breadcrumb": result.breadcrumb,
        "etv": result.etv,
        "xpath": result.xpath,

        # Keyword metrics
        "search_volume": result.search_volume,
        "cpc": result.cpc,
        "competition": result.competition,

        # SERP metadata
        "se_results_count": result.se_results_count,
        "items_count": result.items_count,
        "item_types": result.item_types or [],
        "serp_item_types": result.serp_item_types or [],
        "check_url": result.check_url,
        "spell": result.spell,

        # SERP features
        "ai_overview": result.ai_overview or [],
        "isAiOverview": result.has_ai_overview,
        "isPeopleAlsoAsk": result.has_people_also_ask,
        "is_featured_snippet": bool(result.is_featured_snippet),
        "is_malicious": bool(result.is_malicious),
        "is_web_story": bool(result.is_web_story),
        "amp_version": bool(result.amp_version),

        # Content
        "highlighted": result.highlighted or [],
        "links": result.links or [],
        "faq": result.faq or [],
        "extended_snippet": result.extended_snippet,

        "top_rankers": result.top_rankers or [],
        "related_searches": result.related_searches or [],
        "people_also_ask": result.people_also_ask or [],
        "refinement_chips": result.refinement_chips or [],

        "featureCounts": {
            "paa": len(result.people_also_ask or []),
            "aiOverview": len(result.ai_overview or []),
            "relatedSearches": len(result.related_searches or []),
            "refinementChips": len(result.refinement_chips or []),
            "topRankers": len(result.top_rankers or []),
        },
        "createdAt": result.created_at,
        "status": "completed",
    }


def filter_for_role(result: Dict[str, Any], is_admin: bool) -> Dict[str, Any]:
    """Admins get every field; users get the basic tier only."""
    if is_admin:
        return result
    return {key: result.get(key) for key in USER_RESULT_FIELDS if key in result}


def history_to_dict(history: SearchHistory) -> Dict[str, Any]:
    return {
        "id": str(history.id),
        "domain": history.domain,
        "location": history.location,
        "location_code": history.location_code,
        "keywords": history.keywords or [],
        "keywordCount": history.keyword_count,
        "filters": history.filters,
        "taskIds": history.task_ids or [],
        "createdAt": history.created_at,
    }


def job_to_dict(job: Job, include_results: bool = False) -> Dict[str, Any]:
    data = {
        "id": str(job.id),
        "domain": job.domain,
        "keywords": job.keywords or [],
        "location": job.location,
        "location_code": job.location_code,
        "filters": job.filters,
        "status": job.status.value,
        "progress": job.progress,
        "error": job.error,
        "createdAt": job.created_at,
        "updatedAt": job.updated_at,
        "completedAt": job.completed_at,
    }
    if include_results:
        data["results"] = job.result_ids or []
    return data
