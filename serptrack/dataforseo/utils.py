"""
SERP Item Helpers

Extraction of ranking data from DataForSEO SERP items in two tiers:
- basic: rank, url, title, description (regular users)
- comprehensive: everything DataForSEO reports about the result (admins)

Plus domain formatting, cost estimation and validation helpers.
"""

import math
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from serptrack.dataforseo.types import StopCrawlOnMatch


ERROR_MESSAGES = {
    40101: "Authentication failed. Please check your API credentials.",
    40102: "Insufficient funds. Please add credits to your account.",
    40103: "Invalid request parameters.",
    40401: "Resource not found.",
    50001: "Internal server error. Please try again later.",
}

# USD per task
COST_LIVE_REGULAR = 0.0006
COST_LIVE_ADVANCED = 0.002
COST_TASK_STANDARD = 0.0006
COST_TASK_HIGH_PRIORITY = 0.0012

_SCHEME_WWW = re.compile(r"^(https?://)?(www\.)?", re.IGNORECASE)
_LANGUAGE_CODE = re.compile(r"^[a-z]{2}$")


def extract_basic_serp_data(item: Dict[str, Any]) -> Dict[str, Any]:
    """Rank, URL, title and description of a SERP item."""
    return {
        "rank": item.get("rank_group") or None,
        "url": item.get("url") or None,
        "title": item.get("title") or None,
        "description": item.get("description") or None,
    }


def extract_comprehensive_serp_data(
    item: Dict[str, Any],
    check_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Full ranking record for a SERP item.

    Args:
        item: Organic SERP item
        check_url: Google URL the SERP was fetched from

    Returns:
        Basic fields plus positional, traffic, snippet and rich-result data
    """
    data = extract_basic_serp_data(item)

    relative_url = None
    if item.get("url"):
        try:
            relative_url = urlparse(item["url"]).path or None
        except ValueError:
            relative_url = None

    faq = item.get("faq") or {}

    data.update({
        "rank_absolute": item.get("rank_absolute") or None,
        "position": item.get("position") or None,
        "xpath": item.get("xpath") or None,
        "domain_name": item.get("domain") or None,
        "relative_url": relative_url,
        "etv": item.get("etv") or None,
        "impressions_etv": item.get("impressions_etv") or None,
        "estimated_paid_traffic_cost": item.get("estimated_paid_traffic_cost") or None,
        "is_featured_snippet": bool(item.get("is_featured_snippet")),
        "is_malicious": bool(item.get("is_malicious")),
        "is_web_story": bool(item.get("is_web_story")),
        "amp_version": bool(item.get("amp_version")),
        "rating": item.get("rating"),
        "highlighted": item.get("highlighted") or [],
        "extended_snippet": item.get("extended_snippet") or None,
        "check_url": check_url,
        "links": item.get("links"),
        "faq": faq.get("items") if isinstance(faq, dict) else None,
        "images": item.get("images"),
    })
    return data


def format_domain(domain: str) -> str:
    """Strip scheme, www. and trailing slash."""
    return _SCHEME_WWW.sub("", domain).rstrip("/")


def build_stop_crawl_on_match(
    domain: str,
    match_type: str = "with_subdomains",
) -> List[StopCrawlOnMatch]:
    """Stop-crawl rule targeting a domain."""
    return [StopCrawlOnMatch(match_value=format_domain(domain), match_type=match_type)]


def calculate_estimated_cost(
    api_type: str,
    depth: int = 20,
    priority: int = 1,
    task_count: int = 1,
) -> float:
    """
    Estimate the USD cost of a request.

    task_post is billed per 100 results, so depths above 100 multiply the base price.
    """
    if api_type == "live_regular":
        return COST_LIVE_REGULAR * task_count
    if api_type == "live_advanced":
        return COST_LIVE_ADVANCED * task_count
    if api_type == "task_post":
        base = COST_TASK_HIGH_PRIORITY if priority == 2 else COST_TASK_STANDARD
        multiplier = math.ceil(depth / 100) if depth > 100 else 1
        return base * multiplier * task_count
    return 0.0


def find_domain_ranking(items: List[Dict[str, Any]], domain: str) -> Optional[Dict[str, Any]]:
    """First organic item belonging to the domain."""
    target = format_domain(domain)
    for item in items or []:
        if item.get("type") != "organic" or not item.get("domain"):
            continue
        item_domain = format_domain(item["domain"])
        if item_domain == target or target in item_domain:
            return item
    return None


def extract_top_rankers(items: List[Dict[str, Any]], count: int = 3) -> List[Dict[str, Any]]:
    """Rank, domain, url, title and description of the first ``count`` organic items."""
    organic = [item for item in items or [] if item.get("type") == "organic"][:count]
    return [
        {
            "rank": item.get("rank_group"),
            "domain": item.get("domain"),
            "url": item.get("url"),
            "title": item.get("title"),
            "description": item.get("description") or None,
        }
        for item in organic
    ]


def is_valid_location_code(code: Any) -> bool:
    return isinstance(code, int) and not isinstance(code, bool) and code > 0


def is_valid_language_code(code: Any) -> bool:
    return isinstance(code, str) and bool(_LANGUAGE_CODE.match(code))


def parse_error_message(status_code: Optional[int], status_message: Optional[str] = None) -> str:
    """User-facing message for a DataForSEO status code."""
    return ERROR_MESSAGES.get(status_code) or status_message or "An unknown error occurred"


def strip_www(domain: str) -> str:
    """Lower-cased domain without a leading www."""
    return re.sub(r"^www\.", "", (domain or "").strip().lower())
