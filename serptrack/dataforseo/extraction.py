"""
SERP Extraction

Turns a task_get/live result into the records we store:
- basic tier: the tracked domain's rank, top 3 competitors, headline metrics
- comprehensive tier: every organic result plus AI Overview, People Also Ask,
  related searches, refinement chips, keyword info and feature counts
- master SERP rank: the tracked domain's position inside a shared raw SERP
"""

from typing import Any, Dict, List, Optional

from serptrack.dataforseo.utils import strip_www


EMPTY_RANK = {
    "rank": None,
    "rank_absolute": None,
    "page": None,
    "url": None,
    "title": None,
    "description": None,
}


def _organic(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [item for item in items or [] if item.get("type") == "organic"]


def item_types(items: List[Dict[str, Any]]) -> List[str]:
    """Unique item types in SERP order."""
    seen: List[str] = []
    for item in items or []:
        item_type = item.get("type")
        if item_type and item_type not in seen:
            seen.append(item_type)
    return seen


# =============================================================================
# BASIC TIER
# =============================================================================

def extract_rank(item: Dict[str, Any]) -> Dict[str, Any]:
    """Rank fields of a matched organic item."""
    return {
        "rank": item.get("rank_group") or None,
        "rank_absolute": item.get("rank_absolute") or item.get("rank_group") or None,
        "page": item.get("page") or 1,
        "url": item.get("url") or None,
        "title": item.get("title") or None,
        "description": item.get("description") or None,
    }


def find_tracked_item(
    items: List[Dict[str, Any]],
    domain: str,
    bidirectional: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    First organic item belonging to the tracked domain.

    Matches on equality or when the item's domain contains the tracked one.
    With ``bidirectional`` the tracked domain may also contain the item's
    domain (e.g. tracking ``blog.example.com`` matches ``example.com``).
    """
    clean = strip_www(domain)
    if not clean:
        return None

    for item in _organic(items):
        if not item.get("domain"):
            continue
        item_domain = strip_www(item["domain"])
        if item_domain == clean or clean in item_domain:
            return item
        if bidirectional and item_domain and item_domain in clean:
            return item
    return None


def extract_top_three(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "rank": item.get("rank_group"),
            "domain": item.get("domain"),
            "url": item.get("url"),
            "title": item.get("title"),
            "description": item.get("description"),
        }
        for item in _organic(items)[:3]
    ]


def refinement_chip_titles(serp: Dict[str, Any]) -> List[str]:
    chips = serp.get("refinement_chips") or {}
    if not isinstance(chips, dict):
        return []
    return [chip.get("title") for chip in chips.get("items") or [] if chip.get("title")]


def extract_basic_result(serp: Dict[str, Any], domain: str) -> Dict[str, Any]:
    """
    Basic ranking record for a domain.

    Returns:
        Rank fields (all None when the domain is absent), top_rankers
        and metrics {se_results_count, spell, refinement_chips}
    """
    items = serp.get("items") or []
    tracked = find_tracked_item(items, domain)

    record = dict(EMPTY_RANK)
    if tracked:
        record.update(extract_rank(tracked))

    record["top_rankers"] = extract_top_three(items)
    record["metrics"] = {
        "se_results_count": serp.get("se_results_count"),
        "spell": serp.get("spell"),
        "refinement_chips": refinement_chip_titles(serp),
    }
    record["found"] = tracked is not None
    return record


# =============================================================================
# COMPREHENSIVE TIER
# =============================================================================

def extract_all_organic(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "rank": item.get("rank_group"),
            "rank_absolute": item.get("rank_absolute"),
            "page": item.get("page"),
            "domain": item.get("domain"),
            "url": item.get("url"),
            "title": item.get("title"),
            "description": item.get("description"),
            "breadcrumb": item.get("breadcrumb"),
            "etv": item.get("etv"),
            "is_featured_snippet": bool(item.get("is_featured_snippet")),
            "is_malicious": bool(item.get("is_malicious")),
            "is_web_story": bool(item.get("is_web_story")),
            "amp_version": bool(item.get("amp_version")),
        }
        for item in _organic(items)
    ]


def extract_ai_overview(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    blocks = []
    for item in items or []:
        if item.get("type") != "ai_overview":
            continue
        blocks.append({
            "type": "ai_overview",
            "asynchronous_ai_overview": item.get("asynchronous_ai_overview"),
            "items": [
                {
                    "title": entry.get("title"),
                    "url": entry.get("url"),
                    "domain": entry.get("domain"),
                    "description": entry.get("description"),
                }
                for entry in item.get("items") or []
            ],
            "references": [
                {
                    "title": ref.get("title"),
                    "url": ref.get("url"),
                    "domain": ref.get("domain"),
                    "source": ref.get("source"),
                }
                for ref in item.get("references") or []
            ],
        })
    return blocks


def extract_people_also_ask(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    questions = []
    for item in items or []:
        if item.get("type") != "people_also_ask":
            continue
        for question in item.get("items") or []:
            questions.append({
                "type": question.get("type"),
                "title": question.get("title"),
                "expanded_element": question.get("expanded_element") or [],
            })
    return questions


def extract_related_searches(items: List[Dict[str, Any]]) -> List[str]:
    searches = []
    for item in items or []:
        if item.get("type") == "related_searches":
            searches.extend(entry.get("title") for entry in item.get("items") or [])
    return searches


def ai_overview_domains(ai_overview: List[Dict[str, Any]]) -> List[str]:
    """Domains cited by AI Overview blocks (items and references)."""
    domains = []
    for block in ai_overview or []:
        for entry in (block.get("items") or []) + (block.get("references") or []):
            domain = entry.get("domain")
            if domain and domain not in domains:
                domains.append(domain)
    return domains


def extract_comprehensive_result(serp: Dict[str, Any], domain: str) -> Dict[str, Any]:
    """
    Everything we store for an admin-grade (comprehensive) ranking check.

    The returned dict maps directly onto RankingResult columns, plus
    ``feature_counts`` for the response payload.
    """
    items = serp.get("items") or []
    tracked = find_tracked_item(items, domain, bidirectional=True) or {}
    types = item_types(items)

    top_rankers = extract_all_organic(items)
    ai_overview = extract_ai_overview(items)
    people_also_ask = extract_people_also_ask(items)
    related_searches = extract_related_searches(items)
    chips = refinement_chip_titles(serp)
    keyword_info = serp.get("keyword_info") or {}
    faq = tracked.get("faq") or {}

    return {
        "keyword": serp.get("keyword"),

        # Tracked domain
        "rank": tracked.get("rank_group") or None,
        "rank_group": tracked.get("rank_group") or None,
        "rank_absolute": tracked.get("rank_absolute") or None,
        "position": tracked.get("position") or None,
        "page": tracked.get("page") or None,
        "url": tracked.get("url") or None,
        "title": tracked.get("title") or None,
        "description": tracked.get("description") or None,
        "breadcrumb": tracked.get("breadcrumb") or None,
        "etv": tracked.get("etv") or None,
        "xpath": tracked.get("xpath") or None,
        "is_featured_snippet": bool(tracked.get("is_featured_snippet")),
        "is_malicious": bool(tracked.get("is_malicious")),
        "is_web_story": bool(tracked.get("is_web_story")),
        "amp_version": bool(tracked.get("amp_version")),
        "highlighted": tracked.get("highlighted") or [],
        "links": tracked.get("links") or [],
        "faq": faq.get("items") or [] if isinstance(faq, dict) else [],
        "extended_snippet": tracked.get("extended_snippet") or None,

        # Keyword metrics
        "search_volume": keyword_info.get("search_volume"),
        "cpc": keyword_info.get("cpc"),
        "competition": keyword_info.get("competition"),

        # SERP metadata
        "se_results_count": serp.get("se_results_count") or 0,
        "items_count": serp.get("items_count") or 0,
        "item_types": types,
        "serp_item_types": types,
        "check_url": serp.get("check_url") or None,

        # SERP features
        "top_rankers": top_rankers,
        "ai_overview": ai_overview,
        "people_also_ask": people_also_ask,
        "related_searches": related_searches,
        "refinement_chips": chips,
        "is_ai_overview": "ai_overview" in types,
        "is_people_also_ask": "people_also_ask" in types,

        "feature_counts": {
            "paa": len(people_also_ask),
            "aiOverview": len(ai_overview),
            "relatedSearches": len(related_searches),
            "refinementChips": len(chips),
            "topRankers": len(top_rankers),
        },
    }


# =============================================================================
# MASTER SERP
# =============================================================================

def master_serp_ranks(serp: Dict[str, Any], domain: str) -> Optional[Dict[str, Any]]:
    """Rank of the domain inside a raw SERP (lower-cased containment)."""
    clean = strip_www(domain)
    for item in _organic(serp.get("items") or []):
        if item.get("domain") and clean in item["domain"].lower():
            return {
                "rank_group": item.get("rank_group"),
                "rank_absolute": item.get("rank_absolute"),
                "position": item.get("position"),
                "url": item.get("url"),
            }
    return None


def serp_feature_flags(serp: Dict[str, Any]) -> Dict[str, bool]:
    types = item_types(serp.get("items") or [])
    return {
        "is_ai_overview": "ai_overview" in types,
        "is_people_also_ask": "people_also_ask" in types,
    }
