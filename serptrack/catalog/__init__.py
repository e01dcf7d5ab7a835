"""
Catalog

Keyword lists, subscription plans and DataForSEO locations.
"""

from serptrack.catalog.keyword_lists import (
    DEFAULT_LISTS_PER_DOMAIN,
    KeywordListError,
    add_keywords,
    create_list,
    delete_list,
    get_list,
    get_lists,
    list_to_dict,
    normalize_domain,
    remove_keywords,
    update_keyword,
    update_list,
)
from serptrack.catalog.plans import (
    DEFAULT_PLANS,
    PlanSeedError,
    get_active_plans,
    plan_to_dict,
    seed_default_plans,
)
from serptrack.catalog.locations import (
    merge_locations,
    populate_locations,
    rank_locations,
    search_locations,
)

__all__ = [
    # Keyword lists
    "DEFAULT_LISTS_PER_DOMAIN",
    "KeywordListError",
    "add_keywords",
    "create_list",
    "delete_list",
    "get_list",
    "get_lists",
    "list_to_dict",
    "normalize_domain",
    "remove_keywords",
    "update_keyword",
    "update_list",
    # Plans
    "DEFAULT_PLANS",
    "PlanSeedError",
    "get_active_plans",
    "plan_to_dict",
    "seed_default_plans",
    # Locations
    "merge_locations",
    "populate_locations",
    "rank_locations",
    "search_locations",
]
