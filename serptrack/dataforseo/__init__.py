"""
DataForSEO Client Layer

Three API modes behind one client:
- live regular: fast, basic ranking data
- live advanced: full SERP with every feature block
- task post / task get: asynchronous bulk processing

Usage:
    from serptrack.dataforseo import search_domain_ranking_regular

    result = await search_domain_ranking_regular("example.com", "rank tracker")
    if result.success:
        print(result.data["rank"])
"""

from .client import (
    DataForSEOClient,
    DataForSEOError,
    RetryConfig,
    get_dataforseo_client,
    set_dataforseo_client,
)
from .types import (
    APIResult,
    LiveSERPParams,
    StopCrawlOnMatch,
    SubmittedTask,
    TaskPostParams,
    TaskSubmission,
    DEFAULT_LOCATION_CODE,
)
from .utils import (
    build_stop_crawl_on_match,
    calculate_estimated_cost,
    extract_basic_serp_data,
    extract_comprehensive_serp_data,
    extract_top_rankers,
    find_domain_ranking,
    format_domain,
    is_valid_language_code,
    is_valid_location_code,
    parse_error_message,
    strip_www,
)
from .live_regular import (
    batch_search_live_regular,
    fetch_live_regular,
    search_domain_ranking_regular,
)
from .live_advanced import (
    fetch_live_advanced,
    get_full_serp_analysis,
    search_domain_ranking_advanced,
)
from .task_post import (
    get_estimated_completion_time,
    submit_batch_tasks,
    submit_domain_ranking_tasks,
    submit_task,
    submit_tracking_tasks,
)
from .task_get import (
    check_task_status,
    get_batch_task_results,
    get_task_result,
    get_tasks_ready,
    wait_for_batch_task_completion,
    wait_for_task_completion,
)

__all__ = [
    # Client
    "DataForSEOClient",
    "DataForSEOError",
    "RetryConfig",
    "get_dataforseo_client",
    "set_dataforseo_client",
    # Types
    "APIResult",
    "LiveSERPParams",
    "StopCrawlOnMatch",
    "SubmittedTask",
    "TaskPostParams",
    "TaskSubmission",
    "DEFAULT_LOCATION_CODE",
    # Utils
    "build_stop_crawl_on_match",
    "calculate_estimated_cost",
    "extract_basic_serp_data",
    "extract_comprehensive_serp_data",
    "extract_top_rankers",
    "find_domain_ranking",
    "format_domain",
    "is_valid_language_code",
    "is_valid_location_code",
    "parse_error_message",
    "strip_www",
    # Live
    "batch_search_live_regular",
    "fetch_live_regular",
    "search_domain_ranking_regular",
    "fetch_live_advanced",
    "get_full_serp_analysis",
    "search_domain_ranking_advanced",
    # Tasks
    "get_estimated_completion_time",
    "submit_batch_tasks",
    "submit_domain_ranking_tasks",
    "submit_task",
    "submit_tracking_tasks",
    "check_task_status",
    "get_batch_task_results",
    "get_task_result",
    "get_tasks_ready",
    "wait_for_batch_task_completion",
    "wait_for_task_completion",
]
