"""
Rank Tracking

Synchronous checks (live endpoints), async jobs (task_post + poller)
and the read side of stored results.
"""

from serptrack.tracking.records import (
    LookupValidationError,
    RankLookup,
    build_lookup,
    filter_for_role,
    job_to_dict,
    ranking_to_dict,
)
from serptrack.tracking.regular import InsufficientTokensError, run_rank_check
from serptrack.tracking.jobs import (
    cancel_job,
    create_job,
    get_job,
    job_results,
    list_jobs,
    poll_and_process_jobs,
    process_job,
)
from serptrack.tracking.poller import poll_dataforseo_tasks
from serptrack.tracking.refresh import apply_serp_features, refresh_rankings
from serptrack.tracking.results import (
    get_history,
    get_history_results,
    get_task_serp,
    ranking_history,
    recent_searches,
    user_search_history,
)

__all__ = [
    "LookupValidationError",
    "RankLookup",
    "build_lookup",
    "filter_for_role",
    "job_to_dict",
    "ranking_to_dict",
    "InsufficientTokensError",
    "run_rank_check",
    "cancel_job",
    "create_job",
    "get_job",
    "job_results",
    "list_jobs",
    "poll_and_process_jobs",
    "process_job",
    "poll_dataforseo_tasks",
    "apply_serp_features",
    "refresh_rankings",
    "get_history",
    "get_history_results",
    "get_task_serp",
    "ranking_history",
    "recent_searches",
    "user_search_history",
]
