"""
SERPTrack Database Layer

Usage:
    from serptrack.database import (
        # Session management
        init_db, get_db, get_db_context,

        # Models
        RankingResult, SearchHistory, Job, DataForSeoTask,

        # Repository
        record_credit_usage, find_cached_result,
    )

    init_db()
"""

from .models import (
    Base,
    JSONType,
    SearchHistory,
    RankingResult,
    MasterSERP,
    Job,
    DataForSeoTask,
    CreditUsage,
    Plan,
    KeywordList,
    Location,
    # Enums
    JobStatus,
    TaskStatus,
    TrackingFrequency,
)

from .session import (
    get_db,
    get_db_context,
    init_db,
    check_db_connection,
    configure_engine,
    create_db_engine,
    get_engine,
    get_db_info,
    transaction,
)

from .repository import (
    as_uuid,
    record_credit_usage,
    create_search_history,
    find_cached_result,
    create_ranking_result,
    get_results_by_task_ids,
    get_master_serps,
    save_master_serp,
)

__all__ = [
    # Models
    "Base",
    "JSONType",
    "SearchHistory",
    "RankingResult",
    "MasterSERP",
    "Job",
    "DataForSeoTask",
    "CreditUsage",
    "Plan",
    "KeywordList",
    "Location",
    # Enums
    "JobStatus",
    "TaskStatus",
    "TrackingFrequency",
    # Session
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
    "configure_engine",
    "create_db_engine",
    "get_engine",
    "get_db_info",
    "transaction",
    # Repository
    "as_uuid",
    "record_credit_usage",
    "create_search_history",
    "find_cached_result",
    "create_ranking_result",
    "get_results_by_task_ids",
    "get_master_serps",
    "save_master_serp",
]
