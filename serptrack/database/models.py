"""
SQLAlchemy Models for SERPTrack

Design Principles:
1. Store raw SERP responses once (master_serps), shared across users
2. Normalize the per-user ranking rows analytics read from
3. Track every async DataForSEO task until it is collected
4. Record credit usage for billing and audit

Column types are portable (Uuid, JSON with a JSONB variant) so the same
models run on PostgreSQL in production and SQLite in development.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, JSON, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================

class JobStatus(enum.Enum):
    """Lifecycle of a bulk rank-check job"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(enum.Enum):
    """Lifecycle of a single DataForSEO task"""
    PENDING = "pending"          # Submitted, not yet ready
    PROCESSING = "processing"
    READY = "ready"              # Result collected
    FAILED = "failed"


class TrackingFrequency(enum.Enum):
    """How often a keyword list is re-checked"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MANUAL = "manual"


# =============================================================================
# SEARCHES & RESULTS
# =============================================================================

class SearchHistory(Base):
    """One rank-check request: a domain, a location and a set of keywords"""
    __tablename__ = "search_history"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    domain = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    location_code = Column(Integer, nullable=False, default=0)
    keywords = Column(JSONType, default=list)
    keyword_count = Column(Integer, default=0)

    # Filters
    language = Column(String(10), default="en")
    device = Column(String(20), default="desktop")
    os = Column(String(20), default="windows")

    # DataForSEO task ids submitted for this search
    task_ids = Column(JSONType, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_history_user_created", "user_id", "created_at"),
        Index("idx_history_user_domain", "user_id", "domain", "created_at"),
        Index("idx_history_domain_created", "domain", "created_at"),
    )

    @property
    def filters(self) -> dict:
        return {"language": self.language, "device": self.device, "os": self.os}


class RankingResult(Base):
    """
    Where a domain ranked for a keyword at one point in time.

    Basic checks fill rank/url/title/description and the top three
    competitors; comprehensive checks also fill the SERP feature columns.
    """
    __tablename__ = "ranking_results"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    task_id = Column(String(100))

    # Search parameters
    domain = Column(String(255), nullable=False)
    keyword = Column(String(500), nullable=False)
    location = Column(String(255))
    location_code = Column(Integer, default=0)
    language = Column(String(10), default="en")
    device = Column(String(20), default="desktop")
    os = Column(String(20), default="windows")

    # Keyword metrics
    search_volume = Column(Integer)
    cpc = Column(Float)
    competition = Column(Float)

    # Domain ranking
    rank = Column(Integer)
    rank_group = Column(Integer)
    rank_absolute = Column(Integer)
    position = Column(String(20))
    page = Column(Integer)
    depth = Column(Integer)
    xpath = Column(Text)
    url = Column(Text)
    title = Column(Text)
    description = Column(Text)
    breadcrumb = Column(Text)
    domain_name = Column(String(255))
    relative_url = Column(Text)
    etv = Column(Float)
    impressions_etv = Column(Float)
    estimated_paid_traffic_cost = Column(Float)

    # Result flags
    is_featured_snippet = Column(Boolean, default=False)
    is_malicious = Column(Boolean, default=False)
    is_web_story = Column(Boolean, default=False)
    amp_version = Column(Boolean, default=False)

    # Rich snippet content
    rating = Column(JSONType)
    highlighted = Column(JSONType, default=list)
    links = Column(JSONType, default=list)
    faq = Column(JSONType, default=list)
    extended_snippet = Column(Text)
    images = Column(JSONType, default=list)

    # Competitors
    top_domains = Column(JSONType, default=list)
    top_rankers = Column(JSONType, default=list)

    # SERP metadata
    check_url = Column(Text)
    se_results_count = Column(Float, default=0)
    items_count = Column(Integer, default=0)
    item_types = Column(JSONType, default=list)
    serp_item_types = Column(JSONType, default=list)
    spell = Column(JSONType)

    # SERP features
    ai_overview = Column(JSONType, default=list)
    refinement_chips = Column(JSONType, default=list)
    related_searches = Column(JSONType, default=list)
    people_also_ask = Column(JSONType, default=list)
    is_ai_overview = Column(Boolean, default=False)
    is_people_also_ask = Column(Boolean, default=False)
    search_intent = Column(JSONType)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index(
            "idx_ranking_lookup",
            "domain", "keyword", "location_code", "language", "device", "os",
        ),
        Index("idx_ranking_user_created", "user_id", "created_at"),
        Index("idx_ranking_task", "task_id"),
    )

    @property
    def has_ai_overview(self) -> bool:
        return bool(self.is_ai_overview) or "ai_overview" in (self.item_types or [])

    @property
    def has_people_also_ask(self) -> bool:
        return bool(self.is_people_also_ask) or "people_also_ask" in (self.item_types or [])

    def __repr__(self):
        return f"<RankingResult {self.domain} '{self.keyword}' rank={self.rank}>"


class MasterSERP(Base):
    """Raw task_get result, stored once per DataForSEO task"""
    __tablename__ = "master_serps"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(String(100), unique=True, nullable=False)
    data = Column(JSONType, nullable=False)

    domain = Column(String(255))     # Domain tracked when the SERP was stored
    keyword = Column(String(500))
    ranks = Column(JSONType)         # {rank_group, rank_absolute, position, url}
    is_ai_overview = Column(Boolean, default=False)
    is_people_also_ask = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_master_domain_keyword", "domain", "keyword", "created_at"),
        Index("idx_master_features", "is_ai_overview", "is_people_also_ask"),
    )


# =============================================================================
# ASYNC JOBS
# =============================================================================

class Job(Base):
    """Bulk rank check processed through task_post/task_get"""
    __tablename__ = "jobs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    domain = Column(String(255), nullable=False)
    keywords = Column(JSONType, default=list)
    location = Column(String(255), nullable=False)
    location_code = Column(Integer, nullable=False, default=0)

    # Filters
    language = Column(String(10), default="en")
    device = Column(String(20), default="desktop")
    os = Column(String(20), default="windows")

    status = Column(Enum(JobStatus), default=JobStatus.PENDING, nullable=False)

    # Progress
    progress_total = Column(Integer, nullable=False, default=0)
    progress_completed = Column(Integer, default=0)
    progress_failed = Column(Integer, default=0)

    result_ids = Column(JSONType, default=list)  # RankingResult ids
    error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime)

    tasks = relationship("DataForSeoTask", back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_job_user_status", "user_id", "status", "created_at"),
        Index("idx_job_status_created", "status", "created_at"),
    )

    @property
    def filters(self) -> dict:
        return {"language": self.language, "device": self.device, "os": self.os}

    @property
    def progress(self) -> dict:
        return {
            "total": self.progress_total or 0,
            "completed": self.progress_completed or 0,
            "failed": self.progress_failed or 0,
        }

    def __repr__(self):
        return f"<Job {self.id} {self.domain} ({self.status.value})>"


class DataForSeoTask(Base):
    """One submitted DataForSEO task belonging to a job"""
    __tablename__ = "dataforseo_tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(String(100), unique=True, nullable=False)
    job_id = Column(Uuid, ForeignKey("jobs.id"), nullable=False)

    keyword = Column(String(500), nullable=False)
    domain = Column(String(255), nullable=False)
    location_code = Column(Integer, nullable=False, default=0)

    # Filters
    language = Column(String(10))
    device = Column(String(20))
    os = Column(String(20))

    status = Column(Enum(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    result = Column(JSONType)
    ranking_result_id = Column(Uuid, ForeignKey("ranking_results.id"))
    error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)

    job = relationship("Job", back_populates="tasks")

    __table_args__ = (
        Index("idx_task_job_status", "job_id", "status"),
        Index("idx_task_status_created", "status", "created_at"),
    )


# =============================================================================
# BILLING & ACCOUNT
# =============================================================================

class CreditUsage(Base):
    """DataForSEO spend (and admin token adjustments) per user"""
    __tablename__ = "credit_usage"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    api_endpoint = Column(String(255), nullable=False)
    credits_used = Column(Float, nullable=False)
    request_params = Column(JSONType)
    response_status = Column(Integer)
    timestamp = Column(DateTime, default=datetime.utcnow)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_credit_user_time", "user_id", "timestamp"),
        Index("idx_credit_endpoint_time", "api_endpoint", "timestamp"),
    )


class Plan(Base):
    """Subscription plan with usage limits and feature flags"""
    __tablename__ = "plans"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=False)

    price_monthly = Column(Float, default=0)
    price_yearly = Column(Float, default=0)
    currency = Column(String(10), default="USD")

    limits = Column(JSONType, default=dict)     # -1 = unlimited
    features = Column(JSONType, default=dict)

    is_active = Column(Boolean, default=True)
    is_default = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0)
    color = Column(String(20), default="#6366f1")
    badge = Column(String(50))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class KeywordList(Base):
    """Saved set of keywords tracked for one domain"""
    __tablename__ = "keyword_lists"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    name = Column(String(100), nullable=False)
    domain = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False, default="United States")
    location_code = Column(Integer)
    language = Column(String(10), nullable=False, default="en")
    language_name = Column(String(50), default="English")

    # [{id, keyword, added_at, last_checked_at, latest_rank, best_rank, notes}]
    keywords = Column(JSONType, default=list)

    is_active = Column(Boolean, default=True)
    auto_track = Column(Boolean, default=False)
    tracking_frequency = Column(
        Enum(TrackingFrequency), default=TrackingFrequency.MANUAL, nullable=False
    )
    last_tracked_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_keyword_list_user_domain", "user_id", "domain"),
        Index("idx_keyword_list_user_active", "user_id", "is_active"),
    )

    @property
    def keyword_count(self) -> int:
        return len(self.keywords or [])


class Location(Base):
    """DataForSEO location with its available languages"""
    __tablename__ = "locations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    location_code = Column(Integer, unique=True, nullable=False)
    location_name = Column(String(255), nullable=False)
    location_code_parent = Column(Integer)
    country_iso_code = Column(String(10), nullable=False)
    location_type = Column(String(50), nullable=False)
    available_languages = Column(JSONType, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_location_name", "location_name"),
        Index("idx_location_country", "country_iso_code"),
    )
