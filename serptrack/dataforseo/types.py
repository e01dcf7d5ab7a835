"""
DataForSEO Request and Result Types

Plain dataclasses for the request payloads we send and the
uniform result wrapper returned by every API mode.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


DEFAULT_LOCATION_CODE = 2840  # United States


@dataclass
class APIResult:
    """
    Outcome of a DataForSEO operation.

    Successful calls carry ``data`` and ``cost``; failed calls carry
    ``error`` and an optional ``error_code`` instead of raising.
    """
    success: bool
    data: Any = None
    cost: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any, cost: float = 0.0) -> "APIResult":
        return cls(success=True, data=data, cost=cost or 0.0)

    @classmethod
    def fail(cls, error: str, error_code: Optional[str] = None) -> "APIResult":
        return cls(success=False, error=error, error_code=error_code)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data, "cost": self.cost}
        return {"success": False, "error": self.error, "error_code": self.error_code}


@dataclass
class StopCrawlOnMatch:
    """Stop crawling once a result matches this target."""
    match_value: str
    match_type: str = "with_subdomains"  # or "exact_match"

    def to_dict(self) -> Dict[str, str]:
        return {"match_value": self.match_value, "match_type": self.match_type}


@dataclass
class LiveSERPParams:
    """Parameters for live regular/advanced SERP requests."""
    keyword: str
    location_code: Optional[int] = None
    location_name: Optional[str] = None
    language_code: Optional[str] = None
    language_name: Optional[str] = None
    device: Optional[str] = None
    os: Optional[str] = None
    depth: Optional[int] = None
    max_crawl_pages: Optional[int] = None
    search_param: Optional[str] = None
    calculate_rectangles: Optional[bool] = None
    browser_screen_width: Optional[int] = None
    browser_screen_height: Optional[int] = None
    browser_screen_resolution_ratio: Optional[float] = None
    stop_crawl_on_match: List[StopCrawlOnMatch] = field(default_factory=list)


@dataclass
class TaskPostParams:
    """Parameters for an asynchronous task_post request."""
    keyword: str
    location_code: Optional[int] = None
    location_name: Optional[str] = None
    language_code: Optional[str] = None
    language_name: Optional[str] = None
    device: Optional[str] = None
    os: Optional[str] = None
    depth: Optional[int] = None
    priority: Optional[int] = None  # 1 = standard, 2 = high
    tag: Optional[str] = None
    postback_url: Optional[str] = None
    pingback_url: Optional[str] = None
    stop_crawl_on_match: List[StopCrawlOnMatch] = field(default_factory=list)


@dataclass
class SubmittedTask:
    """A task accepted by task_post."""
    task_id: str
    keyword: str
    status_code: Optional[int] = None
    cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "keyword": self.keyword,
            "status_code": self.status_code,
            "cost": self.cost,
        }


@dataclass
class TaskSubmission:
    """A keyword to track for a domain via task_post."""
    keyword: str
    domain: str
    location_code: int = DEFAULT_LOCATION_CODE
    location_name: Optional[str] = None  # used when location_code is 0
    language_code: str = "en"
    device: str = "desktop"
    os: str = "windows"
    depth: Optional[int] = None
