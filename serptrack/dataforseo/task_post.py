"""
Task Post API

Submits SERP tasks for asynchronous processing. Results are
collected later through the task_get module.
Cost: ~$0.0006 per task (standard priority).
"""

import logging
from typing import Any, Dict, List, Optional

from serptrack.dataforseo.client import DataForSEOClient, get_dataforseo_client
from serptrack.dataforseo.types import (
    APIResult,
    StopCrawlOnMatch,
    SubmittedTask,
    TaskPostParams,
    TaskSubmission,
    DEFAULT_LOCATION_CODE,
)
from serptrack.dataforseo.utils import build_stop_crawl_on_match, strip_www

logger = logging.getLogger(__name__)

ENDPOINT = "/serp/google/organic/task_post"
BATCH_SIZE = 100  # tasks per POST


def build_task_payload(params: TaskPostParams) -> Dict[str, Any]:
    """Request body for a single task."""
    payload: Dict[str, Any] = {
        "keyword": params.keyword,
        "language_code": params.language_code or "en",
        "device": params.device or "desktop",
        "os": params.os or "windows",
        "depth": params.depth or 20,
        "priority": params.priority or 1,
    }

    if params.location_name:
        payload["location_name"] = params.location_name
    elif params.location_code:
        payload["location_code"] = params.location_code
    else:
        payload["location_code"] = DEFAULT_LOCATION_CODE

    for optional in ("tag", "postback_url", "pingback_url"):
        value = getattr(params, optional)
        if value:
            payload[optional] = value

    if params.stop_crawl_on_match:
        payload["stop_crawl_on_match"] = [m.to_dict() for m in params.stop_crawl_on_match]

    return payload


async def submit_task(
    params: TaskPostParams,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Submit one task; data is a SubmittedTask."""
    try:
        client = client or get_dataforseo_client()
        response = await client.post(ENDPOINT, build_task_payload(params), user_id=user_id)

        tasks = response.get("tasks") or []
        if tasks and tasks[0].get("id"):
            task = tasks[0]
            submitted = SubmittedTask(
                task_id=task["id"],
                keyword=params.keyword,
                status_code=task.get("status_code"),
                cost=task.get("cost") or 0.0,
            )
            return APIResult.ok(submitted, response.get("cost"))

        return APIResult.fail("No task ID returned from API")

    except Exception as e:
        logger.error(f"Task Post API error for '{params.keyword}': {e}")
        return APIResult.fail(str(e) or "Failed to submit task")


async def submit_batch_tasks(
    tasks: List[TaskPostParams],
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """
    Submit many tasks, BATCH_SIZE per request.

    Response tasks are matched to submitted keywords by position.

    Returns:
        APIResult with a list of SubmittedTask and the summed cost
    """
    try:
        client = client or get_dataforseo_client()
        submitted: List[SubmittedTask] = []
        total_cost = 0.0

        for start in range(0, len(tasks), BATCH_SIZE):
            batch = tasks[start:start + BATCH_SIZE]
            payload = [build_task_payload(task) for task in batch]

            response = await client.post(ENDPOINT, payload, user_id=user_id)

            response_tasks = response.get("tasks") or []
            for index, task in enumerate(response_tasks[:len(batch)]):
                submitted.append(SubmittedTask(
                    task_id=task.get("id"),
                    keyword=batch[index].keyword,
                    status_code=task.get("status_code"),
                    cost=task.get("cost") or 0.0,
                ))
            if response_tasks and response.get("cost"):
                total_cost += response["cost"]

            logger.info(f"Submitted {len(response_tasks)} tasks (batch starting at {start})")

        if submitted:
            return APIResult.ok(submitted, total_cost)

        return APIResult.fail("No tasks returned from API")

    except Exception as e:
        logger.error(f"Batch Task Post API error: {e}")
        return APIResult.fail(str(e) or "Failed to submit batch tasks")


async def submit_domain_ranking_tasks(
    domain: str,
    keywords: List[str],
    location_code: Optional[int] = None,
    location_name: Optional[str] = None,
    language_code: Optional[str] = None,
    device: Optional[str] = None,
    os: Optional[str] = None,
    depth: Optional[int] = None,
    priority: Optional[int] = None,
    tag: Optional[str] = None,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """One task per keyword, each stopping once the domain is found."""
    stop_crawl = build_stop_crawl_on_match(domain)
    tasks = [
        TaskPostParams(
            keyword=keyword,
            location_code=location_code,
            location_name=location_name,
            language_code=language_code or "en",
            device=device or "desktop",
            os=os or "windows",
            depth=depth or 100,
            priority=priority or 1,
            tag=tag,
            stop_crawl_on_match=stop_crawl,
        )
        for keyword in keywords
    ]
    return await submit_batch_tasks(tasks, user_id=user_id, client=client)


def get_estimated_completion_time(priority: int, task_count: int) -> int:
    """Seconds until a batch is likely done (45s/task high priority, 150s standard)."""
    time_per_task = 45 if priority == 2 else 150
    return time_per_task * task_count


async def submit_tracking_tasks(
    submissions: List[TaskSubmission],
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Submit tracking tasks, each stopping at its own domain (www. stripped)."""
    tasks = [
        TaskPostParams(
            keyword=submission.keyword,
            location_code=submission.location_code,
            location_name=None if submission.location_code else submission.location_name,
            language_code=submission.language_code,
            device=submission.device,
            os=submission.os,
            depth=submission.depth or 20,
            stop_crawl_on_match=[StopCrawlOnMatch(match_value=strip_www(submission.domain))],
        )
        for submission in submissions
    ]
    return await submit_batch_tasks(tasks, user_id=user_id, client=client)
