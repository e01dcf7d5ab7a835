"""
Task Get API

Collects results of tasks submitted through task_post:
- which tasks are ready
- single and batched result retrieval (advanced SERP format)
- polling helpers that wait for one or many tasks

Retrieval has no additional cost; it was paid at submission.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from serptrack.dataforseo.client import DataForSEOClient, get_dataforseo_client
from serptrack.dataforseo.types import APIResult

logger = logging.getLogger(__name__)

TASKS_READY_ENDPOINT = "/serp/google/organic/tasks_ready"
TASK_GET_ENDPOINT = "/serp/google/organic/task_get/advanced/{task_id}"

CHUNK_SIZE = 10
CHUNK_DELAY = 0.1  # seconds between chunks


async def get_tasks_ready(
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """IDs of tasks whose results can be collected."""
    try:
        client = client or get_dataforseo_client()
        response = await client.get(TASKS_READY_ENDPOINT, user_id=user_id)

        task_ids = [
            task["id"]
            for task in response.get("tasks") or []
            if task.get("result")
        ]
        return APIResult.ok(task_ids, 0)

    except Exception as e:
        logger.error(f"Get ready tasks error: {e}")
        return APIResult.fail(str(e) or "Failed to get ready tasks")


async def get_task_result(
    task_id: str,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Advanced SERP result of one task."""
    try:
        client = client or get_dataforseo_client()
        response = await client.get(TASK_GET_ENDPOINT.format(task_id=task_id), user_id=user_id)

        tasks = response.get("tasks") or []
        if tasks and tasks[0].get("result"):
            return APIResult.ok(tasks[0]["result"][0], 0)

        return APIResult.fail("No result found for task")

    except Exception as e:
        logger.error(f"Get task result error for {task_id}: {e}")
        return APIResult.fail(str(e) or "Failed to get task result")


async def get_batch_task_results(
    task_ids: List[str],
    chunk_size: int = CHUNK_SIZE,
    user_id: Optional[Any] = None,
    client: Optional[DataForSEOClient] = None,
    delay: float = CHUNK_DELAY,
) -> APIResult:
    """
    Fetch many task results, chunk_size concurrently at a time.

    Returns:
        APIResult with {task_id: result}. Fails only when nothing
        succeeded and at least one fetch errored.
    """
    results: Dict[str, Dict[str, Any]] = {}
    errors: List[str] = []

    for start in range(0, len(task_ids), chunk_size):
        chunk = task_ids[start:start + chunk_size]
        chunk_results = await asyncio.gather(
            *(get_task_result(task_id, user_id=user_id, client=client) for task_id in chunk)
        )

        for task_id, result in zip(chunk, chunk_results):
            if result.success:
                results[task_id] = result.data
            else:
                errors.append(f"{task_id}: {result.error}")

        if start + chunk_size < len(task_ids):
            await asyncio.sleep(delay)

    logger.debug(f"Fetched {len(results)} task results, {len(errors)} errors")

    if not results and errors:
        return APIResult.fail(f"All requests failed: {', '.join(errors)}")

    return APIResult.ok(results, 0)


async def wait_for_task_completion(
    task_id: str,
    max_wait_time: float = 300,
    poll_interval: float = 5,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Poll tasks_ready until the task appears, then fetch its result."""
    started = time.monotonic()

    while time.monotonic() - started < max_wait_time:
        ready = await get_tasks_ready(client=client)
        if ready.success and task_id in ready.data:
            return await get_task_result(task_id, client=client)

        await asyncio.sleep(poll_interval)

    return APIResult.fail("Task completion timeout")


async def wait_for_batch_task_completion(
    task_ids: List[str],
    max_wait_time: float = 600,
    poll_interval: float = 10,
    on_task_complete: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """
    Poll until every task completes or the wait times out.

    Results are returned for whatever finished; tasks still pending
    at the deadline are logged, not treated as failure.

    Args:
        on_task_complete: Called (sync or async) with task_id and result as each finishes
    """
    started = time.monotonic()
    results: Dict[str, Dict[str, Any]] = {}
    pending = set(task_ids)

    while pending and time.monotonic() - started < max_wait_time:
        ready = await get_tasks_ready(client=client)
        if ready.success:
            for task_id in [tid for tid in ready.data if tid in pending]:
                result = await get_task_result(task_id, client=client)
                if not result.success:
                    continue

                results[task_id] = result.data
                pending.discard(task_id)

                if on_task_complete:
                    outcome = on_task_complete(task_id, result.data)
                    if inspect.isawaitable(outcome):
                        await outcome

        if pending:
            await asyncio.sleep(poll_interval)

    if pending:
        logger.warning(f"{len(pending)} tasks did not complete within timeout")

    return APIResult.ok(results, 0)


async def check_task_status(
    task_id: str,
    client: Optional[DataForSEOClient] = None,
) -> APIResult:
    """Ready (20000) when listed by tasks_ready, otherwise processing (20100)."""
    ready = await get_tasks_ready(client=client)
    if ready.success and task_id in ready.data:
        return APIResult.ok({"task_id": task_id, "status": "ready", "status_code": 20000}, 0)

    return APIResult.ok({"task_id": task_id, "status": "processing", "status_code": 20100}, 0)
