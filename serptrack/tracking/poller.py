"""
DataForSEO Task Poller

Collects ready task_post results for jobs: stores a basic ranking row per
task, marks the task ready and advances the owning job's progress.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from serptrack.database.models import DataForSeoTask, Job, JobStatus, TaskStatus
from serptrack.database.repository import create_ranking_result
from serptrack.database.session import get_db_context
from serptrack.dataforseo.client import DataForSEOClient
from serptrack.dataforseo.extraction import extract_basic_result
from serptrack.dataforseo.task_get import get_batch_task_results, get_tasks_ready
from serptrack.tracking.jobs import TASK_DEPTH

logger = logging.getLogger(__name__)

OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.PROCESSING)


def store_task_result(db: Session, task: DataForSeoTask, serp: Dict[str, Any]) -> None:
    """Persist one finished task and update its job."""
    job = db.query(Job).filter(Job.id == task.job_id).first()
    basic = extract_basic_result(serp, task.domain)
    metrics = basic["metrics"]

    ranking = create_ranking_result(
        db,
        user_id=job.user_id if job else None,
        task_id=task.task_id,
        domain=task.domain,
        keyword=task.keyword,
        location=job.location if job else None,
        location_code=task.location_code,
        language=task.language,
        device=task.device,
        os=task.os,
        rank=basic["rank"],
        rank_group=basic["rank"],
        rank_absolute=basic["rank_absolute"],
        page=basic["page"],
        depth=TASK_DEPTH,
        url=basic["url"],
        title=basic["title"],
        description=basic["description"],
        top_rankers=basic["top_rankers"],
        se_results_count=metrics["se_results_count"],
        spell=metrics["spell"],
        refinement_chips=metrics["refinement_chips"],
    )

    task.status = TaskStatus.READY
    task.result = serp
    task.ranking_result_id = ranking.id
    task.completed_at = datetime.utcnow()

    if job is None:
        return

    job.progress_completed = (job.progress_completed or 0) + 1
    job.result_ids = list(job.result_ids or []) + [str(ranking.id)]
    job.updated_at = datetime.utcnow()

    if job.progress_completed >= job.progress_total and job.status == JobStatus.PROCESSING:
        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.utcnow()

    logger.info(f"Job {job.id}: {job.progress_completed}/{job.progress_total} completed")


def _mark_task_failed(db: Session, task: DataForSeoTask, error: str) -> None:
    task.status = TaskStatus.FAILED
    task.error = error

    job = db.query(Job).filter(Job.id == task.job_id).first()
    if job:
        job.progress_failed = (job.progress_failed or 0) + 1


async def poll_dataforseo_tasks(client: Optional[DataForSEOClient] = None) -> Dict[str, int]:
    """
    Process every ready task we are still waiting on.

    Returns:
        {ready, matched, processed, failed}
    """
    summary = {"ready": 0, "matched": 0, "processed": 0, "failed": 0}

    ready = await get_tasks_ready(client=client)
    if not ready.success:
        logger.error(f"Error polling DataForSEO tasks: {ready.error}")
        return summary

    summary["ready"] = len(ready.data)
    if not ready.data:
        logger.info("No ready tasks from DataForSEO")
        return summary

    with get_db_context() as db:
        tasks = (
            db.query(DataForSeoTask)
            .filter(
                DataForSeoTask.task_id.in_(ready.data),
                DataForSeoTask.status.in_(OPEN_TASK_STATUSES),
            )
            .all()
        )
        summary["matched"] = len(tasks)
        if not tasks:
            logger.info("No pending tasks found in database")
            return summary

        logger.info(f"Processing {len(tasks)} tasks")
        fetched = await get_batch_task_results([task.task_id for task in tasks], client=client)
        results = fetched.data if fetched.success else {}
        if not fetched.success:
            logger.error(f"Batch fetch failed: {fetched.error}")

        for task in tasks:
            serp = results.get(task.task_id)
            if serp is None:
                logger.info(f"No result found for task {task.task_id}")
                continue

            try:
                store_task_result(db, task, serp)
                db.commit()
                summary["processed"] += 1
            except Exception as e:
                db.rollback()
                logger.error(f"Error processing task {task.task_id}: {e}")
                _mark_task_failed(db, task, str(e))
                db.commit()
                summary["failed"] += 1

    logger.info(f"Polling complete: {summary}")
    return summary
