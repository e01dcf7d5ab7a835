"""
Bulk Rank-Check Jobs

A job covers many keywords for one domain and runs asynchronously:
1. create_job stores a pending job
2. process_job reuses cached rankings and submits the rest via task_post
3. the poller collects finished tasks (see tracking.poller)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.auth.models import User
from serptrack.database.models import DataForSeoTask, Job, JobStatus, RankingResult, TaskStatus
from serptrack.database.repository import as_uuid, create_search_history, find_cached_result
from serptrack.database.session import get_db_context
from serptrack.dataforseo.client import DataForSEOClient
from serptrack.dataforseo.task_post import submit_tracking_tasks
from serptrack.dataforseo.types import TaskSubmission
from serptrack.tracking.records import RankLookup, dedupe, ranking_to_dict
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)

TASK_DEPTH = 20
ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


class JobSubmissionError(Exception):
    """task_post rejected the job's keywords."""
    pass


# =============================================================================
# JOB CRUD
# =============================================================================

def create_job(db: Session, user: User, lookup: RankLookup) -> Job:
    job = Job(
        user_id=user.id,
        domain=lookup.domain,
        keywords=lookup.keywords,
        location=lookup.location,
        location_code=lookup.stored_location_code,
        language=lookup.filters["language"],
        device=lookup.filters["device"],
        os=lookup.filters["os"],
        status=JobStatus.PENDING,
        progress_total=len(lookup.keywords),
        progress_completed=0,
        progress_failed=0,
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(f"Created job {job.id} with {len(lookup.keywords)} keywords for {lookup.domain}")
    return job


def list_jobs(
    db: Session,
    user_id: UUID,
    status: Optional[str] = None,
    limit: int = 20,
    skip: int = 0,
) -> Tuple[List[Job], int]:
    """Newest jobs first; unknown status filters match nothing."""
    query = db.query(Job).filter(Job.user_id == user_id)
    if status:
        try:
            query = query.filter(Job.status == JobStatus(status))
        except ValueError:
            return [], 0

    total = query.count()
    jobs = query.order_by(Job.created_at.desc()).offset(skip).limit(limit).all()
    return jobs, total


def get_job(db: Session, user_id: UUID, job_id: UUID) -> Optional[Job]:
    return db.query(Job).filter(Job.id == job_id, Job.user_id == user_id).first()


def job_results(db: Session, job: Job) -> List[Dict[str, Any]]:
    """Ranking rows collected for a job, in completion order."""
    ids = [as_uuid(value) for value in job.result_ids or []]
    if not ids:
        return []
    rows = {row.id: row for row in db.query(RankingResult).filter(RankingResult.id.in_(ids)).all()}
    return [ranking_to_dict(rows[result_id]) for result_id in ids if result_id in rows]


def cancel_job(db: Session, user_id: UUID, job_id: UUID) -> Optional[Job]:
    """Cancel a pending or processing job; None when there is nothing to cancel."""
    job = (
        db.query(Job)
        .filter(Job.id == job_id, Job.user_id == user_id, Job.status.in_(ACTIVE_STATUSES))
        .first()
    )
    if job is None:
        return None

    job.status = JobStatus.CANCELLED
    job.updated_at = datetime.utcnow()
    db.commit()
    logger.info(f"Job {job_id} cancelled")
    return job


# =============================================================================
# PROCESSING
# =============================================================================

def _split_cached(db: Session, job: Job, keywords: List[str]) -> Tuple[List[str], List[str]]:
    """(ids of cached rankings, keywords that still need fetching)."""
    max_age = get_settings().RESULT_CACHE_DAYS
    cached_ids: List[str] = []
    to_fetch: List[str] = []

    for keyword in keywords:
        cached = find_cached_result(
            db,
            domain=job.domain,
            keyword=keyword,
            location_code=job.location_code,
            filters=job.filters,
            max_age_days=max_age,
        )
        if cached:
            cached_ids.append(str(cached.id))
        else:
            to_fetch.append(keyword)

    return cached_ids, to_fetch


async def process_job(job_id: UUID, client: Optional[DataForSEOClient] = None) -> None:
    """
    Submit a pending job's uncached keywords as DataForSEO tasks.

    Jobs that are not pending are left untouched. Any exception marks the
    job failed with the error message.
    """
    try:
        with get_db_context() as db:
            job = db.query(Job).filter(Job.id == job_id).first()
            if job is None:
                logger.error(f"Job {job_id} not found")
                return
            if job.status != JobStatus.PENDING:
                logger.info(f"Job {job_id} is already {job.status.value}")
                return

            job.status = JobStatus.PROCESSING
            keywords = dedupe(job.keywords or [])
            job.progress_total = len(keywords)
            db.commit()

            logger.info(f"Processing job {job_id}: {len(keywords)} unique keywords")

            history = create_search_history(
                db,
                user_id=job.user_id,
                domain=job.domain,
                location=job.location,
                location_code=job.location_code,
                keywords=keywords,
                filters=job.filters,
            )

            cached_ids, to_fetch = _split_cached(db, job, keywords)
            if cached_ids:
                job.progress_completed = len(cached_ids)
                job.result_ids = list(job.result_ids or []) + cached_ids
                logger.info(f"Job {job_id}: found {len(cached_ids)} cached results")

            if not to_fetch:
                job.status = JobStatus.COMPLETED
                job.completed_at = datetime.utcnow()
                logger.info(f"Job {job_id} completed (all from cache)")
                return

            db.commit()
            db.refresh(job)
            if job.status == JobStatus.CANCELLED:
                logger.info(f"Job {job_id} was cancelled, not submitting tasks")
                return

            submissions = [
                TaskSubmission(
                    keyword=keyword,
                    domain=job.domain,
                    location_code=job.location_code,
                    location_name=None if job.location_code else job.location,
                    language_code=job.language,
                    device=job.device,
                    os=job.os,
                    depth=TASK_DEPTH,
                )
                for keyword in to_fetch
            ]

            submitted = await submit_tracking_tasks(submissions, user_id=job.user_id, client=client)
            if not submitted.success:
                raise JobSubmissionError(submitted.error)

            task_ids = []
            for task in submitted.data:
                if not task.task_id:
                    continue
                db.add(DataForSeoTask(
                    task_id=task.task_id,
                    job_id=job.id,
                    keyword=task.keyword,
                    domain=job.domain,
                    location_code=job.location_code,
                    language=job.language,
                    device=job.device,
                    os=job.os,
                    status=TaskStatus.PENDING,
                ))
                task_ids.append(task.task_id)

            history.task_ids = task_ids
            logger.info(
                f"Job {job_id}: {len(cached_ids)} from cache, "
                f"{len(task_ids)} submitted to DataForSEO"
            )

    except Exception as e:
        logger.error(f"Error processing job {job_id}: {e}")
        _mark_failed(job_id, str(e))


def _mark_failed(job_id: UUID, error: str) -> None:
    try:
        with get_db_context() as db:
            job = db.query(Job).filter(Job.id == job_id).first()
            if job:
                job.status = JobStatus.FAILED
                job.error = error
                job.updated_at = datetime.utcnow()
    except Exception as e:
        logger.error(f"Failed to update job {job_id} status: {e}")


async def poll_and_process_jobs(client: Optional[DataForSEOClient] = None) -> Dict[str, Any]:
    """Process the oldest pending job, then collect ready tasks."""
    from serptrack.tracking.poller import poll_dataforseo_tasks

    with get_db_context() as db:
        job = (
            db.query(Job)
            .filter(Job.status == JobStatus.PENDING)
            .order_by(Job.created_at.asc())
            .first()
        )
        job_id = job.id if job else None

    if job_id:
        logger.info(f"Found pending job {job_id}, starting processing")
        await process_job(job_id, client=client)

    poll_summary = await poll_dataforseo_tasks(client=client)
    return {"processed_job": str(job_id) if job_id else None, "poll": poll_summary}
