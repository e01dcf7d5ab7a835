"""
Bulk Job API

Endpoints:
- POST /api/jobs - Create a job and process it in the background
- GET /api/jobs - List the current user's jobs
- GET /api/jobs/{job_id} - Job status with collected results
- DELETE /api/jobs/{job_id} - Cancel a pending or processing job
- GET /api/jobs/process - Trigger processing of the oldest pending job (cron)
- GET /api/dataforseo/poll - Trigger collection of finished tasks (cron)
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from serptrack.auth.dependencies import get_current_user
from serptrack.auth.models import User
from serptrack.database.session import get_db
from serptrack.tracking import (
    cancel_job,
    create_job,
    get_job,
    job_results,
    job_to_dict,
    list_jobs,
    poll_and_process_jobs,
    poll_dataforseo_tasks,
    process_job,
)

from api.check_rank import RankCheckRequest, to_lookup

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Jobs"])


async def _run_jobs_loop() -> None:
    try:
        summary = await poll_and_process_jobs()
        logger.info(f"Job loop finished: {summary}")
    except Exception as e:
        logger.error(f"Error in job processing loop: {e}")


async def _run_poll_loop() -> None:
    try:
        summary = await poll_dataforseo_tasks()
        logger.info(f"Task poll finished: {summary}")
    except Exception as e:
        logger.error(f"Error polling DataForSEO tasks: {e}")


# =============================================================================
# TRIGGERS
# =============================================================================

@router.get("/jobs/process")
async def trigger_job_processing(background_tasks: BackgroundTasks):
    """Process the oldest pending job, then poll. Meant for a scheduler."""
    background_tasks.add_task(_run_jobs_loop)
    return {"success": True, "message": "Job processing triggered"}


@router.get("/dataforseo/poll")
async def trigger_task_polling(background_tasks: BackgroundTasks):
    background_tasks.add_task(_run_poll_loop)
    return {"success": True, "message": "DataForSEO task polling triggered"}


# =============================================================================
# JOBS
# =============================================================================

@router.post("/jobs")
async def create_rank_job(
    request: RankCheckRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a bulk rank-check job.

    The job is processed after the response is sent; poll
    GET /api/jobs/{job_id} for progress.
    """
    lookup = to_lookup(request)
    job = create_job(db, user, lookup)
    background_tasks.add_task(process_job, job.id)

    return {
        "success": True,
        "jobId": str(job.id),
        "message": f"Job created with {len(lookup.keywords)} keywords. Use the job ID to poll for status.",
    }


@router.get("/jobs")
async def list_rank_jobs(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    jobs, total = list_jobs(db, user.id, status=status_filter, limit=limit, skip=skip)
    return {
        "success": True,
        "jobs": [job_to_dict(job) for job in jobs],
        "pagination": {
            "total": total,
            "limit": limit,
            "skip": skip,
            "hasMore": skip + len(jobs) < total,
        },
    }


@router.get("/jobs/{job_id}")
async def get_rank_job(
    job_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = get_job(db, user.id, job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")

    data = job_to_dict(job)
    data["results"] = job_results(db, job)
    return {"success": True, "job": data}


@router.delete("/jobs/{job_id}")
async def cancel_rank_job(
    job_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = cancel_job(db, user.id, job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found or already completed.",
        )
    return {"success": True, "message": "Job cancelled successfully."}
