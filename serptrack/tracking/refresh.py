"""
Ranking Refresh

Re-reads the advanced SERP of every stored ranking result and rewrites its
SERP feature fields. Used by scripts/update_rankings.py to backfill rows
saved before comprehensive extraction existed.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from serptrack.database.models import MasterSERP, RankingResult
from serptrack.database.repository import save_master_serp
from serptrack.dataforseo.client import DataForSEOClient
from serptrack.dataforseo.extraction import extract_comprehensive_result
from serptrack.dataforseo.task_get import get_task_result

logger = logging.getLogger(__name__)

REFRESH_DELAY = 0.2

SERP_FEATURE_FIELDS = (
    "is_ai_overview",
    "is_people_also_ask",
    "ai_overview",
    "people_also_ask",
    "refinement_chips",
    "related_searches",
    "top_rankers",
    "item_types",
    "serp_item_types",
    "se_results_count",
    "items_count",
)


def apply_serp_features(result: RankingResult, serp: Dict[str, Any]) -> None:
    """Overwrite the SERP feature fields of a ranking row; rank fields stay as they are."""
    extracted = extract_comprehensive_result(serp, result.domain)
    for field in SERP_FEATURE_FIELDS:
        setattr(result, field, extracted[field])


async def _load_serp(
    db: Session,
    task_id: str,
    client: Optional[DataForSEOClient],
) -> Optional[Dict[str, Any]]:
    """Fresh advanced result (stored as master SERP), else the stored master SERP."""
    fetched = await get_task_result(task_id, client=client)
    if fetched.success and fetched.data:
        save_master_serp(db, task_id, fetched.data)
        return fetched.data

    logger.warning(f"API fetch failed for {task_id} ({fetched.error}), checking master SERP")
    master = db.query(MasterSERP).filter(MasterSERP.task_id == task_id).first()
    return master.data if master else None


async def refresh_rankings(
    db: Session,
    client: Optional[DataForSEOClient] = None,
    delay: float = REFRESH_DELAY,
) -> Dict[str, int]:
    """
    Refresh every ranking result that has a task id.

    Returns:
        {updated, errors, skipped}; rows without a task id are skipped
    """
    summary = {"updated": 0, "errors": 0, "skipped": 0}
    results = db.query(RankingResult).order_by(RankingResult.created_at.asc()).all()
    logger.info(f"Found {len(results)} ranking results to check")

    for result in results:
        if not result.task_id:
            summary["skipped"] += 1
            continue

        try:
            serp = await _load_serp(db, result.task_id, client)
            if serp is None:
                logger.error(f"No data available for task {result.task_id}")
                db.rollback()
                summary["errors"] += 1
                continue

            apply_serp_features(result, serp)
            db.commit()
            summary["updated"] += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Unexpected error processing task {result.task_id}: {e}")
            summary["errors"] += 1
            continue

        if delay:
            await asyncio.sleep(delay)

    logger.info(
        f"Refresh complete: {summary['updated']} updated, "
        f"{summary['errors']} errors, {summary['skipped']} skipped"
    )
    return summary
