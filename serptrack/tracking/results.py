"""
Rank Check Results

Read side of async searches:
- history results: stored rankings, then master SERPs, then DataForSEO
- raw SERP of one task with a synthesized fallback
- rank history of a domain/keyword pair
- per-user search history summaries
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from serptrack.auth.models import User
from serptrack.database.models import MasterSERP, RankingResult, SearchHistory
from serptrack.database.repository import (
    create_ranking_result,
    get_master_serps,
    get_results_by_task_ids,
    save_master_serp,
)
from serptrack.dataforseo.client import DataForSEOClient
from serptrack.dataforseo.extraction import extract_comprehensive_result, master_serp_ranks
from serptrack.dataforseo.task_get import get_batch_task_results, get_task_result
from serptrack.tracking.records import history_to_dict, ranking_to_dict

logger = logging.getLogger(__name__)

USER_HISTORY_DOMAINS = 20
USER_HISTORY_KEYWORDS = 10
RECENT_HISTORY_LIMIT = 50


def get_history(db: Session, user_id: UUID, history_id: UUID) -> Optional[SearchHistory]:
    return (
        db.query(SearchHistory)
        .filter(SearchHistory.id == history_id, SearchHistory.user_id == user_id)
        .first()
    )


async def _collect_missing(
    db: Session,
    history: SearchHistory,
    missing: List[str],
    user_id: UUID,
    client: Optional[DataForSEOClient],
) -> Dict[str, Dict[str, Any]]:
    """SERPs for tasks without a ranking row: master SERPs first, then DataForSEO."""
    serps = {task_id: row.data for task_id, row in get_master_serps(db, missing).items()}
    logger.info(f"Found {len(serps)} of {len(missing)} missing tasks in master SERPs")

    to_fetch = [task_id for task_id in missing if task_id not in serps]
    if not to_fetch:
        return serps

    fetched = await get_batch_task_results(to_fetch, user_id=user_id, client=client)
    if not fetched.success:
        logger.error(f"Batch fetch failed: {fetched.error}")
        return serps

    for task_id, data in fetched.data.items():
        serps[task_id] = data
        try:
            save_master_serp(
                db,
                task_id,
                data,
                domain=history.domain,
                ranks=master_serp_ranks(data, history.domain),
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save master SERP for {task_id}: {e}")

    return serps


async def get_history_results(
    db: Session,
    user: User,
    history: SearchHistory,
    client: Optional[DataForSEOClient] = None,
) -> Dict[str, Any]:
    """
    Results of a search, in task order.

    Tasks not yet available are counted as pending and the status stays
    "processing" until every task has a result.
    """
    task_ids = list(history.task_ids or [])
    base = {
        "success": True,
        "domain": history.domain,
        "location": history.location,
        "createdAt": history.created_at,
    }
    if not task_ids:
        return {**base, "status": "completed", "progress": {"total": 0, "completed": 0, "pending": 0}, "results": []}

    existing = get_results_by_task_ids(db, task_ids)
    results = {task_id: ranking_to_dict(row) for task_id, row in existing.items()}

    missing = [task_id for task_id in task_ids if task_id not in existing]
    if missing:
        serps = await _collect_missing(db, history, missing, user.id, client)

        for task_id in missing:
            serp = serps.get(task_id)
            if serp is None:
                continue

            data = extract_comprehensive_result(serp, history.domain)
            feature_counts = data.pop("feature_counts")
            keyword = data.pop("keyword", None)

            try:
                row = create_ranking_result(
                    db,
                    user_id=user.id,
                    task_id=task_id,
                    domain=history.domain,
                    keyword=keyword,
                    location=history.location,
                    location_code=history.location_code,
                    language=history.language or "en",
                    device=history.device or "desktop",
                    os=history.os or "windows",
                    **data,
                )
                db.commit()
                payload = ranking_to_dict(row)
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to save result for task {task_id}: {e}")
                payload = {"taskId": task_id, "keyword": keyword, **data, "status": "completed"}

            payload["featureCounts"] = feature_counts
            results[task_id] = payload

    ordered = [results[task_id] for task_id in task_ids if task_id in results]
    pending = len(task_ids) - len(ordered)

    return {
        **base,
        "status": "processing" if pending else "completed",
        "progress": {"total": len(task_ids), "completed": len(ordered), "pending": pending},
        "results": ordered,
    }


# =============================================================================
# SINGLE TASK
# =============================================================================

def synthesize_serp(result: RankingResult) -> Dict[str, Any]:
    """SERP-shaped dict rebuilt from a stored comprehensive ranking."""
    items: List[Dict[str, Any]] = list(result.ai_overview or [])
    items.extend(
        {
            "type": "organic",
            "rank_group": ranker.get("rank"),
            "rank_absolute": ranker.get("rank_absolute"),
            "domain": ranker.get("domain"),
            "url": ranker.get("url"),
            "title": ranker.get("title"),
            "description": ranker.get("description"),
            "breadcrumb": ranker.get("breadcrumb"),
            "etv": ranker.get("etv"),
            "is_featured_snippet": ranker.get("is_featured_snippet"),
            "is_malicious": ranker.get("is_malicious"),
            "is_web_story": ranker.get("is_web_story"),
            "amp_version": ranker.get("amp_version"),
        }
        for ranker in result.top_rankers or []
    )
    if result.people_also_ask:
        items.append({"type": "people_also_ask", "items": result.people_also_ask})

    return {
        "keyword": result.keyword,
        "language_code": result.language,
        "location_code": result.location_code,
        "se_results_count": result.se_results_count,
        "items_count": result.items_count,
        "check_url": result.check_url,
        "items": items,
    }


async def get_task_serp(
    db: Session,
    user: User,
    task_id: str,
    client: Optional[DataForSEOClient] = None,
) -> Optional[Dict[str, Any]]:
    """Raw SERP of a task: master SERP, then DataForSEO, then the user's ranking row."""
    master = db.query(MasterSERP).filter(MasterSERP.task_id == task_id).first()
    if master:
        return master.data

    fetched = await get_task_result(task_id, user_id=user.id, client=client)
    if fetched.success and fetched.data:
        try:
            save_master_serp(db, task_id, fetched.data)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save master SERP for {task_id}: {e}")
        return fetched.data

    logger.warning(f"Failed to fetch live result for {task_id}, falling back to stored ranking")
    ranking = (
        db.query(RankingResult)
        .filter(RankingResult.task_id == task_id, RankingResult.user_id == user.id)
        .first()
    )
    return synthesize_serp(ranking) if ranking else None


# =============================================================================
# HISTORY
# =============================================================================

def ranking_history(db: Session, domain: str, keyword: str) -> List[Dict[str, Any]]:
    """Rank points from master SERPs, oldest first; entries without a rank are dropped."""
    rows = (
        db.query(MasterSERP)
        .filter(
            MasterSERP.domain == domain,
            MasterSERP.keyword == keyword,
            MasterSERP.ranks.isnot(None),
        )
        .order_by(MasterSERP.created_at.asc())
        .all()
    )

    points = []
    for row in rows:
        ranks = row.ranks or {}
        rank = ranks.get("rank_absolute") or ranks.get("rank_group") or ranks.get("position")
        if rank is not None:
            points.append({"date": row.created_at, "rank": rank})
    return points


def user_search_history(db: Session, user_id: UUID) -> List[Dict[str, Any]]:
    """Searches grouped by domain, most recently searched domain first."""
    rows = (
        db.query(SearchHistory)
        .filter(SearchHistory.user_id == user_id)
        .order_by(SearchHistory.created_at.desc())
        .all()
    )

    grouped: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        entry = grouped.get(row.domain)
        if entry is None:
            if len(grouped) >= USER_HISTORY_DOMAINS:
                continue
            entry = grouped[row.domain] = {
                "domain": row.domain,
                "lastLocation": row.location,
                "lastLocationCode": row.location_code,
                "keywords": [],
                "lastSearched": row.created_at,
            }
        for keyword in row.keywords or []:
            if keyword not in entry["keywords"] and len(entry["keywords"]) < USER_HISTORY_KEYWORDS:
                entry["keywords"].append(keyword)

    return list(grouped.values())


def recent_searches(db: Session, user_id: UUID, limit: int = RECENT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
    rows = (
        db.query(SearchHistory)
        .filter(SearchHistory.user_id == user_id)
        .order_by(SearchHistory.created_at.desc())
        .limit(limit)
        .all()
    )
    return [history_to_dict(row) for row in rows]
