from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.results.services.result_store import ResultStore
from a11y_service.features.skips.services.skip_store import SkipStore, attach_skips
from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.db.session import get_db
from a11y_service.platform.response import api_response

router = APIRouter(prefix="/tasks", tags=["Results"])


@router.get("/results", summary="Results across all tasks")
async def list_all_results(
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    full: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    results = await ResultStore(db).query(from_=from_, to=to, full=full)
    return api_response(data=results, message="Results retrieved successfully")


@router.get("/{task_id}/results", summary="Results for a task")
async def list_task_results(
    task_id: str,
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    full: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskStore(db).get(task_id)

    results = await ResultStore(db).query(task_id=task["id"], from_=from_, to=to, full=full)
    skips = await SkipStore(db).query(task["id"])
    # Skips ride along on the newest result only
    if results and skips:
        attach_skips(results[0], skips)

    return api_response(data=results, message="Results retrieved successfully")


@router.get("/{task_id}/results/{result_id}", summary="Get one result of a task")
async def get_task_result(
    task_id: str,
    result_id: str,
    full: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    result = await ResultStore(db).get_for_task(result_id, task_id, full=full)
    skips = await SkipStore(db).query(task_id)
    return api_response(data=attach_skips(result, skips), message="Result retrieved successfully")
