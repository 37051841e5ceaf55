from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.results.services.result_store import ResultStore
from a11y_service.features.scan.services.checker.actions import is_valid_action
from a11y_service.features.scan.services.orchestration.run_lock import run_lock
from a11y_service.features.scan.workers.tasks import run_task_job
from a11y_service.features.skips.services.skip_store import SkipStore, attach_skips
from a11y_service.features.tasks.schemas.task import TaskCreate, TaskUpdate
from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.db.session import get_db
from a11y_service.platform.exceptions import TaskAlreadyRunningError, ValidationError
from a11y_service.platform.logger import get_logger
from a11y_service.platform.response import accepted_response, api_response, created_response

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def ensure_valid_actions(actions: Optional[List[str]]) -> None:
    for action in actions or []:
        if not is_valid_action(action):
            raise ValidationError(f'Invalid action: "{action}"')


async def attach_last_result(db: AsyncSession, task: Dict[str, Any]) -> Dict[str, Any]:
    results = await ResultStore(db).query(task_id=task["id"], limit=1, full=True)
    task["last_result"] = None
    if results:
        skips = await SkipStore(db).query(task["id"])
        task["last_result"] = attach_skips(results[0], skips)
    return task


@router.get("", summary="List tasks")
async def list_tasks(
    lastres: bool = Query(False, description="Include each task's latest full result"),
    db: AsyncSession = Depends(get_db),
):
    tasks = await TaskStore(db).list()
    if lastres:
        tasks = [await attach_last_result(db, task) for task in tasks]
    return api_response(data=tasks, message="Tasks retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a task")
async def create_task(payload: TaskCreate, request: Request, db: AsyncSession = Depends(get_db)):
    ensure_valid_actions(payload.actions)
    task = await TaskStore(db).create(payload.model_dump(exclude={"comment"}))
    return created_response(
        task,
        "Task created successfully",
        location=str(request.url_for("get_task", task_id=task["id"])),
    )


@router.get("/{task_id}", summary="Get a task")
async def get_task(
    task_id: str,
    lastres: bool = Query(False, description="Include the latest full result and its skips"),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskStore(db).get(task_id)
    if lastres:
        task = await attach_last_result(db, task)
    return api_response(data=task, message="Task retrieved successfully")


@router.patch("/{task_id}", summary="Edit a task")
async def edit_task(task_id: str, payload: TaskUpdate, db: AsyncSession = Depends(get_db)):
    store = TaskStore(db)
    task = await store.get(task_id)

    ensure_valid_actions(payload.actions)
    await store.update(task["id"], payload.model_dump())

    updated = await store.get(task["id"])
    return api_response(data=updated, message="Task updated successfully")


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a task")
async def delete_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a task together with its results and skips."""
    task = await TaskStore(db).get(task_id)

    await ResultStore(db).delete_for_task(task["id"])
    await SkipStore(db).delete_for_task(task["id"])
    await TaskStore(db).delete(task["id"])
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{task_id}/run", status_code=status.HTTP_202_ACCEPTED, summary="Run a task")
async def run_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """
    Queue a run. The outcome is observed by polling the task's results.
    """
    task = await TaskStore(db).get(task_id)
    if run_lock.is_running(task["id"]):
        raise TaskAlreadyRunningError(task["id"])

    job = run_task_job.delay(task["id"])
    logger.info(f"Queued one-off run of task {task['id']} (celery id {job.id})")

    return accepted_response(task["id"], job.id)
