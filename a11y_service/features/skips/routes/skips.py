from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.skips.schemas.skip import SkipCreate
from a11y_service.features.skips.services.skip_store import SkipStore
from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.db.session import get_db
from a11y_service.platform.logger import get_logger
from a11y_service.platform.response import api_response, created_response

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["Skips"])


@router.get("/{task_id}/skips", summary="Suppression rules of a task")
async def list_skips(task_id: str, db: AsyncSession = Depends(get_db)):
    task = await TaskStore(db).get(task_id)
    skips = await SkipStore(db).query(task["id"])
    return api_response(data=skips, message="Skips retrieved successfully")


@router.post("/{task_id}/skips", status_code=status.HTTP_201_CREATED, summary="Add a suppression rule")
async def create_skip(
    task_id: str,
    payload: SkipCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    task = await TaskStore(db).get(task_id)

    skip = await SkipStore(db).create({"task": task["id"], **payload.model_dump()})
    logger.info(f"Skip {skip['id']} added to task {task['id']}")

    return created_response(
        skip,
        "Skip created successfully",
        location=str(request.url_for("get_task", task_id=task["id"])),
    )
