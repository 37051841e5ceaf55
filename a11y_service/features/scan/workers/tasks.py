import asyncio
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from a11y_service.features.scan.services.orchestration.runner import build_task_runner
from a11y_service.platform.celery_app import celery_app
from a11y_service.platform.config import settings
from a11y_service.platform.exceptions import ServiceError, TaskAlreadyRunningError

logger = logging.getLogger(__name__)


async def run_task_once(task_id: str) -> Dict[str, Any]:
    """
    Run one task on a private engine.

    Each Celery job gets its own event loop, so pooled connections from
    another loop cannot be reused here.
    """
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    try:
        async with session_factory() as db:
            runner = build_task_runner(db)
            return await runner.run_task(task_id)
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="a11y_service.features.scan.workers.tasks.run_task_job",
)
def run_task_job(self, task_id: str) -> Dict[str, Any]:
    """
    Run a task to completion.

    Args:
        task_id: The task to run

    Returns:
        Dict with the result id and its counts
    """
    logger.info(f"[{task_id}] Run job started (celery id {self.request.id})")
    try:
        result = asyncio.run(run_task_once(task_id))
    except TaskAlreadyRunningError as e:
        logger.warning(f"[{task_id}] {e.message}; dropping duplicate run")
        return {"status": "skipped", "task_id": task_id}
    except ServiceError as e:
        logger.error(f"[{task_id}] Run failed: {type(e).__name__}: {e.message}")
        raise

    logger.info(f"[{task_id}] Run job finished with result {result['id']}")
    return {
        "status": "completed",
        "task_id": task_id,
        "result_id": result["id"],
        "count": result["count"],
    }
