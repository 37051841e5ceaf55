"""
Celery periodic tasks for scheduled audits.

This module contains tasks that run on a schedule via Celery Beat.
"""
import asyncio
import logging
from datetime import datetime
from typing import List

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.config import settings

logger = logging.getLogger(__name__)


async def list_task_ids() -> List[str]:
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as db:
            tasks = await TaskStore(db).list()
    finally:
        await engine.dispose()
    return [task["id"] for task in tasks]


@shared_task(bind=True, name="a11y_service.features.scan.workers.periodic_tasks.run_all_tasks")
def run_all_tasks(self):
    """
    Queue a run for every stored task.

    Runs on RUN_SCHEDULE_CRON via Celery Beat. Runs are queued, not
    executed here, so one slow site does not hold up the others.
    """
    from a11y_service.features.scan.workers.tasks import run_task_job

    started = datetime.utcnow()
    task_ids = asyncio.run(list_task_ids())
    logger.info(f"Scheduled run: queueing {len(task_ids)} tasks")

    for task_id in task_ids:
        run_task_job.delay(task_id)

    return {
        "status": "success",
        "tasks_queued": len(task_ids),
        "timestamp": started.isoformat(),
    }
