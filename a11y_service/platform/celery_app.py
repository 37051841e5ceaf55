from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from a11y_service.platform.config import settings


def schedule_from_cron(expression: str):
    """
    Turn a five-field cron expression into a Celery crontab.

    Returns None for an empty expression so the beat entry can be left out.
    """
    if not expression or not expression.strip():
        return None
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have five fields: {expression!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - runs: one task run per message (checker calls happen here)
    - celery: periodic fan-out of scheduled runs
    """
    celery_app = Celery(
        "a11y_service",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    beat_schedule = {}
    run_schedule = schedule_from_cron(settings.RUN_SCHEDULE_CRON)
    if run_schedule is not None:
        beat_schedule["run-all-tasks"] = {
            "task": "a11y_service.features.scan.workers.periodic_tasks.run_all_tasks",
            "schedule": run_schedule,
        }

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,

        task_routes={
            "a11y_service.features.scan.workers.tasks.run_task_job": {"queue": "runs"},
            "a11y_service.features.scan.workers.periodic_tasks.run_all_tasks": {"queue": "celery"},
        },

        task_queues=(
            Queue("default"),
            Queue("celery"),
            Queue("runs"),
        ),

        task_default_queue="default",

        # One browser per worker process at a time
        worker_prefetch_multiplier=1,

        task_acks_late=True,
        task_reject_on_worker_lost=True,

        beat_schedule=beat_schedule,
    )

    celery_app.autodiscover_tasks(["a11y_service.features.scan.workers"])

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
