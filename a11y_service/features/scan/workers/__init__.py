"""Celery workers module - imports all task modules for autodiscovery."""

# Import all task modules so they're registered with Celery
from a11y_service.features.scan.workers import tasks  # noqa: F401
from a11y_service.features.scan.workers import periodic_tasks  # noqa: F401
