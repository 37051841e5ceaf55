"""
Per-task run lock shared by the API and every worker process.

Backed by a Redis lock keyed by task id, so a second run of the same task
is rejected whichever process or host it starts in. The lock expires after
CELERY_TASK_TIME_LIMIT, so a worker killed mid-run cannot block its task
forever.
"""
import logging
from contextlib import contextmanager
from typing import Optional

import redis
from redis.exceptions import LockError, RedisError

from a11y_service.platform.config import settings
from a11y_service.platform.exceptions import StoreError, TaskAlreadyRunningError

logger = logging.getLogger(__name__)

KEY_PREFIX = "a11y:run-lock:"


class RunLock:

    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: int = settings.CELERY_TASK_TIME_LIMIT):
        self._client = client
        self.ttl_seconds = ttl_seconds

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(settings.REDIS_URL, decode_responses=True)
            logger.info(f"Initialized Redis client for run locks: {settings.REDIS_URL}")
        return self._client

    def _lock(self, task_id: str):
        return self.client.lock(
            f"{KEY_PREFIX}{task_id}",
            timeout=self.ttl_seconds,
            blocking=False,
            thread_local=False,
        )

    def is_running(self, task_id: str) -> bool:
        try:
            return self._lock(task_id).locked()
        except RedisError as e:
            raise StoreError(f"Could not read run lock for task {task_id}: {e}") from e

    @contextmanager
    def hold(self, task_id: str):
        """Hold the task's lock for the block; raises TaskAlreadyRunningError if taken."""
        lock = self._lock(task_id)
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise StoreError(f"Could not take run lock for task {task_id}: {e}") from e
        if not acquired:
            raise TaskAlreadyRunningError(task_id)

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(f"Run lock for task {task_id} expired before the run finished")
            except RedisError as e:
                logger.error(f"Could not release run lock for task {task_id}: {e}")


# Shared by every runner in this process; the client is created on first use
run_lock = RunLock()
