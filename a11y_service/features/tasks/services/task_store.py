"""
Task Store

Durable record of audit configurations. Every method returns the output
view of a task (a plain dict with the camelCase keys the API produces).
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.tasks.models.task import Task
from a11y_service.platform.config import settings
from a11y_service.platform.db.store import epoch_ms, parse_id, store_operation
from a11y_service.platform.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CREATE_FIELDS = (
    "name", "url", "standard", "timeout", "wait", "ignore", "actions",
    "username", "password", "email", "headers", "scan_sitemap", "hide_elements",
)


def sanitize_headers(headers) -> Optional[Dict[str, str]]:
    """
    Normalize header input to a mapping.

    Accepts a mapping, a JSON-encoded object or an empty value.
    """
    if headers is None or headers == "":
        return None
    if isinstance(headers, str):
        try:
            headers = json.loads(headers)
        except json.JSONDecodeError as e:
            logger.error(f"Header input contains invalid JSON: {headers}")
            raise ValidationError(f"Header input contains invalid JSON: {e.msg}")
    if not isinstance(headers, Mapping):
        raise ValidationError("Headers must be a JSON object of name/value pairs")
    return {str(key): str(value) for key, value in headers.items()}


def _as_int(value, default: int) -> int:
    """Stored timeout/wait may be NULL, a string or negative in legacy rows."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def prepare_for_output(task: Task) -> Dict[str, Any]:
    output = {
        "id": task.id,
        "name": task.name,
        "url": task.url,
        "timeout": _as_int(task.timeout, settings.DEFAULT_TIMEOUT_MS),
        "wait": _as_int(task.wait, settings.DEFAULT_WAIT_MS),
        "standard": task.standard,
        "ignore": list(task.ignore or []),
        "actions": list(task.actions or []),
    }
    if task.scan_sitemap:
        output["scanSitemap"] = True
    if task.annotations:
        output["annotations"] = list(task.annotations)
    if task.username:
        output["username"] = task.username
    if task.password:
        output["password"] = task.password
    if task.email:
        output["email"] = task.email
    if task.hide_elements:
        output["hideElements"] = task.hide_elements
    headers = sanitize_headers(task.headers)
    if headers is not None:
        output["headers"] = headers
    return output


class TaskStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        values = {key: data[key] for key in CREATE_FIELDS if data.get(key) is not None}
        values["headers"] = sanitize_headers(values.get("headers"))
        values["scan_sitemap"] = bool(values.get("scan_sitemap"))
        values.setdefault("standard", settings.DEFAULT_STANDARD)

        task = Task(**values)
        async with store_operation(self.db, "task:create"):
            self.db.add(task)
            await self.db.commit()
            await self.db.refresh(task)

        logger.info(f"Created task {task.id} ({task.name})")
        return prepare_for_output(task)

    async def list(self) -> List[Dict[str, Any]]:
        async with store_operation(self.db, "task:list"):
            result = await self.db.execute(select(Task))
            tasks = result.scalars().all()
        # url may be a list, so sort in Python rather than in SQL
        tasks = sorted(tasks, key=lambda t: (t.name or "", t.standard or "", json.dumps(t.url)))
        return [prepare_for_output(task) for task in tasks]

    async def _load(self, task_id: str) -> Task:
        task_id = parse_id(task_id)
        async with store_operation(self.db, f"task:get {task_id}"):
            result = await self.db.execute(
                select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
            )
            task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    async def get(self, task_id: str) -> Dict[str, Any]:
        return prepare_for_output(await self._load(task_id))

    async def update(self, task_id: str, edits: Mapping[str, Any]) -> int:
        """
        Apply an edit and record it in the task's annotations.

        Name, sitemap flag, timeout, wait, actions and credentials are always
        overwritten; ignore, hidden elements and headers only when supplied.
        """
        task_id = parse_id(task_id)
        values = {
            "name": edits.get("name"),
            "scan_sitemap": bool(edits.get("scan_sitemap")),
            "timeout": edits.get("timeout"),
            "wait": edits.get("wait"),
            "actions": edits.get("actions"),
            "username": edits.get("username"),
            "password": edits.get("password"),
        }
        if edits.get("ignore"):
            values["ignore"] = edits["ignore"]
        if edits.get("hide_elements"):
            values["hide_elements"] = edits["hide_elements"]
        if edits.get("headers"):
            values["headers"] = sanitize_headers(edits["headers"])

        async with store_operation(self.db, f"task:update {task_id}"):
            result = await self.db.execute(
                update(Task).where(Task.id == task_id).values(**values)
            )
            await self.db.commit()
        if result.rowcount < 1:
            raise NotFoundError(f"Task {task_id} not found")

        await self.add_annotation(task_id, {
            "type": "edit",
            "date": epoch_ms(),
            "comment": edits.get("comment") or "Edited task",
        })
        return result.rowcount

    async def add_annotation(self, task_id: str, annotation: Mapping[str, Any]) -> None:
        task = await self._load(task_id)
        # Assign a new list so the JSON column registers the change
        task.annotations = [*(task.annotations or []), dict(annotation)]
        async with store_operation(self.db, f"task:annotate {task.id}"):
            await self.db.commit()

    async def delete(self, task_id: str) -> int:
        task_id = parse_id(task_id)
        async with store_operation(self.db, f"task:delete {task_id}"):
            result = await self.db.execute(delete(Task).where(Task.id == task_id))
            await self.db.commit()
        if result.rowcount < 1:
            raise NotFoundError(f"Task {task_id} not found")
        logger.info(f"Deleted task {task_id}")
        return result.rowcount
