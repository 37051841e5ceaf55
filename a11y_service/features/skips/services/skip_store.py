"""
Skip Store

Task-scoped suppression rules. Skips annotate findings for display; they
never rewrite a stored result.
"""
import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.skips.models.skip import Skip
from a11y_service.platform.db.store import parse_id, store_operation
from a11y_service.platform.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def prepare_for_output(skip: Skip) -> Dict[str, Any]:
    return {
        "id": skip.id,
        "task": skip.task_id,
        "code": skip.code,
        "url": skip.url,
        "selector": skip.selector,
        "context": skip.context,
        "reason": skip.reason,
        "description": skip.description,
        "skipAllPages": bool(skip.skip_all_pages),
    }


def skip_matches(skip: Mapping[str, Any], finding: Mapping[str, Any]) -> bool:
    if skip["code"] != finding.get("code"):
        return False
    if skip["context"] != finding.get("context") or skip["selector"] != finding.get("selector"):
        return False
    return skip.get("skipAllPages") or skip["url"] == finding.get("url")


def apply_skips(findings: List[Mapping[str, Any]], skips: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Return copies of the findings with matched ones flagged.

    A flagged finding carries `skipped: True` and the id of the first skip
    that matched it.
    """
    marked = []
    for finding in findings:
        finding = dict(finding)
        for skip in skips:
            if skip_matches(skip, finding):
                finding["skipped"] = True
                finding["skip"] = skip["id"]
                break
        marked.append(finding)
    return marked


class SkipStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        skip = Skip(
            task_id=parse_id(data["task"]),
            code=data["code"],
            context=data["context"],
            selector=data["selector"],
            url=data["url"],
            reason=data["reason"],
            description=data["description"],
            skip_all_pages=bool(data.get("skip_all_pages")),
        )
        async with store_operation(self.db, "skip:create"):
            self.db.add(skip)
            await self.db.commit()
            await self.db.refresh(skip)
        logger.info(f"Created skip {skip.id} for task {skip.task_id} ({skip.code})")
        return prepare_for_output(skip)

    async def get(self, skip_id: str) -> Dict[str, Any]:
        skip_id = parse_id(skip_id)
        async with store_operation(self.db, f"skip:get {skip_id}"):
            result = await self.db.execute(select(Skip).where(Skip.id == skip_id))
            skip = result.scalar_one_or_none()
        if not skip:
            raise NotFoundError(f"Skip {skip_id} not found")
        return prepare_for_output(skip)

    async def query(self, task_id: str) -> List[Dict[str, Any]]:
        task_id = parse_id(task_id)
        query = select(Skip).where(Skip.task_id == task_id).order_by(Skip.code.desc())
        async with store_operation(self.db, f"skip:query task={task_id}"):
            result = await self.db.execute(query)
            skips = result.scalars().all()
        return [prepare_for_output(skip) for skip in skips]

    async def delete_for_task(self, task_id: str) -> int:
        task_id = parse_id(task_id)
        async with store_operation(self.db, f"skip:delete task={task_id}"):
            result = await self.db.execute(delete(Skip).where(Skip.task_id == task_id))
            await self.db.commit()
        return result.rowcount


def attach_skips(result: Dict[str, Any], skips: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Attach a task's skips to a result view, flagging matched findings."""
    result["skips"] = skips
    if result.get("results"):
        result["results"] = apply_skips(result["results"], skips)
    return result
