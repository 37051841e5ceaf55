"""
Result Store

Durable record of run outputs. The run orchestrator is the only writer of
page-list and aggregate fields; everything else reads completed results.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.results.models.result import PageStatus, Result
from a11y_service.platform.config import settings
from a11y_service.platform.db.store import parse_id, store_operation, to_iso
from a11y_service.platform.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FINDING_TYPES = ("error", "warning", "notice")

# Fields a run may merge into an existing result
UPDATABLE_FIELDS = {"page_list", "count", "results", "failures"}


def prepare_for_full_output(result: Result) -> Dict[str, Any]:
    output = {
        "id": result.id,
        "task": result.task_id,
        "date": to_iso(result.date),
        "count": result.count,
        "pageList": list(result.page_list or []),
        "ignore": list(result.ignore or []),
        "results": list(result.results or []),
    }
    if result.failures:
        output["failures"] = list(result.failures)
    return output


def prepare_for_output(result: Result) -> Dict[str, Any]:
    output = prepare_for_full_output(result)
    del output["results"]
    return output


def urls_to_page_list(urls: Union[str, Iterable[str]]) -> List[Dict[str, str]]:
    if isinstance(urls, str):
        urls = [urls]
    return [{"url": url, "status": PageStatus.new} for url in urls]


def summarize_findings(findings: List[Mapping[str, Any]], failed_pages: int = 0) -> Dict[str, Any]:
    """Counts by type plus the findings themselves, in the stored result shape."""
    count = {"total": len(findings)}
    for finding_type in FINDING_TYPES:
        count[finding_type] = sum(1 for f in findings if f.get("type") == finding_type)
    if failed_pages:
        count["failed"] = failed_pages
    return {"count": count, "results": list(findings)}


class ResultStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        result = Result(
            task_id=parse_id(data["task"]),
            date=data.get("date") or datetime.utcnow(),
            page_list=list(data.get("page_list") or []),
            ignore=list(data.get("ignore") or []),
            count=data.get("count"),
            results=data.get("results"),
            failures=data.get("failures"),
        )
        async with store_operation(self.db, "result:create"):
            self.db.add(result)
            await self.db.commit()
            await self.db.refresh(result)
        return prepare_for_output(result)

    async def update(self, result_id: str, fields: Mapping[str, Any]) -> int:
        """Merge the given fields into a result; other columns are left alone."""
        result_id = parse_id(result_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update result fields: {', '.join(sorted(unknown))}")

        async with store_operation(self.db, f"result:update {result_id}"):
            outcome = await self.db.execute(
                update(Result).where(Result.id == result_id).values(**fields)
            )
            await self.db.commit()
        if outcome.rowcount < 1:
            raise NotFoundError(f"Result {result_id} not found")
        return outcome.rowcount

    async def _find(self, *criteria) -> Optional[Result]:
        query = select(Result).where(*criteria).execution_options(populate_existing=True)
        async with store_operation(self.db, "result:get"):
            outcome = await self.db.execute(query)
            return outcome.scalar_one_or_none()

    async def get(self, result_id: str, full: bool = False) -> Dict[str, Any]:
        result = await self._find(Result.id == parse_id(result_id))
        if not result:
            raise NotFoundError(f"Result {result_id} not found")
        return prepare_for_full_output(result) if full else prepare_for_output(result)

    async def get_for_task(self, result_id: str, task_id: str, full: bool = False) -> Dict[str, Any]:
        result = await self._find(
            Result.id == parse_id(result_id),
            Result.task_id == parse_id(task_id),
        )
        if not result:
            raise NotFoundError(f"Result {result_id} not found for task {task_id}")
        return prepare_for_full_output(result) if full else prepare_for_output(result)

    async def query(
        self,
        task_id: Optional[str] = None,
        from_: Optional[datetime] = None,
        to: Optional[datetime] = None,
        full: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Results created strictly between `from_` and `to`, newest first.

        The window defaults to the last RESULTS_DEFAULT_DAYS days.
        """
        now = datetime.utcnow()
        to = _naive_utc(to) or now
        from_ = _naive_utc(from_) or now - timedelta(days=settings.RESULTS_DEFAULT_DAYS)

        query = select(Result).where(Result.date > from_, Result.date < to)
        if task_id:
            query = query.where(Result.task_id == parse_id(task_id))
        query = query.order_by(Result.date.desc())
        if limit:
            query = query.limit(limit)

        async with store_operation(self.db, "result:query"):
            outcome = await self.db.execute(query.execution_options(populate_existing=True))
            results = outcome.scalars().all()

        prepare = prepare_for_full_output if full else prepare_for_output
        return [prepare(result) for result in results]

    async def delete_for_task(self, task_id: str) -> int:
        task_id = parse_id(task_id)
        async with store_operation(self.db, f"result:delete task={task_id}"):
            outcome = await self.db.execute(delete(Result).where(Result.task_id == task_id))
            await self.db.commit()
        return outcome.rowcount


def _naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)
