"""
Run Orchestrator

Runs one task end to end: load the task, optionally expand its URL through
the sitemap, create the result record, check each page in order while
persisting page-list progress, then fold every page's findings into the
result's counts.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from a11y_service.features.results.models.result import PAGE_STATUS_ORDER, PageStatus
from a11y_service.features.results.services.result_store import (
    ResultStore,
    summarize_findings,
    urls_to_page_list,
)
from a11y_service.features.scan.services.checker.accessibility_checker import (
    AccessibilityChecker,
    CheckerConfig,
)
from a11y_service.features.scan.services.discovery.sitemap import SitemapResolver, unique_in_order
from a11y_service.features.scan.services.orchestration.run_lock import RunLock, run_lock
from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.config import settings
from a11y_service.platform.db.store import parse_id
from a11y_service.platform.exceptions import CheckError, ServiceError, StoreError
from a11y_service.platform.logger import task_log
from a11y_service.platform.utils.url_validator import sitemap_url_for

logger = logging.getLogger(__name__)


@dataclass
class PageOutcome:
    """What checking one URL produced: findings, or the reason it failed."""
    url: str
    findings: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def build_checker_config(task: Dict[str, Any]) -> CheckerConfig:
    return CheckerConfig(
        standard=task.get("standard") or settings.DEFAULT_STANDARD,
        username=task.get("username"),
        password=task.get("password"),
        email=task.get("email"),
        scan_sitemap=bool(task.get("scanSitemap")),
        include_warnings=True,
        include_notices=True,
        timeout=task.get("timeout") or settings.DEFAULT_TIMEOUT_MS,
        wait=task.get("wait") or settings.DEFAULT_WAIT_MS,
        ignore=list(task.get("ignore") or []),
        actions=list(task.get("actions") or []),
        hide_elements=task.get("hideElements") or None,
        headers=dict(task.get("headers") or {}),
        log=task_log(task.get("id")),
    )


class TaskRunner:
    """
    The run orchestrator. Collaborators are injected so tests can swap in
    fakes; `build_task_runner` wires the real ones.
    """

    def __init__(
        self,
        tasks: TaskStore,
        results: ResultStore,
        resolver: SitemapResolver,
        checker: AccessibilityChecker,
        lock: RunLock = run_lock,
    ):
        self.tasks = tasks
        self.results = results
        self.resolver = resolver
        self.checker = checker
        self.lock = lock

    async def run_task(self, task_id: str) -> Dict[str, Any]:
        """
        Run a task and return its full result.

        Raises TaskAlreadyRunningError if this task is already running in
        this process.
        """
        task_id = parse_id(task_id)
        with self.lock.hold(task_id):
            return await self._run(task_id)

    async def _run(self, task_id: str) -> Dict[str, Any]:
        task = await self.tasks.get(task_id)
        config = build_checker_config(task)
        logger.info(f"[{task_id}] Starting run of task {task['name']!r}")

        urls = await self.resolve_urls(task)

        page_list = urls_to_page_list(urls)
        created = await self.results.create({
            "task": task["id"],
            "page_list": page_list,
            "ignore": task.get("ignore") or [],
        })
        result_id = created["id"]
        logger.info(f"[{task_id}] Created result {result_id} with {len(page_list)} pages")

        outcomes = []
        for index, url in enumerate(urls):
            await self._set_status(result_id, page_list, index, PageStatus.in_progress)
            outcome = await self._check_page(url, config)
            outcomes.append(outcome)
            final_status = PageStatus.failed if outcome.failed else PageStatus.complete
            await self._set_status(result_id, page_list, index, final_status)

        aggregate = self.aggregate(outcomes)
        await self.results.update(result_id, aggregate)

        count = aggregate["count"]
        logger.info(
            f"[{task_id}] Finished result {result_id}: {count['total']} issues, "
            f"{count.get('failed', 0)} failed pages"
        )
        return await self.results.get(result_id, full=True)

    async def resolve_urls(self, task: Dict[str, Any]) -> List[str]:
        """The working URL set for this run. The stored task is not changed."""
        stored = task["url"]
        if not task.get("scanSitemap"):
            return list(stored) if isinstance(stored, list) else [stored]

        seed = stored[0] if isinstance(stored, list) else stored
        sitemap_url = sitemap_url_for(seed)
        logger.info(f"[{task['id']}] Expanding {sitemap_url}")
        urls = await self.resolver.resolve(
            sitemap_url,
            username=task.get("username"),
            password=task.get("password"),
            timeout_ms=settings.SITEMAP_TIMEOUT_MS,
        )
        return unique_in_order(urls)

    async def _check_page(self, url: str, config: CheckerConfig) -> PageOutcome:
        try:
            findings = await self.checker.check(url, config)
        except CheckError as e:
            logger.warning(f"Check failed for {url}: {e.message}")
            return PageOutcome(url=url, error=e.message or type(e).__name__)
        except ServiceError:
            raise
        except Exception as e:
            # Any other failure fails this page only
            logger.exception(f"Unexpected error checking {url}")
            return PageOutcome(url=url, error=f"{type(e).__name__}: {e}")
        return PageOutcome(url=url, findings=list(findings))

    async def _set_status(self, result_id: str, page_list: List[Dict[str, str]], index: int, status: str) -> None:
        """
        Move one page-list entry forward and persist the page list.

        Progress writes are best effort: a failed write is logged and the
        run carries on, the final aggregate write still has to succeed.
        """
        entry = page_list[index]
        if PAGE_STATUS_ORDER[status] < PAGE_STATUS_ORDER[entry["status"]]:
            raise ValueError(f"Page status cannot move from {entry['status']} to {status}")
        entry["status"] = status
        try:
            await self.results.update(result_id, {"page_list": [dict(page) for page in page_list]})
        except StoreError as e:
            logger.error(f"Could not persist page list for result {result_id}: {e.message}")

    @staticmethod
    def aggregate(outcomes: List[PageOutcome]) -> Dict[str, Any]:
        findings = [finding for outcome in outcomes for finding in outcome.findings]
        failures = [{"url": o.url, "message": o.error} for o in outcomes if o.failed]
        aggregate = summarize_findings(findings, failed_pages=len(failures))
        aggregate["failures"] = failures or None
        return aggregate


def build_task_runner(db: AsyncSession) -> TaskRunner:
    return TaskRunner(
        tasks=TaskStore(db),
        results=ResultStore(db),
        resolver=SitemapResolver(),
        checker=AccessibilityChecker(),
    )
