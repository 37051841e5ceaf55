"""
Tests for the run orchestrator, with in-memory stand-ins for the stores,
the sitemap resolver and the checker.
"""
import asyncio
import copy
import uuid
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock
from urllib3.exceptions import MaxRetryError

from a11y_service.features.results.models.result import PageStatus
from a11y_service.features.scan.services.checker.accessibility_checker import AccessibilityChecker
from a11y_service.features.scan.services.orchestration.run_lock import RunLock
from a11y_service.features.scan.services.orchestration.runner import (
    PageOutcome,
    TaskRunner,
    build_checker_config,
)
from a11y_service.platform.exceptions import (
    CheckError,
    NotFoundError,
    ResolutionError,
    StoreError,
    TaskAlreadyRunningError,
)


TASK_ID = "0191d3a4-6a5e-7c2b-9d7e-123456789abc"


class FakeTasks:
    def __init__(self, task):
        self.task = task

    async def get(self, task_id):
        if self.task is None or task_id != self.task["id"]:
            raise NotFoundError(f"Task {task_id} not found")
        return copy.deepcopy(self.task)


class FakeResults:
    """Keeps every page-list write so progress can be inspected afterwards."""

    def __init__(self, fail_progress_writes=False):
        self.records = {}
        self.page_list_writes = []
        self.fail_progress_writes = fail_progress_writes

    async def create(self, data):
        result_id = str(uuid.uuid4())
        self.records[result_id] = {
            "id": result_id,
            "task": data["task"],
            "date": datetime.utcnow().isoformat(),
            "pageList": copy.deepcopy(data["page_list"]),
            "ignore": list(data.get("ignore") or []),
            "count": None,
            "results": [],
        }
        return dict(self.records[result_id])

    async def update(self, result_id, fields):
        record = self.records[result_id]
        if "page_list" in fields:
            if self.fail_progress_writes:
                raise StoreError("result:update failed")
            self.page_list_writes.append(copy.deepcopy(fields["page_list"]))
            record["pageList"] = copy.deepcopy(fields["page_list"])
        if "count" in fields:
            record["count"] = fields["count"]
            record["results"] = fields["results"]
            if fields.get("failures"):
                record["failures"] = fields["failures"]
        return 1

    async def get(self, result_id, full=False):
        return copy.deepcopy(self.records[result_id])


class FakeChecker:
    def __init__(self, findings_by_url=None, failing=()):
        self.findings_by_url = findings_by_url or {}
        self.failing = set(failing)
        self.checked = []

    async def check(self, url, config):
        self.checked.append(url)
        if url in self.failing:
            raise CheckError(f"Timed out checking {url}", url=url)
        return [dict(f, url=url) for f in self.findings_by_url.get(url, [])]


def make_task(**overrides):
    task = {
        "id": TASK_ID,
        "name": "Example",
        "url": "https://example.com/",
        "standard": "WCAG2AA",
        "timeout": 30000,
        "wait": 0,
        "ignore": ["notice"],
        "actions": [],
    }
    task.update(overrides)
    return task


def make_runner(task, checker=None, resolver=None, results=None, lock=None):
    return TaskRunner(
        tasks=FakeTasks(task),
        results=results or FakeResults(),
        resolver=resolver or AsyncMock(),
        checker=checker or FakeChecker(),
        lock=lock or RunLock(client=MagicMock()),
    )


def test_page_outcome_failed_flag():
    assert PageOutcome(url="https://example.com").failed is False
    assert PageOutcome(url="https://example.com", error="boom").failed is True


def test_build_checker_config_from_task():
    config = build_checker_config(make_task(
        username="user",
        password="pass",
        headers={"X-Env": "test"},
        hideElements=".ads",
        scanSitemap=True,
    ))

    assert config.standard == "WCAG2AA"
    assert config.timeout == 30000
    assert config.ignore == ["notice"]
    assert config.hide_elements == ".ads"
    assert config.scan_sitemap is True
    assert config.request_headers()["X-Env"] == "test"
    assert config.request_headers()["Authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_single_url_run_counts_findings():
    checker = FakeChecker({
        "https://example.com/": [
            {"code": "image-alt", "type": "error"},
            {"code": "label", "type": "error"},
            {"code": "color-contrast", "type": "warning"},
        ],
    })
    runner = make_runner(make_task(), checker=checker)

    result = await runner.run_task(TASK_ID)

    assert result["task"] == TASK_ID
    assert result["count"] == {"total": 3, "error": 2, "warning": 1, "notice": 0}
    assert len(result["results"]) == 3
    assert result["pageList"] == [{"url": "https://example.com/", "status": PageStatus.complete}]
    assert result["ignore"] == ["notice"]


@pytest.mark.asyncio
async def test_failed_page_does_not_stop_the_run():
    urls = ["https://example.com/a", "https://example.com/b", "https://example.com/c"]
    checker = FakeChecker(
        {
            urls[0]: [{"code": "image-alt", "type": "error"}],
            urls[2]: [{"code": "region", "type": "notice"}],
        },
        failing={urls[1]},
    )
    runner = make_runner(make_task(url=urls), checker=checker)

    result = await runner.run_task(TASK_ID)

    assert checker.checked == urls
    assert [p["status"] for p in result["pageList"]] == [
        PageStatus.complete,
        PageStatus.failed,
        PageStatus.complete,
    ]
    assert [f["url"] for f in result["results"]] == [urls[0], urls[2]]
    assert result["count"]["total"] == 2
    assert result["count"]["failed"] == 1
    assert result["failures"] == [{"url": urls[1], "message": f"Timed out checking {urls[1]}"}]


@pytest.mark.asyncio
async def test_page_statuses_only_move_forward():
    urls = ["https://example.com/a", "https://example.com/b"]
    results = FakeResults()
    runner = make_runner(make_task(url=urls), results=results)

    await runner.run_task(TASK_ID)

    order = {PageStatus.new: 0, PageStatus.in_progress: 1, PageStatus.complete: 2, PageStatus.failed: 2}
    for index in range(len(urls)):
        seen = [write[index]["status"] for write in results.page_list_writes]
        assert seen == sorted(seen, key=order.get)
    # Exactly one page is in progress at a time
    for write in results.page_list_writes:
        assert sum(1 for p in write if p["status"] == PageStatus.in_progress) <= 1


@pytest.mark.asyncio
async def test_sitemap_expansion_deduplicates_in_order():
    resolver = AsyncMock()
    resolver.resolve.return_value = [
        "https://example.com/",
        "https://example.com/about",
        "https://example.com/",
        "https://example.com/contact",
    ]
    task = make_task(url="https://example.com/blog/post", scanSitemap=True, username="u", password="p")
    tasks = FakeTasks(task)
    runner = TaskRunner(tasks, FakeResults(), resolver, FakeChecker(), lock=RunLock(client=MagicMock()))

    result = await runner.run_task(TASK_ID)

    resolver.resolve.assert_awaited_once()
    args, kwargs = resolver.resolve.call_args
    assert args[0] == "https://example.com/sitemap.xml"
    assert kwargs["username"] == "u"
    assert kwargs["password"] == "p"
    assert [p["url"] for p in result["pageList"]] == [
        "https://example.com/",
        "https://example.com/about",
        "https://example.com/contact",
    ]
    # The stored task keeps its seed URL
    assert tasks.task["url"] == "https://example.com/blog/post"


@pytest.mark.asyncio
async def test_empty_sitemap_gives_empty_result():
    resolver = AsyncMock()
    resolver.resolve.return_value = []
    checker = FakeChecker()
    runner = make_runner(make_task(scanSitemap=True), checker=checker, resolver=resolver)

    result = await runner.run_task(TASK_ID)

    assert checker.checked == []
    assert result["pageList"] == []
    assert result["count"] == {"total": 0, "error": 0, "warning": 0, "notice": 0}
    assert result["results"] == []


@pytest.mark.asyncio
async def test_resolution_error_creates_no_result():
    resolver = AsyncMock()
    resolver.resolve.side_effect = ResolutionError("Sitemap is malformed")
    results = FakeResults()
    runner = make_runner(make_task(scanSitemap=True), resolver=resolver, results=results)

    with pytest.raises(ResolutionError):
        await runner.run_task(TASK_ID)
    assert results.records == {}


@pytest.mark.asyncio
async def test_unknown_task():
    runner = make_runner(None)

    with pytest.raises(NotFoundError):
        await runner.run_task(TASK_ID)


@pytest.mark.asyncio
async def test_progress_write_failure_is_not_fatal():
    results = FakeResults(fail_progress_writes=True)
    checker = FakeChecker({"https://example.com/": [{"code": "image-alt", "type": "error"}]})
    runner = make_runner(make_task(), checker=checker, results=results)

    result = await runner.run_task(TASK_ID)

    assert result["count"]["total"] == 1


@pytest.mark.asyncio
async def test_concurrent_run_of_same_task_is_rejected(redis_client):
    lock = RunLock(client=redis_client)
    started = asyncio.Event()
    release = asyncio.Event()

    class SlowChecker(FakeChecker):
        async def check(self, url, config):
            started.set()
            await release.wait()
            return []

    runner = make_runner(make_task(), checker=SlowChecker(), lock=lock)
    first = asyncio.create_task(runner.run_task(TASK_ID))
    await started.wait()

    assert lock.is_running(TASK_ID)
    with pytest.raises(TaskAlreadyRunningError):
        await runner.run_task(TASK_ID)

    release.set()
    await first
    assert not lock.is_running(TASK_ID)


def test_aggregate_without_failures():
    aggregate = TaskRunner.aggregate([
        PageOutcome(url="a", findings=[{"type": "warning"}]),
        PageOutcome(url="b", findings=[{"type": "notice"}, {"type": "error"}]),
    ])

    assert aggregate["count"] == {"total": 3, "error": 1, "warning": 1, "notice": 1}
    assert aggregate["failures"] is None


@pytest.mark.asyncio
async def test_lost_browser_fails_each_page_and_run_completes(tmp_path):
    urls = ["https://example.com/a", "https://example.com/b"]
    axe_path = tmp_path / "axe.min.js"
    axe_path.write_text("window.axe = {};")

    driver = MagicMock()
    driver.get.side_effect = MaxRetryError(None, "http://localhost:9515/session/1/url")
    driver.quit.side_effect = MaxRetryError(None, "http://localhost:9515/session")
    checker = AccessibilityChecker(driver_factory=lambda: driver, axe_script_path=str(axe_path))
    results = FakeResults()
    runner = make_runner(make_task(url=urls), checker=checker, results=results)

    result = await runner.run_task(TASK_ID)

    assert [c.args[0] for c in driver.get.call_args_list] == urls
    assert [p["status"] for p in result["pageList"]] == [PageStatus.failed, PageStatus.failed]
    assert result["count"]["failed"] == 2
    assert [f["url"] for f in result["failures"]] == urls


@pytest.mark.asyncio
async def test_unexpected_checker_error_fails_only_that_page():
    urls = ["https://example.com/a", "https://example.com/b"]

    class CrashingChecker(FakeChecker):
        async def check(self, url, config):
            self.checked.append(url)
            if url == urls[0]:
                raise ConnectionResetError("connection reset by peer")
            return [{"code": "image-alt", "type": "error", "url": url}]

    checker = CrashingChecker()
    runner = make_runner(make_task(url=urls), checker=checker)

    result = await runner.run_task(TASK_ID)

    assert checker.checked == urls
    assert [p["status"] for p in result["pageList"]] == [PageStatus.failed, PageStatus.complete]
    assert result["failures"][0]["message"].startswith("ConnectionResetError")
    assert result["count"]["error"] == 1


@pytest.mark.asyncio
async def test_store_error_on_result_create_stops_before_any_check():
    class UnwritableResults(FakeResults):
        async def create(self, data):
            raise StoreError("result:create failed")

    checker = FakeChecker()
    runner = make_runner(make_task(), checker=checker, results=UnwritableResults())

    with pytest.raises(StoreError):
        await runner.run_task(TASK_ID)
    assert checker.checked == []
