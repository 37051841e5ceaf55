from datetime import datetime, timedelta

import pytest

from a11y_service.features.results.services.result_store import (
    ResultStore,
    summarize_findings,
    urls_to_page_list,
)
from a11y_service.features.tasks.services.task_store import TaskStore
from a11y_service.platform.exceptions import NotFoundError, ValidationError


def test_urls_to_page_list_single_url():
    assert urls_to_page_list("https://example.com") == [
        {"url": "https://example.com", "status": "New"},
    ]


def test_urls_to_page_list_keeps_order():
    page_list = urls_to_page_list(["https://example.com/b", "https://example.com/a"])
    assert [p["url"] for p in page_list] == ["https://example.com/b", "https://example.com/a"]
    assert all(p["status"] == "New" for p in page_list)


def test_summarize_findings_counts_by_type():
    findings = [{"type": "error"}, {"type": "error"}, {"type": "warning"}]

    summary = summarize_findings(findings)

    assert summary["count"] == {"total": 3, "error": 2, "warning": 1, "notice": 0}
    assert summary["results"] == findings


def test_summarize_findings_empty():
    assert summarize_findings([]) == {
        "count": {"total": 0, "error": 0, "warning": 0, "notice": 0},
        "results": [],
    }


def test_summarize_findings_reports_failed_pages():
    assert summarize_findings([], failed_pages=2)["count"]["failed"] == 2


@pytest.fixture
def make_task(db):
    async def _make(name="Home"):
        return await TaskStore(db).create({"name": name, "url": "https://example.com"})
    return _make


@pytest.mark.asyncio
async def test_create_and_get_result(db, make_task):
    task = await make_task()
    store = ResultStore(db)

    created = await store.create({
        "task": task["id"],
        "page_list": urls_to_page_list("https://example.com"),
        "ignore": ["notice"],
    })
    result = await store.get(created["id"], full=True)

    assert result["task"] == task["id"]
    assert result["pageList"] == [{"url": "https://example.com", "status": "New"}]
    assert result["ignore"] == ["notice"]
    assert result["count"] is None
    assert result["results"] == []
    assert result["date"].endswith("Z")


@pytest.mark.asyncio
async def test_summary_view_has_no_findings(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    created = await store.create({"task": task["id"], "page_list": []})

    assert "results" not in await store.get(created["id"])


@pytest.mark.asyncio
async def test_update_merges_named_fields_only(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    created = await store.create({
        "task": task["id"],
        "page_list": urls_to_page_list("https://example.com"),
        "ignore": ["notice"],
    })

    await store.update(created["id"], {"page_list": [{"url": "https://example.com", "status": "Complete"}]})
    await store.update(created["id"], summarize_findings([{"type": "error", "code": "image-alt"}]))
    result = await store.get(created["id"], full=True)

    assert result["pageList"] == [{"url": "https://example.com", "status": "Complete"}]
    assert result["count"]["total"] == 1
    assert result["results"] == [{"type": "error", "code": "image-alt"}]
    assert result["ignore"] == ["notice"]
    assert result["task"] == task["id"]


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    created = await store.create({"task": task["id"], "page_list": []})

    with pytest.raises(ValidationError):
        await store.update(created["id"], {"task": "someone-else"})


@pytest.mark.asyncio
async def test_update_unknown_result(db):
    with pytest.raises(NotFoundError):
        await ResultStore(db).update("0191d3a4-6a5e-7c2b-9d7e-123456789abc", {"count": {}})


@pytest.mark.asyncio
async def test_get_for_task_checks_owner(db, make_task):
    first = await make_task("First")
    second = await make_task("Second")
    store = ResultStore(db)
    created = await store.create({"task": first["id"], "page_list": []})

    assert (await store.get_for_task(created["id"], first["id"]))["id"] == created["id"]
    with pytest.raises(NotFoundError):
        await store.get_for_task(created["id"], second["id"])


@pytest.mark.asyncio
async def test_query_newest_first_within_window(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    now = datetime.utcnow()
    await store.create({"task": task["id"], "page_list": [], "date": now - timedelta(days=2)})
    await store.create({"task": task["id"], "page_list": [], "date": now - timedelta(hours=1)})
    await store.create({"task": task["id"], "page_list": [], "date": now - timedelta(days=45)})

    results = await store.query(task_id=task["id"])

    assert len(results) == 2
    assert results[0]["date"] > results[1]["date"]


@pytest.mark.asyncio
async def test_query_explicit_bounds_and_limit(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    now = datetime.utcnow()
    for days in (1, 2, 3):
        await store.create({"task": task["id"], "page_list": [], "date": now - timedelta(days=days)})

    window = await store.query(from_=now - timedelta(days=60), to=now - timedelta(hours=36))
    latest = await store.query(task_id=task["id"], limit=1, full=True)

    assert len(window) == 2
    assert len(latest) == 1
    assert "results" in latest[0]


@pytest.mark.asyncio
async def test_delete_for_task(db, make_task):
    task = await make_task()
    store = ResultStore(db)
    await store.create({"task": task["id"], "page_list": []})
    await store.create({"task": task["id"], "page_list": []})

    assert await store.delete_for_task(task["id"]) == 2
    assert await store.query(task_id=task["id"]) == []
