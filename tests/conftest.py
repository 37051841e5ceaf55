"""
Test configuration and fixtures for the accessibility audit service.

DATABASE_URL is pointed at a throwaway SQLite file before anything from the
application is imported, so the engine in a11y_service.platform.db.session
is built against it.
"""

import asyncio
import os
import tempfile
from typing import AsyncGenerator, Generator

from dotenv import load_dotenv

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

load_dotenv()

test_db_path = tempfile.mktemp(suffix=".db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"


@pytest_asyncio.fixture
async def db() -> AsyncGenerator:
    """A session on a freshly created schema; tables are dropped afterwards."""
    from a11y_service.platform.db.session import SessionLocal, drop_db, init_db

    await init_db()
    async with SessionLocal() as session:
        yield session
    await drop_db()


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from a11y_service.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Startup creates the tables; they are dropped once the test is done so
    every test starts from an empty database.
    """
    from a11y_service.platform.db.session import drop_db

    with TestClient(test_app) as test_client:
        yield test_client
    asyncio.run(drop_db())


@pytest.fixture
def task_payload():
    return {
        "name": "Example homepage",
        "url": "https://example.com",
        "standard": "WCAG2AA",
        "ignore": ["notice"],
        "timeout": 20000,
    }


class FakeRedisLock:
    """Just enough of redis.lock.Lock for non-blocking acquire/release."""

    def __init__(self, held, name):
        self.held = held
        self.name = name

    def acquire(self):
        if self.name in self.held:
            return False
        self.held.add(self.name)
        return True

    def release(self):
        self.held.discard(self.name)

    def locked(self):
        return self.name in self.held


class FakeRedis:
    def __init__(self):
        self.held = set()

    def lock(self, name, **kwargs):
        return FakeRedisLock(self.held, name)


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture(autouse=True)
def shared_run_lock(monkeypatch, redis_client):
    """Point the process-wide run lock at an in-memory Redis stand-in."""
    from a11y_service.features.scan.services.orchestration.run_lock import run_lock

    monkeypatch.setattr(run_lock, "_client", redis_client)
    return run_lock
