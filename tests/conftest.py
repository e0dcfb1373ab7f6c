"""Shared fixtures: per-test database, store, subscriber and sleep recorder."""

import os

os.environ.setdefault("ENVIRONMENT", "test")

import sys

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adwatch.core.logging import configure_logging
from adwatch.db.session import build_engine
from adwatch.models import Base
from adwatch.services.query_store import QueryStore
from tests.factories import SleepRecorder


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    configure_logging("WARNING", stream=sys.stderr)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite database file per test.

    A file (rather than :memory: with a shared connection) gives every
    session its own connection, as concurrent polls need.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'adwatch.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> QueryStore:
    return QueryStore(session_factory)


@pytest_asyncio.fixture
async def subscriber(store):
    return await store.upsert_subscriber(1001, "tester")


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()
