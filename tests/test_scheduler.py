"""Tests for the polling scheduler."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from adwatch.core.exceptions import PersistenceUnavailable
from adwatch.scrapers.polling import CycleReport
from adwatch.scrapers.scheduler import POLL_JOB_ID, RETENTION_JOB_ID, PollingScheduler


@pytest.fixture
def polling_service():
    service = MagicMock()
    service.run_cycle = AsyncMock(return_value=CycleReport(started_at=datetime.now(timezone.utc)))
    return service


@pytest.fixture
def store():
    store = MagicMock()
    store.prune_ads_older_than = AsyncMock(return_value=3)
    return store


@pytest.fixture
def scheduler(polling_service, store):
    return PollingScheduler(polling_service, store, interval_seconds=120, retention_days=30)


class TestTick:

    async def test_runs_cycle_and_keeps_report(self, scheduler, polling_service):
        report = await scheduler.tick()

        assert report is polling_service.run_cycle.return_value
        assert scheduler.last_report is report
        assert scheduler.cycle_running is False

    async def test_overlapping_tick_is_skipped(self, scheduler, polling_service):
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_cycle():
            started.set()
            await release.wait()
            return CycleReport(started_at=datetime.now(timezone.utc))

        polling_service.run_cycle = AsyncMock(side_effect=slow_cycle)

        first = asyncio.create_task(scheduler.tick())
        await started.wait()

        assert scheduler.cycle_running is True
        assert await scheduler.tick() is None

        release.set()
        assert await first is not None
        assert polling_service.run_cycle.await_count == 1
        assert scheduler.cycle_running is False

    async def test_failed_cycle_does_not_escape(self, scheduler, polling_service):
        polling_service.run_cycle.side_effect = PersistenceUnavailable("list_active_queries", "down")

        assert await scheduler.tick() is None
        assert scheduler.cycle_running is False

        polling_service.run_cycle.side_effect = None
        assert await scheduler.tick() is not None


class TestPrune:

    async def test_prune_uses_retention(self, scheduler, store):
        assert await scheduler.prune() == 3
        store.prune_ads_older_than.assert_awaited_once_with(30)

    async def test_prune_failure_is_logged(self, scheduler, store):
        store.prune_ads_older_than.side_effect = PersistenceUnavailable("prune_ads", "down")

        assert await scheduler.prune() == 0


class TestLifecycle:

    async def test_start_registers_jobs(self, scheduler):
        scheduler.start()
        try:
            assert scheduler.is_running() is True
            jobs = scheduler.get_jobs_status()
            assert set(jobs) == {POLL_JOB_ID, RETENTION_JOB_ID}
            assert jobs[POLL_JOB_ID]["next_run"] is not None
        finally:
            scheduler.stop()

        # shutdown is dispatched onto the event loop
        await asyncio.sleep(0.01)
        assert scheduler.is_running() is False

    def test_defaults_come_from_settings(self, polling_service, store):
        from adwatch.config import settings

        scheduler = PollingScheduler(polling_service, store)

        assert scheduler.interval_seconds == settings.POLL_INTERVAL_SECONDS
        assert scheduler.retention_days == settings.AD_RETENTION_DAYS
