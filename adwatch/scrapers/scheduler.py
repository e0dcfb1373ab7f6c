"""APScheduler-based polling scheduler.

Runs one polling cycle per interval, plus a daily job pruning old ads.
Cycles never overlap: a tick that fires while the previous cycle is still
running is skipped with a warning.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from adwatch.config import settings
from adwatch.scrapers.polling import CycleReport, PollingService
from adwatch.services.query_store import QueryStore

logger = structlog.get_logger(__name__)


POLL_JOB_ID = "poll_queries"
RETENTION_JOB_ID = "prune_ads"


class PollingScheduler:
    """Manages the periodic polling and retention jobs.

    Args:
        polling_service: Service running one polling cycle
        store: Persistence gateway used by the retention job
        interval_seconds: Time between polling cycles
        retention_days: Age after which stored ads are pruned
    """

    def __init__(
        self,
        polling_service: PollingService,
        store: QueryStore,
        interval_seconds: Optional[int] = None,
        retention_days: Optional[int] = None,
    ):
        self.polling_service = polling_service
        self.store = store
        self.interval_seconds = interval_seconds or settings.POLL_INTERVAL_SECONDS
        self.retention_days = retention_days or settings.AD_RETENTION_DAYS
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="polling_scheduler")
        self._cycle_running = False
        self.last_report: Optional[CycleReport] = None

    def start(self) -> None:
        """Start the scheduler; the first cycle runs immediately."""
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        now = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds, start_date=now, timezone="UTC"),
            id=POLL_JOB_ID,
            name="Poll tracked queries",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=now,
        )
        self.scheduler.add_job(
            func=self.prune,
            trigger=IntervalTrigger(days=1, start_date=now + timedelta(hours=1), timezone="UTC"),
            id=RETENTION_JOB_ID,
            name="Prune old ads",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self.logger.info(
            "scheduler_started",
            interval_seconds=self.interval_seconds,
            retention_days=self.retention_days,
        )

    def stop(self) -> None:
        """Stop the scheduler, letting a running cycle finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    async def tick(self) -> Optional[CycleReport]:
        """Run one polling cycle unless one is already in progress.

        Catches all exceptions so a failed cycle never stops the scheduler.

        Returns:
            The cycle report, or None when skipped or failed
        """
        if self._cycle_running:
            self.logger.warning("poll_cycle_skipped", reason="previous_cycle_running")
            return None

        self._cycle_running = True
        try:
            report = await self.polling_service.run_cycle()
            self.last_report = report
            return report
        except Exception as e:
            self.logger.error("poll_cycle_failed", error=str(e), exc_info=True)
            return None
        finally:
            self._cycle_running = False

    async def prune(self) -> int:
        """Delete ads older than the retention period."""
        try:
            return await self.store.prune_ads_older_than(self.retention_days)
        except Exception as e:
            self.logger.error("prune_job_failed", error=str(e), exc_info=True)
            return 0

    @property
    def cycle_running(self) -> bool:
        return self._cycle_running

    def get_jobs_status(self) -> dict:
        """Get status of the scheduled jobs.

        Returns:
            Dict with job information keyed by job id
        """
        jobs = {}
        for job_id in (POLL_JOB_ID, RETENTION_JOB_ID):
            job = self.scheduler.get_job(job_id)
            if job:
                jobs[job_id] = {
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
        return jobs

    def is_running(self) -> bool:
        return self.scheduler.running
