"""Polling cycle: fetch every active query, store new ads, notify owners.

One cycle loads the active queries, polls them in batches (queries inside a
batch run concurrently, batches run one after another with a short pause),
and for each successful poll stores the ads it has not seen before and
announces the most recent of them.

A failing query never blocks the others. Its consecutive failure counter
is incremented and the query is deactivated once the counter reaches the
threshold. A successful poll, including one with zero results, resets the
counter.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from adwatch.config import settings
from adwatch.core.exceptions import (
    ExtractionError,
    MalformedResponseError,
    NotificationError,
    PersistenceUnavailable,
    RecipientUnavailable,
)
from adwatch.models.ad import Ad
from adwatch.models.tracked_query import TrackedQuery
from adwatch.scrapers.base import NormalizedAd
from adwatch.scrapers.factory import ExtractorRegistry
from adwatch.services.notifier import Notifier
from adwatch.services.query_store import QueryStore

logger = structlog.get_logger(__name__)


@dataclass
class QueryOutcome:
    """Result of polling one tracked query."""

    query_id: Any
    succeeded: bool
    ads_found: int = 0
    new_ads: int = 0
    notified: int = 0
    failure_count: int = 0
    deactivated: bool = False
    error: Optional[Dict[str, Any]] = None


@dataclass
class CycleReport:
    """Summary of one polling cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    queries_total: int = 0
    succeeded: int = 0
    failed: int = 0
    deactivated: int = 0
    new_ads: int = 0
    notified: int = 0
    outcomes: List[QueryOutcome] = field(default_factory=list)

    def add(self, outcome: QueryOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1
        if outcome.deactivated:
            self.deactivated += 1
        self.new_ads += outcome.new_ads
        self.notified += outcome.notified

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "queries_total": self.queries_total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "deactivated": self.deactivated,
            "new_ads": self.new_ads,
            "notified": self.notified,
        }


def select_for_notification(ads: Sequence[NormalizedAd], cap: int) -> List[NormalizedAd]:
    """Pick the `cap` most recently published ads, oldest of them first.

    Ads without a publication time sort before all others.
    """
    if cap <= 0:
        return []
    ordered = sorted(ads, key=lambda ad: ad.published_at.timestamp() if ad.published_at else 0)
    return ordered[-cap:]


class PollingService:
    """Runs polling cycles over all active tracked queries.

    Args:
        store: Persistence gateway
        registry: Extractor registry
        notifier: Notification gateway
        sleep: Coroutine used for pauses (tests inject a no-op)
    """

    def __init__(
        self,
        store: QueryStore,
        registry: ExtractorRegistry,
        notifier: Notifier,
        batch_size: Optional[int] = None,
        batch_pause_seconds: Optional[float] = None,
        deactivation_threshold: Optional[int] = None,
        notify_cap: Optional[int] = None,
        notify_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.registry = registry
        self.notifier = notifier
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.batch_pause_seconds = (
            batch_pause_seconds if batch_pause_seconds is not None else settings.BATCH_PAUSE_SECONDS
        )
        self.deactivation_threshold = deactivation_threshold or settings.DEACTIVATION_THRESHOLD
        self.notify_cap = notify_cap if notify_cap is not None else settings.NOTIFY_CAP
        self.notify_delay_seconds = (
            notify_delay_seconds if notify_delay_seconds is not None else settings.NOTIFY_DELAY_SECONDS
        )
        self._sleep = sleep
        self.logger = logger.bind(service="polling_service")

    async def run_cycle(self) -> CycleReport:
        """Poll every active query once.

        Returns:
            CycleReport with per-query outcomes

        Raises:
            PersistenceUnavailable: Loading queries or recording results failed;
                the cycle is abandoned and the next tick starts over
        """
        report = CycleReport(started_at=datetime.now(timezone.utc))

        queries = await self.store.list_active_queries()
        report.queries_total = len(queries)
        self.logger.info("poll_cycle_started", queries=len(queries))

        for start in range(0, len(queries), self.batch_size):
            if start:
                await self._sleep(self.batch_pause_seconds)

            batch = queries[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self.poll_query(query) for query in batch),
                return_exceptions=True,
            )

            for query, result in zip(batch, results):
                if isinstance(result, PersistenceUnavailable):
                    raise result
                if isinstance(result, BaseException):
                    self.logger.error(
                        "query_poll_crashed",
                        query_id=str(query.id),
                        platform=query.platform,
                        error=str(result),
                        exc_info=result,
                    )
                    report.add(QueryOutcome(query_id=query.id, succeeded=False))
                    continue
                report.add(result)

        report.finished_at = datetime.now(timezone.utc)
        self.logger.info("poll_cycle_completed", **report.to_dict())
        return report

    async def poll_query(self, query: TrackedQuery) -> QueryOutcome:
        """Poll one query and process its result.

        Extraction errors are handled here and turn into a failed outcome.
        Anything else an extractor raises is a payload it could not digest
        and counts as a malformed response. Persistence errors propagate.
        """
        extractor = self.registry.get(query.platform)

        try:
            if extractor is None:
                raise ExtractionError(query.platform, "no extractor registered", url=query.url)
            ads = await extractor.extract(query.url)
        except ExtractionError as e:
            await self.store.record_poll(query.id)
            return await self._record_failure(query, e)
        except Exception as e:
            self.logger.error(
                "extractor_crashed",
                query_id=str(query.id),
                platform=query.platform,
                error=str(e),
                exc_info=e,
            )
            await self.store.record_poll(query.id)
            error = MalformedResponseError(
                query.platform, f"unexpected {type(e).__name__}: {e}", url=query.url
            )
            return await self._record_failure(query, error)

        await self.store.record_poll(query.id)
        await self.store.reset_failures(query.id)

        new_ads: List[Tuple[NormalizedAd, Ad]] = []
        for ad in ads:
            inserted, row = await self.store.insert_ad_if_absent(query.id, ad)
            if inserted:
                new_ads.append((ad, row))

        notified = await self._deliver(query, new_ads)

        self.logger.info(
            "query_polled",
            query_id=str(query.id),
            platform=query.platform,
            ads_found=len(ads),
            new_ads=len(new_ads),
            notified=notified,
        )
        return QueryOutcome(
            query_id=query.id,
            succeeded=True,
            ads_found=len(ads),
            new_ads=len(new_ads),
            notified=notified,
        )

    async def _record_failure(self, query: TrackedQuery, error: ExtractionError) -> QueryOutcome:
        failure_count = await self.store.increment_failures(query.id)
        details = error.to_dict(query_id=query.id)

        self.logger.warning(
            "query_poll_failed",
            failure_count=failure_count,
            threshold=self.deactivation_threshold,
            **details,
        )

        deactivated = failure_count >= self.deactivation_threshold
        if deactivated:
            await self.store.deactivate(query.id)
            self.logger.warning(
                "query_deactivated",
                query_id=str(query.id),
                platform=query.platform,
                failure_count=failure_count,
            )

        return QueryOutcome(
            query_id=query.id,
            succeeded=False,
            failure_count=failure_count,
            deactivated=deactivated,
            error=details,
        )

    async def _deliver(self, query: TrackedQuery, new_ads: List[Tuple[NormalizedAd, Ad]]) -> int:
        """Notify the query owner about the most recent new ads.

        Args:
            query: Query the ads were found for
            new_ads: Extracted ads paired with the rows just stored for them

        Returns:
            Number of ads delivered
        """
        rows = {ad.external_id: row for ad, row in new_ads}
        selected = select_for_notification([ad for ad, _ in new_ads], self.notify_cap)
        if not selected:
            return 0

        chat_id = query.owner.chat_id
        delivered = 0

        for index, ad in enumerate(selected):
            if index:
                await self._sleep(self.notify_delay_seconds)
            try:
                await self.notifier.notify(chat_id, rows[ad.external_id])
            except RecipientUnavailable as e:
                self.logger.warning(
                    "recipient_unavailable",
                    query_id=str(query.id),
                    owner_id=str(query.owner_id),
                    error=str(e),
                )
                await self.store.mark_subscriber_blocked(query.owner_id)
                break
            except NotificationError as e:
                self.logger.error(
                    "notification_failed",
                    query_id=str(query.id),
                    external_id=ad.external_id,
                    error=str(e),
                )
                continue
            delivered += 1

        if len(new_ads) > len(selected):
            self.logger.info(
                "notifications_capped",
                query_id=str(query.id),
                new_ads=len(new_ads),
                delivered=delivered,
            )
        return delivered
