"""Persistence gateway for subscribers, tracked queries and seen ads.

Every operation opens its own short-lived session, so the polling service
can run a whole batch of queries concurrently without sharing a session
between tasks. Storage failures surface as PersistenceUnavailable.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from adwatch.core.exceptions import NotFoundError, PersistenceUnavailable
from adwatch.models.ad import Ad
from adwatch.models.subscriber import Subscriber
from adwatch.models.tracked_query import TrackedQuery
from adwatch.scrapers.base import NormalizedAd

logger = structlog.get_logger(__name__)


class QueryStore:
    """Storage operations used by polling, registration and the API.

    Args:
        session_factory: async_sessionmaker bound to the application engine
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory
        self.logger = logger.bind(service="query_store")

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            self.logger.error("persistence_unavailable", operation=operation, error=str(e))
            raise PersistenceUnavailable(operation, str(e)) from e

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    async def upsert_subscriber(self, chat_id: int, username: Optional[str] = None) -> Subscriber:
        """Create a subscriber for a chat id, or refresh an existing one.

        A returning subscriber is unblocked: reaching us again means the
        transport accepts messages for them.
        """
        async with self._session("upsert_subscriber") as session:
            result = await session.execute(select(Subscriber).where(Subscriber.chat_id == chat_id))
            subscriber = result.scalar_one_or_none()

            if subscriber:
                subscriber.username = username or subscriber.username
                subscriber.is_blocked = False
            else:
                subscriber = Subscriber(chat_id=chat_id, username=username, is_blocked=False)
                session.add(subscriber)
                self.logger.info("subscriber_created", chat_id=chat_id)

            await session.commit()
            await session.refresh(subscriber)
            return subscriber

    async def get_subscriber(self, subscriber_id: UUID) -> Optional[Subscriber]:
        async with self._session("get_subscriber") as session:
            return await session.get(Subscriber, subscriber_id)

    async def get_subscriber_by_chat_id(self, chat_id: int) -> Optional[Subscriber]:
        async with self._session("get_subscriber_by_chat_id") as session:
            result = await session.execute(select(Subscriber).where(Subscriber.chat_id == chat_id))
            return result.scalar_one_or_none()

    async def mark_subscriber_blocked(self, subscriber_id: UUID) -> None:
        async with self._session("mark_subscriber_blocked") as session:
            await session.execute(
                update(Subscriber).where(Subscriber.id == subscriber_id).values(is_blocked=True)
            )
            await session.commit()
        self.logger.info("subscriber_blocked", subscriber_id=str(subscriber_id))

    # ------------------------------------------------------------------
    # Tracked queries
    # ------------------------------------------------------------------

    async def list_active_queries(self) -> List[TrackedQuery]:
        """Active queries whose owner still accepts messages, oldest first."""
        async with self._session("list_active_queries") as session:
            result = await session.execute(
                select(TrackedQuery)
                .join(TrackedQuery.owner)
                .where(and_(TrackedQuery.is_active.is_(True), Subscriber.is_blocked.is_(False)))
                .options(selectinload(TrackedQuery.owner))
                .order_by(TrackedQuery.created_at)
            )
            return list(result.scalars().all())

    async def list_queries(self, owner_id: UUID) -> List[TrackedQuery]:
        async with self._session("list_queries") as session:
            result = await session.execute(
                select(TrackedQuery)
                .where(TrackedQuery.owner_id == owner_id)
                .order_by(TrackedQuery.created_at)
            )
            return list(result.scalars().all())

    async def count_queries(self, owner_id: UUID) -> int:
        async with self._session("count_queries") as session:
            result = await session.execute(
                select(func.count(TrackedQuery.id)).where(TrackedQuery.owner_id == owner_id)
            )
            return result.scalar_one()

    async def find_query(self, owner_id: UUID, url: str) -> Optional[TrackedQuery]:
        async with self._session("find_query") as session:
            result = await session.execute(
                select(TrackedQuery).where(
                    and_(TrackedQuery.owner_id == owner_id, TrackedQuery.url == url)
                )
            )
            return result.scalar_one_or_none()

    async def get_query(self, query_id: UUID) -> TrackedQuery:
        """Get a tracked query by id.

        Raises:
            NotFoundError: No such query
        """
        async with self._session("get_query") as session:
            query = await session.get(TrackedQuery, query_id)
        if query is None:
            raise NotFoundError("TrackedQuery", str(query_id))
        return query

    async def create_query(
        self,
        owner_id: UUID,
        url: str,
        platform: str,
        initial_ads: Optional[List[NormalizedAd]] = None,
    ) -> TrackedQuery:
        """Persist a new active query, optionally seeding its seen ads.

        Seeding happens in the same transaction, so the first poll does
        not announce ads the subscriber already saw in the preview.
        """
        async with self._session("create_query") as session:
            query = TrackedQuery(
                owner_id=owner_id,
                url=url,
                platform=platform,
                is_active=True,
                failure_count=0,
            )
            session.add(query)
            await session.flush()

            seen = set()
            for ad in initial_ads or []:
                if ad.external_id in seen:
                    continue
                seen.add(ad.external_id)
                session.add(Ad(query_id=query.id, **ad.to_dict()))

            await session.commit()
            await session.refresh(query)

        self.logger.info(
            "query_created",
            query_id=str(query.id),
            platform=platform,
            seeded_ads=len(seen),
        )
        return query

    async def delete_query(self, query_id: UUID) -> None:
        async with self._session("delete_query") as session:
            query = await session.get(TrackedQuery, query_id)
            if query is None:
                raise NotFoundError("TrackedQuery", str(query_id))
            await session.delete(query)
            await session.commit()
        self.logger.info("query_deleted", query_id=str(query_id))

    async def record_poll(self, query_id: UUID) -> None:
        await self._update_query("record_poll", query_id, last_polled_at=datetime.now(timezone.utc))

    async def reset_failures(self, query_id: UUID) -> None:
        await self._update_query("reset_failures", query_id, failure_count=0)

    async def increment_failures(self, query_id: UUID) -> int:
        """Increment the consecutive failure counter.

        Returns:
            The counter value after the increment, or 0 when the query was
            deleted in the meantime
        """
        async with self._session("increment_failures") as session:
            await session.execute(
                update(TrackedQuery)
                .where(TrackedQuery.id == query_id)
                .values(failure_count=TrackedQuery.failure_count + 1)
            )
            result = await session.execute(
                select(TrackedQuery.failure_count).where(TrackedQuery.id == query_id)
            )
            count = result.scalar_one_or_none()
            await session.commit()

        if count is None:
            self.logger.info("query_vanished", query_id=str(query_id), operation="increment_failures")
            return 0
        return count

    async def deactivate(self, query_id: UUID) -> None:
        await self._update_query("deactivate", query_id, is_active=False)

    async def reactivate(self, query_id: UUID) -> TrackedQuery:
        """Set a query active again with a cleared failure counter.

        Raises:
            NotFoundError: No such query
        """
        async with self._session("reactivate") as session:
            query = await session.get(TrackedQuery, query_id)
            if query is None:
                raise NotFoundError("TrackedQuery", str(query_id))
            query.is_active = True
            query.failure_count = 0
            await session.commit()
            await session.refresh(query)

        self.logger.info("query_reactivated", query_id=str(query_id))
        return query

    async def _update_query(self, operation: str, query_id: UUID, **values) -> None:
        async with self._session(operation) as session:
            await session.execute(
                update(TrackedQuery).where(TrackedQuery.id == query_id).values(**values)
            )
            await session.commit()

    # ------------------------------------------------------------------
    # Ads
    # ------------------------------------------------------------------

    async def insert_ad_if_absent(self, query_id: UUID, ad: NormalizedAd) -> Tuple[bool, Optional[Ad]]:
        """Store an ad unless (query_id, external_id) already exists.

        Safe to call concurrently for the same pair: the unique constraint
        decides, and exactly one caller sees inserted=True. An ad for a query
        deleted in the meantime is rejected by the foreign key and reported
        as not inserted.

        Returns:
            (inserted, persisted row); the row is None when nothing was inserted
        """
        values = {"query_id": query_id, **ad.to_dict()}

        async with self._session("insert_ad_if_absent") as session:
            dialect = session.get_bind().dialect.name
            try:
                if dialect in ("sqlite", "postgresql"):
                    insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
                    stmt = (
                        insert(Ad)
                        .values(**values)
                        .on_conflict_do_nothing(index_elements=[Ad.query_id, Ad.external_id])
                    )
                    result = await session.execute(stmt)
                    inserted = result.rowcount == 1
                else:
                    session.add(Ad(**values))
                    inserted = True
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if dialect in ("sqlite", "postgresql"):
                    self.logger.info(
                        "query_vanished",
                        query_id=str(query_id),
                        operation="insert_ad_if_absent",
                        error=str(e.orig),
                    )
                inserted = False

            if not inserted:
                return False, None

            row = await session.execute(
                select(Ad).where(and_(Ad.query_id == query_id, Ad.external_id == ad.external_id))
            )
            return True, row.scalar_one()

    async def recent_ads(self, query_id: UUID, limit: int = 5) -> List[Ad]:
        async with self._session("recent_ads") as session:
            result = await session.execute(
                select(Ad)
                .where(Ad.query_id == query_id)
                .order_by(Ad.published_at.desc().nulls_last(), Ad.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def prune_ads_older_than(self, days: int) -> int:
        """Delete ads first seen more than `days` ago.

        Returns:
            Number of deleted rows
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        async with self._session("prune_ads") as session:
            result = await session.execute(delete(Ad).where(Ad.created_at < cutoff))
            await session.commit()
            deleted = result.rowcount or 0

        self.logger.info("ads_pruned", days=days, deleted=deleted)
        return deleted
