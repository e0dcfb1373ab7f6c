"""FastAPI dependencies: sessions, the query store and services."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from adwatch.db.session import async_session_factory
from adwatch.scrapers.factory import get_extractor_registry
from adwatch.scrapers.scheduler import PollingScheduler
from adwatch.services.query_store import QueryStore
from adwatch.services.registration import RegistrationService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, committed on success and rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_query_store() -> QueryStore:
    return QueryStore(async_session_factory)


def get_registration_service(store: QueryStore = Depends(get_query_store)) -> RegistrationService:
    return RegistrationService(store, get_extractor_registry())


def get_scheduler(request: Request) -> Optional[PollingScheduler]:
    """The scheduler started by the application lifespan, if any."""
    return getattr(request.app.state, "scheduler", None)
