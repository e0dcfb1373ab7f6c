"""adwatch -- FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from adwatch import __version__
from adwatch.api.v1.router import api_v1_router
from adwatch.config import settings
from adwatch.core.logging import configure_logging
from adwatch.db.session import async_session_factory, create_tables
from adwatch.scrapers.factory import get_extractor_registry
from adwatch.scrapers.polling import PollingService
from adwatch.scrapers.register_extractors import register_all_extractors
from adwatch.scrapers.scheduler import PollingScheduler
from adwatch.services.notifier import build_notifier
from adwatch.services.query_store import QueryStore

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, register extractors and run the scheduler for the app's lifetime."""
    logger.info("app_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    try:
        await create_tables()
        logger.info("database_tables_ready")
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    registry = register_all_extractors(get_extractor_registry())

    scheduler = None
    if settings.ENVIRONMENT != "test":
        store = QueryStore(async_session_factory)
        polling_service = PollingService(store, registry, build_notifier())
        scheduler = PollingScheduler(polling_service, store)
        scheduler.start()
    else:
        logger.info("scheduler_disabled", reason="test_environment")

    app.state.scheduler = scheduler

    yield

    logger.info("app_shutting_down")
    if scheduler:
        scheduler.stop()


app = FastAPI(
    title="adwatch API",
    description="Saved-search monitor for Belarusian classified-ad sites",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Service name, version and where to find health."""
    return {
        "name": "adwatch API",
        "version": __version__,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
