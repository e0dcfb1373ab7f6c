"""Engine and session factory for the configured database."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from adwatch.config import settings
from adwatch.models.base import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool settings suited to the database dialect.

    SQLite connections get foreign key enforcement switched on, so ads of a
    deleted query are rejected there the same way PostgreSQL rejects them.
    """
    engine_kwargs: dict = {"echo": echo}
    # SQLite doesn't support pool_size / max_overflow / pool_pre_ping
    if not database_url.startswith("sqlite"):
        engine_kwargs.update(pool_size=10, max_overflow=5, pool_pre_ping=True)
    engine = create_async_engine(database_url, **engine_kwargs)
    if database_url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables(target: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    import adwatch.models  # noqa: F401  (registers every table on Base.metadata)

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
