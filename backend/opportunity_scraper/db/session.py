"""Async database engine and session factory.

One short-lived session is opened per feed and per run-record update, so
the pool only needs a handful of connections.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from opportunity_scraper.config import settings


def engine_options(database_url: str) -> dict:
    """Build create_async_engine keyword arguments for a database URL.

    SQLite doesn't support pool_size / max_overflow / pool_pre_ping.
    """
    options: dict = {"echo": settings.DEBUG}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
