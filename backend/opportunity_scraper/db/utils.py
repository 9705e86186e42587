"""Database bootstrap helpers."""

from sqlalchemy.ext.asyncio import AsyncEngine

from opportunity_scraper.models import Base


async def init_db(engine: AsyncEngine) -> None:
    """Create the opportunities and scrape_runs tables if they are missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
