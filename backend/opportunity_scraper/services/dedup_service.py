"""Duplicate detection against stored opportunities."""

import structlog
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from opportunity_scraper.models.opportunity import Opportunity

logger = structlog.get_logger(__name__)


class DeduplicationService:
    """Checks whether a (title, link) pair has already been ingested.

    This is a read-before-write check, not a transaction: two runs
    interleaving between exists() and save() could both insert. Runs are
    serialized by the orchestrator's run lock instead.
    """

    def __init__(self, db: AsyncSession):
        """Initialize deduplication service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="dedup_service")

    async def exists(self, title: str, link: str) -> bool:
        """Return True if an opportunity with this exact title and link is stored.

        A failed lookup is logged and reported as "not stored"; the
        following save decides whether the item ends up as an error.
        """
        try:
            result = await self.db.execute(
                select(Opportunity.id)
                .where(and_(
                    Opportunity.title == title,
                    Opportunity.link == link,
                ))
                .limit(1)
            )
            return result.first() is not None
        except Exception as e:
            self.logger.error(
                "duplicate_check_failed",
                title=title[:50],
                error=str(e),
            )
            await self.db.rollback()
            return False
