"""Persistence for ingested opportunities.

Handles appending new opportunities and the retention cleanup that
removes aged rows.
"""

from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from opportunity_scraper.core.exceptions import PersistenceError
from opportunity_scraper.models.opportunity import Opportunity
from opportunity_scraper.scrapers.base import NormalizedOpportunity

logger = structlog.get_logger(__name__)

DEFAULT_CLEANUP_BATCH_SIZE = 500


class OpportunityService:
    """Service for writing and expiring opportunities."""

    def __init__(self, db: AsyncSession):
        """Initialize opportunity service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="opportunity_service")

    async def save(self, normalized: NormalizedOpportunity) -> bool:
        """Insert one opportunity and commit.

        Never raises: a failed write is rolled back, logged and reported
        as False so the caller can count it as an error.

        Args:
            normalized: Opportunity produced by the normalizer

        Returns:
            True if the row was committed
        """
        opportunity = Opportunity(
            id=normalized.id,
            title=normalized.title,
            link=normalized.link,
            organization=normalized.organization,
            category=normalized.category,
            provider=normalized.provider,
            application_deadline=normalized.application_deadline,
            location=normalized.location,
            description=normalized.description,
            requirements=list(normalized.requirements),
            benefits=list(normalized.benefits),
            application_process=list(normalized.application_process),
            tags=list(normalized.tags),
            difficulty_level=normalized.difficulty_level,
            match_score=normalized.match_score,
            applicant_count=normalized.applicant_count,
            success_rate=normalized.success_rate,
            published_at=normalized.published_at,
            created_at=normalized.created_at,
        )

        try:
            self.db.add(opportunity)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            self.logger.error(
                "opportunity_save_failed",
                title=normalized.title[:50],
                error=str(e),
            )
            return False

        self.logger.info(
            "opportunity_saved",
            opportunity_id=str(normalized.id),
            title=normalized.title[:50],
            provider=normalized.provider,
        )
        return True

    async def cleanup(
        self,
        retention_days: int,
        batch_size: int = DEFAULT_CLEANUP_BATCH_SIZE,
    ) -> int:
        """Delete one batch of opportunities older than the retention window.

        Only a single batch is removed per call; anything beyond
        batch_size waits for the next cleanup.

        Args:
            retention_days: Age in days after which opportunities are deleted
            batch_size: Maximum rows deleted by this call

        Returns:
            Number of opportunities deleted (0 when none qualify)

        Raises:
            PersistenceError: If the store rejects the query or delete
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        self.logger.info(
            "cleaning_up_opportunities",
            retention_days=retention_days,
            cutoff=cutoff.isoformat(),
            batch_size=batch_size,
        )

        try:
            result = await self.db.execute(
                select(Opportunity.id)
                .where(Opportunity.created_at < cutoff)
                .limit(batch_size)
            )
            ids = list(result.scalars().all())

            if not ids:
                self.logger.info("no_opportunities_to_clean_up")
                return 0

            await self.db.execute(
                delete(Opportunity).where(Opportunity.id.in_(ids))
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            self.logger.error("opportunity_cleanup_failed", error=str(e), exc_info=True)
            raise PersistenceError(f"Cleanup failed: {e}") from e

        self.logger.info("opportunities_cleaned_up", count=len(ids))
        return len(ids)
