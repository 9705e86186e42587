"""Run bookkeeping for the scrape_runs table."""

import traceback
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from opportunity_scraper.models.scrape_run import ScrapeRun
from opportunity_scraper.scrapers.base import RunSummary

logger = structlog.get_logger(__name__)


class ScrapeRunService:
    """Creates and finalizes ScrapeRun records.

    Each call commits and leaves no transaction open, so a run can be
    started in one session and finished in another.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="scrape_run_service")

    async def start_run(self, trigger: str) -> ScrapeRun:
        """Insert a ScrapeRun with status="running"."""
        run = ScrapeRun(
            trigger=trigger,
            status="running",
            started_at=datetime.now(timezone.utc),
        )
        self.db.add(run)
        await self.db.commit()

        self.logger.debug("scrape_run_recorded", run_id=str(run.id), trigger=trigger)
        return run

    async def complete_run(self, run: ScrapeRun, summary: RunSummary) -> ScrapeRun:
        """Mark a run completed and copy the summary counters onto it."""
        self.db.add(run)
        run.status = "completed"
        run.started_at = summary.start_time
        run.completed_at = summary.end_time
        run.duration_seconds = Decimal(str(round(summary.duration, 2)))
        run.feeds_total = summary.total_feeds
        run.items_processed = summary.total_processed
        run.items_saved = summary.total_saved
        run.duplicates = summary.total_duplicates
        run.errors = summary.total_errors
        await self.db.commit()
        return run

    async def fail_run(self, run: ScrapeRun, error: BaseException) -> ScrapeRun:
        """Mark a run failed with the error message and traceback."""
        self.db.add(run)
        end_time = datetime.now(timezone.utc)
        started_at = run.started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=timezone.utc)

        run.status = "failed"
        run.completed_at = end_time
        run.duration_seconds = Decimal(str(round((end_time - started_at).total_seconds(), 2)))
        run.error_message = str(error)
        run.error_traceback = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        await self.db.commit()
        return run
