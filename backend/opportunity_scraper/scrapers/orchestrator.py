"""Scrape orchestration.

Drives fetch -> validate -> dedup -> normalize -> save across every
registered feed, one feed at a time, and aggregates the counters into a
RunSummary. Failures are isolated per feed and per item.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opportunity_scraper.config import settings
from opportunity_scraper.core.exceptions import FetchError, ItemValidationError, RunInProgressError
from opportunity_scraper.models.scrape_run import ScrapeRun
from opportunity_scraper.scrapers.base import FeedDescriptor, FeedRunResult, RunSummary
from opportunity_scraper.scrapers.feeds import RSS_FEEDS
from opportunity_scraper.scrapers.fetcher import FeedFetcher
from opportunity_scraper.scrapers.utils.normalizer import OpportunityNormalizer
from opportunity_scraper.services.dedup_service import DeduplicationService
from opportunity_scraper.services.opportunity_service import OpportunityService
from opportunity_scraper.services.scrape_run_service import ScrapeRunService

logger = structlog.get_logger(__name__)


class ScrapeOrchestrator:
    """Runs the ingestion pipeline over the feed registry.

    A single asyncio lock guards both scrape runs and retention cleanup:
    the duplicate check is read-then-write, so overlapping runs could
    insert the same opportunity twice. Callers that find the lock held
    get RunInProgressError instead of waiting.
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        fetcher: Optional[FeedFetcher] = None,
        normalizer: Optional[OpportunityNormalizer] = None,
        feeds: Optional[Sequence[FeedDescriptor]] = None,
        max_items_per_feed: Optional[int] = None,
        feed_delay_seconds: Optional[float] = None,
        dedup_factory: Callable[[AsyncSession], DeduplicationService] = DeduplicationService,
        writer_factory: Callable[[AsyncSession], OpportunityService] = OpportunityService,
    ):
        """Initialize the orchestrator.

        Args:
            db_session_factory: Async session factory for store access
            fetcher: Feed fetcher (defaults to one built from settings)
            normalizer: Item normalizer
            feeds: Feed registry to walk (defaults to RSS_FEEDS)
            max_items_per_feed: Items taken per feed (defaults to MAX_OPPORTUNITIES_PER_FEED)
            feed_delay_seconds: Pause between feeds (defaults to FEED_DELAY_SECONDS)
            dedup_factory: Builds the duplicate checker for a session
            writer_factory: Builds the persistence writer for a session
        """
        self.db_session_factory = db_session_factory
        self.fetcher = fetcher or FeedFetcher()
        self.normalizer = normalizer or OpportunityNormalizer()
        self.feeds = tuple(feeds) if feeds is not None else RSS_FEEDS
        self.max_items_per_feed = max_items_per_feed or settings.MAX_OPPORTUNITIES_PER_FEED
        self.feed_delay_seconds = (
            feed_delay_seconds if feed_delay_seconds is not None else settings.FEED_DELAY_SECONDS
        )
        self.dedup_factory = dedup_factory
        self.writer_factory = writer_factory
        self._run_lock = asyncio.Lock()
        self.logger = logger.bind(service="scrape_orchestrator")

    @property
    def is_running(self) -> bool:
        """True while a scrape run or cleanup holds the run lock."""
        return self._run_lock.locked()

    def _ensure_idle(self, operation: str) -> None:
        if self._run_lock.locked():
            self.logger.warning("run_already_in_progress", operation=operation)
            raise RunInProgressError(operation)

    async def scrape_feed(self, feed: FeedDescriptor) -> FeedRunResult:
        """Scrape one feed and store its new opportunities.

        Args:
            feed: Feed to scrape

        Returns:
            FeedRunResult; a feed that cannot be fetched reports errors=1
        """
        result = FeedRunResult(feed_name=feed.name)
        self.logger.info("scraping_feed", feed=feed.name)

        try:
            parsed = await self.fetcher.fetch(feed)
        except FetchError as e:
            self.logger.error("feed_fetch_failed", feed=feed.name, error=str(e))
            result.errors += 1
            return result
        except Exception as e:
            self.logger.error("feed_fetch_failed", feed=feed.name, error=str(e), exc_info=True)
            result.errors += 1
            return result

        items = parsed.items[:self.max_items_per_feed]

        async with self.db_session_factory() as db:
            dedup = self.dedup_factory(db)
            writer = self.writer_factory(db)

            for item in items:
                result.processed += 1
                try:
                    self.normalizer.ensure_valid(item, feed)

                    if await dedup.exists(item.title, item.link):
                        result.duplicates += 1
                        continue

                    opportunity = self.normalizer.normalize(item, feed)
                    if await writer.save(opportunity):
                        result.saved += 1
                    else:
                        result.errors += 1

                except ItemValidationError as e:
                    result.errors += 1
                    self.logger.warning("item_skipped", feed=feed.name, reason=str(e))
                except Exception as e:
                    result.errors += 1
                    self.logger.error(
                        "item_processing_failed",
                        feed=feed.name,
                        title=item.title[:50] if item.title else "unknown",
                        error=str(e),
                        exc_info=True,
                    )
                    # Continue processing other items

        self.logger.info(
            "feed_scraped",
            feed=feed.name,
            processed=result.processed,
            saved=result.saved,
            duplicates=result.duplicates,
            errors=result.errors,
        )
        return result

    async def scrape_all_feeds(self) -> RunSummary:
        """Scrape every registered feed sequentially.

        Returns:
            RunSummary with one FeedRunResult per feed, in registry order

        Raises:
            RunInProgressError: If another run or cleanup is active
        """
        self._ensure_idle("scrape run")
        async with self._run_lock:
            return await self._scrape_all_feeds()

    async def _scrape_all_feeds(self) -> RunSummary:
        start_time = datetime.now(timezone.utc)
        self.logger.info("scrape_run_started", total_feeds=len(self.feeds))

        feed_results = []
        for index, feed in enumerate(self.feeds):
            feed_results.append(await self.scrape_feed(feed))

            # Politeness delay between feeds, not after the last one
            if index < len(self.feeds) - 1 and self.feed_delay_seconds > 0:
                await asyncio.sleep(self.feed_delay_seconds)

        summary = RunSummary.from_results(
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            total_feeds=len(self.feeds),
            feed_results=feed_results,
        )

        self.logger.info(
            "scrape_run_completed",
            duration_seconds=round(summary.duration, 2),
            total_feeds=summary.total_feeds,
            processed=summary.total_processed,
            saved=summary.total_saved,
            duplicates=summary.total_duplicates,
            errors=summary.total_errors,
        )
        return summary

    async def execute_run(self, trigger: str) -> RunSummary:
        """Scrape all feeds and record the outcome in scrape_runs.

        Args:
            trigger: What started the run ("cli", "scheduled", "startup")

        Returns:
            RunSummary of the run

        Raises:
            RunInProgressError: If another run or cleanup is active
            Exception: Whatever made the run itself fail (after recording it)
        """
        self._ensure_idle("scrape run")
        async with self._run_lock:
            run = await self._record(ScrapeRunService.start_run, trigger)

            try:
                summary = await self._scrape_all_feeds()
            except Exception as e:
                if run is not None:
                    await self._record(ScrapeRunService.fail_run, run, e)
                raise

            if run is not None:
                await self._record(ScrapeRunService.complete_run, run, summary)
            return summary

    async def _record(self, action, *args) -> Optional[ScrapeRun]:
        """Run one ScrapeRunService call in its own short session.

        No session stays open while feeds are fetched. Bookkeeping failures
        are logged and return None so they never mask the run's own outcome.
        """
        async with self.db_session_factory() as db:
            try:
                return await action(ScrapeRunService(db), *args)
            except Exception as e:
                await db.rollback()
                self.logger.error("scrape_run_record_failed", action=action.__name__, error=str(e))
                return None

    async def cleanup_old_opportunities(
        self,
        retention_days: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> int:
        """Delete one batch of opportunities older than the retention window.

        Args:
            retention_days: Window in days (defaults to RETENTION_DAYS)
            batch_size: Maximum rows deleted (defaults to CLEANUP_BATCH_SIZE)

        Returns:
            Number of opportunities deleted

        Raises:
            RunInProgressError: If a scrape run is active
            PersistenceError: If the store rejects the cleanup
        """
        self._ensure_idle("cleanup")
        async with self._run_lock:
            async with self.db_session_factory() as db:
                return await self.writer_factory(db).cleanup(
                    retention_days or settings.RETENTION_DAYS,
                    batch_size or settings.CLEANUP_BATCH_SIZE,
                )
