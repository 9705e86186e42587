"""Tests for the store-facing services.

Tests cover:
- Duplicate detection on the (title, link) pair
- Saving normalized opportunities
- Retention cleanup and its batch cap
- Scrape run bookkeeping
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Text, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from opportunity_scraper.core.exceptions import PersistenceError
from opportunity_scraper.models import Opportunity, ScrapeRun
from opportunity_scraper.scrapers.base import FeedRunResult, NormalizedOpportunity, RawFeedItem, RunSummary
from opportunity_scraper.scrapers.utils.normalizer import OpportunityNormalizer
from opportunity_scraper.services.dedup_service import DeduplicationService
from opportunity_scraper.services.opportunity_service import OpportunityService
from opportunity_scraper.services.scrape_run_service import ScrapeRunService


def make_normalized(**overrides) -> NormalizedOpportunity:
    data = dict(
        title="Global Leaders Scholarship",
        link="https://a.example.org/p/1",
        organization="a.example",
        category="Scholarship",
        provider="a.example.org",
        created_at=datetime.now(timezone.utc),
        application_deadline="30 June 2025",
        requirements=["bachelor's degree"],
        benefits=["stipend"],
        application_process=["Visit the link for detailed application instructions"],
    )
    data.update(overrides)
    return NormalizedOpportunity(**data)


async def count_opportunities(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(Opportunity))
    return result.scalar_one()


# ============================================================================
# DEDUPLICATION
# ============================================================================

class TestDeduplicationService:
    """Test duplicate detection."""

    async def test_exists_for_stored_pair(self, test_db, store_opportunity):
        await store_opportunity("Scholarship A", "https://a.example.org/a")

        assert await DeduplicationService(test_db).exists("Scholarship A", "https://a.example.org/a")

    async def test_requires_both_fields_to_match(self, test_db, store_opportunity):
        await store_opportunity("Scholarship A", "https://a.example.org/a")
        dedup = DeduplicationService(test_db)

        assert not await dedup.exists("Scholarship A", "https://a.example.org/other")
        assert not await dedup.exists("Scholarship B", "https://a.example.org/a")

    async def test_empty_store(self, test_db):
        assert not await DeduplicationService(test_db).exists("Anything", "https://x")

    async def test_lookup_failure_reported_as_not_stored(self):
        db = MagicMock(spec=AsyncSession)
        db.execute = AsyncMock(side_effect=RuntimeError("connection lost"))
        db.rollback = AsyncMock()

        assert await DeduplicationService(db).exists("T", "https://x") is False
        db.rollback.assert_awaited_once()


# ============================================================================
# PERSISTENCE
# ============================================================================

class TestOpportunityService:
    """Test saving and cleaning up opportunities."""

    async def test_save_inserts_row(self, test_db):
        normalized = make_normalized()

        assert await OpportunityService(test_db).save(normalized) is True

        stored = await test_db.get(Opportunity, normalized.id)
        assert stored is not None
        assert stored.title == normalized.title
        assert stored.application_deadline == "30 June 2025"
        assert stored.requirements == ["bachelor's degree"]
        assert stored.tags == []
        assert stored.match_score is None
        assert stored.difficulty_level == "Medium"

    async def test_save_keeps_long_extracted_text(self, test_db, feed_a):
        filler = "and applicants from every region are welcome " * 15
        item = RawFeedItem(
            title="Rolling Fellowship",
            link="https://a.example.org/rolling",
            content_snippet=f"Deadline: rolling basis {filler}. Location: anywhere {filler}.",
        )
        normalized = OpportunityNormalizer().normalize(item, feed_a)
        assert len(normalized.application_deadline) > 500
        assert len(normalized.location) > 500

        assert await OpportunityService(test_db).save(normalized) is True

        stored = await test_db.get(Opportunity, normalized.id)
        assert stored.application_deadline == normalized.application_deadline
        assert stored.location == normalized.location

    def test_free_text_columns_are_unbounded(self):
        columns = Opportunity.__table__.c
        assert isinstance(columns.application_deadline.type, Text)
        assert isinstance(columns.location.type, Text)

    async def test_save_then_exists(self, test_db):
        normalized = make_normalized()
        await OpportunityService(test_db).save(normalized)

        assert await DeduplicationService(test_db).exists(normalized.title, normalized.link)

    async def test_save_failure_returns_false(self):
        db = MagicMock(spec=AsyncSession)
        db.commit = AsyncMock(side_effect=RuntimeError("store unavailable"))
        db.rollback = AsyncMock()

        assert await OpportunityService(db).save(make_normalized()) is False
        db.rollback.assert_awaited_once()

    async def test_cleanup_deletes_only_aged_rows(self, test_db, store_opportunity):
        now = datetime.now(timezone.utc)
        await store_opportunity("Old 1", "https://x/1", created_at=now - timedelta(days=120))
        await store_opportunity("Old 2", "https://x/2", created_at=now - timedelta(days=91))
        await store_opportunity("Recent", "https://x/3", created_at=now - timedelta(days=10))

        deleted = await OpportunityService(test_db).cleanup(90)

        assert deleted == 2
        assert await count_opportunities(test_db) == 1
        assert await DeduplicationService(test_db).exists("Recent", "https://x/3")

    async def test_cleanup_returns_zero_when_nothing_qualifies(self, test_db, store_opportunity):
        await store_opportunity("Recent", "https://x/3")

        assert await OpportunityService(test_db).cleanup(90) == 0
        assert await count_opportunities(test_db) == 1

    async def test_cleanup_deletes_single_batch_of_500(self, test_db, store_opportunity):
        old = datetime.now(timezone.utc) - timedelta(days=200)
        for i in range(501):
            await store_opportunity(f"Old {i}", f"https://x/{i}", created_at=old, commit=False)
        await test_db.commit()

        service = OpportunityService(test_db)

        assert await service.cleanup(90) == 500
        assert await count_opportunities(test_db) == 1
        assert await service.cleanup(90) == 1

    async def test_cleanup_custom_batch_size(self, test_db, store_opportunity):
        old = datetime.now(timezone.utc) - timedelta(days=200)
        for i in range(5):
            await store_opportunity(f"Old {i}", f"https://x/{i}", created_at=old, commit=False)
        await test_db.commit()

        assert await OpportunityService(test_db).cleanup(90, batch_size=3) == 3

    async def test_cleanup_failure_raises(self):
        db = MagicMock(spec=AsyncSession)
        db.execute = AsyncMock(side_effect=RuntimeError("store unavailable"))
        db.rollback = AsyncMock()

        with pytest.raises(PersistenceError):
            await OpportunityService(db).cleanup(90)
        db.rollback.assert_awaited_once()


# ============================================================================
# RUN BOOKKEEPING
# ============================================================================

class TestScrapeRunService:
    """Test ScrapeRun records."""

    async def test_start_and_complete_run(self, test_db):
        service = ScrapeRunService(test_db)
        run = await service.start_run("cli")
        assert run.status == "running"

        start = datetime.now(timezone.utc)
        summary = RunSummary.from_results(
            start_time=start,
            end_time=start + timedelta(seconds=3.456),
            total_feeds=2,
            feed_results=[
                FeedRunResult("Feed A", processed=3, saved=2, duplicates=1),
                FeedRunResult("Feed B", errors=1),
            ],
        )
        await service.complete_run(run, summary)

        stored = await test_db.get(ScrapeRun, run.id)
        assert stored.status == "completed"
        assert stored.trigger == "cli"
        assert stored.duration_seconds == Decimal("3.46")
        assert stored.feeds_total == 2
        assert stored.items_processed == 3
        assert stored.items_saved == 2
        assert stored.duplicates == 1
        assert stored.errors == 1

    async def test_fail_run_records_error(self, test_db):
        service = ScrapeRunService(test_db)
        run = await service.start_run("scheduled")

        try:
            raise RuntimeError("database went away")
        except RuntimeError as e:
            await service.fail_run(run, e)

        stored = await test_db.get(ScrapeRun, run.id)
        assert stored.status == "failed"
        assert stored.error_message == "database went away"
        assert "RuntimeError" in stored.error_traceback
        assert stored.completed_at is not None
