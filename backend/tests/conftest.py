"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Dict, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from opportunity_scraper.core.exceptions import FetchError
from opportunity_scraper.models import Base, Opportunity
from opportunity_scraper.scrapers.base import FeedDescriptor, ParsedFeed, RawFeedItem


class StubFetcher:
    """Serves canned ParsedFeeds (or raises) keyed by feed name."""

    def __init__(self, responses: Dict[str, Union[ParsedFeed, Exception]]):
        self.responses = responses
        self.calls = []

    async def fetch(self, feed: FeedDescriptor) -> ParsedFeed:
        self.calls.append(feed.name)
        response = self.responses.get(feed.name)
        if response is None:
            raise FetchError(feed.name, "no canned response")
        if isinstance(response, Exception):
            raise response
        return response


@pytest_asyncio.fixture
async def session_factory():
    """Create an in-memory SQLite database and return its session factory."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory):
    """A single session on the in-memory database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed_a() -> FeedDescriptor:
    return FeedDescriptor(
        name="Feed A",
        url="https://a.example.org/feed/",
        category="Scholarship",
        provider="a.example.org",
    )


@pytest.fixture
def feed_b() -> FeedDescriptor:
    return FeedDescriptor(
        name="Feed B",
        url="https://b.example.com/feed/",
        category="Fellowship",
        provider="b.example.com",
    )


@pytest.fixture
def make_item():
    """Factory for RawFeedItems with sensible defaults."""

    def _make(title="Global Leaders Scholarship", link="https://a.example.org/p/1", **kwargs):
        kwargs.setdefault("content_snippet", "Fully funded scholarship. Deadline: 30 June 2025.")
        kwargs.setdefault("content", "<p>Fully funded scholarship.</p><p>Deadline: 30 June 2025.</p>")
        return RawFeedItem(title=title, link=link, **kwargs)

    return _make


@pytest.fixture
def stub_fetcher():
    """Build a StubFetcher from a {feed name: ParsedFeed | Exception} mapping."""
    return StubFetcher


@pytest.fixture
def store_opportunity(test_db: AsyncSession):
    """Insert an Opportunity row directly, bypassing the services."""

    async def _store(title: str, link: str, created_at: datetime = None, commit: bool = True):
        opportunity = Opportunity(
            title=title,
            link=link,
            organization="a.example",
            category="Scholarship",
            provider="a.example.org",
            created_at=created_at or datetime.now(timezone.utc),
        )
        test_db.add(opportunity)
        if commit:
            await test_db.commit()
        return opportunity

    return _store
