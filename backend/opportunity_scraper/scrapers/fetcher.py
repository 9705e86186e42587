"""RSS/Atom feed fetcher.

Downloads a feed with httpx and parses it with feedparser into
RawFeedItem records. Any failure surfaces as a single FetchError for
the feed so callers can move on to the next one.
"""

from datetime import datetime, timezone
from typing import Optional

import feedparser
import httpx
import structlog

from opportunity_scraper.config import settings
from opportunity_scraper.core.exceptions import FetchError
from opportunity_scraper.scrapers.base import FeedDescriptor, ParsedFeed, RawFeedItem
from opportunity_scraper.scrapers.utils.normalizer import html_to_text
from opportunity_scraper.scrapers.utils.retry import fetch_retrying

logger = structlog.get_logger(__name__)


class FeedFetcher:
    """Fetches and parses one syndication feed at a time."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds (defaults to FEED_TIMEOUT_SECONDS)
            user_agent: User-Agent header (defaults to FEED_USER_AGENT)
            attempts: Fetch attempts incl. the first (defaults to FEED_FETCH_ATTEMPTS)
            transport: Optional httpx transport, used by tests
        """
        self.timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.FEED_USER_AGENT
        self.attempts = attempts or settings.FEED_FETCH_ATTEMPTS
        self._transport = transport
        self.logger = logger.bind(service="feed_fetcher")

    async def fetch(self, feed: FeedDescriptor) -> ParsedFeed:
        """Fetch and parse a feed.

        Args:
            feed: Feed to fetch

        Returns:
            ParsedFeed with items in document order

        Raises:
            FetchError: On network error, timeout, error status or malformed content
        """
        self.logger.info("fetching_feed", feed=feed.name, url=feed.url)

        try:
            async for attempt in fetch_retrying(self.attempts):
                with attempt:
                    body = await self._download(feed.url)
        except httpx.HTTPStatusError as e:
            raise FetchError(feed.name, f"HTTP {e.response.status_code} from {feed.url}") from e
        except httpx.TimeoutException as e:
            raise FetchError(feed.name, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(feed.name, f"{type(e).__name__}: {e}") from e

        parsed = feedparser.parse(body)
        if parsed.bozo and not parsed.entries:
            raise FetchError(feed.name, f"malformed feed content: {parsed.get('bozo_exception')}")

        items = [self._parse_entry(entry) for entry in parsed.entries]
        title = parsed.feed.get("title") or feed.name

        self.logger.info("feed_fetched", feed=feed.name, title=title, items=len(items))
        return ParsedFeed(title=title, items=items)

    async def _download(self, url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    @staticmethod
    def _parse_entry(entry) -> RawFeedItem:
        """Convert a feedparser entry to a RawFeedItem."""
        if entry.get("content"):
            content = entry.content[0].get("value", "")
        else:
            content = entry.get("summary", "")

        published = entry.get("published_parsed") or entry.get("updated_parsed")
        published_at = datetime(*published[:6], tzinfo=timezone.utc) if published else None

        return RawFeedItem(
            title=(entry.get("title") or "").strip(),
            link=(entry.get("link") or entry.get("id") or "").strip(),
            content_snippet=html_to_text(content),
            content=content,
            published_at=published_at,
        )
