"""Tests for the RSS feed fetcher using httpx.MockTransport."""

from datetime import datetime, timezone

import httpx
import pytest

from opportunity_scraper.core.exceptions import FetchError
from opportunity_scraper.scrapers.fetcher import FeedFetcher


RSS_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Feed A Opportunities</title>
    <link>https://a.example.org/</link>
    <description>Scholarships and fellowships</description>
    <item>
      <title>Global Leaders Scholarship 2025</title>
      <link>https://a.example.org/global-leaders</link>
      <pubDate>Mon, 06 Jan 2025 10:00:00 +0000</pubDate>
      <description>Short teaser</description>
      <content:encoded><![CDATA[<p>Fully funded.</p><p>Deadline: 31 March 2025</p>]]></content:encoded>
    </item>
    <item>
      <title>Youth Fellowship</title>
      <guid>https://a.example.org/?p=42</guid>
      <description><![CDATA[<p>Open to <b>undergraduate</b> students.</p>]]></description>
    </item>
  </channel>
</rss>
"""


def make_fetcher(handler, **kwargs) -> FeedFetcher:
    kwargs.setdefault("attempts", 1)
    return FeedFetcher(transport=httpx.MockTransport(handler), **kwargs)


class TestFeedFetcher:
    """Test fetching and parsing feeds."""

    async def test_parses_items_in_order(self, feed_a):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=RSS_BODY))

        parsed = await fetcher.fetch(feed_a)

        assert parsed.title == "Feed A Opportunities"
        assert [item.title for item in parsed.items] == [
            "Global Leaders Scholarship 2025",
            "Youth Fellowship",
        ]

    async def test_full_content_preferred_over_description(self, feed_a):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=RSS_BODY))

        first = (await fetcher.fetch(feed_a)).items[0]

        assert first.link == "https://a.example.org/global-leaders"
        assert first.content == "<p>Fully funded.</p><p>Deadline: 31 March 2025</p>"
        assert first.content_snippet == "Fully funded. Deadline: 31 March 2025"
        assert first.published_at == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)

    async def test_link_falls_back_to_guid(self, feed_a):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=RSS_BODY))

        second = (await fetcher.fetch(feed_a)).items[1]

        assert second.link == "https://a.example.org/?p=42"
        assert second.content_snippet == "Open to undergraduate students."
        assert second.published_at is None

    async def test_sends_user_agent(self, feed_a):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers["User-Agent"]
            seen["url"] = str(request.url)
            return httpx.Response(200, content=RSS_BODY)

        await make_fetcher(handler, user_agent="Test Agent 1.0").fetch(feed_a)

        assert seen == {"user_agent": "Test Agent 1.0", "url": feed_a.url}

    async def test_http_error_status(self, feed_a):
        fetcher = make_fetcher(lambda request: httpx.Response(404))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(feed_a)

        assert exc_info.value.feed == "Feed A"
        assert "HTTP 404" in str(exc_info.value)

    async def test_timeout(self, feed_a):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(handler, timeout=1.5).fetch(feed_a)

        assert "timed out after 1.5s" in str(exc_info.value)

    async def test_malformed_content(self, feed_a):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"this is not a feed <<<"))

        with pytest.raises(FetchError, match="malformed"):
            await fetcher.fetch(feed_a)

    async def test_no_retry_by_default(self, feed_a):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError):
            await make_fetcher(handler).fetch(feed_a)

        assert len(calls) == 1

    async def test_retries_network_errors_when_enabled(self, feed_a):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=RSS_BODY)

        parsed = await make_fetcher(handler, attempts=2).fetch(feed_a)

        assert len(calls) == 2
        assert len(parsed.items) == 2

    async def test_error_status_not_retried(self, feed_a):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(FetchError, match="HTTP 503"):
            await make_fetcher(handler, attempts=3).fetch(feed_a)

        assert len(calls) == 1
