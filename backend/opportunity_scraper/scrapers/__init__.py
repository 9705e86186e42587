"""Feed scraping pipeline.

This package provides:
- The static feed registry
- A fetcher that downloads and parses RSS/Atom feeds
- The orchestrator that drives fetch, dedup, normalize and save
- Scheduler for the recurring scrape and cleanup jobs
"""

from .base import (
    FeedDescriptor,
    RawFeedItem,
    ParsedFeed,
    NormalizedOpportunity,
    FeedRunResult,
    RunSummary,
)
from .feeds import RSS_FEEDS, get_feed

__all__ = [
    # Data structures
    "FeedDescriptor",
    "RawFeedItem",
    "ParsedFeed",
    "NormalizedOpportunity",
    "FeedRunResult",
    "RunSummary",
    # Registry
    "RSS_FEEDS",
    "get_feed",
]
