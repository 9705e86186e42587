"""Data structures shared by the fetch, normalize and orchestration stages."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class FeedDescriptor:
    """Static description of one syndication feed."""

    name: str
    url: str
    category: str
    provider: str  # e.g. "opportunitydesk.org"


@dataclass
class RawFeedItem:
    """One entry of a parsed feed, before any extraction."""

    title: str = ""
    link: str = ""  # Falls back to the entry guid when the feed omits the link
    content_snippet: str = ""  # Plain-text rendering of content
    content: str = ""  # Full HTML body, or the description when there is none
    published_at: Optional[datetime] = None


@dataclass
class ParsedFeed:
    """A fetched and parsed feed."""

    title: str
    items: List[RawFeedItem] = field(default_factory=list)


@dataclass
class NormalizedOpportunity:
    """Normalized opportunity produced from one feed item."""

    title: str
    link: str
    organization: str
    category: str
    provider: str
    created_at: datetime
    application_deadline: str = "Not specified"
    location: str = "Various"
    description: str = ""
    requirements: List[str] = field(default_factory=list)
    benefits: List[str] = field(default_factory=list)
    application_process: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    difficulty_level: str = "Medium"
    match_score: Optional[float] = None
    applicant_count: Optional[int] = None
    success_rate: Optional[float] = None
    published_at: Optional[datetime] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.title:
            raise ValueError("title is required")
        if not self.link:
            raise ValueError("link is required")
        if len(self.description) > 500:
            raise ValueError("description must be at most 500 characters")
        if len(self.requirements) > 5 or len(self.benefits) > 5:
            raise ValueError("requirements and benefits are capped at 5 entries")


@dataclass
class FeedRunResult:
    """Counters for one pass over one feed.

    processed counts every item taken from the feed; each item then lands
    in exactly one of saved, duplicates or errors. A feed that cannot be
    fetched reports errors=1 and nothing else.
    """

    feed_name: str
    processed: int = 0
    saved: int = 0
    duplicates: int = 0
    errors: int = 0


@dataclass(frozen=True)
class RunSummary:
    """Aggregated result of one full run over the feed registry."""

    start_time: datetime
    end_time: datetime
    duration: float  # seconds
    total_feeds: int
    feed_results: Tuple[FeedRunResult, ...]
    total_processed: int
    total_saved: int
    total_duplicates: int
    total_errors: int

    @classmethod
    def from_results(
        cls,
        start_time: datetime,
        end_time: datetime,
        total_feeds: int,
        feed_results: List[FeedRunResult],
    ) -> "RunSummary":
        """Build a summary by summing per-feed counters."""
        return cls(
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds(),
            total_feeds=total_feeds,
            feed_results=tuple(feed_results),
            total_processed=sum(r.processed for r in feed_results),
            total_saved=sum(r.saved for r in feed_results),
            total_duplicates=sum(r.duplicates for r in feed_results),
            total_errors=sum(r.errors for r in feed_results),
        )
