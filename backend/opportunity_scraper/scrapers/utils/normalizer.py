"""Heuristic field extraction for turning feed items into opportunities.

Every extractor walks an ordered list of compiled patterns and the first
pattern that matches wins. The order is part of the observable behaviour:
ambiguous text produces different output if the lists are reordered.
"""

import re
from datetime import datetime, timezone
from typing import List, Pattern, Sequence, Tuple

import structlog
from bs4 import BeautifulSoup

from opportunity_scraper.core.exceptions import ItemValidationError
from opportunity_scraper.scrapers.base import FeedDescriptor, NormalizedOpportunity, RawFeedItem

logger = structlog.get_logger(__name__)


NOT_SPECIFIED = "Not specified"
DEFAULT_LOCATION = "Various"
DEFAULT_DIFFICULTY = "Medium"
DESCRIPTION_MAX_LENGTH = 500
MAX_LIST_ENTRIES = 5
APPLICATION_PROCESS = ["Visit the link for detailed application instructions"]

_MONTHS = "january|february|march|april|may|june|july|august|september|october|november|december"

DEADLINE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"deadline[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"apply\s+by[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"applications?\s+close[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"due\s+date[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"expires?[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})"),
    re.compile(rf"(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}", re.IGNORECASE),
]

LOCATION_PATTERNS: List[Pattern[str]] = [
    re.compile(r"location[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"based\s+in[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(r"country[:\s]*([^.\n]+)", re.IGNORECASE),
    re.compile(
        r"(usa|uk|canada|australia|germany|france|netherlands|switzerland|sweden|denmark|norway)",
        re.IGNORECASE,
    ),
]

REQUIREMENT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"requirements?[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"eligibility[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"must\s+have[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"bachelor'?s?\s+degree", re.IGNORECASE),
    re.compile(r"master'?s?\s+degree", re.IGNORECASE),
    re.compile(r"\d+\s+years?\s+experience", re.IGNORECASE),
    re.compile(r"undergraduate", re.IGNORECASE),
    re.compile(r"postgraduate", re.IGNORECASE),
    re.compile(r"phd", re.IGNORECASE),
    re.compile(r"english\s+proficiency", re.IGNORECASE),
    re.compile(r"ielts|toefl", re.IGNORECASE),
]

BENEFIT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"benefits?[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"offers?[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"includes?[:\s]*([^.]+)", re.IGNORECASE),
    re.compile(r"tuition\s+fees?", re.IGNORECASE),
    re.compile(r"stipend", re.IGNORECASE),
    re.compile(r"scholarship", re.IGNORECASE),
    re.compile(r"funding", re.IGNORECASE),
    re.compile(r"accommodation", re.IGNORECASE),
    re.compile(r"health\s+insurance", re.IGNORECASE),
    re.compile(r"visa\s+support", re.IGNORECASE),
]

# Checked in order; the first tier with a matching keyword wins.
# "graduate" does not count inside "undergraduate".
DIFFICULTY_TIERS: List[Tuple[str, Pattern[str]]] = [
    ("Advanced", re.compile(r"phd|doctorate|postdoc", re.IGNORECASE)),
    ("Intermediate", re.compile(r"master|(?<!under)graduate|experienced", re.IGNORECASE)),
    ("Beginner", re.compile(r"undergraduate|bachelor|beginner", re.IGNORECASE)),
]


def html_to_text(html: str) -> str:
    """Strip markup and collapse whitespace.

    Args:
        html: HTML fragment or plain text

    Returns:
        Single-line plain text, trimmed
    """
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def _first_match(text: str, patterns: Sequence[Pattern[str]]) -> str:
    """Return the capture group (or whole match) of the first matching pattern."""
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = match.group(1) if pattern.groups else match.group(0)
            return value.strip()
    return ""


def _collect_matches(text: str, patterns: Sequence[Pattern[str]]) -> List[str]:
    """Return the whole match of every matching pattern, in scan order, capped at 5."""
    found = []
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(0).strip():
            found.append(match.group(0).strip())
    return found[:MAX_LIST_ENTRIES]


def extract_deadline(content: str) -> str:
    """Extract an application deadline from free text.

    >>> extract_deadline("Apply by: March 5, 2025 for all students.")
    'March 5, 2025 for all students'
    """
    if not content:
        return NOT_SPECIFIED
    return _first_match(content, DEADLINE_PATTERNS) or NOT_SPECIFIED


def extract_location(content: str) -> str:
    """Extract a location, defaulting to 'Various'."""
    if not content:
        return DEFAULT_LOCATION
    return _first_match(content, LOCATION_PATTERNS) or DEFAULT_LOCATION


def extract_requirements(content: str) -> List[str]:
    """Collect up to five requirement phrases.

    Overlapping patterns may yield the same phrase twice; that is kept.
    """
    if not content:
        return []
    return _collect_matches(html_to_text(content), REQUIREMENT_PATTERNS)


def extract_benefits(content: str) -> List[str]:
    """Collect up to five benefit phrases."""
    if not content:
        return []
    return _collect_matches(html_to_text(content), BENEFIT_PATTERNS)


def determine_difficulty(content: str) -> str:
    """Classify text into Advanced / Intermediate / Beginner / Medium."""
    if not content:
        return DEFAULT_DIFFICULTY

    for level, keywords in DIFFICULTY_TIERS:
        if keywords.search(content):
            return level
    return DEFAULT_DIFFICULTY


def organization_from_provider(provider: str) -> str:
    """Derive an organization name from a provider domain ("oyaop.com" -> "oyaop")."""
    return provider.replace(".com", "", 1).replace(".org", "", 1)


class OpportunityNormalizer:
    """Converts raw feed items into NormalizedOpportunity records."""

    @staticmethod
    def ensure_valid(item: RawFeedItem, feed: FeedDescriptor) -> None:
        """Reject items that cannot form a (title, link) dedup key.

        Raises:
            ItemValidationError: If the item has no title or no link
        """
        if not item.title or not item.link:
            missing = "title" if not item.title else "link"
            raise ItemValidationError(f"Item from {feed.name} is missing its {missing}")

    def normalize(self, item: RawFeedItem, feed: FeedDescriptor) -> NormalizedOpportunity:
        """Map one feed item to an opportunity.

        Args:
            item: Raw item from the fetcher
            feed: Descriptor of the feed the item came from

        Returns:
            NormalizedOpportunity ready to be saved

        Raises:
            ItemValidationError: If the item has no title or no link
        """
        self.ensure_valid(item, feed)

        content = f"{item.title} {item.content_snippet} {item.content}"
        difficulty = determine_difficulty(content)

        opportunity = NormalizedOpportunity(
            title=item.title,
            link=item.link,
            organization=organization_from_provider(feed.provider),
            category=feed.category,
            provider=feed.provider,
            created_at=datetime.now(timezone.utc),
            application_deadline=extract_deadline(content),
            location=extract_location(content),
            description=html_to_text(item.content_snippet or item.content)[:DESCRIPTION_MAX_LENGTH],
            requirements=extract_requirements(content),
            benefits=extract_benefits(content),
            application_process=list(APPLICATION_PROCESS),
            tags=[],
            difficulty_level=difficulty,
            published_at=item.published_at,
        )

        logger.debug(
            "item_normalized",
            feed=feed.name,
            title=item.title[:50],
            deadline=opportunity.application_deadline,
            difficulty=difficulty,
        )
        return opportunity
