"""Registry of syndication feeds scraped on every run.

Order matters: runs walk the registry front to back and report
per-feed results in the same order.
"""

from typing import Optional, Tuple

from opportunity_scraper.scrapers.base import FeedDescriptor


RSS_FEEDS: Tuple[FeedDescriptor, ...] = (
    FeedDescriptor(
        name="Scholarship Positions",
        url="https://www.scholarshippositions.com/feed/",
        category="Scholarship",
        provider="scholarshippositions.com",
    ),
    FeedDescriptor(
        name="Opportunity Desk",
        url="https://www.opportunitydesk.org/feed/",
        category="Mixed",
        provider="opportunitydesk.org",
    ),
    FeedDescriptor(
        name="Scholars4Dev",
        url="https://www.scholars4dev.com/feed/",
        category="Scholarship",
        provider="scholars4dev.com",
    ),
    FeedDescriptor(
        name="Scholarship Portal",
        url="https://www.scholarshipportal.com/rss",
        category="Scholarship",
        provider="scholarshipportal.com",
    ),
    FeedDescriptor(
        name="AfterSchool Africa",
        url="https://www.afterschoolafrica.com/feed/",
        category="African Opportunities",
        provider="afterschoolafrica.com",
    ),
    FeedDescriptor(
        name="Opportunity Desk Fellowships",
        url="https://www.opportunitydesk.org/category/fellowships/feed/",
        category="Fellowship",
        provider="opportunitydesk.org",
    ),
    FeedDescriptor(
        name="Youth Opportunities Hub",
        url="https://www.youthopportunitieshub.com/feed/",
        category="Youth",
        provider="youthopportunitieshub.com",
    ),
    FeedDescriptor(
        name="OYAOP",
        url="https://oyaop.com/feed/",
        category="Mixed",
        provider="oyaop.com",
    ),
)


def get_feed(name: str) -> Optional[FeedDescriptor]:
    """Look up a registered feed by name (case-insensitive).

    Args:
        name: Feed name, e.g. "Scholars4Dev"

    Returns:
        FeedDescriptor or None if no feed has that name
    """
    wanted = name.strip().lower()
    for feed in RSS_FEEDS:
        if feed.name.lower() == wanted:
            return feed
    return None
