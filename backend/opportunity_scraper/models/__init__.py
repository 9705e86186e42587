"""SQLAlchemy models for the opportunity scraper.

All models are imported here so Base.metadata knows every table.
"""

from opportunity_scraper.models.base import Base, UUIDPrimaryKeyMixin
from opportunity_scraper.models.opportunity import Opportunity
from opportunity_scraper.models.scrape_run import ScrapeRun

__all__ = [
    "Base",
    "UUIDPrimaryKeyMixin",
    "Opportunity",
    "ScrapeRun",
]
