"""Services for reading and writing the opportunity store.

Each service wraps one AsyncSession and owns the queries, commits and
rollbacks for its table.
"""

from opportunity_scraper.services.dedup_service import DeduplicationService
from opportunity_scraper.services.opportunity_service import OpportunityService
from opportunity_scraper.services.scrape_run_service import ScrapeRunService

__all__ = [
    "DeduplicationService",
    "OpportunityService",
    "ScrapeRunService",
]
