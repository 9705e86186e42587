"""Custom exception classes for the scraper."""


class OpportunityScraperException(Exception):
    """Base exception for all scraper errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class FetchError(OpportunityScraperException):
    """Raised when a feed is unreachable or its content cannot be parsed."""

    def __init__(self, feed: str, message: str):
        self.feed = feed
        super().__init__(f"Fetch error for {feed}: {message}")


class ItemValidationError(OpportunityScraperException):
    """Raised when a feed item lacks the fields needed to build an opportunity."""


class PersistenceError(OpportunityScraperException):
    """Raised when the store rejects a write or delete."""


class RunInProgressError(OpportunityScraperException):
    """Raised when a scrape run or cleanup is already active."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot start {operation}: another run is in progress")
