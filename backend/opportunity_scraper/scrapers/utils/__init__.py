"""Scraper utilities for field extraction and fetch retries."""

from .normalizer import (
    OpportunityNormalizer,
    html_to_text,
    extract_deadline,
    extract_location,
    extract_requirements,
    extract_benefits,
    determine_difficulty,
    organization_from_provider,
)
from .retry import fetch_retrying, RETRYABLE_FETCH_ERRORS


__all__ = [
    # Normalization
    "OpportunityNormalizer",
    "html_to_text",
    "extract_deadline",
    "extract_location",
    "extract_requirements",
    "extract_benefits",
    "determine_difficulty",
    "organization_from_provider",
    # Retry
    "fetch_retrying",
    "RETRYABLE_FETCH_ERRORS",
]
