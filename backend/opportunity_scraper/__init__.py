"""RSS ingestion pipeline for education and career opportunities."""

__version__ = "1.0.0"
