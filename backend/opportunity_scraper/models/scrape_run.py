"""Scrape run tracking and monitoring."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Integer, Numeric, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from opportunity_scraper.models.base import Base, UUIDPrimaryKeyMixin


class ScrapeRun(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of one full pass over the feed registry.

    Each run (one-shot, scheduled or startup) creates a ScrapeRun record
    holding its status, timing, counters and any error.
    """

    __tablename__ = "scrape_runs"

    trigger: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="What started the run: 'cli', 'scheduled', 'startup'"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'completed', 'failed'"
    )

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Counters
    feeds_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duplicates: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Error tracking
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_traceback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<ScrapeRun(id={self.id}, trigger='{self.trigger}', status='{self.status}')>"
