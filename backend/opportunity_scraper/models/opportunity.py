"""Opportunity model representing postings ingested from syndication feeds."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, Text, Integer, Float, DateTime, Index
from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from opportunity_scraper.models.base import Base, UUIDPrimaryKeyMixin


class Opportunity(UUIDPrimaryKeyMixin, Base):
    """A scholarship, fellowship or similar posting extracted from a feed item.

    Rows are inserted once and never updated in place. The (title, link)
    pair acts as the natural key but is not enforced as unique; the
    retention cleanup is the only path that deletes rows.
    """

    __tablename__ = "opportunities"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    link: Mapped[str] = mapped_column(String(1000), nullable=False)
    organization: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    # Extracted fields
    application_deadline: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="Not specified",
        comment="Free text as found in the feed, or 'Not specified'"
    )
    location: Mapped[str] = mapped_column(Text, nullable=False, default="Various")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requirements: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    benefits: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    application_process: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    difficulty_level: Mapped[str] = mapped_column(String(20), nullable=False, default="Medium")

    # Filled in later by personalization, never by the scraper
    match_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    applicant_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    success_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Publication date reported by the feed item"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_opportunities_title_link", "title", "link"),
    )

    def __repr__(self) -> str:
        return f"<Opportunity(id={self.id}, title='{self.title[:40]}', provider='{self.provider}')>"
