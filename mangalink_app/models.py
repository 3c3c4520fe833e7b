"""
================================================================================
MangaLink - Database Models
================================================================================
SQLAlchemy models for persisted reading progress.

One row per (work, provider) pair: the record is overwritten as the reader
moves, so it always describes the latest position on that provider.
================================================================================
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ReadingProgressRecord(Base):
    """Latest reading position for a work on one provider."""
    __tablename__ = 'reading_progress'

    id = Column(Integer, primary_key=True, autoincrement=True)
    work_id = Column(String(500), nullable=False)
    provider_name = Column(String(100), nullable=False)
    chapter_number = Column(Float, nullable=False)
    page_number = Column(Integer, default=1, nullable=False)
    scroll_fraction = Column(Float, default=0.0, nullable=False)
    total_pages = Column(Integer, default=1, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    # Set explicitly from ReadingProgress.updated_at on every write
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint('work_id', 'provider_name', name='uq_progress_work_provider'),
        Index('idx_reading_progress_updated', 'updated_at'),
    )

