"""
Reading progress persistence.

ProgressStore is the capability the reader writes through: one record per
(work, provider) pair, overwritten on every put. Two implementations:

  - MemoryProgressStore: dict-backed, for tests and ephemeral sessions
  - SqlProgressStore: SQLAlchemy-backed; blocking session work runs in the
    default executor so the event loop never waits on the database
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .database import get_db_session
from .errors import ProgressStoreError
from .models import ReadingProgressRecord
from .reader.models import ReadingProgress

logger = logging.getLogger(__name__)


class ProgressStore(ABC):
    """Async get/put of the latest ReadingProgress per (work, provider)."""

    @abstractmethod
    async def get(self, work_id: str, provider_name: str) -> Optional[ReadingProgress]:
        """Latest progress, or None if the pair was never read."""

    @abstractmethod
    async def put(self, work_id: str, provider_name: str, progress: ReadingProgress) -> None:
        """Insert or overwrite the record for the pair."""


class MemoryProgressStore(ProgressStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], ReadingProgress] = {}
        self.writes = 0

    async def get(self, work_id: str, provider_name: str) -> Optional[ReadingProgress]:
        record = self._records.get((work_id, provider_name))
        return replace(record) if record else None

    async def put(self, work_id: str, provider_name: str, progress: ReadingProgress) -> None:
        self._records[(work_id, provider_name)] = replace(progress)
        self.writes += 1

    def __len__(self) -> int:
        return len(self._records)


class SqlProgressStore(ProgressStore):
    """SQLAlchemy-backed store using the app's session management."""

    def __init__(self, session_scope=get_db_session):
        self._session_scope = session_scope

    # =========================================================================
    # BLOCKING HELPERS (run in executor)
    # =========================================================================

    def _get_sync(self, work_id: str, provider_name: str) -> Optional[ReadingProgress]:
        with self._session_scope() as session:
            record = session.query(ReadingProgressRecord).filter_by(
                work_id=work_id, provider_name=provider_name
            ).first()
            if record is None:
                return None
            return ReadingProgress(
                work_id=record.work_id,
                provider_name=record.provider_name,
                chapter_number=record.chapter_number,
                page_number=record.page_number,
                scroll_fraction=record.scroll_fraction,
                total_pages=record.total_pages,
                completed=record.is_completed,
                updated_at=record.updated_at.replace(tzinfo=timezone.utc).timestamp()
                if record.updated_at else 0.0,
            )

    def _put_sync(self, work_id: str, provider_name: str, progress: ReadingProgress) -> None:
        updated_at = datetime.fromtimestamp(progress.updated_at, tz=timezone.utc)
        with self._session_scope() as session:
            record = session.query(ReadingProgressRecord).filter_by(
                work_id=work_id, provider_name=provider_name
            ).first()

            if record is None:
                record = ReadingProgressRecord(work_id=work_id, provider_name=provider_name)
                session.add(record)

            record.chapter_number = progress.chapter_number
            record.page_number = progress.page_number
            record.scroll_fraction = progress.scroll_fraction
            record.total_pages = progress.total_pages
            record.is_completed = progress.completed
            record.updated_at = updated_at

    # =========================================================================
    # CONTRACT
    # =========================================================================

    async def get(self, work_id: str, provider_name: str) -> Optional[ReadingProgress]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._get_sync, work_id, provider_name)
        except SQLAlchemyError as e:
            raise ProgressStoreError(f"Failed to load progress for {work_id}@{provider_name}: {e}") from e

    async def put(self, work_id: str, provider_name: str, progress: ReadingProgress) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._put_sync, work_id, provider_name, progress)
        except SQLAlchemyError as e:
            raise ProgressStoreError(f"Failed to save progress for {work_id}@{provider_name}: {e}") from e
        logger.debug(
            f"Progress saved: {work_id}@{provider_name} ch{progress.chapter_number:g} "
            f"p{progress.page_number}/{progress.total_pages}"
        )
