"""
================================================================================
MangaLink - Progress Tracker
================================================================================
Derives (page, scroll fraction) from page geometry and persists it.

Geometry:
  Pages are stacked vertically; each has a top and a height in document
  coordinates. The viewport is a window [scroll_top, scroll_top + height].

  - Current page = page with the largest vertical overlap with the viewport
  - Scroll fraction = (viewport centre - page top) / page height, clamped
  - Viewport centre below the last page = last page, fraction 1.0

Completion:
  page >= total pages and fraction >= 0.9. The completion callback fires
  once per chapter load; later updates that still satisfy the predicate do
  not fire it again.
================================================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..errors import ProgressStoreError
from .models import ReadingProgress, ReadingSession, clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageBox:
    """Vertical extent of one rendered page, in document coordinates."""
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class Viewport:
    scroll_top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.scroll_top + self.height

    @property
    def center(self) -> float:
        return self.scroll_top + self.height / 2


@dataclass(frozen=True)
class Position:
    page_number: int        # 1-based
    scroll_fraction: float  # 0..1 within the page


def compute_position(pages: Sequence[PageBox], viewport: Viewport) -> Optional[Position]:
    """Current page and fraction for a layout; None when there are no pages."""
    if not pages:
        return None

    best_index = 0
    best_overlap = 0.0
    best_fraction = 0.0

    for index, page in enumerate(pages):
        visible = min(page.bottom, viewport.bottom) - max(page.top, viewport.scroll_top)
        if visible > best_overlap:
            best_overlap = visible
            best_index = index
            if page.height > 0:
                best_fraction = clamp((viewport.center - page.top) / page.height)
            else:
                best_fraction = 0.0

    if viewport.center > pages[-1].bottom:
        return Position(page_number=len(pages), scroll_fraction=1.0)

    return Position(page_number=best_index + 1, scroll_fraction=best_fraction)


class ProgressTracker:
    """
    Single writer of the ReadingProgress for one chapter-load session.

    A new tracker is created per chapter load, which is what resets the
    one-shot completion event.
    """

    def __init__(
        self,
        store,
        work_id: str,
        provider_name: str,
        chapter_number: float,
        total_pages: int,
        completion_threshold: float = 0.9,
        on_complete: Optional[Callable[[ReadingProgress], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.work_id = work_id
        self.provider_name = provider_name
        self.chapter_number = chapter_number
        self.total_pages = max(1, total_pages)
        self.completion_threshold = completion_threshold
        self.on_complete = on_complete
        self._clock = clock

        self._completed = False
        self._last_saved: Optional[ReadingProgress] = None
        self.progress: Optional[ReadingProgress] = None

    @classmethod
    def for_session(cls, session: ReadingSession, store, **kwargs) -> 'ProgressTracker':
        tracker = cls(
            store,
            work_id=session.work.key,
            provider_name=session.provider_name,
            chapter_number=session.chapter.number,
            total_pages=session.total_pages,
            **kwargs,
        )
        if session.progress is not None:
            tracker.resume(session.progress)
        return tracker

    def resume(self, progress: ReadingProgress) -> None:
        """
        Start from a previously persisted record of the same chapter.

        A chapter already marked completed stays completed and does not fire
        the completion callback again.
        """
        if (progress.work_id, progress.provider_name, progress.chapter_number) != (
            self.work_id, self.provider_name, self.chapter_number
        ):
            return
        self.progress = progress
        self._last_saved = progress
        self._completed = progress.completed

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def is_persisted(self) -> bool:
        """True if the store holds the current position."""
        return self.progress is not None and self.progress.same_position(self._last_saved)

    def is_complete(self, page_number: int, scroll_fraction: float) -> bool:
        return page_number >= self.total_pages and scroll_fraction >= self.completion_threshold

    def check_completion(self, page_number: int, scroll_fraction: float) -> bool:
        """True only on the update that first satisfies the completion predicate."""
        if self._completed or not self.is_complete(page_number, scroll_fraction):
            return False

        self._completed = True
        logger.info(f"Chapter {self.chapter_number:g} of {self.work_id} marked as completed")
        return True

    async def update(self, pages: List[PageBox], viewport: Viewport) -> Optional[ReadingProgress]:
        """Recompute from geometry and persist. No pages -> nothing changes."""
        position = compute_position(pages, viewport)
        if position is None:
            return self.progress
        return await self.record(position.page_number, position.scroll_fraction)

    async def record(self, page_number: int, scroll_fraction: float) -> ReadingProgress:
        """Persist an explicit position (already derived from geometry)."""
        scroll_fraction = clamp(scroll_fraction)
        page_number = min(max(1, page_number), self.total_pages)
        fired = self.check_completion(page_number, scroll_fraction)

        progress = ReadingProgress(
            work_id=self.work_id,
            provider_name=self.provider_name,
            chapter_number=self.chapter_number,
            page_number=page_number,
            scroll_fraction=scroll_fraction,
            total_pages=self.total_pages,
            completed=self._completed,
            updated_at=self._clock(),
        )
        self.progress = progress

        if fired and self.on_complete:
            self.on_complete(progress)

        if progress.same_position(self._last_saved):
            return progress

        try:
            await self.store.put(self.work_id, self.provider_name, progress)
            self._last_saved = progress
        except ProgressStoreError as e:
            # The session keeps advancing in memory; the next update retries
            logger.warning(f"Progress not persisted: {e}")

        return progress
