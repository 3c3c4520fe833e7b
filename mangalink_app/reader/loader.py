"""
================================================================================
MangaLink - Chapter Loader
================================================================================
Opens a chapter on one provider and builds the ReadingSession for it.

Every load takes a number from a monotonic sequence kept per work (one
reading session). After each await the loader checks that its number is
still the latest for that work; if a newer load of the same work started
in the meantime, the older one returns None and its result is never
applied. Loads of different works never supersede each other.
================================================================================
"""

import logging
import threading
from typing import Dict, List, Optional

from sources.base import Chapter
from ..errors import NotFoundError
from ..matching.chapter_matcher import ChapterMatcher
from .models import ReadingSession, SourceInstance, Work

logger = logging.getLogger(__name__)


class ChapterLoader:
    """Loads chapters; stale loads are discarded."""

    def __init__(self, registry, matcher: Optional[ChapterMatcher] = None):
        self.registry = registry
        self.matcher = matcher or ChapterMatcher()
        self._sequences: Dict[str, int] = {}
        self._lock = threading.Lock()

    def sequence(self, work: Work) -> int:
        """Latest load number handed out for `work`."""
        with self._lock:
            return self._sequences.get(work.key, 0)

    def _begin(self, work: Work) -> int:
        with self._lock:
            sequence = self._sequences.get(work.key, 0) + 1
            self._sequences[work.key] = sequence
            return sequence

    def is_current(self, work: Work, sequence: int) -> bool:
        with self._lock:
            return self._sequences.get(work.key, 0) == sequence

    def cancel(self, work: Work) -> None:
        """Invalidate any load of `work` in flight."""
        self._begin(work)

    def _provider(self, provider_name: str):
        provider = self.registry.get_provider(provider_name)
        if provider is None:
            raise NotFoundError(f"Unknown provider: {provider_name}", provider_name=provider_name)
        return provider

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load(self, work: Work, instance: SourceInstance, target: float) -> Optional[ReadingSession]:
        """
        Fetch the chapter list, match `target` and fetch its pages.

        Returns None if a newer load started while this one was waiting.

        Raises:
            NotFoundError: the provider has no chapters
            ProviderError: the provider failed
        """
        sequence = self._begin(work)
        provider = self._provider(instance.provider_name)

        chapters = await provider.get_chapters(instance.ref)
        if not self.is_current(work, sequence):
            logger.debug(f"Discarding stale load #{sequence} ({instance.provider_name})")
            return None

        match = self.matcher.match(target, chapters, provider.id)
        return await self._open(sequence, work, instance, list(match.chapters), match.chapter)

    async def load_matched(
        self,
        work: Work,
        instance: SourceInstance,
        chapters: List[Chapter],
        chapter: Chapter,
    ) -> Optional[ReadingSession]:
        """Open a chapter that was already matched against `chapters`."""
        sequence = self._begin(work)
        return await self._open(sequence, work, instance, chapters, chapter)

    async def open_chapter(self, session: ReadingSession, chapter: Chapter) -> Optional[ReadingSession]:
        """Navigate to another chapter of the session's list (next / previous)."""
        sequence = self._begin(session.work)
        instance = SourceInstance(
            provider_name=session.provider_name,
            provider_id=session.source_ref,
            provider_url=None,
        )
        return await self._open(sequence, session.work, instance, list(session.chapters), chapter)

    async def _open(
        self,
        sequence: int,
        work: Work,
        instance: SourceInstance,
        chapters: List[Chapter],
        chapter: Chapter,
    ) -> Optional[ReadingSession]:
        provider = self._provider(instance.provider_name)

        pages = await provider.get_pages(chapter.ref)
        if not self.is_current(work, sequence):
            logger.debug(f"Discarding stale load #{sequence} ({instance.provider_name})")
            return None

        logger.info(
            f"Opened {work.title} ch{chapter.number:g} on {instance.provider_name} "
            f"({len(pages)} pages)"
        )
        return ReadingSession(
            work=work,
            provider_name=instance.provider_name,
            source_ref=instance.ref,
            chapters=tuple(chapters),
            chapter=chapter,
            pages=tuple(pages),
            load_sequence=sequence,
        )
