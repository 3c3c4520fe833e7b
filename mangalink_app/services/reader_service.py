"""
================================================================================
MangaLink - Reader Service
================================================================================
Composition root for the reading pipeline. Owns one instance of each
component, built from the shared ReaderConfig:

  search            -> SmartSearch (rank + dedup + cache)
  resolve_sources   -> SourceResolver (id/url lookup, title, alt titles)
  chapter_consensus -> ChapterConsensus
  open_chapter      -> ChapterLoader + ChapterMatcher
  continue_reading  -> stored progress or an imported chapter number,
                       walked across every provider the work resolved to
  make_tracker      -> ProgressTracker bound to the progress store
  make_scheduler    -> ProgressScheduler with the configured intervals

Continue reading:
  1. Stored progress on some provider wins; its next target chapter is
     matched there with the full fallback chain.
  2. Otherwise the imported chapter number (or the first chapter) is tried
     on each provider in merge order. An exact hit ends the walk; the first
     chapter within the import window is the fallback.
  3. If nothing is within the window, the nearest chapter on the first
     provider that has any chapters is opened.
  A provider whose pages fail to load is dropped and the walk repeats over
  the rest; the last ProviderError surfaces only when none are left.
================================================================================
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from sources import ProviderRegistry
from sources.base import Chapter, ProviderError, SearchResult
from ..config import ReaderConfig, get_config
from ..errors import NotFoundError, ProgressStoreError
from ..matching.chapter_matcher import ChapterMatch, ChapterMatcher, next_target_chapter
from ..matching.consensus import ChapterConsensus, ConsensusResult
from ..matching.source_resolver import SourceResolver
from ..progress_store import MemoryProgressStore, ProgressStore
from ..reader.loader import ChapterLoader
from ..reader.models import ReadingProgress, ReadingSession, SourceInstance, Work
from ..reader.progress import ProgressTracker
from ..reader.scheduler import ProgressScheduler
from ..search.cache import SearchCache
from ..search.deduplicator import SearchDeduplicator
from ..search.scorer import RelevanceScorer
from ..search.smart_search import SmartSearch

logger = logging.getLogger(__name__)

# Target used when nothing is known about the reader's position
FIRST_CHAPTER = 0.0


class ReaderService:
    """High-level reading operations over a provider registry."""

    def __init__(
        self,
        registry: ProviderRegistry,
        store: Optional[ProgressStore] = None,
        config: Optional[ReaderConfig] = None,
    ):
        self.registry = registry
        self.store = store or MemoryProgressStore()
        self.config = config or get_config()

        self.smart_search = SmartSearch(
            registry,
            scorer=RelevanceScorer(
                min_score=self.config.min_relevance_score,
                max_results=self.config.max_search_results,
            ),
            deduplicator=SearchDeduplicator(),
            cache=SearchCache(
                ttl=self.config.search_cache_ttl,
                max_size=self.config.search_cache_size,
            ),
        )
        self.resolver = SourceResolver(
            registry,
            max_alt_titles=self.config.max_alt_titles,
            min_title_similarity=self.config.min_title_similarity,
        )
        self.matcher = ChapterMatcher(
            epsilon=self.config.chapter_epsilon,
            import_window=self.config.import_window,
        )
        self.consensus = ChapterConsensus(registry)
        self.loader = ChapterLoader(registry, self.matcher)

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    async def search(self, query: str, providers: Optional[List[str]] = None) -> List[SearchResult]:
        return await self.smart_search.search(query, providers)

    async def resolve_sources(self, work: Work) -> Dict[str, SourceInstance]:
        return await self.resolver.resolve(work)

    async def chapter_consensus(self, instances: Dict[str, SourceInstance]) -> ConsensusResult:
        return await self.consensus.get_consensus(instances)

    @staticmethod
    def enrich_work(work: Work, instances: Dict[str, SourceInstance]) -> Work:
        """
        Fold provider-reported alternate titles and cover into the Work.

        Provider titles that differ from the Work's own title count as
        alternate titles too. The first cover in merge order wins.
        """
        enriched = work
        for instance in instances.values():
            enriched = enriched.with_alt_titles((instance.title,) + instance.alt_titles)
            enriched = enriched.with_cover(instance.cover_url)
        return enriched

    # =========================================================================
    # READING
    # =========================================================================

    async def open_chapter(
        self,
        work: Work,
        instance: SourceInstance,
        target: float,
    ) -> Optional[ReadingSession]:
        """Open `target` (or its best stand-in) on one provider."""
        session = await self.loader.load(work, instance, target)
        if session is None:
            return None
        return await self._attach_progress(session)

    async def continue_reading(
        self,
        work: Work,
        imported_chapter: Optional[float] = None,
        instances: Optional[Dict[str, SourceInstance]] = None,
    ) -> Optional[ReadingSession]:
        """
        Open the chapter the reader should continue with.

        A provider whose pages fail to load is skipped and the walk
        continues with the remaining providers.

        Raises:
            MatchNotFound: no provider has the work
            NotFoundError: no provider returned any chapters
            ProviderError: every provider with chapters failed to load pages
        """
        if instances is None:
            instances = await self.resolve_sources(work)
        ordered = list(instances.values())

        stored = await self._latest_progress(work, ordered)
        chapter_lists = await self._fetch_chapter_lists(ordered)
        last_error: Optional[ProviderError] = None

        if stored is not None:
            target = next_target_chapter(stored)
            chapters = chapter_lists.get(stored.provider_name)
            if chapters:
                match = self.matcher.match(target, chapters, stored.provider_name)
                try:
                    return await self._open_match(work, instances[stored.provider_name], match)
                except ProviderError as e:
                    last_error = e
                    ordered = [i for i in ordered if i.provider_name != stored.provider_name]
            else:
                logger.info(f"No chapters on {stored.provider_name}; trying other providers")
        elif imported_chapter is not None:
            target = float(imported_chapter)
        else:
            target = FIRST_CHAPTER

        while True:
            picked = self._walk_providers(target, ordered, chapter_lists)
            if picked is None:
                if last_error is not None:
                    raise last_error
                raise NotFoundError(
                    f"No chapters available for '{work.title}' on any provider",
                    target=target,
                )

            instance, match = picked
            try:
                return await self._open_match(work, instance, match)
            except ProviderError as e:
                last_error = e
                ordered = [i for i in ordered if i.provider_name != instance.provider_name]

    def _walk_providers(
        self,
        target: float,
        ordered: List[SourceInstance],
        chapter_lists: Dict[str, List[Chapter]],
    ) -> Optional[Tuple[SourceInstance, ChapterMatch]]:
        fallback: Optional[Tuple[SourceInstance, ChapterMatch]] = None
        first_available: Optional[SourceInstance] = None

        for instance in ordered:
            chapters = chapter_lists.get(instance.provider_name)
            if not chapters:
                continue
            if first_available is None:
                first_available = instance

            match = self.matcher.match_within_window(target, chapters, provider_name=instance.provider_name)
            if match is None:
                continue
            if match.is_exact:
                return instance, match
            if fallback is None:
                fallback = (instance, match)

        if fallback is not None:
            return fallback
        if first_available is not None:
            chapters = chapter_lists[first_available.provider_name]
            return first_available, self.matcher.match(target, chapters, first_available.provider_name)
        return None

    async def _fetch_chapter_lists(self, instances: List[SourceInstance]) -> Dict[str, List[Chapter]]:
        async def fetch(instance: SourceInstance) -> List[Chapter]:
            provider = self.registry.get_provider(instance.provider_name)
            if provider is None:
                return []
            try:
                chapters = await provider.get_chapters(instance.ref)
            except ProviderError as e:
                provider.record_failure(str(e))
                logger.warning(f"Chapter list failed for {instance.provider_name}: {e}")
                return []
            provider.record_success()
            return chapters

        lists = await asyncio.gather(*(fetch(i) for i in instances))
        return {i.provider_name: chapters for i, chapters in zip(instances, lists)}

    async def _latest_progress(self, work: Work, instances: List[SourceInstance]) -> Optional[ReadingProgress]:
        latest: Optional[ReadingProgress] = None
        for instance in instances:
            try:
                progress = await self.store.get(work.key, instance.provider_name)
            except ProgressStoreError as e:
                logger.warning(f"Could not read progress: {e}")
                continue
            if progress and (latest is None or progress.updated_at > latest.updated_at):
                latest = progress
        return latest

    async def _open_match(self, work: Work, instance: SourceInstance, match: ChapterMatch) -> Optional[ReadingSession]:
        try:
            session = await self.loader.load_matched(work, instance, list(match.chapters), match.chapter)
        except ProviderError as e:
            provider = self.registry.get_provider(instance.provider_name)
            if provider is not None:
                provider.record_failure(str(e))
            logger.warning(f"Page load failed for {instance.provider_name}: {e}")
            raise
        if session is None:
            return None
        return await self._attach_progress(session)

    async def _attach_progress(self, session: ReadingSession) -> ReadingSession:
        """Resume position if the stored record is for this very chapter."""
        try:
            progress = await self.store.get(session.work.key, session.provider_name)
        except ProgressStoreError as e:
            logger.warning(f"Could not read progress: {e}")
            return session
        if progress and progress.chapter_number == session.chapter.number:
            return session.with_progress(progress)
        return session

    # =========================================================================
    # PROGRESS
    # =========================================================================

    def make_tracker(
        self,
        session: ReadingSession,
        on_complete: Optional[Callable[[ReadingProgress], None]] = None,
    ) -> ProgressTracker:
        return ProgressTracker.for_session(
            session,
            self.store,
            completion_threshold=self.config.completion_threshold,
            on_complete=on_complete,
        )

    def make_scheduler(self, flush_callback) -> ProgressScheduler:
        return ProgressScheduler(
            flush_callback,
            throttle_interval=self.config.throttle_interval,
            debounce_delay=self.config.debounce_delay,
            periodic_interval=self.config.periodic_interval,
        )

    async def save_position(
        self,
        work_id: str,
        provider_name: str,
        chapter_number: float,
        total_pages: int,
        page_number: int,
        scroll_fraction: float,
    ) -> Tuple[ProgressTracker, bool]:
        """
        Record a position reported by a stateless client.

        The stored record seeds the tracker, so a chapter that was already
        completed does not report completion a second time.

        Returns:
            (tracker, completed_now)
        """
        fired: List[ReadingProgress] = []
        tracker = ProgressTracker(
            self.store,
            work_id=work_id,
            provider_name=provider_name,
            chapter_number=chapter_number,
            total_pages=total_pages,
            completion_threshold=self.config.completion_threshold,
            on_complete=fired.append,
        )
        try:
            existing = await self.store.get(work_id, provider_name)
        except ProgressStoreError as e:
            logger.warning(f"Could not read progress: {e}")
            existing = None
        if existing is not None:
            tracker.resume(existing)

        await tracker.record(page_number, scroll_fraction)
        return tracker, bool(fired)

    async def get_progress(self, work_id: str, provider_name: str) -> Optional[ReadingProgress]:
        return await self.store.get(work_id, provider_name)


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_service: Optional[ReaderService] = None


def get_reader_service() -> ReaderService:
    """Get or create the global ReaderService."""
    global _service
    if _service is None:
        from sources import get_provider_registry
        config = get_config()
        _service = ReaderService(get_provider_registry(config.catalog_dir), config=config)
    return _service


def set_reader_service(service: Optional[ReaderService]) -> None:
    global _service
    _service = service
