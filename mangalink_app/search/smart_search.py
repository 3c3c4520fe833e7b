"""
================================================================================
MangaLink - Smart Search Coordinator
================================================================================
Orchestrates parallel provider queries, ranking and deduplication.

Flow:
  1. Query every registered provider in parallel
  2. Concatenate results in registry order (not arrival order)
  3. Rank against the query (RelevanceScorer)
  4. Merge duplicates (SearchDeduplicator)
  5. Cache the final list
================================================================================
"""

import asyncio
import logging
import time
from typing import List, Optional

from sources import ProviderRegistry
from sources.base import ContentProvider, ProviderError, SearchResult
from .cache import SearchCache
from .deduplicator import SearchDeduplicator
from .scorer import RelevanceScorer

logger = logging.getLogger(__name__)


class SmartSearch:
    """Search orchestrator across all registered providers."""

    def __init__(
        self,
        registry: ProviderRegistry,
        scorer: Optional[RelevanceScorer] = None,
        deduplicator: Optional[SearchDeduplicator] = None,
        cache: Optional[SearchCache] = None,
    ):
        self.registry = registry
        self.scorer = scorer or RelevanceScorer()
        self.deduplicator = deduplicator or SearchDeduplicator()
        self.cache = cache or SearchCache()

    async def search(self, query: str, providers: Optional[List[str]] = None) -> List[SearchResult]:
        """
        Ranked, deduplicated results for a query.

        Args:
            query: Search query
            providers: Provider ids to query (None = all registered)

        Returns:
            Unique results, best first
        """
        start_time = time.time()

        selected = [
            p for p in self.registry.ordered_providers()
            if providers is None or p.id in providers
        ]
        if not selected or not query.strip():
            return []

        provider_ids = [p.id for p in selected]
        cached = self.cache.get(query, provider_ids)
        if cached is not None:
            logger.info(f"Cache HIT for query '{query}' ({len(cached)} results)")
            return cached

        raw_results = await self._parallel_search(query, selected)
        ranked = self.scorer.rank(raw_results, query)
        unique = self.deduplicator.deduplicate(ranked)

        self.cache.set(query, unique, provider_ids)

        logger.info(
            f"Search '{query}': {len(raw_results)} raw, {len(ranked)} relevant, "
            f"{len(unique)} unique in {time.time() - start_time:.2f}s"
        )
        return unique

    async def _parallel_search(
        self,
        query: str,
        providers: List[ContentProvider]
    ) -> List[SearchResult]:
        """Query providers concurrently and flatten in provider order."""
        results = await asyncio.gather(
            *(self._search_provider(provider, query) for provider in providers)
        )

        all_results: List[SearchResult] = []
        for provider_results in results:
            all_results.extend(provider_results)
        return all_results

    async def _search_provider(self, provider: ContentProvider, query: str) -> List[SearchResult]:
        try:
            results = await provider.search(query)
        except ProviderError as e:
            provider.record_failure(str(e))
            logger.warning(f"Search failed for {provider.id}: {e}")
            return []

        provider.record_success()
        for result in results:
            if not result.provider_name:
                result.provider_name = provider.id
        return results
