"""
================================================================================
MangaLink - Source Resolver
================================================================================
Finds a canonical Work on every configured provider.

Per provider, stop at the first non-empty answer:
  1. Canonical id/url lookup, if the Work carries one for that provider
  2. Search by primary title
  3. Search by up to 3 alternate titles, in order

The provider's first candidate becomes its SourceInstance. Providers are
queried concurrently but the result map is built in registry order, so the
same data always yields the same map. Chapter counts are not checked here;
see consensus.py.
================================================================================
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from sources import ProviderRegistry
from sources.base import ContentProvider, ProviderError, SearchResult
from ..errors import MatchNotFound
from ..reader.models import SourceInstance, Work
from .title_matcher import TitleMatcher

logger = logging.getLogger(__name__)


class SourceResolver:
    """Resolves a Work to one SourceInstance per provider."""

    def __init__(
        self,
        registry: ProviderRegistry,
        max_alt_titles: int = 3,
        min_title_similarity: float = 0.0,
        title_matcher: Optional[TitleMatcher] = None,
    ):
        self.registry = registry
        self.max_alt_titles = max_alt_titles
        self.min_title_similarity = min_title_similarity
        self.title_matcher = title_matcher or TitleMatcher()

    async def resolve(self, work: Work) -> Dict[str, SourceInstance]:
        """
        Map provider name -> SourceInstance for every provider that has the work.

        Raises:
            MatchNotFound: no provider found anything
        """
        providers = self.registry.ordered_providers()
        logger.info(f"Resolving '{work.title}' across {len(providers)} providers")

        found = await asyncio.gather(
            *(self._resolve_on(provider, work) for provider in providers)
        )

        instances: Dict[str, SourceInstance] = {}
        for provider, instance in zip(providers, found):
            if instance is not None:
                instances[provider.id] = instance

        if not instances:
            raise MatchNotFound(work.title, providers_tried=len(providers))

        logger.info(f"Resolved '{work.title}' on {len(instances)}/{len(providers)} providers")
        return instances

    def _lookup_ref(self, provider: ContentProvider, work: Work) -> Optional[str]:
        """Canonical reference the work carries for this provider, if any."""
        ref = work.provider_ids.get(provider.provider_family)
        if ref:
            return ref
        if work.url and provider.matches_url(work.url):
            return provider.extract_id_from_url(work.url) or work.url
        return None

    def _search_plan(self, work: Work) -> List[Tuple[str, str]]:
        """(matched_by, query) pairs to try after the id lookup."""
        plan = [('title', work.title)]
        seen = {work.title.lower().strip()}
        for alt in work.alt_titles:
            if len(plan) >= 1 + self.max_alt_titles:
                break
            key = (alt or '').lower().strip()
            if not key or key in seen:
                continue
            seen.add(key)
            plan.append(('alt_title', alt))
        return plan

    async def _resolve_on(self, provider: ContentProvider, work: Work) -> Optional[SourceInstance]:
        try:
            ref = self._lookup_ref(provider, work)
            if ref:
                candidate = self._pick(await provider.lookup(ref), work)
                if candidate:
                    provider.record_success()
                    return self._to_instance(provider, candidate, work, 'id')

            for matched_by, query in self._search_plan(work):
                candidate = self._pick(await provider.search(query), work)
                if candidate:
                    provider.record_success()
                    return self._to_instance(provider, candidate, work, matched_by)

        except ProviderError as e:
            provider.record_failure(str(e))
            logger.warning(f"Skipping {provider.id} for '{work.title}': {e}")
            return None

        logger.debug(f"{provider.id}: no match for '{work.title}'")
        return None

    def _similarity(self, candidate: SearchResult, work: Work) -> float:
        known = [work.title] + list(work.alt_titles)
        return self.title_matcher.best_similarity(known, [candidate.title] + list(candidate.alt_titles))

    def _pick(self, candidates: List[SearchResult], work: Work) -> Optional[SearchResult]:
        """First candidate, skipping ones below the similarity floor when one is set."""
        for candidate in candidates:
            if self.min_title_similarity <= 0:
                return candidate
            if self._similarity(candidate, work) >= self.min_title_similarity:
                return candidate
        return None

    def _to_instance(
        self,
        provider: ContentProvider,
        candidate: SearchResult,
        work: Work,
        matched_by: str
    ) -> SourceInstance:
        return SourceInstance(
            provider_name=provider.id,
            provider_id=candidate.id,
            provider_url=candidate.url,
            title=candidate.title,
            match_score=self._similarity(candidate, work),
            matched_by=matched_by,
            alt_titles=tuple(candidate.alt_titles),
            cover_url=candidate.cover_url,
        )
