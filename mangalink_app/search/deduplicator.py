"""
================================================================================
MangaLink - Search Result Deduplicator
================================================================================
Merges near-duplicate results from multiple providers.

Problem:
  User searches "Naruto" -> the same title comes back once per provider,
  each copy with a different amount of metadata.

Solution:
  1. Normalize titles (lowercase, no punctuation, no articles)
  2. Equal normalized titles are the same work
  3. Keep the copy with the most complete data (cover, description,
     rating, follows); on a tie the first one seen stays
  4. Output keeps the position where the title was first seen
================================================================================
"""

import logging
import re
from typing import Dict, List

from sources.base import SearchResult

logger = logging.getLogger(__name__)

ARTICLES = {'the', 'a', 'an'}

# Word separators become spaces so "Spider-Man" and "Spider Man" agree
_SEPARATORS = re.compile(r'[-_/]')
_PUNCTUATION = re.compile(r'[^\w\s]|_')


def normalize_title(title: str) -> str:
    """
    Normalize a title for duplicate detection.

    Examples:
        "The Amazing Spider-Man!" -> "amazing spider man"
        "Naruto: Shippuden"       -> "naruto shippuden"
    """
    if not title:
        return ''

    normalized = title.lower().strip()
    normalized = _SEPARATORS.sub(' ', normalized)
    normalized = _PUNCTUATION.sub('', normalized)

    words = [w for w in normalized.split() if w not in ARTICLES]
    return ' '.join(words).strip()


def completeness_score(result: SearchResult) -> int:
    """How much useful metadata a result carries."""
    score = 0
    if result.cover_url:
        score += 2
    if result.description and len(result.description) > 50:
        score += 2
    if result.rating:
        score += 1
    if result.follow_count:
        score += 1
    return score


class SearchDeduplicator:
    """
    Deduplicates search results by normalized title.

    Algorithm:
      1. Walk results in order
      2. First sighting of a normalized title keeps its slot
      3. A later duplicate replaces the kept entry in that same slot only if
         its completeness score is strictly higher
    """

    def deduplicate(self, results: List[SearchResult]) -> List[SearchResult]:
        if not results:
            return []

        slots: Dict[str, int] = {}
        kept: List[SearchResult] = []

        for result in results:
            key = normalize_title(result.title)

            if key not in slots:
                slots[key] = len(kept)
                kept.append(result)
                continue

            index = slots[key]
            existing = kept[index]
            if completeness_score(result) > completeness_score(existing):
                logger.debug(
                    f"Replacing '{existing.title}' ({existing.provider_name}) with "
                    f"'{result.title}' ({result.provider_name})"
                )
                kept[index] = result

        logger.info(f"Deduplicated {len(results)} results into {len(kept)} unique titles")
        return kept
