"""
================================================================================
MangaLink - Search Package
================================================================================
Relevance ranking and deduplication of aggregated provider results.

Components:
  - scorer.py       - Scores results against the query, drops weak matches
  - deduplicator.py - Merges duplicate titles from different providers
  - cache.py        - TTL/LRU cache for final result lists
  - smart_search.py - Fans out to providers and runs the pipeline
================================================================================
"""

from .deduplicator import SearchDeduplicator, completeness_score, normalize_title
from .scorer import RelevanceScorer
from .smart_search import SmartSearch

__all__ = [
    'RelevanceScorer', 'SearchDeduplicator', 'SmartSearch',
    'completeness_score', 'normalize_title',
]
