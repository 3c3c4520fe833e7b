"""
================================================================================
MangaLink - Search Relevance Scorer
================================================================================
Ranks raw provider search results against the user's query.

Scoring (first matching rule wins, plus the short-title bonus):
  - title == query                      100
  - title starts with query              80
  - title contains every query token     60
  - title contains some query tokens     40
  - description contains query           20
  - description contains some tokens     10
  - title shorter than 50 chars          +5

Query tokens are whitespace-separated words longer than 2 characters, so
articles and other short words don't count as matches. A query made only
of short words has no tokens and so satisfies the all-tokens rule
vacuously: every title scores at least 60 for it.
================================================================================
"""

import logging
from typing import List, Tuple

from sources.base import SearchResult

logger = logging.getLogger(__name__)

EXACT_SCORE = 100
PREFIX_SCORE = 80
ALL_TOKENS_SCORE = 60
SOME_TOKENS_SCORE = 40
DESCRIPTION_SCORE = 20
DESCRIPTION_TOKENS_SCORE = 10
SHORT_TITLE_BONUS = 5
SHORT_TITLE_LENGTH = 50


def tokenize(query: str) -> List[str]:
    """Split on whitespace and drop tokens of 2 characters or fewer."""
    return [word for word in query.split() if len(word) > 2]


def contains_all_tokens(text: str, tokens: List[str]) -> bool:
    return all(token in text for token in tokens)


def contains_some_tokens(text: str, tokens: List[str]) -> bool:
    return any(token in text for token in tokens)


class RelevanceScorer:
    """
    Scores and filters search results for a query.

    Stateless apart from its thresholds; safe to share.
    """

    def __init__(self, min_score: int = 25, max_results: int = 20):
        self.min_score = min_score
        self.max_results = max_results

    def score(self, result: SearchResult, query: str) -> int:
        """Relevance of one result for a query (higher is better)."""
        query = query.lower().strip()
        title = (result.title or '').lower().strip()
        description = (result.description or '').lower()
        tokens = tokenize(query)

        score = 0
        if title == query:
            score += EXACT_SCORE
        elif query and title.startswith(query):
            score += PREFIX_SCORE
        elif contains_all_tokens(title, tokens):
            score += ALL_TOKENS_SCORE
        elif contains_some_tokens(title, tokens):
            score += SOME_TOKENS_SCORE
        elif query and query in description:
            score += DESCRIPTION_SCORE
        elif contains_some_tokens(description, tokens):
            score += DESCRIPTION_TOKENS_SCORE

        if len(title) < SHORT_TITLE_LENGTH:
            score += SHORT_TITLE_BONUS

        return score

    def rank(self, results: List[SearchResult], query: str) -> List[SearchResult]:
        """
        Filter out weak matches and sort the rest by relevance.

        Args:
            results: Raw results, in the order providers returned them
            query: User query

        Returns:
            At most max_results results, best first. Ties keep input order.
        """
        if not results:
            return []

        scored: List[Tuple[int, SearchResult]] = [
            (self.score(result, query), result) for result in results
        ]
        kept = [pair for pair in scored if pair[0] >= self.min_score]

        # sort() is stable, so equal scores keep provider order
        kept.sort(key=lambda pair: pair[0], reverse=True)

        logger.debug(
            f"Ranked '{query}': {len(results)} results, {len(kept)} above {self.min_score}"
        )
        return [result for _, result in kept[:self.max_results]]
