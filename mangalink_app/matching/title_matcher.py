"""
================================================================================
MangaLink - Fuzzy Title Matcher
================================================================================
Fuzzy string matching between a Work's known titles and the titles a
provider returns for it.

Problem:
  The same work is "Kimetsu no Yaiba" on one provider and
  "Demon Slayer: Kimetsu no Yaiba" on another.

Solution:
  Normalize both sides and take the best of rapidfuzz's ratio,
  token-sort and token-set scores (0-100).
================================================================================
"""

import logging
import re
from typing import Iterable

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)


class TitleMatcher:
    """
    Fuzzy matcher for titles across providers.

    Handles stop words, abbreviations and Roman numerals before scoring.
    """

    STOP_WORDS = {'the', 'a', 'an'}

    ROMAN_NUMERALS = {
        'i': '1', 'ii': '2', 'iii': '3', 'iv': '4', 'v': '5',
        'vi': '6', 'vii': '7', 'viii': '8', 'ix': '9', 'x': '10',
    }

    ABBREVIATIONS = {
        'pt': 'part',
        'ch': 'chapter',
        'vol': 'volume',
        'vs': 'versus',
    }

    def normalize_title(self, title: str) -> str:
        """
        Normalize title for comparison.

        Examples:
            "The Disastrous Life of Saiki K." -> "disastrous life of saiki k"
            "One-Piece!"                      -> "onepiece"
            "Attack on Titan III"             -> "attack on titan 3"
        """
        if not title:
            return ""

        normalized = title.lower()

        # Keep hyphens for now so "x-men" stays one word
        normalized = re.sub(r'[^\w\s-]', ' ', normalized)

        words = normalized.split()
        words = [w for w in words if w not in self.STOP_WORDS]
        words = [self.ABBREVIATIONS.get(w, w) for w in words]
        words = [self.ROMAN_NUMERALS.get(w, w) for w in words]
        words = [w.replace('-', '') for w in words]

        return ' '.join(w for w in words if w).strip()

    def calculate_similarity(self, title1: str, title2: str) -> float:
        """
        Similarity score between two titles (0-100).

        Examples:
            calculate_similarity("One Piece", "One-Piece")             -> ~95
            calculate_similarity("Attack on Titan", "Titan on Attack") -> 100
        """
        if not title1 or not title2:
            return 0.0

        norm1 = self.normalize_title(title1)
        norm2 = self.normalize_title(title2)

        if norm1 == norm2:
            return 100.0

        basic_score = fuzz.ratio(norm1, norm2)
        token_score = fuzz.token_sort_ratio(norm1, norm2)
        token_set_score = fuzz.token_set_ratio(norm1, norm2)

        best_score = max(basic_score, token_score, token_set_score)

        logger.debug(
            f"Similarity: '{title1}' vs '{title2}' -> "
            f"basic={basic_score:.1f}, token={token_score:.1f}, "
            f"token_set={token_set_score:.1f}, best={best_score:.1f}"
        )
        return float(best_score)

    def best_similarity(self, known_titles: Iterable[str], candidate_titles: Iterable[str]) -> float:
        """Highest similarity between any known title and any candidate title."""
        candidates = [t for t in candidate_titles if t]
        best = 0.0
        for known in known_titles:
            if not known:
                continue
            for candidate in candidates:
                best = max(best, self.calculate_similarity(known, candidate))
                if best >= 100.0:
                    return best
        return best
