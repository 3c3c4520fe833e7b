"""
================================================================================
MangaLink - Chapter Matcher
================================================================================
Picks the chapter to open on a provider when providers disagree on
numbering.

Fallback chain (first success wins):
  1. Sort ascending by number (stable) and assign ordinal indexes
  2. Exact number
  3. Title mentions the number ("Chapter 12", "Ch. 12", "Ch 12", "12")
  4. Number within epsilon of the target (float noise, x.05 schemes)
  5. Nearest number; ties go to the lower ordinal index

A non-empty list always yields a chapter. Only an empty list is an error.
================================================================================
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional

from sources.base import Chapter
from ..errors import NotFoundError
from ..reader.models import ReadingProgress

logger = logging.getLogger(__name__)


class MatchStrategy(Enum):
    """Which step of the fallback chain produced the chapter."""
    EXACT = "exact"
    TITLE = "title"
    APPROXIMATE = "approximate"
    NEAREST = "nearest"


@dataclass(frozen=True)
class ChapterMatch:
    chapter: Chapter
    strategy: MatchStrategy
    target: float
    chapters: tuple  # The sorted, indexed list the chapter belongs to

    @property
    def is_exact(self) -> bool:
        return self.strategy is MatchStrategy.EXACT

    @property
    def distance(self) -> float:
        return abs(self.chapter.number - self.target)


def format_chapter_number(number: float) -> str:
    """10.0 -> "10", 10.5 -> "10.5"."""
    if float(number).is_integer():
        return str(int(number))
    return str(number)


def sort_chapters(chapters: List[Chapter]) -> List[Chapter]:
    """Stable ascending sort by number; returns indexed copies."""
    ordered = sorted(chapters, key=lambda ch: ch.number)
    return [replace(ch, ordinal_index=i) for i, ch in enumerate(ordered)]


def next_target_chapter(progress: ReadingProgress) -> float:
    """
    Chapter a "continue reading" action should open.

    A completed chapter moves on to the next whole chapter: 10.5 -> 11.
    """
    if progress.completed:
        return float(math.floor(progress.chapter_number) + 1)
    return progress.chapter_number


class ChapterMatcher:
    """Resolves a target chapter number against one provider's chapter list."""

    TITLE_PATTERNS = ("Chapter {n}", "Ch. {n}", "Ch {n}", "{n}")

    def __init__(self, epsilon: float = 0.1, import_window: float = 5.0):
        self.epsilon = epsilon
        self.import_window = import_window

    def match(self, target: float, chapters: List[Chapter], provider_name: str = '') -> ChapterMatch:
        """
        Choose the chapter to open.

        Raises:
            NotFoundError: chapters is empty
        """
        if not chapters:
            raise NotFoundError(
                f"No chapters available on {provider_name or 'provider'}",
                provider_name=provider_name,
                target=target,
            )

        ordered = sort_chapters(chapters)
        chapter, strategy = self._run_chain(target, ordered)

        if strategy is not MatchStrategy.EXACT:
            logger.info(
                f"Chapter {format_chapter_number(target)} not found exactly"
                f"{' on ' + provider_name if provider_name else ''}; "
                f"using {format_chapter_number(chapter.number)} ({strategy.value})"
            )
        return ChapterMatch(chapter=chapter, strategy=strategy, target=target, chapters=tuple(ordered))

    def match_within_window(
        self,
        target: float,
        chapters: List[Chapter],
        window: Optional[float] = None,
        provider_name: str = '',
    ) -> Optional[ChapterMatch]:
        """
        Like match(), but a nearest-chapter fallback further than `window`
        chapters away counts as no match. Returns None instead of raising.

        Used for imported progress where a distant chapter is worse than
        trying the next provider.
        """
        if not chapters:
            return None
        if window is None:
            window = self.import_window

        result = self.match(target, chapters, provider_name)
        if result.strategy is MatchStrategy.NEAREST and result.distance > window:
            logger.debug(
                f"{provider_name}: nearest chapter {result.chapter.number} is "
                f"{result.distance:g} away from {target:g} (window {window:g})"
            )
            return None
        return result

    def _run_chain(self, target: float, ordered: List[Chapter]):
        for chapter in ordered:
            if chapter.number == target:
                return chapter, MatchStrategy.EXACT

        label = format_chapter_number(target)
        for pattern in self.TITLE_PATTERNS:
            term = pattern.format(n=label).lower()
            for chapter in ordered:
                if chapter.title and term in chapter.title.lower():
                    return chapter, MatchStrategy.TITLE

        for chapter in ordered:
            if abs(chapter.number - target) < self.epsilon:
                return chapter, MatchStrategy.APPROXIMATE

        nearest = min(ordered, key=lambda ch: (abs(ch.number - target), ch.ordinal_index))
        return nearest, MatchStrategy.NEAREST
