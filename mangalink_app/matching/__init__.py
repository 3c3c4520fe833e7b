"""
Cross-provider matching: title similarity, source resolution, chapter
selection and chapter count consensus.
"""

from .chapter_matcher import (
    ChapterMatch, ChapterMatcher, MatchStrategy, format_chapter_number,
    next_target_chapter, sort_chapters,
)
from .consensus import ChapterConsensus, ConsensusResult, calculate_consensus
from .source_resolver import SourceResolver
from .title_matcher import TitleMatcher

__all__ = [
    'ChapterConsensus', 'ChapterMatch', 'ChapterMatcher', 'ConsensusResult',
    'MatchStrategy', 'SourceResolver', 'TitleMatcher', 'calculate_consensus',
    'format_chapter_number', 'next_target_chapter', 'sort_chapters',
]
