"""
Reader domain models.

Work, SourceInstance, ReadingProgress and ReadingSession are plain
dataclasses. ReadingSession is immutable: every reader operation takes one
and returns a new one, so no reader state lives on long-lived objects.
"""

import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Tuple

from sources.base import Chapter, Page


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


@dataclass(frozen=True)
class Work:
    """Canonical identity of a title, independent of any provider."""
    title: str
    alt_titles: Tuple[str, ...] = ()
    id: Optional[str] = None
    url: Optional[str] = None
    cover_url: Optional[str] = None
    # Canonical ids keyed by provider family, e.g. {"mangadex": "a1c7c817"}
    provider_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Stable identifier used for progress records."""
        return self.id or self.url or self.title

    def with_alt_titles(self, titles: Iterable[str]) -> 'Work':
        """Return a copy enriched with extra alternate titles."""
        merged = list(self.alt_titles)
        for title in titles:
            if title and title != self.title and title not in merged:
                merged.append(title)
        return replace(self, alt_titles=tuple(merged))

    def with_cover(self, cover_url: Optional[str]) -> 'Work':
        if not cover_url or self.cover_url:
            return self
        return replace(self, cover_url=cover_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'alt_titles': list(self.alt_titles),
            'id': self.id,
            'url': self.url,
            'cover_url': self.cover_url,
            'provider_ids': dict(self.provider_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Work':
        return cls(
            title=data['title'],
            alt_titles=tuple(data.get('alt_titles') or ()),
            id=data.get('id'),
            url=data.get('url'),
            cover_url=data.get('cover_url'),
            provider_ids=dict(data.get('provider_ids') or {}),
        )


@dataclass(frozen=True)
class SourceInstance:
    """A Work's representation on one provider."""
    provider_name: str
    provider_id: str
    provider_url: Optional[str] = None
    title: str = ''
    match_score: float = 0.0
    matched_by: str = 'title'   # "id", "title" or "alt_title"
    # Metadata the provider reported, used to enrich the Work
    alt_titles: Tuple[str, ...] = ()
    cover_url: Optional[str] = None

    @property
    def ref(self) -> str:
        """Reference handed to the provider's get_chapters()."""
        return self.provider_url or self.provider_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'provider': self.provider_name,
            'provider_id': self.provider_id,
            'url': self.provider_url,
            'title': self.title,
            'match_score': round(self.match_score, 1),
            'matched_by': self.matched_by,
        }


@dataclass
class ReadingProgress:
    """Fine-grained reading position for one (work, provider) pair."""
    work_id: str
    provider_name: str
    chapter_number: float
    page_number: int = 1
    scroll_fraction: float = 0.0
    total_pages: int = 1
    completed: bool = False
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.chapter_number < 0:
            raise ValueError(f"chapter_number must be >= 0, got {self.chapter_number}")
        self.total_pages = max(1, int(self.total_pages))
        self.page_number = min(max(1, int(self.page_number)), self.total_pages)
        self.scroll_fraction = clamp(float(self.scroll_fraction))

    def same_position(self, other: Optional['ReadingProgress']) -> bool:
        """True if other describes the same place (timestamps ignored)."""
        if other is None:
            return False
        return (
            self.work_id == other.work_id
            and self.provider_name == other.provider_name
            and self.chapter_number == other.chapter_number
            and self.page_number == other.page_number
            and self.scroll_fraction == other.scroll_fraction
            and self.total_pages == other.total_pages
            and self.completed == other.completed
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'work_id': self.work_id,
            'provider': self.provider_name,
            'chapter_number': self.chapter_number,
            'page_number': self.page_number,
            'scroll_fraction': self.scroll_fraction,
            'total_pages': self.total_pages,
            'completed': self.completed,
            'updated_at': self.updated_at,
        }


@dataclass(frozen=True)
class ReadingSession:
    """
    Everything known about the chapter currently open.

    Produced by ChapterLoader; progress updates return a new session via
    with_progress().
    """
    work: Work
    provider_name: str
    source_ref: str
    chapters: Tuple[Chapter, ...] = ()
    chapter: Optional[Chapter] = None
    pages: Tuple[Page, ...] = ()
    load_sequence: int = 0
    progress: Optional[ReadingProgress] = None

    @property
    def total_pages(self) -> int:
        return max(1, len(self.pages))

    def with_progress(self, progress: ReadingProgress) -> 'ReadingSession':
        return replace(self, progress=progress)

    def _chapter_at(self, offset: int) -> Optional[Chapter]:
        if self.chapter is None or self.chapter.ordinal_index is None:
            return None
        index = self.chapter.ordinal_index + offset
        if 0 <= index < len(self.chapters):
            return self.chapters[index]
        return None

    def next_chapter(self) -> Optional[Chapter]:
        return self._chapter_at(1)

    def previous_chapter(self) -> Optional[Chapter]:
        return self._chapter_at(-1)
