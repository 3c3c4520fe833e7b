"""
Catalog-backed provider.

Serves works, chapters and pages from an in-memory catalog (a dict or a JSON
file). Used for offline catalogs and fixtures; it performs no network I/O.

Catalog format:
    {
        "id": "mangadex",
        "name": "MangaDex",
        "url_patterns": ["https?://mangadex\\.org/title/([a-f0-9-]+)"],
        "works": [
            {
                "id": "abc", "title": "Naruto", "url": "...",
                "chapters": [{"number": 1, "title": "...", "url": "...",
                              "pages": ["https://.../1.jpg"]}]
            }
        ]
    }
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .base import Chapter, ContentProvider, Page, ProviderError, SearchResult

logger = logging.getLogger(__name__)


class CatalogProvider(ContentProvider):
    """ContentProvider answering from a static catalog."""

    def __init__(self, catalog: Dict[str, Any]):
        super().__init__()
        if not catalog.get("id"):
            raise ValueError("Catalog is missing a provider id")

        self.id = catalog["id"]
        self.name = catalog.get("name", self.id)
        self.family = catalog.get("family", "")
        self.url_patterns = list(catalog.get("url_patterns", []))
        self._works: List[Dict[str, Any]] = list(catalog.get("works", []))

    @classmethod
    def from_file(cls, path: str) -> "CatalogProvider":
        try:
            with open(path, "r", encoding="utf-8") as f:
                catalog = json.load(f)
        except (OSError, ValueError) as e:
            raise ProviderError(path, f"cannot load catalog: {e}") from e
        return cls(catalog)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _to_result(self, work: Dict[str, Any]) -> SearchResult:
        return SearchResult(
            id=str(work.get("id", "")),
            title=work.get("title", ""),
            provider_name=self.id,
            description=work.get("description"),
            cover_url=work.get("cover_url"),
            rating=work.get("rating"),
            follow_count=work.get("follow_count"),
            url=work.get("url"),
            alt_titles=list(work.get("alt_titles", [])),
        )

    def _find_work(self, ref: str) -> Optional[Dict[str, Any]]:
        for work in self._works:
            if ref and ref in (str(work.get("id", "")), work.get("url")):
                return work
        return None

    # =========================================================================
    # CONTRACT
    # =========================================================================

    async def search(self, query: str) -> List[SearchResult]:
        needle = query.lower().strip()
        if not needle:
            return []

        results = []
        for work in self._works:
            titles = [work.get("title", "")] + list(work.get("alt_titles", []))
            if any(needle in t.lower() for t in titles if t):
                results.append(self._to_result(work))

        logger.debug(f"{self.id}: {len(results)} results for '{query}'")
        return results

    async def lookup(self, ref: str) -> List[SearchResult]:
        work = self._find_work(ref)
        return [self._to_result(work)] if work else []

    async def get_chapters(self, source_ref: str) -> List[Chapter]:
        work = self._find_work(source_ref)
        if work is None:
            return []

        chapters = []
        for raw in work.get("chapters", []):
            try:
                number = float(raw.get("number"))
            except (TypeError, ValueError):
                logger.debug(f"{self.id}: skipping chapter without number: {raw}")
                continue
            chapters.append(Chapter(
                number=number,
                title=raw.get("title"),
                url=raw.get("url"),
                id=raw.get("id"),
            ))
        return chapters

    async def get_pages(self, chapter_ref: str) -> List[Page]:
        for work in self._works:
            for raw in work.get("chapters", []):
                if chapter_ref and chapter_ref in (raw.get("url"), raw.get("id")):
                    return [
                        Page(url=url, index=i)
                        for i, url in enumerate(raw.get("pages", []))
                    ]
        return []
