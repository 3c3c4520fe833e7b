import asyncio

import pytest

from sources import CatalogProvider, ProviderRegistry
from sources.base import ContentProvider, Page, ProviderError


def chapter_entries(numbers, prefix, pages=3):
    return [
        {
            "number": n,
            "title": f"Chapter {n:g}",
            "url": f"{prefix}/ch/{n:g}",
            "pages": [f"{prefix}/ch/{n:g}/{i}.jpg" for i in range(1, pages + 1)],
        }
        for n in numbers
    ]


def make_catalog(provider_id, works, family="", url_patterns=None):
    return CatalogProvider({
        "id": provider_id,
        "name": provider_id.title(),
        "family": family,
        "url_patterns": url_patterns or [],
        "works": works,
    })


class FailingProvider(ContentProvider):
    """Every call fails the way a dead site would."""

    def __init__(self, provider_id="broken"):
        super().__init__()
        self.id = provider_id
        self.name = provider_id.title()

    async def search(self, query):
        raise ProviderError(self.id, "connection refused")

    async def lookup(self, ref):
        raise ProviderError(self.id, "connection refused")

    async def get_chapters(self, source_ref):
        raise ProviderError(self.id, "connection refused")

    async def get_pages(self, chapter_ref):
        raise ProviderError(self.id, "connection refused")


class CountingCatalog(CatalogProvider):
    """Catalog that records every search query it receives."""

    def __init__(self, catalog):
        super().__init__(catalog)
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return await super().search(query)


class PagelessCatalog(CatalogProvider):
    """Catalog that lists chapters but times out fetching pages."""

    async def get_pages(self, chapter_ref):
        raise ProviderError(self.id, "timeout")


class GatedCatalog(CatalogProvider):
    """Catalog whose get_pages() waits on a per-chapter asyncio.Event."""

    def __init__(self, catalog):
        super().__init__(catalog)
        self.gates = {}

    async def get_pages(self, chapter_ref):
        gate = self.gates.get(chapter_ref)
        if gate is not None:
            await gate.wait()
        return await super().get_pages(chapter_ref)


@pytest.fixture
def alpha():
    return make_catalog(
        "alpha",
        [
            {
                "id": "sl-1",
                "title": "Solo Leveling",
                "url": "https://alpha.example/title/sl-1",
                "cover_url": "https://alpha.example/covers/sl.jpg",
                "chapters": chapter_entries([1, 2, 3, 4, 5], "https://alpha.example/sl"),
            },
            {
                "id": "op-1",
                "title": "One Piece",
                "url": "https://alpha.example/title/op-1",
                "chapters": chapter_entries([1, 2], "https://alpha.example/op"),
            },
        ],
        family="alpha",
        url_patterns=[r"https?://alpha\.example/title/([\w-]+)"],
    )


@pytest.fixture
def beta():
    return make_catalog(
        "beta",
        [
            {
                "id": "nhlu",
                "title": "Na Honjaman Level Up",
                "url": "https://beta.example/w/nhlu",
                "chapters": chapter_entries([1, 2, 2.5, 4, 6], "https://beta.example/nhlu"),
            },
        ],
    )


@pytest.fixture
def registry(alpha, beta):
    registry = ProviderRegistry()
    registry.register(alpha)
    registry.register(beta)
    return registry


def run(coro):
    return asyncio.run(coro)
