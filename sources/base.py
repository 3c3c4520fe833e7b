"""
================================================================================
MangaLink - Provider Contract
================================================================================
Abstract base class for every content provider.

This follows the HakuNeko/FMD pattern of defining a standard interface:
  1. search(query) -> Find works by title
  2. get_chapters(source_ref) -> Get chapter list
  3. get_pages(chapter_ref) -> Get page image references

Providers are async. Absence of results is an empty list; transport or parse
failures are raised as ProviderError so callers can skip that provider and
carry on with the rest.
================================================================================
"""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ERRORS
# =============================================================================

class ProviderError(Exception):
    """Network or parse failure reported by a provider."""

    def __init__(self, provider_name: str, message: str):
        self.provider_name = provider_name
        super().__init__(f"{provider_name}: {message}")


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ProviderStatus(Enum):
    """Current operational status of a provider."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class SearchResult:
    """
    Standardized search candidate that works across ALL providers.

    Lives only for the duration of a search; ranking and deduplication
    consume these and hand back a subset.
    """
    id: str                            # Provider-specific ID
    title: str                         # Display title
    provider_name: str = ""            # Provider identifier
    description: Optional[str] = None
    cover_url: Optional[str] = None
    rating: Optional[float] = None
    follow_count: Optional[int] = None
    url: Optional[str] = None          # Direct link to the work on the provider
    alt_titles: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "provider": self.provider_name,
            "description": self.description,
            "cover": self.cover_url,
            "rating": self.rating,
            "follows": self.follow_count,
            "url": self.url,
            "alt_titles": self.alt_titles,
        }


@dataclass
class Chapter:
    """Standardized chapter information."""
    number: float                      # Fractional numbers such as 10.5 are valid
    title: Optional[str] = None
    url: Optional[str] = None
    id: Optional[str] = None
    ordinal_index: Optional[int] = None  # Set after ascending sort

    @property
    def ref(self) -> str:
        """Reference handed back to the provider's get_pages()."""
        return self.url or self.id or ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "id": self.id,
            "index": self.ordinal_index,
        }


@dataclass
class Page:
    """Standardized page/image information."""
    url: str                           # Image URL
    index: int                         # Page number (0-indexed)
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "index": self.index,
            "headers": self.headers,
        }


# =============================================================================
# BASE PROVIDER CLASS
# =============================================================================

class ContentProvider(ABC):
    """
    Abstract base class for content providers.

    INHERITANCE:
        Every provider implements the 3 required coroutines: search(),
        get_chapters(), get_pages(). lookup() is optional and only used when
        a Work already carries a canonical id/url for this provider family.

    STATUS:
        Success and failure counters let the registry report health and
        let callers see which providers keep failing.

    Example:
        class ExampleProvider(ContentProvider):
            id = "example"
            name = "Example"
            url_patterns = [r'https?://example\\.org/title/([a-z0-9-]+)']

            async def search(self, query):
                ...
    """

    # =========================================================================
    # PROVIDER CONFIGURATION (Override in subclass)
    # =========================================================================

    id: str = "base"                   # Unique identifier
    name: str = "Base Provider"        # Display name
    family: str = ""                   # Canonical id namespace (defaults to id)

    # URL Detection (Override in subclass with domain patterns)
    url_patterns: List[str] = []

    # Failures before the provider is reported offline
    max_failures: int = 5

    def __init__(self):
        self._status = ProviderStatus.UNKNOWN
        self._last_error: Optional[str] = None
        self._failure_count = 0
        self._last_success = 0.0

    @property
    def provider_family(self) -> str:
        return self.family or self.id

    # =========================================================================
    # STATUS MANAGEMENT
    # =========================================================================

    def record_success(self) -> None:
        """Reset counters on successful request."""
        self._status = ProviderStatus.ONLINE
        self._failure_count = 0
        self._last_success = time.time()

    def record_failure(self, error: str) -> None:
        """Track errors for health reporting."""
        self._last_error = error
        self._failure_count += 1
        if self._failure_count >= self.max_failures:
            self._status = ProviderStatus.OFFLINE

    @property
    def status(self) -> ProviderStatus:
        return self._status

    @property
    def is_available(self) -> bool:
        return self._status in (ProviderStatus.ONLINE, ProviderStatus.UNKNOWN)

    def get_health_info(self) -> Dict[str, Any]:
        """Get health info for status display."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self._status.value,
            "is_available": self.is_available,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
        }

    def reset(self) -> None:
        """Reset all error states."""
        self._status = ProviderStatus.UNKNOWN
        self._failure_count = 0
        self._last_error = None

    # =========================================================================
    # ABSTRACT METHODS (Must implement in subclass)
    # =========================================================================

    @abstractmethod
    async def search(self, query: str) -> List[SearchResult]:
        """
        Search for works by title.

        Args:
            query: Search term

        Returns:
            Candidates in the provider's own ranking order
        """

    @abstractmethod
    async def get_chapters(self, source_ref: str) -> List[Chapter]:
        """
        Get all chapters for a work.

        Args:
            source_ref: Provider-specific work id or url

        Returns:
            Chapters in provider order (not necessarily sorted)
        """

    @abstractmethod
    async def get_pages(self, chapter_ref: str) -> List[Page]:
        """
        Get page image references for a chapter.

        Args:
            chapter_ref: Provider-specific chapter id or url
        """

    # =========================================================================
    # OPTIONAL METHODS (Override if provider supports)
    # =========================================================================

    async def lookup(self, ref: str) -> List[SearchResult]:
        """Find a work by its canonical id or url on this provider."""
        return []

    # =========================================================================
    # URL DETECTION METHODS
    # =========================================================================

    def matches_url(self, url: str) -> bool:
        """Check if this provider recognizes the given URL."""
        if not url or not self.url_patterns:
            return False

        for pattern in self.url_patterns:
            if re.search(pattern, url, re.IGNORECASE):
                return True
        return False

    def extract_id_from_url(self, url: str) -> Optional[str]:
        """
        Extract the work ID from a URL.

        Tries all url_patterns and returns the first captured group.

        Example:
            pattern: r'https?://mangadex\\.org/title/([a-f0-9-]+)'
            URL: 'https://mangadex.org/title/abc-123-def'
            Returns: 'abc-123-def'
        """
        if not url or not self.url_patterns:
            return None

        for pattern in self.url_patterns:
            match = re.search(pattern, url, re.IGNORECASE)
            if match and match.groups():
                return match.group(1)

        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id='{self.id}' status={self._status.value}>"
