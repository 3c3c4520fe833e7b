"""
Cache layer for ranked search results.

Design:
  - In-memory dict cache (no external dependencies)
  - TTL-based expiration
  - LRU eviction when cache size exceeds limit
  - Thread-safe with locks (shared by every request thread)

Usage:
    cache = SearchCache(ttl=3600, max_size=1000)
    cache.set("naruto", results, providers=["mangadex", "weebcentral"])
    cached = cache.get("naruto", providers=["mangadex", "weebcentral"])
"""

import hashlib
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional


class SearchCache:
    """In-memory TTL + LRU cache keyed by query and provider set."""

    def __init__(self, ttl: int = 3600, max_size: int = 1000, clock=time.monotonic):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: OrderedDict = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _make_key(self, query: str, providers: Optional[List[str]] = None) -> str:
        # Provider order matters: it decides tie order in the ranking
        providers_str = ','.join(providers) if providers else 'default'
        data = f"{query.lower().strip()}:{providers_str}"
        return hashlib.md5(data.encode()).hexdigest()

    def get(self, query: str, providers: Optional[List[str]] = None) -> Optional[List[Any]]:
        key = self._make_key(query, providers)

        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() - entry['timestamp'] > self.ttl:
                del self._cache[key]
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return list(entry['data'])

    def set(self, query: str, data: List[Any], providers: Optional[List[str]] = None) -> None:
        key = self._make_key(query, providers)

        with self._lock:
            if len(self._cache) >= self.max_size and key not in self._cache:
                self._cache.popitem(last=False)

            self._cache[key] = {
                'data': list(data),
                'timestamp': self._clock(),
            }

    def clear(self) -> None:
        """Clear all cache entries and reset statistics."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                'size': len(self._cache),
                'max_size': self.max_size,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': round(self._hits / total * 100, 1) if total else 0.0,
            }
