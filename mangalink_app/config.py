"""
Runtime configuration.

Every tunable threshold of the matching and progress pipeline lives here.
Values come from MANGALINK_* environment variables (a .env file is loaded by
the app factory) and fall back to the defaults below.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

ENV_PREFIX = 'MANGALINK_'


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class ReaderConfig:
    """Thresholds and intervals shared by search, matching and progress."""

    # Search ranking
    min_relevance_score: int = 25
    max_search_results: int = 20
    search_cache_ttl: int = 3600
    search_cache_size: int = 1000

    # Source resolution
    max_alt_titles: int = 3
    min_title_similarity: float = 0.0  # 0 = take the provider's first candidate

    # Chapter matching
    chapter_epsilon: float = 0.1
    import_window: float = 5.0

    # Progress tracking
    completion_threshold: float = 0.9
    throttle_interval: float = 0.5
    debounce_delay: float = 2.0
    periodic_interval: float = 10.0

    catalog_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'ReaderConfig':
        """Build a config from MANGALINK_* environment variables."""
        defaults = cls()
        return cls(
            min_relevance_score=_env_int('MIN_RELEVANCE_SCORE', defaults.min_relevance_score),
            max_search_results=_env_int('MAX_SEARCH_RESULTS', defaults.max_search_results),
            search_cache_ttl=_env_int('SEARCH_CACHE_TTL', defaults.search_cache_ttl),
            search_cache_size=_env_int('SEARCH_CACHE_SIZE', defaults.search_cache_size),
            max_alt_titles=_env_int('MAX_ALT_TITLES', defaults.max_alt_titles),
            min_title_similarity=_env_float('MIN_TITLE_SIMILARITY', defaults.min_title_similarity),
            chapter_epsilon=_env_float('CHAPTER_EPSILON', defaults.chapter_epsilon),
            import_window=_env_float('IMPORT_WINDOW', defaults.import_window),
            completion_threshold=_env_float('COMPLETION_THRESHOLD', defaults.completion_threshold),
            throttle_interval=_env_float('THROTTLE_INTERVAL', defaults.throttle_interval),
            debounce_delay=_env_float('DEBOUNCE_DELAY', defaults.debounce_delay),
            periodic_interval=_env_float('PERIODIC_INTERVAL', defaults.periodic_interval),
            catalog_dir=os.environ.get(ENV_PREFIX + 'CATALOG_DIR') or None,
        )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_config: Optional[ReaderConfig] = None


def get_config() -> ReaderConfig:
    """Get or create the process-wide config."""
    global _config
    if _config is None:
        _config = ReaderConfig.from_env()
    return _config


def set_config(config: Optional[ReaderConfig]) -> None:
    global _config
    _config = config
