"""
================================================================================
MangaLink - Provider Registry
================================================================================
Central registry for all content providers.

THIS IS THE BRAIN OF THE MULTI-PROVIDER SYSTEM:
  - Maps provider identifiers to ContentProvider implementations
  - Built once at startup (catalog discovery + explicit registration)
  - Fixes the iteration order every fan-out is merged in, so repeated runs
    against the same data give the same answer
  - Tracks health status of all providers
================================================================================
"""

import logging
import os
from typing import Any, Dict, List, Optional

from .base import (
    Chapter, ContentProvider, Page, ProviderError, ProviderStatus, SearchResult
)
from .catalog import CatalogProvider

logger = logging.getLogger(__name__)

__all__ = [
    'Chapter', 'CatalogProvider', 'ContentProvider', 'Page', 'ProviderError',
    'ProviderRegistry', 'ProviderStatus', 'SearchResult',
    'get_provider_registry', 'set_provider_registry',
]


class ProviderRegistry:
    """
    Registry of content providers keyed by provider id.

    Usage:
        registry = ProviderRegistry()
        registry.register(CatalogProvider.from_file("mangadex.json"))

        for provider in registry.ordered_providers():
            ...
    """

    def __init__(self, priority_order: Optional[List[str]] = None):
        # Insertion order is the merge order unless priority_order says otherwise
        self._providers: Dict[str, ContentProvider] = {}
        self._priority_order = list(priority_order or [])

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, provider: ContentProvider) -> None:
        if provider.id in self._providers:
            raise ValueError(f"Provider '{provider.id}' is already registered")
        self._providers[provider.id] = provider
        logger.debug(f"Registered provider {provider.id}")

    def unregister(self, provider_id: str) -> bool:
        return self._providers.pop(provider_id, None) is not None

    def load_catalog_dir(self, catalog_dir: str) -> int:
        """
        Register one CatalogProvider per *.json file in catalog_dir.

        Files are loaded in sorted order so the registry order does not
        depend on the filesystem.
        """
        if not os.path.isdir(catalog_dir):
            logger.warning(f"Catalog directory not found: {catalog_dir}")
            return 0

        loaded = 0
        for filename in sorted(os.listdir(catalog_dir)):
            if not filename.endswith('.json'):
                continue
            path = os.path.join(catalog_dir, filename)
            try:
                self.register(CatalogProvider.from_file(path))
                loaded += 1
            except (ProviderError, ValueError) as e:
                logger.warning(f"Failed to load catalog '{filename}': {e}")

        logger.info(f"Loaded {loaded} catalog providers from {catalog_dir}")
        return loaded

    # =========================================================================
    # PROVIDER ACCESS
    # =========================================================================

    @property
    def providers(self) -> Dict[str, ContentProvider]:
        return self._providers

    def get_provider(self, provider_id: str) -> Optional[ContentProvider]:
        return self._providers.get(provider_id)

    def ordered_providers(self) -> List[ContentProvider]:
        """
        Providers in their fixed merge order.

        Order:
          1. Providers listed in priority_order
          2. Remaining providers in registration order
        """
        ordered = []
        seen = set()

        for provider_id in self._priority_order:
            provider = self._providers.get(provider_id)
            if provider and provider_id not in seen:
                ordered.append(provider)
                seen.add(provider_id)

        for provider_id, provider in self._providers.items():
            if provider_id not in seen:
                ordered.append(provider)

        return ordered

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers

    # =========================================================================
    # HEALTH & STATUS
    # =========================================================================

    def get_health_report(self) -> Dict[str, Any]:
        """Get health status of all providers."""
        providers = self.ordered_providers()
        return {
            "providers": [p.get_health_info() for p in providers],
            "available_count": sum(1 for p in providers if p.is_available),
            "total_count": len(providers),
        }

    def reset_provider(self, provider_id: str) -> bool:
        provider = self._providers.get(provider_id)
        if provider:
            provider.reset()
            return True
        return False


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_registry: Optional[ProviderRegistry] = None


def get_provider_registry(catalog_dir: Optional[str] = None) -> ProviderRegistry:
    """Get or create the global ProviderRegistry instance."""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
        if catalog_dir:
            _registry.load_catalog_dir(catalog_dir)
    return _registry


def set_provider_registry(registry: Optional[ProviderRegistry]) -> None:
    """Replace the global registry (app factory and tests)."""
    global _registry
    _registry = registry
