"""Error taxonomy for the matching core.

ProviderError lives in sources.base next to the provider contract; the
errors here are raised by MangaLink itself.
"""

from sources.base import ProviderError


class MangaLinkError(Exception):
    """Base class for errors raised by the matching core."""


class NotFoundError(MangaLinkError):
    """A provider returned an empty chapter list; nothing to fall back to."""

    def __init__(self, message: str, provider_name: str = '', target: float = None):
        self.provider_name = provider_name
        self.target = target
        super().__init__(message)


class MatchNotFound(MangaLinkError):
    """No configured provider has the requested work."""

    def __init__(self, title: str, providers_tried: int = 0):
        self.title = title
        self.providers_tried = providers_tried
        super().__init__(f"No provider has '{title}' ({providers_tried} tried)")


class ProgressStoreError(MangaLinkError):
    """The progress store could not read or write a record."""


__all__ = ['MangaLinkError', 'MatchNotFound', 'NotFoundError', 'ProgressStoreError', 'ProviderError']
