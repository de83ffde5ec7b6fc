"""
Exception types raised by the feed digest pipeline.

Every per-source and per-group failure is one of these; the run orchestrator
records the message on the affected sources and carries on.
"""

from typing import Optional


class FeedDigestError(Exception):
    """Base exception for feed digest errors."""


class ConfigError(FeedDigestError):
    """A source is missing configuration needed before it can be fetched."""


class FetchError(FeedDigestError):
    """Non-2xx response or transport failure while fetching a source."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(FeedDigestError):
    """The fetched document is not a readable RSS/Atom feed."""


class SelectorError(FeedDigestError):
    """Scrape selectors did not yield any usable items."""

    NOTHING_MATCHED = "nothing_matched"
    TITLES_EMPTY = "titles_empty"
    NO_LINKS = "no_links"
    UNPAIRED = "unpaired"

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.kind = kind


class StoreError(FeedDigestError):
    """The key/value store is unavailable or rejected an operation."""


class SeenStoreError(StoreError):
    """Seen-item markers could not be read or written."""


class NotificationError(FeedDigestError):
    """The notification channel rejected the digest or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "FeedDigestError",
    "ConfigError",
    "FetchError",
    "ParseError",
    "SelectorError",
    "StoreError",
    "SeenStoreError",
    "NotificationError",
]
