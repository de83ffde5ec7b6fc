"""Data models for feed digest."""

from feed_digest.models.item import Item, SourceJob
from feed_digest.models.kv_entry import Base, KVEntryModel
from feed_digest.models.source import (
    DEFAULT_GROUP,
    ScrapeSelectors,
    Source,
    SourceCreate,
    SourceMode,
    SourceUpdate,
)

__all__ = [
    "Base",
    "KVEntryModel",
    "Item",
    "SourceJob",
    "DEFAULT_GROUP",
    "ScrapeSelectors",
    "Source",
    "SourceCreate",
    "SourceMode",
    "SourceUpdate",
]
