"""Storage layer modules for feed digest."""

from feed_digest.storage.database import DatabaseManager
from feed_digest.storage.kv_store import KVStore, MemoryKVStore, SQLKVStore, create_kv_store
from feed_digest.storage.registry import SourceRegistry

__all__ = [
    "DatabaseManager",
    "KVStore",
    "MemoryKVStore",
    "SQLKVStore",
    "SourceRegistry",
    "create_kv_store",
]
