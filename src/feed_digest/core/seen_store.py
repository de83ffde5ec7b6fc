"""
Seen-item markers with expiry.

An item counts as delivered while its marker lives in the key/value store.
Markers expire after the configured TTL, after which the item would be
delivered again if the source still lists it.
"""

from typing import Optional

from feed_digest.core.hashing import seen_hash
from feed_digest.exceptions import SeenStoreError, StoreError
from feed_digest.logger import get_logger
from feed_digest.storage.kv_store import KVStore

logger = get_logger(__name__)

SEEN_VALUE = "1"


class SeenStore:
    """Adapter recording which items were already notified."""

    def __init__(
        self,
        store: KVStore,
        prefix: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        """Initialize seen store.

        Args:
            store: Backing key/value store
            prefix: Key prefix for markers (default from config)
            ttl_seconds: Marker lifetime (default from config)
        """
        if prefix is None or ttl_seconds is None:
            from feed_digest.config import get_config

            config = get_config().store
            prefix = config.seen_prefix if prefix is None else prefix
            ttl_seconds = config.seen_ttl_seconds if ttl_seconds is None else ttl_seconds

        self.store = store
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def key_for(self, source_id: str, item_id: str) -> str:
        """Store key of an item's marker."""
        return f"{self.prefix}{source_id}:{seen_hash(source_id, item_id)}"

    def was_seen(self, source_id: str, item_id: str) -> bool:
        """Check whether an item has a live marker.

        Raises:
            SeenStoreError: If the store cannot be read
        """
        try:
            return self.store.get(self.key_for(source_id, item_id)) is not None
        except StoreError as e:
            raise SeenStoreError(f"Seen lookup failed: {e}") from e

    def mark_seen(self, source_id: str, item_id: str) -> None:
        """Write (or refresh) an item's marker.

        Raises:
            SeenStoreError: If the store cannot be written
        """
        try:
            self.store.put(self.key_for(source_id, item_id), SEEN_VALUE, ttl_seconds=self.ttl_seconds)
        except StoreError as e:
            raise SeenStoreError(f"Seen write failed: {e}") from e


def create_seen_store(store: KVStore) -> SeenStore:
    """Create a SeenStore configured from settings."""
    return SeenStore(store)
