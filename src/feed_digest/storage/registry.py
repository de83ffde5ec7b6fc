"""
Source registry stored as one JSON record in the key/value store.

Every operation is a full read-modify-write of the list; nothing is cached
between calls.
"""

from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from feed_digest.exceptions import StoreError
from feed_digest.logger import get_logger
from feed_digest.models import Source, SourceCreate, SourceUpdate
from feed_digest.storage.kv_store import KVStore

logger = get_logger(__name__)


class SourceRegistry:
    """Repository for configured sources."""

    def __init__(self, store: KVStore, key: Optional[str] = None) -> None:
        """Initialize registry.

        Args:
            store: Backing key/value store
            key: Key of the source list record (default from config)
        """
        if key is None:
            from feed_digest.config import get_config

            key = get_config().store.sources_key

        self.store = store
        self.key = key

    def list_sources(self) -> list[Source]:
        """Load all sources in stored order.

        Returns:
            List of Source instances; empty if nothing is stored

        Raises:
            StoreError: If the store fails or a record is invalid
        """
        data = self.store.get_json(self.key)
        if not isinstance(data, list):
            return []

        sources = []
        for index, record in enumerate(data):
            try:
                sources.append(Source.model_validate(record))
            except ValidationError as e:
                raise StoreError(f"Invalid source record at position {index}: {e}") from e
        return sources

    def save_sources(self, sources: list[Source]) -> None:
        """Replace the stored list with the given sources.

        Args:
            sources: Sources to persist, in order
        """
        self.store.put_json(self.key, [source.to_record() for source in sources])
        logger.debug(f"Saved {len(sources)} sources")

    def get(self, source_id: str) -> Optional[Source]:
        """Get a source by id.

        Args:
            source_id: Source id

        Returns:
            Source or None
        """
        for source in self.list_sources():
            if source.id == source_id:
                return source
        return None

    def create(self, data: SourceCreate, now: Optional[datetime] = None) -> Source:
        """Append a new source.

        Args:
            data: Validated creation payload
            now: Creation timestamp override

        Returns:
            The created Source
        """
        sources = self.list_sources()
        source = data.to_source(now=now)
        sources.append(source)
        self.save_sources(sources)
        logger.info(f"Created source {source.id} ({source.url})")
        return source

    def update(
        self,
        source_id: str,
        data: SourceUpdate,
        now: Optional[datetime] = None,
    ) -> Optional[Source]:
        """Apply an update to a source.

        Args:
            source_id: Source id
            data: Validated update payload
            now: Update timestamp override

        Returns:
            Updated Source, or None if not found
        """
        sources = self.list_sources()
        for source in sources:
            if source.id == source_id:
                data.apply_to(source, now=now)
                self.save_sources(sources)
                logger.info(f"Updated source {source_id}")
                return source
        return None

    def delete(self, source_id: str) -> Optional[str]:
        """Remove a source.

        Args:
            source_id: Source id

        Returns:
            The removed id, or None if not found
        """
        sources = self.list_sources()
        remaining = [source for source in sources if source.id != source_id]
        if len(remaining) == len(sources):
            return None
        self.save_sources(remaining)
        logger.info(f"Deleted source {source_id}")
        return source_id
