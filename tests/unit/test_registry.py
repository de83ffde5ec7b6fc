"""Unit tests for the source registry."""

import json
from unittest.mock import MagicMock

import pytest

from feed_digest.exceptions import StoreError
from feed_digest.models import SourceCreate, SourceMode, SourceUpdate
from feed_digest.storage.kv_store import MemoryKVStore
from feed_digest.storage.registry import SourceRegistry


@pytest.fixture
def kv():
    """Create an in-memory store."""
    return MemoryKVStore()


@pytest.fixture
def registry(kv):
    """Create a registry."""
    return SourceRegistry(kv, key="feeds:list")


class TestSourceRegistry:
    """Tests for SourceRegistry."""

    def test_empty(self, registry: SourceRegistry):
        """Test an empty store lists nothing."""
        assert registry.list_sources() == []

    def test_non_list_record(self, registry: SourceRegistry, kv: MemoryKVStore):
        """Test a stored non-list value reads as empty."""
        kv.put("feeds:list", json.dumps({"oops": True}))
        assert registry.list_sources() == []

    def test_create_and_list(self, registry: SourceRegistry):
        """Test created sources are listed in order."""
        first = registry.create(SourceCreate(url="https://a.com/feed"))
        second = registry.create(SourceCreate(url="https://b.com/feed", group="tech"))

        sources = registry.list_sources()

        assert [s.id for s in sources] == [first.id, second.id]
        assert sources[1].group == "tech"

    def test_persisted_as_camel_case_json(self, registry: SourceRegistry, kv: MemoryKVStore):
        """Test the record layout in the store."""
        registry.create(SourceCreate(url="https://a.com", interval_minutes=10))

        stored = json.loads(kv.get("feeds:list"))

        assert isinstance(stored, list)
        assert stored[0]["url"] == "https://a.com"
        assert stored[0]["intervalMinutes"] == 10

    def test_loads_legacy_records(self, registry: SourceRegistry, kv: MemoryKVStore):
        """Test records written by older versions load."""
        kv.put(
            "feeds:list",
            json.dumps(
                [
                    {
                        "id": "old",
                        "url": "https://ex.com",
                        "title": "Ex",
                        "createdAt": "2024-01-01T00:00:00.000Z",
                        "isScrapedFeed": True,
                        "titleSelector": "h2",
                        "linkSelector": "a",
                    }
                ]
            ),
        )

        source = registry.get("old")

        assert source is not None
        assert source.mode == SourceMode.SCRAPE

    def test_invalid_record(self, registry: SourceRegistry, kv: MemoryKVStore):
        """Test an unreadable record raises StoreError."""
        kv.put("feeds:list", json.dumps([{"title": "no url"}]))

        with pytest.raises(StoreError, match="position 0"):
            registry.list_sources()

    def test_get_missing(self, registry: SourceRegistry):
        """Test get returns None for unknown ids."""
        assert registry.get("missing") is None

    def test_update(self, registry: SourceRegistry):
        """Test update changes and persists fields."""
        source = registry.create(SourceCreate(url="https://a.com"))

        updated = registry.update(source.id, SourceUpdate(group="news"))

        assert updated.group == "news"
        assert registry.get(source.id).group == "news"

    def test_update_missing(self, registry: SourceRegistry):
        """Test update of an unknown id returns None."""
        assert registry.update("missing", SourceUpdate(title="x")) is None

    def test_delete(self, registry: SourceRegistry):
        """Test delete removes the source."""
        keep = registry.create(SourceCreate(url="https://a.com"))
        drop = registry.create(SourceCreate(url="https://b.com"))

        assert registry.delete(drop.id) == drop.id
        assert [s.id for s in registry.list_sources()] == [keep.id]

    def test_delete_missing(self, registry: SourceRegistry):
        """Test delete of an unknown id returns None."""
        assert registry.delete("missing") is None

    def test_store_failure_propagates(self):
        """Test store errors surface as StoreError."""
        kv = MagicMock()
        kv.get_json.side_effect = StoreError("unavailable")

        with pytest.raises(StoreError):
            SourceRegistry(kv, key="feeds:list").list_sources()

    def test_default_key_from_config(self, kv):
        """Test the key defaults to feeds:list."""
        assert SourceRegistry(kv).key == "feeds:list"
