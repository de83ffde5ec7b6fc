"""
Key/value store with per-key expiry.

Both the source registry and the seen-item markers live here. Two backends
are provided: a SQLite table through SQLAlchemy, and an in-process dict.
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from feed_digest.exceptions import StoreError
from feed_digest.logger import get_logger
from feed_digest.models import KVEntryModel
from feed_digest.models.source import utcnow
from feed_digest.storage.database import DatabaseManager

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class KVStore(ABC):
    """Key/value store contract: get, put and delete with optional TTL."""

    def __init__(self, clock: Optional[Clock] = None):
        """Initialize the store.

        Args:
            clock: Returns the current aware UTC time; injectable for tests
        """
        self.clock = clock or utcnow

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value of a live key, or None."""

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Write a key, replacing any previous value and expiry."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    def add(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Write a key only if it is absent or expired.

        Returns:
            True if the key was written
        """

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete every expired entry.

        Returns:
            Number of entries removed
        """

    def get_json(self, key: str) -> Any:
        """Read and decode a JSON value.

        Raises:
            StoreError: If the stored value is not valid JSON
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Value under {key!r} is not valid JSON: {e}") from e

    def put_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Encode a value as JSON and write it."""
        self.put(key, json.dumps(value, ensure_ascii=False), ttl_seconds=ttl_seconds)

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[datetime]:
        if ttl_seconds is None:
            return None
        return self.clock() + timedelta(seconds=ttl_seconds)

    def close(self) -> None:
        """Release backend resources."""


class SQLKVStore(KVStore):
    """Key/value store backed by the kv_entries table."""

    def __init__(self, db_manager: DatabaseManager, clock: Optional[Clock] = None):
        """Initialize the SQL store.

        Args:
            db_manager: DatabaseManager owning the engine
            clock: Optional clock override
        """
        super().__init__(clock)
        self.db_manager = db_manager
        self.db_manager.init_db()

    def _now(self) -> datetime:
        return _naive_utc(self.clock())

    def get(self, key: str) -> Optional[str]:
        try:
            with self.db_manager.session() as session:
                entry = session.get(KVEntryModel, key)
                if entry is None:
                    return None
                if entry.expires_at is not None and entry.expires_at <= self._now():
                    session.delete(entry)
                    return None
                return entry.value
        except SQLAlchemyError as e:
            raise StoreError(f"Store read failed for {key!r}: {e}") from e

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._expiry(ttl_seconds)
        try:
            with self.db_manager.session() as session:
                session.merge(
                    KVEntryModel(
                        key=key,
                        value=value,
                        expires_at=_naive_utc(expires_at) if expires_at else None,
                    )
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Store write failed for {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.db_manager.session() as session:
                session.execute(delete(KVEntryModel).where(KVEntryModel.key == key))
        except SQLAlchemyError as e:
            raise StoreError(f"Store delete failed for {key!r}: {e}") from e

    def add(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        expires_at = self._expiry(ttl_seconds)
        try:
            with self.db_manager.session() as session:
                existing = session.get(KVEntryModel, key)
                if existing is not None:
                    if existing.expires_at is None or existing.expires_at > self._now():
                        return False
                    session.delete(existing)
                    session.flush()

                session.add(
                    KVEntryModel(
                        key=key,
                        value=value,
                        expires_at=_naive_utc(expires_at) if expires_at else None,
                    )
                )
                session.flush()
        except IntegrityError:
            # Another writer inserted the key between our read and insert
            return False
        except SQLAlchemyError as e:
            raise StoreError(f"Store write failed for {key!r}: {e}") from e
        return True

    def purge_expired(self) -> int:
        try:
            with self.db_manager.session() as session:
                result = session.execute(
                    delete(KVEntryModel).where(
                        KVEntryModel.expires_at.is_not(None),
                        KVEntryModel.expires_at <= self._now(),
                    )
                )
                removed = result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"Store purge failed: {e}") from e

        if removed:
            logger.info(f"Purged {removed} expired store entries")
        return removed

    def close(self) -> None:
        self.db_manager.close()


class MemoryKVStore(KVStore):
    """In-process key/value store; contents vanish with the process."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._data: dict[str, tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl_seconds))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def add(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl_seconds))
            return True

    def purge_expired(self) -> int:
        with self._lock:
            now = self.clock()
            expired = [
                key for key, (_, expires_at) in self._data.items() if expires_at is not None and expires_at <= now
            ]
            for key in expired:
                del self._data[key]
        return len(expired)


def _naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; SQLite stores naive datetimes."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def create_kv_store(
    backend: Optional[str] = None,
    db_path: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> KVStore:
    """Create a configured KVStore.

    Args:
        backend: "sqlite" or "memory" (default from config)
        db_path: Override the SQLite database path
        clock: Optional clock override

    Returns:
        KVStore instance
    """
    from feed_digest.config import get_config

    backend = backend or get_config().store.backend
    if backend == "memory":
        return MemoryKVStore(clock=clock)
    if backend == "sqlite":
        return SQLKVStore(DatabaseManager(db_path), clock=clock)
    raise ValueError(f"Unsupported store backend: {backend!r}")
