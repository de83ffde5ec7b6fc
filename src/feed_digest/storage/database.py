"""
Database connection and session management for the SQL key/value store.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from feed_digest.config import get_config
from feed_digest.logger import get_logger
from feed_digest.models import Base

if TYPE_CHECKING:
    from feed_digest.config import DatabaseConfig

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"


def build_url(db_path: str) -> str:
    """Build a SQLite database URL.

    Args:
        db_path: File path, ":memory:", or an existing sqlite:// URL

    Returns:
        SQLAlchemy URL string
    """
    if db_path.startswith("sqlite://"):
        return db_path

    if db_path == MEMORY_PATH:
        return "sqlite://"

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def _engine_kwargs(db_path: str, echo: bool) -> dict:
    """SQLite engine kwargs.

    An in-memory database lives in a single connection, so it needs StaticPool;
    file databases use QueuePool so scheduler and web threads can share them.
    """
    kwargs = {
        "echo": echo,
        "connect_args": {
            "check_same_thread": False,
            "timeout": 30,
        },
    }
    if db_path == MEMORY_PATH:
        kwargs["poolclass"] = StaticPool
    else:
        kwargs["poolclass"] = QueuePool
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10
    return kwargs


def _setup_engine_events(engine: Engine) -> None:
    """Enable WAL mode for better concurrent read access."""

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


class DatabaseManager:
    """Database manager for context-managed database operations."""

    def __init__(self, db_path: Optional[str] = None, db_config: Optional["DatabaseConfig"] = None):
        """Initialize database manager.

        Args:
            db_path: Optional custom database path; overrides db_config.
            db_config: Optional custom database configuration.

        Note:
            If neither is provided, uses the global config.
        """
        config = db_config or get_config().database
        self.db_path = db_path or config.path
        self.echo = config.echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        """Get the database engine."""
        if self._engine is None:
            self._engine = create_engine(
                build_url(self.db_path),
                **_engine_kwargs(self.db_path, self.echo),
            )
            _setup_engine_events(self._engine)
            logger.debug(f"Database engine created for {self.db_path}")

        return self._engine

    def init_db(self, drop_all: bool = False) -> None:
        """Initialize database tables.

        Args:
            drop_all: If True, drop existing tables first
        """
        if drop_all:
            logger.warning("Dropping all tables - data will be lost!")
            Base.metadata.drop_all(bind=self.engine)

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Get a database session.

        Yields:
            SQLAlchemy Session instance
        """
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
            )
        session = self._session_factory()

        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Close database connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def __enter__(self) -> "DatabaseManager":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
