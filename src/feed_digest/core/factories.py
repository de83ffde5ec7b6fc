"""
Factory functions wiring core components from configuration.

Usage:
    from feed_digest.core.factories import create_orchestrator

    orchestrator = create_orchestrator()
    result = orchestrator.run()
"""

from typing import Optional

import httpx

from feed_digest.config import get_config
from feed_digest.core.fetcher import create_fetcher
from feed_digest.core.notifier import Notifier, create_notifier
from feed_digest.core.orchestrator import RunOrchestrator
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.core.scraper import create_scraper
from feed_digest.core.seen_store import create_seen_store
from feed_digest.core.syndication import create_syndication_parser
from feed_digest.storage.kv_store import KVStore, create_kv_store
from feed_digest.storage.registry import SourceRegistry


def create_store(backend: Optional[str] = None, db_path: Optional[str] = None) -> KVStore:
    """Create the configured key/value store.

    Args:
        backend: Override the store backend
        db_path: Override the SQLite path

    Returns:
        KVStore instance
    """
    return create_kv_store(backend=backend, db_path=db_path)


def create_registry(store: KVStore) -> SourceRegistry:
    """Create a SourceRegistry over a store."""
    return SourceRegistry(store, key=get_config().store.sources_key)


def create_orchestrator(
    store: Optional[KVStore] = None,
    notifier: Optional[Notifier] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> RunOrchestrator:
    """Create a fully wired RunOrchestrator.

    Args:
        store: Key/value store (created from config if omitted)
        notifier: Digest channel (Mailgun from config if omitted)
        transport: Optional httpx transport for fetcher and Mailgun requests

    Returns:
        Configured RunOrchestrator instance
    """
    config = get_config()
    store = store or create_store()

    return RunOrchestrator(
        registry=create_registry(store),
        seen_store=create_seen_store(store),
        fetcher=create_fetcher(transport=transport),
        syndication_parser=create_syndication_parser(),
        scraper=create_scraper(),
        notifier=notifier or create_notifier(transport=transport),
        lock_store=store if config.store.lock_enabled else None,
        lock_key=config.store.lock_key,
        lock_ttl_seconds=config.store.lock_ttl_seconds,
    )


def create_digest_scheduler(
    orchestrator: Optional[RunOrchestrator] = None,
    interval_minutes: Optional[int] = None,
) -> DigestScheduler:
    """Create a DigestScheduler around an orchestrator.

    Args:
        orchestrator: Orchestrator to trigger (created from config if omitted)
        interval_minutes: Override the run interval

    Returns:
        Configured DigestScheduler instance
    """
    return DigestScheduler(orchestrator or create_orchestrator(), interval_minutes=interval_minutes)
