"""Core pipeline: parsing, scraping, deduplication and delivery."""

from feed_digest.core.factories import (
    create_digest_scheduler,
    create_orchestrator,
    create_registry,
    create_store,
)
from feed_digest.core.fetcher import FetchResult, FetchStats, SourceFetcher
from feed_digest.core.hashing import hash_identifier, seen_hash
from feed_digest.core.notifier import MailgunNotifier, Notification, Notifier, render_digest
from feed_digest.core.orchestrator import RunOrchestrator, RunResult
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.core.scraper import SelectorScraper, strip_html
from feed_digest.core.seen_store import SeenStore
from feed_digest.core.syndication import SyndicationParser

__all__ = [
    "create_digest_scheduler",
    "create_orchestrator",
    "create_registry",
    "create_store",
    "FetchResult",
    "FetchStats",
    "SourceFetcher",
    "hash_identifier",
    "seen_hash",
    "MailgunNotifier",
    "Notification",
    "Notifier",
    "render_digest",
    "RunOrchestrator",
    "RunResult",
    "DigestScheduler",
    "SelectorScraper",
    "strip_html",
    "SeenStore",
    "SyndicationParser",
]
