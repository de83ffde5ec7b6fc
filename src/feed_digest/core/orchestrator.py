"""
Run orchestrator: one pass over all configured sources.

A run checks which sources are due, extracts their items, drops items that
were already delivered, sends one digest per group, records delivered items
and writes the updated source list back in a single save.

Per-source state:

    Pending -> Skipped                      (interval not yet elapsed)
    Pending -> Fetching -> Succeeded        (items extracted, maybe none new)
    Pending -> Fetching -> Failed           (any error; recorded as summary)

A failing source or group never stops the rest of the run.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from feed_digest.core.fetcher import SourceFetcher
from feed_digest.core.notifier import Notifier
from feed_digest.core.scraper import SelectorScraper
from feed_digest.core.seen_store import SeenStore
from feed_digest.core.syndication import SyndicationParser
from feed_digest.exceptions import ConfigError, FeedDigestError, StoreError
from feed_digest.logger import get_logger
from feed_digest.models import DEFAULT_GROUP, Item, ScrapeSelectors, Source, SourceJob
from feed_digest.models.source import ensure_utc, utcnow
from feed_digest.storage.kv_store import KVStore
from feed_digest.storage.registry import SourceRegistry

logger = get_logger(__name__)

PREVIEW_SOURCE_ID = "preview"
PREVIEW_LIMIT = 3


@dataclass
class RunResult:
    """Outcome of one run."""

    sources_checked: int = 0
    sources_with_new_items: int = 0
    total_new_items: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    message: str = ""

    def to_dict(self) -> dict:
        """Convert to the JSON shape returned by the API."""
        return {
            "sourcesChecked": self.sources_checked,
            "sourcesWithNewItems": self.sources_with_new_items,
            "totalNewItems": self.total_new_items,
            "notificationsSent": self.notifications_sent,
            "notificationsFailed": self.notifications_failed,
            "message": self.message,
        }


def minutes_until_due(source: Source, now: datetime) -> Optional[int]:
    """Whole minutes left before a source is due again.

    Returns:
        None if the source is due now, else the remaining minutes rounded up
    """
    if source.last_run_at is None:
        return None
    elapsed = (now - source.last_run_at) / timedelta(minutes=1)
    if elapsed >= source.interval_minutes:
        return None
    return math.ceil(source.interval_minutes - elapsed)


def group_jobs(jobs: list[SourceJob]) -> dict[str, list[SourceJob]]:
    """Bucket jobs by group, keeping first-seen group order."""
    groups: dict[str, list[SourceJob]] = {}
    for job in jobs:
        groups.setdefault(job.source.group_name, []).append(job)
    return groups


class RunOrchestrator:
    """Coordinates extraction, deduplication and delivery for a run."""

    def __init__(
        self,
        registry: SourceRegistry,
        seen_store: SeenStore,
        fetcher: SourceFetcher,
        syndication_parser: SyndicationParser,
        scraper: SelectorScraper,
        notifier: Notifier,
        lock_store: Optional[KVStore] = None,
        lock_key: str = "lock:run",
        lock_ttl_seconds: int = 600,
    ):
        """Initialize orchestrator.

        Args:
            registry: Source registry
            seen_store: Seen-item markers
            fetcher: HTTP fetcher
            syndication_parser: RSS/Atom parser
            scraper: Selector-pair scraper
            notifier: Digest channel
            lock_store: Store holding the run lock; None disables locking
            lock_key: Key of the lock record
            lock_ttl_seconds: Lock expiry, bounds how long a crashed run blocks others
        """
        self.registry = registry
        self.seen_store = seen_store
        self.fetcher = fetcher
        self.syndication_parser = syndication_parser
        self.scraper = scraper
        self.notifier = notifier
        self.lock_store = lock_store
        self.lock_key = lock_key
        self.lock_ttl_seconds = lock_ttl_seconds

    def run(self, now: Optional[datetime] = None) -> RunResult:
        """Process every configured source once.

        Args:
            now: Run timestamp override; one value is used for the whole run

        Returns:
            RunResult; errors are reported in it rather than raised
        """
        now = ensure_utc(now) if now else utcnow()

        token = self._acquire_lock()
        if token is False:
            logger.warning("Skipping run: another run holds the lock")
            return RunResult(message="Run already in progress.")

        try:
            return self._run(now)
        finally:
            self._release_lock(token)

    def _run(self, now: datetime) -> RunResult:
        try:
            sources = self.registry.list_sources()
        except StoreError as e:
            logger.error(f"Could not load sources: {e}")
            return RunResult(message=f"Could not load sources: {e}")

        if not sources:
            logger.info("No sources configured")
            return RunResult(message="No sources configured.")

        jobs = []
        for source in sources:
            job = self._process_source(source, now)
            if job is not None:
                jobs.append(job)

        result = RunResult(
            sources_checked=len(sources),
            sources_with_new_items=len(jobs),
            total_new_items=sum(len(job.items) for job in jobs),
        )

        groups = group_jobs(jobs)
        for group_name, group in groups.items():
            if self._deliver(group_name, group):
                result.notifications_sent += 1
            else:
                result.notifications_failed += 1

        if result.notifications_sent:
            result.message = f"Sent {result.notifications_sent} notification(s) for {len(groups)} group(s)."
        elif result.notifications_failed:
            result.message = f"Failed to send {result.notifications_failed} notification(s)."
        else:
            result.message = "No notification required (no new items)."

        try:
            self.registry.save_sources(sources)
        except StoreError as e:
            logger.error(f"Could not save sources: {e}")
            result.message += f" Could not save sources: {e}"

        logger.info(
            f"Run finished: {result.sources_checked} sources, {result.total_new_items} new items, "
            f"{result.notifications_sent} sent, {result.notifications_failed} failed"
        )
        return result

    def _process_source(self, source: Source, now: datetime) -> Optional[SourceJob]:
        """Run one source through the state machine.

        Returns:
            SourceJob when new items were found, else None
        """
        remaining = minutes_until_due(source, now)
        if remaining is not None:
            source.last_run_summary = f"Skipped (next check in {remaining} min)"
            return None

        try:
            items = self.extract_items(source)
            new_items = [item for item in items if not self.seen_store.was_seen(source.id, item.id)]

            if new_items:
                source.last_run_summary = f"Queued {len(new_items)} new item(s)"
                return SourceJob(source=source, items=new_items)

            source.last_run_summary = "No new items"
            return None

        except FeedDigestError as e:
            source.last_run_summary = f"Failed: {e}"
            logger.warning(f"Failed to process {source.url}: {e}")
            return None

        except Exception as e:
            source.last_run_summary = f"Failed: {e}"
            logger.exception(f"Unexpected error processing {source.url}: {e}")
            return None

        finally:
            source.last_run_at = now

    def extract_items(self, source: Source) -> list[Item]:
        """Fetch a source and extract its items.

        Raises:
            ConfigError: If a scrape source lacks title or link selector
            FetchError: If the fetch failed
            ParseError: If the feed is malformed
            SelectorError: If the selectors yield no items
        """
        if source.is_scrape:
            if not source.selectors.is_complete:
                raise ConfigError("Title and link selectors are required for scraped feeds")
            page = self.fetcher.fetch_page(source.url)
            return self.scraper.scrape(page.text, source.url, source.selectors, source.id)

        document = self.fetcher.fetch_feed(source.url)
        return self.syndication_parser.parse(document.content, source.url)

    def _deliver(self, group_name: str, jobs: list[SourceJob]) -> bool:
        """Send one group's digest and record its items as seen.

        Returns:
            True if the digest was sent
        """
        try:
            self.notifier.send_digest(jobs, group_name)
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to send digest for group '{group_name}': {e}")
            for job in jobs:
                job.source.last_run_summary = f"Email failed: {e}"
            return False

        suffix = f" (group: {group_name})" if group_name != DEFAULT_GROUP else ""
        for job in jobs:
            for item in job.items:
                try:
                    self.seen_store.mark_seen(job.source.id, item.id)
                except StoreError as e:
                    logger.error(f"Could not mark item {item.id} of {job.source.url} as seen: {e}")
            job.source.last_run_summary = f"Sent {len(job.items)} new item(s){suffix}"
        return True

    def preview_items(
        self,
        url: str,
        selectors: ScrapeSelectors,
        limit: int = PREVIEW_LIMIT,
    ) -> list[Item]:
        """Scrape a page with ad-hoc selectors without touching any state.

        Args:
            url: Page URL
            selectors: Selectors to try
            limit: Maximum number of items returned

        Returns:
            The first items found

        Raises:
            ConfigError, FetchError, SelectorError: As for a scrape source
        """
        if not selectors.is_complete:
            raise ConfigError("url, titleSelector, and linkSelector are required")
        page = self.fetcher.fetch_page(url)
        items = self.scraper.scrape(page.text, url, selectors, PREVIEW_SOURCE_ID)
        return items[:limit]

    def purge_expired(self) -> int:
        """Drop expired seen markers and stale locks from the store.

        Returns:
            Number of entries removed, 0 if the store failed
        """
        try:
            removed = self.seen_store.store.purge_expired()
        except StoreError as e:
            logger.warning(f"Store purge failed: {e}")
            return 0
        logger.debug(f"Store purge removed {removed} entries")
        return removed

    def _acquire_lock(self):
        """Take the run lock.

        Returns:
            The lock token, None when locking is disabled, or False if held elsewhere
        """
        if self.lock_store is None:
            return None

        token = uuid.uuid4().hex
        try:
            acquired = self.lock_store.add(self.lock_key, token, ttl_seconds=self.lock_ttl_seconds)
        except StoreError as e:
            # Without a working store the run degrades to the registry load error
            logger.warning(f"Could not take run lock: {e}")
            return None
        return token if acquired else False

    def _release_lock(self, token) -> None:
        if self.lock_store is None or not token:
            return
        try:
            if self.lock_store.get(self.lock_key) == token:
                self.lock_store.delete(self.lock_key)
        except StoreError as e:
            logger.warning(f"Could not release run lock: {e}")
