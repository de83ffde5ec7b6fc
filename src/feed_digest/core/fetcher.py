"""
HTTP fetcher for feed documents and scraped pages, with retry logic.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from feed_digest.config import get_config
from feed_digest.exceptions import FetchError
from feed_digest.logger import get_logger

logger = get_logger(__name__)


@dataclass
class FetchResult:
    """A successful HTTP fetch."""

    url: str
    status_code: int
    content: bytes
    text: str
    content_type: Optional[str] = None
    fetch_time_seconds: float = 0.0


@dataclass
class FetchStats:
    """Statistics for fetch operations."""

    total_requests: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0
    total_time_seconds: float = 0.0
    errors_by_status: dict = field(default_factory=dict)

    def add_success(self, result: FetchResult) -> None:
        """Record a successful fetch."""
        self.total_requests += 1
        self.successful_fetches += 1
        self.total_time_seconds += result.fetch_time_seconds

    def add_failure(self, error: FetchError, elapsed: float) -> None:
        """Record a failed fetch, bucketed by status code ("transport" if none)."""
        self.total_requests += 1
        self.failed_fetches += 1
        self.total_time_seconds += elapsed
        bucket = str(error.status_code) if error.status_code else "transport"
        self.errors_by_status[bucket] = self.errors_by_status.get(bucket, 0) + 1

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        if self.total_requests == 0:
            return 0.0
        return self.successful_fetches / self.total_requests


class SourceFetcher:
    """Fetches feed XML and HTML pages over HTTP."""

    def __init__(
        self,
        timeout_seconds: Optional[int] = None,
        max_retries: Optional[int] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize fetcher.

        Args:
            timeout_seconds: Request timeout in seconds
            max_retries: Retries after the first attempt for transient failures
            user_agent: User-Agent header for page requests
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        config = get_config()

        self.timeout_seconds = timeout_seconds or config.fetcher.timeout_seconds
        self.max_retries = config.fetcher.max_retries if max_retries is None else max_retries
        self.user_agent = user_agent or config.fetcher.user_agent
        self.feed_accept = config.fetcher.feed_accept
        self.retry_delay_seconds = config.fetcher.retry_delay_seconds

        self.follow_redirects = config.fetcher.follow_redirects
        self.max_redirects = config.fetcher.max_redirects
        self.transport = transport

        self.stats = FetchStats()

    def fetch_feed(self, url: str) -> FetchResult:
        """Fetch a syndication document.

        Args:
            url: Feed URL

        Returns:
            FetchResult

        Raises:
            FetchError: On non-2xx status or transport failure
        """
        return self.fetch(url, headers={"Accept": self.feed_accept})

    def fetch_page(self, url: str) -> FetchResult:
        """Fetch an HTML page for scraping.

        Args:
            url: Page URL

        Returns:
            FetchResult

        Raises:
            FetchError: On non-2xx status or transport failure
        """
        return self.fetch(url, headers={"User-Agent": self.user_agent})

    def fetch(self, url: str, headers: Optional[dict] = None) -> FetchResult:
        """GET a URL, retrying timeouts, network errors and 5xx responses.

        Args:
            url: URL to fetch
            headers: Extra request headers

        Returns:
            FetchResult

        Raises:
            FetchError: When the last attempt failed
        """
        start_time = time.time()
        last_error: Optional[FetchError] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self._get(url, headers or {})
                if not response.is_success:
                    raise FetchError(f"Fetch failed ({response.status_code})", status_code=response.status_code)

                result = FetchResult(
                    url=url,
                    status_code=response.status_code,
                    content=response.content,
                    text=response.text,
                    content_type=response.headers.get("Content-Type"),
                    fetch_time_seconds=time.time() - start_time,
                )
                self.stats.add_success(result)
                logger.debug(
                    f"Fetched {url} ({result.status_code}, {len(result.content)} bytes) "
                    f"in {result.fetch_time_seconds:.2f}s"
                )
                return result

            except FetchError as e:
                last_error = e
                # Don't retry client errors (4xx)
                if e.status_code is not None and e.status_code < 500:
                    logger.warning(f"Client error fetching {url}: {e}")
                    break
                logger.warning(f"HTTP error fetching {url} (attempt {attempt + 1}/{self.max_retries + 1}): {e}")

            except httpx.TimeoutException as e:
                last_error = FetchError(f"Fetch failed (timeout: {e})")
                logger.warning(f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries + 1})")

            except httpx.HTTPError as e:
                last_error = FetchError(f"Fetch failed ({type(e).__name__}: {e})")
                logger.warning(f"Network error fetching {url} (attempt {attempt + 1}/{self.max_retries + 1})")

            if attempt < self.max_retries:
                time.sleep(self.retry_delay_seconds * (attempt + 1))

        error = last_error or FetchError("Fetch failed (unknown error)")
        self.stats.add_failure(error, time.time() - start_time)
        raise error

    def _get(self, url: str, headers: dict) -> httpx.Response:
        """Perform one GET request."""
        with httpx.Client(
            timeout=self.timeout_seconds,
            follow_redirects=self.follow_redirects,
            max_redirects=self.max_redirects,
            transport=self.transport,
        ) as client:
            return client.get(url, headers=headers)


def create_fetcher(transport: Optional[httpx.BaseTransport] = None) -> SourceFetcher:
    """Create a configured SourceFetcher instance.

    Args:
        transport: Optional httpx transport override

    Returns:
        Configured SourceFetcher instance
    """
    return SourceFetcher(transport=transport)
