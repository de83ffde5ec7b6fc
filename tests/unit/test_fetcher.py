"""Unit tests for the HTTP fetcher."""

from unittest.mock import patch

import httpx
import pytest

from feed_digest.core.fetcher import FetchResult, FetchStats, SourceFetcher, create_fetcher
from feed_digest.exceptions import FetchError


class Responder:
    """Mock transport handler replaying a list of responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_fetcher(responder: Responder, max_retries: int = 1) -> SourceFetcher:
    fetcher = SourceFetcher(
        timeout_seconds=5,
        max_retries=max_retries,
        user_agent="TestAgent/1.0",
        transport=httpx.MockTransport(responder),
    )
    fetcher.retry_delay_seconds = 0
    return fetcher


class TestFetchStats:
    """Tests for FetchStats dataclass."""

    def test_success_rate_empty(self):
        """Test success rate with no requests."""
        assert FetchStats().success_rate == 0.0

    def test_counts(self):
        """Test successes and failures are counted and bucketed."""
        stats = FetchStats()
        stats.add_success(FetchResult(url="u", status_code=200, content=b"", text="", fetch_time_seconds=0.5))
        stats.add_failure(FetchError("Fetch failed (503)", status_code=503), 0.1)
        stats.add_failure(FetchError("Fetch failed (timeout)"), 0.1)

        assert stats.total_requests == 3
        assert stats.successful_fetches == 1
        assert stats.errors_by_status == {"503": 1, "transport": 1}
        assert stats.success_rate == pytest.approx(1 / 3)


class TestSourceFetcher:
    """Tests for SourceFetcher."""

    def test_fetch_feed(self):
        """Test a feed request sends the syndication Accept header."""
        responder = Responder(httpx.Response(200, content=b"<rss/>", headers={"Content-Type": "application/rss+xml"}))
        fetcher = make_fetcher(responder)

        result = fetcher.fetch_feed("https://example.com/feed.xml")

        assert result.status_code == 200
        assert result.content == b"<rss/>"
        assert result.content_type == "application/rss+xml"
        assert "application/rss+xml" in responder.requests[0].headers["Accept"]
        assert fetcher.stats.successful_fetches == 1

    def test_fetch_page_user_agent(self):
        """Test a page request identifies itself with the User-Agent."""
        responder = Responder(httpx.Response(200, text="<html></html>"))
        fetcher = make_fetcher(responder)

        result = fetcher.fetch_page("https://example.com/")

        assert result.text == "<html></html>"
        assert responder.requests[0].headers["User-Agent"] == "TestAgent/1.0"

    def test_client_error_not_retried(self):
        """Test 4xx fails immediately with the status in the message."""
        responder = Responder(httpx.Response(404))
        fetcher = make_fetcher(responder, max_retries=3)

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch_feed("https://example.com/missing")

        assert str(exc_info.value) == "Fetch failed (404)"
        assert exc_info.value.status_code == 404
        assert len(responder.requests) == 1
        assert fetcher.stats.errors_by_status == {"404": 1}

    def test_server_error_retried(self):
        """Test 5xx is retried and a later success is returned."""
        responder = Responder(httpx.Response(503), httpx.Response(200, content=b"ok"))
        fetcher = make_fetcher(responder, max_retries=2)

        result = fetcher.fetch_feed("https://example.com/feed.xml")

        assert result.content == b"ok"
        assert len(responder.requests) == 2

    def test_server_error_exhausts_retries(self):
        """Test the last error is raised after all attempts."""
        responder = Responder(httpx.Response(500))
        fetcher = make_fetcher(responder, max_retries=2)

        with pytest.raises(FetchError, match=r"Fetch failed \(500\)"):
            fetcher.fetch_feed("https://example.com/feed.xml")

        assert len(responder.requests) == 3
        assert fetcher.stats.failed_fetches == 1

    def test_transport_error(self):
        """Test network errors become FetchError without a status."""
        responder = Responder(httpx.ConnectError("connection refused"))
        fetcher = make_fetcher(responder, max_retries=0)

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch_page("https://example.com/")

        assert exc_info.value.status_code is None
        assert "ConnectError" in str(exc_info.value)

    def test_timeout(self):
        """Test timeouts are reported as such."""
        responder = Responder(httpx.ReadTimeout("too slow"))
        fetcher = make_fetcher(responder, max_retries=0)

        with pytest.raises(FetchError, match="timeout"):
            fetcher.fetch_page("https://example.com/")

    def test_retry_delay_grows(self):
        """Test the delay between attempts grows linearly."""
        responder = Responder(httpx.Response(502))
        fetcher = make_fetcher(responder, max_retries=2)
        fetcher.retry_delay_seconds = 2

        with patch("feed_digest.core.fetcher.time.sleep") as mock_sleep:
            with pytest.raises(FetchError):
                fetcher.fetch_feed("https://example.com/feed.xml")

        assert [c.args[0] for c in mock_sleep.call_args_list] == [2, 4]

    def test_follows_redirects(self):
        """Test redirects are followed to the final document."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/new"})
            return httpx.Response(200, content=b"moved")

        fetcher = SourceFetcher(max_retries=0, transport=httpx.MockTransport(handler))

        assert fetcher.fetch_feed("https://example.com/old").content == b"moved"


def test_create_fetcher():
    """Test the factory uses configured defaults."""
    fetcher = create_fetcher()

    assert isinstance(fetcher, SourceFetcher)
    assert fetcher.max_retries == 1
    assert fetcher.timeout_seconds == 30
