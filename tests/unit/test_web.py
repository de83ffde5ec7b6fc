"""Unit tests for the JSON API."""

import httpx
import pytest

from feed_digest.core.factories import create_orchestrator
from feed_digest.core.notifier import Notifier, render_digest
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.storage.kv_store import MemoryKVStore
from feed_digest.web import create_app

PAGE = (
    "<html><body>"
    + "".join(f'<article><h2><a href="/post/{i}">Post {i}</a></h2><p>Teaser {i}</p></article>' for i in range(5))
    + "</body></html>"
)

FEED = (
    '<?xml version="1.0"?><rss version="2.0"><channel><title>Blog</title>'
    "<item><guid>1</guid><title>First</title><link>https://blog.example.com/1</link></item>"
    "</channel></rss>"
)


class RecordingNotifier(Notifier):
    """Keeps digests in memory."""

    def __init__(self):
        self.sent = []

    def send_digest(self, jobs, group_name):
        notification = render_digest(jobs, group_name, "from@ex.com", "to@ex.com")
        self.sent.append(notification)
        return notification


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "blog.example.com" and request.url.path == "/feed.xml":
        return httpx.Response(200, content=FEED.encode())
    if request.url.host == "news.example.com":
        return httpx.Response(200, text=PAGE)
    return httpx.Response(404)


@pytest.fixture
def notifier():
    """Create a recording notifier."""
    return RecordingNotifier()


@pytest.fixture
def orchestrator(notifier):
    """Create an orchestrator over an in-memory store and mock HTTP."""
    return create_orchestrator(
        store=MemoryKVStore(),
        notifier=notifier,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def client(orchestrator):
    """Create a Flask test client."""
    app = create_app(orchestrator=orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


class TestSourcesApi:
    """Tests for /api/sources."""

    def test_list_empty(self, client):
        """Test listing with no sources."""
        response = client.get("/api/sources")

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "data": [], "message": None, "error": None}

    def test_create(self, client):
        """Test creating a source returns its camelCase record."""
        response = client.post(
            "/api/sources",
            json={"url": " https://blog.example.com/feed.xml ", "group": "tech", "intervalMinutes": 30.7},
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["url"] == "https://blog.example.com/feed.xml"
        assert data["title"] == "https://blog.example.com/feed.xml"
        assert data["intervalMinutes"] == 30
        assert data["group"] == "tech"
        assert data["id"]

        listed = client.get("/api/sources").get_json()["data"]
        assert [s["id"] for s in listed] == [data["id"]]

    def test_create_requires_url(self, client):
        """Test a blank url is rejected."""
        response = client.post("/api/sources", json={"title": "No url"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "url is required"

    def test_create_invalid_interval(self, client):
        """Test a non-numeric interval is rejected."""
        response = client.post("/api/sources", json={"url": "https://x.com", "intervalMinutes": "often"})

        assert response.status_code == 400
        assert "intervalMinutes" in response.get_json()["error"]

    def test_create_infinite_interval(self, client):
        """Test an overflowing interval is a client error."""
        response = client.post(
            "/api/sources",
            data='{"url": "https://x.com", "intervalMinutes": 1e999}',
            content_type="application/json",
        )

        assert response.status_code == 400
        assert "finite number" in response.get_json()["error"]

    def test_update(self, client):
        """Test partial updates keep other fields."""
        created = client.post("/api/sources", json={"url": "https://x.com", "group": "a"}).get_json()["data"]

        response = client.put(f"/api/sources/{created['id']}", json={"title": "Renamed", "group": ""})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["title"] == "Renamed"
        assert "group" not in data
        assert data["url"] == "https://x.com"

    def test_update_empty_payload(self, client):
        """Test an update without fields is rejected."""
        created = client.post("/api/sources", json={"url": "https://x.com"}).get_json()["data"]

        response = client.put(f"/api/sources/{created['id']}", json={})

        assert response.status_code == 400

    def test_update_missing(self, client):
        """Test updating an unknown id."""
        response = client.put("/api/sources/nope", json={"title": "x"})

        assert response.status_code == 404
        assert response.get_json()["error"] == "Source not found"

    def test_delete(self, client):
        """Test deleting a source."""
        created = client.post("/api/sources", json={"url": "https://x.com"}).get_json()["data"]

        response = client.delete(f"/api/sources/{created['id']}")

        assert response.status_code == 200
        assert response.get_json()["data"] == {"id": created["id"]}
        assert client.get("/api/sources").get_json()["data"] == []

    def test_delete_missing(self, client):
        """Test deleting an unknown id."""
        assert client.delete("/api/sources/nope").status_code == 404


class TestRunApi:
    """Tests for /api/run and /api/preview-items."""

    def test_run_empty(self, client):
        """Test a run without sources."""
        response = client.post("/api/run")

        assert response.status_code == 200
        body = response.get_json()
        assert body["message"] == "No sources configured."
        assert body["data"]["sourcesChecked"] == 0

    def test_run_sends_digest(self, client, notifier):
        """Test a run over one feed sends one digest."""
        client.post("/api/sources", json={"url": "https://blog.example.com/feed.xml", "title": "Blog"})

        body = client.post("/api/run").get_json()

        assert body["data"]["totalNewItems"] == 1
        assert body["data"]["notificationsSent"] == 1
        assert [n.subject for n in notifier.sent] == ["Blog"]

        listed = client.get("/api/sources").get_json()["data"]
        assert listed[0]["lastRunSummary"] == "Sent 1 new item(s)"
        assert "lastRunAt" in listed[0]

    def test_preview(self, client):
        """Test preview returns the first three items."""
        response = client.post(
            "/api/preview-items",
            json={
                "url": "https://news.example.com/",
                "titleSelector": "article h2",
                "linkSelector": "article h2 a",
                "descriptionSelector": "article p",
            },
        )

        assert response.status_code == 200
        items = response.get_json()["data"]["items"]
        assert len(items) == 3
        assert items[0] == {
            "title": "Post 0",
            "link": "https://news.example.com/post/0",
            "summary": "Teaser 0",
        }

    def test_preview_missing_fields(self, client):
        """Test preview requires url and both selectors."""
        response = client.post("/api/preview-items", json={"url": "https://news.example.com/", "titleSelector": "h2"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "url, titleSelector, and linkSelector are required"

    def test_preview_no_matches(self, client):
        """Test selector diagnostics are returned."""
        response = client.post(
            "/api/preview-items",
            json={"url": "https://news.example.com/", "titleSelector": ".nope", "linkSelector": ".nada"},
        )

        assert response.status_code == 422
        assert response.get_json()["error"].startswith("No elements found")

    def test_preview_fetch_error(self, client):
        """Test upstream failures map to 502."""
        response = client.post(
            "/api/preview-items",
            json={"url": "https://missing.example.com/", "titleSelector": "h2", "linkSelector": "h2 a"},
        )

        assert response.status_code == 502
        assert response.get_json()["error"] == "Fetch failed (404)"


class TestStatusApi:
    """Tests for /api/status."""

    def test_status_without_scheduler(self, client):
        """Test fetch counters are reported and the scheduler is absent."""
        client.post(
            "/api/preview-items",
            json={"url": "https://missing.example.com/", "titleSelector": "h2", "linkSelector": "h2 a"},
        )

        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["fetcher"]["total_requests"] == 1
        assert data["fetcher"]["failed_fetches"] == 1
        assert data["fetcher"]["errors_by_status"] == {"404": 1}
        assert data["scheduler"] == {"is_running": False, "job": None}

    def test_status_with_scheduler(self, orchestrator):
        """Test scheduler counters are reported."""
        scheduler = DigestScheduler(orchestrator, interval_minutes=10)
        scheduler.run_once()
        client = create_app(orchestrator=orchestrator, scheduler=scheduler).test_client()

        data = client.get("/api/status").get_json()["data"]["scheduler"]

        assert data["is_running"] is False
        assert data["total_executions"] == 1
        assert data["successful_executions"] == 1
        assert data["job"] is None


class TestApp:
    """Tests for app-level behaviour."""

    def test_unknown_route(self, client):
        """Test 404s use the JSON envelope."""
        response = client.get("/api/unknown")

        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_method_not_allowed(self, client):
        """Test 405s use the JSON envelope."""
        assert client.get("/api/run").status_code == 405

    def test_admin_key_required(self, orchestrator):
        """Test the shared secret guards the API."""
        client = create_app(orchestrator=orchestrator, admin_key="s3cret").test_client()

        assert client.get("/api/sources").status_code == 401
        assert client.get("/api/sources", headers={"X-Admin-Key": "wrong"}).status_code == 401
        assert client.get("/api/sources", headers={"X-Admin-Key": "s3cret"}).status_code == 200
