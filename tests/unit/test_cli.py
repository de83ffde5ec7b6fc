"""Unit tests for the command line interface."""

import json
import sys

import httpx
import pytest
from loguru import logger

from feed_digest import cli
from feed_digest.config import Config, DatabaseConfig, LoggingConfig, set_config
from feed_digest.core.factories import create_orchestrator
from feed_digest.core.notifier import Notifier, render_digest
from feed_digest.exceptions import NotificationError
from feed_digest.storage.kv_store import MemoryKVStore

FEED = (
    '<?xml version="1.0"?><rss version="2.0"><channel><title>Blog</title>'
    "<item><guid>1</guid><title>First</title><link>https://blog.example.com/1</link></item>"
    "</channel></rss>"
)


class StubNotifier(Notifier):
    """Records digests or fails on demand."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_digest(self, jobs, group_name):
        if self.fail:
            raise NotificationError("MAILGUN_API_KEY missing")
        notification = render_digest(jobs, group_name, "from@ex.com", "to@ex.com")
        self.sent.append(notification)
        return notification


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/feed.xml":
        return httpx.Response(200, content=FEED.encode())
    return httpx.Response(200, text='<h2><a href="/a">A</a></h2><h2><a href="/b">B</a></h2>')


@pytest.fixture(autouse=True)
def config(tmp_path):
    """Use a throwaway database and no log file."""
    set_config(
        Config(
            database=DatabaseConfig(path=str(tmp_path / "digest.db")),
            logging=LoggingConfig(file_enabled=False, level="WARNING"),
        )
    )
    yield
    set_config(None)
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def notifier():
    """Create a stub notifier."""
    return StubNotifier()


@pytest.fixture
def orchestrator(monkeypatch, notifier):
    """Route every command to one in-memory orchestrator."""
    instance = create_orchestrator(
        store=MemoryKVStore(),
        notifier=notifier,
        transport=httpx.MockTransport(handler),
    )
    monkeypatch.setattr(cli, "_orchestrator", lambda: instance)
    return instance


class TestParser:
    """Tests for argument parsing."""

    def test_command_required(self):
        """Test a subcommand must be given."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_add_options(self):
        """Test add options are parsed."""
        args = cli.build_parser().parse_args(
            ["add", "https://ex.com", "--scrape", "--title-selector", "h2", "--link-selector", "h2 a", "--interval", "15"]
        )

        assert args.scrape is True
        assert args.interval == 15.0
        assert args.title_selector == "h2"

    def test_log_options(self):
        """Test global log overrides are parsed before the subcommand."""
        args = cli.build_parser().parse_args(["--log-level", "debug", "--log-file", "out/app.log", "list"])

        assert args.log_level == "debug"
        assert args.log_file == "out/app.log"

    def test_serve_scheduler_flags_exclusive(self):
        """Test --with-scheduler and --no-scheduler cannot be combined."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["serve", "--with-scheduler", "--no-scheduler"])


class TestCommands:
    """Tests for subcommands."""

    def test_add_list_remove(self, orchestrator, capsys):
        """Test managing sources from the command line."""
        assert cli.main(["add", "https://blog.example.com/feed.xml", "--title", "Blog", "--group", "tech"]) == 0
        source = orchestrator.registry.list_sources()[0]
        assert source.group == "tech"

        capsys.readouterr()
        assert cli.main(["list", "--json"]) == 0
        records = json.loads(capsys.readouterr().out)
        assert records[0]["title"] == "Blog"

        assert cli.main(["remove", source.id]) == 0
        assert orchestrator.registry.list_sources() == []

    def test_list_empty(self, orchestrator, capsys):
        """Test the empty listing."""
        assert cli.main(["list"]) == 0
        assert "No sources configured." in capsys.readouterr().out

    def test_remove_missing(self, orchestrator, capsys):
        """Test removing an unknown id fails."""
        assert cli.main(["remove", "nope"]) == 1
        assert "Source not found" in capsys.readouterr().err

    def test_run(self, orchestrator, notifier, capsys):
        """Test run prints the result as JSON."""
        cli.main(["add", "https://blog.example.com/feed.xml", "--title", "Blog"])
        capsys.readouterr()

        assert cli.main(["run"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["totalNewItems"] == 1
        assert result["notificationsSent"] == 1
        assert len(notifier.sent) == 1

    def test_run_failed_notification(self, orchestrator, notifier, capsys):
        """Test a failed digest gives a non-zero exit code."""
        notifier.fail = True
        cli.main(["add", "https://blog.example.com/feed.xml"])

        assert cli.main(["run"]) == 1

    def test_preview(self, orchestrator, capsys):
        """Test preview prints scraped items."""
        code = cli.main(
            ["preview", "https://news.example.com/", "--title-selector", "h2", "--link-selector", "h2 a"]
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "- A\n  https://news.example.com/a" in out

    def test_preview_selector_error(self, orchestrator, capsys):
        """Test domain errors are reported with exit code 1."""
        code = cli.main(
            ["preview", "https://news.example.com/", "--title-selector", ".x", "--link-selector", ".y"]
        )

        assert code == 1
        assert "No elements found" in capsys.readouterr().err

    def test_sqlite_persistence(self, capsys):
        """Test sources survive between invocations on the SQLite store."""
        assert cli.main(["add", "https://blog.example.com/feed.xml", "--title", "Blog"]) == 0
        capsys.readouterr()

        assert cli.main(["list"]) == 0
        assert "Blog" in capsys.readouterr().out

    def test_yaml_config(self, tmp_path, capsys):
        """Test --config loads a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "database:\n  path: \":memory:\"\n"
            "store:\n  backend: memory\n"
            "logging:\n  file_enabled: false\n"
        )

        assert cli.main(["--config", str(path), "list"]) == 0
        assert "No sources configured." in capsys.readouterr().out
