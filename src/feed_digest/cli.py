"""
Command line interface for feed-digest.

Usage:
    feed-digest run
    feed-digest add https://example.com/feed.xml --group news
    feed-digest add https://example.com/blog --scrape --title-selector "h2 a" --link-selector "h2 a"
    feed-digest preview https://example.com/blog --title-selector "h2" --link-selector "h2 a"
    feed-digest schedule
    feed-digest serve --port 8000
"""

import argparse
import json
import sys
import time
from typing import Optional

from pydantic import ValidationError

from feed_digest import __version__
from feed_digest.config import get_config, load_config_from_yaml, set_config
from feed_digest.exceptions import FeedDigestError
from feed_digest.logger import get_logger, setup_logger
from feed_digest.models import ScrapeSelectors, SourceCreate, SourceMode

logger = get_logger(__name__)


def _orchestrator():
    from feed_digest.core.factories import create_orchestrator

    return create_orchestrator()


def cmd_run(args: argparse.Namespace) -> int:
    """Run all due sources once and print the result."""
    result = _orchestrator().run()
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.notifications_failed == 0 else 1


def cmd_list(args: argparse.Namespace) -> int:
    """Print configured sources."""
    sources = _orchestrator().registry.list_sources()
    if args.json:
        print(json.dumps([s.to_record() for s in sources], indent=2, ensure_ascii=False))
        return 0

    if not sources:
        print("No sources configured.")
        return 0

    for source in sources:
        print(f"{source.id}  [{source.mode.value}] {source.title}")
        print(f"    url: {source.url}")
        print(f"    group: {source.group_name}, every {source.interval_minutes} min")
        if source.last_run_summary:
            print(f"    last run: {source.last_run_summary}")
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    """Add a source."""
    try:
        payload = SourceCreate(
            url=args.url,
            title=args.title,
            group=args.group,
            interval_minutes=args.interval,
            link_prefix=args.link_prefix,
            mode=SourceMode.SCRAPE if args.scrape else SourceMode.SYNDICATION,
            title_selector=args.title_selector,
            link_selector=args.link_selector,
            description_selector=args.description_selector,
        )
    except ValidationError as e:
        print(f"Invalid source: {e}", file=sys.stderr)
        return 2

    source = _orchestrator().registry.create(payload)
    print(f"Added source {source.id}: {source.title}")
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    """Remove a source by id."""
    if _orchestrator().registry.delete(args.source_id) is None:
        print(f"Source not found: {args.source_id}", file=sys.stderr)
        return 1
    print(f"Removed source {args.source_id}")
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    """Scrape a page with ad-hoc selectors and print the first items."""
    selectors = ScrapeSelectors(
        title=args.title_selector,
        link=args.link_selector,
        description=args.description_selector,
    )
    items = _orchestrator().preview_items(args.url, selectors, limit=args.limit)
    for item in items:
        print(f"- {item.title}\n  {item.link}")
        if item.summary:
            print(f"  {item.summary}")
    return 0


def cmd_schedule(args: argparse.Namespace) -> int:
    """Run on an interval until interrupted."""
    from feed_digest.core.factories import create_digest_scheduler

    scheduler = create_digest_scheduler(interval_minutes=args.interval)
    scheduler.start()
    if args.run_now:
        scheduler.run_once()

    try:
        while scheduler.is_running():
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        if scheduler.is_running():
            scheduler.stop()
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the JSON API, optionally with the scheduler."""
    from feed_digest.core.factories import create_digest_scheduler
    from feed_digest.web import create_app

    config = get_config()
    orchestrator = _orchestrator()
    scheduler = None
    if args.with_scheduler or (config.scheduler.enabled and not args.no_scheduler):
        scheduler = create_digest_scheduler(orchestrator)

    app = create_app(orchestrator=orchestrator, debug=args.debug, scheduler=scheduler)
    if scheduler is not None:
        scheduler.start()

    try:
        app.run(
            host=args.host or config.web.host,
            port=args.port or config.web.port,
            debug=args.debug,
            use_reloader=False,
        )
    finally:
        if scheduler is not None and scheduler.is_running():
            scheduler.stop(wait=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="feed-digest",
        description="Poll feeds and pages, send digests of new items",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--log-level", help="Override log level")
    parser.add_argument("--log-file", help="Override log file path")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_run = subparsers.add_parser("run", help="Process all due sources once")
    p_run.set_defaults(func=cmd_run)

    p_list = subparsers.add_parser("list", help="List configured sources")
    p_list.add_argument("--json", action="store_true", help="Print stored records as JSON")
    p_list.set_defaults(func=cmd_list)

    p_add = subparsers.add_parser("add", help="Add a feed or scraped page")
    p_add.add_argument("url", help="Feed or page URL")
    p_add.add_argument("--title", help="Display title (defaults to the URL)")
    p_add.add_argument("--group", help="Digest group")
    p_add.add_argument("--interval", type=float, help="Minutes between checks (default 60)")
    p_add.add_argument("--link-prefix", help="Prefix prepended to item links in digests")
    p_add.add_argument("--scrape", action="store_true", help="Scrape the page with selectors")
    p_add.add_argument("--title-selector", help="CSS selector for item titles")
    p_add.add_argument("--link-selector", help="CSS selector for item links")
    p_add.add_argument("--description-selector", help="CSS selector for item descriptions")
    p_add.set_defaults(func=cmd_add)

    p_remove = subparsers.add_parser("remove", help="Remove a source")
    p_remove.add_argument("source_id", help="Source id")
    p_remove.set_defaults(func=cmd_remove)

    p_preview = subparsers.add_parser("preview", help="Try scrape selectors on a page")
    p_preview.add_argument("url", help="Page URL")
    p_preview.add_argument("--title-selector", required=True)
    p_preview.add_argument("--link-selector", required=True)
    p_preview.add_argument("--description-selector")
    p_preview.add_argument("--limit", type=int, default=3, help="Items to show")
    p_preview.set_defaults(func=cmd_preview)

    p_schedule = subparsers.add_parser("schedule", help="Run on an interval until interrupted")
    p_schedule.add_argument("--interval", type=int, help="Minutes between runs")
    p_schedule.add_argument("--run-now", action="store_true", help="Run once immediately")
    p_schedule.set_defaults(func=cmd_schedule)

    p_serve = subparsers.add_parser("serve", help="Serve the JSON API")
    p_serve.add_argument("--host", help="Bind host")
    p_serve.add_argument("--port", type=int, help="Bind port")
    p_serve.add_argument("--debug", action="store_true", help="Flask debug mode")
    scheduler_group = p_serve.add_mutually_exclusive_group()
    scheduler_group.add_argument("--with-scheduler", action="store_true", help="Force the scheduler on")
    scheduler_group.add_argument("--no-scheduler", action="store_true", help="Do not start the scheduler")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point of the feed-digest command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        set_config(load_config_from_yaml(args.config))

    setup_logger(level=args.log_level.upper() if args.log_level else None, log_file=args.log_file)

    try:
        return args.func(args)
    except FeedDigestError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
