"""
Run, preview and status API blueprint.
"""

from typing import Optional

from flask import Blueprint, request

from feed_digest.core.orchestrator import RunOrchestrator
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.exceptions import ConfigError, FetchError, SelectorError
from feed_digest.logger import get_logger
from feed_digest.models import ScrapeSelectors
from feed_digest.models.source import clean_optional_text
from feed_digest.web.serializers import (
    api_response,
    fetch_stats_to_dict,
    preview_item_to_dict,
    scheduler_to_dict,
)

logger = get_logger(__name__)


class RunBlueprint:
    """Blueprint triggering runs, previewing scrape selectors and reporting status."""

    def __init__(self, orchestrator: RunOrchestrator, scheduler: Optional[DigestScheduler] = None):
        """Initialize the run blueprint.

        Args:
            orchestrator: Orchestrator serving the endpoints
            scheduler: Background scheduler, if the app runs one
        """
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.blueprint = Blueprint("run", __name__, url_prefix="/api")
        self._register_routes()

    def _register_routes(self):
        """Register run routes."""
        self.blueprint.add_url_rule("/run", view_func=self._run, methods=["POST"])
        self.blueprint.add_url_rule("/preview-items", view_func=self._preview_items, methods=["POST"])
        self.blueprint.add_url_rule("/status", view_func=self._status, methods=["GET"])

    def _run(self):
        """Run all due sources now.

        Returns:
            API response with the run result
        """
        result = self.orchestrator.run()
        return api_response(success=True, data=result.to_dict(), message=result.message)

    def _preview_items(self):
        """Scrape a page with the given selectors and return the first items."""
        data = request.get_json(silent=True) or {}

        url = clean_optional_text(data.get("url"))
        selectors = ScrapeSelectors(
            title=clean_optional_text(data.get("titleSelector")),
            link=clean_optional_text(data.get("linkSelector")),
            description=clean_optional_text(data.get("descriptionSelector")),
        )
        if not url or not selectors.is_complete:
            return api_response(
                success=False,
                error="url, titleSelector, and linkSelector are required",
                status=400,
            )

        try:
            items = self.orchestrator.preview_items(url, selectors)
        except (ConfigError, SelectorError) as e:
            return api_response(success=False, error=str(e), status=422)
        except FetchError as e:
            logger.warning(f"Preview fetch failed for {url}: {e}")
            return api_response(success=False, error=str(e), status=502)

        return api_response(success=True, data={"items": [preview_item_to_dict(i) for i in items]})

    def _status(self):
        """Report fetch counters and scheduler state.

        Returns:
            API response with fetcher and scheduler statistics
        """
        return api_response(
            success=True,
            data={
                "fetcher": fetch_stats_to_dict(self.orchestrator.fetcher.stats),
                "scheduler": scheduler_to_dict(self.scheduler),
            },
        )
