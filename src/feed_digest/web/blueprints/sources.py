"""
Source registry API blueprint.
"""

from flask import Blueprint, request
from pydantic import ValidationError

from feed_digest.exceptions import StoreError
from feed_digest.logger import get_logger
from feed_digest.models import SourceCreate, SourceUpdate
from feed_digest.storage.registry import SourceRegistry
from feed_digest.web.serializers import api_response, source_to_dict, validation_error_message

logger = get_logger(__name__)


class SourceBlueprint:
    """Blueprint for listing, adding, editing and removing sources."""

    def __init__(self, registry: SourceRegistry):
        """Initialize the source blueprint.

        Args:
            registry: Registry the endpoints operate on
        """
        self.registry = registry
        self.blueprint = Blueprint("sources", __name__, url_prefix="/api/sources")
        self._register_routes()

    def _register_routes(self):
        """Register all source routes."""
        self.blueprint.add_url_rule("", view_func=self._list, methods=["GET"])
        self.blueprint.add_url_rule("", view_func=self._create, methods=["POST"])
        self.blueprint.add_url_rule("/<source_id>", view_func=self._update, methods=["PUT"])
        self.blueprint.add_url_rule("/<source_id>", view_func=self._delete, methods=["DELETE"])
        self.blueprint.register_error_handler(StoreError, self._store_error)

    def _list(self):
        """List all sources."""
        sources = self.registry.list_sources()
        return api_response(success=True, data=[source_to_dict(s) for s in sources])

    def _create(self):
        """Create a source."""
        data = request.get_json(silent=True) or {}
        if not data.get("url"):
            return api_response(success=False, error="url is required", status=400)

        try:
            payload = SourceCreate.model_validate(data)
        except ValidationError as e:
            return api_response(success=False, error=validation_error_message(e), status=400)

        source = self.registry.create(payload)
        return api_response(
            success=True,
            data=source_to_dict(source),
            message="Source created",
            status=201,
        )

    def _update(self, source_id: str):
        """Update a source."""
        data = request.get_json(silent=True) or {}

        try:
            payload = SourceUpdate.model_validate(data)
        except ValidationError as e:
            return api_response(success=False, error=validation_error_message(e), status=400)

        source = self.registry.update(source_id, payload)
        if source is None:
            return api_response(success=False, error="Source not found", status=404)

        return api_response(success=True, data=source_to_dict(source), message="Source updated")

    def _delete(self, source_id: str):
        """Delete a source."""
        deleted = self.registry.delete(source_id)
        if deleted is None:
            return api_response(success=False, error="Source not found", status=404)
        return api_response(success=True, data={"id": deleted}, message="Source deleted")

    def _store_error(self, error: StoreError):
        logger.error(f"Source store error: {error}")
        return api_response(success=False, error=str(error), status=503)
