"""
Flask application exposing the source registry and run triggers.
"""

import hmac
from typing import Optional

from flask import Flask, request

from feed_digest.config import get_config
from feed_digest.core.factories import create_orchestrator
from feed_digest.core.orchestrator import RunOrchestrator
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.logger import get_logger
from feed_digest.web.serializers import api_response

logger = get_logger(__name__)

ADMIN_KEY_HEADER = "X-Admin-Key"


def create_app(
    orchestrator: Optional[RunOrchestrator] = None,
    admin_key: Optional[str] = None,
    debug: bool = False,
    scheduler: Optional[DigestScheduler] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        orchestrator: Orchestrator to serve (created from config if omitted)
        admin_key: Shared secret required in the X-Admin-Key header
            (default from config; no check when unset)
        debug: Enable debug mode
        scheduler: Running scheduler reported by GET /api/status

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    config = get_config()
    app.config["DEBUG"] = debug or config.web.debug

    orchestrator = orchestrator or create_orchestrator()
    admin_key = admin_key or config.web.admin_key

    from feed_digest.web.blueprints import RunBlueprint, SourceBlueprint

    app.register_blueprint(SourceBlueprint(orchestrator.registry).blueprint)
    app.register_blueprint(RunBlueprint(orchestrator, scheduler).blueprint)

    @app.before_request
    def check_admin_key():
        """Reject API calls without the shared secret."""
        if not admin_key or not request.path.startswith("/api/"):
            return None
        supplied = request.headers.get(ADMIN_KEY_HEADER, "")
        if not hmac.compare_digest(supplied.encode("utf-8"), admin_key.encode("utf-8")):
            return api_response(success=False, error="Unauthorized", status=401)
        return None

    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 errors."""
        return api_response(success=False, error="Not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        """Handle 405 errors."""
        return api_response(success=False, error="Method not allowed", status=405)

    @app.errorhandler(500)
    def server_error(e):
        """Handle 500 errors."""
        logger.error(f"Server error: {e}")
        return api_response(success=False, error="Internal server error", status=500)

    logger.info("Web app created")

    return app
