"""Flask JSON API for managing sources and triggering runs."""

from feed_digest.web.app import create_app

__all__ = ["create_app"]
