"""API blueprints."""

from feed_digest.web.blueprints.run import RunBlueprint
from feed_digest.web.blueprints.sources import SourceBlueprint

__all__ = ["RunBlueprint", "SourceBlueprint"]
