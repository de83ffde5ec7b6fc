"""
Item data model produced by feed parsing and page scraping.
"""

from dataclasses import dataclass, field
from typing import Optional

from feed_digest.models.source import Source


@dataclass
class Item:
    """One normalized syndication entry or scraped record.

    `id` is scoped to the source that produced it; `link` is always absolute.
    """

    id: str
    title: str
    link: str
    summary: Optional[str] = None
    published: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "summary": self.summary,
            "published": self.published,
        }


@dataclass
class SourceJob:
    """New items found for one source during a run."""

    source: Source
    items: list[Item] = field(default_factory=list)
