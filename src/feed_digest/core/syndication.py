"""
RSS/Atom parser producing normalized items.

Uses feedparser for the XML handling; the field fallback rules for item
identity, title, link and dates are applied here.
"""

import uuid
import xml.sax
from typing import Optional, Union
from xml.parsers.expat import errors as expat_errors

import feedparser

from feed_digest.core.scraper import strip_html
from feed_digest.exceptions import ParseError
from feed_digest.logger import get_logger
from feed_digest.models import Item

logger = get_logger(__name__)

UNTITLED_ITEM = "Untitled item"
UNTITLED_ENTRY = "Untitled entry"

# Broken document structure; the loose pass would only guess at item boundaries
STRUCTURAL_ERRORS = frozenset(
    {
        expat_errors.XML_ERROR_TAG_MISMATCH,
        expat_errors.XML_ERROR_NO_ELEMENTS,
        expat_errors.XML_ERROR_UNCLOSED_TOKEN,
    }
)


class SyndicationParser:
    """Parser turning RSS 0.9x/1.0/2.0 and Atom documents into items."""

    def parse(self, document: Union[str, bytes], fallback_url: str) -> list[Item]:
        """Parse a feed document.

        Args:
            document: Raw XML as text or bytes
            fallback_url: Used as item link when an item carries none, and as
                base for resolving relative links

        Returns:
            Items in document order

        Raises:
            ParseError: If the XML structure is broken or no feed could be recovered
        """
        if isinstance(document, str):
            document = document.encode("utf-8")

        parsed = feedparser.parse(
            document,
            response_headers={
                "content-location": fallback_url,
                "content-type": "application/xml",
            },
        )

        version = parsed.get("version") or ""
        entries = parsed.get("entries", [])

        error = parsed.get("bozo_exception") if parsed.get("bozo") else None
        if isinstance(error, xml.sax.SAXException):
            if _is_structural(error) or (not version and not entries):
                raise ParseError(f"Invalid RSS/Atom feed: {error}")
            logger.warning(f"Feed {fallback_url} is not well-formed, using leniently parsed items: {error}")

        if version.startswith("atom"):
            items = [self._atom_item(entry, fallback_url) for entry in entries]
        else:
            items = [self._rss_item(entry, fallback_url) for entry in entries]

        logger.debug(f"Parsed {len(items)} items ({version or 'unknown format'}) from {fallback_url}")
        return items

    def _rss_item(self, entry: dict, fallback_url: str) -> Item:
        """Build an item from an RSS <item>."""
        link = _rss_link(entry)
        title = _title(entry)

        return Item(
            id=_text(entry.get("id")) or link or title or str(uuid.uuid4()),
            title=title or UNTITLED_ITEM,
            link=link or fallback_url,
            summary=_text(entry.get("summary")),
            published=_text(entry.get("published")),
        )

    def _atom_item(self, entry: dict, fallback_url: str) -> Item:
        """Build an item from an Atom <entry>."""
        link = _atom_link(entry.get("links") or [])
        title = _title(entry)

        summary = _text(entry.get("summary"))
        if summary is None:
            content = entry.get("content") or []
            if content:
                summary = _text(content[0].get("value"))

        return Item(
            id=_text(entry.get("id")) or link or title or str(uuid.uuid4()),
            title=title or UNTITLED_ENTRY,
            link=link or fallback_url,
            summary=summary,
            published=_atom_date(entry),
        )


def _is_structural(error: xml.sax.SAXException) -> bool:
    """Whether a SAX error means the element structure itself is broken."""
    return error.getMessage() in STRUCTURAL_ERRORS


def _rss_link(entry: dict) -> Optional[str]:
    """Link of an RSS item, if it has a <link> element.

    feedparser copies a permalink guid into `link` when the item has no link
    element; only real link elements show up in `links` with rel=alternate.
    """
    links = entry.get("links") or []
    if not any(link.get("rel") == "alternate" for link in links):
        return None
    return _text(entry.get("link"))


def _atom_link(links: list) -> Optional[str]:
    """Pick the alternate link when several are present, else the first."""
    if not links:
        return None
    if len(links) > 1:
        for link in links:
            if link.get("rel") == "alternate" and link.get("href"):
                return link["href"]
    return links[0].get("href") or None


def _atom_date(entry: dict) -> Optional[str]:
    """Updated date, else published date."""
    # FeedParserDict.get("updated") silently maps to "published"; test membership first
    updated = _text(entry.get("updated")) if "updated" in entry else None
    return updated or _text(entry.get("published"))


def _title(entry: dict) -> Optional[str]:
    """Entry title as plain text; HTML titles are flattened."""
    title = _text(entry.get("title"))
    detail = entry.get("title_detail") or {}
    if title and detail.get("type") == "text/html":
        return strip_html(title) or None
    return title


def _text(value) -> Optional[str]:
    """Stringify a scalar field; empty values become None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def create_syndication_parser() -> SyndicationParser:
    """Create a SyndicationParser instance."""
    return SyndicationParser()
