"""
Selector-pair scraper for HTML pages without a feed.

Title, link and description elements are selected independently and paired
by their position in the document. There is no container scoping: if a page
interleaves unrelated matches, pairs can drift, which only shows up through
the SelectorError diagnostics.
"""

import re
from typing import Optional
from urllib.parse import urljoin

import soupsieve
from bs4 import BeautifulSoup, Tag

from feed_digest.core.hashing import hash_identifier
from feed_digest.exceptions import ConfigError, SelectorError
from feed_digest.logger import get_logger
from feed_digest.models import Item, ScrapeSelectors

logger = get_logger(__name__)

_SKIPPED_TAGS = ["script", "style", "noscript"]
_WHITESPACE_RE = re.compile(r"\s+")


def strip_html(text: Optional[str]) -> str:
    """Remove markup from a fragment and decode its entities.

    Args:
        text: HTML fragment

    Returns:
        Plain text with whitespace runs collapsed and ends trimmed
    """
    if not text:
        return ""
    return element_text(BeautifulSoup(text, "html.parser"))


def element_text(element: Tag) -> str:
    """Visible text of a parsed element.

    Scripts and styles are dropped, comments are never part of the text.
    """
    for child in element.find_all(_SKIPPED_TAGS):
        child.decompose()
    return _WHITESPACE_RE.sub(" ", element.get_text(" ")).strip()


class SelectorScraper:
    """Extracts items from an HTML page using three CSS selectors."""

    def __init__(self, parser_features: str = "lxml"):
        """Initialize scraper.

        Args:
            parser_features: BeautifulSoup tree builder
        """
        self.parser_features = parser_features

    def scrape(
        self,
        html: str,
        base_url: str,
        selectors: ScrapeSelectors,
        source_id: str,
    ) -> list[Item]:
        """Scrape items from a page.

        Args:
            html: Page markup
            base_url: URL the page was fetched from; relative hrefs resolve against it
            selectors: Title, link and optional description selectors
            source_id: Owning source id, part of every item id

        Returns:
            Items in document order

        Raises:
            ConfigError: If the title or link selector is missing or invalid
            SelectorError: If the selectors yield no usable items
        """
        if not selectors.is_complete:
            raise ConfigError("Title and link selectors are required for scraped feeds")

        soup = BeautifulSoup(html or "", self.parser_features)

        title_slots = [element_text(el) for el in self._select(soup, selectors.title)]
        links = self._links(self._select(soup, selectors.link), base_url)
        desc_slots = []
        if selectors.description:
            desc_slots = [element_text(el) for el in self._select(soup, selectors.description)]

        filled_titles = sum(1 for text in title_slots if text)

        if filled_titles == 0 and not links:
            raise SelectorError(
                f'No elements found. Title selector "{selectors.title}" found {len(title_slots)} elements, '
                f'link selector "{selectors.link}" found {len(links)} elements. '
                "Please verify your selectors are correct.",
                kind=SelectorError.NOTHING_MATCHED,
            )

        if filled_titles == 0:
            raise SelectorError(
                f'No titles found with selector "{selectors.title}". '
                f"Found {len(title_slots)} elements but all were empty. "
                "Please check that your title selector matches elements with text content.",
                kind=SelectorError.TITLES_EMPTY,
            )

        if not links:
            raise SelectorError(
                f'No links found with selector "{selectors.link}". '
                "Please check that your link selector matches <a> tags or elements with href attributes.",
                kind=SelectorError.NO_LINKS,
            )

        items = []
        for i in range(max(len(title_slots), len(links))):
            title = title_slots[i] if i < len(title_slots) else ""
            link = links[i] if i < len(links) else None
            if not title or not link:
                continue

            summary = desc_slots[i] if i < len(desc_slots) else ""
            items.append(
                Item(
                    id=f"{source_id}:{i}:{hash_identifier(link)}",
                    title=title,
                    link=link,
                    summary=summary or None,
                )
            )

        if not items:
            raise SelectorError(
                f"Found {filled_titles} titles and {len(links)} links, but could not pair items - "
                "selectors may be out of sync. Try more specific selectors.",
                kind=SelectorError.UNPAIRED,
            )

        logger.debug(
            f"Scraped {len(items)} items from {base_url} "
            f"({len(title_slots)} title slots, {len(links)} links, {len(desc_slots)} descriptions)"
        )
        return items

    def _select(self, soup: BeautifulSoup, selector: str) -> list[Tag]:
        try:
            return soup.select(selector)
        except soupsieve.SelectorSyntaxError as e:
            raise ConfigError(f'Invalid selector "{selector}": {e}') from e

    def _links(self, elements: list[Tag], base_url: str) -> list[str]:
        """Resolve the href of every element that has one."""
        links = []
        for element in elements:
            href = element.get("href")
            if not href:
                continue
            href = href.strip()
            try:
                links.append(href if href.startswith("http") else urljoin(base_url, href))
            except ValueError:
                logger.debug(f"Skipping unresolvable href {href!r}")
        return links


def create_scraper(parser_features: str = "lxml") -> SelectorScraper:
    """Create a SelectorScraper instance."""
    return SelectorScraper(parser_features=parser_features)
