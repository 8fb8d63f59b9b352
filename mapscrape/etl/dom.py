"""BeautifulSoup adapters exposing a rendered results page to the extractor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from mapscrape.etl import selectors

logger = logging.getLogger(__name__)


class SoupListingContainer:
    """Listing card backed by a BeautifulSoup tag."""

    def __init__(self, tag: Tag, base_url: str = selectors.DEFAULT_BASE_URL) -> None:
        self._tag = tag
        self._base_url = base_url

    def full_text(self) -> str:
        # Same concatenation as the DOM's textContent: no separators.
        return self._tag.get_text()

    def title_text(self) -> str:
        node = self._tag.select_one(selectors.TITLE_SELECTOR)
        if node is None:
            logger.debug("Listing card has no title element")
            return ""
        return node.get_text()

    def rating_label(self) -> Optional[str]:
        node = self._tag.select_one(selectors.RATING_SELECTOR)
        if node is None:
            return None
        return node.get(selectors.RATING_LABEL_ATTRIBUTE)

    def all_links(self) -> List[str]:
        links: List[str] = []
        for anchor in self._tag.select(selectors.LINK_SELECTOR):
            href = anchor["href"].strip()
            if href:
                links.append(urljoin(self._base_url, href))
        return links


@dataclass(frozen=True)
class PlaceAnchor:
    href: str
    container: Optional[SoupListingContainer]


def _is_card(tag: Tag) -> bool:
    return selectors.CARD_JSACTION_MARKER in (tag.get("jsaction") or "")


class PageDocument:
    """Snapshot of a results page: place anchors, their cards and the search box."""

    def __init__(
        self,
        html: str,
        *,
        base_url: str = selectors.DEFAULT_BASE_URL,
        search_value: Optional[str] = None,
        parser: str = "html.parser",
    ) -> None:
        self.base_url = base_url or selectors.DEFAULT_BASE_URL
        self._soup = BeautifulSoup(html or "", parser)
        self._search_value = search_value

    def place_anchors(self) -> List[PlaceAnchor]:
        anchors: List[PlaceAnchor] = []
        for anchor in self._soup.select(selectors.PLACE_LINK_SELECTOR):
            href = urljoin(self.base_url, anchor["href"].strip())
            card = anchor if _is_card(anchor) else anchor.find_parent(_is_card)
            container = SoupListingContainer(card, self.base_url) if card is not None else None
            anchors.append(PlaceAnchor(href=href, container=container))
        logger.debug("Found %d place anchors", len(anchors))
        return anchors

    def search_value(self) -> str:
        """Live search text when the snapshot carried one, else the input's value attribute."""
        if self._search_value is not None:
            return self._search_value
        for selector in selectors.SEARCH_INPUT_SELECTORS:
            node = self._soup.select_one(selector)
            if node is not None:
                return node.get("value") or ""
        return ""
