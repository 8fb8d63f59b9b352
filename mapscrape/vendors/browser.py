"""Snapshot the active Google Maps tab of a running Chrome over the DevTools protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

try:
    from playwright.sync_api import Error as PlaywrightError, sync_playwright
except ImportError:  # pragma: no cover - optional dependency
    sync_playwright = None
    PlaywrightError = Exception

from mapscrape.etl import selectors

logger = logging.getLogger(__name__)

_SEARCH_VALUE_SCRIPT = """
(selectors) => {
    for (const selector of selectors) {
        const node = document.querySelector(selector);
        if (node) return node.value || "";
    }
    return "";
}
"""


class NotAMapsPageError(RuntimeError):
    """Raised when no open tab shows Google Maps."""

    def __init__(self) -> None:
        super().__init__(f"Go to Google Maps Search: {selectors.MAPS_SEARCH_URL}")


@dataclass(frozen=True)
class PageSnapshot:
    url: str
    html: str
    search_value: str = ""


def is_maps_page(url: Optional[str]) -> bool:
    return bool(url) and selectors.MAPS_PAGE_MARKER in url


class BrowserSnapshotter:
    """Attach to an already running browser; never navigates or reloads."""

    def __init__(self, cdp_url: str, timeout_ms: int = 15000) -> None:
        if sync_playwright is None:
            raise RuntimeError("playwright is not installed")
        if not cdp_url:
            raise ValueError("A DevTools endpoint URL is required")
        self._cdp_url = cdp_url
        self._timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None

    def _ensure_browser(self) -> None:
        if self._playwright is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.connect_over_cdp(self._cdp_url, timeout=self._timeout_ms)
            logger.info("Connected to browser at %s", self._cdp_url)

    def _find_maps_page(self):
        # Most recently opened tab first, like the active tab in the popup.
        for context in self._browser.contexts:
            for page in reversed(context.pages):
                if is_maps_page(page.url):
                    return page
        return None

    def snapshot(self) -> PageSnapshot:
        self._ensure_browser()
        page = self._find_maps_page()
        if page is None:
            raise NotAMapsPageError()
        try:
            html = page.content()
            search_value = page.evaluate(_SEARCH_VALUE_SCRIPT, list(selectors.SEARCH_INPUT_SELECTORS))
        except PlaywrightError as exc:
            logger.warning("Failed to read page %s: %s", page.url, exc)
            raise
        logger.debug("Captured %d characters from %s", len(html), page.url)
        return PageSnapshot(url=page.url, html=html, search_value=search_value or "")

    def close(self) -> None:
        # Only drops the CDP connection; the user's browser keeps running.
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self) -> "BrowserSnapshotter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
