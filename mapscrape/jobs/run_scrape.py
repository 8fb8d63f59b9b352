"""CLI job that scrapes a results page and merges the listings into the store."""

import argparse
import logging
from pathlib import Path
from typing import Optional

from mapscrape.core.config import ConfigError, get_settings
from mapscrape.core.session import ScrapeSession
from mapscrape.core.store import build_store
from mapscrape.etl import selectors
from mapscrape.etl.dom import PageDocument
from mapscrape.etl.extract import scrape_page
from mapscrape.vendors.browser import BrowserSnapshotter, NotAMapsPageError

logger = logging.getLogger(__name__)


def load_document(
    *,
    html_path: Optional[str],
    base_url: Optional[str],
    search: Optional[str],
    cdp_url: Optional[str],
    timeout_ms: int,
) -> PageDocument:
    """Build the page snapshot from a saved HTML file or the live browser tab."""
    if html_path:
        html = Path(html_path).read_text(encoding="utf-8")
        logger.info("Loaded snapshot %s (%d characters)", html_path, len(html))
        return PageDocument(html, base_url=base_url or selectors.DEFAULT_BASE_URL, search_value=search)

    if not cdp_url:
        raise ValueError("Either an HTML snapshot or a DevTools URL is required")

    with BrowserSnapshotter(cdp_url, timeout_ms=timeout_ms) as snapshotter:
        snapshot = snapshotter.snapshot()
    logger.info("Captured live page %s", snapshot.url)
    return PageDocument(
        snapshot.html,
        base_url=snapshot.url,
        search_value=search if search is not None else snapshot.search_value,
    )


def run_scrape_job(
    *,
    html_path: Optional[str] = None,
    base_url: Optional[str] = None,
    search: Optional[str] = None,
    cdp_url: Optional[str] = None,
) -> int:
    settings = get_settings()
    document = load_document(
        html_path=html_path,
        base_url=base_url,
        search=search,
        cdp_url=cdp_url or settings.cdp_url,
        timeout_ms=settings.cdp_timeout_ms,
    )

    results = scrape_page(document)
    with ScrapeSession(build_store(settings), export_dir=settings.export_dir) as session:
        added = session.ingest(results)
        logger.info("Completed scrape: added=%d total=%d", added, session.total)
    return added


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape Google Maps listings into the local collection")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--html", dest="html_path", help="Saved HTML snapshot of a results page")
    source.add_argument(
        "--cdp",
        dest="cdp_url",
        default=None,
        help=f"DevTools endpoint of a running Chrome (default: {get_settings().cdp_url})",
    )
    parser.add_argument("--base-url", dest="base_url", help="URL the snapshot was taken from")
    parser.add_argument("--search", dest="search", help="Search box text, e.g. 'Restaurants in Springfield'")
    return parser


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        run_scrape_job(
            html_path=args.html_path,
            base_url=args.base_url,
            search=args.search,
            cdp_url=args.cdp_url,
        )
    except NotAMapsPageError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc
    except (OSError, ValueError, RuntimeError) as exc:
        logger.error("Scrape failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
