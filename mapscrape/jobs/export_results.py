"""CLI job to export or clear the stored collection."""

import argparse
import logging
from typing import Optional

from mapscrape.core.config import ConfigError, get_settings
from mapscrape.core.session import EXPORT_BUILDERS, ScrapeSession
from mapscrape.core.store import build_store
from mapscrape.etl.export import ExportError

logger = logging.getLogger(__name__)

CLEAR_PROMPT = "Are you sure you want to clear the list? This will remove all saved entries. [y/N] "


def export_job(*, filename: Optional[str], fmt: str, export_dir: Optional[str] = None):
    settings = get_settings()
    with ScrapeSession(build_store(settings), export_dir=export_dir or settings.export_dir) as session:
        session.load()
        if not session.total:
            logger.warning("No stored listings to export")
            return None
        path = session.export(filename, fmt)
        logger.info("Exported %d listings to %s", session.total, path)
        return path


def clear_job(*, assume_yes: bool = False, prompt=input) -> Optional[bool]:
    """Clear the store; None when the user declines the confirmation."""
    if not assume_yes:
        answer = prompt(CLEAR_PROMPT)
        if answer.strip().lower() not in {"y", "yes"}:
            logger.info("Clear cancelled")
            return None

    settings = get_settings()
    with ScrapeSession(build_store(settings), export_dir=settings.export_dir) as session:
        return session.clear()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export or clear scraped Google Maps listings")
    parser.add_argument("--filename", dest="filename", default="", help="Export file name (sanitised)")
    parser.add_argument("--format", dest="fmt", choices=sorted(EXPORT_BUILDERS), default="xls")
    parser.add_argument("--output-dir", dest="export_dir", help="Directory for the export file")
    parser.add_argument("--clear", action="store_true", help="Remove all stored listings instead of exporting")
    parser.add_argument("--yes", dest="assume_yes", action="store_true", help="Do not ask before clearing")
    return parser


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    if args.clear:
        if clear_job(assume_yes=args.assume_yes) is False:
            raise SystemExit(1)
        return

    try:
        export_job(filename=args.filename, fmt=args.fmt, export_dir=args.export_dir)
    except ExportError as exc:
        logger.error("Export failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
