"""Scrape session: the in-memory view of the stored collection and its operations."""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from mapscrape.core.store import Store, StoreError
from mapscrape.etl.export import Cell, build_csv, build_xls, render_rows, sanitize_filename, write_export
from mapscrape.etl.merge import dedupe_records, merge_records
from mapscrape.models import Record

logger = logging.getLogger(__name__)

EXPORT_BUILDERS = {"xls": build_xls, "csv": build_csv}


class ScrapeSession:
    """Owns the displayed record list and keeps it in step with the store.

    Store failures are logged and leave the current view untouched.
    """

    def __init__(self, store: Store, *, export_dir: str = ".") -> None:
        self.store = store
        self.export_dir = export_dir
        self._items: List[Record] = []
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self._render)

    @property
    def records(self) -> List[Record]:
        return list(self._items)

    @property
    def total(self) -> int:
        return len(self._items)

    def _render(self, records: Iterable[Record]) -> None:
        self._items = dedupe_records(records)
        logger.debug("View refreshed with %d records", len(self._items))

    def load(self) -> List[Record]:
        try:
            stored = self.store.get()
        except StoreError as exc:
            logger.error("Failed to load stored results: %s", exc)
            return self.records
        self._render(stored)
        return self.records

    def ingest(self, batch: Iterable[Optional[Record]]) -> int:
        """Merge a scraped batch into the store; returns how many records were new."""
        batch = list(batch)
        counts = {"before": 0}

        def merge(current: List[Record]):
            counts["before"] = len(current)
            return merge_records(current, batch)

        try:
            merged = self.store.update(merge)
        except StoreError as exc:
            logger.error("Failed to save results: %s", exc)
            return 0

        self._render(merged)
        added = len(merged) - counts["before"]
        logger.info("Added %d new listings. Total extracted: %d", added, self.total)
        return added

    def clear(self) -> bool:
        try:
            self.store.set([])
        except StoreError as exc:
            logger.error("Failed to clear stored results: %s", exc)
            return False
        self._render([])
        logger.info("Cleared stored results")
        return True

    def rows(self) -> List[List[Cell]]:
        return render_rows(self._items)

    def render_export(self, fmt: str = "xls") -> str:
        builder = EXPORT_BUILDERS.get(fmt)
        if builder is None:
            raise ValueError(f"Unsupported export format: {fmt}")
        return builder(self.rows())

    def export(self, filename: Optional[str] = None, fmt: str = "xls") -> Path:
        content = self.render_export(fmt)
        return write_export(content, self.export_dir, sanitize_filename(filename, fmt))

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> "ScrapeSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
