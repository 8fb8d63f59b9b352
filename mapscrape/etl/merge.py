"""Order-preserving de-duplication of scraped records."""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from mapscrape.models import Record

logger = logging.getLogger(__name__)


def merge_records(existing: Iterable[Record], batch: Iterable[Optional[Record]]) -> Tuple[List[Record], bool]:
    """Append unseen records from ``batch`` to ``existing``.

    Keys already present always win; skip markers (None) and records without
    an identity key are dropped. Returns the merged list and whether anything
    was appended.
    """
    merged = list(existing)
    seen: Set[str] = {key for key in (record.identity_key for record in merged) if key}
    added = False

    for record in batch:
        if record is None:
            continue
        key = record.identity_key
        if not key:
            logger.debug("Dropping record without identity: %s", record)
            continue
        if key in seen:
            continue
        seen.add(key)
        merged.append(record)
        added = True

    return merged, added


def dedupe_records(records: Iterable[Optional[Record]]) -> List[Record]:
    """Collapse a stored list that predates de-duplication."""
    merged, _ = merge_records([], records)
    return merged
