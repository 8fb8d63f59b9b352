"""Table projection of the collection and spreadsheet/CSV serialisation."""

import csv
import html
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
from urllib.parse import parse_qs, urlparse

from mapscrape.etl import selectors
from mapscrape.etl.extract import build_search_url
from mapscrape.models import Record

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_FILENAME = "google-maps-data.xls"
XLS_CONTENT_TYPE = "application/vnd.ms-excel"
CSV_CONTENT_TYPE = "text/csv"

HEADERS = (
    "Title",
    "Closed Status",
    "Rating",
    "Reviews",
    "Phone",
    "Industry",
    "Expensiveness",
    "City",
    "Address",
    "Website",
    "Insta Search",
    "Google Maps Link",
)

_FILENAME_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE | re.ASCII)


class ExportError(RuntimeError):
    """Raised when an export file cannot be produced."""


@dataclass(frozen=True)
class Cell:
    text: str = ""
    href: Optional[str] = None


def sanitize_filename(name: Optional[str], extension: str = "xls") -> str:
    """``"My List!"`` becomes ``"my_list_.xls"``; blank names get the default."""
    name = (name or "").strip()
    if not name:
        return DEFAULT_EXPORT_FILENAME if extension == "xls" else f"google-maps-data.{extension}"
    return f"{_FILENAME_UNSAFE.sub('_', name).lower()}.{extension}"


def _search_query(url: str) -> str:
    values = parse_qs(urlparse(url).query).get("q")
    return values[0] if values else ""


def _website_cell(record: Record) -> Cell:
    url = record.company_url
    if not url or url.startswith(selectors.MAPS_URL_PREFIX):
        parts = [part for part in (record.title, record.city) if part]
        parts.append("Website")
        return Cell("Search For Website", build_search_url(" ".join(parts)))
    return Cell("Goto Website", url)


def render_row(record: Record) -> List[Cell]:
    """Project one record onto the visible table columns, in ``HEADERS`` order."""
    insta_cell = Cell()
    if record.insta_search:
        insta_cell = Cell(_search_query(record.insta_search) or record.insta_search, record.insta_search)

    maps_cell = Cell("Open In Google maps", record.href) if record.href else Cell()

    return [
        Cell(record.title),
        Cell(record.closed_status),
        Cell(record.rating),
        Cell(record.review_count.replace("(", "").replace(")", "")),
        Cell(record.phone),
        Cell(record.industry),
        Cell(record.expensiveness),
        Cell(record.city),
        Cell(record.address),
        _website_cell(record),
        insta_cell,
        maps_cell,
    ]


def render_rows(records: Iterable[Record]) -> List[List[Cell]]:
    return [render_row(record) for record in records]


def _cell_html(cell: Cell) -> str:
    text = html.escape(cell.text, quote=False)
    if cell.href:
        return f'<a href="{html.escape(cell.href)}" target="_blank" rel="noopener noreferrer">{text}</a>'
    return text


def build_xls(rows: Sequence[Sequence[Cell]], headers: Sequence[str] = HEADERS) -> str:
    """HTML table that spreadsheet apps open as a workbook, keeping hyperlinks."""
    parts = ['<!DOCTYPE html><html><head><meta charset="utf-8"></head><body>']
    parts.append('<table border="1" style="border-collapse:collapse;">')
    parts.append("<thead><tr>")
    parts.extend(f"<th>{html.escape(header, quote=False)}</th>" for header in headers)
    parts.append("</tr></thead>")
    parts.append("<tbody>")
    for row in rows:
        parts.append("<tr>")
        parts.extend(f"<td>{_cell_html(cell)}</td>" for cell in row)
        parts.append("</tr>")
    parts.append("</tbody></table></body></html>")
    return "".join(parts)


def build_csv(rows: Sequence[Sequence[Cell]], headers: Sequence[str] = HEADERS) -> str:
    """Visible cell text only, every value quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([cell.text for cell in row])
    return buffer.getvalue().rstrip("\n")


def write_export(content: str, directory: str, filename: str) -> Path:
    target = Path(directory).expanduser() / filename
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to export %s: %s", target, exc)
        raise ExportError(str(exc)) from exc
    logger.info("Exported %s", target)
    return target
