"""Heuristics that turn a results-page listing card into a Record."""

import logging
import re
from typing import Iterable, List, Optional, Protocol, Tuple
from urllib.parse import quote

from mapscrape.etl import selectors
from mapscrape.models import TEMPORARILY_CLOSED, Record, clean_expensiveness

logger = logging.getLogger(__name__)

RATING_SENTINEL = "0"

_PERMANENTLY_CLOSED = re.compile(r"permanently closed", re.IGNORECASE)
_TEMPORARILY_CLOSED = re.compile(r"temporaril(?:y)? closed", re.IGNORECASE)
# re.ASCII narrows \s too; browsers also count these as whitespace.
_WS = r"\s\u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
_ADDRESS = re.compile(
    rf"\d+ [\w{_WS}]+(?:#[{_WS}]*\d+|Suite[{_WS}]*\d+|Apt[{_WS}]*\d+)?", re.ASCII
)
_LINE_BREAK = re.compile(r"[\r\n]+")
_INDUSTRY_PUNCTUATION = re.compile(r"[Â·.,#!?]")
_NON_ALPHA = re.compile(r"[^A-Za-z\s]")
_ADDRESS_STATUS_WORDS = re.compile(r"\b(Closed|Open 24 hours|24 hours)|Open\b", re.ASCII)
_GLUED_OPEN_AFTER_DIGITS = re.compile(r"(\d+)(Open)", re.ASCII)
_GLUED_OPEN = re.compile(r"(\w)(Open)", re.ASCII)
_GLUED_CLOSED = re.compile(r"(\w)(Closed)", re.ASCII)
_PHONE = re.compile(rf"(\+\d{{1,2}}[{_WS}])?\(?\d{{3}}\)?[{_WS}.-]?\d{{3}}[{_WS}.-]?\d{{4}}", re.ASCII)
_SEARCH_CITY = re.compile(r"(?:Restaurants?|Restaurant) in (.+)", re.IGNORECASE)
_NUMERIC_SEGMENT = re.compile(r"\d+", re.ASCII)
_REGION_CODE_SEGMENT = re.compile(r"[A-Z0-9\- ]{2,}", re.ASCII)

# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class ListingContainer(Protocol):
    """What the heuristics need from a listing card, independent of markup."""

    def full_text(self) -> str: ...

    def title_text(self) -> str: ...

    def rating_label(self) -> Optional[str]: ...

    def all_links(self) -> List[str]: ...


class ListingDocument(Protocol):
    def place_anchors(self) -> Iterable: ...

    def search_value(self) -> str: ...


def city_from_address(address: str) -> str:
    """Pick the last comma segment that looks like a place name."""
    if not address or not isinstance(address, str):
        return ""
    parts = [part.strip() for part in address.split(",") if part.strip()]
    if not parts:
        return ""
    for part in reversed(parts):
        if not _NUMERIC_SEGMENT.fullmatch(part) and not _REGION_CODE_SEGMENT.fullmatch(part):
            return part
    return parts[-1]


def city_from_search(search_value: str) -> str:
    """Return the city of a "Restaurants in <city>" search, or an empty string."""
    match = _SEARCH_CITY.search(search_value or "")
    if match and match.group(1):
        return match.group(1).strip()
    return ""


def build_search_url(query: str) -> str:
    return selectors.SEARCH_URL + quote(query, safe=_URI_COMPONENT_SAFE)


def build_insta_search(title: str, city: str) -> str:
    return build_search_url(title + (f" {city}" if city else "") + " Instagram")


def closed_status(text: str) -> Optional[str]:
    """None for permanently closed listings, else the status to record."""
    if _PERMANENTLY_CLOSED.search(text):
        return None
    if _TEMPORARILY_CLOSED.search(text):
        return TEMPORARILY_CLOSED
    return ""


def _extract_rating(label: Optional[str]) -> Tuple[str, str]:
    if not label or "stars" not in label:
        return RATING_SENTINEL, RATING_SENTINEL
    parts = label.split()
    review_count = f"({parts[2]})" if len(parts) > 2 else RATING_SENTINEL
    return parts[0], review_count


def _split_industry(raw: str) -> Tuple[str, str]:
    cleaned = _INDUSTRY_PUNCTUATION.sub("", raw).strip()
    return _NON_ALPHA.sub("", cleaned).strip(), clean_expensiveness(cleaned)


def clean_address(address: str) -> str:
    """Drop opening-hours words that bleed into the address text."""
    address = _ADDRESS_STATUS_WORDS.sub("", address).strip()
    address = _GLUED_OPEN_AFTER_DIGITS.sub(r"\1", address).strip()
    address = _GLUED_OPEN.sub(r"\1", address).strip()
    return _GLUED_CLOSED.sub(r"\1", address).strip()


def extract_address_block(text: str, rating: str, review_count: str) -> Tuple[str, str, str]:
    """Return ``(address, industry, expensiveness)`` from a card's text.

    The industry line sits between the rating/review marker and the address,
    so both are only computed when an address-shaped substring exists.
    """
    match = _ADDRESS.search(text)
    if not match:
        return "", "", ""

    industry = ""
    expensiveness = ""
    text_before_address = text[: match.start()].strip()
    marker = rating + review_count
    marker_index = text_before_address.rfind(marker)
    if marker_index != -1:
        raw = text_before_address[marker_index + len(marker):].strip()
        industry, expensiveness = _split_industry(_LINE_BREAK.split(raw)[0])

    return clean_address(match.group(0)), industry, expensiveness


def extract_company_url(links: Iterable[str]) -> str:
    for link in links:
        if not link.startswith(selectors.PLACE_PAGE_PREFIX):
            return link
    return ""


def extract_phone(text: str) -> str:
    match = _PHONE.search(text)
    return match.group(0) if match else ""


def extract_listing(href: str, container: Optional[ListingContainer], search_city: str = "") -> Optional[Record]:
    """Build a Record for one place anchor, or None when the place is permanently closed."""
    title = ""
    status = ""
    rating = ""
    review_count = ""
    address = industry = expensiveness = ""
    company_url = ""
    phone = ""

    if container is not None:
        text = container.full_text() or ""
        status = closed_status(text)
        if status is None:
            logger.debug("Skipping permanently closed listing %s", href)
            return None
        title = container.title_text() or ""
        rating, review_count = _extract_rating(container.rating_label())
        address, industry, expensiveness = extract_address_block(text, rating, review_count)
        company_url = extract_company_url(container.all_links())
        phone = extract_phone(text)
    else:
        logger.debug("No listing card found around %s", href)

    city = search_city or city_from_address(address)
    return Record(
        title=title,
        closed_status=status,
        rating=rating,
        review_count=review_count,
        phone=phone,
        industry=industry,
        expensiveness=expensiveness,
        city=city,
        address=address,
        company_url=company_url,
        insta_search=build_insta_search(title, city),
        href=href,
    )


def scrape_page(document: ListingDocument) -> List[Optional[Record]]:
    """Run one extraction pass; permanently closed places appear as None."""
    search_city = city_from_search(document.search_value())
    results = [extract_listing(anchor.href, anchor.container, search_city) for anchor in document.place_anchors()]
    skipped = sum(1 for item in results if item is None)
    logger.info("Extracted %d listings (%d permanently closed skipped)", len(results) - skipped, skipped)
    return results
