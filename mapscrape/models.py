"""Core data models shared by the extraction, storage and export layers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

TEMPORARILY_CLOSED = "Temporarily Closed"

_EXPENSIVENESS_STRIP = re.compile(r"[^0-9$\-–+]")

# Attribute name -> key used in the persisted JSON shape.
_FIELD_KEYS = (
    ("title", "title"),
    ("closed_status", "closedStatus"),
    ("rating", "rating"),
    ("review_count", "reviewCount"),
    ("phone", "phone"),
    ("industry", "industry"),
    ("expensiveness", "expensiveness"),
    ("city", "city"),
    ("address", "address"),
    ("company_url", "companyUrl"),
    ("insta_search", "instaSearch"),
    ("href", "href"),
)


def clean_expensiveness(raw: Any) -> str:
    """Keep only digits, dollar signs, hyphens, en-dashes and plus signs."""
    if not raw:
        return ""
    return _EXPENSIVENESS_STRIP.sub("", str(raw)).strip()


@dataclass(slots=True)
class Record:
    """One scraped business listing as shown in the results card."""

    title: str = ""
    closed_status: str = ""
    rating: str = ""
    review_count: str = ""
    phone: str = ""
    industry: str = ""
    expensiveness: str = ""
    city: str = ""
    address: str = ""
    company_url: str = ""
    insta_search: str = ""
    href: str = ""

    @property
    def identity_key(self) -> Optional[str]:
        """Maps link when present, otherwise ``title|address``; None when neither exists."""
        if self.href:
            return self.href
        if self.title or self.address:
            return f"{self.title}|{self.address}"
        return None

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for attr, key in _FIELD_KEYS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        """Build a record from its stored JSON shape, re-cleaning expensiveness."""
        values = {}
        for attr, key in _FIELD_KEYS:
            value = data.get(key)
            values[attr] = "" if value is None else str(value)
        values["expensiveness"] = clean_expensiveness(values["expensiveness"])
        return cls(**values)
