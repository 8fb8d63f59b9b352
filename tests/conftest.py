import sys
from pathlib import Path

import pytest

# Ensure the `mapscrape` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mapscrape.core import config  # noqa: E402


def card_html(
    *,
    href="https://www.google.com/maps/place/Luigis/data=1",
    title="Luigi's Trattoria",
    label="4.5 stars 120 reviews",
    body="4.5(120)\nItalian · $$\n123 Main St\n(555) 123-4567",
    website="https://luigis.example.com/",
):
    """One results card shaped like the live markup."""
    title_html = f'<div class="fontHeadlineSmall">{title}</div>' if title is not None else ""
    label_html = f'<span role="img" aria-label="{label}"></span>' if label is not None else ""
    website_html = f'<a href="{website}">Website</a>' if website else ""
    return (
        '<div jsaction="mouseover:pane.wfvdle10;mouseout:pane.wfvdle10">'
        f'<a href="{href}" aria-label="{title}"></a>'
        f"{title_html}{label_html}<div>{body}</div>{website_html}"
        "</div>"
    )


def page_html(*cards, search=None):
    search_html = f'<input id="searchboxinput" value="{search}">' if search is not None else ""
    return f'<html><body>{search_html}<div role="feed">{"".join(cards)}</div></body></html>'


@pytest.fixture
def make_card():
    return card_html


@pytest.fixture
def make_page():
    return page_html


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    for name in ("STORE_BACKEND", "STORE_PATH", "STORE_KEY", "DATABASE_URL", "PORT", "SERVER_PORT", "EXPORT_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
