import pytest

from mapscrape.vendors import browser


class FakePage:
    def __init__(self, url, html="<html></html>", search_value="", fail=False):
        self.url = url
        self._html = html
        self._search_value = search_value
        self._fail = fail
        self.evaluated = []

    def content(self):
        if self._fail:
            raise browser.PlaywrightError("target closed")
        return self._html

    def evaluate(self, script, arg):
        self.evaluated.append(arg)
        return self._search_value


class FakeContext:
    def __init__(self, pages):
        self.pages = pages


class FakeBrowser:
    def __init__(self, contexts):
        self.contexts = contexts
        self.closed = False

    def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, fake_browser):
        self.fake_browser = fake_browser
        self.connected = None

    def connect_over_cdp(self, url, timeout=None):
        self.connected = (url, timeout)
        return self.fake_browser


class FakePlaywright:
    def __init__(self, fake_browser):
        self.chromium = FakeChromium(fake_browser)
        self.stopped = False

    def stop(self):
        self.stopped = True


@pytest.fixture
def fake_playwright(monkeypatch):
    holder = {}

    def install(pages):
        fake = FakePlaywright(FakeBrowser([FakeContext(pages)]))
        holder["playwright"] = fake

        class Starter:
            def start(self):
                return fake

        monkeypatch.setattr(browser, "sync_playwright", lambda: Starter())
        return fake

    return install


def test_is_maps_page():
    assert browser.is_maps_page("https://www.google.com/maps/search/pizza")
    assert not browser.is_maps_page("https://example.com/")
    assert not browser.is_maps_page(None)


def test_snapshot_picks_latest_maps_tab(fake_playwright):
    maps_old = FakePage("https://www.google.com/maps/place/old", html="old")
    other = FakePage("https://example.com/")
    maps_new = FakePage("https://www.google.com/maps/search/pizza", html="new", search_value="Restaurants in Rome")
    fake = fake_playwright([maps_old, maps_new, other])

    with browser.BrowserSnapshotter("http://localhost:9222", timeout_ms=500) as snapshotter:
        snapshot = snapshotter.snapshot()

    assert snapshot == browser.PageSnapshot(
        url="https://www.google.com/maps/search/pizza", html="new", search_value="Restaurants in Rome"
    )
    assert fake.chromium.connected == ("http://localhost:9222", 500)
    assert maps_new.evaluated == [["#searchboxinput", 'input[aria-label*="Search"]']]
    assert fake.chromium.fake_browser.closed is True
    assert fake.stopped is True


def test_snapshot_without_maps_tab(fake_playwright):
    fake_playwright([FakePage("https://example.com/")])

    with browser.BrowserSnapshotter("http://localhost:9222") as snapshotter:
        with pytest.raises(browser.NotAMapsPageError) as excinfo:
            snapshotter.snapshot()

    assert "https://www.google.com/maps/search/" in str(excinfo.value)


def test_snapshot_propagates_page_errors(fake_playwright):
    fake_playwright([FakePage("https://www.google.com/maps/search/x", fail=True)])

    with browser.BrowserSnapshotter("http://localhost:9222") as snapshotter:
        with pytest.raises(browser.PlaywrightError):
            snapshotter.snapshot()


def test_requires_endpoint(fake_playwright):
    fake_playwright([])
    with pytest.raises(ValueError):
        browser.BrowserSnapshotter("")
