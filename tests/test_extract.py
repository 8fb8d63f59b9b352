from urllib.parse import unquote

from mapscrape.etl import extract
from mapscrape.etl.dom import PageDocument
from mapscrape.models import TEMPORARILY_CLOSED


class FakeContainer:
    def __init__(self, text="", title="", label=None, links=()):
        self._text = text
        self._title = title
        self._label = label
        self._links = list(links)

    def full_text(self):
        return self._text

    def title_text(self):
        return self._title

    def rating_label(self):
        return self._label

    def all_links(self):
        return list(self._links)


PLACE = "https://www.google.com/maps/place/Acme"


def test_extract_listing_full_card(make_card, make_page):
    document = PageDocument(make_page(make_card(), search="Restaurants in Springfield"))

    [record] = extract.scrape_page(document)

    assert record.title == "Luigi's Trattoria"
    assert record.closed_status == ""
    assert record.rating == "4.5"
    assert record.review_count == "(120)"
    assert record.industry == "Italian"
    assert record.expensiveness == "$$"
    assert record.address == "123 Main St"
    assert record.phone == "(555) 123-4567"
    assert record.company_url == "https://luigis.example.com/"
    assert record.city == "Springfield"
    assert record.href == "https://www.google.com/maps/place/Luigis/data=1"
    assert unquote(record.insta_search) == "https://www.google.com/search?q=Luigi's Trattoria Springfield Instagram"


def test_rating_label_parsing():
    container = FakeContainer(text="nothing useful", label="4.5 stars 120 reviews")
    record = extract.extract_listing(PLACE, container)
    assert record.rating == "4.5"
    assert record.review_count == "(120)"


def test_rating_without_stars_uses_sentinel():
    for label in (None, "", "Rated highly"):
        record = extract.extract_listing(PLACE, FakeContainer(text="x", label=label))
        assert record.rating == "0"
        assert record.review_count == "0"


def test_permanently_closed_yields_no_record(make_card, make_page):
    closed = make_card(body="4.5(120)\nCafe\nPERMANENTLY CLOSED\n10 High St")
    open_card = make_card(href="https://www.google.com/maps/place/Other", title="Other")
    results = extract.scrape_page(PageDocument(make_page(closed, open_card)))

    assert results[0] is None
    assert results[1].title == "Other"


def test_temporarily_closed_keeps_other_fields(make_card, make_page):
    card = make_card(body="4.5(120)\nItalian · $$\nTemporarily closed\n123 Main St\n(555) 123-4567")
    [record] = extract.scrape_page(PageDocument(make_page(card)))

    assert record.closed_status == TEMPORARILY_CLOSED
    assert record.rating == "4.5"
    assert record.industry == "Italian"
    assert record.address == "123 Main St"
    assert record.phone == "(555) 123-4567"


def test_no_address_leaves_address_fields_empty():
    container = FakeContainer(
        text="Acme4.2(8)\nBakery · $\nOpen now\n(555) 123-4567",
        title="Acme",
        label="4.2 stars 8 reviews",
    )
    record = extract.extract_listing(PLACE, container)

    assert record.address == ""
    assert record.industry == ""
    assert record.expensiveness == ""
    assert record.phone == "(555) 123-4567"
    assert record.title == "Acme"


def test_missing_title_and_card_do_not_crash(make_page):
    html = make_page(
        '<div jsaction="mouseover:pane.x"><a href="https://www.google.com/maps/place/NoTitle"></a></div>',
        '<a href="https://www.google.com/maps/place/Orphan"></a>',
    )
    first, orphan = extract.scrape_page(PageDocument(html))

    assert first.title == ""
    assert first.rating == "0"
    assert orphan.title == ""
    assert orphan.rating == ""
    assert orphan.href == "https://www.google.com/maps/place/Orphan"
    assert orphan.insta_search.endswith("Instagram")


def test_address_status_words_are_stripped():
    assert extract.clean_address("42 Elm StOpen 24 hours") == "42 Elm St"
    assert extract.clean_address("42 Elm StClosed ") == "42 Elm St"
    assert extract.clean_address("7 Market Sq Open") == "7 Market Sq"
    assert extract.clean_address("9OpenNow") == "9Now"


def test_expensiveness_keeps_price_symbols_only():
    _, industry, expensiveness = extract.extract_address_block(
        "4.5(120)\nSteak house · $50–100+\n99 Ocean Ave", "4.5", "(120)"
    )
    assert industry == "Steak house"
    assert expensiveness == "$50–100+"


def test_address_suite_suffix():
    address, _, _ = extract.extract_address_block("Shop\n500 Market St Suite 4", "0", "0")
    assert address == "500 Market St Suite 4"


def test_company_url_skips_place_links():
    links = ["https://www.google.com/maps/place/Acme", "https://acme.example/", "https://other.example/"]
    assert extract.extract_company_url(links) == "https://acme.example/"
    assert extract.extract_company_url(links[:1]) == ""


def test_city_from_address():
    assert extract.city_from_address("123 Main St, Springfield, IL 62704") == "Springfield"
    assert extract.city_from_address("123 Main St") == "123 Main St"
    assert extract.city_from_address("NY, 10001") == "10001"
    assert extract.city_from_address("") == ""


def test_city_from_search():
    assert extract.city_from_search("Restaurants in Portland, OR ") == "Portland, OR"
    assert extract.city_from_search("restaurant in Lyon") == "Lyon"
    assert extract.city_from_search("coffee near me") == ""


def test_city_falls_back_to_address_when_search_has_no_city():
    container = FakeContainer(text="Shop\n12 Rue de Lyon", title="Shop")
    record = extract.extract_listing(PLACE, container, search_city="")
    assert record.city == "12 Rue de Lyon"


def test_build_insta_search_encodes_like_uri_component():
    url = extract.build_insta_search("Bar & Grill", "")
    assert url == "https://www.google.com/search?q=Bar%20%26%20Grill%20Instagram"


def test_relative_links_resolve_against_base_url():
    html = (
        '<div jsaction="mouseover:pane.x">'
        '<a href="https://www.google.com/maps/place/Acme"></a>'
        '<a href="/url?q=https://acme.example">site</a>'
        "</div>"
    )
    [record] = extract.scrape_page(PageDocument(html))
    assert record.company_url == "https://www.google.com/url?q=https://acme.example"


def test_non_breaking_spaces_count_as_whitespace():
    address, _, _ = extract.extract_address_block("Cafe\n123 Main\u00a0St", "0", "0")
    assert address == "123 Main\u00a0St"
    assert extract.extract_phone("Call (555)\u00a0123-4567") == "(555)\u00a0123-4567"
    assert extract.extract_phone("+1\u202f555 123 4567") == "+1\u202f555 123 4567"
