"""Markup conventions of the Google Maps results page.

Google ships new markup without notice, so every selector or marker the
extractor depends on lives here. Update this table, not the heuristics.
"""

# Anchors pointing at a place page; each one is a listing candidate.
PLACE_URL_PREFIX = "https://www.google.com/maps/place"
PLACE_LINK_SELECTOR = 'a[href^="https://www.google.com/maps/place"]'

# External website links are the anchors that do not point at a place page.
PLACE_PAGE_PREFIX = "https://www.google.com/maps/place/"

# The listing card is the ancestor carrying the hover handler.
CARD_JSACTION_MARKER = "mouseover:pane"

TITLE_SELECTOR = ".fontHeadlineSmall"
RATING_SELECTOR = '[role="img"]'
RATING_LABEL_ATTRIBUTE = "aria-label"
LINK_SELECTOR = "a[href]"

SEARCH_INPUT_SELECTORS = (
    "#searchboxinput",
    'input[aria-label*="Search"]',
)

# Relative anchors in saved snapshots resolve against this.
DEFAULT_BASE_URL = "https://www.google.com/maps/"
MAPS_URL_PREFIX = "https://www.google.com/maps"
MAPS_PAGE_MARKER = "://www.google.com/maps/"
MAPS_SEARCH_URL = "https://www.google.com/maps/search/"

SEARCH_URL = "https://www.google.com/search?q="
