"""Centralised selectors and text markers for the event page."""

import re

# ==== EVENT URL ====
EVENT_ID_PATTERN = re.compile(r"event/([A-Z0-9]+)", re.I)
EVENT_URL_PATTERN = re.compile(r"^https://www\.ticketmaster\.com/.+/event/[A-Z0-9]+$")

# ==== BOT GATE ====
LOADING_TEXT = "Loading..."
CAPTCHA_CHECKBOX = "button.checkbox-container#captcha-checkbox"
BLOCK_TEXT = "Your Browsing Activity Has Been Paused"
CONSENT_ACCEPT = 'button[data-bdd="accept-modal-accept-button"]'
BOT_VERIFICATION_PHRASES = re.compile(
    r"verify you are human|extra protections|recaptcha|your browsing activity has been unusual",
    re.I,
)

# ==== VENUE MAP ====
VENUE_MAP_CANDIDATES = (
    'svg[data-bdd="venue-map"]',
    'div[data-bdd="venue-map"]',
    'div[class*="venue-map"]',
    'div[class*="stadium"]',
)
VENUE_SECTION = '[data-bdd*="section"], [class*="section"]'
SECTION_ID_ATTR = "data-section-id"
SECTION_NAME_ATTR = "data-section-name"
SECTION_COORDS_ATTR = "data-coordinates"

# ==== LISTINGS ====
TICKET_ITEM = 'li[data-bdd="quick-picks-list-item-resale"]'
TICKET_DESC = 'span[data-bdd="quick-pick-item-desc"]'
TICKET_PRICE = 'button[data-bdd="quick-pick-price-button"]'
TICKET_TYPE = 'span[data-bdd="quick-picks-resale-branding"]'

# Asynchronous data requests as reported by Playwright's resource_type.
ASYNC_RESOURCE_TYPES = frozenset({"xhr", "fetch"})
