"""Venue layout and ticket listing extraction from the rendered event page."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

import seatwatch.selectors as selectors
from seatwatch.extractors.dom_utils import clean_text
from seatwatch.logging_config import get_logger
from seatwatch.models import SectionLayout, StadiumLayout, TicketListing, utc_now
from seatwatch.settings import ExtractionSettings

LOGGER = get_logger(__name__)

_SECTIONS_JS = """
([selector, idAttr, nameAttr, coordsAttr]) =>
  Array.from(document.querySelectorAll(selector)).map((el) => ({
    id: el.getAttribute(idAttr) || el.id || null,
    name: el.getAttribute(nameAttr) || (el.textContent || "").trim(),
    coordinates: el.getAttribute(coordsAttr) || null,
  }))
"""

_TICKETS_JS = """
(nodes, [descSel, priceSel, typeSel]) =>
  nodes.map((el) => {
    const text = (sel) => {
      const node = el.querySelector(sel);
      return node ? node.innerText : null;
    };
    return { sectionRow: text(descSel), price: text(priceSel), type: text(typeSel) };
  })
"""


def section_from_raw(raw: Mapping[str, Any]) -> SectionLayout:
    section_id = clean_text(raw.get("id")) or None
    coordinates = clean_text(raw.get("coordinates")) or None
    return SectionLayout(id=section_id, name=clean_text(raw.get("name")), coordinates=coordinates)


def listing_from_raw(raw: Mapping[str, Any], timestamp: str) -> TicketListing:
    """Map one raw listing node; missing sub-fields become empty strings."""

    return TicketListing(
        section_row=clean_text(raw.get("sectionRow")),
        price=clean_text(raw.get("price")),
        type=clean_text(raw.get("type")),
        timestamp=timestamp,
    )


async def _first_map_markup(page: Any, candidates: Iterable[str], timeout_ms: int) -> str | None:
    for selector in candidates:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            markup = await page.eval_on_selector(selector, "(el) => el.outerHTML")
        except PlaywrightError:
            LOGGER.debug("Venue map selector not found: %s", selector)
            continue
        LOGGER.info("Found venue map using selector: %s", selector)
        return markup
    return None


async def extract_stadium(
    page: Any,
    settings: ExtractionSettings | None = None,
) -> StadiumLayout | None:
    """Return the venue map and its sections, or None when no map is present."""

    settings = settings or ExtractionSettings()
    try:
        await page.wait_for_selector("body", timeout=settings.body_timeout_ms)
    except PlaywrightError as exc:
        LOGGER.warning("Document body never appeared: %s", exc)
        return None

    markup = await _first_map_markup(page, selectors.VENUE_MAP_CANDIDATES, settings.selector_timeout_ms)
    if markup is None:
        return None

    try:
        raw_sections = await page.evaluate(
            _SECTIONS_JS,
            [
                selectors.VENUE_SECTION,
                selectors.SECTION_ID_ATTR,
                selectors.SECTION_NAME_ATTR,
                selectors.SECTION_COORDS_ATTR,
            ],
        )
    except PlaywrightError as exc:
        LOGGER.warning("Section harvest failed: %s", exc)
        raw_sections = []

    sections = tuple(section_from_raw(raw) for raw in raw_sections or [])
    LOGGER.info("Extracted %d venue sections", len(sections))
    return StadiumLayout(stadium_image=markup, layout_data=sections)


async def extract_stadium_with_retry(
    page: Any,
    settings: ExtractionSettings | None = None,
) -> StadiumLayout | None:
    """Retry ``extract_stadium`` while it finds nothing; None once attempts run out."""

    settings = settings or ExtractionSettings()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(settings.stadium_attempts, 1)),
        wait=wait_fixed(settings.stadium_retry_pause_ms / 1000),
        retry=retry_if_result(lambda layout: layout is None),
        before_sleep=lambda state: LOGGER.info(
            "Venue extraction attempt %d found nothing", state.attempt_number
        ),
        retry_error_callback=lambda state: None,
    )
    return await retrying(extract_stadium, page, settings)


async def extract_tickets(page: Any) -> list[TicketListing]:
    """Return every resale listing on the page; an empty list means no data yet."""

    try:
        raw_rows = await page.eval_on_selector_all(
            selectors.TICKET_ITEM,
            _TICKETS_JS,
            [selectors.TICKET_DESC, selectors.TICKET_PRICE, selectors.TICKET_TYPE],
        )
    except PlaywrightError as exc:
        LOGGER.warning("Ticket extraction failed: %s", exc)
        return []

    timestamp = utc_now().isoformat()
    tickets = [listing_from_raw(raw or {}, timestamp) for raw in raw_rows or []]
    LOGGER.info("Extracted %d ticket listings", len(tickets))
    return tickets
