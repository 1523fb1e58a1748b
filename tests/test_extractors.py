import asyncio

from seatwatch.extractors.venue import (
    extract_stadium,
    extract_stadium_with_retry,
    extract_tickets,
    listing_from_raw,
    section_from_raw,
)
from seatwatch.extractors.dom_utils import clean_text
from seatwatch.settings import ExtractionSettings
import seatwatch.selectors as selectors

from conftest import FakePage


class CountingPage(FakePage):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.body_waits = 0

    async def wait_for_selector(self, selector, timeout=None):
        if selector == "body":
            self.body_waits += 1
        return await super().wait_for_selector(selector, timeout=timeout)


def test_clean_text_handles_none_and_whitespace() -> None:
    assert clean_text(None) == ""
    assert clean_text("  Sec 101 \n") == "Sec 101"
    assert clean_text(42) == "42"


def test_listing_from_raw_fills_missing_fields() -> None:
    listing = listing_from_raw({"sectionRow": " Sec 101, Row 5 ", "price": None}, "2025-09-01T00:00:00+00:00")
    assert listing.section_row == "Sec 101, Row 5"
    assert listing.price == ""
    assert listing.type == ""
    assert listing.timestamp == "2025-09-01T00:00:00+00:00"


def test_section_from_raw_uses_none_for_blank_attributes() -> None:
    section = section_from_raw({"id": "", "name": " 101 ", "coordinates": None})
    assert section.id is None
    assert section.name == "101"
    assert section.coordinates is None


def test_extract_tickets_maps_rows() -> None:
    page = FakePage(
        tickets=[
            {"sectionRow": "Sec 101, Row 5", "price": "$150", "type": "Verified Resale Ticket"},
            {"sectionRow": "Sec 204, Row 9", "price": "$95", "type": None},
        ]
    )

    tickets = asyncio.run(extract_tickets(page))

    assert [ticket.section_row for ticket in tickets] == ["Sec 101, Row 5", "Sec 204, Row 9"]
    assert tickets[1].type == ""
    assert len({ticket.timestamp for ticket in tickets}) == 1


def test_extract_tickets_empty_page() -> None:
    assert asyncio.run(extract_tickets(FakePage())) == []


def test_extract_stadium_uses_first_matching_candidate() -> None:
    page = FakePage(
        venue_selector=selectors.VENUE_MAP_CANDIDATES[2],
        venue_markup="<div class='venue-map'></div>",
        sections=[{"id": "s101", "name": "101", "coordinates": "10,20"}],
    )

    layout = asyncio.run(extract_stadium(page, ExtractionSettings(selector_timeout_ms=1)))

    assert layout is not None
    assert layout.stadium_image == "<div class='venue-map'></div>"
    assert [section.id for section in layout.layout_data] == ["s101"]


def test_extract_stadium_without_map_returns_none() -> None:
    page = FakePage(venue_selector=None)
    assert asyncio.run(extract_stadium(page)) is None


def test_extract_stadium_retry_gives_up_after_attempts() -> None:
    page = CountingPage(venue_selector=None)
    settings = ExtractionSettings(stadium_attempts=3, stadium_retry_pause_ms=0)

    assert asyncio.run(extract_stadium_with_retry(page, settings)) is None
    assert page.body_waits == 3


def test_extract_stadium_retry_stops_on_success() -> None:
    page = CountingPage()
    settings = ExtractionSettings(stadium_attempts=3, stadium_retry_pause_ms=0)

    layout = asyncio.run(extract_stadium_with_retry(page, settings))

    assert layout is not None
    assert page.body_waits == 1
