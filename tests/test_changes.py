from copy import deepcopy
from datetime import datetime, timezone

from seatwatch.changes import CHANGE_LOG_LIMIT, append_changes, detect_changes, diff, snapshot_tickets
from seatwatch.models import ChangeEvent, ChangeType, TicketListing

from conftest import ticket_rows

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


def test_diff_reports_price_change_then_new_section() -> None:
    old = ticket_rows(("Sec 101, Row 5", "$150"), ("Sec 102, Row 1", "$90"))
    new = ticket_rows(("Sec 101, Row 5", "$175"), ("Sec 103, Row 2", "$200"), ("Sec 102, Row 1", "$90"))

    changes = diff(old, new, now=NOW)

    assert [change.type for change in changes] == [ChangeType.PRICE_CHANGE, ChangeType.NEW_SECTION]
    assert changes[0].details == {"sectionRow": "Sec 101, Row 5", "oldPrice": "$150", "newPrice": "$175"}
    assert changes[1].details == {"sectionRow": "Sec 103, Row 2", "price": "$200"}
    assert all(change.timestamp == NOW for change in changes)


def test_diff_does_not_mutate_inputs() -> None:
    old = ticket_rows(("A", "$1"))
    new = ticket_rows(("A", "$2"), ("B", "$3"))
    old_copy, new_copy = deepcopy(old), deepcopy(new)

    diff(old, new, now=NOW)

    assert old == old_copy
    assert new == new_copy


def test_diff_without_previous_snapshot_is_empty() -> None:
    assert diff(None, ticket_rows(("A", "$1"))) == []
    assert diff(ticket_rows(("A", "$1")), None) == []


def test_diff_ignores_removed_sections() -> None:
    old = ticket_rows(("A", "$1"), ("B", "$2"))
    new = ticket_rows(("A", "$1"))
    assert diff(old, new, now=NOW) == []


def test_diff_repeated_key_uses_last_price() -> None:
    old = ticket_rows(("A", "$10"), ("A", "$20"))
    new = ticket_rows(("A", "$20"))
    assert diff(old, new, now=NOW) == []

    changes = diff(ticket_rows(("A", "$20")), ticket_rows(("A", "$30"), ("A", "$20")), now=NOW)
    assert changes == []


def test_diff_accepts_listing_objects() -> None:
    old = [TicketListing(section_row="A", price="$1")]
    new = [TicketListing(section_row="A", price="$5")]
    (change,) = diff(old, new, now=NOW)
    assert change.type is ChangeType.PRICE_CHANGE
    assert change.to_dict() == {
        "timestamp": NOW.isoformat(),
        "type": "PRICE_CHANGE",
        "details": {"sectionRow": "A", "oldPrice": "$1", "newPrice": "$5"},
    }


def test_snapshot_tickets_requires_ticket_list() -> None:
    assert snapshot_tickets({"tickets": [{"sectionRow": "A"}]}) == [{"sectionRow": "A"}]
    assert snapshot_tickets({"tickets": "nope"}) is None
    assert snapshot_tickets([1, 2, 3]) is None
    assert snapshot_tickets(None) is None


def test_detect_changes_prefers_network_ticket_arrays() -> None:
    changes = detect_changes(
        previous_network={"tickets": ticket_rows(("A", "$1"))},
        current_network={"tickets": ticket_rows(("A", "$2"))},
        previous_tickets=ticket_rows(("Z", "$9")),
        current_tickets=ticket_rows(("Z", "$9")),
        now=NOW,
    )
    assert [change.details["sectionRow"] for change in changes] == ["A"]


def test_detect_changes_falls_back_to_dom_listings() -> None:
    changes = detect_changes(
        previous_network={"offers": []},
        current_network=None,
        previous_tickets=ticket_rows(("Z", "$9")),
        current_tickets=ticket_rows(("Z", "$11"), ("Y", "$4")),
        now=NOW,
    )
    assert [change.type for change in changes] == [ChangeType.PRICE_CHANGE, ChangeType.NEW_SECTION]


def test_detect_changes_first_fetch_reports_nothing() -> None:
    changes = detect_changes(
        previous_network=None,
        current_network={"tickets": ticket_rows(("A", "$1"))},
        previous_tickets=None,
        current_tickets=ticket_rows(("A", "$1")),
        now=NOW,
    )
    assert changes == []


def test_detect_changes_empty_previous_snapshot_reports_new_sections() -> None:
    changes = detect_changes(
        previous_network=None,
        current_network=None,
        previous_tickets=[],
        current_tickets=ticket_rows(("A", "$1")),
        now=NOW,
    )
    assert [(change.type, change.details["sectionRow"]) for change in changes] == [(ChangeType.NEW_SECTION, "A")]


def test_append_changes_keeps_newest_entries() -> None:
    existing = [{"type": "NEW_SECTION", "details": {"sectionRow": str(i)}} for i in range(CHANGE_LOG_LIMIT)]
    new = [ChangeEvent(type=ChangeType.NEW_SECTION, details={"sectionRow": "fresh"}, timestamp=NOW)]

    merged = append_changes(existing, new)

    assert len(merged) == CHANGE_LOG_LIMIT
    assert merged[0]["details"]["sectionRow"] == "1"
    assert merged[-1]["details"]["sectionRow"] == "fresh"
    assert len(existing) == CHANGE_LOG_LIMIT


def test_diff_end_to_end_scenario() -> None:
    old = [{"sectionRow": "Sec 101 Row A", "price": "$50"}]
    new = [
        {"sectionRow": "Sec 101 Row A", "price": "$60"},
        {"sectionRow": "Sec 102 Row B", "price": "$40"},
    ]

    changes = diff(old, new, now=NOW)

    assert [(change.type, change.details) for change in changes] == [
        (ChangeType.PRICE_CHANGE, {"sectionRow": "Sec 101 Row A", "oldPrice": "$50", "newPrice": "$60"}),
        (ChangeType.NEW_SECTION, {"sectionRow": "Sec 102 Row B", "price": "$40"}),
    ]
