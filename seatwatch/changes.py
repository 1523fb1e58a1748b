"""Change detection between two ticket listing snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from seatwatch.models import ChangeEvent, ChangeType, TicketListing, utc_now

CHANGE_LOG_LIMIT = 100

Listing = TicketListing | Mapping[str, Any]


def _fields(listing: Listing) -> tuple[str, Any]:
    if isinstance(listing, TicketListing):
        return listing.section_row, listing.price
    return listing.get("sectionRow"), listing.get("price")


def _lookup(snapshot: Iterable[Listing]) -> dict[str, Any]:
    """Map sectionRow -> price; a repeated key keeps its last price."""

    lookup: dict[str, Any] = {}
    for listing in snapshot:
        key, price = _fields(listing)
        lookup[key] = price
    return lookup


def diff(
    old: Sequence[Listing] | None,
    new: Sequence[Listing] | None,
    *,
    now: datetime | None = None,
) -> list[ChangeEvent]:
    """Return price changes, then new sections, in the new snapshot's order.

    Sections that disappeared are not reported. Neither input is modified.
    """

    if old is None or new is None:
        return []

    stamp = now or utc_now()
    old_lookup = _lookup(old)
    new_lookup = _lookup(new)

    changes: list[ChangeEvent] = []
    for key, price in new_lookup.items():
        if key in old_lookup and old_lookup[key] != price:
            changes.append(
                ChangeEvent(
                    type=ChangeType.PRICE_CHANGE,
                    details={"sectionRow": key, "oldPrice": old_lookup[key], "newPrice": price},
                    timestamp=stamp,
                )
            )
    for key, price in new_lookup.items():
        if key not in old_lookup:
            changes.append(
                ChangeEvent(
                    type=ChangeType.NEW_SECTION,
                    details={"sectionRow": key, "price": price},
                    timestamp=stamp,
                )
            )
    return changes


def snapshot_tickets(payload: Any) -> list[Any] | None:
    """Return the ``tickets`` array a network payload carries, if any."""

    if isinstance(payload, Mapping):
        tickets = payload.get("tickets")
        if isinstance(tickets, list):
            return tickets
    return None


def detect_changes(
    *,
    previous_network: Any,
    current_network: Any,
    previous_tickets: Sequence[Listing] | None,
    current_tickets: Sequence[Listing],
    now: datetime | None = None,
) -> list[ChangeEvent]:
    """Diff network ticket arrays when both carry one, else the DOM listings.

    *previous_tickets* is None when the endpoint has never been fetched; an
    empty list is a real earlier snapshot and every current key is new.
    """

    old_net = snapshot_tickets(previous_network)
    new_net = snapshot_tickets(current_network)
    if old_net is not None and new_net is not None:
        return diff(old_net, new_net, now=now)
    if previous_tickets is None:
        return []
    return diff(previous_tickets, current_tickets, now=now)


def append_changes(
    existing: Sequence[Mapping[str, Any]] | None,
    new: Iterable[ChangeEvent],
    limit: int = CHANGE_LOG_LIMIT,
) -> list[dict[str, Any]]:
    """Return a new change log with *new* appended, keeping the newest *limit*."""

    merged = [dict(entry) for entry in existing or []]
    merged.extend(change.to_dict() for change in new)
    if limit <= 0:
        return []
    return merged[-limit:]
