"""In-memory data model for one fetch cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class FetchStatus(str, Enum):
    """Outcome of a fetch cycle."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


class ChangeType(str, Enum):
    PRICE_CHANGE = "PRICE_CHANGE"
    NEW_SECTION = "NEW_SECTION"
    # Reserved: the diff never emits it.
    AVAILABILITY_CHANGE = "AVAILABILITY_CHANGE"


@dataclass(frozen=True)
class TicketListing:
    """A single listing row; ``section_row`` is the diff key."""

    section_row: str
    price: str
    type: str = ""
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TicketListing":
        return cls(
            section_row=str(data.get("sectionRow") or ""),
            price=str(data.get("price") or ""),
            type=str(data.get("type") or ""),
            timestamp=str(data.get("timestamp") or ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "sectionRow": self.section_row,
            "price": self.price,
            "type": self.type,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SectionLayout:
    id: str | None
    name: str
    coordinates: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "coordinates": self.coordinates}


@dataclass(frozen=True)
class StadiumLayout:
    """Venue map markup plus the section metadata harvested next to it."""

    stadium_image: str | None
    layout_data: tuple[SectionLayout, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "stadiumImage": self.stadium_image,
            "layoutData": [section.to_dict() for section in self.layout_data],
        }


@dataclass(frozen=True)
class ChangeEvent:
    type: ChangeType
    details: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "type": self.type.value,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class FetchResult:
    """Unified result of one fetch cycle.

    ``status`` separates "no inventory yet" (``empty``) from "blocked"
    (``failed`` with ``bot_check`` set). Only ``ok`` results are published.
    """

    event_id: str
    status: FetchStatus
    tickets: tuple[TicketListing, ...] = ()
    stadium_data: StadiumLayout | None = None
    network_data: Any = None
    timestamp: datetime = field(default_factory=utc_now)
    bot_check: bool = False
    reason: str | None = None

    @classmethod
    def failed(cls, event_id: str, reason: str, *, bot_check: bool = True) -> "FetchResult":
        return cls(event_id=event_id, status=FetchStatus.FAILED, bot_check=bot_check, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "status": self.status.value,
            "tickets": [ticket.to_dict() for ticket in self.tickets],
            "stadiumData": self.stadium_data.to_dict() if self.stadium_data else None,
            "networkData": self.network_data,
            "timestamp": _iso(self.timestamp),
            "botCheck": self.bot_check,
            "reason": self.reason,
        }
