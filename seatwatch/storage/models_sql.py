"""SQLAlchemy ORM models for monitored endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from seatwatch.models import utc_now


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""


class MonitoredEndpoint(Base):
    """An event page under watch plus the latest state seen for it."""

    __tablename__ = "monitored_endpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    event_id: Mapped[str] = mapped_column(String, nullable=False)
    last_checked: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    tickets: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    stadium: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    last_network_snapshot: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    last_successful_fetch: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fetch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_endpoints_event_id", "event_id"),
        Index("ix_endpoints_last_checked", "last_checked"),
    )

    def to_dict(self) -> dict[str, Any]:
        def _ts(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "url": self.url,
            "eventId": self.event_id,
            "lastChecked": _ts(self.last_checked),
            "tickets": list(self.tickets or []),
            "stadium": self.stadium,
            "changes": list(self.changes or []),
            "metadata": {
                "lastNetworkSnapshot": self.last_network_snapshot,
                "lastSuccessfulFetch": _ts(self.last_successful_fetch),
                "fetchCount": self.fetch_count or 0,
            },
        }
