"""Repository helpers for monitored endpoint records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from seatwatch.changes import CHANGE_LOG_LIMIT, append_changes, detect_changes
from seatwatch.models import ChangeEvent, FetchResult, FetchStatus, utc_now

from .models_sql import MonitoredEndpoint


def upsert_endpoint(session: Session, url: str, event_id: str) -> tuple[MonitoredEndpoint, bool]:
    """Return the endpoint for *url*, creating it on first sight."""

    endpoint = session.scalars(select(MonitoredEndpoint).where(MonitoredEndpoint.url == url)).first()
    if endpoint is not None:
        return endpoint, False

    endpoint = MonitoredEndpoint(
        url=url,
        event_id=event_id,
        last_checked=utc_now(),
        tickets=[],
        changes=[],
        fetch_count=0,
    )
    session.add(endpoint)
    session.flush()
    return endpoint, True


def list_endpoints(session: Session) -> list[MonitoredEndpoint]:
    stmt = select(MonitoredEndpoint).order_by(MonitoredEndpoint.last_checked.desc(), MonitoredEndpoint.id)
    return list(session.scalars(stmt))


def get_endpoint(session: Session, endpoint_id: int) -> MonitoredEndpoint | None:
    return session.get(MonitoredEndpoint, endpoint_id)


def apply_fetch_result(
    session: Session,
    endpoint: MonitoredEndpoint,
    result: FetchResult,
    *,
    now: datetime | None = None,
    change_limit: int = CHANGE_LOG_LIMIT,
) -> list[ChangeEvent]:
    """Fold one fetch result into *endpoint* and return the changes it produced.

    Failed results only refresh ``last_checked``. Empty results keep the
    stored listings so the next populated fetch diffs against them; OK
    results overwrite them. Both merge stadium data, extend the capped
    change log and bump the fetch metadata.
    """

    now = now or utc_now()
    endpoint.last_checked = now
    if result.status is FetchStatus.FAILED:
        session.flush()
        return []

    current_tickets = [ticket.to_dict() for ticket in result.tickets]
    changes = detect_changes(
        previous_network=endpoint.last_network_snapshot,
        current_network=result.network_data,
        previous_tickets=endpoint.tickets if endpoint.last_successful_fetch is not None else None,
        current_tickets=current_tickets,
        now=now,
    )

    if result.status is FetchStatus.OK:
        endpoint.tickets = current_tickets
    if result.stadium_data is not None:
        endpoint.stadium = {
            **(endpoint.stadium or {}),
            **result.stadium_data.to_dict(),
            "lastUpdated": now.isoformat(),
        }
    if changes:
        endpoint.changes = append_changes(endpoint.changes, changes, change_limit)
    if result.network_data is not None:
        endpoint.last_network_snapshot = result.network_data

    endpoint.last_successful_fetch = now
    endpoint.fetch_count = (endpoint.fetch_count or 0) + 1
    session.flush()
    return changes
