"""Scheduled polling of every monitored endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.orm import Session, sessionmaker

from seatwatch.alerts.notifier import Notifier
from seatwatch.changes import CHANGE_LOG_LIMIT
from seatwatch.health import HealthMonitor
from seatwatch.logging_config import get_logger
from seatwatch.models import ChangeEvent, FetchResult, FetchStatus
from seatwatch.pipeline import TicketPipeline
from seatwatch.storage import repo
from seatwatch.storage.models_sql import MonitoredEndpoint

LOGGER = get_logger(__name__)

POLL_JOB_ID = "poll-tickets"


@dataclass
class PollSummary:
    processed: int = 0
    updated: int = 0
    empty: int = 0
    blocked: int = 0
    failed: int = 0
    changes: int = 0


class TicketPoller:
    """Runs fetch cycles for every stored endpoint, one endpoint at a time.

    A tick that arrives while a poll is still running is dropped, not queued.
    """

    def __init__(
        self,
        pipeline: TicketPipeline,
        session_factory: sessionmaker[Session],
        *,
        notifier: Notifier | None = None,
        health: HealthMonitor | None = None,
        change_limit: int = CHANGE_LOG_LIMIT,
    ) -> None:
        self.pipeline = pipeline
        self.session_factory = session_factory
        self.notifier = notifier
        self.health = health
        self.change_limit = change_limit
        self._in_progress = False
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def update_endpoint(
        self,
        session: Session,
        endpoint: MonitoredEndpoint,
    ) -> tuple[FetchResult, list[ChangeEvent]]:
        """Fetch one endpoint, fold the result into its record and commit.

        Updates for the same event run one at a time, each starting from the
        last committed record. Alerts go out only once the commit succeeds.
        Errors propagate with the session left for the caller to roll back.
        """

        async with self._lock(endpoint.event_id):
            session.refresh(endpoint)
            result = await self.pipeline.fetch(endpoint.url)
            changes = repo.apply_fetch_result(session, endpoint, result, change_limit=self.change_limit)
            session.commit()

        self._record_health(endpoint.event_id, result)
        if changes and self.notifier is not None:
            await asyncio.to_thread(self.notifier.notify_changes, endpoint.url, endpoint.event_id, changes)
        return result, changes

    def _lock(self, event_id: str) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        return lock

    async def poll_once(self) -> PollSummary | None:
        if self._in_progress:
            LOGGER.debug("Previous poll still running; skipping tick")
            return None

        self._in_progress = True
        summary = PollSummary()
        try:
            with self.session_factory() as session:
                for endpoint in repo.list_endpoints(session):
                    summary.processed += 1
                    url = endpoint.url
                    event_id = endpoint.event_id
                    try:
                        result, changes = await self.update_endpoint(session, endpoint)
                    except Exception as exc:
                        session.rollback()
                        summary.failed += 1
                        LOGGER.error("Failed to update %s: %s", url, exc)
                        if self.health is not None:
                            self.health.record_error(event_id=event_id, reason=str(exc))
                        continue

                    summary.changes += len(changes)
                    if result.status is FetchStatus.OK:
                        summary.updated += 1
                    elif result.status is FetchStatus.EMPTY:
                        summary.empty += 1
                    else:
                        summary.blocked += 1
                    LOGGER.info("Updated tickets for %s (%s, %d change(s))", url, result.status.value, len(changes))
        finally:
            self._in_progress = False

        LOGGER.info(
            "Poll complete | processed=%d updated=%d empty=%d blocked=%d failed=%d changes=%d",
            summary.processed,
            summary.updated,
            summary.empty,
            summary.blocked,
            summary.failed,
            summary.changes,
        )
        return summary

    def _record_health(self, event_id: str, result: FetchResult) -> None:
        if self.health is None:
            return
        if result.status is FetchStatus.OK:
            self.health.record_tickets(event_id=event_id, count=len(result.tickets))
        elif result.status is FetchStatus.EMPTY:
            self.health.record_empty(event_id=event_id)
        else:
            self.health.record_gate_failure(event_id=event_id, reason=result.reason)

    def schedule(self, scheduler: AsyncIOScheduler, interval_ms: int) -> Any:
        """Register ``poll_once`` as an interval job that never overlaps itself."""

        seconds = max(interval_ms, 1) / 1000
        job = scheduler.add_job(
            self.poll_once,
            "interval",
            seconds=seconds,
            id=POLL_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        LOGGER.info("Polling scheduled every %sms", interval_ms)
        return job
