"""Fetch pipeline: page -> navigation -> bot gate -> extraction -> cache -> publish."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Error as PlaywrightError

import seatwatch.selectors as selectors
from seatwatch.broadcaster import EventBroadcaster
from seatwatch.browser import SessionManager
from seatwatch.cache import SnapshotCache
from seatwatch.diagnostics import DiagnosticsRecorder
from seatwatch.errors import FetchTimeoutError, InvalidUrlError
from seatwatch.extractors.dom_utils import human_wait
from seatwatch.extractors.venue import extract_stadium_with_retry, extract_tickets
from seatwatch.gate import BotGateSequencer, Pause, PlaywrightGatePage
from seatwatch.logging_config import get_logger
from seatwatch.models import FetchResult, FetchStatus, StadiumLayout, TicketListing
from seatwatch.navigation import navigate
from seatwatch.network_capture import capture_network_payload
from seatwatch.settings import Settings

LOGGER = get_logger(__name__)

UPDATE_EVENT = "ticketUpdate"


def extract_event_id(url: str) -> str:
    """Return the alphanumeric identifier following ``/event/`` in *url*."""

    match = selectors.EVENT_ID_PATTERN.search(url or "")
    if match is None:
        raise InvalidUrlError(url=url)
    return match.group(1)


@dataclass
class PipelineContext:
    """Owns the resources shared by every fetch cycle in the process."""

    settings: Settings = field(default_factory=Settings)
    sessions: SessionManager | None = None
    cache: SnapshotCache[FetchResult] | None = None
    broadcaster: EventBroadcaster = field(default_factory=EventBroadcaster)
    diagnostics: DiagnosticsRecorder | None = None

    def __post_init__(self) -> None:
        if self.sessions is None:
            self.sessions = SessionManager(self.settings.browser)
        if self.cache is None:
            self.cache = SnapshotCache(self.settings.cache_ttl_ms)
        if self.diagnostics is None:
            self.diagnostics = DiagnosticsRecorder(self.settings.diagnostics)

    async def close(self) -> None:
        LOGGER.info("Starting cleanup")
        await self.sessions.cleanup()
        self.cache.clear()
        LOGGER.info("Cleanup completed")

    async def __aenter__(self) -> "PipelineContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class TicketPipeline:
    """Runs fetch cycles against a ``PipelineContext``."""

    def __init__(self, context: PipelineContext, *, pause: Pause = human_wait) -> None:
        self.context = context
        self.settings = context.settings
        self._pause = pause

    async def fetch(self, url: str) -> FetchResult:
        """Fetch *url*, serving a fresh cached result when one exists.

        Raises ``InvalidUrlError`` before any browser work, ``NavigationError``
        when the page never loads and ``FetchTimeoutError`` when the whole
        cycle overruns its deadline. Gate failures come back as results.
        """

        event_id = extract_event_id(url)
        cache = self.context.cache

        cached = cache.get(event_id)
        if cached is not None:
            LOGGER.info("Using cached data for event %s", event_id)
            return cached

        async with cache.lock(event_id):
            cached = cache.get(event_id)
            if cached is not None:
                LOGGER.info("Using cached data for event %s", event_id)
                return cached

            LOGGER.info("Starting ticket fetch for event %s (%s)", event_id, url)
            try:
                result = await asyncio.wait_for(
                    self._run(url, event_id),
                    timeout=self.settings.deadline_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise FetchTimeoutError(url=url, event_id=event_id) from exc

            if result.status is not FetchStatus.FAILED:
                cache.put(event_id, result)

        if result.ok:
            self.context.diagnostics.dump_result(result)
            self.context.broadcaster.publish(event_id, {"event": UPDATE_EVENT, "data": result.to_dict()})
        LOGGER.info(
            "Fetch for event %s finished: status=%s tickets=%d stadium=%s network=%s",
            event_id,
            result.status.value,
            len(result.tickets),
            "yes" if result.stadium_data else "no",
            "yes" if result.network_data is not None else "no",
        )
        return result

    async def _run(self, url: str, event_id: str) -> FetchResult:
        handle = await self.context.sessions.acquire()
        page = await handle.new_page()
        diagnostics = self.context.diagnostics
        try:
            await navigate(
                page,
                url,
                settings=self.settings.navigation,
                diagnostics=diagnostics,
                handle=handle,
                event_id=event_id,
            )

            outcome = await BotGateSequencer(
                PlaywrightGatePage(page, diagnostics),
                event_id,
                self.settings.gate,
                pause=self._pause,
            ).run()
            if not outcome.passed:
                return FetchResult.failed(event_id, outcome.reason or "bot gate not passed")

            (stadium, tickets), network = await asyncio.gather(
                self._extract(page),
                capture_network_payload(page, event_id, self.settings.network_timeout_ms),
            )
            return self._assemble(event_id, stadium, tickets, network)
        finally:
            if not self.settings.browser.keep_pages_open:
                try:
                    await page.close()
                except PlaywrightError as exc:
                    LOGGER.warning("Failed to close page: %s", exc)

    async def _extract(self, page: Any) -> tuple[StadiumLayout | None, list[TicketListing]]:
        stadium = await extract_stadium_with_retry(page, self.settings.extraction)
        tickets = await extract_tickets(page)
        return stadium, tickets

    @staticmethod
    def _assemble(
        event_id: str,
        stadium: StadiumLayout | None,
        tickets: list[TicketListing],
        network: Any,
    ) -> FetchResult:
        if not tickets:
            LOGGER.info("No ticket listings found for event %s", event_id)
            return FetchResult(
                event_id=event_id,
                status=FetchStatus.EMPTY,
                stadium_data=stadium,
                network_data=network,
                reason="No ticket listings found",
            )
        return FetchResult(
            event_id=event_id,
            status=FetchStatus.OK,
            tickets=tuple(tickets),
            stadium_data=stadium,
            network_data=network,
        )
