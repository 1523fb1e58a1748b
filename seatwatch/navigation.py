"""Navigation controller: load the event page with bounded retries."""

from __future__ import annotations

from typing import Any

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from seatwatch.browser import BrowserHandle, close_other_pages
from seatwatch.diagnostics import DiagnosticsRecorder
from seatwatch.errors import NavigationError
from seatwatch.logging_config import get_logger
from seatwatch.settings import NavigationSettings

LOGGER = get_logger(__name__)


async def _settle(page: Any, timeout_ms: int) -> None:
    """Give slow assets a chance to finish, bounded by *timeout_ms*."""

    if timeout_ms <= 0:
        return
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightError:
        LOGGER.debug("Network did not go idle within %sms; continuing", timeout_ms)


async def navigate(
    page: Any,
    url: str,
    *,
    settings: NavigationSettings | None = None,
    diagnostics: DiagnosticsRecorder | None = None,
    handle: BrowserHandle | None = None,
    event_id: str | None = None,
) -> None:
    """Open *url* on *page*, raising NavigationError once attempts are exhausted."""

    settings = settings or NavigationSettings()
    attempts = max(settings.attempts, 1)

    async def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        LOGGER.warning(
            "Navigation attempt %s/%s failed: %s",
            state.attempt_number,
            attempts,
            exc,
        )
        if diagnostics is not None:
            await diagnostics.capture(page, f"navigation_failed_attempt_{state.attempt_number}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(settings.backoff_ms / 1000),
        retry=retry_if_exception_type(PlaywrightError),
        before_sleep=_before_sleep,
    )

    try:
        async for attempt in retrying:
            with attempt:
                await page.goto(url, wait_until="domcontentloaded", timeout=settings.goto_timeout_ms)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        LOGGER.error("All %s navigation attempts failed for %s", attempts, url)
        if diagnostics is not None:
            await diagnostics.capture(page, f"navigation_failed_attempt_{attempts}")
        raise NavigationError(str(last), url=url, event_id=event_id) from last

    LOGGER.info("Event page opened: %s", url)
    if handle is not None:
        closed = await close_other_pages(handle, page)
        if closed:
            LOGGER.debug("Closed %d extraneous page(s)", closed)
    await _settle(page, settings.settle_timeout_ms)
