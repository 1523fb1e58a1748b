"""Capture the first JSON payload the page fetches for an event."""

from __future__ import annotations

import asyncio
from typing import Any

from playwright.async_api import Error as PlaywrightError

import seatwatch.selectors as selectors
from seatwatch.logging_config import get_logger

LOGGER = get_logger(__name__)


def _resource_type(response: Any) -> str | None:
    try:
        return response.request.resource_type
    except PlaywrightError:
        return None


async def capture_network_payload(page: Any, event_id: str, timeout_ms: int = 10000) -> Any | None:
    """Resolve the first JSON body from an async data request mentioning *event_id*.

    Returns ``None`` when nothing matches within *timeout_ms*. The response
    listener is removed exactly once whichever way the wait ends.
    """

    loop = asyncio.get_running_loop()
    found: asyncio.Future[Any] = loop.create_future()

    async def _on_response(response: Any) -> None:
        if found.done():
            return
        if event_id not in response.url:
            return
        if _resource_type(response) not in selectors.ASYNC_RESOURCE_TYPES:
            return
        try:
            payload = await response.json()
        except (PlaywrightError, ValueError):
            return
        if isinstance(payload, (dict, list)) and not found.done():
            LOGGER.info("Network payload captured from %s", response.url)
            found.set_result(payload)

    page.on("response", _on_response)
    try:
        return await asyncio.wait_for(found, timeout=max(timeout_ms, 0) / 1000)
    except asyncio.TimeoutError:
        LOGGER.info("Network payload capture for %s timed out after %sms", event_id, timeout_ms)
        return None
    finally:
        page.remove_listener("response", _on_response)
