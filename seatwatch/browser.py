"""Session manager owning the shared, lazily launched browser process."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from seatwatch.logging_config import get_logger
from seatwatch.playwright_env import apply_stealth, launch_persistent
from seatwatch.settings import BrowserSettings

LOGGER = get_logger(__name__)


@dataclass
class BrowserHandle:
    """A launched persistent browser context, addressed by logical name."""

    name: str
    context: BrowserContext
    playwright: Playwright | None = None

    async def new_page(self) -> Page:
        return await self.context.new_page()

    @property
    def pages(self) -> list[Page]:
        return list(self.context.pages)

    async def close(self) -> None:
        try:
            await self.context.close()
        except PlaywrightError as exc:
            LOGGER.warning("Failed to close browser %s: %s", self.name, exc)
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except PlaywrightError as exc:
                LOGGER.warning("Failed to stop Playwright for %s: %s", self.name, exc)


async def launch_handle(name: str, settings: BrowserSettings) -> BrowserHandle:
    """Start Playwright and open the persistent profile; errors propagate."""

    playwright = await async_playwright().start()
    try:
        apply_stealth(playwright)
        context = await launch_persistent(playwright, settings)
    except Exception:
        await playwright.stop()
        raise
    return BrowserHandle(name=name, context=context, playwright=playwright)


class SessionManager:
    """Caches one browser handle per logical name for the process lifetime."""

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        *,
        launcher: Callable[[str, BrowserSettings], Awaitable[BrowserHandle]] = launch_handle,
    ) -> None:
        self.settings = settings or BrowserSettings()
        self._launcher = launcher
        self._handles: dict[str, BrowserHandle] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, name: str | None = None) -> BrowserHandle:
        key = name or self.settings.session_name
        handle = self._handles.get(key)
        if handle is not None:
            LOGGER.debug("Using existing browser instance %s", key)
            return handle

        async with self._lock:
            handle = self._handles.get(key)
            if handle is None:
                LOGGER.info("Launching new browser instance %s", key)
                handle = await self._launcher(key, self.settings)
                self._handles[key] = handle
                LOGGER.info("Browser %s launched", key)
        return handle

    async def cleanup(self) -> None:
        """Close every cached browser handle."""

        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            LOGGER.info("Closing browser instance %s", handle.name)
            await handle.close()


async def close_other_pages(handle: BrowserHandle, keep: Any) -> int:
    """Close every page in *handle* except *keep*; return how many were closed."""

    closed = 0
    for page in handle.pages:
        if page is keep:
            continue
        try:
            await page.close()
            closed += 1
        except PlaywrightError as exc:
            LOGGER.debug("Failed to close extraneous page: %s", exc)
    return closed
