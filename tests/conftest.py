from __future__ import annotations

import asyncio
import os

os.environ.setdefault("SEATWATCH_LOG_TO_FILE", "0")

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

import seatwatch.selectors as selectors
from seatwatch.browser import BrowserHandle
from seatwatch.settings import (
    DiagnosticsSettings,
    ExtractionSettings,
    GateSettings,
    NavigationSettings,
    Settings,
)

EVENT_ID = "1E00625CD153457B"
EVENT_URL = (
    "https://www.ticketmaster.com/denver-broncos-vs-tennessee-titans-denver-colorado-09-07-2025"
    f"/event/{EVENT_ID}"
)


class FakeRequest:
    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type


class FakeResponse:
    def __init__(self, url: str, payload=None, *, resource_type: str = "xhr", invalid_json: bool = False) -> None:
        self.url = url
        self.request = FakeRequest(resource_type)
        self._payload = payload
        self._invalid_json = invalid_json

    async def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class FakePage:
    """Just enough of a Playwright page for the pipeline modules."""

    def __init__(
        self,
        *,
        body_text: str = "Event tickets",
        captcha: bool = False,
        consent: bool = False,
        venue_selector: str | None = selectors.VENUE_MAP_CANDIDATES[0],
        venue_markup: str = "<svg data-bdd='venue-map'></svg>",
        sections=(),
        tickets=(),
        responses=(),
        goto_failures: int = 0,
        final_url: str | None = None,
    ) -> None:
        self.url = "about:blank"
        self.body_text = body_text
        self.captcha = captcha
        self.consent = consent
        self.venue_selector = venue_selector
        self.venue_markup = venue_markup
        self.sections = list(sections)
        self.tickets = list(tickets)
        self.responses = list(responses)
        self.goto_failures = goto_failures
        self.final_url = final_url
        self.goto_calls = 0
        self.clicks: list[str] = []
        self.reloads = 0
        self.screenshots: list[str] = []
        self.listeners: dict[str, list] = {}
        self.removed_listeners = 0
        self.closed = False
        self._tasks: set[asyncio.Task] = set()

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls += 1
        if self.goto_calls <= self.goto_failures:
            raise PlaywrightError("net::ERR_TIMED_OUT")
        self.url = self.final_url or url

    async def wait_for_load_state(self, state, timeout=None):
        return None

    async def wait_for_function(self, expression, arg=None, timeout=None):
        return True

    async def query_selector(self, selector):
        if selector == selectors.CAPTCHA_CHECKBOX and self.captcha:
            return object()
        return None

    async def click(self, selector, timeout=None):
        self.clicks.append(selector)

    async def reload(self, wait_until=None, timeout=None):
        self.reloads += 1

    async def wait_for_selector(self, selector, timeout=None):
        if selector == "body":
            return object()
        if selector == selectors.CONSENT_ACCEPT and self.consent:
            return object()
        if self.venue_selector is not None and selector == self.venue_selector:
            return object()
        raise PlaywrightTimeoutError(f"Timeout waiting for {selector}")

    async def eval_on_selector(self, selector, expression):
        return self.venue_markup

    async def evaluate(self, expression, arg=None):
        if arg is None:
            return self.body_text
        return list(self.sections)

    async def eval_on_selector_all(self, selector, expression, arg=None):
        return list(self.tickets)

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)
        if event == "response":
            loop = asyncio.get_running_loop()
            for response in self.responses:
                task = loop.create_task(handler(response))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)
        self.removed_listeners += 1

    async def screenshot(self, path, full_page=False):
        self.screenshots.append(path)

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, page_factory) -> None:
        self._page_factory = page_factory
        self.pages: list = []
        self.closed = False

    async def new_page(self):
        page = self._page_factory()
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeLauncher:
    def __init__(self, page_factory) -> None:
        self.page_factory = page_factory
        self.launches = 0
        self.contexts: list[FakeContext] = []

    async def __call__(self, name, settings):
        self.launches += 1
        context = FakeContext(self.page_factory)
        self.contexts.append(context)
        return BrowserHandle(name=name, context=context)


async def no_pause(min_ms: int, max_ms: int) -> None:
    return None


def ticket_rows(*pairs):
    return [
        {"sectionRow": section, "price": price, "type": "Verified Resale Ticket"}
        for section, price in pairs
    ]


@pytest.fixture()
def fast_settings(tmp_path) -> Settings:
    return Settings(
        navigation=NavigationSettings(backoff_ms=0, settle_timeout_ms=0),
        gate=GateSettings(human_pause_ms=(0, 0), remediation_pause_ms=(0, 0)),
        extraction=ExtractionSettings(stadium_retry_pause_ms=0),
        diagnostics=DiagnosticsSettings(directory=str(tmp_path / "diagnostics")),
        network_timeout_ms=50,
        deadline_seconds=5,
    )
