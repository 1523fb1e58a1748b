"""Bot gate sequencer.

The event page alternates non-deterministically between a loading screen, a
checkbox challenge, a block page and a consent modal before it shows real
content. ``BotGateSequencer`` drives the page through those states with
mechanical remediation (click or reload) until it is ``READY`` or ``FAILED``.

States, legal transitions and attempt bounds live in module-level data so the
machine can be exercised against synthetic pages implementing ``GatePage``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from playwright.async_api import Error as PlaywrightError

import seatwatch.selectors as selectors
from seatwatch.diagnostics import DiagnosticsRecorder
from seatwatch.extractors.dom_utils import body_text_safe, human_wait, wait_for_text_gone
from seatwatch.logging_config import get_logger
from seatwatch.settings import GateSettings

LOGGER = get_logger(__name__)


class GateState(str, Enum):
    LOADING = "loading"
    CAPTCHA_CHALLENGE = "captcha_challenge"
    BLOCKED = "blocked"
    CONSENT_MODAL = "consent_modal"
    VALIDATING = "validating"
    RECOVER_RELOAD = "recover_reload"
    RECOVER_CAPTCHA = "recover_captcha"
    READY = "ready"
    FAILED = "failed"


TRANSITIONS: dict[GateState, frozenset[GateState]] = {
    GateState.LOADING: frozenset(
        {GateState.CAPTCHA_CHALLENGE, GateState.BLOCKED, GateState.CONSENT_MODAL, GateState.FAILED}
    ),
    GateState.CAPTCHA_CHALLENGE: frozenset({GateState.LOADING}),
    GateState.BLOCKED: frozenset({GateState.LOADING}),
    GateState.CONSENT_MODAL: frozenset({GateState.VALIDATING}),
    GateState.VALIDATING: frozenset(
        {GateState.READY, GateState.RECOVER_RELOAD, GateState.RECOVER_CAPTCHA, GateState.FAILED}
    ),
    GateState.RECOVER_RELOAD: frozenset({GateState.VALIDATING}),
    GateState.RECOVER_CAPTCHA: frozenset({GateState.VALIDATING}),
    GateState.READY: frozenset(),
    GateState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({GateState.READY, GateState.FAILED})

# Remediations tried, in order, when the page fails validation after consent.
RECOVERY_STEPS = (GateState.RECOVER_RELOAD, GateState.RECOVER_CAPTCHA)

REASON_ATTEMPTS_EXHAUSTED = "Bot check or block page not passed"
REASON_NOT_EVENT_PAGE = "Unable to reach real event page after all attempts"


class GatePage(Protocol):
    """The slice of page behaviour the sequencer needs."""

    @property
    def url(self) -> str: ...

    async def wait_until_loaded(self, timeout_ms: int) -> bool: ...

    async def has_captcha(self) -> bool: ...

    async def click_captcha(self) -> None: ...

    async def body_text(self) -> str: ...

    async def reload(self, timeout_ms: int) -> None: ...

    async def accept_consent(self, timeout_ms: int) -> bool: ...

    async def capture(self, name: str) -> None: ...


class PlaywrightGatePage:
    """``GatePage`` backed by a live Playwright page."""

    def __init__(self, page: Any, diagnostics: DiagnosticsRecorder | None = None) -> None:
        self._page = page
        self._diagnostics = diagnostics

    @property
    def url(self) -> str:
        return self._page.url

    async def wait_until_loaded(self, timeout_ms: int) -> bool:
        return await wait_for_text_gone(self._page, selectors.LOADING_TEXT, timeout_ms)

    async def has_captcha(self) -> bool:
        try:
            return await self._page.query_selector(selectors.CAPTCHA_CHECKBOX) is not None
        except PlaywrightError:
            return False

    async def click_captcha(self) -> None:
        try:
            await self._page.click(selectors.CAPTCHA_CHECKBOX, timeout=5000)
        except PlaywrightError as exc:
            LOGGER.warning("Challenge checkbox click failed: %s", exc)

    async def body_text(self) -> str:
        return await body_text_safe(self._page)

    async def reload(self, timeout_ms: int) -> None:
        try:
            await self._page.reload(wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightError as exc:
            LOGGER.warning("Reload failed: %s", exc)

    async def accept_consent(self, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selectors.CONSENT_ACCEPT, timeout=timeout_ms)
        except PlaywrightError:
            return False
        await self.capture("accept_and_continue_modal")
        try:
            await self._page.click(selectors.CONSENT_ACCEPT)
        except PlaywrightError as exc:
            LOGGER.warning("Consent click failed: %s", exc)
            return False
        return True

    async def capture(self, name: str) -> None:
        if self._diagnostics is not None:
            await self._diagnostics.capture(self._page, name)


@dataclass
class GateOutcome:
    state: GateState
    reason: str | None = None
    loading_attempts: int = 0
    history: list[GateState] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.state is GateState.READY


Pause = Callable[[int, int], Awaitable[None]]


class BotGateSequencer:
    """Runs the gate state machine for one page and one event identifier."""

    def __init__(
        self,
        page: GatePage,
        event_id: str,
        settings: GateSettings | None = None,
        *,
        pause: Pause = human_wait,
    ) -> None:
        self.page = page
        self.event_id = event_id
        self.settings = settings or GateSettings()
        self._pause = pause
        self.state = GateState.LOADING
        self.history: list[GateState] = [GateState.LOADING]
        self.loading_attempts = 0
        self.recoveries_used = 0
        self.reason: str | None = None
        self._handlers = {
            GateState.LOADING: self._on_loading,
            GateState.CAPTCHA_CHALLENGE: self._on_captcha,
            GateState.BLOCKED: self._on_blocked,
            GateState.CONSENT_MODAL: self._on_consent,
            GateState.VALIDATING: self._on_validating,
            GateState.RECOVER_RELOAD: self._on_recover_reload,
            GateState.RECOVER_CAPTCHA: self._on_recover_captcha,
        }

    async def run(self) -> GateOutcome:
        while self.state not in TERMINAL_STATES:
            next_state = await self._handlers[self.state]()
            self._transition(next_state)

        if self.state is GateState.FAILED:
            LOGGER.warning(
                "Bot gate failed for event %s after %d loading attempt(s): %s",
                self.event_id,
                self.loading_attempts,
                self.reason,
            )
            await self.page.capture("final_failed_status")
        else:
            LOGGER.info("Bot gate passed for event %s", self.event_id)

        return GateOutcome(
            state=self.state,
            reason=self.reason,
            loading_attempts=self.loading_attempts,
            history=list(self.history),
        )

    def _transition(self, next_state: GateState) -> None:
        if next_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal gate transition {self.state.value} -> {next_state.value}")
        LOGGER.debug("Gate %s: %s -> %s", self.event_id, self.state.value, next_state.value)
        self.state = next_state
        self.history.append(next_state)

    async def _human_pause(self) -> None:
        await self._pause(*self.settings.human_pause_ms)

    async def _remediation_pause(self) -> None:
        await self._pause(*self.settings.remediation_pause_ms)

    async def _wait_loaded(self) -> None:
        if not await self.page.wait_until_loaded(self.settings.loading_timeout_ms):
            LOGGER.warning(
                "Loading indicator still present after %sms (event %s)",
                self.settings.loading_timeout_ms,
                self.event_id,
            )

    async def _on_loading(self) -> GateState:
        if self.loading_attempts >= self.settings.max_attempts:
            self.reason = REASON_ATTEMPTS_EXHAUSTED
            return GateState.FAILED
        self.loading_attempts += 1
        attempt = self.loading_attempts
        LOGGER.info("Waiting for full page load (attempt %d)", attempt)
        await self._wait_loaded()
        await self._human_pause()
        await self.page.capture(f"after_full_load_attempt_{attempt}")

        if await self.page.has_captcha():
            return GateState.CAPTCHA_CHALLENGE
        if selectors.BLOCK_TEXT in await self.page.body_text():
            return GateState.BLOCKED
        return GateState.CONSENT_MODAL

    async def _on_captcha(self) -> GateState:
        LOGGER.info("Challenge checkbox detected; clicking")
        await self.page.click_captcha()
        await self._remediation_pause()
        await self.page.capture(f"after_bot_checkbox_click_attempt_{self.loading_attempts}")
        return GateState.LOADING

    async def _on_blocked(self) -> GateState:
        LOGGER.info("Block page detected; reloading")
        await self.page.reload(self.settings.reload_timeout_ms)
        await self._remediation_pause()
        await self.page.capture(f"after_block_reload_attempt_{self.loading_attempts}")
        return GateState.LOADING

    async def _on_consent(self) -> GateState:
        if await self.page.accept_consent(self.settings.consent_timeout_ms):
            LOGGER.info("Consent modal accepted")
        else:
            LOGGER.debug("No consent modal within %sms", self.settings.consent_timeout_ms)
        await self._wait_loaded()
        await self.page.capture("full_page_loaded_after_accept")
        return GateState.VALIDATING

    async def is_event_page(self) -> bool:
        """True when the URL still targets the event and no bot-check text shows."""

        if f"/event/{self.event_id}" not in (self.page.url or ""):
            return False
        return not selectors.BOT_VERIFICATION_PHRASES.search(await self.page.body_text())

    async def _on_validating(self) -> GateState:
        if await self.is_event_page():
            return GateState.READY
        if self.recoveries_used >= len(RECOVERY_STEPS):
            self.reason = REASON_NOT_EVENT_PAGE
            return GateState.FAILED
        step = RECOVERY_STEPS[self.recoveries_used]
        self.recoveries_used += 1
        LOGGER.warning("Not on the real event page; trying %s", step.value)
        return step

    async def _on_recover_reload(self) -> GateState:
        await self.page.capture("not_real_event_first_load")
        await self.page.reload(self.settings.reload_timeout_ms)
        await self._remediation_pause()
        return GateState.VALIDATING

    async def _on_recover_captcha(self) -> GateState:
        await self.page.capture("not_real_event_after_reload")
        if await self.page.has_captcha():
            LOGGER.info("Challenge checkbox present after reload; clicking")
            await self.page.click_captcha()
            await self._remediation_pause()
            await self._wait_loaded()
            await self.page.capture("full_page_loaded_after_bot_check")
        else:
            LOGGER.info("No challenge checkbox found")
        return GateState.VALIDATING
