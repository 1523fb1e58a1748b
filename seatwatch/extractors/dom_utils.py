"""Helper utilities for safely interacting with event page DOM content."""

from __future__ import annotations

import asyncio
import random
from typing import Any

from playwright.async_api import Error as PlaywrightError

from seatwatch.playwright_env import apply_wait_policy

BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"


async def human_wait(
    min_ms: int = 350,
    max_ms: int = 900,
    *,
    obey_policy: bool = True,
) -> None:
    """Sleep for a random, human-like interval between the provided bounds."""

    if min_ms < 0:
        min_ms = 0
    if max_ms < min_ms:
        max_ms = min_ms

    if obey_policy:
        min_ms, max_ms = apply_wait_policy(min_ms, max_ms)

    delay = random.uniform(min_ms / 1000, max_ms / 1000)
    await asyncio.sleep(delay)


async def body_text_safe(page: Any) -> str:
    """Return the page's visible text, or an empty string when unavailable."""

    try:
        text = await page.evaluate(BODY_TEXT_JS)
    except PlaywrightError:
        return ""
    return text or ""


async def wait_for_text_gone(page: Any, text: str, timeout_ms: int) -> bool:
    """Wait until *text* no longer appears in the body; False on timeout."""

    try:
        await page.wait_for_function(
            "(needle) => !(document.body && document.body.innerText.includes(needle))",
            arg=text,
            timeout=timeout_ms,
        )
    except PlaywrightError:
        return False
    return True


def clean_text(value: Any) -> str:
    """Collapse ``None`` to an empty string and trim surrounding whitespace."""

    if value is None:
        return ""
    return str(value).strip()
