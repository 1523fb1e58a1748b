"""Centralised helpers for Playwright launch + anti-bot configuration."""

from __future__ import annotations

import os
import shlex
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from playwright.async_api import BrowserContext, Playwright
from playwright_stealth import Stealth

from seatwatch.logging_config import get_logger
from seatwatch.settings import BrowserSettings

LOGGER = get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CHROMIUM_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-extensions",
    "--disable-gpu",
    "--disable-gpu-sandbox",
    "--disable-dev-shm-usage",
    "--disable-web-security",
    "--disable-site-isolation-trials",
    "--disable-webgl",
    "--disable-blink-features=AutomationControlled",
    "--disable-webrtc",
    "--force-webrtc-ip-handling-policy=disable_non_proxied_udp",
    "--disable-features=IsolateOrigins,site-per-process,WebRtcHideLocalIpsWithMdns,"
    "WebRtcAllowLegacyTLSProtocols,WebRtcAllowMultipleRoutes,WebRtcAllowLoopbackPeerConnections",
)


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@lru_cache(maxsize=1)
def headless_enabled() -> bool:
    """Return True if Playwright should run in headless mode."""

    return _as_bool(os.getenv("SEATWATCH_HEADLESS"), True)


def stealth_enabled() -> bool:
    """Return True when stealth evasion scripts should be applied."""

    return _as_bool(os.getenv("SEATWATCH_STEALTH"), True)


def resolve_user_agent() -> str:
    value = (os.getenv("USER_AGENT") or "").strip()
    return value or DEFAULT_USER_AGENT


@lru_cache(maxsize=1)
def _stealth_instance() -> Stealth | None:
    if not stealth_enabled():
        return None
    return Stealth(
        navigator_languages_override=("en-US", "en"),
        navigator_platform_override=os.getenv("SEATWATCH_PLATFORM", "Win32"),
        navigator_user_agent_override=resolve_user_agent(),
    )


def apply_stealth(playwright: Playwright) -> None:
    """Hook *playwright* with stealth evasions unless ``SEATWATCH_STEALTH`` is off."""

    instance = _stealth_instance()
    if instance is None:
        LOGGER.info("Stealth evasions disabled")
        return
    try:
        instance.hook_playwright_context(playwright)
    except (AttributeError, TypeError) as exc:
        LOGGER.warning("Stealth hook failed; continuing without evasions: %s", exc)


def user_data_dir(settings: BrowserSettings) -> Path:
    """Profile directory reused across launches; env override wins."""

    raw = os.getenv("SEATWATCH_USER_DATA_DIR") or settings.profile_dir
    path = Path(raw).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _proxy_config() -> dict[str, str] | None:
    raw = os.getenv("SEATWATCH_PROXY")
    if not raw:
        return None
    parsed = urlparse(raw)
    if not parsed.scheme:
        return {"server": f"http://{raw}"}
    return {"server": raw}


def launch_kwargs(settings: BrowserSettings) -> dict[str, Any]:
    """Return kwargs passed to chromium.launch_persistent_context."""

    args = list(CHROMIUM_ARGS)
    args.append(f"--window-size={settings.window_width},{settings.window_height}")
    extra_args = os.getenv("SEATWATCH_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(),
        "args": args,
        "user_agent": resolve_user_agent(),
        "viewport": {"width": settings.viewport_width, "height": settings.viewport_height},
    }

    channel = os.getenv("SEATWATCH_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    proxy = _proxy_config()
    if proxy:
        kwargs["proxy"] = proxy

    slow_mo = _env_int("SEATWATCH_SLOW_MO_MS", 0)
    if slow_mo > 0:
        kwargs["slow_mo"] = slow_mo

    return kwargs


async def launch_persistent(playwright: Playwright, settings: BrowserSettings) -> BrowserContext:
    """Launch Chromium against the persistent profile directory."""

    return await playwright.chromium.launch_persistent_context(
        str(user_data_dir(settings)),
        **launch_kwargs(settings),
    )


def apply_wait_policy(min_ms: int, max_ms: int) -> tuple[int, int]:
    """Apply global wait overrides + multiplier for human_wait() calls."""

    min_override = _env_int("SEATWATCH_WAIT_MIN_MS", min_ms)
    max_override = _env_int("SEATWATCH_WAIT_MAX_MS", max_ms)
    multiplier = max(_env_float("SEATWATCH_WAIT_MULTIPLIER", 1.0), 0.0)

    scaled_min = int(min_override * multiplier)
    scaled_max = int(max_override * multiplier)
    if scaled_max < scaled_min:
        scaled_max = scaled_min
    return scaled_min, scaled_max
