"""Screenshot and result-dump capture for post-mortem inspection."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from playwright.async_api import Error as PlaywrightError

from seatwatch.logging_config import get_logger
from seatwatch.models import FetchResult
from seatwatch.settings import DiagnosticsSettings

LOGGER = get_logger(__name__)


def _stamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")


class DiagnosticsRecorder:
    """Writes full-page screenshots and result JSON files to one directory."""

    def __init__(self, settings: DiagnosticsSettings | None = None) -> None:
        self.settings = settings or DiagnosticsSettings()
        self.captures: list[Path] = []

    @property
    def directory(self) -> Path:
        return self.settings.path

    async def capture(self, page: Any, name: str) -> Path | None:
        """Save a screenshot named after *name*; failures are logged, not raised."""

        if not self.settings.enabled:
            return None
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{name}_{_stamp()}.png"
        try:
            await page.screenshot(path=str(path), full_page=True)
        except PlaywrightError as exc:
            LOGGER.warning("Failed to capture screenshot %s: %s", name, exc)
            return None
        self.captures.append(path)
        LOGGER.debug("Screenshot saved: %s", path)
        return path

    def dump_result(self, result: FetchResult) -> Path | None:
        if not (self.settings.enabled and self.settings.save_results):
            return None
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"ticketmaster_{result.event_id}_{_stamp()}.json"
        try:
            path.write_text(
                json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str),
                encoding="utf-8",
            )
        except OSError as exc:
            LOGGER.warning("Failed to write result dump %s: %s", path, exc)
            return None
        LOGGER.info("Result saved to %s", path)
        return path
