"""Change alerts delivered over Telegram or SendGrid."""

from __future__ import annotations

from dataclasses import dataclass
import html
import os
import time
from typing import Any, Sequence

import requests
from tenacity import retry, stop_after_attempt, wait_exponential

from seatwatch.logging_config import get_logger
from seatwatch.models import ChangeEvent, ChangeType

LOGGER = get_logger(__name__)

MAX_LINES = 20
TELEGRAM_API = "https://api.telegram.org"
SENDGRID_API = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class AlertCredentials:
    telegram_token: str | None = None
    telegram_chat: str | None = None
    sendgrid_key: str | None = None
    sendgrid_to: str | None = None
    sendgrid_from: str | None = None

    @classmethod
    def from_env(cls) -> "AlertCredentials":
        return cls(
            telegram_token=os.getenv("TELEGRAM_BOT_TOKEN"),
            telegram_chat=os.getenv("TELEGRAM_CHAT_ID"),
            sendgrid_key=os.getenv("SENDGRID_API_KEY"),
            sendgrid_to=os.getenv("SENDGRID_TO"),
            sendgrid_from=os.getenv("SENDGRID_FROM"),
        )

    @property
    def transport(self) -> str | None:
        """Preferred delivery channel, or None when nothing is configured."""

        if self.telegram_token and self.telegram_chat:
            return "telegram"
        if self.sendgrid_key and self.sendgrid_to and self.sendgrid_from:
            return "sendgrid"
        return None


def describe_change(change: ChangeEvent) -> str:
    details = change.details
    if change.type is ChangeType.PRICE_CHANGE:
        return f"Price: {details.get('sectionRow')} {details.get('oldPrice')} -> {details.get('newPrice')}"
    if change.type is ChangeType.NEW_SECTION:
        return f"New: {details.get('sectionRow')} at {details.get('price')}"
    return f"{change.type.value}: {details}"


class Notifier:
    """Summarise change events for one event page and push them to a channel."""

    def __init__(self, credentials: AlertCredentials | None = None, *, min_interval: float = 1.0) -> None:
        self.credentials = credentials or AlertCredentials.from_env()
        self.min_interval = min_interval
        self._last_send = 0.0

    @property
    def configured(self) -> bool:
        return self.credentials.transport is not None

    @staticmethod
    def build_lines(event_id: str, changes: Sequence[ChangeEvent]) -> list[str]:
        lines = [f"{len(changes)} change(s) for event {event_id}"]
        lines.extend(describe_change(change) for change in changes[:MAX_LINES])
        if len(changes) > MAX_LINES:
            lines.append(f"... and {len(changes) - MAX_LINES} more")
        return lines

    def notify_changes(self, url: str, event_id: str, changes: Sequence[ChangeEvent]) -> None:
        """Send one alert for *changes*; delivery failures are logged, not raised."""

        if not changes:
            return
        lines = self.build_lines(event_id, changes)
        transport = self.credentials.transport
        if transport is None:
            LOGGER.debug("Alert (noop): %s | %s", " | ".join(lines), url)
            return

        try:
            if transport == "telegram":
                self._send_telegram(lines, url)
            else:
                self._send_sendgrid(f"Ticket changes: {event_id}", lines, url)
        except (requests.RequestException, RuntimeError) as exc:
            LOGGER.warning("Alert delivery failed via %s: %s", transport, exc)
            return
        LOGGER.info("Sent %d change(s) for event %s via %s", len(changes), event_id, transport)

    def _send_telegram(self, lines: list[str], url: str) -> None:
        creds = self.credentials
        self._post(
            f"{TELEGRAM_API}/bot{creds.telegram_token}/sendMessage",
            {
                "chat_id": creds.telegram_chat,
                "text": "\n".join([*lines, url]),
                "disable_web_page_preview": True,
            },
        )

    def _send_sendgrid(self, subject: str, lines: list[str], url: str) -> None:
        creds = self.credentials
        link = html.escape(url)
        body = "".join(f"<p>{html.escape(line)}</p>" for line in lines)
        body += f'<p><a href="{link}">{link}</a></p>'
        self._post(
            SENDGRID_API,
            {
                "from": {"email": creds.sendgrid_from},
                "personalizations": [{"to": [{"email": creds.sendgrid_to}], "subject": subject}],
                "content": [{"type": "text/html", "value": body}],
            },
            headers={"Authorization": f"Bearer {creds.sendgrid_key}"},
        )

    @retry(wait=wait_exponential(multiplier=0.5, max=10), stop=stop_after_attempt(5), reraise=True)
    def _post(self, endpoint: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> None:
        wait = self.min_interval - (time.monotonic() - self._last_send)
        if wait > 0:
            time.sleep(wait)
        self._last_send = time.monotonic()
        response = requests.post(endpoint, json=payload, headers=headers, timeout=8)
        if response.status_code >= 300:
            raise RuntimeError(f"HTTP {response.status_code} from {endpoint.split('/bot')[0]}")
