from datetime import datetime, timezone

import requests

from seatwatch.alerts import notifier as notifier_module
from seatwatch.alerts.notifier import MAX_LINES, AlertCredentials, Notifier
from seatwatch.models import ChangeEvent, ChangeType

from conftest import EVENT_ID, EVENT_URL

NOW = datetime(2025, 9, 1, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


def _changes(count: int = 2) -> list[ChangeEvent]:
    changes = [
        ChangeEvent(
            type=ChangeType.PRICE_CHANGE,
            details={"sectionRow": "Sec 101, Row 5", "oldPrice": "$150", "newPrice": "$175"},
            timestamp=NOW,
        )
    ]
    changes.extend(
        ChangeEvent(type=ChangeType.NEW_SECTION, details={"sectionRow": f"Sec {n}", "price": "$90"}, timestamp=NOW)
        for n in range(count - 1)
    )
    return changes


def test_build_lines_summarises_and_truncates() -> None:
    lines = Notifier.build_lines(EVENT_ID, _changes(MAX_LINES + 5))

    assert lines[0] == f"{MAX_LINES + 5} change(s) for event {EVENT_ID}"
    assert lines[1] == "Price: Sec 101, Row 5 $150 -> $175"
    assert lines[2] == "New: Sec 0 at $90"
    assert lines[-1] == "... and 5 more"


def test_unconfigured_notifier_does_not_post(monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(notifier_module.requests, "post", _fail)
    notifier = Notifier(AlertCredentials())

    assert notifier.configured is False
    notifier.notify_changes(EVENT_URL, EVENT_ID, _changes())


def test_telegram_preferred_when_configured(monkeypatch) -> None:
    calls = []

    def _post(url, json=None, headers=None, timeout=None):
        calls.append((url, json))
        return FakeResponse(200)

    monkeypatch.setattr(notifier_module.requests, "post", _post)
    credentials = AlertCredentials(
        telegram_token="token",
        telegram_chat="42",
        sendgrid_key="key",
        sendgrid_to="to@example.com",
        sendgrid_from="from@example.com",
    )
    notifier = Notifier(credentials, min_interval=0)

    notifier.notify_changes(EVENT_URL, EVENT_ID, _changes())

    (url, payload), = calls
    assert url == "https://api.telegram.org/bottoken/sendMessage"
    assert payload["chat_id"] == "42"
    assert payload["text"].endswith(EVENT_URL)


def test_sendgrid_failure_is_logged_not_raised(monkeypatch) -> None:
    attempts = []

    def _post(url, json=None, headers=None, timeout=None):
        attempts.append(url)
        raise requests.ConnectionError("down")

    monkeypatch.setattr(notifier_module.requests, "post", _post)
    monkeypatch.setattr(Notifier._post.retry, "sleep", lambda seconds: None)
    credentials = AlertCredentials(sendgrid_key="key", sendgrid_to="to@example.com", sendgrid_from="from@example.com")

    Notifier(credentials, min_interval=0).notify_changes(EVENT_URL, EVENT_ID, _changes())

    assert len(attempts) == 5
    assert set(attempts) == {notifier_module.SENDGRID_API}
