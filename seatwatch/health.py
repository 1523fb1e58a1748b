"""Health monitoring helpers for bot-gate and empty-result streaks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from pathlib import Path
from typing import Any

from seatwatch.logging_config import get_logger

LOGGER = get_logger(__name__)


class HealthState(str, Enum):
    """Overall monitor health classification."""

    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


@dataclass
class HealthMonitor:
    """Tracks failure streaks across poll cycles and logs structured events.

    Thresholds are ``(suspect, blocked)`` pairs.
    """

    log_path: Path
    gate_threshold: tuple[int, int] = (2, 4)
    empty_threshold: tuple[int, int] = (3, 6)
    error_threshold: tuple[int, int] = (2, 4)
    state: HealthState = field(init=False, default=HealthState.HEALTHY)

    def __post_init__(self) -> None:
        self.gate_failures = 0
        self.empty_streak = 0
        self.errors = 0
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _log(self, event_type: str, message: str, **details: Any) -> None:
        entry = {
            "ts": time.time(),
            "state": self.state.value,
            "event": event_type,
            "message": message,
            "details": details,
        }
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _evaluate_state(self) -> None:
        prev = self.state
        counters = (
            (self.gate_failures, self.gate_threshold),
            (self.empty_streak, self.empty_threshold),
            (self.errors, self.error_threshold),
        )
        if any(count >= limits[1] for count, limits in counters):
            self.state = HealthState.BLOCKED
        elif any(count >= limits[0] for count, limits in counters):
            self.state = HealthState.SUSPECT
        else:
            self.state = HealthState.HEALTHY

        if self.state != prev:
            LOGGER.warning("Monitor health %s -> %s", prev.value, self.state.value)
            self._log(
                "state_change",
                f"{prev.value} -> {self.state.value}",
                gate_failures=self.gate_failures,
                empty_streak=self.empty_streak,
                errors=self.errors,
            )

    def record_tickets(self, *, event_id: str, count: int) -> None:
        """Record a cycle that produced listings."""

        self.gate_failures = 0
        self.empty_streak = 0
        self.errors = max(0, self.errors - 1)
        if self.state != HealthState.HEALTHY:
            self._log("recovered", f"Recovered on event {event_id}", tickets=count)
        self._evaluate_state()

    def record_empty(self, *, event_id: str) -> None:
        self.empty_streak += 1
        self._log("empty", f"No listings for event {event_id}", empty_streak=self.empty_streak)
        self._evaluate_state()

    def record_gate_failure(self, *, event_id: str, reason: str | None) -> None:
        self.gate_failures += 1
        self._log("bot_gate", reason or "bot gate failed", event_id=event_id, gate_failures=self.gate_failures)
        self._evaluate_state()

    def record_error(self, *, event_id: str | None, reason: str) -> None:
        self.errors += 1
        self._log("error", reason, event_id=event_id, errors=self.errors)
        self._evaluate_state()
