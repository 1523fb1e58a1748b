"""Custom exception types for Seatwatch."""

from __future__ import annotations

from typing import Optional


class SeatwatchError(Exception):
    """Base class carrying the URL / event identifier a failure relates to."""

    default_message = "Seatwatch failure."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.event_id = event_id
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.url:
            context_parts.append(f"url={self.url}")
        if self.event_id:
            context_parts.append(f"event_id={self.event_id}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class InvalidUrlError(SeatwatchError):
    """Raised before any browser work when a URL carries no event identifier."""

    default_message = "Invalid event URL: could not extract event ID."


class NavigationError(SeatwatchError):
    """Raised when the event page could not be reached after every retry."""

    default_message = "Failed to load event page."


class FetchTimeoutError(NavigationError):
    """Raised when a whole fetch cycle overruns its deadline."""

    default_message = "Fetch cycle exceeded its deadline."
