"""Short-lived cache of complete fetch results, keyed by event identifier."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class _Entry(Generic[T]):
    value: T
    captured_at: float


class SnapshotCache(Generic[T]):
    """TTL map with one write lock per key; reads never take a lock."""

    def __init__(self, ttl_ms: int = 5000, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, _Entry[T]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        age_ms = (self._clock() - entry.captured_at) * 1000
        if age_ms >= self.ttl_ms:
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: T) -> None:
        self._entries[key] = _Entry(value=value, captured_at=self._clock())

    def lock(self, key: str) -> asyncio.Lock:
        """Writer lock for *key*; holders re-check ``get`` before fetching."""

        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
