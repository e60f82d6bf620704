"""An in-memory ring buffer for ephemeral events."""

from __future__ import annotations

import threading

from relystore.events import Event, Filter


class Ephemeral:
    """Thread-safe ring buffer of events with a fixed memory footprint."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        self._lock = threading.Lock()
        self._buffer: list[Event | None] = [None] * capacity
        self._capacity = capacity
        self._len = 0
        self._write = 0

    def save(self, event: Event) -> None:
        """Store an event, overwriting the slot after the last write."""
        with self._lock:
            self._buffer[self._write] = event
            self._write = (self._write + 1) % self._capacity
            self._len = min(self._len + 1, self._capacity)

    def query(self, filter: Filter) -> list[Event]:
        """Return matching events in slot order, up to the filter's limit."""
        with self._lock:
            limit = self._len
            if filter.limit > 0:
                limit = min(filter.limit, self._len)
            result: list[Event] = []
            for event in self._buffer[: self._len]:
                if len(result) >= limit:
                    break
                if filter.matches(event):
                    result.append(event)
            return result

    def __len__(self) -> int:
        with self._lock:
            return self._len