"""A locked, fixed-size ring buffer of events."""

from __future__ import annotations

import threading
from typing import Iterator

from relystore.events import Event, Filter, event_matches_filter


class CircularBuffer:
    """Thread-safe ring buffer that overwrites the oldest event when full."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        self._lock = threading.Lock()
        self._buffer: list[Event | None] = [None] * capacity
        self._size = capacity
        self._head = 0
        self._tail = 0
        self._count = 0

    def save_event(self, event: Event) -> None:
        """Store an event, evicting the oldest one if the buffer is full."""
        if event is None:
            raise ValueError("event cannot be None")
        with self._lock:
            self._buffer[self._head] = event
            self._head = (self._head + 1) % self._size
            if self._count == self._size:
                self._tail = (self._tail + 1) % self._size
            else:
                self._count += 1

    def query_events(self, filter: Filter) -> Iterator[Event]:
        """Iterate over matching events, oldest first, up to the filter's limit."""
        with self._lock:
            matching = self._matching_events(filter)
        return iter(matching)

    def _matching_events(self, filter: Filter) -> list[Event]:
        limit = self._count
        if 0 < filter.limit < limit:
            limit = filter.limit
        result: list[Event] = []
        if limit == 0:
            return result
        for offset in range(self._count):
            event = self._buffer[(self._tail + offset) % self._size]
            if event is not None and event_matches_filter(event, filter):
                result.append(event)
                if len(result) >= limit:
                    break
        return result

    def __len__(self) -> int:
        with self._lock:
            return self._count