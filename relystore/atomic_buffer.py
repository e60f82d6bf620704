"""Fixed-size ring buffers of events built around a single short critical section."""

from __future__ import annotations

import threading
from typing import Iterator

from relystore.events import Event, Filter, event_matches_filter


class AtomicCircularBuffer:
    """Ring buffer that overwrites the oldest event when full.

    Queries yield matching events oldest first.
    """

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
            head = self._head
            self._head = (head + 1) % self._size
            self._buffer[head] = event
            count = self._count + 1
            if count > self._size:
                count = self._size
                self._tail = (self._tail + 1) % self._size
            self._count = count

    def query_events(self, filter: Filter) -> Iterator[Event]:
        """Iterate over matching events, oldest first, up to the filter's limit."""
        with self._lock:
            tail, count = self._tail, self._count
            slots = [self._buffer[(tail + offset) % self._size] for offset in range(count)]
        limit = count
        if 0 < filter.limit < limit:
            limit = filter.limit
        result: list[Event] = []
        for event in slots:
            if event is not None and event_matches_filter(event, filter):
                result.append(event)
                if len(result) >= limit:
                    break
        return iter(result)

    def __len__(self) -> int:
        with self._lock:
            return self._count


class AtomicCircularBuffer2:
    """Ring buffer of event references whose queries return lists.

    Once the buffer has filled up, a scan starts at the slot after the write
    position, so the oldest event is returned last.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        self._lock = threading.Lock()
        self._buffer: list[Event | None] = [None] * capacity
        self._size = capacity
        self._head = 0
        self._count = 0

    def save_event(self, event: Event) -> None:
        """Store an event, evicting the oldest one if the buffer is full."""
        if event is None:
            raise ValueError("event cannot be None")
        with self._lock:
            head = self._head
            self._buffer[head] = event
            self._head = (head + 1) % self._size
            self._count = min(self._count + 1, self._size)

    def query_events(self, filter: Filter) -> list[Event]:
        """Return matching events up to the filter's limit."""
        with self._lock:
            count, head = self._count, self._head
            if count == 0:
                return []
            tail = (head + 1) % self._size if count >= self._size else 0
            slots = [self._buffer[(tail + offset) % self._size] for offset in range(count)]

        limit = count
        if 0 < filter.limit < limit:
            limit = filter.limit
        result: list[Event] = []
        for event in slots:
            if event is not None and event_matches_filter(event, filter):
                result.append(event)
                if len(result) >= limit:
                    break
        return result

    def __len__(self) -> int:
        with self._lock:
            return self._count