"""Relay storage routing, a SQLite event store and the websocket front end."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sqlite3
import threading
from typing import Any, Iterable, Sequence

import websockets

from relystore.atomic_buffer import AtomicCircularBuffer2
from relystore.events import (
    Event,
    Filter,
    event_matches_filter,
    is_addressable_kind,
    is_ephemeral_kind,
    is_replaceable_kind,
)

log = logging.getLogger(__name__)

DEFAULT_DATABASE = "./rely-sqlite.db"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3334
DEFAULT_EPHEMERAL_CAPACITY = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS event (
    id TEXT PRIMARY KEY,
    pubkey TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    kind INTEGER NOT NULL,
    tags TEXT NOT NULL,
    content TEXT NOT NULL,
    sig TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS event_pubkey ON event(pubkey);
CREATE INDEX IF NOT EXISTS event_time ON event(created_at DESC);
CREATE INDEX IF NOT EXISTS event_kind ON event(kind);
"""


class DuplicateEventError(Exception):
    """Raised when an event with the same id is already stored."""


def _is_older(previous: Event, current: Event) -> bool:
    return previous.created_at < current.created_at or (
        previous.created_at == current.created_at and previous.id > current.id
    )


def _d_tag(event: Event) -> str:
    return next((tag[1] for tag in event.tags if len(tag) > 1 and tag[0] == "d"), "")


class SQLiteStore:
    """Persistent event store backed by a SQLite database."""

    def __init__(self, path: str = DEFAULT_DATABASE, query_limit: int = 1000) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.executescript(_SCHEMA)
        self._query_limit = query_limit

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def save_event(self, event: Event) -> None:
        """Insert an event; raise DuplicateEventError if its id is known."""
        with self._lock:
            self._insert(event)

    def _insert(self, event: Event) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO event (id, pubkey, created_at, kind, tags, content, sig)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        event.id,
                        event.pubkey,
                        event.created_at,
                        event.kind,
                        json.dumps([list(tag) for tag in event.tags]),
                        event.content,
                        event.sig,
                    ),
                )
        except sqlite3.IntegrityError:
            raise DuplicateEventError(f"duplicate: event {event.id} already exists") from None

    def replace_event(self, event: Event) -> None:
        """Store a replaceable event, dropping older versions it supersedes."""
        flt = Filter(authors=(event.pubkey,), kinds=(event.kind,))
        if is_addressable_kind(event.kind):
            flt.tags = {"d": (_d_tag(event),)}
        with self._lock:
            should_store = True
            for previous in self._select(flt, limit=None):
                if _is_older(previous, event):
                    with self._conn:
                        self._conn.execute("DELETE FROM event WHERE id = ?", (previous.id,))
                else:
                    should_store = False
            if should_store:
                self._insert(event)

    def query_events(self, filter: Filter) -> list[Event]:
        """Return matching events, newest first."""
        limit = self._query_limit
        if 0 < filter.limit < limit:
            limit = filter.limit
        with self._lock:
            return self._select(filter, limit)

    def _select(self, filter: Filter, limit: int | None) -> list[Event]:
        clauses: list[str] = []
        params: list[Any] = []
        if filter.kinds:
            clauses.append(f"kind IN ({', '.join('?' for _ in filter.kinds)})")
            params.extend(filter.kinds)
        if filter.since is not None:
            clauses.append("created_at >= ?")
            params.append(filter.since)
        if filter.until is not None:
            clauses.append("created_at <= ?")
            params.append(filter.until)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            "SELECT id, pubkey, created_at, kind, tags, content, sig FROM event"
            f"{where} ORDER BY created_at DESC, id",
            params,
        )
        result: list[Event] = []
        for event_id, pubkey, created_at, kind, tags, content, sig in rows:
            event = Event(
                id=event_id,
                pubkey=pubkey,
                created_at=created_at,
                kind=kind,
                tags=json.loads(tags),
                content=content,
                sig=sig,
            )
            if event_matches_filter(event, filter):
                result.append(event)
                if limit is not None and len(result) >= limit:
                    break
        return result

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()


def estimate_capacity_from_filters(filters: Sequence[Filter]) -> int:
    """Guess how many events a set of filters will return, between 16 and 2048."""
    default_capacity = 16
    max_capacity = 2048
    events_per_filter = 32

    if not filters:
        return default_capacity
    limits = [f.limit for f in filters if f.limit > 0]
    total = sum(limits) if limits else len(filters) * events_per_filter
    return max(default_capacity, min(total, max_capacity))


class EventRouter:
    """Sends ephemeral events to memory and everything else to the database."""

    def __init__(self, db: SQLiteStore, ephemeral: AtomicCircularBuffer2) -> None:
        self.db = db
        self.ephemeral = ephemeral

    def save(self, event: Event) -> None:
        """Store an event according to its kind."""
        log.info("[EVENT] received: %s (kind: %d)", event.id, event.kind)
        if is_ephemeral_kind(event.kind):
            try:
                self.ephemeral.save_event(event)
            except Exception as exc:
                log.error("[ERROR] storing ephemeral event: %s", exc)
                raise
            log.info("[EPHEMERAL] stored: %s", event.id)
        elif is_replaceable_kind(event.kind) or is_addressable_kind(event.kind):
            try:
                self.db.replace_event(event)
            except Exception as exc:
                log.error("[ERROR] saving replaceable/addressable event: %s", exc)
                raise
            log.info("[REPLACEABLE] saved: %s", event.id)
        else:
            try:
                self.db.save_event(event)
            except Exception as exc:
                log.error("[ERROR] saving regular event: %s", exc)
                raise
            log.info("[REGULAR] saved: %s", event.id)

    def query(self, filters: Iterable[Filter]) -> list[Event]:
        """Collect events from the database and the ephemeral store, filter by filter."""
        filters = list(filters)
        log.info("[QUERY] received filters with %d subscriptions", len(filters))
        log.debug("[DEBUG] estimated capacity: %d", estimate_capacity_from_filters(filters))
        result: list[Event] = []
        for flt in filters:
            if flt.kinds:
                has_ephemeral = any(is_ephemeral_kind(k) for k in flt.kinds)
                log.debug(
                    "[DEBUG] filter has kinds: %s, hasEphemeralKinds: %s",
                    list(flt.kinds),
                    has_ephemeral,
                )
            else:
                log.debug("[DEBUG] filter has no kinds specified, assuming hasEphemeralKinds: true")

            try:
                result.extend(self.db.query_events(flt))
            except Exception as exc:
                log.error("[ERROR] querying events: %s", exc)
                raise

            log.debug("[DEBUG] querying ephemeral store for filter: %s", flt)
            try:
                result.extend(e for e in self.ephemeral.query_events(flt) if e is not None)
            except Exception as exc:
                log.error("[ERROR] querying ephemeral events: %s", exc)
        log.info("[QUERY] found %d events matching filters", len(result))
        return result


def _respond(router: EventRouter, raw: str | bytes) -> list[list[Any]]:
    """Turn one client message into the replies to send back."""
    try:
        message = json.loads(raw)
    except ValueError:
        return [["NOTICE", "error: invalid JSON"]]
    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        return [["NOTICE", "error: malformed message"]]

    label = message[0]
    if label == "EVENT" and len(message) >= 2 and isinstance(message[1], dict):
        try:
            event = Event.from_dict(message[1])
        except (TypeError, ValueError) as exc:
            return [["NOTICE", f"error: invalid event: {exc}"]]
        try:
            router.save(event)
        except Exception as exc:
            return [["OK", event.id, False, f"error: {exc}"]]
        return [["OK", event.id, True, ""]]

    if label == "REQ" and len(message) >= 2 and isinstance(message[1], str):
        sub_id = message[1]
        try:
            filters = [Filter.from_dict(f) for f in message[2:]]
        except (AttributeError, TypeError, ValueError) as exc:
            return [["CLOSED", sub_id, f"error: invalid filter: {exc}"]]
        try:
            events = router.query(filters)
        except Exception as exc:
            return [["CLOSED", sub_id, f"error: {exc}"]]
        return [["EVENT", sub_id, e.to_dict()] for e in events] + [["EOSE", sub_id]]

    if label == "CLOSE" and len(message) >= 2:
        return []

    return [["NOTICE", f"error: unsupported message {label!r}"]]


async def serve(router: EventRouter, host: str, port: int) -> None:
    """Serve the relay over websockets until cancelled."""

    async def handler(connection: Any) -> None:
        try:
            async for raw in connection:
                for reply in await asyncio.to_thread(_respond, router, raw):
                    await connection.send(json.dumps(reply))
        except websockets.ConnectionClosed:
            pass

    async with websockets.serve(handler, host, port):
        log.info("[RELAY] running on %s:%d", host, port)
        await asyncio.Future()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the relay from the command line."""
    parser = argparse.ArgumentParser(description="Nostr relay with SQLite and in-memory storage.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--database", default=DEFAULT_DATABASE)
    parser.add_argument("--ephemeral-capacity", type=int, default=DEFAULT_EPHEMERAL_CAPACITY)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    store = SQLiteStore(args.database)
    router = EventRouter(store, AtomicCircularBuffer2(args.ephemeral_capacity))
    try:
        asyncio.run(serve(router, args.host, args.port))
    except KeyboardInterrupt:
        pass
    finally:
        store.close()
    return 0