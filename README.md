# relystore

A small Nostr relay. Ephemeral events (kinds 20000–29999) are kept in a
fixed-size in-memory ring buffer. All other events go to a SQLite database.
Replaceable kinds (0, 3 and 10000–19999) and addressable kinds (30000–39999)
keep only the newest version.

## Running the relay

```
pip install .
relystore
```

The command takes these options:

- `--host` (default `localhost`)
- `--port` (default `3334`)
- `--database`, the SQLite file (default `./rely-sqlite.db`)
- `--ephemeral-capacity`, the size of the ephemeral ring buffer (default `500`)

Clients connect over WebSocket and send JSON messages:

- `["EVENT", {...}]` stores the event. The relay replies
  `["OK", <id>, true, ""]` on success. On failure it replies
  `["OK", <id>, false, "error: ..."]`, for example when the id is already stored.
- `["REQ", <sub_id>, <filter>, ...]` returns every matching event as
  `["EVENT", <sub_id>, {...}]`, followed by `["EOSE", <sub_id>]`.
- `["CLOSE", <sub_id>]` is accepted and gets no reply.

Any other message gets a `["NOTICE", "error: ..."]` reply.

## Events and filters

`relystore.events` defines the types:

- `Event` is an immutable dataclass with `id`, `pubkey`, `created_at`,
  `kind`, `tags`, `content` and `sig`. It has `to_dict()` and
  `Event.from_dict(data)`.
- `Filter` has `ids`, `authors`, `kinds`, `tags`, `since`, `until` and
  `limit`. `Filter.from_dict(data)` reads tag conditions from keys such as
  `"#e"`. `filter.matches(event)` is the same check as
  `event_matches_filter(event, filter)`.

`ids` and `authors` match a full value exactly. A value shorter than 64
characters also matches as a prefix. An empty field puts no limit on the
match. A `limit` of 0 means no limit.

`is_ephemeral_kind`, `is_replaceable_kind` and `is_addressable_kind` sort
kinds into these groups.

## In-memory buffers

Every buffer has a fixed capacity, which must be greater than 0. When a
buffer is full, a new event overwrites the oldest one. `len(buffer)` gives
the number of events it holds.

```python
from relystore.events import Event, Filter
from relystore.atomic_buffer import AtomicCircularBuffer2

buffer = AtomicCircularBuffer2(500)
buffer.save_event(Event(id="ab" * 32, pubkey="cd" * 32, kind=20001, created_at=1700000000))

found = buffer.query_events(Filter(kinds=[20001], limit=10))
print(len(found), len(buffer))
```

- `relystore.circular_buffer.CircularBuffer` has `save_event(event)` and
  `query_events(filter)`. The query returns an iterator over matching
  events, oldest first.
- `relystore.atomic_buffer.AtomicCircularBuffer` has the same interface and
  the same ordering.
- `relystore.atomic_buffer.AtomicCircularBuffer2` has `query_events(filter)`,
  which returns a list. Until the buffer is full, the list is in insertion
  order. Once the buffer is full, the scan starts at the slot after the
  write position, so the oldest event comes last.
- `relystore.ephemeral.Ephemeral` has `save(event)` and `query(filter)`. The
  query returns a list in slot order.

`save_event` raises `ValueError` when given `None`.

## Storage and routing

`relystore.relay.SQLiteStore(path, query_limit=1000)` is the persistent
store. It can be used as a context manager.

- `save_event(event)` raises `DuplicateEventError` if the id is already
  stored.
- `replace_event(event)` deletes older events from the same author with the
  same kind. For addressable kinds it also requires the same `d` tag. The
  new event is stored only if no newer version exists.
- `query_events(filter)` returns matching events, newest first. It returns
  at most `query_limit` events, or fewer if the filter's `limit` is smaller.
- `close()` closes the database.

`relystore.relay.EventRouter(db, ephemeral)` routes events and queries:

- `save(event)` puts ephemeral kinds into the `AtomicCircularBuffer2`, uses
  `replace_event` for replaceable and addressable kinds, and uses
  `save_event` for everything else.
- `query(filters)` returns, for each filter in turn, the database results
  followed by the matching events from the ephemeral buffer.

`estimate_capacity_from_filters(filters)` gives a size estimate between 16
and 2048. `serve(router, host, port)` is a coroutine that runs the WebSocket
server for a router you build yourself.

## What it does not do

- The relay does not check event signatures or ids. It stores events as
  they are received.
- A `REQ` gets only the events that are stored when it arrives. Events saved
  later are not pushed to open subscriptions.
- Ephemeral events exist only in memory and are lost when the relay stops.

## Tests

```
pip install ".[test]"
pytest
```