import threading
import time

import pytest

from relystore.atomic_buffer import AtomicCircularBuffer, AtomicCircularBuffer2
from relystore.events import Event, Filter


def create_test_event(event_id, kind):
    return Event(
        id=event_id,
        kind=kind,
        tags=(("e", "test-tag"),),
        created_at=int(time.time()),
        pubkey="test-pubkey-" + event_id,
        content="test content " + event_id,
    )


@pytest.mark.parametrize("cls", [AtomicCircularBuffer, AtomicCircularBuffer2])
def test_rejects_non_positive_capacity(cls):
    with pytest.raises(ValueError):
        cls(0)


@pytest.mark.parametrize("cls", [AtomicCircularBuffer, AtomicCircularBuffer2])
def test_rejects_none_event(cls):
    buffer = cls(3)
    with pytest.raises(ValueError):
        buffer.save_event(None)
    assert len(buffer) == 0


def test_atomic_buffer_oldest_first_after_wrap():
    buffer = AtomicCircularBuffer(5)
    for i in range(8):
        buffer.save_event(create_test_event(f"id-{i}", i))
    ids = [e.id for e in buffer.query_events(Filter())]
    assert ids == ["id-3", "id-4", "id-5", "id-6", "id-7"]
    assert len(buffer) == 5


def test_atomic_buffer_limit_and_kind_filter():
    buffer = AtomicCircularBuffer(1000)
    for i in range(500):
        buffer.save_event(create_test_event(f"id-{i}", i % 5))
    events = list(buffer.query_events(Filter(kinds=(1, 2, 3), limit=100)))
    assert len(events) == 100
    assert all(e.kind in (1, 2, 3) for e in events)
    assert events[0].id == "id-1"


def test_atomic_buffer_empty_query():
    buffer = AtomicCircularBuffer(4)
    assert list(buffer.query_events(Filter())) == []


def test_atomic_circular_buffer2():
    cb = AtomicCircularBuffer2(5)
    for i in range(3):
        cb.save_event(create_test_event(f"id-{i}", i))

    events = cb.query_events(Filter(kinds=(0, 1, 2)))
    assert len(events) == 3

    for i in range(3, 8):
        cb.save_event(create_test_event(f"id-{i}", i))

    events = cb.query_events(Filter(kinds=(0, 1, 2, 3, 4, 5, 6, 7)))
    assert len(events) == 5
    for evt in events:
        assert evt.id not in ("id-0", "id-1", "id-2")

    events = cb.query_events(Filter(kinds=(3, 5, 7)))
    assert events
    for evt in events:
        assert evt.kind in (3, 5, 7)


def test_atomic_buffer2_full_scan_returns_oldest_last():
    cb = AtomicCircularBuffer2(5)
    for i in range(5):
        cb.save_event(create_test_event(f"id-{i}", i))
    ids = [e.id for e in cb.query_events(Filter())]
    assert ids == ["id-1", "id-2", "id-3", "id-4", "id-0"]


def test_atomic_buffer2_empty_query():
    assert AtomicCircularBuffer2(3).query_events(Filter()) == []


def test_atomic_buffer2_limit():
    cb = AtomicCircularBuffer2(1000)
    for i in range(500):
        cb.save_event(create_test_event(f"id-{i}", i % 5))
    events = cb.query_events(Filter(kinds=(1, 2, 3), limit=100))
    assert len(events) == 100


def test_concurrent_save_and_query2():
    cb = AtomicCircularBuffer2(1000)
    num_ops = 100
    errors = []

    def writer(i):
        for j in range(10):
            cb.save_event(create_test_event(f"id-{i}-{j}", j % 5))

    def reader():
        flt = Filter(kinds=(1, 2, 3), limit=50)
        for _ in range(5):
            events = cb.query_events(flt)
            if len(events) > 50 or any(e is None or e.kind not in (1, 2, 3) for e in events):
                errors.append(events)
            time.sleep(0.001)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(num_ops)]
    threads += [threading.Thread(target=reader) for _ in range(num_ops // 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(cb) == 1000


def test_race_prefix_query_while_saving():
    ab = AtomicCircularBuffer2(1000)
    event = create_test_event("aaaaaaaaaaaaaaaaaaaaaaa", 1)
    seen = []

    def query_loop():
        for _ in range(2000):
            for found in ab.query_events(Filter(ids=("aaa",))):
                seen.append(found.id)

    reader = threading.Thread(target=query_loop)
    reader.start()
    for _ in range(5000):
        ab.save_event(event)
    reader.join()

    assert set(seen) <= {"aaaaaaaaaaaaaaaaaaaaaaa"}
    assert len(ab.query_events(Filter(ids=("aaa",)))) == 1000