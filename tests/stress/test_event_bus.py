"""
Unit and stress tests for climaneer.runtime.event_bus.EventBus.

Unit tests validate:
- publish enqueues alerts and notices in order
- publish does not raise when the queue is full (drop policy)

Stress tests validate:
- publish is safe under concurrent calls from multiple threads
- the bus does not deadlock and counts what it drops

Notes
-----
Thread stress tests are probabilistic: passing increases confidence but does not
prove the absence of races. Run repeatedly for higher confidence.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import List

import pytest

from climaneer.domain.events import Notice
from climaneer.domain.models import Alert, AlertType
from climaneer.runtime.event_bus import EventBus


def _mk_alert(i: int) -> Alert:
    return Alert(id=f"warning-{i}", type=AlertType.WARNING, title="Low Soil Moisture", message=f"e{i}",
                 timestamp="2026-01-01T00:00:00.000Z")


def _drain_queue(q, limit: int = 10_000) -> List[object]:
    out: List[object] = []
    for _ in range(limit):
        try:
            out.append(q.get_nowait())
        except Empty:
            break
    return out


def test_publish_keeps_order() -> None:
    bus = EventBus()
    notice = Notice(title="Offline", description="x", timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc))

    bus.publish_alert(_mk_alert(1))
    bus.publish_notice(notice)

    assert _drain_queue(bus.events_q) == [_mk_alert(1), notice]


def test_publish_drops_when_full_without_raising() -> None:
    bus = EventBus(events_q=Queue(maxsize=3))

    for i in range(5):
        bus.publish_alert(_mk_alert(i))

    assert bus.events_q.qsize() == 3
    assert bus.dropped == 2


@pytest.mark.stress
def test_event_bus_concurrent_producers() -> None:
    """
    Publish from 16 threads into a bounded queue.

    Every publish either lands in the queue or is counted as dropped.
    """
    bus = EventBus(events_q=Queue(maxsize=1000))
    start = threading.Barrier(16)
    errors: List[BaseException] = []

    def producer(tid: int) -> None:
        try:
            start.wait()
            for k in range(500):
                bus.publish_alert(_mk_alert(tid * 1_000_000 + k))
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=producer, args=(t,)) for t in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert all(not t.is_alive() for t in threads), "A producer thread did not finish (possible deadlock)"
    if errors:
        raise AssertionError(f"Concurrency test caught exceptions: {errors!r}")

    drained = _drain_queue(bus.events_q)
    assert len(drained) == 1000
    assert all(isinstance(e, Alert) for e in drained)
    # the counter itself is not locked; it can only under-count
    assert bus.dropped <= 16 * 500 - 1000
