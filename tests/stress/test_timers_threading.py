"""
Threading tests for climaneer.runtime.timers.

These use real threads with short delays. Assertions wait on events with
generous timeouts so slow CI machines do not cause false failures.
"""

from __future__ import annotations

import threading
import time

import pytest

from climaneer.runtime.timers import CancellableTimer, RepeatingTimer, ThreadingTimerFactory


def test_call_later_fires_once() -> None:
    fired = threading.Event()
    handle = ThreadingTimerFactory().call_later(0.05, fired.set, name="t")

    assert fired.wait(2.0)
    deadline = time.monotonic() + 2.0
    while handle.active and time.monotonic() < deadline:
        time.sleep(0.01)
    assert not handle.active


def test_cancelled_timer_never_fires() -> None:
    fired = threading.Event()
    handle = CancellableTimer(0.2, fired.set).start()

    handle.cancel()
    handle.cancel()

    assert not handle.active
    assert not fired.wait(0.4)


def test_failing_callback_is_contained() -> None:
    def boom() -> None:
        raise RuntimeError("callback bug")

    ran = threading.Event()
    ThreadingTimerFactory().call_later(0.01, boom)
    ThreadingTimerFactory().call_later(0.05, ran.set)

    assert ran.wait(2.0)


def test_repeating_timer_runs_now_and_stops() -> None:
    calls = []
    enough = threading.Event()

    def tick() -> None:
        calls.append(time.monotonic())
        if len(calls) >= 3:
            enough.set()

    timer = RepeatingTimer(0.05, tick, run_now=True).start()
    assert enough.wait(2.0)
    timer.cancel()
    timer.join()

    n = len(calls)
    time.sleep(0.2)
    assert len(calls) == n
    assert not timer.active


def test_repeating_timer_can_cancel_itself() -> None:
    calls = []
    holder = {}

    def tick() -> None:
        calls.append(1)
        holder["t"].cancel()

    holder["t"] = RepeatingTimer(0.02, tick, run_now=False)
    holder["t"].start()
    holder["t"].join()

    assert calls == [1]


@pytest.mark.stress
def test_many_timers_cancelled_concurrently() -> None:
    """Half of 200 timers are cancelled from other threads; only the rest fire."""
    fired = []
    lock = threading.Lock()

    def mark(i: int):
        def fn() -> None:
            with lock:
                fired.append(i)
        return fn

    handles = [CancellableTimer(0.3, mark(i)).start() for i in range(200)]
    cancellers = [threading.Thread(target=h.cancel) for h in handles[::2]]
    for t in cancellers:
        t.start()
    for t in cancellers:
        t.join(timeout=2)

    time.sleep(1.0)

    assert sorted(fired) == list(range(1, 200, 2))
