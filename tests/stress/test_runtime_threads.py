"""
Threading tests for the runtime threads:
- PollerThread ticks the controller and waits its interval between polls
- NotificationAdapterThread drains the bus to sinks and the notifier
- NotificationWorkerThread retries a flaky notifier
- AppRuntime starts and stops the whole set

Controllers and notifiers are small in-file doubles; no network is used.
"""

from __future__ import annotations

import threading
import time
from typing import List

import pytest

from climaneer.core.state_store import StateStore
from climaneer.domain.events import Notice
from climaneer.domain.models import Alert, AlertType
from climaneer.notification.base import NotificationEvent
from climaneer.notification.notification_thread import NotificationThreadConfig, NotificationWorkerThread
from climaneer.runtime.app_runtime import AppRuntime
from climaneer.runtime.event_bus import EventBus
from climaneer.runtime.notification_adapter_thread import NotificationAdapterThread
from climaneer.runtime.poller_thread import PollerThread


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _alert(i: int) -> Alert:
    return Alert(id=f"danger-{i}", type=AlertType.DANGER, title="Low Battery", message=f"m{i}",
                 timestamp="2026-01-01T00:00:00.000Z")


class CountingController:
    def __init__(self, fail_every: int = 0) -> None:
        self.calls = 0
        self.fail_every = fail_every

    def poll_once(self) -> None:
        self.calls += 1
        if self.fail_every and self.calls % self.fail_every == 0:
            raise RuntimeError("unexpected")


class FlakyNotifier:
    """Fails the first ``failures`` deliveries, then succeeds."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.attempts = 0
        self.delivered: List[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("webhook down")
        self.delivered.append(event)


def test_poller_polls_immediately_and_survives_errors() -> None:
    controller = CountingController(fail_every=2)
    stop = threading.Event()
    poller = PollerThread(controller=controller, interval_s=lambda: 0.01, stop_event=stop)  # type: ignore[arg-type]

    poller.start()
    assert _wait_for(lambda: controller.calls >= 5)
    poller.stop()
    poller.join()

    assert poller.ticks >= 5
    calls = controller.calls
    time.sleep(0.1)
    assert controller.calls == calls


def test_poller_waits_between_polls_and_stops_promptly() -> None:
    controller = CountingController()
    stop = threading.Event()
    interval = {"s": 10.0}
    poller = PollerThread(controller=controller, interval_s=lambda: interval["s"], stop_event=stop)  # type: ignore[arg-type]

    poller.start()
    assert _wait_for(lambda: controller.calls == 1)
    time.sleep(0.1)
    assert controller.calls == 1

    # a stopped poller wakes up immediately
    stop.set()
    poller.join(timeout=1.0)
    assert controller.calls == 1


def test_adapter_routes_events() -> None:
    bus = EventBus()
    store = StateStore()
    notifier = FlakyNotifier(failures=0)
    worker = NotificationWorkerThread([notifier], NotificationThreadConfig(retry_backoff_s=0.01, poll_timeout_s=0.05))
    seen: List[object] = []
    stop = threading.Event()
    adapter = NotificationAdapterThread(bus=bus, store=store, notifier=worker, stop_event=stop, sinks=[seen.append])

    def broken_sink(_ev) -> None:
        raise RuntimeError("sink bug")

    adapter._sinks.insert(0, broken_sink)

    worker.start()
    adapter.start()
    notice = Notice(title="Back Online", description="Connection restored", timestamp=None)  # type: ignore[arg-type]
    bus.publish_notice(notice)
    bus.publish_alert(_alert(1))

    assert _wait_for(lambda: len(notifier.delivered) == 1)
    stop.set()
    adapter.join()
    worker.stop()

    assert seen == [notice, _alert(1)]
    [event] = notifier.delivered
    assert event.type == "alert_event"
    assert event.severity == "danger"
    assert event.source == "Low Battery"
    assert event.payload["alert"]["id"] == "danger-1"
    assert event.alert_id == "danger-1"


def test_worker_retries_until_delivered() -> None:
    notifier = FlakyNotifier(failures=2)
    worker = NotificationWorkerThread(
        [notifier], NotificationThreadConfig(retry_count=3, retry_backoff_s=0.01, poll_timeout_s=0.05)
    )
    worker.start()

    worker.emit(NotificationEvent(type="alert_event", payload={"i": 1}))

    assert _wait_for(lambda: worker.delivered == 1)
    worker.stop()
    assert notifier.attempts == 3
    assert worker.failed == 0


def test_worker_gives_up_after_retries() -> None:
    notifier = FlakyNotifier(failures=100)
    worker = NotificationWorkerThread(
        [notifier], NotificationThreadConfig(retry_count=2, retry_backoff_s=0.01, poll_timeout_s=0.05)
    )
    worker.start()

    worker.emit(NotificationEvent(type="alert_event", payload={}))

    assert _wait_for(lambda: worker.failed == 1)
    worker.stop()
    assert notifier.attempts == 3
    assert worker.delivered == 0


def test_worker_drops_when_queue_full() -> None:
    worker = NotificationWorkerThread([FlakyNotifier(0)], NotificationThreadConfig(max_queue=2))

    for i in range(5):
        worker.emit(NotificationEvent(type="alert_event", payload={"i": i}))

    # not started, so nothing was consumed
    assert worker._q.qsize() == 2


@pytest.mark.stress
def test_adapter_under_concurrent_publishers() -> None:
    """Eight producers publish alerts while the adapter drains them to a sink."""
    bus = EventBus()
    store = StateStore()
    received: List[object] = []
    stop = threading.Event()
    adapter = NotificationAdapterThread(bus=bus, store=store, notifier=None, stop_event=stop, sinks=[received.append])
    adapter.start()

    start = threading.Barrier(8)
    errors: List[BaseException] = []

    def producer(tid: int) -> None:
        try:
            start.wait()
            for k in range(250):
                bus.publish_alert(_alert(tid * 10_000 + k))
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=producer, args=(t,)) for t in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert not errors
    assert _wait_for(lambda: len(received) == 8 * 250, timeout=10.0)
    stop.set()
    adapter.join()
    assert bus.dropped == 0


class StubScheduler:
    def __init__(self) -> None:
        self.started = 0
        self.stopped = 0

    def start(self) -> None:
        self.started += 1

    def stop(self) -> None:
        self.stopped += 1


def test_app_runtime_start_stop() -> None:
    controller = CountingController()
    scheduler = StubScheduler()
    store = StateStore()
    bus = EventBus()
    seen: List[object] = []
    runtime = AppRuntime(
        controller=controller,  # type: ignore[arg-type]
        bus=bus,
        store=store,
        scheduler=scheduler,  # type: ignore[arg-type]
        sinks=[seen.append],
    )

    runtime.start()
    assert _wait_for(lambda: controller.calls >= 1)
    bus.publish_alert(_alert(7))
    assert _wait_for(lambda: seen == [_alert(7)])
    runtime.stop()

    assert runtime.stopped
    assert (scheduler.started, scheduler.stopped) == (1, 1)
