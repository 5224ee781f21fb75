from __future__ import annotations

import logging
import threading
from queue import Empty
from typing import Callable, Optional, Sequence

from climaneer.core.state_store import StateStore
from climaneer.domain.models import Alert
from climaneer.notification.base import NotificationEvent
from climaneer.notification.notification_thread import NotificationWorkerThread
from climaneer.notification.payload import build_alert_webhook_payload
from climaneer.runtime.event_bus import BusEvent, EventBus

log = logging.getLogger(__name__)

EventSink = Callable[[BusEvent], None]


class NotificationAdapterThread:
    """
    Adapter thread that drains the `EventBus`.

    Responsibilities
    ----------------
    - Consume alerts and notices from `EventBus.events_q`.
    - Hand every event to the local sinks (console printer, UI bridge).
    - For alerts, build a webhook payload snapshot from the `StateStore` and
      emit a `NotificationEvent` into the `NotificationWorkerThread`.

    Concurrency Model
    -----------------
    - Runs as a daemon thread.
    - Polls the queue with a timeout to remain responsive to stop signals.
    - Exceptions from sinks or payload building are caught and logged per
      event.

    Parameters
    ----------
    bus
        Event bus to drain.
    store
        StateStore used for payload totals.
    notifier
        Outbound notification worker, or None if no webhook is configured.
    stop_event
        Stop signal for the thread.
    sinks
        Local consumers called with every event.
    """

    def __init__(
        self,
        bus: EventBus,
        store: StateStore,
        notifier: Optional[NotificationWorkerThread],
        stop_event: threading.Event,
        sinks: Sequence[EventSink] = (),
    ):
        self._bus = bus
        self._store = store
        self._notifier = notifier
        self._stop = stop_event
        self._sinks = list(sinks)
        self._thread = threading.Thread(target=self._run, name="notification-adapter", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                ev = self._bus.events_q.get(timeout=0.5)
            except Empty:
                continue
            self.handle(ev)

    def handle(self, ev: BusEvent) -> None:
        """Dispatch one event to the sinks and, for alerts, the notifier."""
        for sink in self._sinks:
            try:
                sink(ev)
            except Exception:
                log.exception("[NOTIFY-ADAPTER] sink failed")

        if self._notifier is None or not isinstance(ev, Alert):
            return
        try:
            payload = build_alert_webhook_payload(self._store, ev)
            self._notifier.emit(NotificationEvent.for_alert(ev, payload))
        except Exception:
            log.exception("[NOTIFY-ADAPTER] failed to build notification for %s", ev.title)
