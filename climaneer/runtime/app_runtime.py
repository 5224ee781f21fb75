from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence

from climaneer.core.state_store import StateStore
from climaneer.notification.notification_thread import NotificationWorkerThread
from climaneer.runtime.event_bus import EventBus
from climaneer.runtime.notification_adapter_thread import EventSink, NotificationAdapterThread
from climaneer.runtime.poller_thread import PollerThread
from climaneer.services.controller import DashboardController
from climaneer.services.scheduler import PumpScheduler
from climaneer.voice.session import VoiceSession

log = logging.getLogger(__name__)


class AppRuntime:
    """
    Thread supervisor for the engine.

    This class owns:
    - a shared stop event
    - thread lifecycles (start/stop/join)
    - the scheduler's and voice session's timers (cancelled on stop)

    Thread Topology
    ---------------
    1) PollerThread (I/O + business logic)
       - calls DashboardController.poll_once() every poll interval
       - controller updates StateStore, runs AlertEngine and publishes
         alerts/notices into the EventBus

    2) NotificationAdapterThread (adapter)
       - drains the EventBus
       - hands events to local sinks (console)
       - forwards alerts to the NotificationWorkerThread

    3) Timer threads
       - scheduler periodic check and off timer
       - voice session stop/restart delays

    Notes
    -----
    All threads are daemon threads; `stop()` still cancels timers and joins
    threads for a clean shutdown.
    """

    def __init__(
        self,
        controller: DashboardController,
        bus: EventBus,
        store: StateStore,
        scheduler: PumpScheduler,
        notifier: Optional[NotificationWorkerThread] = None,
        voice: Optional[VoiceSession] = None,
        sinks: Sequence[EventSink] = (),
    ):
        self._store = store
        self._scheduler = scheduler
        self._notifier = notifier
        self._voice = voice
        self._stop = threading.Event()

        self._poller = PollerThread(
            controller=controller,
            interval_s=lambda: store.settings.poll_interval_ms / 1000.0,
            stop_event=self._stop,
        )
        self._notify_adapter = NotificationAdapterThread(
            bus=bus,
            store=store,
            notifier=notifier,
            stop_event=self._stop,
            sinks=sinks,
        )

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        """
        Start all runtime threads.

        Notes
        -----
        The notification side starts first so no event published by the
        first poll is left waiting; the scheduler is armed last.
        """
        if self._notifier is not None:
            self._notifier.start()
        self._notify_adapter.start()
        self._poller.start()
        self._scheduler.start()
        log.info("[RUNTIME] started")

    def stop(self) -> None:
        """Cancel timers, stop threads and wait briefly for shutdown."""
        self._scheduler.stop()
        if self._voice is not None:
            self._voice.close()

        self._poller.stop()
        self._notify_adapter.stop()

        self._poller.join(timeout=2.0)
        self._notify_adapter.join(timeout=2.0)
        if self._notifier is not None:
            self._notifier.stop()
        log.info("[RUNTIME] stopped")
