from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import List

from climaneer.notification.base import NotificationEvent, Notifier

log = logging.getLogger(__name__)

_STOP = "__stop__"


@dataclass(frozen=True)
class NotificationThreadConfig:
    """
    Delivery policy of the notification worker.

    Parameters
    ----------
    max_queue
        Maximum number of pending events; newer events are dropped beyond it.
    retry_count
        Retries per notifier after the first failed attempt.
    retry_backoff_s
        Base backoff; attempt ``n`` waits ``retry_backoff_s * 2**n``.
    poll_timeout_s
        Queue wait timeout, bounds the reaction time to :meth:`stop`.
    """

    max_queue: int = 2000
    retry_count: int = 3
    retry_backoff_s: float = 0.5
    poll_timeout_s: float = 0.5


class NotificationWorkerThread:
    """
    Deliver notification events to notifiers on a dedicated thread.

    Network I/O never runs on the poll thread: producers call :meth:`emit`,
    which only enqueues. Each event is handed to every notifier with
    exponential-backoff retries; an event that still fails is logged and
    dropped.
    """

    def __init__(self, notifiers: List[Notifier], cfg: NotificationThreadConfig | None = None):
        self._notifiers = notifiers
        self._cfg = cfg or NotificationThreadConfig()
        self._q: "queue.Queue[NotificationEvent]" = queue.Queue(maxsize=self._cfg.max_queue)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="notification-worker", daemon=True)
        self.delivered = 0
        self.failed = 0

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._q.put_nowait(NotificationEvent(type=_STOP, payload={}))
        except queue.Full:
            pass
        self._thread.join(timeout=2.0)
        for notifier in self._notifiers:
            close = getattr(notifier, "close", None)
            if close is not None:
                close()

    def emit(self, event: NotificationEvent) -> None:
        try:
            self._q.put_nowait(event)
        except queue.Full:
            log.warning("[NOTIFY] queue full, dropped %s", event.type)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._q.get(timeout=self._cfg.poll_timeout_s)
            except queue.Empty:
                continue

            if event.type == _STOP:
                break

            for notifier in self._notifiers:
                self._send_with_retries(notifier, event)

    def _send_with_retries(self, notifier: Notifier, event: NotificationEvent) -> None:
        for attempt in range(self._cfg.retry_count + 1):
            try:
                notifier.notify(event)
                self.delivered += 1
                return
            except Exception as e:
                if attempt >= self._cfg.retry_count:
                    self.failed += 1
                    log.warning("[NOTIFY] giving up on %s after %d attempts: %r", event.type, attempt + 1, e)
                    return
                if self._stop.wait(self._cfg.retry_backoff_s * (2 ** attempt)):
                    return
