"""
Cancellable timer handles.

The scheduler and the voice session never touch ``threading.Timer`` directly;
they ask a :class:`TimerFactory` for handles. Production code uses
:class:`ThreadingTimerFactory`, tests substitute a fake factory and fire the
callbacks by hand.

Every handle supports ``cancel()``, which is idempotent and safe to call from
any thread, including from inside the callback itself.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...

    @property
    def active(self) -> bool:
        ...


class TimerFactory(Protocol):
    """
    Protocol for creating timers.

    Methods
    -------
    call_later(delay_s, fn, name)
        Run ``fn`` once after ``delay_s`` seconds.
    call_every(interval_s, fn, name, run_now)
        Run ``fn`` every ``interval_s`` seconds until cancelled.
    """

    def call_later(self, delay_s: float, fn: Callable[[], None], name: str = "timer") -> TimerHandle:
        ...

    def call_every(
        self, interval_s: float, fn: Callable[[], None], name: str = "repeating-timer", run_now: bool = False
    ) -> TimerHandle:
        ...


def _run_logged(fn: Callable[[], None], name: str) -> None:
    try:
        fn()
    except Exception:
        log.exception("[TIMER] %s callback failed", name)


class CancellableTimer:
    """
    One-shot timer on a daemon thread.

    Parameters
    ----------
    delay_s
        Delay before ``fn`` runs.
    fn
        Callback. Exceptions are logged and swallowed.
    name
        Thread name, also used in log messages.
    """

    def __init__(self, delay_s: float, fn: Callable[[], None], name: str = "timer"):
        self._fn = fn
        self._name = name
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._timer = threading.Timer(delay_s, self._fire)
        self._timer.name = name
        self._timer.daemon = True

    def start(self) -> "CancellableTimer":
        self._timer.start()
        return self

    def _fire(self) -> None:
        if self._cancelled.is_set():
            return
        try:
            _run_logged(self._fn, self._name)
        finally:
            self._done.set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    @property
    def active(self) -> bool:
        return not (self._cancelled.is_set() or self._done.is_set())


class RepeatingTimer:
    """
    Periodic timer on a daemon thread.

    The callback runs every ``interval_s`` seconds (optionally once right
    away) until :meth:`cancel` is called. A slow callback delays the next run;
    runs never overlap.
    """

    def __init__(
        self,
        interval_s: float,
        fn: Callable[[], None],
        name: str = "repeating-timer",
        run_now: bool = False,
    ):
        self._interval_s = interval_s
        self._fn = fn
        self._name = name
        self._run_now = run_now
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thread.start()
        return self

    def _run(self) -> None:
        if self._run_now and not self._stop.is_set():
            _run_logged(self._fn, self._name)
        while not self._stop.wait(self._interval_s):
            _run_logged(self._fn, self._name)

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = 2.0) -> None:
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    @property
    def active(self) -> bool:
        return not self._stop.is_set()


class ThreadingTimerFactory:
    """Timer factory backed by real threads."""

    def call_later(self, delay_s: float, fn: Callable[[], None], name: str = "timer") -> CancellableTimer:
        return CancellableTimer(delay_s, fn, name=name).start()

    def call_every(
        self, interval_s: float, fn: Callable[[], None], name: str = "repeating-timer", run_now: bool = False
    ) -> RepeatingTimer:
        return RepeatingTimer(interval_s, fn, name=name, run_now=run_now).start()
