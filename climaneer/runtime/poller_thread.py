from __future__ import annotations

import logging
import threading
from typing import Callable

from climaneer.services.controller import DashboardController

log = logging.getLogger(__name__)


class PollerThread:
    """
    Background thread that drives the poll cycle.

    Responsibilities
    ----------------
    - Call `DashboardController.poll_once()` immediately, then once per poll
      interval.
    - Re-read the interval before every wait, so a settings change takes
      effect on the next tick.

    Concurrency Model
    -----------------
    - Waits on the stop event, so :meth:`stop` interrupts the sleep.
    - Exceptions escaping the controller are caught and logged to keep the
      thread alive; gateway failures are already handled by the controller.

    Parameters
    ----------
    controller
        Poll cycle orchestrator.
    interval_s
        Callable returning the current poll interval in seconds.
    stop_event
        Thread stop signal.
    """

    def __init__(
        self,
        controller: DashboardController,
        interval_s: Callable[[], float],
        stop_event: threading.Event,
    ):
        self._controller = controller
        self._interval_s = interval_s
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name="poller", daemon=True)
        self.ticks = 0

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
                self._controller.poll_once()
            except Exception:
                log.exception("[POLL] poll cycle failed")
            self.ticks += 1
            self._stop.wait(max(0.05, self._interval_s()))
