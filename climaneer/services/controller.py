from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from climaneer.core.alert.alert_engine import AlertEngine
from climaneer.core.mapper import map_controls, map_recommendation, map_sensors
from climaneer.core.state_store import StateStore
from climaneer.core.timeutil import utc_now
from climaneer.domain.events import Notice, NoticeVariant
from climaneer.domain.models import Alert, PumpStatus, SensorReading, SystemStatus
from climaneer.gateway.errors import GatewayError
from climaneer.gateway.rtdb_client import GatewayState
from climaneer.runtime.event_bus import EventBus

log = logging.getLogger(__name__)


class StateReader(Protocol):
    def fetch_state(self) -> GatewayState:
        ...


@dataclass(frozen=True)
class PollResult:
    """
    Outcome of one poll cycle.

    Parameters
    ----------
    ok
        True if the gateway answered and the state was updated.
    skipped
        True if another poll was already running; nothing was done.
    reading, status
        Mapped values of this poll (None if absent or on failure).
    alerts
        Alerts fired by this poll.
    error
        Error text of a failed poll.
    """

    ok: bool
    skipped: bool = False
    reading: Optional[SensorReading] = None
    status: Optional[SystemStatus] = None
    alerts: List[Alert] = field(default_factory=list)
    error: Optional[str] = None


class DashboardController:
    """
    Orchestrate one poll cycle.

    Responsibilities
    ----------------
    - Fetch the gateway document.
    - Map it into a reading, a pump/control status and an AI recommendation.
    - Update the `StateStore` (latest values, trends, history, accounting).
    - Run the `AlertEngine` and publish fired alerts to the `EventBus`.
    - Track connectivity and publish "Offline" / "Back Online" notices on
      the edges.

    Notes
    -----
    - A non-blocking busy lock makes overlapping polls (a manual refresh
      during a scheduled tick) return immediately with ``skipped=True``.
    - On a gateway failure the last known good data stays in the store.
    - A pump write made while a fetch is in flight wins over the fetched
      pump flag, and no pump listener fires for it.

    Parameters
    ----------
    gateway
        Object with ``fetch_state()`` (the RTDB client).
    store
        Shared application state.
    alert_engine
        Threshold/cooldown engine.
    bus
        Optional event bus for alerts and notices.
    clock
        Time source used when ``poll_once`` is called without ``now``.
    """

    def __init__(
        self,
        gateway: StateReader,
        store: StateStore,
        alert_engine: AlertEngine,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._gateway = gateway
        self._store = store
        self._alert_engine = alert_engine
        self._bus = bus
        self._clock = clock
        self._busy = threading.Lock()
        self._pump_listeners: List[Callable[[PumpStatus], None]] = []

    def add_pump_listener(self, listener: Callable[[PumpStatus], None]) -> None:
        """Register a callback for pump status changes observed by polls."""
        self._pump_listeners.append(listener)

    def _notice(self, title: str, description: str, ts: datetime, variant: NoticeVariant = NoticeVariant.DEFAULT) -> None:
        if self._bus is not None:
            self._bus.publish_notice(Notice(title=title, description=description, timestamp=ts, variant=variant))

    def poll_once(self, now: Optional[datetime] = None) -> PollResult:
        """
        Run one poll cycle.

        Parameters
        ----------
        now
            Poll time. Defaults to the controller clock.

        Returns
        -------
        PollResult
            What this cycle did. Gateway failures are reported here, not
            raised.
        """
        if not self._busy.acquire(blocking=False):
            log.debug("[POLL] previous poll still running, skipped")
            return PollResult(ok=False, skipped=True)
        try:
            return self._poll(now or self._clock())
        finally:
            self._busy.release()

    def _poll(self, ts: datetime) -> PollResult:
        pump_version = self._store.pump_version
        try:
            state = self._gateway.fetch_state()
        except GatewayError as e:
            if self._store.set_online(False):
                log.warning("[POLL] gateway unreachable, keeping last known data: %s", e)
                self._notice("Offline", "You're viewing cached data", ts, NoticeVariant.DESTRUCTIVE)
            else:
                log.debug("[POLL] gateway still unreachable: %s", e)
            return PollResult(ok=False, error=str(e))

        if self._store.set_online(True):
            log.info("[POLL] gateway reachable again")
            self._notice("Back Online", "Connection restored. Syncing data...", ts)

        reading = map_sensors(state.sensors, now=ts)
        status = map_controls(state.controls)

        fired: List[Alert] = []
        if reading is not None:
            self._store.record_reading(reading, ts)
            fired = self._alert_engine.evaluate(reading, self._store.settings, now=ts, store=self._store)
            if self._bus is not None:
                for alert in fired:
                    self._bus.publish_alert(alert)

        if status is not None:
            polled = status.pump_status
            previous, status = self._store.apply_polled_status(status, pump_version)
            if status.pump_status != polled:
                log.debug("[POLL] pump write landed during fetch, keeping local %s", status.pump_status.value)
            self._store.apply_pump_accounting(status.pump_running, ts)
            if previous != status.pump_status:
                log.info("[POLL] pump %s -> %s", previous.value, status.pump_status.value)
                for listener in list(self._pump_listeners):
                    try:
                        listener(status.pump_status)
                    except Exception:
                        log.exception("[POLL] pump listener failed")

        if state.ai is not None:
            self._store.set_ai_recommendation(map_recommendation(state.ai))

        return PollResult(ok=True, reading=reading, status=status, alerts=fired)

    def refresh(self, now: Optional[datetime] = None) -> PollResult:
        """
        User-triggered poll with "Refreshing" / "Updated" notices.
        """
        ts = now or self._clock()
        self._notice("Refreshing", "Updating sensor data...", ts)
        result = self.poll_once(ts)
        if result.ok:
            self._notice("Updated", "All sensor data refreshed", ts)
        elif not result.skipped:
            self._notice("Refresh failed", result.error or "unknown error", ts, NoticeVariant.DESTRUCTIVE)
        return result
