from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Set, Tuple

from climaneer.core.alert.alert_engine import AlertEngine
from climaneer.core.state_store import StateStore
from climaneer.core.timeutil import utc_now
from climaneer.domain.events import Notice
from climaneer.domain.models import AlertType, ControlMode, PumpStatus, ScheduleSlot
from climaneer.gateway.errors import GatewayError
from climaneer.runtime.event_bus import EventBus
from climaneer.runtime.timers import TimerFactory, TimerHandle, ThreadingTimerFactory
from climaneer.services.coordinator import ChangeKind, ControlChange, ControlModeCoordinator
from climaneer.services.schedule_window import ScheduleWindow, active_windows, occurrence_start

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Scheduler timing policy.

    Parameters
    ----------
    check_interval_s
        Period of the window check while scheduled mode is active.
    reactivate_in_window
        If True, the pump is switched on again whenever a check finds it off
        inside a window (level-triggered). If False, each occurrence of a
        window activates the pump at most once.
    off_retry_s
        Delay before retrying a scheduled shutoff whose write failed.
    """

    check_interval_s: float = 30.0
    reactivate_in_window: bool = True
    off_retry_s: float = 30.0


class PumpScheduler:
    """
    Time-window pump scheduler.

    While ``Settings.control_mode`` is scheduled, a periodic check (run once
    right away, then every ``check_interval_s``) switches the pump on when the
    current local time lies inside an active window and the pump is off. A
    one-shot timer switches it off again after the window's duration and hands
    control back to the device.

    Timer Model
    -----------
    - Exactly one periodic check and at most one off timer exist at a time.
    - A mode or schedule change cancels both and re-arms from the new
      settings.
    - The pump being switched off by anyone else cancels the pending off
      timer. The scheduler's own "on" never does.
    - A failed shutoff keeps an off timer pending, re-armed every
      ``off_retry_s`` until the pump is off.
    - Every callback carries the generation it was armed with and does nothing
      once the scheduler has been re-armed or stopped.

    Parameters
    ----------
    coordinator
        Performs the actual pump writes.
    store
        Shared state (settings, slots, pump status).
    alert_engine
        Optional engine used to record scheduler alerts.
    bus
        Optional event bus for notices and alerts.
    timers
        Timer factory. Defaults to real threading timers.
    cfg
        Timing policy.
    clock
        Local wall-clock time source for window checks.
    """

    def __init__(
        self,
        coordinator: ControlModeCoordinator,
        store: StateStore,
        alert_engine: Optional[AlertEngine] = None,
        bus: Optional[EventBus] = None,
        timers: Optional[TimerFactory] = None,
        cfg: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._coordinator = coordinator
        self._store = store
        self._alert_engine = alert_engine
        self._bus = bus
        self._timers = timers or ThreadingTimerFactory()
        self._cfg = cfg or SchedulerConfig()
        self._clock = clock

        self._lock = threading.RLock()
        self._generation = 0
        self._check_timer: Optional[TimerHandle] = None
        self._off_timer: Optional[TimerHandle] = None
        self._off_token = 0
        self._fired: Set[Tuple[str, datetime]] = set()

    # --- lifecycle ---
    def start(self) -> None:
        """Subscribe to coordinator changes and arm from the current settings."""
        self._coordinator.add_listener(self.on_control_change)
        self.rearm()

    def stop(self) -> None:
        """Cancel every timer. Pending callbacks become no-ops."""
        with self._lock:
            self._generation += 1
            self._cancel_check()
            self._cancel_off()

    @property
    def off_timer_pending(self) -> bool:
        with self._lock:
            return self._off_timer is not None

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._check_timer is not None

    # --- change handling ---
    def rearm(self) -> None:
        """
        Cancel both timers and start the periodic check if scheduled mode is
        active.
        """
        with self._lock:
            self._generation += 1
            self._cancel_check()
            self._cancel_off()
            self._fired.clear()

            if self._store.settings.control_mode != ControlMode.SCHEDULED:
                log.info("[SCHEDULE] idle (mode=%s)", self._store.settings.control_mode.value)
                return

            gen = self._generation
            self._check_timer = self._timers.call_every(
                self._cfg.check_interval_s,
                lambda: self._on_tick(gen),
                name="schedule-check",
                run_now=True,
            )
            log.info("[SCHEDULE] armed (every %.0fs)", self._cfg.check_interval_s)

    def on_control_change(self, change: ControlChange) -> None:
        """Coordinator listener."""
        if change.kind in (ChangeKind.MODE, ChangeKind.SCHEDULE):
            self.rearm()
        elif change.kind == ChangeKind.PUMP:
            self.on_pump_status(change.pump_status)

    def on_pump_status(self, status: PumpStatus) -> None:
        """
        React to a pump status change (from a write or a poll).

        Only a stop matters: it cancels the pending off timer.
        """
        if status == PumpStatus.RUNNING:
            return
        with self._lock:
            if self._off_timer is not None:
                log.info("[SCHEDULE] pump stopped externally, off timer cancelled")
            self._cancel_off()

    def update_slots(self, slots: list[ScheduleSlot]) -> None:
        """Replace (and persist) the daily slots, then re-arm."""
        self._store.set_schedule_slots(slots)
        self.rearm()

    # --- timers ---
    def _cancel_check(self) -> None:
        if self._check_timer is not None:
            self._check_timer.cancel()
            self._check_timer = None

    def _cancel_off(self) -> None:
        self._off_token += 1
        if self._off_timer is not None:
            self._off_timer.cancel()
            self._off_timer = None

    def _on_tick(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation:
                return
            self.check()

    # --- evaluation ---
    def check(self, now: Optional[datetime] = None) -> bool:
        """
        Run one window check.

        Parameters
        ----------
        now
            Local wall-clock time. Defaults to the scheduler clock.

        Returns
        -------
        bool
            True if the pump was switched on.
        """
        ts = now or self._clock()
        with self._lock:
            settings = self._store.settings
            if settings.control_mode != ControlMode.SCHEDULED:
                return False
            if self._store.system_status.pump_running or self._off_timer is not None:
                return False

            window = self._matching_window(ts)
            if window is None:
                return False
            return self._activate(window, ts)

    def _matching_window(self, now: datetime) -> Optional[ScheduleWindow]:
        for w in active_windows(self._store.settings, self._store.schedule_slots):
            started = occurrence_start(w.start, w.end, now)
            if started is None:
                continue
            if not self._cfg.reactivate_in_window and (w.key, started) in self._fired:
                continue
            return w
        return None

    def _activate(self, window: ScheduleWindow, now: datetime) -> bool:
        try:
            self._coordinator.toggle_pump(True)
        except GatewayError as e:
            log.warning("[SCHEDULE] could not start pump for %s: %s", window.key, e)
            return False

        started = occurrence_start(window.start, window.end, now)
        if started is not None:
            self._fired.add((window.key, started))

        log.info("[SCHEDULE] pump started for %s (%d min)", window.key, window.duration_minutes)
        self._publish_notice(
            "Scheduled Pump Started",
            f"Pump running until {window.end} (duration: {window.duration_minutes} min)",
        )
        self._raise_alert(
            AlertType.INFO,
            "Scheduled Watering",
            f"Pump started for {window.duration_minutes} minutes ({window.start}-{window.end})",
        )

        delay_s = window.duration_minutes * 60
        if delay_s > 0:
            self._arm_off(delay_s)
        return True

    def _arm_off(self, delay_s: float) -> None:
        self._off_token += 1
        gen, token = self._generation, self._off_token
        self._off_timer = self._timers.call_later(
            delay_s, lambda: self._on_off_timer(gen, token), name="schedule-off"
        )

    def _on_off_timer(self, gen: int, token: int) -> None:
        with self._lock:
            if gen != self._generation or token != self._off_token:
                return
            self._off_timer = None
            self._off_token += 1

        try:
            self._coordinator.toggle_pump(False)
        except GatewayError as e:
            with self._lock:
                # a re-arm or stop in the meantime owns the timers now
                if gen == self._generation and self._off_timer is None:
                    log.warning("[SCHEDULE] could not stop pump, retrying in %.0fs: %s", self._cfg.off_retry_s, e)
                    self._arm_off(self._cfg.off_retry_s)
                else:
                    log.warning("[SCHEDULE] could not stop pump: %s", e)
            return

        log.info("[SCHEDULE] scheduled cycle completed")
        self._publish_notice("Scheduled Pump Stopped", "Scheduled cycle completed. Pump turned off.")
        self._raise_alert(AlertType.SUCCESS, "Scheduled Watering Complete", "Scheduled watering cycle finished")

        try:
            self._coordinator.clear_override()
        except GatewayError as e:
            log.warning("[SCHEDULE] could not clear manual override: %s", e)

    # --- outputs ---
    def _publish_notice(self, title: str, description: str) -> None:
        if self._bus is not None:
            self._bus.publish_notice(Notice(title=title, description=description, timestamp=utc_now()))

    def _raise_alert(self, type: AlertType, title: str, message: str) -> None:
        if self._alert_engine is None:
            return
        alert = self._alert_engine.raise_alert(type, title, message, utc_now(), store=self._store)
        if alert is not None and self._bus is not None:
            self._bus.publish_alert(alert)
