from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

from climaneer.core import accounting as acct
from climaneer.core.state.alert_store import AlertStore
from climaneer.core.state.history_store import HistoryStore
from climaneer.core.state.settings_store import SettingsStore
from climaneer.core.state.trend_store import TrendStore
from climaneer.core.timeutil import to_iso, utc_now
from climaneer.domain.models import (
    Alert,
    HistoryEntry,
    PumpStatus,
    ScheduleSlot,
    SensorReading,
    Settings,
    SystemStatus,
    TrendStatistics,
)


@dataclass
class StateStore:
    """
    Thread-safe facade for application state.

    `StateStore` aggregates and coordinates access to:
    - the latest sensor reading, pump/control status and AI recommendation
    - the active user settings and legacy schedule slots
    - the trend buffer, poll history and alert list
    - pump runtime / water usage accounting
    - the gateway connectivity flag

    Concurrency Model
    -----------------
    All reads/writes are guarded by a single re-entrant lock
    (`threading.RLock`). The poll thread, scheduler timers, the voice layer and
    console consumers all go through this facade; the sub-stores themselves
    are not thread-safe.

    Design Notes
    ------------
    - Snapshot properties return copies (or immutable records) so callers can
      iterate without holding the lock.
    - Persistence of settings and slots goes through `settings_store`;
      trends persist themselves on every mutation.

    Attributes
    ----------
    trends
        24h rolling buffer of readings.
    history
        Newest-first poll history.
    alerts
        Newest-first alert list.
    settings_store
        Local persistence of settings, theme and schedule slots.
    """

    trends: TrendStore = field(default_factory=TrendStore)
    history: HistoryStore = field(default_factory=HistoryStore)
    alerts: AlertStore = field(default_factory=AlertStore)
    settings_store: SettingsStore = field(default_factory=SettingsStore)

    _reading: Optional[SensorReading] = field(default=None, init=False, repr=False)
    _status: SystemStatus = field(default_factory=SystemStatus.fallback, init=False, repr=False)
    _ai_recommendation: Optional[str] = field(default=None, init=False, repr=False)
    _settings: Settings = field(default_factory=Settings, init=False, repr=False)
    _slots: List[ScheduleSlot] = field(default_factory=list, init=False, repr=False)
    _online: bool = field(default=True, init=False, repr=False)
    _accounting: acct.PumpAccounting = field(default_factory=acct.PumpAccounting, init=False, repr=False)
    _pump_version: int = field(default=0, init=False, repr=False)

    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def load(self, default_settings: Optional[Settings] = None) -> None:
        """
        Restore persisted trends, settings and schedule slots.

        Parameters
        ----------
        default_settings
            Settings used for keys that are not persisted yet.
        """
        with self._lock:
            self.trends.load()
            self._settings = self.settings_store.load_settings(default_settings or Settings())
            self._slots = self.settings_store.load_slots()

    # --- Readings API ---
    @property
    def latest_reading(self) -> Optional[SensorReading]:
        """Latest mapped reading, or None before the first successful poll."""
        with self._lock:
            return self._reading

    def reading_or_fallback(self) -> SensorReading:
        """Latest reading, or the neutral placeholder reading."""
        with self._lock:
            if self._reading is not None:
                return self._reading
            return SensorReading.fallback(to_iso(utc_now()))

    def record_reading(self, reading: SensorReading, now: Optional[datetime] = None) -> HistoryEntry:
        """
        Make ``reading`` the latest one and add it to trends and history.

        Parameters
        ----------
        reading
            Mapped reading of a successful poll.
        now
            Poll time.

        Returns
        -------
        HistoryEntry
            The history entry recorded for this poll.
        """
        with self._lock:
            self._reading = reading
            self.trends.append(reading, now)
            return self.history.record(reading, now)

    # --- Status API ---
    @property
    def system_status(self) -> SystemStatus:
        with self._lock:
            return self._status

    def set_system_status(self, status: SystemStatus) -> None:
        with self._lock:
            self._status = status

    def set_pump_status(self, pump_status: PumpStatus) -> PumpStatus:
        """
        Replace only the pump flag of the current status.

        Returns
        -------
        PumpStatus
            The previous pump status, so callers can roll back.
        """
        with self._lock:
            previous = self._status.pump_status
            self._status = replace(self._status, pump_status=pump_status)
            self._pump_version += 1
            return previous

    @property
    def pump_version(self) -> int:
        """Counter bumped by every local pump write (including rollbacks)."""
        with self._lock:
            return self._pump_version

    def apply_polled_status(self, status: SystemStatus, seen_version: int) -> Tuple[PumpStatus, SystemStatus]:
        """
        Store a status read from the gateway.

        If a local pump write happened after the poll started (``seen_version``
        no longer matches), the document predates it, so the local pump flag
        is kept and only the other fields are taken from ``status``.

        Returns
        -------
        tuple
            ``(previous pump status, status actually stored)``.
        """
        with self._lock:
            previous = self._status.pump_status
            if seen_version != self._pump_version:
                status = replace(status, pump_status=previous)
            self._status = status
            return previous, status

    @property
    def ai_recommendation(self) -> Optional[str]:
        with self._lock:
            return self._ai_recommendation

    def set_ai_recommendation(self, text: Optional[str]) -> None:
        with self._lock:
            self._ai_recommendation = text

    @property
    def online(self) -> bool:
        with self._lock:
            return self._online

    def set_online(self, online: bool) -> bool:
        """
        Set the connectivity flag.

        Returns
        -------
        bool
            True if the flag changed.
        """
        with self._lock:
            changed = self._online != online
            self._online = online
            return changed

    # --- Settings API ---
    @property
    def settings(self) -> Settings:
        with self._lock:
            return self._settings

    def set_settings(self, settings: Settings, persist: bool = True) -> None:
        with self._lock:
            self._settings = settings
            if persist:
                self.settings_store.save_settings(settings)

    @property
    def schedule_slots(self) -> List[ScheduleSlot]:
        with self._lock:
            return list(self._slots)

    def set_schedule_slots(self, slots: List[ScheduleSlot], persist: bool = True) -> None:
        with self._lock:
            self._slots = list(slots)
            if persist:
                self.settings_store.save_slots(self._slots)

    # --- Alert API (used by AlertEngine) ---
    def add_alert(self, alert: Alert) -> None:
        with self._lock:
            self.alerts.add(alert)

    @property
    def alert_list(self) -> List[Alert]:
        """Snapshot copy of alerts, newest first."""
        with self._lock:
            return list(self.alerts.alerts)

    def mark_alert_read(self, alert_id: str) -> bool:
        with self._lock:
            return self.alerts.mark_read(alert_id)

    def dismiss_alert(self, alert_id: str) -> bool:
        with self._lock:
            return self.alerts.dismiss(alert_id)

    def clear_alerts(self) -> None:
        with self._lock:
            self.alerts.clear()

    def unread_alert_count(self) -> int:
        with self._lock:
            return self.alerts.unread_count()

    # --- Trends / history snapshots ---
    def trend_readings(self) -> List[SensorReading]:
        with self._lock:
            return self.trends.readings()

    def trend_statistics(self, since: Optional[datetime] = None) -> TrendStatistics:
        with self._lock:
            return self.trends.statistics(since)

    def history_entries(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self.history.entries)

    def clear_history(self) -> None:
        with self._lock:
            self.history.clear()

    # --- Pump accounting ---
    @property
    def accounting(self) -> acct.PumpAccounting:
        with self._lock:
            return self._accounting

    def apply_pump_accounting(self, running: bool, now: Optional[datetime] = None) -> acct.PumpAccounting:
        """
        Feed the polled pump level into the accounting.

        Sessions open on the off->on edge and close on the on->off edge using
        the latest flow rate.
        """
        ts = now or utc_now()
        with self._lock:
            flow = self._reading.flow_rate if self._reading is not None else 0.0
            self._accounting = acct.apply_pump_state(self._accounting, running, ts, flow)
            return self._accounting

    def pump_runtime_ms(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            return acct.runtime_ms(self._accounting, now or utc_now())

    def water_used_liters(self, now: Optional[datetime] = None) -> float:
        with self._lock:
            flow = self._reading.flow_rate if self._reading is not None else 0.0
            return acct.water_used_liters(self._accounting, now or utc_now(), flow)
