"""
Control-mode coordination.

The coordinator is the only component that writes pump and mode changes to
the gateway. It owns the local ``Settings.control_mode`` transitions:

- automatic -> manual / scheduled and back happen only on explicit calls
- the pump flag is updated optimistically and rolled back on failure
- mode and schedule changes apply locally only after the write succeeded

All writes go through one lock, so concurrent callers (user actions, the
scheduler's timers, the voice layer) are linearized and the last action's
write is the last one the gateway sees.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from climaneer.core.state_store import StateStore
from climaneer.core.timeutil import to_iso, utc_now
from climaneer.domain.events import Notice, NoticeVariant
from climaneer.domain.models import ControlMode, PumpStatus, Settings
from climaneer.gateway.errors import GatewayError
from climaneer.runtime.event_bus import EventBus

log = logging.getLogger(__name__)

# Mode string the device firmware understands as "automatic".
REMOTE_AUTO_MODE = "FIREBASE"


class ControlsWriter(Protocol):
    def patch_controls(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def put_controls(self, document: Dict[str, Any]) -> Dict[str, Any]:
        ...


class ChangeKind(str, Enum):
    """
    What a coordinator call changed.

    Members
    -------
    PUMP : str
        The local pump flag changed.
    MODE : str
        ``Settings.control_mode`` changed.
    SCHEDULE : str
        ``Settings.scheduled_settings`` changed.
    """

    PUMP = "pump"
    MODE = "mode"
    SCHEDULE = "schedule"


@dataclass(frozen=True)
class ControlChange:
    """Change notification passed to coordinator listeners."""

    kind: ChangeKind
    settings: Settings
    pump_status: PumpStatus


ControlListener = Callable[[ControlChange], None]


def remote_mode(mode: ControlMode) -> str:
    """Map a local control mode to the ``mode`` string written to the gateway."""
    if mode == ControlMode.MANUAL:
        return "manual"
    if mode == ControlMode.SCHEDULED:
        return "scheduled"
    return REMOTE_AUTO_MODE


class ControlModeCoordinator:
    """
    Serialize pump/mode writes and keep local state consistent with them.

    Parameters
    ----------
    gateway
        Object with ``patch_controls`` / ``put_controls`` (the RTDB client).
    store
        Shared application state.
    bus
        Optional event bus for user notices.
    clock
        Time source for write timestamps.
    """

    def __init__(
        self,
        gateway: ControlsWriter,
        store: StateStore,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._gateway = gateway
        self._store = store
        self._bus = bus
        self._clock = clock
        self._write_lock = threading.Lock()
        self._listeners: List[ControlListener] = []

    def add_listener(self, listener: ControlListener) -> None:
        """
        Register a callback invoked after pump, mode or schedule changes.

        Listeners run on the caller's thread after the write lock is released.
        Exceptions raised by a listener are logged and ignored.
        """
        self._listeners.append(listener)

    def _notify(self, kind: ChangeKind) -> None:
        change = ControlChange(
            kind=kind,
            settings=self._store.settings,
            pump_status=self._store.system_status.pump_status,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                log.exception("[COORD] listener failed for %s change", kind.value)

    def _notice(self, title: str, description: str, variant: NoticeVariant = NoticeVariant.DEFAULT) -> None:
        if self._bus is None:
            return
        self._bus.publish_notice(Notice(title=title, description=description, timestamp=self._clock(), variant=variant))

    def toggle_pump(self, turn_on: bool) -> None:
        """
        Switch the pump on or off.

        The local pump flag flips immediately; the gateway write also puts the
        device into manual override.

        Raises
        ------
        GatewayError
            If the write fails. The pump flag is restored to its value before
            the call.
        """
        with self._write_lock:
            target = PumpStatus.RUNNING if turn_on else PumpStatus.STOPPED
            previous = self._store.set_pump_status(target)
            try:
                self._gateway.patch_controls({
                    "pump": turn_on,
                    "manual_override": True,
                    "mode": "manual",
                    "last_manual_pump_change": to_iso(self._clock()),
                })
            except GatewayError as e:
                self._store.set_pump_status(previous)
                log.warning("[COORD] pump %s failed, rolled back to %s: %s", "on" if turn_on else "off", previous.value, e)
                self._notice("Failed to toggle pump", str(e), NoticeVariant.DESTRUCTIVE)
                raise
        log.info("[COORD] pump %s", "on" if turn_on else "off")
        self._notice(f"Pump {'enabled' if turn_on else 'disabled'}", "Control updated on the device")
        self._notify(ChangeKind.PUMP)

    def _switch_mode(self, mode: ControlMode, fields: Dict[str, Any], failure_title: str) -> None:
        with self._write_lock:
            try:
                self._gateway.patch_controls(fields)
            except GatewayError as e:
                log.warning("[COORD] switch to %s failed: %s", mode.value, e)
                self._notice(failure_title, str(e), NoticeVariant.DESTRUCTIVE)
                raise
            before = self._store.settings
            self._store.set_settings(replace(before, control_mode=mode))
        log.info("[COORD] control mode %s -> %s", before.control_mode.value, mode.value)
        if before.control_mode != mode:
            self._notify(ChangeKind.MODE)

    def switch_to_auto_mode(self) -> None:
        """
        Return the device to automatic control.

        Raises
        ------
        GatewayError
            If the write fails; the local mode is left unchanged.
        """
        self._switch_mode(
            ControlMode.AUTOMATIC,
            {"manual_override": False, "mode": REMOTE_AUTO_MODE, "last_mode_change": to_iso(self._clock())},
            "Failed to switch to auto mode",
        )
        self._notice("Auto Mode Enabled", "System returned to automatic control")

    def switch_to_manual_mode(self) -> None:
        """
        Put the device into manual control.

        Raises
        ------
        GatewayError
            If the write fails; the local mode is left unchanged.
        """
        self._switch_mode(
            ControlMode.MANUAL,
            {"manual_override": True, "mode": "manual", "last_mode_change": to_iso(self._clock())},
            "Failed to switch to manual mode",
        )
        self._notice("Manual Mode Enabled", "System switched to manual control")

    def save_settings(self, new: Settings) -> None:
        """
        Apply and upload new settings.

        Thresholds and preferences apply (and persist) immediately. The
        controls document is then replaced on the gateway; only once that
        succeeds do ``control_mode`` and ``scheduled_settings`` take effect
        locally.

        Parameters
        ----------
        new
            Complete settings as edited by the user.

        Raises
        ------
        GatewayError
            If the upload fails. The previous mode and schedule stay active.
        """
        with self._write_lock:
            before = self._store.settings
            self._store.set_settings(
                replace(new, control_mode=before.control_mode, scheduled_settings=before.scheduled_settings)
            )
            self._notice("Settings Saved", "Your preferences have been updated")

            document: Dict[str, Any] = {
                "pump": self._store.system_status.pump_running,
                "manual_override": new.control_mode == ControlMode.MANUAL,
                "mode": remote_mode(new.control_mode),
                "last_settings_saved_at": to_iso(self._clock()),
            }
            if new.control_mode == ControlMode.SCHEDULED:
                sched = new.scheduled_settings
                document.update({
                    "scheduled_start_time": sched.start_time,
                    "scheduled_end_time": sched.end_time,
                    "scheduled_duration_minutes": sched.duration_minutes,
                    "scheduled_enabled": sched.enabled,
                })

            try:
                self._gateway.put_controls(document)
            except GatewayError as e:
                log.warning("[COORD] settings upload failed, keeping mode %s: %s", before.control_mode.value, e)
                self._notice("Sync failed", str(e), NoticeVariant.DESTRUCTIVE)
                raise

            self._store.set_settings(new)
        log.info("[COORD] settings synced (mode=%s)", new.control_mode.value)
        self._notice("Settings synced", "Settings uploaded to the device")

        if before.control_mode != new.control_mode:
            self._notify(ChangeKind.MODE)
        elif before.scheduled_settings != new.scheduled_settings:
            self._notify(ChangeKind.SCHEDULE)

    def clear_override(self) -> None:
        """
        Hand control back to the device without touching the local mode.

        Used at the end of a scheduled cycle. The local ``control_mode``
        stays as it is, so the scheduler keeps running.

        Raises
        ------
        GatewayError
            If the write fails.
        """
        with self._write_lock:
            self._gateway.patch_controls({"manual_override": False, "mode": REMOTE_AUTO_MODE})
