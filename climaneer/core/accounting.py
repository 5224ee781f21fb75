"""
Pump runtime and water usage accounting.

`PumpAccounting` is a value object updated by pure transition functions on
pump on/off edges. The state store keeps the current value and replaces it
whenever the polled pump status changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from climaneer.core.timeutil import as_utc

# Used when the flow sensor reports 0 L/min while the pump runs.
DEFAULT_FLOW_RATE_LPM = 2.5


@dataclass(frozen=True)
class PumpAccounting:
    """
    Accumulated pump usage.

    Parameters
    ----------
    total_runtime_ms
        Runtime of all completed pump sessions.
    total_water_used_liters
        Water pumped in all completed sessions.
    current_session_start
        Start of the running session, or None while the pump is off.
    """

    total_runtime_ms: int = 0
    total_water_used_liters: float = 0.0
    current_session_start: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self.current_session_start is not None


def _effective_flow(flow_rate_lpm: float) -> float:
    return flow_rate_lpm if flow_rate_lpm > 0 else DEFAULT_FLOW_RATE_LPM


def _session_ms(acc: PumpAccounting, now: datetime) -> int:
    if acc.current_session_start is None:
        return 0
    return max(0, int((as_utc(now) - as_utc(acc.current_session_start)).total_seconds() * 1000))


def pump_started(acc: PumpAccounting, now: datetime) -> PumpAccounting:
    """Open a session. A second "on" edge keeps the existing session."""
    if acc.running:
        return acc
    return replace(acc, current_session_start=now)


def pump_stopped(acc: PumpAccounting, now: datetime, flow_rate_lpm: float) -> PumpAccounting:
    """
    Close the running session and fold it into the totals.

    Parameters
    ----------
    acc
        Current accounting value.
    now
        Time of the "off" edge.
    flow_rate_lpm
        Latest flow rate; 0 falls back to :data:`DEFAULT_FLOW_RATE_LPM`.

    Returns
    -------
    PumpAccounting
        Updated value, or ``acc`` unchanged if no session was running.
    """
    if not acc.running:
        return acc
    ms = _session_ms(acc, now)
    liters = (ms / 60000.0) * _effective_flow(flow_rate_lpm)
    return PumpAccounting(
        total_runtime_ms=acc.total_runtime_ms + ms,
        total_water_used_liters=acc.total_water_used_liters + liters,
        current_session_start=None,
    )


def apply_pump_state(acc: PumpAccounting, running: bool, now: datetime, flow_rate_lpm: float) -> PumpAccounting:
    """Dispatch to :func:`pump_started` / :func:`pump_stopped` by level."""
    if running:
        return pump_started(acc, now)
    return pump_stopped(acc, now, flow_rate_lpm)


def runtime_ms(acc: PumpAccounting, now: datetime) -> int:
    """Total runtime including the running session."""
    return acc.total_runtime_ms + _session_ms(acc, now)


def water_used_liters(acc: PumpAccounting, now: datetime, flow_rate_lpm: float) -> float:
    """Total water used including the running session at the current flow rate."""
    return acc.total_water_used_liters + (_session_ms(acc, now) / 60000.0) * _effective_flow(flow_rate_lpm)


def format_runtime(ms: int) -> str:
    """Render a runtime as ``"<h>h <m>m"``."""
    hours = ms // 3_600_000
    minutes = (ms % 3_600_000) // 60_000
    return f"{hours}h {minutes}m"
