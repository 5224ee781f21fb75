"""
Daily time-window helpers for the pump scheduler.

Windows are given as ``"HH:MM"`` strings and interpreted on the calendar date
of the ``now`` passed in (local wall-clock time). A window whose end is not
after its start spans midnight.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from climaneer.domain.models import ScheduleSlot, Settings


def parse_hhmm(value: Optional[str], on: datetime) -> Optional[datetime]:
    """
    Place an ``"HH:MM"`` time on the date of ``on``.

    Returns
    -------
    datetime or None
        The time on that date (seconds zeroed), or None for anything that is
        not a valid ``HH:MM`` string.
    """
    if not value or not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hh, mm = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        return None
    return on.replace(hour=hh, minute=mm, second=0, microsecond=0)


def is_in_window(start: Optional[str], end: Optional[str], now: datetime) -> bool:
    """
    Whether ``now`` lies inside the daily window ``[start, end]``.

    Both bounds are inclusive. If ``end <= start`` the window spans midnight
    and ``now`` matches when it is at/after ``start`` or at/before ``end``.
    Invalid bounds never match.
    """
    s = parse_hhmm(start, now)
    e = parse_hhmm(end, now)
    if s is None or e is None:
        return False
    if e <= s:
        return now >= s or now <= e
    return s <= now <= e


def occurrence_start(start: str, end: str, now: datetime) -> Optional[datetime]:
    """
    Start of the window occurrence that contains ``now``.

    For a midnight-spanning window matched after midnight this is the start
    on the previous day. Returns None if ``now`` is outside the window.
    """
    if not is_in_window(start, end, now):
        return None
    s = parse_hhmm(start, now)
    e = parse_hhmm(end, now)
    if s is None or e is None:
        return None
    if e <= s and now < s:
        return s - timedelta(days=1)
    return s


def add_minutes(hhmm: str, minutes: int) -> str:
    """``"HH:MM"`` plus ``minutes``, wrapped to the same day."""
    base = datetime(2000, 1, 1)
    t = parse_hhmm(hhmm, base)
    if t is None:
        raise ValueError(f"invalid time: {hhmm!r}")
    t = t + timedelta(minutes=minutes)
    return f"{t.hour:02d}:{t.minute:02d}"


@dataclass(frozen=True)
class ScheduleWindow:
    """
    One daily window the scheduler can activate in.

    Parameters
    ----------
    key
        Stable identifier (``"schedule"`` or ``"slot:HH:MM"``).
    start, end
        Window bounds as ``"HH:MM"``.
    duration_minutes
        How long the pump runs once activated in this window.
    """

    key: str
    start: str
    end: str
    duration_minutes: int


def active_windows(settings: Settings, slots: Sequence[ScheduleSlot] = ()) -> List[ScheduleWindow]:
    """
    Windows to evaluate for the given settings and legacy slots.

    Nothing is active while the configured schedule is disabled; the
    ``enabled`` switch covers the legacy slots too. Otherwise the configured
    window comes first, followed by every enabled slot as
    ``[time, time + duration]``. Slots with an invalid time are skipped.
    """
    sched = settings.scheduled_settings
    if not sched.enabled:
        return []
    windows = [ScheduleWindow("schedule", sched.start_time, sched.end_time, sched.duration_minutes)]
    for slot in slots:
        if not slot.enabled or slot.duration <= 0:
            continue
        try:
            end = add_minutes(slot.time, slot.duration)
        except ValueError:
            continue
        windows.append(ScheduleWindow(f"slot:{slot.time}", slot.time, end, slot.duration))
    return windows
