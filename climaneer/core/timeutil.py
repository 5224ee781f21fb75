"""
Timestamp helpers shared by the stores and engines.

Wire timestamps are ISO-8601 strings in UTC with a trailing ``Z`` (the format
produced by the dashboard and the realtime database). Internally the code
works with timezone-aware datetimes; naive datetimes passed in by callers are
interpreted as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_iso(ts: datetime) -> str:
    """
    Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Parameters
    ----------
    ts
        Timestamp to convert.

    Returns
    -------
    str
        ISO-8601 string with millisecond precision in UTC.
    """
    return as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: object) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Returns None for anything that is not a parseable string.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def epoch_ms(ts: datetime) -> int:
    return int(as_utc(ts).timestamp() * 1000)
