"""
History export to CSV and JSON.

Both formats list entries in history order (newest first). Numbers are
written the way the dashboard shows them: integral values without a decimal
part.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from climaneer.core.textfmt import fmt_number
from climaneer.core.timeutil import epoch_ms, to_iso, utc_now
from climaneer.domain.models import HistoryEntry

log = logging.getLogger(__name__)

CSV_HEADERS = (
    "Timestamp",
    "Soil Moisture (%)",
    "Air Humidity (%)",
    "Temperature (°C)",
    "pH Level",
    "Water Level (%)",
    "Air Quality",
    "Water Temperature (°C)",
    "Flow Rate (L/min)",
    "Battery (%)",
)

FORMATS = ("csv", "json")


class EmptyHistoryError(ValueError):
    """Raised when there is no history to export."""


def escape_csv_value(value: Any) -> str:
    """
    Quote a CSV field if needed.

    Fields containing a comma, a double quote or a newline are wrapped in
    double quotes with inner quotes doubled. None becomes an empty field.
    """
    if value is None:
        return ""
    s = fmt_number(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else str(value)
    if "," in s or '"' in s or "\n" in s:
        return '"' + s.replace('"', '""') + '"'
    return s


def _num(value: float) -> Any:
    return int(value) if float(value).is_integer() else value


def export_csv(entries: Sequence[HistoryEntry]) -> str:
    """
    Render history entries as CSV.

    Returns
    -------
    str
        Header line plus one line per entry, joined with ``"\\n"`` (no
        trailing newline).

    Raises
    ------
    EmptyHistoryError
        If ``entries`` is empty.
    """
    if not entries:
        raise EmptyHistoryError("There is no history data to export")
    lines = [",".join(CSV_HEADERS)]
    for e in entries:
        s = e.sensors
        row = [
            e.timestamp,
            s.soil_moisture,
            s.air_humidity,
            s.air_temperature,
            s.ph,
            s.water_level,
            s.air_quality,
            s.water_temperature,
            s.flow_rate,
            s.battery,
        ]
        lines.append(",".join(escape_csv_value(v) for v in row))
    return "\n".join(lines)


def export_document(entries: Sequence[HistoryEntry], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the JSON export document ``{exportedAt, totalEntries, history}``."""
    if not entries:
        raise EmptyHistoryError("There is no history data to export")
    history: List[Dict[str, Any]] = []
    for e in entries:
        s = e.sensors
        history.append({
            "id": e.id,
            "timestamp": e.timestamp,
            "sensors": {
                "soilMoisture": _num(s.soil_moisture),
                "airHumidity": _num(s.air_humidity),
                "airTemperature": _num(s.air_temperature),
                "pH": _num(s.ph),
                "waterLevel": _num(s.water_level),
                "airQuality": _num(s.air_quality),
                "waterTemperature": _num(s.water_temperature),
                "flowRate": _num(s.flow_rate),
                "battery": _num(s.battery),
            },
        })
    return {
        "exportedAt": to_iso(now or utc_now()),
        "totalEntries": len(entries),
        "history": history,
    }


def export_json(entries: Sequence[HistoryEntry], now: Optional[datetime] = None) -> str:
    """Render history entries as an indented JSON document."""
    return json.dumps(export_document(entries, now), indent=2, ensure_ascii=False)


def write_export(
    entries: Sequence[HistoryEntry],
    directory: Path,
    fmt: str = "csv",
    now: Optional[datetime] = None,
) -> Path:
    """
    Write an export file named ``climaneer-history-<epoch ms>.<fmt>``.

    Parameters
    ----------
    entries
        History entries, newest first.
    directory
        Target directory (created if missing).
    fmt
        ``"csv"`` or ``"json"``.
    now
        Export time, used in the file name and ``exportedAt``.

    Returns
    -------
    Path
        The written file.

    Raises
    ------
    ValueError
        For an unknown format.
    EmptyHistoryError
        If there is nothing to export.
    """
    if fmt not in FORMATS:
        raise ValueError(f"unknown export format: {fmt!r}")
    ts = now or utc_now()
    content = export_csv(entries) if fmt == "csv" else export_json(entries, ts)

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"climaneer-history-{epoch_ms(ts)}.{fmt}"
    path.write_text(content, encoding="utf-8")
    log.info("[EXPORT] wrote %d entries to %s", len(entries), path)
    return path
