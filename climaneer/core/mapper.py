"""
Gateway payload mapping.

The realtime database stores whatever the device firmware writes: snake_case
keys, numbers encoded as strings, booleans encoded as ``"on"``/``1``, missing
fields. This module turns that loosely-typed payload into the strict
:class:`SensorReading` / :class:`SystemStatus` records.

Every accepted key alias is listed explicitly. Mapping never raises: absent,
non-numeric and NaN values become 0.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from climaneer.core.timeutil import to_iso, utc_now
from climaneer.domain.models import ControlMode, NetworkSignal, PumpStatus, SensorReading, SystemStatus

DEFAULT_READING_ID = "rtdb-sensor"

# field -> accepted keys, first present key wins
SENSOR_ALIASES = {
    "soil_moisture": ("soil_moisture", "soilMoisture"),
    "air_humidity": ("air_humidity", "airHumidity"),
    "water_level": ("water_level", "waterLevel"),
    "ph": ("ph", "pH"),
    "air_temperature": ("air_temp", "air_temperature", "airTemperature"),
    "water_temperature": ("water_temp", "water_temperature", "waterTemperature"),
    "air_quality": ("air_quality", "airQuality"),
    "flow_rate": ("flow", "flow_rate", "flowRate"),
    "battery": ("battery", "battery_level", "batteryLevel"),
}

CONTROL_ALIASES = {
    "uptime": ("uptime",),
    "pump_runtime": ("pump_runtime", "pumpRuntime"),
    "data_usage": ("data_usage", "dataUsage"),
}


def _first_present(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def to_number(value: Any) -> float:
    """
    Coerce an arbitrary payload value to float.

    Parameters
    ----------
    value
        Raw payload value (number, numeric string, bool, None, ...).

    Returns
    -------
    float
        The numeric value, or 0.0 when the value is absent, not convertible
        or NaN.
    """
    if value is None or isinstance(value, (dict, list)):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return number


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value != ""
    return bool(value)


def is_pump_on(value: Any) -> bool:
    """
    Interpret the raw ``pump`` field.

    The pump is on for boolean ``True``, the string ``"on"`` (any case) and
    the number 1. Everything else, including ``"off"`` and missing values,
    means off.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "on"
    if isinstance(value, (int, float)):
        return value == 1
    return False


def map_sensors(raw: Any, now: Optional[datetime] = None) -> Optional[SensorReading]:
    """
    Map the gateway ``sensors`` object to a :class:`SensorReading`.

    Parameters
    ----------
    raw
        Raw ``sensors`` object. May be None or partially shaped.
    now
        Timestamp used when the payload carries none. Defaults to UTC now.

    Returns
    -------
    SensorReading or None
        None when ``raw`` itself is absent, otherwise a fully populated
        reading.
    """
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raw = {}

    ts = raw.get("timestamp")
    values = {name: to_number(_first_present(raw, keys)) for name, keys in SENSOR_ALIASES.items()}
    return SensorReading(
        id=str(raw.get("id") or DEFAULT_READING_ID),
        timestamp=str(ts) if ts else to_iso(now or utc_now()),
        **values,
    )


def map_controls(raw: Any) -> Optional[SystemStatus]:
    """
    Map the gateway ``controls`` object to a :class:`SystemStatus`.

    Control mode is manual when ``mode`` equals "manual" (any case) or,
    failing that, when ``manual_override`` is truthy; otherwise automatic.

    Returns
    -------
    SystemStatus or None
        None when ``raw`` itself is absent.
    """
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raw = {}

    mode = raw.get("mode")
    if mode is not None and str(mode).strip().lower() == "manual":
        control_mode = ControlMode.MANUAL
    elif _is_truthy(raw.get("manual_override")):
        control_mode = ControlMode.MANUAL
    else:
        control_mode = ControlMode.AUTOMATIC

    signal_raw = raw.get("network_signal")
    if isinstance(signal_raw, str) and signal_raw.lower() in {s.value for s in NetworkSignal}:
        signal = NetworkSignal(signal_raw.lower())
    else:
        signal = NetworkSignal.STRONG if _is_truthy(raw.get("firebase_online")) else NetworkSignal.WEAK

    return SystemStatus(
        uptime=to_number(_first_present(raw, CONTROL_ALIASES["uptime"])),
        pump_status=PumpStatus.RUNNING if is_pump_on(raw.get("pump")) else PumpStatus.STOPPED,
        pump_runtime=to_number(_first_present(raw, CONTROL_ALIASES["pump_runtime"])),
        control_mode=control_mode,
        network_signal=signal,
        data_usage=to_number(_first_present(raw, CONTROL_ALIASES["data_usage"])),
    )


def map_recommendation(raw: Any) -> Optional[str]:
    """Extract ``ai.recommendation`` as a string, if present and non-empty."""
    if not isinstance(raw, Mapping):
        return None
    rec = raw.get("recommendation")
    if rec is None or rec == "":
        return None
    return str(rec)
