"""
Spoken sensor values.

Formats the latest reading the way the assistant reads it out loud, e.g.
``"42%"``, ``"23.5°C"`` or ``"120 AQI"``.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from climaneer.core.state_store import StateStore
from climaneer.domain.models import SensorReading

NOT_AVAILABLE = "not available"

# key -> (reading attribute, decimals, suffix)
SENSOR_FORMATS = {
    "soilMoisture": ("soil_moisture", 0, "%"),
    "airHumidity": ("air_humidity", 0, "%"),
    "airTemperature": ("air_temperature", 1, "°C"),
    "phValue": ("ph", 1, ""),
    "waterLevel": ("water_level", 0, "%"),
    "airQuality": ("air_quality", 0, " AQI"),
    "batteryLevel": ("battery", 0, "%"),
    "flowRate": ("flow_rate", 1, " L/min"),
}


def to_fixed(value: float, digits: int) -> str:
    """Round half away from zero to ``digits`` decimals (``12.5 -> "13"``)."""
    if not math.isfinite(value):
        return "0"
    quant = Decimal(1).scaleb(-digits)
    return str(Decimal(repr(float(value))).quantize(quant, rounding=ROUND_HALF_UP))


def format_sensor_value(reading: Optional[SensorReading], key: str) -> str:
    """
    Render one sensor value for speech.

    Parameters
    ----------
    reading
        Latest reading, or None before the first poll.
    key
        One of :data:`SENSOR_FORMATS`.

    Returns
    -------
    str
        Formatted value with unit, or ``"not available"`` for an unknown key
        or a missing reading.
    """
    if reading is None or key not in SENSOR_FORMATS:
        return NOT_AVAILABLE
    attr, digits, suffix = SENSOR_FORMATS[key]
    return f"{to_fixed(getattr(reading, attr), digits)}{suffix}"


def sensor_value_reader(store: StateStore) -> Callable[[str], str]:
    """Bind :func:`format_sensor_value` to the store's latest reading."""

    def get_sensor_value(key: str) -> str:
        return format_sensor_value(store.latest_reading, key)

    return get_sensor_value
