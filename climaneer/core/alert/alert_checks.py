from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from climaneer.core.alert.alert_base import AlertCheck, AlertContext, AlertDecision
from climaneer.core.textfmt import fmt_number
from climaneer.domain.models import AlertType, SensorReading

PH_MIN = 6.0
PH_MAX = 8.0


def air_quality_label(aqi: float) -> str:
    """
    Human label for an AQI value.

    Only the bands above 150 are named; lower values yield ``"Unknown"``.
    """
    if aqi > 300:
        return "Hazardous"
    if aqi > 200:
        return "Very Unhealthy"
    if aqi > 150:
        return "Unhealthy"
    return "Unknown"


@dataclass(frozen=True)
class SoilMoistureCheck:
    """Warn when soil moisture drops below ``moisture_threshold``."""

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        t = ctx.settings.moisture_threshold
        v = reading.soil_moisture
        if v < t:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="Low Soil Moisture",
                message=f"Soil moisture is {fmt_number(v)}%, below threshold {fmt_number(t)}%",
                value=v,
            )]
        return []


@dataclass(frozen=True)
class BatteryCheck:
    """Warn when the sensor battery drops below ``battery_threshold``."""

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        t = ctx.settings.battery_threshold
        v = reading.battery
        if v < t:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="Low Battery",
                message=f"Sensor battery is {fmt_number(v)}%, below {fmt_number(t)}%",
                value=v,
            )]
        return []


@dataclass(frozen=True)
class PhRangeCheck:
    """
    Warn when pH leaves the ``[low, high]`` band.

    Parameters
    ----------
    low, high
        Inclusive acceptable range. Defaults to 6.0..8.0.
    """

    low: float = PH_MIN
    high: float = PH_MAX

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        v = reading.ph
        if v < self.low or v > self.high:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="pH Out of Range",
                message=f"pH level is {v:.1f}, expected between {self.low:.1f} and {self.high:.1f}",
                value=v,
            )]
        return []


@dataclass(frozen=True)
class AirQualityCheck:
    """Danger alert when AQI exceeds ``air_quality_threshold``."""

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        t = ctx.settings.air_quality_threshold
        aqi = reading.air_quality
        if aqi > t:
            return [AlertDecision(
                type=AlertType.DANGER,
                title="Poor Air Quality",
                message=(
                    f"Air quality index is {fmt_number(aqi)} ({air_quality_label(aqi)}), "
                    f"threshold: {fmt_number(t)}"
                ),
                value=aqi,
            )]
        return []


@dataclass(frozen=True)
class TemperatureCheck:
    """
    High/low air temperature.

    Only one side can fire per reading; the high check takes precedence.
    """

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        high = ctx.settings.temperature_high_threshold
        low = ctx.settings.temperature_low_threshold
        v = reading.air_temperature
        if v > high:
            return [AlertDecision(
                type=AlertType.DANGER,
                title="High Temperature",
                message=f"Air temperature is {fmt_number(v)}°C, exceeds max threshold {fmt_number(high)}°C",
                value=v,
            )]
        if v < low:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="Low Temperature",
                message=f"Air temperature is {fmt_number(v)}°C, below min threshold {fmt_number(low)}°C",
                value=v,
            )]
        return []


@dataclass(frozen=True)
class HumidityCheck:
    """High/low air humidity; the high check takes precedence."""

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        high = ctx.settings.humidity_high_threshold
        low = ctx.settings.humidity_low_threshold
        v = reading.air_humidity
        if v > high:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="High Humidity",
                message=f"Air humidity is {fmt_number(v)}%, exceeds max threshold {fmt_number(high)}%",
                value=v,
            )]
        if v < low:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="Low Humidity",
                message=f"Air humidity is {fmt_number(v)}%, below min threshold {fmt_number(low)}%",
                value=v,
            )]
        return []


@dataclass(frozen=True)
class WaterLevelCheck:
    """Warn when the tank level drops below ``water_level_low_threshold``."""

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        t = ctx.settings.water_level_low_threshold
        v = reading.water_level
        if v < t:
            return [AlertDecision(
                type=AlertType.WARNING,
                title="Low Water Level",
                message=f"Water level is {fmt_number(v)}%, below threshold {fmt_number(t)}%",
                value=v,
            )]
        return []


def default_checks() -> List[AlertCheck]:
    """All threshold checks in evaluation order."""
    return [
        SoilMoistureCheck(),
        BatteryCheck(),
        PhRangeCheck(),
        AirQualityCheck(),
        TemperatureCheck(),
        HumidityCheck(),
        WaterLevelCheck(),
    ]
