"""
Domain models and enums.

This module defines the core domain-level types used across the system:
- Pump status, control modes, network signal and alert types
- Sensor readings and the pump/control status snapshot
- Alerts, user settings and history entries

These are designed as immutable (frozen) dataclasses so a snapshot can be
shared between the poll thread, timer threads and consumers without copying.
Updates are expressed with :func:`dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class PumpStatus(str, Enum):
    """
    Operational status of the pump.

    Members
    -------
    RUNNING : str
        The pump is switched on.
    STOPPED : str
        The pump is switched off.
    ERROR : str
        Reserved for a faulted pump. The mapper never derives it from
        gateway data.
    """

    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class ControlMode(str, Enum):
    """
    Who decides when the pump runs.

    Members
    -------
    AUTOMATIC : str
        The upstream controller (device firmware) drives the pump.
    MANUAL : str
        The user drives the pump.
    SCHEDULED : str
        The local scheduler drives the pump from a daily time window.
        Only ever set in :class:`Settings`; the gateway snapshot is two-state.
    """

    AUTOMATIC = "automatic"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class NetworkSignal(str, Enum):
    """Connectivity indicator reported by the device."""

    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


class AlertType(str, Enum):
    """
    Severity/category of an alert.

    Members
    -------
    INFO : str
        Informational system message.
    WARNING : str
        Abnormal condition requiring attention.
    DANGER : str
        Severe condition requiring immediate intervention.
    SUCCESS : str
        Confirmation of a completed action.
    """

    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    SUCCESS = "success"


@dataclass(frozen=True)
class SensorReading:
    """
    One snapshot of all sensor channels.

    Parameters
    ----------
    id
        Opaque identifier of the reading source.
    timestamp
        ISO-8601 timestamp string of the reading.
    soil_moisture
        Soil moisture in percent (0-100).
    air_humidity
        Relative air humidity in percent (0-100).
    water_level
        Tank water level in percent (0-100).
    ph
        pH value (0-14).
    air_temperature
        Air temperature in degrees Celsius.
    water_temperature
        Water temperature in degrees Celsius.
    air_quality
        Air quality index (AQI, >= 0).
    flow_rate
        Water flow rate in L/min (>= 0).
    battery
        Sensor battery level in percent (0-100).

    Notes
    -----
    A new reading is produced on every poll; readings are never mutated.
    """

    id: str
    timestamp: str
    soil_moisture: float = 0.0
    air_humidity: float = 0.0
    water_level: float = 0.0
    ph: float = 0.0
    air_temperature: float = 0.0
    water_temperature: float = 0.0
    air_quality: float = 0.0
    flow_rate: float = 0.0
    battery: float = 0.0

    @classmethod
    def fallback(cls, timestamp: str) -> "SensorReading":
        """
        Placeholder shown before the first successful poll.

        Unlike a mapped reading, the placeholder uses a neutral pH of 7 and a
        full battery so that no alarming values are displayed.
        """
        return cls(id="default", timestamp=timestamp, ph=7.0, battery=100.0)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys of the dashboard wire format."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "soilMoisture": self.soil_moisture,
            "airHumidity": self.air_humidity,
            "waterLevel": self.water_level,
            "pH": self.ph,
            "airTemperature": self.air_temperature,
            "waterTemperature": self.water_temperature,
            "airQuality": self.air_quality,
            "flowRate": self.flow_rate,
            "battery": self.battery,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SensorReading":
        """
        Inverse of :meth:`to_dict`.

        Raises
        ------
        KeyError
            If ``id`` or ``timestamp`` is missing.
        ValueError, TypeError
            If a numeric field cannot be converted.
        """
        return cls(
            id=str(data["id"]),
            timestamp=str(data["timestamp"]),
            soil_moisture=float(data.get("soilMoisture", 0)),
            air_humidity=float(data.get("airHumidity", 0)),
            water_level=float(data.get("waterLevel", 0)),
            ph=float(data.get("pH", 0)),
            air_temperature=float(data.get("airTemperature", 0)),
            water_temperature=float(data.get("waterTemperature", 0)),
            air_quality=float(data.get("airQuality", 0)),
            flow_rate=float(data.get("flowRate", 0)),
            battery=float(data.get("battery", 0)),
        )


@dataclass(frozen=True)
class SystemStatus:
    """
    Pump/control snapshot derived from the gateway ``controls`` object.

    Parameters
    ----------
    uptime
        Device uptime in percent.
    pump_status
        Current pump state.
    pump_runtime
        Accumulated pump runtime as reported by the device.
    control_mode
        Control mode reported by the device (automatic or manual).
    network_signal
        Connectivity indicator.
    data_usage
        Data usage in MB.

    Notes
    -----
    Recomputed from every poll response. The only local change between polls
    is the coordinator's optimistic pump flag.
    """

    uptime: float = 0.0
    pump_status: PumpStatus = PumpStatus.STOPPED
    pump_runtime: float = 0.0
    control_mode: ControlMode = ControlMode.AUTOMATIC
    network_signal: NetworkSignal = NetworkSignal.WEAK
    data_usage: float = 0.0

    @classmethod
    def fallback(cls) -> "SystemStatus":
        return cls()

    @property
    def pump_running(self) -> bool:
        return self.pump_status == PumpStatus.RUNNING


@dataclass(frozen=True)
class Alert:
    """
    Notification record shown in the alert list.

    Parameters
    ----------
    id
        Unique alert id (``"<type>-<epoch millis>"`` for engine alerts).
    type
        Alert severity/category.
    title
        Short title. Also the deduplication key of the alert engine.
    message
        Human-readable message including measured value and threshold.
    timestamp
        ISO-8601 creation timestamp.
    read
        Whether the user has seen the alert.
    """

    id: str
    type: AlertType
    title: str
    message: str
    timestamp: str
    read: bool = False


@dataclass(frozen=True)
class ScheduledSettings:
    """
    Daily pump window used in scheduled mode.

    Parameters
    ----------
    enabled
        Whether the window is active.
    start_time
        Window start as ``"HH:MM"``.
    end_time
        Window end as ``"HH:MM"``. If not after ``start_time`` the window
        spans midnight.
    duration_minutes
        How long the pump runs once activated.
    """

    enabled: bool = False
    start_time: str = "08:00"
    end_time: str = "18:00"
    duration_minutes: int = 30

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "durationMinutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledSettings":
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=str(data.get("startTime", "08:00")),
            end_time=str(data.get("endTime", "18:00")),
            duration_minutes=int(data.get("durationMinutes", 30)),
        )


@dataclass(frozen=True)
class Settings:
    """
    User-configurable thresholds and mode configuration.

    One instance is active process-wide; it is owned by the control-mode
    coordinator and persisted to local storage.
    """

    sound_alerts: bool = True
    push_notifications: bool = True
    moisture_threshold: float = 30.0
    battery_threshold: float = 20.0
    temperature_unit: str = "celsius"
    poll_interval_ms: int = 5000
    dark_mode: bool = False
    control_mode: ControlMode = ControlMode.AUTOMATIC
    scheduled_settings: ScheduledSettings = field(default_factory=ScheduledSettings)
    air_quality_threshold: float = 150.0
    temperature_high_threshold: float = 35.0
    temperature_low_threshold: float = 5.0
    humidity_high_threshold: float = 80.0
    humidity_low_threshold: float = 20.0
    water_level_low_threshold: float = 20.0

    def __post_init__(self) -> None:
        if not 1000 <= self.poll_interval_ms <= 60000:
            raise ValueError(f"poll_interval_ms must be within 1000..60000, got {self.poll_interval_ms}")
        for name in ("moisture_threshold", "battery_threshold"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be within 0..100, got {value}")
        if self.temperature_unit not in ("celsius", "fahrenheit"):
            raise ValueError(f"unknown temperature_unit: {self.temperature_unit!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "soundAlerts": self.sound_alerts,
            "pushNotifications": self.push_notifications,
            "moistureThreshold": self.moisture_threshold,
            "batteryThreshold": self.battery_threshold,
            "temperatureUnit": self.temperature_unit,
            "pollInterval": self.poll_interval_ms,
            "darkMode": self.dark_mode,
            "controlMode": self.control_mode.value,
            "scheduledSettings": self.scheduled_settings.to_dict(),
            "airQualityThreshold": self.air_quality_threshold,
            "temperatureHighThreshold": self.temperature_high_threshold,
            "temperatureLowThreshold": self.temperature_low_threshold,
            "humidityHighThreshold": self.humidity_high_threshold,
            "humidityLowThreshold": self.humidity_low_threshold,
            "waterLevelLowThreshold": self.water_level_low_threshold,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["Settings"] = None) -> "Settings":
        """
        Build settings from a camelCase mapping.

        Keys missing from ``data`` are taken from ``base`` (or the defaults).
        """
        b = base or cls()
        sched = data.get("scheduledSettings")
        return cls(
            sound_alerts=bool(data.get("soundAlerts", b.sound_alerts)),
            push_notifications=bool(data.get("pushNotifications", b.push_notifications)),
            moisture_threshold=float(data.get("moistureThreshold", b.moisture_threshold)),
            battery_threshold=float(data.get("batteryThreshold", b.battery_threshold)),
            temperature_unit=str(data.get("temperatureUnit", b.temperature_unit)),
            poll_interval_ms=int(data.get("pollInterval", b.poll_interval_ms)),
            dark_mode=bool(data.get("darkMode", b.dark_mode)),
            control_mode=ControlMode(data.get("controlMode", b.control_mode.value)),
            scheduled_settings=ScheduledSettings.from_dict(sched) if isinstance(sched, dict) else b.scheduled_settings,
            air_quality_threshold=float(data.get("airQualityThreshold", b.air_quality_threshold)),
            temperature_high_threshold=float(data.get("temperatureHighThreshold", b.temperature_high_threshold)),
            temperature_low_threshold=float(data.get("temperatureLowThreshold", b.temperature_low_threshold)),
            humidity_high_threshold=float(data.get("humidityHighThreshold", b.humidity_high_threshold)),
            humidity_low_threshold=float(data.get("humidityLowThreshold", b.humidity_low_threshold)),
            water_level_low_threshold=float(data.get("waterLevelLowThreshold", b.water_level_low_threshold)),
        )


@dataclass(frozen=True)
class ScheduleSlot:
    """
    Daily watering slot (``"HH:MM"`` start plus duration in minutes).

    Slots are kept in local storage under ``aquaclima_schedules`` and are
    evaluated by the scheduler alongside :class:`ScheduledSettings`.
    """

    time: str
    duration: int
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "duration": self.duration, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleSlot":
        return cls(
            time=str(data["time"]),
            duration=int(data["duration"]),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One successful poll as kept in the (newest-first) history list."""

    id: str
    timestamp: str
    sensors: SensorReading

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp, "sensors": self.sensors.to_dict()}


@dataclass(frozen=True)
class TrendStatistics:
    """
    Aggregates over a window of trend readings.

    All averages are 0 when the window holds no readings.
    """

    count: int = 0
    avg_moisture: float = 0.0
    avg_temperature: float = 0.0
    avg_humidity: float = 0.0
    avg_ph: float = 0.0
    total_flow: float = 0.0
