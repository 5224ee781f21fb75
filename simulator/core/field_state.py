from __future__ import annotations

import copy
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Mapping


def default_sensors() -> Dict[str, Any]:
    # snake_case keys, as the device firmware writes them
    return {
        "soil_moisture": 45.0,
        "air_humidity": 55.0,
        "water_level": 80.0,
        "ph": 6.8,
        "air_temp": 24.0,
        "water_temp": 20.0,
        "air_quality": 40.0,
        "flow": 0.0,
        "battery": 95.0,
    }


def default_controls() -> Dict[str, Any]:
    return {
        "pump": "off",
        "mode": "FIREBASE",
        "manual_override": False,
        "firebase_online": True,
        "uptime": 0,
        "pump_runtime": 0,
        "data_usage": 0,
    }


@dataclass
class FieldState:
    """
    Single source of truth for the simulated realtime database (thread-safe).

    Owns the three nodes a gateway reads: ``sensors``, ``controls`` and
    ``ai``. The HTTP layer reads and writes it; the engine steps it.

    Does NOT:
    - Generate readings (the engine and sensor models do that)
    - Run the timing loop
    - Do networking
    """

    sensors: Dict[str, Any] = field(default_factory=default_sensors)
    controls: Dict[str, Any] = field(default_factory=default_controls)
    ai: Dict[str, Any] = field(default_factory=lambda: {"recommendation": "Conditions are stable."})

    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def document(self) -> Dict[str, Any]:
        """Deep copy of the whole database document."""
        with self._lock:
            return {
                "sensors": copy.deepcopy(self.sensors),
                "controls": copy.deepcopy(self.controls),
                "ai": copy.deepcopy(self.ai),
            }

    def get_controls(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self.controls)

    def patch_controls(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge ``fields`` into the controls node. Returns the written fields."""
        with self._lock:
            self.controls.update(fields)
            return dict(fields)

    def put_controls(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Replace the controls node. Returns the new node."""
        with self._lock:
            self.controls = dict(document)
            return copy.deepcopy(self.controls)

    def pump_on(self) -> bool:
        with self._lock:
            pump = self.controls.get("pump")
        if isinstance(pump, str):
            return pump.strip().lower() == "on"
        return pump is True or pump == 1

    def update_sensors(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            self.sensors.update(values)

    def update_controls(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            self.controls.update(values)

    def set_recommendation(self, text: str) -> None:
        with self._lock:
            self.ai["recommendation"] = text
