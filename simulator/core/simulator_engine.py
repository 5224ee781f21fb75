from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from simulator.config.settings import SimulatorSettings
from simulator.core.field_state import FieldState
from simulator.sensors.field_sensors import (
    DriftSensor,
    FieldContext,
    FlowSensor,
    SoilMoistureSensor,
    WaterLevelSensor,
)

log = logging.getLogger(__name__)


def build_sensors(state: FieldState, seed: int = 123) -> List[DriftSensor]:
    """Create one model per sensor key, starting from the current document."""
    s = state.document()["sensors"]
    return [
        SoilMoistureSensor(key="soil_moisture", value=s["soil_moisture"], low=0, high=100,
                           sigma=0.3, trend_per_s=-0.05, seed=seed),
        DriftSensor(key="air_humidity", value=s["air_humidity"], low=0, high=100, sigma=0.4, seed=seed + 1),
        WaterLevelSensor(key="water_level", value=s["water_level"], low=0, high=100, sigma=0.02, seed=seed + 2),
        DriftSensor(key="ph", value=s["ph"], low=0, high=14, sigma=0.02, seed=seed + 3),
        DriftSensor(key="air_temp", value=s["air_temp"], low=-10, high=50, sigma=0.1, seed=seed + 4),
        DriftSensor(key="water_temp", value=s["water_temp"], low=0, high=40, sigma=0.05, seed=seed + 5),
        DriftSensor(key="air_quality", value=s["air_quality"], low=0, high=500, sigma=1.0, seed=seed + 6),
        FlowSensor(key="flow", value=s["flow"], low=0, high=20, sigma=0.1, seed=seed + 7),
        DriftSensor(key="battery", value=s["battery"], low=0, high=100, sigma=0.0,
                    trend_per_s=-0.002, seed=seed + 8),
    ]


def recommendation_for(soil_moisture: float, water_level: float) -> str:
    if water_level < 20:
        return "Refill the water tank soon."
    if soil_moisture < 30:
        return "Soil is dry. Consider watering now."
    if soil_moisture > 70:
        return "Soil is saturated. Hold off on watering."
    return "Conditions are stable."


@dataclass
class SimulatorEngine:
    """
    Advance the simulated field by one step.

    Each step:
    - applies the on-board auto firmware (moisture hysteresis) while the
      controls are in ``FIREBASE`` mode without a manual override,
    - ticks every sensor model and writes the values into ``sensors``,
    - advances ``uptime`` / ``pump_runtime`` and the AI recommendation.
    """

    state: FieldState
    sensors: List[DriftSensor]
    settings: SimulatorSettings = field(default_factory=SimulatorSettings)

    _last_step_time: Optional[datetime] = None

    def _auto_control(self, soil: float) -> None:
        c = self.state.get_controls()
        # only the FIREBASE (auto) mode is driven by the firmware
        if str(c.get("mode", "")).upper() != "FIREBASE" or bool(c.get("manual_override")):
            return
        on = self.state.pump_on()
        if not on and soil < self.settings.auto_on_below:
            log.info("[SIM] auto firmware: pump on (soil %.1f%%)", soil)
            self.state.update_controls({"pump": "on"})
        elif on and soil > self.settings.auto_off_above:
            log.info("[SIM] auto firmware: pump off (soil %.1f%%)", soil)
            self.state.update_controls({"pump": "off"})

    def step(self, dt_s: Optional[float] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run one simulation step.

        Parameters
        ----------
        dt_s
            Elapsed seconds. If None, computed from the previous call's ``now``.
        now
            Step time (UTC). Defaults to the current time.

        Returns
        -------
        dict
            Sensor values written in this step.
        """
        now = now or datetime.now(timezone.utc)
        if dt_s is None:
            dt_s = 0.0 if self._last_step_time is None else max(0.0, (now - self._last_step_time).total_seconds())
        self._last_step_time = now

        soil = self.state.document()["sensors"].get("soil_moisture", 0.0)
        self._auto_control(float(soil))

        pump_on = self.state.pump_on()
        ctx = FieldContext(dt_s=dt_s, pump_on=pump_on, pump_flow_lpm=self.settings.pump_flow_lpm)

        values: Dict[str, Any] = {s.key: round(s.step(ctx), 2) for s in self.sensors}
        values["timestamp"] = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        self.state.update_sensors(values)

        c = self.state.get_controls()
        self.state.update_controls({
            "uptime": float(c.get("uptime") or 0) + dt_s,
            "pump_runtime": float(c.get("pump_runtime") or 0) + (dt_s if pump_on else 0.0),
        })
        self.state.set_recommendation(
            recommendation_for(values.get("soil_moisture", 0.0), values.get("water_level", 0.0))
        )
        return values
