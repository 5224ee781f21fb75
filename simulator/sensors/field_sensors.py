from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class FieldContext:
    """
    Immutable context passed into each sensor step.

    Parameters
    ----------
    dt_s
        Seconds since the previous step.
    pump_on
        Whether the pump is currently running.
    pump_flow_lpm
        Flow delivered by the running pump.
    """

    dt_s: float
    pump_on: bool
    pump_flow_lpm: float


@dataclass
class DriftSensor:
    """
    Scalar sensor model with a bounded random walk.

    Each step moves the value by ``trend_per_s * dt`` plus Gaussian noise
    (``sigma * sqrt(dt)``) and clamps it to ``[low, high]``.

    Parameters
    ----------
    key
        Key written into the ``sensors`` node.
    value
        Initial value.
    low, high
        Physical bounds.
    sigma
        Noise scale per sqrt-second.
    trend_per_s
        Deterministic drift per second.
    seed
        RNG seed; each sensor owns its own generator so runs are repeatable.
    """

    key: str
    value: float
    low: float
    high: float
    sigma: float = 0.05
    trend_per_s: float = 0.0
    seed: Optional[int] = None

    _rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def trend(self, ctx: FieldContext) -> float:
        return self.trend_per_s

    def step(self, ctx: FieldContext) -> float:
        dt = max(0.0, ctx.dt_s)
        v = self.value + self.trend(ctx) * dt + self._rng.gauss(0.0, self.sigma) * dt ** 0.5
        self.value = min(self.high, max(self.low, v))
        return self.value


@dataclass
class SoilMoistureSensor(DriftSensor):
    """Soil dries out slowly and gets wetter while the pump runs."""

    wetting_per_s: float = 0.5

    def trend(self, ctx: FieldContext) -> float:
        return self.wetting_per_s if ctx.pump_on else self.trend_per_s


@dataclass
class WaterLevelSensor(DriftSensor):
    """Tank level drops proportionally to pump flow."""

    drain_per_liter: float = 0.05

    def trend(self, ctx: FieldContext) -> float:
        if not ctx.pump_on:
            return self.trend_per_s
        return -self.drain_per_liter * ctx.pump_flow_lpm / 60.0


@dataclass
class FlowSensor(DriftSensor):
    """Reads the pump flow with noise, zero while stopped."""

    def step(self, ctx: FieldContext) -> float:
        if not ctx.pump_on:
            self.value = 0.0
            return self.value
        v = ctx.pump_flow_lpm + self._rng.gauss(0.0, self.sigma)
        self.value = min(self.high, max(self.low, v))
        return self.value
