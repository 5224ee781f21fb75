from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class SimulatorSettings:
    host: str = "127.0.0.1"
    port: int = 8700

    # seconds between two simulation steps
    step_period_s: float = 1.0
    seed: int = 123

    # on-board "auto" firmware: pump on below / off above these moisture levels
    auto_on_below: float = 30.0
    auto_off_above: float = 60.0

    # pump flow while running (L/min)
    pump_flow_lpm: float = 2.5
