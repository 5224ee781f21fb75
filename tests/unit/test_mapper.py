"""
Unit tests for climaneer.core.mapper.

These tests validate the payload -> record mapping:
- absent / non-numeric / NaN fields default to 0
- key aliases (snake_case firmware keys and camelCase keys)
- pump on/off interpretation and control mode derivation
- AI recommendation extraction
"""

from __future__ import annotations

import math

import pytest

from climaneer.core.mapper import (
    DEFAULT_READING_ID,
    is_pump_on,
    map_controls,
    map_recommendation,
    map_sensors,
    to_number,
)
from climaneer.core.timeutil import to_iso
from climaneer.domain.models import ControlMode, NetworkSignal, PumpStatus

from conftest import NOW


def test_map_sensors_none_returns_none() -> None:
    assert map_sensors(None) is None


def test_map_sensors_empty_object_fills_defaults() -> None:
    r = map_sensors({}, now=NOW)

    assert r is not None
    assert r.id == DEFAULT_READING_ID
    assert r.timestamp == to_iso(NOW)
    for name in (
        "soil_moisture", "air_humidity", "water_level", "ph", "air_temperature",
        "water_temperature", "air_quality", "flow_rate", "battery",
    ):
        assert getattr(r, name) == 0.0


def test_map_sensors_coerces_strings_and_rejects_garbage() -> None:
    r = map_sensors(
        {"soil_moisture": "42.5", "air_humidity": "wet", "ph": float("nan"), "battery": None, "water_level": [1]},
        now=NOW,
    )

    assert r.soil_moisture == 42.5
    assert r.air_humidity == 0.0
    assert r.ph == 0.0
    assert r.battery == 0.0
    assert r.water_level == 0.0


def test_map_sensors_accepts_aliases() -> None:
    r = map_sensors(
        {"air_temp": 21.5, "waterTemperature": 18, "flowRate": 2.5, "pH": 6.9, "batteryLevel": 77},
        now=NOW,
    )

    assert r.air_temperature == 21.5
    assert r.water_temperature == 18.0
    assert r.flow_rate == 2.5
    assert r.ph == 6.9
    assert r.battery == 77.0


def test_map_sensors_first_alias_wins() -> None:
    r = map_sensors({"air_temp": 10, "airTemperature": 30}, now=NOW)
    assert r.air_temperature == 10.0


def test_map_sensors_keeps_payload_id_and_timestamp() -> None:
    r = map_sensors({"id": "node-7", "timestamp": "2026-01-01T00:00:00.000Z"}, now=NOW)
    assert r.id == "node-7"
    assert r.timestamp == "2026-01-01T00:00:00.000Z"


@pytest.mark.parametrize("value", [True, "on", "ON", " On ", 1, 1.0])
def test_pump_on_values(value) -> None:
    assert is_pump_on(value) is True
    assert map_controls({"pump": value}).pump_status == PumpStatus.RUNNING


@pytest.mark.parametrize("value", [False, "off", "yes", "1", 0, 2, None])
def test_pump_off_values(value) -> None:
    assert is_pump_on(value) is False
    assert map_controls({"pump": value}).pump_status == PumpStatus.STOPPED


def test_map_controls_none_returns_none() -> None:
    assert map_controls(None) is None


def test_map_controls_never_derives_error() -> None:
    assert map_controls({"pump": "error"}).pump_status == PumpStatus.STOPPED


def test_control_mode_manual_from_mode_string() -> None:
    assert map_controls({"mode": "Manual"}).control_mode == ControlMode.MANUAL


def test_control_mode_manual_from_override() -> None:
    assert map_controls({"mode": "FIREBASE", "manual_override": True}).control_mode == ControlMode.MANUAL


def test_control_mode_defaults_to_automatic() -> None:
    assert map_controls({"mode": "FIREBASE", "manual_override": False}).control_mode == ControlMode.AUTOMATIC
    assert map_controls({}).control_mode == ControlMode.AUTOMATIC


def test_network_signal() -> None:
    assert map_controls({"firebase_online": True}).network_signal == NetworkSignal.STRONG
    assert map_controls({}).network_signal == NetworkSignal.WEAK
    assert map_controls({"network_signal": "Medium"}).network_signal == NetworkSignal.MEDIUM


def test_map_controls_numbers() -> None:
    s = map_controls({"uptime": "99.5", "pumpRuntime": 12, "data_usage": "x"})
    assert s.uptime == 99.5
    assert s.pump_runtime == 12.0
    assert s.data_usage == 0.0


def test_map_recommendation() -> None:
    assert map_recommendation({"recommendation": "Water now"}) == "Water now"
    assert map_recommendation({"recommendation": ""}) is None
    assert map_recommendation(None) is None
    assert map_recommendation("text") is None


def test_to_number_edge_cases() -> None:
    assert to_number("3") == 3.0
    assert to_number(True) == 1.0
    assert to_number({}) == 0.0
    assert not math.isnan(to_number("nan"))
