"""
Unit tests for climaneer.services.controller.DashboardController.

These tests drive full poll cycles against a FakeGateway and validate:
- the end-to-end alert scenario (one alert, then cooldown)
- offline/online edges and cached data
- pump listeners and accounting
- stale documents never override a pump write made during the fetch
- the non-blocking busy lock
- refresh notices
"""

from __future__ import annotations

from datetime import timedelta

from climaneer.core.alert.alert_engine import AlertEngine
from climaneer.domain.events import NoticeVariant
from climaneer.domain.models import PumpStatus
from climaneer.gateway.errors import GatewayTransportError
from climaneer.gateway.rtdb_client import GatewayState
from climaneer.services.controller import DashboardController
from climaneer.services.coordinator import ControlModeCoordinator

from conftest import HEALTHY_SENSORS, NOW, alerts, drain_bus, notices


def _controller(gateway, store, bus) -> DashboardController:
    return DashboardController(gateway=gateway, store=store, alert_engine=AlertEngine(), bus=bus, clock=lambda: NOW)


def test_end_to_end_low_moisture_alert_then_cooldown(gateway, store, bus) -> None:
    gateway.state = GatewayState(sensors=dict(HEALTHY_SENSORS, soil_moisture=20), controls={"pump": "off"})
    c = _controller(gateway, store, bus)

    first = c.poll_once(NOW)
    second = c.poll_once(NOW + timedelta(seconds=10))

    assert first.ok and second.ok
    assert [a.title for a in first.alerts] == ["Low Soil Moisture"]
    assert second.alerts == []
    assert [a.title for a in store.alert_list] == ["Low Soil Moisture"]
    assert store.latest_reading.soil_moisture == 20
    assert len(store.history_entries()) == 2
    assert [a.title for a in alerts(drain_bus(bus))] == ["Low Soil Moisture"]


def test_poll_maps_status_and_recommendation(gateway, store, bus) -> None:
    gateway.state = GatewayState(
        sensors=HEALTHY_SENSORS,
        controls={"pump": "on", "mode": "manual", "uptime": 98},
        ai={"recommendation": "Water in the evening"},
    )

    result = _controller(gateway, store, bus).poll_once(NOW)

    assert result.status.pump_status == PumpStatus.RUNNING
    assert store.system_status.uptime == 98
    assert store.ai_recommendation == "Water in the evening"
    assert store.accounting.running


def test_absent_nodes_leave_state_untouched(gateway, store, bus) -> None:
    result = _controller(gateway, store, bus).poll_once(NOW)

    assert result.ok
    assert result.reading is None
    assert store.latest_reading is None
    assert store.system_status.pump_status == PumpStatus.STOPPED


def test_offline_edge_keeps_cached_data(gateway, store, bus) -> None:
    gateway.state = GatewayState(sensors=HEALTHY_SENSORS)
    c = _controller(gateway, store, bus)
    c.poll_once(NOW)
    drain_bus(bus)

    gateway.fetch_error = GatewayTransportError("connection refused")
    r1 = c.poll_once(NOW + timedelta(seconds=5))
    r2 = c.poll_once(NOW + timedelta(seconds=10))

    assert not r1.ok and "connection refused" in r1.error
    assert not r2.ok
    assert store.online is False
    assert store.latest_reading.soil_moisture == 45

    offline = notices(drain_bus(bus))
    assert [n.title for n in offline] == ["Offline"]
    assert offline[0].variant == NoticeVariant.DESTRUCTIVE
    assert offline[0].description == "You're viewing cached data"

    gateway.fetch_error = None
    assert c.poll_once(NOW + timedelta(seconds=15)).ok
    assert store.online is True
    assert [n.title for n in notices(drain_bus(bus))] == ["Back Online"]


def test_pump_listener_called_on_change_only(gateway, store, bus) -> None:
    seen = []
    c = _controller(gateway, store, bus)
    c.add_pump_listener(seen.append)

    gateway.state = GatewayState(controls={"pump": "on"})
    c.poll_once(NOW)
    c.poll_once(NOW + timedelta(seconds=5))
    gateway.state = GatewayState(controls={"pump": "off"})
    c.poll_once(NOW + timedelta(seconds=10))

    assert seen == [PumpStatus.RUNNING, PumpStatus.STOPPED]
    assert store.accounting.total_runtime_ms == 10_000


def test_failing_pump_listener_does_not_break_poll(gateway, store, bus) -> None:
    def boom(_status) -> None:
        raise RuntimeError("listener bug")

    c = _controller(gateway, store, bus)
    c.add_pump_listener(boom)
    gateway.state = GatewayState(controls={"pump": "on"})

    assert c.poll_once(NOW).ok


def test_overlapping_poll_is_skipped(gateway, store, bus) -> None:
    c = _controller(gateway, store, bus)
    c._busy.acquire()
    try:
        result = c.poll_once(NOW)
    finally:
        c._busy.release()

    assert result.skipped
    assert gateway.fetches == 0


def test_refresh_notices(gateway, store, bus) -> None:
    gateway.state = GatewayState(sensors=HEALTHY_SENSORS)
    c = _controller(gateway, store, bus)

    c.refresh()
    assert [n.title for n in notices(drain_bus(bus))] == ["Refreshing", "Updated"]

    gateway.fetch_error = GatewayTransportError("timeout")
    c.refresh()
    titles = [n.title for n in notices(drain_bus(bus))]
    assert titles == ["Refreshing", "Offline", "Refresh failed"]


def test_pump_write_during_fetch_keeps_local_pump(gateway, store, bus) -> None:
    """A document fetched before a pump write must not undo that write."""
    coordinator = ControlModeCoordinator(gateway=gateway, store=store, bus=bus, clock=lambda: NOW)
    seen = []
    c = _controller(gateway, store, bus)
    c.add_pump_listener(seen.append)
    stale = GatewayState(controls={"pump": "off", "uptime": 42})

    def fetch_while_pump_turns_on() -> GatewayState:
        coordinator.toggle_pump(True)
        return stale

    gateway.fetch_state = fetch_while_pump_turns_on

    result = c.poll_once(NOW)

    assert result.ok
    assert store.system_status.pump_status == PumpStatus.RUNNING
    assert store.system_status.uptime == 42
    assert seen == []

    # the next poll sees the device as it really is
    gateway.state = GatewayState(controls={"pump": "on"})
    del gateway.fetch_state
    c.poll_once(NOW + timedelta(seconds=5))
    assert seen == []
    assert store.system_status.pump_status == PumpStatus.RUNNING
