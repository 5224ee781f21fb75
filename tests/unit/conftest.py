"""
Shared test doubles for the unit tests.

- FakeTimerFactory records timers instead of starting threads; tests fire
  them by hand.
- FakeGateway serves a fixed document and records every write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from queue import Empty
from typing import Any, Callable, Dict, List, Optional

import pytest

from climaneer.core.state_store import StateStore
from climaneer.domain.events import Notice
from climaneer.domain.models import Alert
from climaneer.gateway.rtdb_client import GatewayState
from climaneer.runtime.event_bus import EventBus

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeTimer:
    """Timer handle that only runs when :meth:`fire` is called."""

    def __init__(self, delay_s: float, fn: Callable[[], None], name: str, repeating: bool = False, run_now: bool = False):
        self.delay_s = delay_s
        self.fn = fn
        self.name = name
        self.repeating = repeating
        self.run_now = run_now
        self.cancelled = False
        self.fired = 0

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        if self.cancelled:
            return False
        return self.repeating or self.fired == 0

    def fire(self, force: bool = False) -> None:
        """
        Run the callback.

        Parameters
        ----------
        force
            Run even if cancelled, to simulate a callback racing its cancel.
        """
        if self.cancelled and not force:
            return
        self.fired += 1
        self.fn()


class FakeTimerFactory:
    def __init__(self) -> None:
        self.later: List[FakeTimer] = []
        self.every: List[FakeTimer] = []

    def call_later(self, delay_s: float, fn: Callable[[], None], name: str = "timer") -> FakeTimer:
        t = FakeTimer(delay_s, fn, name)
        self.later.append(t)
        return t

    def call_every(
        self, interval_s: float, fn: Callable[[], None], name: str = "repeating-timer", run_now: bool = False
    ) -> FakeTimer:
        t = FakeTimer(interval_s, fn, name, repeating=True, run_now=run_now)
        self.every.append(t)
        return t

    def active_later(self) -> List[FakeTimer]:
        return [t for t in self.later if t.active]


@dataclass
class FakeGateway:
    """
    In-memory gateway.

    Set ``fetch_error`` / ``write_error`` to an exception instance to make
    the corresponding calls fail.
    """

    state: GatewayState = field(default_factory=GatewayState)
    fetch_error: Optional[Exception] = None
    write_error: Optional[Exception] = None
    patches: List[Dict[str, Any]] = field(default_factory=list)
    puts: List[Dict[str, Any]] = field(default_factory=list)
    fetches: int = 0

    def fetch_state(self) -> GatewayState:
        self.fetches += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.state

    def patch_controls(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if self.write_error is not None:
            raise self.write_error
        self.patches.append(dict(fields))
        return dict(fields)

    def put_controls(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if self.write_error is not None:
            raise self.write_error
        self.puts.append(dict(document))
        return dict(document)


def drain_bus(bus: EventBus) -> List[object]:
    out: List[object] = []
    while True:
        try:
            out.append(bus.events_q.get_nowait())
        except Empty:
            return out


def notices(events: List[object]) -> List[Notice]:
    return [e for e in events if isinstance(e, Notice)]


def alerts(events: List[object]) -> List[Alert]:
    return [e for e in events if isinstance(e, Alert)]


HEALTHY_SENSORS: Dict[str, Any] = {
    "soil_moisture": 45,
    "air_humidity": 50,
    "water_level": 80,
    "ph": 7.0,
    "air_temp": 22.0,
    "water_temp": 19.0,
    "air_quality": 40,
    "flow": 0,
    "battery": 90,
}


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def timers() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
