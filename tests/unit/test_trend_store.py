"""
Unit tests for climaneer.core.state.trend_store.TrendStore.

Covers:
- persistence round trip through LocalStorage
- 24h pruning on append
- best-effort loading of corrupt data
- statistics over a time window
"""

from __future__ import annotations

from datetime import timedelta

from climaneer.core.state.local_storage import LocalStorage
from climaneer.core.state.trend_store import TRENDS_KEY, TrendStore
from climaneer.core.timeutil import to_iso
from climaneer.domain.models import SensorReading

from conftest import NOW


def _reading(minutes_ago: float, soil: float = 40.0, flow: float = 0.0) -> SensorReading:
    return SensorReading(
        id="r",
        timestamp=to_iso(NOW - timedelta(minutes=minutes_ago)),
        soil_moisture=soil,
        air_temperature=20.0,
        air_humidity=50.0,
        ph=7.0,
        flow_rate=flow,
    )


def test_round_trip_through_storage(tmp_path) -> None:
    storage = LocalStorage(tmp_path / "storage.json")
    trends = TrendStore(storage=storage)
    readings = [_reading(30), _reading(20, soil=35.5), _reading(10, flow=2.5)]
    for r in readings:
        trends.append(r, now=NOW)

    reloaded = TrendStore(storage=LocalStorage(tmp_path / "storage.json"))
    assert reloaded.load() == 3
    assert reloaded.readings() == readings


def test_append_prunes_entries_older_than_24h() -> None:
    trends = TrendStore()
    trends.append(_reading(25 * 60), now=NOW)
    trends.append(_reading(5), now=NOW)

    assert len(trends) == 1
    assert trends.readings()[0].timestamp == to_iso(NOW - timedelta(minutes=5))


def test_prune_with_custom_age() -> None:
    trends = TrendStore()
    trends.append(_reading(90), now=NOW)
    trends.append(_reading(30), now=NOW)

    removed = trends.prune(timedelta(hours=1), now=NOW)

    assert removed == 1
    assert len(trends) == 1


def test_unparseable_timestamp_is_pruned() -> None:
    trends = TrendStore()
    trends.append(SensorReading(id="x", timestamp="not-a-date"), now=NOW)
    assert len(trends) == 0


def test_corrupt_storage_loads_empty(tmp_path) -> None:
    storage = LocalStorage(tmp_path / "storage.json")
    storage.set_item(TRENDS_KEY, "{not json")

    trends = TrendStore(storage=storage)
    assert trends.load() == 0
    assert trends.readings() == []


def test_missing_key_loads_empty(tmp_path) -> None:
    trends = TrendStore(storage=LocalStorage(tmp_path / "storage.json"))
    assert trends.load() == 0


def test_statistics_window() -> None:
    trends = TrendStore()
    trends.append(_reading(120, soil=10.0, flow=1.0), now=NOW)
    trends.append(_reading(30, soil=40.0, flow=2.0), now=NOW)
    trends.append(_reading(10, soil=60.0, flow=3.0), now=NOW)

    all_stats = trends.statistics()
    assert all_stats.count == 3
    assert all_stats.avg_moisture == (10.0 + 40.0 + 60.0) / 3
    assert all_stats.total_flow == 6.0

    recent = trends.statistics(since=NOW - timedelta(hours=1))
    assert recent.count == 2
    assert recent.avg_moisture == 50.0
    assert recent.avg_ph == 7.0


def test_statistics_empty() -> None:
    stats = TrendStore().statistics()
    assert stats.count == 0
    assert stats.avg_moisture == 0.0
    assert stats.total_flow == 0.0
