"""
Unit tests for the console front end in climaneer.dev.run_app.

Only commands that stay local are exercised; gateway calls are replaced
with monkeypatched stand-ins.
"""

from __future__ import annotations

import pytest

from climaneer.bootstrap import build_app_system
from climaneer.core.config.yaml_config import AppConfig, StorageConfig
from climaneer.dev.run_app import announce, handle_command, print_event
from climaneer.domain.events import Notice, NoticeVariant
from climaneer.domain.models import Alert, AlertType, ControlMode, ScheduleSlot, SensorReading

from conftest import NOW


@pytest.fixture
def wiring(tmp_path):
    return build_app_system(cfg=AppConfig(storage=StorageConfig(path=str(tmp_path / "storage.json"))))


def test_quit_and_blank(wiring) -> None:
    assert handle_command(wiring, "/quit") is False
    assert handle_command(wiring, "/exit") is False
    assert handle_command(wiring, "/") is True


def test_status_before_first_reading(wiring, capsys) -> None:
    handle_command(wiring, "/status")
    out = capsys.readouterr().out
    assert "mode=automatic pump=stopped" in out
    assert "no reading yet" in out


def test_status_with_reading(wiring, capsys) -> None:
    wiring.store.record_reading(SensorReading(id="r", timestamp="t", soil_moisture=42, ph=6.5), NOW)
    handle_command(wiring, "/status")
    assert "soil 42%" in capsys.readouterr().out


def test_export_without_history_reports_error(wiring, capsys, tmp_path) -> None:
    assert handle_command(wiring, f"/export csv {tmp_path}") is True
    assert "error: There is no history data to export" in capsys.readouterr().out


def test_export_writes_file(wiring, capsys, tmp_path) -> None:
    wiring.store.record_reading(SensorReading(id="r", timestamp="t", soil_moisture=42), NOW)
    handle_command(wiring, f"/export json {tmp_path}")
    assert "exported to" in capsys.readouterr().out
    assert len(list(tmp_path.glob("climaneer-history-*.json"))) == 1


def test_alert_commands(wiring, capsys) -> None:
    wiring.store.add_alert(Alert(id="warning-1", type=AlertType.WARNING, title="Low Battery", message="m", timestamp="t"))

    handle_command(wiring, "/alerts")
    assert "1 unread" in capsys.readouterr().out

    handle_command(wiring, "/read warning-1")
    assert wiring.store.unread_alert_count() == 0
    handle_command(wiring, "/dismiss warning-1")
    assert wiring.store.alert_list == []


def test_bad_schedule_arguments(wiring, capsys) -> None:
    handle_command(wiring, "/schedule 08:00 18:00 soon")
    assert capsys.readouterr().out.startswith("error:")
    assert wiring.store.settings.control_mode == ControlMode.AUTOMATIC


def test_manual_mode_command(wiring, monkeypatch) -> None:
    monkeypatch.setattr(wiring.gateway, "patch_controls", lambda fields: dict(fields))
    handle_command(wiring, "/manual")
    assert wiring.store.settings.control_mode == ControlMode.MANUAL


def test_slots_command(wiring, capsys) -> None:
    handle_command(wiring, "/slots")
    out = capsys.readouterr().out
    assert "06:00 30 min" in out
    assert "2 slot(s), inactive (daily schedule disabled)" in out

    handle_command(wiring, "/slots add 05:15 10")
    handle_command(wiring, "/slots remove 18:00")
    assert wiring.store.schedule_slots == [ScheduleSlot("05:15", 10), ScheduleSlot("06:00", 30)]

    handle_command(wiring, "/slots add 25:00 10")
    assert capsys.readouterr().out.startswith("error:")

    handle_command(wiring, "/slots clear")
    assert wiring.store.schedule_slots == []


def test_unknown_command(wiring, capsys) -> None:
    handle_command(wiring, "/dance")
    assert "unknown command" in capsys.readouterr().out


def test_print_event_and_announce(capsys) -> None:
    print_event(Notice(title="Offline", description="Lost connection", timestamp=NOW, variant=NoticeVariant.DESTRUCTIVE))
    print_event(Alert(id="a", type=AlertType.DANGER, title="Low Battery", message="Battery at 10%", timestamp="t"))
    announce("hello")

    assert capsys.readouterr().out.splitlines() == [
        "[!] Offline: Lost connection",
        "[ALERT:danger] Low Battery: Battery at 10%",
        "Clima> hello",
    ]
