from __future__ import annotations

import logging
import sys
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional

from climaneer.bootstrap import AppWiring, build_app_system
from climaneer.core.accounting import format_runtime
from climaneer.core.timeutil import utc_now
from climaneer.domain.events import Notice
from climaneer.domain.models import Alert, ControlMode, ScheduledSettings, ScheduleSlot
from climaneer.export.history_export import EmptyHistoryError, write_export
from climaneer.gateway.errors import GatewayError
from climaneer.runtime.event_bus import BusEvent
from climaneer.services.schedule_window import add_minutes
from climaneer.voice.interpreter import supported_phrases

log = logging.getLogger(__name__)

HELP = """\
Commands:
  /status                      latest reading, pump and mode
  /alerts                      alert list (newest first)
  /read <alert-id> | /dismiss <alert-id> | /clear
  /refresh                     poll now
  /pump on|off                 toggle the pump (manual override)
  /auto | /manual              switch control mode
  /schedule HH:MM HH:MM MIN    enable scheduled mode with a daily window
  /slots [add HH:MM MIN | remove HH:MM | clear]
                               extra daily slots (used while the schedule is enabled)
  /stats                       24h averages
  /export csv|json [DIR]       write the poll history
  /listen                      turn the voice assistant back on
  /quit
Anything else is handled as a spoken command, e.g.: {phrases}
"""


def print_event(ev: BusEvent) -> None:
    if isinstance(ev, Notice):
        mark = "!" if ev.is_failure else "*"
        print(f"[{mark}] {ev.title}: {ev.description}")
    elif isinstance(ev, Alert):
        print(f"[ALERT:{ev.type.value}] {ev.title}: {ev.message}")


def announce(text: str) -> None:
    print(f"Clima> {text}")


def _status(w: AppWiring) -> None:
    r = w.store.latest_reading
    st = w.store.system_status
    now = utc_now()
    print(f"online={w.store.online} mode={w.store.settings.control_mode.value} pump={st.pump_status.value}")
    print(f"pump runtime {format_runtime(w.store.pump_runtime_ms(now))}, water used {w.store.water_used_liters(now):.1f} L")
    if r is None:
        print("no reading yet")
        return
    print(
        f"soil {r.soil_moisture:.0f}% | air {r.air_temperature:.1f}°C {r.air_humidity:.0f}% | "
        f"pH {r.ph:.1f} | water {r.water_level:.0f}% | AQI {r.air_quality:.0f} | "
        f"flow {r.flow_rate:.1f} L/min | battery {r.battery:.0f}%"
    )
    if w.store.ai_recommendation:
        print(f"AI: {w.store.ai_recommendation}")


def _slots(w: AppWiring, args: List[str]) -> None:
    slots = w.store.schedule_slots
    if not args:
        enabled = w.store.settings.scheduled_settings.enabled
        for s in slots:
            print(f"{s.time} {s.duration} min{'' if s.enabled else ' (off)'}")
        print(f"{len(slots)} slot(s), {'active' if enabled else 'inactive (daily schedule disabled)'}")
        return
    action = args[0]
    if action == "add" and len(args) == 3:
        add_minutes(args[1], 0)
        slots = [s for s in slots if s.time != args[1]] + [ScheduleSlot(args[1], int(args[2]))]
    elif action == "remove" and len(args) == 2:
        slots = [s for s in slots if s.time != args[1]]
    elif action == "clear":
        slots = []
    else:
        raise ValueError("usage: /slots [add HH:MM MIN | remove HH:MM | clear]")
    w.scheduler.update_slots(sorted(slots, key=lambda s: s.time))


def handle_command(w: AppWiring, line: str) -> bool:
    """
    Execute one console command.

    Returns
    -------
    bool
        False when the runner should exit.
    """
    parts: List[str] = line[1:].split()
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]

    try:
        if cmd in ("quit", "exit"):
            return False
        if cmd == "help":
            print(HELP.format(phrases=", ".join(supported_phrases())))
        elif cmd == "status":
            _status(w)
        elif cmd == "alerts":
            for a in w.store.alert_list:
                print(f"{'  ' if a.read else '* '}{a.id} [{a.type.value}] {a.title}: {a.message}")
            print(f"{w.store.unread_alert_count()} unread")
        elif cmd == "read" and args:
            w.store.mark_alert_read(args[0])
        elif cmd == "dismiss" and args:
            w.store.dismiss_alert(args[0])
        elif cmd == "clear":
            w.store.clear_alerts()
        elif cmd == "refresh":
            w.controller.refresh()
        elif cmd == "pump" and args and args[0] in ("on", "off"):
            w.coordinator.toggle_pump(args[0] == "on")
        elif cmd == "auto":
            w.coordinator.switch_to_auto_mode()
        elif cmd == "manual":
            w.coordinator.switch_to_manual_mode()
        elif cmd == "schedule" and len(args) == 3:
            sched = ScheduledSettings(enabled=True, start_time=args[0], end_time=args[1], duration_minutes=int(args[2]))
            w.coordinator.save_settings(
                replace(w.store.settings, control_mode=ControlMode.SCHEDULED, scheduled_settings=sched)
            )
        elif cmd == "slots":
            _slots(w, args)
        elif cmd == "stats":
            s = w.store.trend_statistics(since=utc_now() - timedelta(hours=24))
            print(
                f"{s.count} readings: moisture {s.avg_moisture:.1f}%, temperature {s.avg_temperature:.1f}°C, "
                f"humidity {s.avg_humidity:.1f}%, pH {s.avg_ph:.2f}, total flow {s.total_flow:.1f} L/min"
            )
        elif cmd == "export" and args and args[0] in ("csv", "json"):
            path = write_export(w.store.history_entries(), args[1] if len(args) > 1 else ".", fmt=args[0])
            print(f"exported to {path}")
        elif cmd == "listen":
            w.voice.start_listening()
        else:
            print("unknown command, try /help")
    except GatewayError:
        # already reported as a notice
        pass
    except (EmptyHistoryError, ValueError) as e:
        print(f"error: {e}")
    return True


def main(argv: Optional[List[str]] = None) -> None:
    """
    Start the headless engine with a console front end.

    Notes
    -----
    - Loads configuration from `config.yaml` by default.
    - Optional CLI usage:
        python -m climaneer.dev.run_app --config path/to/config.yaml
    """
    argv = sys.argv if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config_path = None
    if "--config" in argv:
        i = argv.index("--config")
        if i + 1 < len(argv):
            config_path = argv[i + 1]

    wiring = build_app_system(config_path=config_path, announce=announce, sinks=[print_event])
    wiring.runtime.start()
    wiring.voice.start_listening()
    print("Climaneer running. Type /help for commands.")

    try:
        for raw in sys.stdin:
            line = raw.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not handle_command(wiring, line):
                    break
            elif wiring.voice.handle_transcript(line) is None:
                print("(voice assistant is not listening, use /listen)")
    except KeyboardInterrupt:
        pass
    finally:
        wiring.runtime.stop()
        wiring.gateway.close()


if __name__ == "__main__":
    main()
