from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional, Sequence

from climaneer.core.alert.alert_engine import AlertEngine
from climaneer.core.config.yaml_config import AppConfig, load_app_config
from climaneer.core.state.alert_store import AlertStore
from climaneer.core.state.local_storage import LocalStorage
from climaneer.core.state.settings_store import SettingsStore
from climaneer.core.state.trend_store import TrendStore
from climaneer.core.state_store import StateStore
from climaneer.gateway.rtdb_client import RTDBClient
from climaneer.notification.notification_thread import NotificationWorkerThread
from climaneer.notification.webhook_notifier import WebhookNotifier
from climaneer.runtime.app_runtime import AppRuntime
from climaneer.runtime.event_bus import EventBus
from climaneer.runtime.notification_adapter_thread import EventSink
from climaneer.services.controller import DashboardController
from climaneer.services.coordinator import ControlModeCoordinator
from climaneer.services.scheduler import PumpScheduler, SchedulerConfig
from climaneer.voice.interpreter import VoiceCommandInterpreter
from climaneer.voice.readback import sensor_value_reader
from climaneer.voice.session import VoiceSession, VoiceSessionConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppWiring:
    """Everything a front end needs to run the system."""
    config: AppConfig
    store: StateStore
    gateway: RTDBClient
    controller: DashboardController
    coordinator: ControlModeCoordinator
    scheduler: PumpScheduler
    voice: VoiceSession
    runtime: AppRuntime


def build_store(cfg: AppConfig) -> StateStore:
    storage = LocalStorage(Path(cfg.storage.path))
    store = StateStore(
        trends=TrendStore(storage=storage),
        alerts=AlertStore(max_alerts=cfg.alerts.max_alerts),
        settings_store=SettingsStore(storage=storage),
    )
    store.load(default_settings=cfg.settings)
    return store


def build_notifier(cfg: AppConfig) -> Optional[NotificationWorkerThread]:
    if cfg.webhook is None:
        return None
    return NotificationWorkerThread(notifiers=[WebhookNotifier(cfg.webhook)])


def build_app_system(
    config_path: Optional[str] = None,
    announce: Optional[Callable[[str], None]] = None,
    sinks: Sequence[EventSink] = (),
    cfg: Optional[AppConfig] = None,
) -> AppWiring:
    """
    Wire the whole engine from a config file.

    Parameters
    ----------
    config_path
        Path to config.yaml; default resolution applies if None.
    announce
        Speech sink for the voice assistant. Defaults to logging.
    sinks
        Local consumers of alerts and notices.
    cfg
        Already loaded config; skips loading when given.
    """
    cfg = cfg or load_app_config(config_path)

    # --- STATE ---
    store = build_store(cfg)

    # --- ALERTS ---
    alert_engine = AlertEngine(cooldown=timedelta(seconds=cfg.alerts.cooldown_s))

    # --- GATEWAY ---
    gateway = RTDBClient(base_url=cfg.gateway.base_url, timeout_s=cfg.gateway.timeout_s)

    # --- EVENT BUS ---
    bus = EventBus()

    # --- SERVICES ---
    controller = DashboardController(gateway=gateway, store=store, alert_engine=alert_engine, bus=bus)
    coordinator = ControlModeCoordinator(gateway=gateway, store=store, bus=bus)
    scheduler = PumpScheduler(
        coordinator=coordinator,
        store=store,
        alert_engine=alert_engine,
        bus=bus,
        cfg=SchedulerConfig(
            check_interval_s=cfg.scheduler.check_interval_s,
            reactivate_in_window=cfg.scheduler.reactivate_in_window,
            off_retry_s=cfg.scheduler.off_retry_s,
        ),
    )
    controller.add_pump_listener(scheduler.on_pump_status)

    # --- VOICE ---
    voice = VoiceSession(
        cfg=VoiceSessionConfig(stop_delay_s=cfg.voice.stop_delay_s, restart_delay_s=cfg.voice.restart_delay_s)
    )
    voice.bind(
        VoiceCommandInterpreter(
            announce=announce or (lambda text: log.info("[VOICE] %s", text)),
            get_sensor_value=sensor_value_reader(store),
            on_pump_toggle=coordinator.toggle_pump,
            on_auto_mode=coordinator.switch_to_auto_mode,
        )
    )

    # --- RUNTIME ---
    runtime = AppRuntime(
        controller=controller,
        bus=bus,
        store=store,
        scheduler=scheduler,
        notifier=build_notifier(cfg),
        voice=voice,
        sinks=sinks,
    )

    return AppWiring(
        config=cfg,
        store=store,
        gateway=gateway,
        controller=controller,
        coordinator=coordinator,
        scheduler=scheduler,
        voice=voice,
        runtime=runtime,
    )
