from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from climaneer.domain.models import Settings


@dataclass(frozen=True)
class GatewayConfig:
    """Realtime database endpoint."""
    base_url: str = "http://127.0.0.1:8700"
    timeout_s: float = 5.0


@dataclass(frozen=True)
class StorageConfig:
    """Location of the local key/value JSON file."""
    path: str = "climaneer-storage.json"


@dataclass(frozen=True)
class AlertConfig:
    """Alert engine cooldown and alert list cap."""
    cooldown_s: float = 3600.0
    max_alerts: int = 200


@dataclass(frozen=True)
class SchedulerConfigData:
    """Scheduler check period, re-activation policy and shutoff retry delay."""
    check_interval_s: float = 30.0
    reactivate_in_window: bool = True
    off_retry_s: float = 30.0


@dataclass(frozen=True)
class VoiceConfigData:
    """Voice session listening delays."""
    stop_delay_s: float = 0.3
    restart_delay_s: float = 1.2


@dataclass(frozen=True)
class WebhookConfigData:
    """Webhook notifier configuration (URL + auth)."""
    url: str
    auth_header: Optional[str] = None
    timeout_s: float = 3.0
    verify_tls: bool = True


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    This is the single source of truth for runtime-tunable values. The
    ``settings`` section only provides defaults; settings saved by the user
    in local storage take precedence at runtime.
    """
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    scheduler: SchedulerConfigData = field(default_factory=SchedulerConfigData)
    voice: VoiceConfigData = field(default_factory=VoiceConfigData)
    settings: Settings = field(default_factory=Settings)
    webhook: Optional[WebhookConfigData] = None


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return value


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) APP_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    env = os.getenv("APP_CONFIG")
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def parse_app_config(raw: Dict[str, Any]) -> AppConfig:
    """
    Convert a parsed YAML mapping into typed config objects.

    Environment Overrides
    ---------------------
    - ``CLIMANEER_GATEWAY_URL`` replaces ``gateway.base_url``.
    - ``CLIMANEER_WEBHOOK_TOKEN`` sets the webhook ``auth_header`` (as a Bearer
      token) when the YAML does not provide one.

    Raises
    ------
    ValueError
        If a value is invalid (e.g. poll interval outside 1000..60000 ms).
    """
    g = _section(raw, "gateway")
    gateway = GatewayConfig(
        base_url=str(os.getenv("CLIMANEER_GATEWAY_URL") or g.get("base_url", GatewayConfig.base_url)),
        timeout_s=float(g.get("timeout_s", GatewayConfig.timeout_s)),
    )

    s = _section(raw, "storage")
    storage = StorageConfig(path=str(s.get("path", StorageConfig.path)))

    a = _section(raw, "alerts")
    alerts = AlertConfig(
        cooldown_s=float(a.get("cooldown_s", AlertConfig.cooldown_s)),
        max_alerts=int(a.get("max_alerts", AlertConfig.max_alerts)),
    )
    if alerts.cooldown_s < 0 or alerts.max_alerts <= 0:
        raise ValueError("alerts.cooldown_s must be >= 0 and alerts.max_alerts > 0")

    sc = _section(raw, "scheduler")
    scheduler = SchedulerConfigData(
        check_interval_s=float(sc.get("check_interval_s", SchedulerConfigData.check_interval_s)),
        reactivate_in_window=bool(sc.get("reactivate_in_window", SchedulerConfigData.reactivate_in_window)),
        off_retry_s=float(sc.get("off_retry_s", SchedulerConfigData.off_retry_s)),
    )
    if scheduler.check_interval_s <= 0 or scheduler.off_retry_s <= 0:
        raise ValueError("scheduler.check_interval_s and scheduler.off_retry_s must be > 0")

    v = _section(raw, "voice")
    voice = VoiceConfigData(
        stop_delay_s=float(v.get("stop_delay_s", VoiceConfigData.stop_delay_s)),
        restart_delay_s=float(v.get("restart_delay_s", VoiceConfigData.restart_delay_s)),
    )

    # ``settings`` uses the same camelCase keys as persisted settings; the
    # poll interval may also be given under polling.interval_ms.
    settings_raw = dict(_section(raw, "settings"))
    p = _section(raw, "polling")
    if "interval_ms" in p:
        settings_raw.setdefault("pollInterval", p["interval_ms"])
    settings = Settings.from_dict(settings_raw)

    webhook = None
    w = raw.get("webhook")
    token = os.getenv("CLIMANEER_WEBHOOK_TOKEN")
    if w:
        if not isinstance(w, dict) or not w.get("url"):
            raise ValueError("config section 'webhook' requires a url")
        auth_header = w.get("auth_header") or token
        if auth_header and not str(auth_header).startswith("Bearer "):
            auth_header = f"Bearer {auth_header}"
        webhook = WebhookConfigData(
            url=str(w["url"]),
            auth_header=auth_header,
            timeout_s=float(w.get("timeout_s", 3.0)),
            verify_tls=bool(w.get("verify_tls", True)),
        )

    return AppConfig(
        gateway=gateway,
        storage=storage,
        alerts=alerts,
        scheduler=scheduler,
        voice=voice,
        settings=settings,
        webhook=webhook,
    )


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML and convert into typed config objects.

    A ``.env`` file next to the config file is loaded first (existing
    environment variables win).

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Returns
    -------
    AppConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If required fields are missing or invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    load_dotenv(cfg_path.parent / ".env")
    return parse_app_config(_read_yaml(cfg_path))
