from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional

from climaneer.core.accounting import format_runtime
from climaneer.core.state_store import StateStore
from climaneer.core.timeutil import utc_now
from climaneer.domain.models import Alert


def build_alert_webhook_payload(store: StateStore, alert: Alert, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build a webhook payload for a fired alert plus current store totals.

    The payload includes:
    - "alert": the alert record
    - "totals": a snapshot of the alert list, connectivity and pump usage

    Parameters
    ----------
    store
        Application state store used for the totals snapshot.
    alert
        Alert that triggered the webhook.
    now
        Time used for the running pump session. Defaults to UTC now.

    Returns
    -------
    dict
        Payload with keys "type", "alert" and "totals".
    """
    ts = now or utc_now()
    alerts = store.alert_list
    by_type = Counter(a.type.value for a in alerts)
    by_title = Counter(a.title for a in alerts)
    runtime = store.pump_runtime_ms(ts)

    alert_payload = {
        "id": alert.id,
        "type": alert.type.value,
        "title": alert.title,
        "message": alert.message,
        "timestamp": alert.timestamp,
    }

    totals_payload = {
        "alerts_total": len(alerts),
        "alerts_unread": sum(1 for a in alerts if not a.read),
        "alert_counts_by_type": {k: int(v) for k, v in by_type.items()},
        "alert_counts_by_title": {k: int(v) for k, v in by_title.items()},
        "online": store.online,
        "pump_status": store.system_status.pump_status.value,
        "pump_runtime_ms": runtime,
        "pump_runtime": format_runtime(runtime),
        "water_used_liters": round(store.water_used_liters(ts), 2),
    }

    return {
        "type": "alert_event",
        "alert": alert_payload,
        "totals": totals_payload,
    }
