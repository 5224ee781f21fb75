from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from climaneer.domain.models import Alert

ALERT_EVENT = "alert_event"


@dataclass(frozen=True)
class NotificationEvent:
    """
    One outbound message of the notification layer.

    Only fired alerts leave the engine today (``type == "alert_event"``);
    notices stay local. ``alert_id`` travels with the event so a receiver can
    recognise a delivery retried after a timeout.

    Parameters
    ----------
    type
        Event type identifier.
    payload
        JSON body handed to notifiers as-is.
    severity
        Alert type value (``info``, ``warning``, ``danger``, ``success``).
    source
        Alert title.
    ts
        ISO-8601 timestamp of the alert.
    alert_id
        Id of the alert this event reports, if any.
    """

    type: str
    payload: Dict[str, Any]
    severity: Optional[str] = None
    source: Optional[str] = None
    ts: Optional[str] = None
    alert_id: Optional[str] = None

    @classmethod
    def for_alert(cls, alert: Alert, payload: Dict[str, Any]) -> "NotificationEvent":
        return cls(
            type=ALERT_EVENT,
            payload=payload,
            severity=alert.type.value,
            source=alert.title,
            ts=alert.timestamp,
            alert_id=alert.id,
        )


class Notifier(Protocol):
    """Delivers events. Failures are raised; retrying is the worker's job."""

    def notify(self, event: NotificationEvent) -> None:
        ...
