"""
Unit tests for climaneer.notification.webhook_notifier.

These tests validate webhook delivery against a recording session:
- request parameters (URL, JSON body, timeout, TLS flag)
- event/alert-id headers and Authorization handling
- HTTP error propagation via raise_for_status()
- session release on close

No real network requests are made.
"""

from __future__ import annotations

from typing import List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from climaneer.core.config.yaml_config import WebhookConfigData
from climaneer.domain.models import Alert, AlertType
from climaneer.notification.base import ALERT_EVENT, NotificationEvent
from climaneer.notification.webhook_notifier import ALERT_ID_HEADER, EVENT_HEADER, WebhookNotifier

ALERT = Alert(
    id="warning-1767261600000",
    type=AlertType.WARNING,
    title="Low Soil Moisture",
    message="Soil moisture is at 20%",
    timestamp="2026-01-01T10:00:00.000Z",
)


class RecordingSession:
    """Stands in for requests.Session.post."""

    def __init__(self, response=None, error: Optional[Exception] = None) -> None:
        self.response = response or MagicMock()
        self.error = error
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None, verify=True):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout, "verify": verify})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        self.closed = True


def _event() -> NotificationEvent:
    return NotificationEvent.for_alert(ALERT, {"alert": {"title": ALERT.title}})


def test_event_for_alert_carries_alert_fields() -> None:
    ev = _event()
    assert ev.type == ALERT_EVENT
    assert (ev.severity, ev.source, ev.ts, ev.alert_id) == (
        "warning", "Low Soil Moisture", "2026-01-01T10:00:00.000Z", "warning-1767261600000",
    )


def test_posts_payload_with_event_headers() -> None:
    session = RecordingSession()
    notifier = WebhookNotifier(
        WebhookConfigData(url="https://example.com/alert", timeout_s=3.0, verify_tls=False), session=session
    )

    notifier.notify(_event())

    [call] = session.calls
    assert call["url"] == "https://example.com/alert"
    assert call["json"] == {"alert": {"title": "Low Soil Moisture"}}
    assert call["headers"] == {
        "Content-Type": "application/json",
        EVENT_HEADER: "alert_event",
        ALERT_ID_HEADER: "warning-1767261600000",
    }
    assert (call["timeout"], call["verify"]) == (3.0, False)
    session.response.raise_for_status.assert_called_once()
    assert notifier.url == "https://example.com/alert"


def test_auth_header_and_no_alert_id() -> None:
    session = RecordingSession()
    notifier = WebhookNotifier(
        WebhookConfigData(url="https://example.com/alert", auth_header="Bearer TOKEN"), session=session
    )

    notifier.notify(NotificationEvent(type=ALERT_EVENT, payload={}))

    headers = session.calls[0]["headers"]
    assert headers["Authorization"] == "Bearer TOKEN"
    assert ALERT_ID_HEADER not in headers


def test_propagates_http_error() -> None:
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("HTTP 500")
    notifier = WebhookNotifier(WebhookConfigData(url="https://example.com/alert"), session=RecordingSession(response))

    with pytest.raises(requests.HTTPError):
        notifier.notify(_event())


def test_propagates_connection_error() -> None:
    session = RecordingSession(error=requests.ConnectionError("refused"))
    notifier = WebhookNotifier(WebhookConfigData(url="http://127.0.0.1:9/alert"), session=session)

    with pytest.raises(requests.RequestException):
        notifier.notify(_event())


def test_close_releases_session() -> None:
    session = RecordingSession()
    WebhookNotifier(WebhookConfigData(url="https://example.com/alert"), session=session).close()
    assert session.closed
