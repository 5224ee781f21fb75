"""
Unit tests for the alert webhook receiver (webhook_server.webhook_server).

Covers Bearer auth, the capped event list and duplicate delivery handling.
"""

from __future__ import annotations

import pytest

from webhook_server.webhook_server import MAX_EVENTS, create_app

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture
def app():
    app = create_app(token="test-token")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def _payload(title: str) -> dict:
    return {"type": "alert_event", "alert": {"title": title, "message": "m"}, "totals": {"alerts_total": 1}}


def test_missing_token_is_401(client) -> None:
    assert client.post("/alert", json=_payload("a")).status_code == 401
    assert client.get("/api/alert/recent").status_code == 401


def test_wrong_token_is_403(client) -> None:
    r = client.post("/alert", json=_payload("a"), headers={"Authorization": "Bearer nope"})
    assert r.status_code == 403
    assert r.get_json() == {"error": "invalid token"}


def test_post_then_recent_newest_first(client) -> None:
    for title in ("Low Battery", "Low Soil Moisture"):
        r = client.post("/alert", json=_payload(title), headers=AUTH)
        assert r.status_code == 200
        assert r.get_json() == {"status": "ok"}

    body = client.get("/api/alert/recent", headers=AUTH).get_json()

    assert body["count"] == 2
    assert [e["body"]["alert"]["title"] for e in body["events"]] == ["Low Soil Moisture", "Low Battery"]
    assert "received_at" in body["events"][0]


def test_event_list_is_capped(app, client) -> None:
    for i in range(MAX_EVENTS + 5):
        app.config["EVENTS"].append({"received_at": "t", "body": {"i": i}})

    client.post("/alert", json=_payload("last"), headers=AUTH)

    events = app.config["EVENTS"]
    assert len(events) == MAX_EVENTS
    assert events[-1]["body"]["alert"]["title"] == "last"


def test_token_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("WEBHOOK_TOKEN", "env-token")
    client = create_app().test_client()

    assert client.post("/alert", json={}, headers={"Authorization": "Bearer env-token"}).status_code == 200


def test_health_needs_no_auth(client) -> None:
    assert client.get("/health").get_json() == {"status": "ok"}


def test_retried_delivery_is_stored_once(app, client) -> None:
    headers = dict(AUTH, **{"X-Climaneer-Alert-Id": "warning-1", "X-Climaneer-Event": "alert_event"})

    first = client.post("/alert", json=_payload("Low Battery"), headers=headers)
    again = client.post("/alert", json=_payload("Low Battery"), headers=headers)
    # same millisecond id, different alert
    other = client.post("/alert", json=_payload("Low Water Level"), headers=headers)

    assert first.get_json() == {"status": "ok"}
    assert again.get_json() == {"status": "duplicate"}
    assert other.get_json() == {"status": "ok"}
    events = app.config["EVENTS"]
    assert [e["body"]["alert"]["title"] for e in events] == ["Low Battery", "Low Water Level"]
    assert events[0]["alert_id"] == "warning-1"
    assert events[0]["event"] == "alert_event"
