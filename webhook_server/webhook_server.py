from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request

log = logging.getLogger(__name__)

MAX_EVENTS = 500
RECENT_LIMIT = 200
EVENT_HEADER = "X-Climaneer-Event"
ALERT_ID_HEADER = "X-Climaneer-Alert-Id"


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def create_app(token: Optional[str] = None) -> Flask:
    """
    Build the alert webhook receiver.

    Routes
    ------
    POST /alert              store one alert event (Bearer token required);
                             a repeated X-Climaneer-Alert-Id with the same
                             body is acknowledged but not stored again
    GET  /api/alert/recent   newest events first (Bearer token required)
    GET  /health             liveness, no auth

    Parameters
    ----------
    token
        Expected Bearer token. Defaults to ``WEBHOOK_TOKEN`` from the
        environment (or ``dev-token``).
    """
    app = Flask(__name__)
    expected = token or os.getenv("WEBHOOK_TOKEN", "dev-token")
    events: list[dict] = []
    app.config["EVENTS"] = events

    def require_bearer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if auth.startswith("Bearer "):
                if auth.removeprefix("Bearer ").strip() == expected:
                    return fn(*args, **kwargs)
                return jsonify({"error": "invalid token"}), 403
            return jsonify({"error": "unauthorized"}), 401
        return wrapper

    @app.post("/alert")
    @require_bearer
    def alert():
        data = request.get_json(silent=True) or {}
        alert_id = request.headers.get(ALERT_ID_HEADER)

        # a retried delivery whose first response was lost: same id, same body
        if alert_id and any(e.get("alert_id") == alert_id and e.get("body") == data for e in events):
            log.info("[WEBHOOK] duplicate delivery of %s ignored", alert_id)
            return jsonify({"status": "duplicate"}), 200

        events.append({
            "received_at": _now_iso(),
            "event": request.headers.get(EVENT_HEADER, data.get("type")),
            "alert_id": alert_id,
            "body": data,
        })
        if len(events) > MAX_EVENTS:
            del events[:-MAX_EVENTS]

        a = data.get("alert") or {}
        log.info("[WEBHOOK] %s: %s", a.get("title", "?"), a.get("message", ""))
        return jsonify({"status": "ok"}), 200

    @app.get("/api/alert/recent")
    @require_bearer
    def api_recent():
        recent = list(reversed(events[-RECENT_LIMIT:]))
        return jsonify({"count": len(events), "events": recent}), 200

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app


def main() -> None:
    # .env next to the executable (frozen) or this file (dev)
    base = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
    load_dotenv(base / ".env")
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = create_app()
    # do NOT use debug=True in production
    app.run(host="0.0.0.0", port=int(os.getenv("WEBHOOK_PORT", "8000")), debug=False)


if __name__ == "__main__":
    main()
