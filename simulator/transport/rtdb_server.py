from __future__ import annotations

"""
Flask app exposing a `FieldState` the way a Firebase-style realtime database
REST API does: every node is addressed as ``/<path>.json``.

Routes
------
GET   /.json            whole document ``{sensors, controls, ai}``
GET   /controls.json    controls node
PATCH /controls.json    merge the body into controls, echo the body
PUT   /controls.json    replace controls with the body, echo it
GET   /health           liveness
"""

import logging
from typing import Any, Dict, Tuple

from flask import Flask, jsonify, request

from simulator.core.field_state import FieldState

log = logging.getLogger(__name__)


def _json_object() -> Tuple[Dict[str, Any], bool]:
    data = request.get_json(silent=True)
    return (data, True) if isinstance(data, dict) else ({}, False)


def create_app(state: FieldState) -> Flask:
    app = Flask(__name__)

    @app.get("/.json")
    def root_document():
        return jsonify(state.document()), 200

    @app.get("/controls.json")
    def get_controls():
        return jsonify(state.get_controls()), 200

    @app.patch("/controls.json")
    def patch_controls():
        data, ok = _json_object()
        if not ok:
            return jsonify({"error": "body must be a JSON object"}), 400
        log.info("[SIM] PATCH controls %s", data)
        return jsonify(state.patch_controls(data)), 200

    @app.put("/controls.json")
    def put_controls():
        data, ok = _json_object()
        if not ok:
            return jsonify({"error": "body must be a JSON object"}), 400
        log.info("[SIM] PUT controls %s", data)
        return jsonify(state.put_controls(data)), 200

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app
