from __future__ import annotations

"""
Default realtime-database gateway configuration.

These values point at the local simulator and are used when no ``gateway``
section is configured. They can be overridden by passing explicit arguments
when constructing the client.

Attributes
----------
BASE_URL
    Base URL of the realtime database (the document root).
TIMEOUT_S
    Default per-request timeout (seconds).
CONTROLS_PATH
    Path of the writable controls node, relative to the base URL.
"""

BASE_URL: str = "http://127.0.0.1:8700"
TIMEOUT_S: float = 5.0
CONTROLS_PATH: str = "controls"
