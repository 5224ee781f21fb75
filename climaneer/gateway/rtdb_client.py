from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import requests

from climaneer.gateway.client_config import BASE_URL, CONTROLS_PATH, TIMEOUT_S
from climaneer.gateway.errors import GatewayPayloadError, GatewayTransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayState:
    """
    Raw document read from the realtime database.

    The three nodes are passed through untouched (or None when absent); the
    mapper is responsible for interpreting them.
    """

    sensors: Optional[Any] = None
    controls: Optional[Any] = None
    ai: Optional[Any] = None


@dataclass
class RTDBClient:
    """
    HTTP client for a Firebase-style realtime database REST API.

    Every node is addressed as ``<base_url>/<path>.json``. The whole document
    is read in one request; writes target the ``controls`` node only.

    Notes
    -----
    - This class is an infrastructure component. It does not map payloads and
      does not decide anything about pump state.
    - All failures surface as :class:`~climaneer.gateway.errors.GatewayError`
      subclasses; ``requests`` exceptions never leak to callers.

    Parameters
    ----------
    base_url
        Database root URL (no trailing ``.json``).
    timeout_s
        Per-request timeout in seconds.
    session
        HTTP session to use. A new one is created if omitted.
    """

    base_url: str = BASE_URL
    timeout_s: float = TIMEOUT_S
    session: requests.Session = field(default_factory=requests.Session)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.strip('/')}.json"

    def _request(self, method: str, path: str, body: Optional[Mapping[str, Any]] = None) -> Any:
        url = self._url(path)
        try:
            r = self.session.request(method, url, json=body, timeout=self.timeout_s)
            r.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise GatewayTransportError(f"{method} {url} failed with HTTP {status}", status_code=status) from e
        except requests.RequestException as e:
            raise GatewayTransportError(f"{method} {url} failed: {e}") from e

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise GatewayPayloadError(f"{method} {url} returned a non-JSON body") from e

    def fetch_state(self) -> GatewayState:
        """
        Read the whole database document.

        Returns
        -------
        GatewayState
            The ``sensors``, ``controls`` and ``ai`` nodes. A null or non-object
            document yields an empty state.

        Raises
        ------
        GatewayTransportError
            If the store is unreachable or answers with a non-2xx status.
        GatewayPayloadError
            If the body is not JSON.
        """
        data = self._request("GET", "")
        if not isinstance(data, dict):
            return GatewayState()
        return GatewayState(
            sensors=data.get("sensors"),
            controls=data.get("controls"),
            ai=data.get("ai"),
        )

    def patch_controls(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Merge ``fields`` into the controls node.

        Returns
        -------
        dict
            The fields echoed back by the store (empty if none).
        """
        log.debug("[GATEWAY] PATCH controls %s", dict(fields))
        data = self._request("PATCH", CONTROLS_PATH, fields)
        return data if isinstance(data, dict) else {}

    def put_controls(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Replace the controls node with ``document``.

        Returns
        -------
        dict
            The document echoed back by the store (empty if none).
        """
        log.debug("[GATEWAY] PUT controls %s", dict(document))
        data = self._request("PUT", CONTROLS_PATH, document)
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        self.session.close()
