from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from climaneer.core.config.yaml_config import WebhookConfigData
from climaneer.notification.base import NotificationEvent

log = logging.getLogger(__name__)

EVENT_HEADER = "X-Climaneer-Event"
ALERT_ID_HEADER = "X-Climaneer-Alert-Id"


class WebhookNotifier:
    """
    POST alert events to the configured webhook.

    Every request carries the event type and, for alerts, the alert id as
    headers; the receiver uses the id to ignore a delivery the worker retried
    after a lost response.

    Notes
    -----
    - HTTP error statuses are surfaced via ``raise_for_status()`` so the
      worker thread can retry.
    - One ``requests.Session`` is reused for every delivery; :meth:`close`
      releases it.

    Parameters
    ----------
    cfg
        The ``webhook`` section of the app config.
    session
        HTTP session to use. A new one is created if omitted.
    """

    def __init__(self, cfg: WebhookConfigData, session: Optional[requests.Session] = None):
        self._cfg = cfg
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return self._cfg.url

    def _headers(self, event: NotificationEvent) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", EVENT_HEADER: event.type}
        if event.alert_id:
            headers[ALERT_ID_HEADER] = event.alert_id
        if self._cfg.auth_header:
            headers["Authorization"] = self._cfg.auth_header
        return headers

    def notify(self, event: NotificationEvent) -> None:
        """
        POST the event payload.

        Raises
        ------
        requests.HTTPError
            If the response status indicates an error.
        requests.RequestException
            For network-related errors.
        """
        r = self._session.post(
            self._cfg.url,
            json=event.payload,
            headers=self._headers(event),
            timeout=self._cfg.timeout_s,
            verify=self._cfg.verify_tls,
        )
        r.raise_for_status()
        log.debug("[WEBHOOK] delivered %s (%s) -> HTTP %s", event.alert_id or event.type, event.source, r.status_code)

    def close(self) -> None:
        self._session.close()
