"""
Alert cooldown engine.

This module contains the stateful part of alerting. Stateless
:class:`~climaneer.core.alert.alert_base.AlertCheck` objects report which
threshold conditions currently hold; the engine decides which of them become
:class:`~climaneer.domain.models.Alert` records by applying a per-title
cooldown.

A condition that persists across polls therefore produces one alert per
cooldown period instead of one alert per poll.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from climaneer.core.alert.alert_base import AlertCheck, AlertContext, AlertDecision
from climaneer.core.alert.alert_checks import default_checks
from climaneer.core.timeutil import epoch_ms, to_iso, utc_now
from climaneer.domain.models import Alert, AlertType, SensorReading, Settings

log = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(hours=1)


@dataclass
class AlertEngine:
    """
    Threshold evaluation with per-title cooldown.

    Cooldown Model
    --------------
    The engine keeps a tracking map ``title -> epoch ms of last firing``.
    A title fires when it was never fired before, or when at least
    ``cooldown`` has elapsed since the recorded firing. Entries never expire;
    they simply stop blocking once the cooldown has passed.

    Notes
    -----
    - If the ``store`` passed to :meth:`evaluate` / :meth:`raise_alert`
      provides an ``add_alert(alert)`` hook, every fired alert is handed to it.
    - The tracking map is guarded by a lock: the poll thread and scheduler
      timer threads may raise alerts concurrently.

    Parameters
    ----------
    checks
        Stateless checks evaluated in order on every reading.
    cooldown
        Minimum time between two firings of the same title.
    """

    checks: Sequence[AlertCheck] = field(default_factory=default_checks)
    cooldown: timedelta = DEFAULT_COOLDOWN
    _last_fired: Dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def evaluate(
        self,
        reading: SensorReading,
        settings: Settings,
        now: Optional[datetime] = None,
        store: object = None,
    ) -> List[Alert]:
        """
        Run all checks against a reading and fire alerts past their cooldown.

        Parameters
        ----------
        reading
            Newly mapped reading.
        settings
            Active settings providing the thresholds.
        now
            Evaluation time. Defaults to UTC now.
        store
            Optional store-like object with an ``add_alert`` hook.

        Returns
        -------
        list of Alert
            Alerts created in this evaluation (may be empty).
        """
        ts = now or utc_now()
        ctx = AlertContext(now=ts, settings=settings)

        decisions: List[AlertDecision] = []
        for c in self.checks:
            decisions.extend(c.evaluate(reading, ctx))

        fired: List[Alert] = []
        for d in decisions:
            alert = self.raise_alert(d.type, d.title, d.message, ts, store=store)
            if alert is not None:
                fired.append(alert)
        return fired

    def raise_alert(
        self,
        type: AlertType,
        title: str,
        message: str,
        now: Optional[datetime] = None,
        store: object = None,
    ) -> Optional[Alert]:
        """
        Fire a single alert subject to the cooldown of its title.

        Returns
        -------
        Alert or None
            The created alert, or None if the title is still cooling down.
        """
        ts = now or utc_now()
        now_ms = epoch_ms(ts)
        cooldown_ms = int(self.cooldown.total_seconds() * 1000)

        with self._lock:
            last = self._last_fired.get(title)
            if last is not None and now_ms - last < cooldown_ms:
                return None
            self._last_fired[title] = now_ms

        alert = Alert(
            id=f"{AlertType(type).value}-{now_ms}",
            type=AlertType(type),
            title=title,
            message=message,
            timestamp=to_iso(ts),
        )
        log.info("[ALERT] %s: %s", title, message)

        if hasattr(store, "add_alert"):
            store.add_alert(alert)  # type: ignore[attr-defined]
        return alert

    def last_fired_ms(self, title: str) -> Optional[int]:
        with self._lock:
            return self._last_fired.get(title)

    def reset(self) -> None:
        """Forget all cooldowns."""
        with self._lock:
            self._last_fired.clear()
