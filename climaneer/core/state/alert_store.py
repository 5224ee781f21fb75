from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

from climaneer.domain.models import Alert

MAX_ALERTS = 200


@dataclass
class AlertStore:
    """
    In-memory alert list, newest first.

    This store maintains the alerts shown to the user. Alerts are only ever
    mutated to flip ``read``; they leave the list by dismissal, "clear all",
    or by falling off the end once ``max_alerts`` is exceeded.

    Notes
    -----
    - This store is intentionally simple and not thread-safe.
      Synchronization is handled by the enclosing `StateStore`.
    """

    max_alerts: int = MAX_ALERTS
    alerts: List[Alert] = field(default_factory=list)

    def add(self, alert: Alert) -> None:
        """
        Prepend an alert and drop the oldest beyond the cap.

        Parameters
        ----------
        alert
            Alert to add.
        """
        self.alerts.insert(0, alert)
        del self.alerts[self.max_alerts:]

    def get(self, alert_id: str) -> Optional[Alert]:
        for a in self.alerts:
            if a.id == alert_id:
                return a
        return None

    def mark_read(self, alert_id: str) -> bool:
        """
        Mark one alert as read.

        Returns
        -------
        bool
            True if an alert with this id existed.
        """
        for i, a in enumerate(self.alerts):
            if a.id == alert_id:
                self.alerts[i] = replace(a, read=True)
                return True
        return False

    def dismiss(self, alert_id: str) -> bool:
        """Remove one alert. Returns True if it existed."""
        before = len(self.alerts)
        self.alerts = [a for a in self.alerts if a.id != alert_id]
        return len(self.alerts) != before

    def unread_count(self) -> int:
        return sum(1 for a in self.alerts if not a.read)

    def clear(self) -> None:
        self.alerts.clear()
