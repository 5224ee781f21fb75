from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from climaneer.core.state.local_storage import LocalStorage
from climaneer.core.timeutil import as_utc, parse_iso, utc_now
from climaneer.domain.models import SensorReading, TrendStatistics

log = logging.getLogger(__name__)

TRENDS_KEY = "sensorTrends"
RETENTION = timedelta(hours=24)


@dataclass
class TrendStore:
    """
    Rolling 24h buffer of mapped readings used for charts and statistics.

    The buffer is ordered by arrival. After every append, entries older than
    the retention window (measured against wall-clock ``now``) are removed and
    the remaining sequence is persisted under the ``sensorTrends`` key.

    Notes
    -----
    - Capacity is bounded by time only. A 5s poll interval yields roughly
      17k entries per day; treat this as a soft memory budget.
    - Persistence is best-effort: storage failures are logged and the
      in-memory sequence stays authoritative for the session.
    - Thread-safety is not handled here; the enclosing `StateStore` is
      responsible for synchronization.

    Parameters
    ----------
    storage
        Durable key/value storage. If None, the store is memory-only.
    retention
        Maximum age of a kept reading.
    """

    storage: Optional[LocalStorage] = None
    retention: timedelta = RETENTION
    _readings: List[SensorReading] = field(default_factory=list, init=False)

    def append(self, reading: SensorReading, now: Optional[datetime] = None) -> None:
        """
        Append a reading, prune aged entries and persist.

        Parameters
        ----------
        reading
            Newly mapped reading.
        now
            Wall-clock time used for pruning. Defaults to UTC now.
        """
        self._readings.append(reading)
        self._prune(self.retention, now)
        self.save()

    def prune(self, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        """
        Remove entries older than ``max_age`` and persist.

        Returns
        -------
        int
            Number of removed entries.
        """
        removed = self._prune(max_age or self.retention, now)
        self.save()
        return removed

    def _prune(self, max_age: timedelta, now: Optional[datetime]) -> int:
        cutoff = as_utc(now or utc_now()) - max_age
        before = len(self._readings)
        kept = []
        for r in self._readings:
            ts = parse_iso(r.timestamp)
            # unparseable timestamps never compare as recent
            if ts is not None and ts > cutoff:
                kept.append(r)
        self._readings = kept
        return before - len(kept)

    def save(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.set_item(TRENDS_KEY, json.dumps([r.to_dict() for r in self._readings]))
        except (OSError, TypeError, ValueError) as e:
            log.warning("[TRENDS] persist failed, keeping in memory: %r", e)

    def load(self) -> int:
        """
        Replace the in-memory buffer with the persisted sequence.

        Missing or corrupt data leaves the store empty.

        Returns
        -------
        int
            Number of loaded readings.
        """
        self._readings = []
        if self.storage is None:
            return 0
        raw = self.storage.get_item(TRENDS_KEY)
        if not raw:
            return 0
        try:
            items = json.loads(raw)
            self._readings = [SensorReading.from_dict(item) for item in items]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            log.warning("[TRENDS] stored trends unreadable, starting empty: %r", e)
            self._readings = []
        return len(self._readings)

    def readings(self) -> List[SensorReading]:
        return list(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def statistics(self, since: Optional[datetime] = None) -> TrendStatistics:
        """
        Compute averages over the buffer.

        Parameters
        ----------
        since
            Only readings strictly newer than this are included. None uses
            the whole buffer.

        Returns
        -------
        TrendStatistics
            Averages of moisture, temperature, humidity and pH plus the sum of
            flow rates; all zero for an empty window.
        """
        window = self._readings
        if since is not None:
            cutoff = as_utc(since)
            window = [r for r in window if (parse_iso(r.timestamp) or cutoff) > cutoff]
        n = len(window)
        if n == 0:
            return TrendStatistics()
        return TrendStatistics(
            count=n,
            avg_moisture=sum(r.soil_moisture for r in window) / n,
            avg_temperature=sum(r.air_temperature for r in window) / n,
            avg_humidity=sum(r.air_humidity for r in window) / n,
            avg_ph=sum(r.ph for r in window) / n,
            total_flow=sum(r.flow_rate for r in window),
        )
