from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from climaneer.core.timeutil import epoch_ms, utc_now
from climaneer.domain.models import HistoryEntry, SensorReading

MAX_HISTORY = 1000


@dataclass
class HistoryStore:
    """
    In-memory poll history, newest first.

    Notes
    -----
    - One entry is recorded per successful poll; the list is capped at
      ``max_entries`` and the oldest entries fall off the end.
    - Thread-safety is not handled here; the enclosing `StateStore` is
      responsible for synchronization.

    Attributes
    ----------
    entries
        History entries, most recent first.
    """

    max_entries: int = MAX_HISTORY
    entries: List[HistoryEntry] = field(default_factory=list)

    def record(self, reading: SensorReading, now: Optional[datetime] = None) -> HistoryEntry:
        """
        Prepend a history entry for ``reading``.

        Parameters
        ----------
        reading
            Mapped reading of the poll.
        now
            Poll time, used to make the entry id unique.

        Returns
        -------
        HistoryEntry
            The recorded entry.
        """
        ts = now or utc_now()
        entry = HistoryEntry(
            id=f"{reading.id}-{epoch_ms(ts)}",
            timestamp=reading.timestamp,
            sensors=reading,
        )
        self.entries.insert(0, entry)
        del self.entries[self.max_entries:]
        return entry

    def latest(self) -> Optional[HistoryEntry]:
        return self.entries[0] if self.entries else None

    def clear(self) -> None:
        self.entries.clear()
