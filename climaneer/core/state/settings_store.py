from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from climaneer.core.state.local_storage import LocalStorage
from climaneer.domain.models import ScheduleSlot, Settings

log = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
THEME_KEY = "theme"
SCHEDULES_KEY = "aquaclima_schedules"

DEFAULT_SLOTS = (
    ScheduleSlot(time="06:00", duration=30, enabled=True),
    ScheduleSlot(time="18:00", duration=20, enabled=True),
)


@dataclass
class SettingsStore:
    """
    Local persistence for user settings, theme and daily schedule slots.

    Reads never raise: missing or invalid data falls back to the defaults
    passed by the caller. Writes are best-effort and only logged on failure,
    since the in-memory settings stay authoritative for the session.

    Parameters
    ----------
    storage
        Durable key/value storage. If None, nothing is persisted.
    """

    storage: Optional[LocalStorage] = None

    def load_settings(self, defaults: Settings) -> Settings:
        """
        Load persisted settings layered over ``defaults``.

        The ``theme`` key, when present, wins over the stored ``darkMode``.
        """
        if self.storage is None:
            return defaults
        settings = defaults
        raw = self.storage.get_item(SETTINGS_KEY)
        if raw:
            try:
                data = json.loads(raw)
                if isinstance(data, dict):
                    settings = Settings.from_dict(data, base=defaults)
            except (ValueError, TypeError) as e:
                log.warning("[SETTINGS] stored settings unreadable, using defaults: %r", e)
        theme = self.storage.get_item(THEME_KEY)
        if theme in ("light", "dark"):
            settings = Settings.from_dict({"darkMode": theme == "dark"}, base=settings)
        return settings

    def save_settings(self, settings: Settings) -> None:
        if self.storage is None:
            return
        try:
            self.storage.set_item(SETTINGS_KEY, json.dumps(settings.to_dict()))
            self.storage.set_item(THEME_KEY, "dark" if settings.dark_mode else "light")
        except OSError as e:
            log.warning("[SETTINGS] persist failed: %r", e)

    def load_slots(self) -> List[ScheduleSlot]:
        """
        Load daily schedule slots.

        Returns
        -------
        list of ScheduleSlot
            Stored slots, or the two default slots (06:00 and 18:00) when
            nothing valid is stored.
        """
        if self.storage is None:
            return list(DEFAULT_SLOTS)
        raw = self.storage.get_item(SCHEDULES_KEY)
        if not raw:
            return list(DEFAULT_SLOTS)
        try:
            return [ScheduleSlot.from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            log.warning("[SETTINGS] stored schedules unreadable, using defaults: %r", e)
            return list(DEFAULT_SLOTS)

    def save_slots(self, slots: List[ScheduleSlot]) -> None:
        if self.storage is None:
            return
        try:
            self.storage.set_item(SCHEDULES_KEY, json.dumps([s.to_dict() for s in slots]))
        except OSError as e:
            log.warning("[SETTINGS] persist schedules failed: %r", e)
