"""
User-facing notice events.

An :class:`~climaneer.domain.models.Alert` is a durable record kept in the
alert list, while a `Notice` is a transient "toast": the outcome of a pump
toggle, a mode switch, a connectivity change or a scheduler action.

Notices are typically used for:
- console/UI toasts
- logging and audit trails
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NoticeVariant(str, Enum):
    """
    Presentation variant of a notice.

    Members
    -------
    DEFAULT : str
        Neutral or positive outcome.
    DESTRUCTIVE : str
        Failure the user should know about.
    """

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    """
    Transient user-visible message.

    Parameters
    ----------
    title
        Short headline (e.g., "Pump enabled").
    description
        Longer explanation or error text.
    timestamp
        When the notice was produced.
    variant
        Presentation variant.
    """

    title: str
    description: str
    timestamp: datetime
    variant: NoticeVariant = NoticeVariant.DEFAULT

    @property
    def is_failure(self) -> bool:
        return self.variant == NoticeVariant.DESTRUCTIVE
