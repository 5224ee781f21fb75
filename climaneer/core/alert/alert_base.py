"""
Alert evaluation contracts (context, decisions and the check protocol).

This module defines the data structures that form the contract between:

- Alert checks (stateless threshold evaluators) producing :class:`AlertDecision`
- The alert engine (stateful cooldown tracker) turning decisions into alerts

Notes
-----
The alert ``title`` is the deduplication key of the engine, so every check
must produce a stable title for the same logical condition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from climaneer.domain.models import AlertType, SensorReading, Settings


@dataclass(frozen=True)
class AlertContext:
    """
    Context passed into alert evaluation.

    Parameters
    ----------
    now
        Evaluation timestamp of the current cycle.
    settings
        Active user settings (thresholds).
    """

    now: datetime
    settings: Settings


@dataclass(frozen=True)
class AlertDecision:
    """
    A threshold condition that is currently true.

    Checks only return decisions for conditions that hold; whether an alert
    is actually created is up to the engine's cooldown.

    Parameters
    ----------
    type
        Alert severity/category.
    title
        Stable title, also used as cooldown key.
    message
        Human-readable message including measured value and threshold.
    value
        Measured value that triggered the decision.
    """

    type: AlertType
    title: str
    message: str
    value: float


class AlertCheck(Protocol):
    """
    Protocol interface for a stateless alert check.

    Methods
    -------
    evaluate(reading, ctx)
        Return zero or more decisions for the given reading.
    """

    def evaluate(self, reading: SensorReading, ctx: AlertContext) -> Sequence[AlertDecision]:
        ...
