from __future__ import annotations

import logging
from dataclasses import dataclass, field
from queue import Full, Queue
from typing import Union

from climaneer.domain.events import Notice
from climaneer.domain.models import Alert

log = logging.getLogger(__name__)

BusEvent = Union[Alert, Notice]


@dataclass
class EventBus:
    """
    In-process event bus for alerts and notices using a thread-safe queue.

    The bus provides a simple producer/consumer mechanism:
    - Producers (controller, coordinator, scheduler) publish
      :class:`~climaneer.domain.models.Alert` and
      :class:`~climaneer.domain.events.Notice` objects.
    - Consumers (the notification adapter thread) read from :attr:`events_q`.

    Concurrency Model
    -----------------
    :class:`queue.Queue` is thread-safe. Multiple producers may publish
    concurrently without additional locking.

    Backpressure Policy
    -------------------
    If the queue is full, events are dropped (best-effort). Notification
    delivery must never block a poll or a pump write.

    Attributes
    ----------
    events_q
        Bounded queue of alerts and notices, in publish order.
    """

    events_q: "Queue[BusEvent]" = field(default_factory=lambda: Queue(maxsize=5000))
    dropped: int = 0

    def publish(self, ev: BusEvent) -> None:
        """
        Publish an event (non-blocking).

        Parameters
        ----------
        ev
            Alert or notice to publish. Dropped if the queue is full.
        """
        try:
            self.events_q.put_nowait(ev)
        except Full:
            self.dropped += 1
            log.debug("[BUS] queue full, dropped %s", type(ev).__name__)

    def publish_alert(self, alert: Alert) -> None:
        self.publish(alert)

    def publish_notice(self, notice: Notice) -> None:
        self.publish(notice)
