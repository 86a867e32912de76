"""
Outbox — side effects collected during a transaction and dispatched after commit.

Engine code calls `tx.outbox.add(...)` while the transaction is open. Once the
transaction has committed, the engine calls `drain(dispatcher)`. A rolled back
transaction is never drained, so its events are dropped with it.

Delivery is at-most-once: a failing dispatch is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class OutboxEvent:
    event_type: str
    recipient_id: int
    template_data: dict = field(default_factory=dict)


class Outbox:
    def __init__(self):
        self._events: list[OutboxEvent] = []

    def add(self, event_type: str, recipient_id: int | None, **template_data) -> None:
        if recipient_id is None:
            return
        self._events.append(OutboxEvent(event_type, recipient_id, template_data))

    @property
    def events(self) -> list[OutboxEvent]:
        return list(self._events)

    async def drain(self, dispatcher) -> int:
        """Send every queued event once. Returns the number delivered without error."""
        events, self._events = self._events, []
        if dispatcher is None:
            for event in events:
                logger.debug("No dispatcher configured, dropping %s for %s", event.event_type, event.recipient_id)
            return 0

        delivered = 0
        for event in events:
            try:
                await dispatcher.notify(event.event_type, event.recipient_id, event.template_data)
                delivered += 1
            except Exception:
                logger.exception(
                    "Notification %s for recipient %s failed",
                    event.event_type,
                    event.recipient_id,
                )
        return delivered
