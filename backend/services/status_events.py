"""
Status change notifications.

The tracker emits exactly one event kind, StatusChanged, whenever it actually
advances (or cancellation moves) a stored order. Handlers run synchronously
inside the call that produced the event.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from services.order_store import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChanged:
    order_id: Any
    old_status: str
    new_status: str
    changed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "oldStatus": self.old_status,
            "newStatus": self.new_status,
            "changedAt": self.changed_at.isoformat(),
        }


StatusHandler = Callable[[StatusChanged], None]


class StatusEventBus:
    """Fan-out of StatusChanged events to any number of subscribers."""

    def __init__(self):
        self._handlers: list[StatusHandler] = []
        self.emitted_count = 0

    def subscribe(self, handler: StatusHandler) -> Callable[[], None]:
        """Register handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def emit(self, event: StatusChanged) -> None:
        self.emitted_count += 1
        logger.info(
            f"Order {event.order_id} status changed: {event.old_status} -> {event.new_status}"
        )
        # A failing observer must not starve the others
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"StatusChanged handler {handler!r} failed for order {event.order_id}")

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)


# Process-wide bus shared by request handlers and the background watcher
_events: StatusEventBus | None = None


def get_status_events() -> StatusEventBus:
    global _events
    if _events is None:
        _events = StatusEventBus()
    return _events
