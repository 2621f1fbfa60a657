"""
Order Tracking Service — simulated delivery status progression.

There is no real kitchen or courier behind an order. Its status is inferred
from the time elapsed since it was placed:

    confirmed -> preparing -> out_for_delivery -> delivered

one step per `stage_minutes` (8 by default), capped at delivered. cancelled is
terminal and only ever set by an explicit cancellation.

compute_progressed_status() is pure: it takes `now` as an argument and has no
hidden state, so the whole timeline can be tested by injecting clocks.
OrderTracker wraps it with the store read, ownership check, write and
StatusChanged notification.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from config import settings
from domain.enums import STATUS_SEQUENCE
from domain.errors import NotFoundError
from services.order_store import OrderRecord, OrderStore, as_naive_utc, same_id, utcnow
from services.status_events import StatusChanged, StatusEventBus, StatusHandler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingConfig:
    """Demo timing constants for the simulation and the ETA countdown."""

    stage_minutes: int = 8
    eta_total_minutes: int = 45
    eta_phase_minutes: int = 15
    eta_floor_minutes: tuple[int, int, int] = (5, 5, 2)

    @classmethod
    def from_settings(cls) -> "TrackingConfig":
        return cls(
            stage_minutes=settings.stage_advance_minutes,
            eta_total_minutes=settings.eta_total_minutes,
            eta_phase_minutes=settings.eta_phase_minutes,
            eta_floor_minutes=tuple(settings.eta_floor_minutes),
        )


DEFAULT_CONFIG = TrackingConfig()


def elapsed_minutes(created_at: datetime, now: datetime) -> int:
    """Whole minutes between placement and now (floored; negative if created_at is in the future)."""
    delta = as_naive_utc(now) - as_naive_utc(created_at)
    return int(delta.total_seconds() // 60)


def target_stage_index(created_at: datetime, now: datetime, config: TrackingConfig = DEFAULT_CONFIG) -> int:
    """Index into STATUS_SEQUENCE the order should have reached by `now`."""
    return min(elapsed_minutes(created_at, now) // config.stage_minutes, len(STATUS_SEQUENCE) - 1)


def compute_progressed_status(
    order: OrderRecord,
    now: datetime,
    config: TrackingConfig = DEFAULT_CONFIG,
) -> OrderRecord:
    """
    Return `order` advanced to the status its age implies.

    Orders that are delivered, cancelled or carry an unrecognised status are
    returned unchanged. Status never moves backwards: if the order is already
    at or beyond the target stage the same object is returned.
    """
    if order.status not in STATUS_SEQUENCE[:-1]:
        return order

    stage_index = STATUS_SEQUENCE.index(order.status)
    target_index = target_stage_index(order.created_at, now, config)

    if target_index > stage_index:
        return order.with_status(STATUS_SEQUENCE[target_index])
    return order


@dataclass(frozen=True)
class RefreshResult:
    order: OrderRecord
    changed: bool


class OrderTracker:
    """
    Refreshes stored orders against the simulated timeline.

    Args:
        store: Order Store collaborator (get/put/list)
        events: bus that receives StatusChanged
        clock: returns the current naive-UTC time; injectable for tests
        config: timing constants
    """

    def __init__(
        self,
        store: OrderStore,
        events: Optional[StatusEventBus] = None,
        clock: Callable[[], datetime] = utcnow,
        config: TrackingConfig = DEFAULT_CONFIG,
    ):
        self.store = store
        self.events = events if events is not None else StatusEventBus()
        self.clock = clock
        self.config = config

    def on_status_changed(self, handler: StatusHandler) -> Callable[[], None]:
        """Subscribe to StatusChanged events; returns an unsubscribe callable."""
        return self.events.subscribe(handler)

    async def get_owned(self, order_id: Any, user_id: Any) -> OrderRecord:
        """Fetch an order, raising NotFoundError if it is missing or belongs to another user."""
        order = await self.store.get(order_id)
        if order is None or not same_id(order.user_id, user_id):
            # Same error for both cases so other users' order ids are not revealed
            raise NotFoundError("Order", str(order_id))
        return order

    async def refresh(self, order_id: Any, user_id: Any, now: Optional[datetime] = None) -> RefreshResult:
        """
        Re-read an order and advance its status if enough time has passed.

        Raises:
            NotFoundError: no such order, or not owned by user_id
            StorageError: the status write failed; nothing is emitted and the
                stored status is unchanged
        """
        now = now or self.clock()
        order = await self.get_owned(order_id, user_id)

        updated = compute_progressed_status(order, now, self.config)
        if updated.status == order.status:
            return RefreshResult(order=order, changed=False)

        await self.store.put(updated)

        self.events.emit(
            StatusChanged(
                order_id=order.id,
                old_status=order.status,
                new_status=updated.status,
                changed_at=as_naive_utc(now),
            )
        )
        return RefreshResult(order=updated, changed=True)
