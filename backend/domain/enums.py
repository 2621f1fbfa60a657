"""
Domain enums for order status.
"""

from enum import Enum


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Simulated delivery progression; cancelled is never part of it.
STATUS_SEQUENCE = (
    OrderStatus.CONFIRMED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.OUT_FOR_DELIVERY.value,
    OrderStatus.DELIVERED.value,
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value})

# Statuses the simulator still advances; anything else is never polled.
ACTIVE_STATUSES = frozenset(STATUS_SEQUENCE[:-1])


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
