"""
Derived display values for order tracking.

Pure functions of (status, created_at, now); nothing here touches the store
and nothing here raises on an unknown status.
"""
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlencode

from domain.enums import STATUS_SEQUENCE, OrderStatus, is_terminal
from services.order_store import OrderRecord
from services.tracking_service import DEFAULT_CONFIG, TrackingConfig, elapsed_minutes

PROGRESS_PERCENTAGE = {
    OrderStatus.CONFIRMED.value: 25,
    OrderStatus.PREPARING.value: 50,
    OrderStatus.OUT_FOR_DELIVERY.value: 75,
    OrderStatus.DELIVERED.value: 100,
    OrderStatus.CANCELLED.value: 100,
}

STATUS_LABELS = {
    OrderStatus.CONFIRMED.value: "Confirmed",
    OrderStatus.PREPARING.value: "Preparing",
    OrderStatus.OUT_FOR_DELIVERY.value: "Out for Delivery",
    OrderStatus.DELIVERED.value: "Delivered",
    OrderStatus.CANCELLED.value: "Cancelled",
}

STATUS_BADGE_CLASSES = {
    OrderStatus.CONFIRMED.value: "bg-primary",
    OrderStatus.PREPARING.value: "bg-warning text-dark",
    OrderStatus.OUT_FOR_DELIVERY.value: "bg-info",
    OrderStatus.DELIVERED.value: "bg-success",
    OrderStatus.CANCELLED.value: "bg-danger",
}
DEFAULT_BADGE_CLASS = "bg-secondary"

TIMELINE_STEPS = (
    {
        "status": OrderStatus.CONFIRMED.value,
        "label": "Order Confirmed",
        "icon": "fa-check-circle",
        "description": "Your order has been received and confirmed",
    },
    {
        "status": OrderStatus.PREPARING.value,
        "label": "Preparing Food",
        "icon": "fa-utensils",
        "description": "The restaurant is preparing your delicious meal",
    },
    {
        "status": OrderStatus.OUT_FOR_DELIVERY.value,
        "label": "Out for Delivery",
        "icon": "fa-motorcycle",
        "description": "Your order is on the way to you",
    },
    {
        "status": OrderStatus.DELIVERED.value,
        "label": "Delivered",
        "icon": "fa-home",
        "description": "Your order has been delivered. Enjoy your meal!",
    },
)


def progress_percentage(status: str) -> int:
    return PROGRESS_PERCENTAGE.get(status, 0)


def status_label(status: str) -> str:
    if status in STATUS_LABELS:
        return STATUS_LABELS[status]
    return str(status) if status else "Unknown"


def status_badge_class(status: str) -> str:
    return STATUS_BADGE_CLASSES.get(status, DEFAULT_BADGE_CLASS)


def estimated_minutes_remaining(
    status: str,
    created_at: datetime,
    now: datetime,
    config: TrackingConfig = DEFAULT_CONFIG,
) -> Optional[int]:
    """
    Minutes left on the simulated journey for an active order, else None.

    The journey is split into three equal phases (confirmed, preparing,
    out_for_delivery). Within phase i the countdown runs from
    total - i*phase down by the minutes spent in that phase, clamped to one
    phase length and floored at the phase's minimum.
    """
    active = STATUS_SEQUENCE[:-1]
    if status not in active:
        return None
    i = active.index(status)
    phase = config.eta_phase_minutes
    spent_in_phase = min(elapsed_minutes(created_at, now) - i * phase, phase)
    remaining = config.eta_total_minutes - i * phase - spent_in_phase
    return max(config.eta_floor_minutes[i], remaining)


def estimated_time_remaining(
    status: str,
    created_at: datetime,
    now: datetime,
    config: TrackingConfig = DEFAULT_CONFIG,
) -> Optional[str]:
    """Human ETA label: "~N minutes remaining", "Delivered", "Order Cancelled", or None."""
    if status == OrderStatus.DELIVERED.value:
        return "Delivered"
    if status == OrderStatus.CANCELLED.value:
        return "Order Cancelled"
    minutes = estimated_minutes_remaining(status, created_at, now, config)
    if minutes is None:
        return None
    return f"~{minutes} minutes remaining"


def tracking_timeline(status: str) -> list[dict]:
    """Four-step delivery timeline with completed/current flags for `status`."""
    current = STATUS_SEQUENCE.index(status) if status in STATUS_SEQUENCE else -1
    steps = []
    for index, step in enumerate(TIMELINE_STEPS):
        steps.append(
            {
                **step,
                "completed": index <= current,
                "current": index == current,
                "inProgress": index == current and not is_terminal(status),
            }
        )
    return steps


def share_link(order_id: Any, base_url: str) -> dict:
    url = f"{base_url}?{urlencode({'track-order': order_id})}"
    return {
        "url": url,
        "title": f"Order #{order_id} - The Social Bite",
        "text": f"Track my order #{order_id} from The Social Bite: {url}",
    }


def build_tracking_view(
    order: OrderRecord,
    now: datetime,
    config: TrackingConfig = DEFAULT_CONFIG,
    base_url: Optional[str] = None,
) -> dict:
    """Everything the tracking screen needs for one order, in one dict."""
    view = {
        "orderId": order.id,
        "status": order.status,
        "statusLabel": status_label(order.status),
        "badgeClass": status_badge_class(order.status),
        "progressPercentage": progress_percentage(order.status),
        "estimatedTime": estimated_time_remaining(order.status, order.created_at, now, config),
        "timeline": tracking_timeline(order.status),
        "canRefresh": not is_terminal(order.status),
        "order": order.to_dict(),
    }
    if base_url:
        view["share"] = share_link(order.id, base_url)
    return view
