"""
Order service — placement, history, cancellation.

Placement writes through the ORM (it owns the schema: orders + order_items).
Everything after placement goes through an Order Store so the same code runs
against SqlOrderStore in the API and InMemoryOrderStore in tests.
"""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import OrderStatus, is_terminal
from domain.errors import ConflictError, NotFoundError, ValidationError
from services.order_store import OrderLine, OrderRecord, OrderStore, record_from_row, same_id, utcnow
from services.status_events import StatusChanged, StatusEventBus

logger = logging.getLogger(__name__)


def order_total(items: list[OrderLine]) -> float:
    return round(sum(i.subtotal for i in items), 2)


async def place_order(
    db: AsyncSession,
    *,
    user_id: int,
    items: list[dict],
    restaurant_name: str | None = None,
    delivery_address: str | None = None,
    special_instructions: str | None = None,
) -> OrderRecord:
    """
    Create a new order in status `confirmed`.

    Args:
        items: [{"name", "price", "quantity", "image"?}, ...]

    Raises:
        ValidationError: empty cart or a non-positive quantity/negative price
    """
    from db_models import Order, OrderItem

    if not items:
        raise ValidationError("Order must contain at least one item", field="items")

    lines = []
    for i in items:
        quantity = int(i.get("quantity", 1))
        price = float(i.get("price", 0))
        if quantity < 1:
            raise ValidationError(f"Quantity for {i.get('name')} must be at least 1", field="items")
        if price < 0:
            raise ValidationError(f"Price for {i.get('name')} cannot be negative", field="items")
        lines.append(OrderLine(name=i["name"], price=price, quantity=quantity, image=i.get("image")))

    now = utcnow()
    order = Order(
        user_id=user_id,
        restaurant_name=restaurant_name,
        status=OrderStatus.CONFIRMED.value,
        total=order_total(lines),
        delivery_address=delivery_address,
        special_instructions=special_instructions or "",
        created_at=now,
        updated_at=now,
        items=[
            OrderItem(position=pos, name=l.name, price=l.price, quantity=l.quantity, image=l.image)
            for pos, l in enumerate(lines)
        ],
    )
    db.add(order)
    await db.flush()

    logger.info(f"Order {order.id} placed by user {user_id} ({len(lines)} item(s), total {order.total})")
    return record_from_row(order)


async def get_order(store: OrderStore, *, order_id: Any, user_id: Any) -> OrderRecord:
    order = await store.get(order_id)
    if order is None or not same_id(order.user_id, user_id):
        raise NotFoundError("Order", str(order_id))
    return order


async def list_orders(store: OrderStore, *, user_id: Any) -> list[OrderRecord]:
    """Caller's orders, newest first."""
    return await store.list(user_id)


async def cancel_order(
    store: OrderStore,
    *,
    order_id: Any,
    user_id: Any,
    events: StatusEventBus,
) -> OrderRecord:
    """
    Cancel an order that has not been delivered yet.

    Raises:
        NotFoundError: unknown order or another user's order
        ConflictError: order already delivered or cancelled
        StorageError: write failed
    """
    order = await get_order(store, order_id=order_id, user_id=user_id)
    if is_terminal(order.status):
        raise ConflictError(
            f"Order {order_id} is already {order.status} and cannot be cancelled",
            details={"status": order.status},
        )

    cancelled = order.with_status(OrderStatus.CANCELLED.value)
    await store.put(cancelled)
    events.emit(
        StatusChanged(order_id=order.id, old_status=order.status, new_status=cancelled.status)
    )
    return cancelled


async def clear_history(store: OrderStore, *, user_id: Any) -> int:
    """Delete all of the caller's orders (other users' orders are untouched)."""
    removed = await store.delete_for_user(user_id)
    logger.info(f"Cleared {removed} order(s) for user {user_id}")
    return removed


def order_stats(orders: list[OrderRecord]) -> dict:
    """
    Summary counters for the order history screen.

    The history page this replaces had no cancellation: it counted every
    non-delivered order as pending and summed every total. Here cancelled
    orders are neither pending nor part of totalSpent.
    """
    return {
        "totalOrders": len(orders),
        "totalSpent": round(sum(o.total for o in orders if o.status != OrderStatus.CANCELLED.value), 2),
        "deliveredOrders": sum(1 for o in orders if o.status == OrderStatus.DELIVERED.value),
        "pendingOrders": sum(1 for o in orders if not is_terminal(o.status)),
    }


def export_history(orders: list[OrderRecord]) -> list[dict]:
    return [o.to_dict() for o in orders]
