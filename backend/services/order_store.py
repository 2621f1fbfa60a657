"""
Order Store — the read/write order collection the tracker works against.

Two implementations share the same async interface:
    InMemoryOrderStore: a plain collection, the server-side stand-in for the
        browser's local order list (also used by unit tests)
    SqlOrderStore: backed by the orders / order_items tables

Both hand out immutable OrderRecord snapshots; callers never mutate a stored
order in place, they put() a new record.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.errors import StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # Naive UTC, consistent with the DateTime columns in db_models
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, (int, float)):
        # epoch milliseconds, as written by browser clients
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        return as_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp: {value!r}")


@dataclass(frozen=True)
class OrderLine:
    name: str
    price: float
    quantity: int = 1
    image: Optional[str] = None

    @property
    def subtotal(self) -> float:
        return round(self.price * self.quantity, 2)


@dataclass(frozen=True)
class OrderRecord:
    """Snapshot of one order."""

    id: Any
    user_id: Any
    created_at: datetime
    status: str
    items: tuple[OrderLine, ...] = ()
    total: float = 0.0
    restaurant_name: Optional[str] = None
    delivery_address: Optional[str] = None
    special_instructions: Optional[str] = None

    def with_status(self, status: str) -> "OrderRecord":
        return replace(self, status=status)

    @classmethod
    def from_dict(cls, data: dict) -> "OrderRecord":
        """
        Build a record from a loosely-shaped dict (camelCase or snake_case).

        Accepts `createdAt` or the legacy `date` key for the placement time.
        """
        created = data.get("createdAt") or data.get("created_at") or data.get("date")
        if created is None:
            raise ValueError("order is missing createdAt/date")
        items = tuple(
            OrderLine(
                name=i["name"],
                price=float(i.get("price", 0)),
                quantity=int(i.get("quantity", 1)),
                image=i.get("image"),
            )
            for i in data.get("items", [])
        )
        return cls(
            id=data["id"],
            user_id=data.get("userId", data.get("user_id")),
            created_at=_parse_timestamp(created),
            status=data.get("status", "confirmed"),
            items=items,
            total=float(data.get("total", sum(i.subtotal for i in items))),
            restaurant_name=data.get("restaurantName", data.get("restaurant_name")),
            delivery_address=data.get("deliveryAddress", data.get("delivery_address")),
            special_instructions=data.get("specialInstructions", data.get("special_instructions")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
            "status": self.status,
            "items": [
                {"name": i.name, "price": i.price, "quantity": i.quantity, "image": i.image}
                for i in self.items
            ],
            "total": self.total,
            "restaurantName": self.restaurant_name,
            "deliveryAddress": self.delivery_address,
            "specialInstructions": self.special_instructions,
        }


def same_id(a: Any, b: Any) -> bool:
    """Ids and user ids may arrive as int or str; compare their string forms."""
    return a is not None and b is not None and str(a) == str(b)


class OrderStore(Protocol):
    async def get(self, order_id: Any) -> Optional[OrderRecord]: ...

    async def put(self, order: OrderRecord) -> None: ...

    async def list(self, user_id: Any) -> list[OrderRecord]: ...

    async def delete_for_user(self, user_id: Any) -> int: ...


ChangeHandler = Callable[[set[str]], None]


# ════════════════════════════════════════════════════════════════════
# In-memory store
# ════════════════════════════════════════════════════════════════════


class InMemoryOrderStore:
    """
    Dict-backed order collection keyed by str(order.id).

    on_change() is the external change notification hook: handlers receive
    the set of order ids touched by every write, including replace_all(),
    which models another tab/process overwriting the whole collection.
    """

    def __init__(self, orders: Iterable[OrderRecord] = ()):
        self._orders: dict[str, OrderRecord] = {str(o.id): o for o in orders}
        self._handlers: list[ChangeHandler] = []
        self.fail_writes = False  # flip to simulate an unavailable backend

    def on_change(self, handler: ChangeHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def _notify(self, ids: set[str]) -> None:
        for handler in list(self._handlers):
            try:
                handler(ids)
            except Exception:
                logger.exception("Order store change handler failed")

    async def get(self, order_id: Any) -> Optional[OrderRecord]:
        return self._orders.get(str(order_id))

    async def add(self, order: OrderRecord) -> OrderRecord:
        await self.put(order)
        return order

    async def put(self, order: OrderRecord) -> None:
        if self.fail_writes:
            raise StorageError(f"Order store unavailable; order {order.id} not written")
        self._orders[str(order.id)] = order
        self._notify({str(order.id)})

    async def list(self, user_id: Any) -> list[OrderRecord]:
        orders = [o for o in self._orders.values() if same_id(o.user_id, user_id)]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def delete_for_user(self, user_id: Any) -> int:
        doomed = {k for k, o in self._orders.items() if same_id(o.user_id, user_id)}
        for key in doomed:
            del self._orders[key]
        if doomed:
            self._notify(doomed)
        return len(doomed)

    def replace_all(self, orders: Iterable[OrderRecord]) -> None:
        before = set(self._orders)
        self._orders = {str(o.id): o for o in orders}
        self._notify(before | set(self._orders))


# ════════════════════════════════════════════════════════════════════
# SQL store
# ════════════════════════════════════════════════════════════════════


def record_from_row(row) -> OrderRecord:
    """Map a db_models.Order row (with items loaded) to an OrderRecord."""
    return OrderRecord(
        id=row.id,
        user_id=row.user_id,
        created_at=row.created_at,
        status=row.status,
        items=tuple(
            OrderLine(name=i.name, price=i.price, quantity=i.quantity, image=i.image)
            for i in row.items
        ),
        total=row.total,
        restaurant_name=row.restaurant_name,
        delivery_address=row.delivery_address,
        special_instructions=row.special_instructions,
    )


class SqlOrderStore:
    """Order store over an AsyncSession. put() commits; reads always hit the DB."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, order_id: Any):
        from db_models import Order

        try:
            key = int(order_id)
        except (TypeError, ValueError):
            return None
        res = await self.db.execute(
            select(Order)
            .where(Order.id == key)
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def get(self, order_id: Any) -> Optional[OrderRecord]:
        row = await self._load(order_id)
        return record_from_row(row) if row is not None else None

    async def put(self, order: OrderRecord) -> None:
        try:
            row = await self._load(order.id)
            if row is None:
                raise StorageError(f"Order {order.id} disappeared before it could be updated")
            row.status = order.status
            row.updated_at = utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to write order {order.id}: {e}")
            raise StorageError(f"Failed to write order {order.id}") from e

    async def list(self, user_id: Any) -> list[OrderRecord]:
        from db_models import Order

        res = await self.db.execute(
            select(Order)
            .where(Order.user_id == int(user_id))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return [record_from_row(r) for r in res.scalars().all()]

    async def delete_for_user(self, user_id: Any) -> int:
        from db_models import Order, OrderItem

        try:
            ids = (
                await self.db.execute(select(Order.id).where(Order.user_id == int(user_id)))
            ).scalars().all()
            if ids:
                await self.db.execute(delete(OrderItem).where(OrderItem.order_id.in_(ids)))
                await self.db.execute(delete(Order).where(Order.id.in_(ids)))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to clear order history for user {user_id}") from e
        return len(ids)
