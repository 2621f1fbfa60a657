"""
Order endpoints — checkout, history, cancellation.
"""

import json
import logging
from datetime import date

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, get_order_store, pagination_params
from domain.responses import paginated_response, success_response
from middleware.auth import require_user
from models import PlaceOrderRequest
from services import order_service
from services.order_store import SqlOrderStore
from services.status_events import get_status_events

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=201)
async def place_order(
    request: PlaceOrderRequest,
    user_id: int = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Place an order from the caller's cart; it starts in status `confirmed`."""
    order = await order_service.place_order(
        db,
        user_id=user_id,
        items=[i.model_dump() for i in request.items],
        restaurant_name=request.restaurant_name,
        delivery_address=request.delivery_address,
        special_instructions=request.special_instructions,
    )
    await db.commit()
    return success_response(data=order.to_dict())


@router.get("")
async def list_orders(
    user_id: int = Depends(require_user),
    page: Pagination = Depends(pagination_params),
    store: SqlOrderStore = Depends(get_order_store),
):
    """Caller's order history (newest first) with summary stats in meta."""
    orders = await order_service.list_orders(store, user_id=user_id)
    window = orders[page["offset"]:page["offset"] + page["limit"]]
    return paginated_response(
        items=[o.to_dict() for o in window],
        limit=page["limit"],
        offset=page["offset"],
        total=len(orders),
        extra_meta={"stats": order_service.order_stats(orders)},
    )


@router.get("/export")
async def export_orders(
    user_id: int = Depends(require_user),
    store: SqlOrderStore = Depends(get_order_store),
):
    """Download the caller's order history as a JSON file."""
    orders = await order_service.list_orders(store, user_id=user_id)
    filename = f"order-history-{date.today().isoformat()}.json"
    return Response(
        content=json.dumps(order_service.export_history(orders), indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("")
async def clear_history(
    user_id: int = Depends(require_user),
    store: SqlOrderStore = Depends(get_order_store),
):
    removed = await order_service.clear_history(store, user_id=user_id)
    return success_response(data={"removed": removed})


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user_id: int = Depends(require_user),
    store: SqlOrderStore = Depends(get_order_store),
):
    order = await order_service.get_order(store, order_id=order_id, user_id=user_id)
    return success_response(data=order.to_dict())


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    user_id: int = Depends(require_user),
    store: SqlOrderStore = Depends(get_order_store),
):
    order = await order_service.cancel_order(
        store,
        order_id=order_id,
        user_id=user_id,
        events=get_status_events(),
    )

    from services.order_watcher import get_order_watcher
    watcher = get_order_watcher()
    if watcher is not None:
        watcher.unwatch(order_id)

    return success_response(data=order.to_dict())
