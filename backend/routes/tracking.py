"""
Tracking endpoints — simulated delivery progress for the caller's orders.

GET  /orders/{id}/tracking          refresh + full tracking view
POST /orders/{id}/tracking/refresh  refresh only, reports whether status changed
POST /orders/{id}/tracking/watch    start server-side auto-refresh
DELETE /orders/{id}/tracking/watch  stop it
GET  /tracking/status               watcher status
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from config import settings
from deps import get_tracker
from domain.responses import success_response
from middleware.auth import require_user
from services.order_watcher import get_order_watcher
from services.tracking_service import OrderTracker
from services.tracking_view import build_tracking_view

logger = logging.getLogger(__name__)
router = APIRouter(tags=["tracking"])


def _require_watcher():
    watcher = get_order_watcher()
    if watcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order auto-refresh is not running",
        )
    return watcher


@router.get("/orders/{order_id}/tracking")
async def track_order(
    order_id: int,
    user_id: int = Depends(require_user),
    tracker: OrderTracker = Depends(get_tracker),
):
    """Refresh the order against the simulated timeline and return its tracking view."""
    now = tracker.clock()
    result = await tracker.refresh(order_id, user_id, now=now)
    view = build_tracking_view(result.order, now, tracker.config, base_url=settings.public_base_url)
    return success_response(data=view, meta={"changed": result.changed})


@router.post("/orders/{order_id}/tracking/refresh")
async def refresh_order(
    order_id: int,
    user_id: int = Depends(require_user),
    tracker: OrderTracker = Depends(get_tracker),
):
    result = await tracker.refresh(order_id, user_id)
    return success_response(
        data={
            "order": result.order.to_dict(),
            "changed": result.changed,
        }
    )


@router.post("/orders/{order_id}/tracking/watch")
async def watch_order(
    order_id: int,
    user_id: int = Depends(require_user),
    tracker: OrderTracker = Depends(get_tracker),
):
    """Keep refreshing this order in the background until it is delivered or cancelled."""
    watcher = _require_watcher()
    order = await tracker.get_owned(order_id, user_id)
    started = watcher.watch(order.id, user_id, status=order.status)
    return success_response(
        data={
            "orderId": order.id,
            "watching": started,
            "intervalSeconds": watcher.interval_seconds,
        }
    )


@router.delete("/orders/{order_id}/tracking/watch")
async def unwatch_order(
    order_id: int,
    user_id: int = Depends(require_user),
    tracker: OrderTracker = Depends(get_tracker),
):
    watcher = _require_watcher()
    await tracker.get_owned(order_id, user_id)
    stopped = watcher.unwatch(order_id)
    return success_response(data={"orderId": order_id, "stopped": stopped})


@router.get("/tracking/status")
async def get_tracking_status():
    """Get the current status of the background order watcher."""
    watcher = get_order_watcher()
    if watcher is None:
        return {"running": False}
    return {"running": True, **watcher.get_status()}
