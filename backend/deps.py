"""
Shared FastAPI dependencies.

Routers import the DB session, pagination, order store and tracker from
here. The tracker is built per request around a SqlOrderStore, but shares the
process-wide StatusEventBus so every observer sees every change.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.order_store import SqlOrderStore
from services.status_events import get_status_events
from services.tracking_service import OrderTracker, TrackingConfig


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_order_store(db: AsyncSession = Depends(get_db)) -> SqlOrderStore:
    return SqlOrderStore(db)


def get_tracker(store: SqlOrderStore = Depends(get_order_store)) -> OrderTracker:
    return OrderTracker(
        store,
        events=get_status_events(),
        config=TrackingConfig.from_settings(),
    )

