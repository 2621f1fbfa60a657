"""
Tests for OrderTracker.refresh against an in-memory order store.

Tests: status advance + persistence, StatusChanged emission, ownership,
terminal orders, storage failures, idempotence.
"""
import pytest

from domain.errors import NotFoundError, StorageError
from services.order_store import InMemoryOrderStore
from services.status_events import StatusEventBus
from services.tracking_service import OrderTracker, TrackingConfig
from services.tracking_view import progress_percentage
from tests.factories import T0, make_order, minutes_after


def _tracker(store, bus=None, minutes=0, config=None):
    kwargs = {"config": config} if config else {}
    return OrderTracker(store, events=bus or StatusEventBus(), clock=lambda: minutes_after(minutes), **kwargs)


class TestRefresh:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_advances_and_persists(self, memory_store, event_bus):
        received = []
        event_bus.subscribe(received.append)
        tracker = _tracker(memory_store, event_bus, minutes=8)

        result = await tracker.refresh(1, 7)

        assert result.changed is True
        assert result.order.status == "preparing"
        assert progress_percentage(result.order.status) == 50
        assert (await memory_store.get(1)).status == "preparing"
        assert len(received) == 1
        event = received[0]
        assert (event.order_id, event.old_status, event.new_status) == (1, "confirmed", "preparing")
        assert event.changed_at == minutes_after(8)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_change_within_stage(self, event_bus):
        store = InMemoryOrderStore([make_order(status="preparing")])
        received = []
        event_bus.subscribe(received.append)

        result = await _tracker(store, event_bus, minutes=9).refresh(1, 7)

        assert result.changed is False
        assert result.order.status == "preparing"
        assert received == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_long_overdue_order_is_delivered(self, memory_store, event_bus):
        received = []
        event_bus.subscribe(received.append)

        result = await _tracker(memory_store, event_bus, minutes=40).refresh(1, 7)

        assert result.order.status == "delivered"
        assert [(e.old_status, e.new_status) for e in received] == [("confirmed", "delivered")]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_string_ids_match_numeric_ids(self, memory_store):
        result = await _tracker(memory_store, minutes=8).refresh("1", "7")
        assert result.changed is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_users_order_is_not_found(self, memory_store, event_bus):
        received = []
        event_bus.subscribe(received.append)

        with pytest.raises(NotFoundError):
            await _tracker(memory_store, event_bus, minutes=30).refresh(1, 99)

        assert (await memory_store.get(1)).status == "confirmed"
        assert received == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_order_is_not_found(self, memory_store):
        with pytest.raises(NotFoundError) as exc_info:
            await _tracker(memory_store).refresh(404, 7)
        assert exc_info.value.status_code == 404

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_order_stays_cancelled(self, event_bus):
        store = InMemoryOrderStore([make_order(status="cancelled")])
        received = []
        event_bus.subscribe(received.append)

        result = await _tracker(store, event_bus, minutes=60).refresh(1, 7)

        assert result.changed is False
        assert result.order.status == "cancelled"
        assert received == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_storage_failure_leaves_order_untouched(self, memory_store, event_bus):
        received = []
        event_bus.subscribe(received.append)
        memory_store.fail_writes = True

        with pytest.raises(StorageError):
            await _tracker(memory_store, event_bus, minutes=20).refresh(1, 7)

        assert (await memory_store.get(1)).status == "confirmed"
        assert received == []
        assert event_bus.emitted_count == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_twice_emits_once(self, memory_store, event_bus):
        received = []
        event_bus.subscribe(received.append)
        tracker = _tracker(memory_store, event_bus, minutes=16)

        first = await tracker.refresh(1, 7)
        second = await tracker.refresh(1, 7)

        assert first.changed is True
        assert second.changed is False
        assert second.order == first.order
        assert len(received) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explicit_now_overrides_clock(self, memory_store):
        tracker = _tracker(memory_store, minutes=0)
        result = await tracker.refresh(1, 7, now=minutes_after(24))
        assert result.order.status == "delivered"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_on_status_changed_unsubscribe(self, memory_store):
        tracker = _tracker(memory_store, minutes=8)
        received = []
        unsubscribe = tracker.on_status_changed(received.append)
        unsubscribe()

        await tracker.refresh(1, 7)

        assert received == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_observer_does_not_block_write(self, memory_store, event_bus):
        def boom(event):
            raise RuntimeError("observer crashed")

        received = []
        event_bus.subscribe(boom)
        event_bus.subscribe(received.append)

        result = await _tracker(memory_store, event_bus, minutes=8).refresh(1, 7)

        assert result.changed is True
        assert (await memory_store.get(1)).status == "preparing"
        assert len(received) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_uses_configured_stage_length(self, memory_store):
        tracker = _tracker(memory_store, minutes=3, config=TrackingConfig(stage_minutes=1))
        result = await tracker.refresh(1, 7)
        assert result.order.status == "delivered"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_orders_untouched(self):
        store = InMemoryOrderStore(
            [make_order(1), make_order(2, created_at=minutes_after(20))]
        )
        await _tracker(store, minutes=20).refresh(1, 7)

        assert (await store.get(1)).status == "out_for_delivery"
        assert (await store.get(2)).status == "confirmed"
        assert (await store.get(2)).created_at > T0
