"""
Unit tests for the status progression engine.

Tests: compute_progressed_status — timing thresholds, monotonicity,
idempotence, terminal/unknown statuses, configurable stage length.
"""
import pytest

from domain.enums import STATUS_SEQUENCE
from services.tracking_service import (
    TrackingConfig,
    compute_progressed_status,
    elapsed_minutes,
    target_stage_index,
)
from tests.factories import T0, make_order, minutes_after


class TestComputeProgressedStatus:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "minutes, expected",
        [
            (0, "confirmed"),
            (7.99, "confirmed"),
            (8, "preparing"),
            (15, "preparing"),
            (16, "out_for_delivery"),
            (23, "out_for_delivery"),
            (24, "delivered"),
            (40, "delivered"),
            (600, "delivered"),
        ],
    )
    def test_confirmed_order_follows_timeline(self, minutes, expected):
        order = make_order(status="confirmed")
        assert compute_progressed_status(order, minutes_after(minutes)).status == expected

    @pytest.mark.unit
    def test_unchanged_order_is_same_object(self):
        order = make_order(status="preparing")
        assert compute_progressed_status(order, minutes_after(9)) is order

    @pytest.mark.unit
    def test_advanced_order_is_a_copy(self):
        order = make_order(status="confirmed")
        updated = compute_progressed_status(order, minutes_after(8))
        assert updated is not order
        assert order.status == "confirmed"
        assert updated.id == order.id
        assert updated.items == order.items
        assert updated.created_at == order.created_at

    @pytest.mark.unit
    def test_never_regresses(self):
        """An order already ahead of the clock keeps its status."""
        order = make_order(status="out_for_delivery")
        assert compute_progressed_status(order, minutes_after(1)).status == "out_for_delivery"

    @pytest.mark.unit
    def test_jumps_straight_to_target_stage(self):
        order = make_order(status="confirmed")
        assert compute_progressed_status(order, minutes_after(17)).status == "out_for_delivery"

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["delivered", "cancelled"])
    @pytest.mark.parametrize("minutes", [0, 8, 40, 10_000])
    def test_terminal_statuses_untouched(self, status, minutes):
        order = make_order(status=status)
        assert compute_progressed_status(order, minutes_after(minutes)) is order

    @pytest.mark.unit
    def test_unknown_status_untouched(self):
        order = make_order(status="lost_in_space")
        assert compute_progressed_status(order, minutes_after(60)) is order

    @pytest.mark.unit
    def test_future_created_at_does_not_advance(self):
        order = make_order(status="confirmed", created_at=minutes_after(30))
        assert compute_progressed_status(order, T0) is order

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["confirmed", "preparing", "out_for_delivery"])
    def test_monotonic_in_time(self, status):
        order = make_order(status=status)
        previous = -1
        for minute in range(0, 61):
            result = compute_progressed_status(order, minutes_after(minute))
            index = STATUS_SEQUENCE.index(result.status)
            assert index >= previous
            assert index >= STATUS_SEQUENCE.index(status)
            previous = index

    @pytest.mark.unit
    @pytest.mark.parametrize("minutes", [0, 8, 9, 16, 25, 40])
    def test_idempotent(self, minutes):
        now = minutes_after(minutes)
        once = compute_progressed_status(make_order(), now)
        twice = compute_progressed_status(once, now)
        assert twice == once

    @pytest.mark.unit
    def test_stage_length_is_configurable(self):
        config = TrackingConfig(stage_minutes=2)
        order = make_order(status="confirmed")
        assert compute_progressed_status(order, minutes_after(2), config).status == "preparing"
        assert compute_progressed_status(order, minutes_after(6), config).status == "delivered"


class TestElapsedMinutes:

    @pytest.mark.unit
    def test_floors_partial_minutes(self):
        assert elapsed_minutes(T0, minutes_after(8.9)) == 8

    @pytest.mark.unit
    def test_negative_when_created_in_future(self):
        assert elapsed_minutes(minutes_after(2), T0) == -2

    @pytest.mark.unit
    def test_aware_datetimes_are_normalised(self):
        from datetime import timezone, timedelta

        ist = timezone(timedelta(hours=5, minutes=30))
        now_aware = minutes_after(10).replace(tzinfo=timezone.utc).astimezone(ist)
        assert elapsed_minutes(T0, now_aware) == 10

    @pytest.mark.unit
    def test_target_index_caps_at_delivered(self):
        assert target_stage_index(T0, minutes_after(1000)) == len(STATUS_SEQUENCE) - 1
