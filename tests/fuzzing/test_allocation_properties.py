"""
Property-based tests for the pure allocation, split and reconciliation rules.

Random reserve/release sequences are applied to one snapshot; whatever the
order, occupancy stays within [0, capacity] and a rejected request leaves
the snapshot as it was.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from yard_kernel.domain.allocation import OccupancySnapshot, strategy_for
from yard_kernel.domain.reconciliation import ReconciliationPolicy
from yard_kernel.domain.split import plan_split
from yard_kernel.domain.values import AllocationMode
from yard_kernel.exceptions import AllocationError, InvalidQuantityError

operations = st.lists(
    st.tuples(st.sampled_from(["reserve", "release"]), st.integers(min_value=1, max_value=60)),
    max_size=40,
)
tenants = st.sampled_from(["tenant-a", "tenant-b", "tenant-c"])


class TestLinearCapacityProperties:
    @settings(max_examples=200)
    @given(capacity=st.integers(min_value=1, max_value=500), ops=operations)
    def test_occupancy_stays_within_capacity(self, capacity, ops):
        strategy = strategy_for(AllocationMode.LINEAR_CAPACITY)
        snapshot = OccupancySnapshot("R", AllocationMode.LINEAR_CAPACITY, capacity, 0)
        for op, units in ops:
            if op == "reserve":
                try:
                    after = strategy.reserve(snapshot, units, "tenant-a")
                except AllocationError:
                    assert snapshot.occupied + units > capacity
                    continue
                assert after.occupied == snapshot.occupied + units
            else:
                after = strategy.release(snapshot, units)
            assert 0 <= after.occupied <= capacity
            assert after.stored_joints == after.occupied
            snapshot = after

    @given(capacity=st.integers(min_value=1, max_value=500), units=st.integers(min_value=1, max_value=500))
    def test_can_reserve_agrees_with_reserve(self, capacity, units):
        strategy = strategy_for(AllocationMode.LINEAR_CAPACITY)
        snapshot = OccupancySnapshot("R", AllocationMode.LINEAR_CAPACITY, capacity, 0)
        feasible = strategy.can_reserve(snapshot, units, "t")
        assert feasible == (units <= capacity)


class TestSlotProperties:
    @settings(max_examples=200)
    @given(
        ops=st.lists(
            st.tuples(st.sampled_from(["reserve", "release"]), st.integers(min_value=1, max_value=20), tenants),
            max_size=30,
        )
    )
    def test_occupant_set_iff_occupied(self, ops):
        strategy = strategy_for(AllocationMode.SLOT)
        snapshot = OccupancySnapshot("S", AllocationMode.SLOT, 1, 0)
        for op, units, tenant in ops:
            if op == "reserve":
                try:
                    snapshot = strategy.reserve(snapshot, units, tenant)
                except AllocationError:
                    assert snapshot.occupied == 1
                    continue
            else:
                snapshot = strategy.release(snapshot, units)
            assert snapshot.occupied in (0, 1)
            assert (snapshot.occupied == 1) == (snapshot.occupant_tenant_id is not None)
            assert (snapshot.occupied == 0) == (snapshot.stored_joints == 0)


class TestSplitProperties:
    @given(data=st.data(), quantity=st.integers(min_value=2, max_value=10_000))
    def test_split_conserves_quantity(self, data, quantity):
        extract = data.draw(st.integers(min_value=1, max_value=quantity - 1))
        plan = plan_split(quantity, extract)
        assert plan.remainder_quantity + plan.extracted_quantity == quantity
        assert plan.remainder_quantity > 0
        assert plan.extracted_quantity > 0

    @given(quantity=st.integers(min_value=1, max_value=1000), extract=st.integers(max_value=0) | st.integers(min_value=1000))
    def test_out_of_range_rejected(self, quantity, extract):
        with pytest.raises(InvalidQuantityError):
            plan_split(quantity, extract)


class TestReconciliationProperties:
    @given(
        estimated=st.integers(min_value=1, max_value=10_000),
        measured=st.integers(min_value=1, max_value=10_000),
        threshold=st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=2),
    )
    def test_measured_always_accepted(self, estimated, measured, threshold):
        result = ReconciliationPolicy(threshold).reconcile(estimated, measured)
        assert result.accepted
        assert result.measured == measured
        assert result.delta == measured - estimated
        assert result.flagged == (Decimal(abs(measured - estimated)) / estimated > threshold)
