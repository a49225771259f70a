"""Tests for LocationSelector occupancy queries."""

from decimal import Decimal

import pytest

from tests.conftest import LINEAR_RACK, SLOT, SMALL_RACK, TENANT_A, TENANT_B
from yard_kernel.exceptions import LocationNotFoundError
from yard_kernel.selectors.location_selector import LocationSelector
from yard_kernel.services.capacity_ledger import RELEASE, RESERVE


@pytest.fixture
def selector(session):
    return LocationSelector(session)


@pytest.fixture
def stocked(lifecycle, operator_ctx, casing_attributes):
    """75 joints on B-N-1, 10 on B-N-2 (full), tenant-a holds slot A-A1-1."""
    lots = {}
    for ref, tenant, qty, location in (
        ("PO-1", TENANT_A, 75, LINEAR_RACK),
        ("PO-2", TENANT_B, 10, SMALL_RACK),
        ("PO-3", TENANT_A, 4, SLOT),
    ):
        lots[ref] = lifecycle.create_lot(operator_ctx, tenant, ref, casing_attributes, qty)
        lifecycle.confirm_arrival(operator_ctx, lots[ref], location, qty)
    return lots


class TestOccupancy:
    def test_linear(self, selector, stocked):
        occ = selector.occupancy(LINEAR_RACK)
        assert occ.occupied == 75
        assert occ.free_units == 25
        assert occ.utilization_pct == Decimal("75.00")

    def test_slot(self, selector, stocked):
        occ = selector.occupancy(SLOT)
        assert occ.occupied == 1
        assert occ.stored_joints == 4
        assert occ.occupant_tenant_id == TENANT_A
        assert occ.utilization_pct == Decimal("100.00")

    def test_unknown(self, selector, locations):
        with pytest.raises(LocationNotFoundError):
            selector.occupancy("Z-1")


class TestAreaUtilization:
    def test_linear_area(self, selector, stocked):
        area = selector.area_utilization("B-N")
        assert area.location_count == 2
        assert area.capacity == 110
        assert area.occupied == 85
        assert area.empty_locations == 0
        assert area.utilization_pct == Decimal("77.27")

    def test_slot_area(self, selector, stocked):
        area = selector.area_utilization("A-A1")
        assert area.location_count == 2
        assert area.empty_locations == 1
        assert area.stored_joints == 4

    def test_unknown_area_is_empty(self, selector, locations):
        area = selector.area_utilization("nowhere")
        assert area.location_count == 0
        assert area.utilization_pct == Decimal("0.00")


class TestFindAvailable:
    def test_orders_by_free_capacity(self, selector, stocked):
        ids = [loc.location_id for loc in selector.find_available_locations(5, TENANT_B)]
        assert ids == [LINEAR_RACK, "A-A1-2"]

    def test_area_filter(self, selector, stocked):
        ids = [loc.location_id for loc in selector.find_available_locations(1, TENANT_A, area_id="A-A1")]
        assert ids == ["A-A1-2"]

    def test_nothing_fits(self, selector, stocked):
        assert selector.find_available_locations(26, TENANT_A, area_id="B-N") == []


class TestMovements:
    def test_reserve_and_release_history(self, selector, lifecycle, operator_ctx, stocked):
        lifecycle.schedule_pickup(operator_ctx, stocked["PO-1"], 75, "OUT-1")
        lifecycle.confirm_departure(operator_ctx, stocked["PO-1"])

        movements = selector.movements(LINEAR_RACK)
        assert [(m.action, m.occupied_before, m.occupied_after) for m in movements] == [
            (RESERVE, 0, 75),
            (RELEASE, 75, 0),
        ]
        assert selector.movements(LINEAR_RACK, lot_id=stocked["PO-2"]) == []

    def test_unknown_location(self, selector, locations):
        with pytest.raises(LocationNotFoundError):
            selector.movements("Z-1")
