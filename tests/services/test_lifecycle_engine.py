"""
Tests for LifecycleEngine state transitions and their capacity effects.

All tests run on a single rolled-back session; the orchestrator's commit
and publish behaviour is covered in tests/integration.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from tests.conftest import LINEAR_RACK, SLOT, SMALL_RACK, TENANT_A, TENANT_B
from yard_kernel.domain.reconciliation import ReconciliationPolicy
from yard_kernel.domain.values import LotStatus
from yard_kernel.domain.workflow import CONFIRM_ARRIVAL, LOT_WORKFLOW, CapacityEffect
from yard_kernel.exceptions import (
    CapacityExceededError,
    InvalidItemAttributesError,
    InvalidQuantityError,
    InvalidTransitionError,
    LotNotFoundError,
    ReasonRequiredError,
    SlotOccupiedError,
    TenantScopeError,
)
from yard_kernel.models.inventory_lot import InventoryLot
from yard_kernel.models.storage_location import StorageLocation
from yard_kernel.services.lifecycle_engine import (
    ARRIVAL_CONFIRMED,
    ATTRIBUTES_CORRECTED,
    DELIVERY_CONFIRMED,
    DEPARTURE_CONFIRMED,
    LOT_CREATED,
    LOT_REJECTED,
    LOT_SPLIT,
    PICKUP_SCHEDULED,
    LifecycleEngine,
)


@pytest.fixture
def new_lot(lifecycle, operator_ctx, casing_attributes):
    def _create(reference="PO-1", quantity=100, tenant=TENANT_A):
        return lifecycle.create_lot(operator_ctx, tenant, reference, casing_attributes, quantity)

    return _create


@pytest.fixture
def stored_lot(lifecycle, operator_ctx, new_lot):
    """A lot of 100 joints IN_STORAGE on the linear rack."""
    lot_id = new_lot()
    lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, 100)
    lifecycle.discard_events()
    return lot_id


def _location(session, location_id):
    return session.get(StorageLocation, location_id)


class TestCreateLot:
    def test_tenant_creates_own_lot(self, lifecycle, tenant_a_ctx, casing_attributes, session):
        lot_id = lifecycle.create_lot(tenant_a_ctx, TENANT_A, "PO-1", casing_attributes, 20)
        lot = session.get(InventoryLot, lot_id)
        assert lot.status == LotStatus.PENDING_DELIVERY.value

        events = lifecycle.drain_events()
        assert [e.action for e in events] == [LOT_CREATED]
        assert events[0].from_status is None
        assert events[0].to_status is LotStatus.PENDING_DELIVERY

    def test_tenant_cannot_create_for_other_tenant(self, lifecycle, tenant_a_ctx, casing_attributes):
        with pytest.raises(TenantScopeError):
            lifecycle.create_lot(tenant_a_ctx, TENANT_B, "PO-1", casing_attributes, 20)

    def test_mapping_attributes_validated(self, lifecycle, operator_ctx):
        with pytest.raises(InvalidItemAttributesError):
            lifecycle.create_lot(operator_ctx, TENANT_A, "PO-1", {"item_type": "casing"}, 20)


class TestConfirmArrival:
    def test_measured_quantity_replaces_estimate(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot(quantity=100)
        result = lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, 80)

        assert result.status is LotStatus.IN_STORAGE
        assert result.quantity == 80
        assert result.flagged
        lot = session.get(InventoryLot, lot_id)
        assert lot.quantity == 80
        assert lot.estimated_quantity == 100
        assert lot.location_id == LINEAR_RACK
        assert lot.discrepancy_flagged
        assert _location(session, LINEAR_RACK).occupied == 80
        assert _location(session, LINEAR_RACK).occupied_meters == Decimal("960")

    def test_small_discrepancy_not_flagged(self, lifecycle, operator_ctx, new_lot):
        result = lifecycle.confirm_arrival(operator_ctx, new_lot(quantity=100), LINEAR_RACK, 97)
        assert not result.flagged

    def test_flag_is_logged(self, lifecycle, operator_ctx, new_lot, captured_logs):
        lifecycle.confirm_arrival(operator_ctx, new_lot(quantity=100), LINEAR_RACK, 80)
        records = [r for r in captured_logs() if r["message"] == "quantity_discrepancy_flagged"]
        assert records and records[0]["level"] == "WARNING"

    def test_missing_manifest_keeps_estimate(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot(quantity=30)
        result = lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, None)
        assert result.quantity == 30
        assert not result.flagged
        assert result.reconciliation is None
        assert _location(session, LINEAR_RACK).occupied == 30

    def test_negative_measured_quantity(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot()
        with pytest.raises(InvalidQuantityError):
            lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, -3)
        assert session.get(InventoryLot, lot_id).status == LotStatus.PENDING_DELIVERY.value
        assert _location(session, LINEAR_RACK).occupied == 0

    def test_capacity_exceeded_keeps_lot_pending(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot(quantity=11)
        with pytest.raises(CapacityExceededError):
            lifecycle.confirm_arrival(operator_ctx, lot_id, SMALL_RACK, 11)
        lot = session.get(InventoryLot, lot_id)
        assert lot.status == LotStatus.PENDING_DELIVERY.value
        assert lot.location_id is None

    def test_slot_refuses_second_lot(self, lifecycle, operator_ctx, new_lot):
        lifecycle.confirm_arrival(operator_ctx, new_lot("PO-1", 5), SLOT, 5)
        with pytest.raises(SlotOccupiedError):
            lifecycle.confirm_arrival(operator_ctx, new_lot("PO-2", 5, TENANT_B), SLOT, 5)

    def test_double_arrival_rejected(self, lifecycle, operator_ctx, stored_lot, session):
        with pytest.raises(InvalidTransitionError):
            lifecycle.confirm_arrival(operator_ctx, stored_lot, LINEAR_RACK, 100)
        assert _location(session, LINEAR_RACK).occupied == 100

    def test_other_tenant_cannot_confirm(self, lifecycle, tenant_b_ctx, new_lot):
        with pytest.raises(LotNotFoundError):
            lifecycle.confirm_arrival(tenant_b_ctx, new_lot(), LINEAR_RACK, 10)

    def test_event_detail(self, lifecycle, operator_ctx, new_lot):
        lot_id = new_lot(quantity=100)
        lifecycle.discard_events()
        lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, 80, inbound_shipment_id="IN-7")
        (event,) = lifecycle.drain_events()
        assert event.action == ARRIVAL_CONFIRMED
        assert event.from_status is LotStatus.PENDING_DELIVERY
        assert event.to_status is LotStatus.IN_STORAGE
        assert event.detail["delta"] == -20
        assert event.detail["flagged"] is True


class TestSchedulePickup:
    def test_full_pickup_in_place(self, lifecycle, operator_ctx, stored_lot, session):
        result = lifecycle.schedule_pickup(operator_ctx, stored_lot, 100, "OUT-1")
        assert result.split_lot_id is None
        assert result.pickup_lot_id == stored_lot
        lot = session.get(InventoryLot, stored_lot)
        assert lot.status == LotStatus.PENDING_PICKUP.value
        assert lot.outbound_shipment_id == "OUT-1"
        assert [e.action for e in lifecycle.drain_events()] == [PICKUP_SCHEDULED]

    def test_partial_pickup_splits(self, lifecycle, operator_ctx, stored_lot, session):
        result = lifecycle.schedule_pickup(operator_ctx, stored_lot, 40, "OUT-1")

        original = session.get(InventoryLot, stored_lot)
        child = session.get(InventoryLot, result.split_lot_id)
        assert result.remaining_quantity == 60
        assert original.status == LotStatus.IN_STORAGE.value
        assert original.quantity == 60
        assert child.status == LotStatus.PENDING_PICKUP.value
        assert child.quantity == 40
        assert child.location_id == LINEAR_RACK
        # Capacity is held until departure.
        assert _location(session, LINEAR_RACK).occupied == 100

        events = lifecycle.drain_events()
        assert [(e.lot_id, e.action) for e in events] == [
            (stored_lot, LOT_SPLIT),
            (child.id, PICKUP_SCHEDULED),
        ]

    @pytest.mark.parametrize("quantity", [0, -1, 101])
    def test_invalid_pickup_quantity(self, lifecycle, operator_ctx, stored_lot, quantity):
        with pytest.raises(InvalidQuantityError):
            lifecycle.schedule_pickup(operator_ctx, stored_lot, quantity, "OUT-1")

    def test_requires_in_storage(self, lifecycle, operator_ctx, new_lot):
        with pytest.raises(InvalidTransitionError):
            lifecycle.schedule_pickup(operator_ctx, new_lot(), 10, "OUT-1")


class TestDepartureAndDelivery:
    def test_departure_releases_capacity(self, lifecycle, operator_ctx, stored_lot, session):
        result = lifecycle.schedule_pickup(operator_ctx, stored_lot, 40, "OUT-1")
        departed = lifecycle.confirm_departure(operator_ctx, result.split_lot_id)

        assert departed.status is LotStatus.IN_TRANSIT
        child = session.get(InventoryLot, result.split_lot_id)
        assert child.location_id is None
        location = _location(session, LINEAR_RACK)
        assert location.occupied == 60
        assert location.occupied_meters == Decimal("720")

    def test_slot_partial_departure_keeps_slot(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot(quantity=5)
        lifecycle.confirm_arrival(operator_ctx, lot_id, SLOT, 5)
        result = lifecycle.schedule_pickup(operator_ctx, lot_id, 2, "OUT-1")
        lifecycle.confirm_departure(operator_ctx, result.split_lot_id)

        slot = _location(session, SLOT)
        assert slot.occupied == 1
        assert slot.stored_joints == 3
        assert slot.occupant_tenant_id == TENANT_A

    def test_delivery_is_terminal(self, lifecycle, operator_ctx, stored_lot):
        lifecycle.schedule_pickup(operator_ctx, stored_lot, 100, "OUT-1")
        lifecycle.confirm_departure(operator_ctx, stored_lot)
        result = lifecycle.confirm_delivery(operator_ctx, stored_lot)
        assert result.status is LotStatus.DELIVERED
        with pytest.raises(InvalidTransitionError):
            lifecycle.confirm_delivery(operator_ctx, stored_lot)

    def test_departure_requires_pending_pickup(self, lifecycle, operator_ctx, stored_lot, session):
        with pytest.raises(InvalidTransitionError):
            lifecycle.confirm_departure(operator_ctx, stored_lot)
        assert _location(session, LINEAR_RACK).occupied == 100

    def test_full_lifecycle_events(self, lifecycle, operator_ctx, new_lot):
        lot_id = new_lot()
        lifecycle.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, 100)
        lifecycle.schedule_pickup(operator_ctx, lot_id, 100, "OUT-1")
        lifecycle.confirm_departure(operator_ctx, lot_id)
        lifecycle.confirm_delivery(operator_ctx, lot_id)
        events = lifecycle.drain_events()
        assert [e.action for e in events] == [
            LOT_CREATED,
            ARRIVAL_CONFIRMED,
            PICKUP_SCHEDULED,
            DEPARTURE_CONFIRMED,
            DELIVERY_CONFIRMED,
        ]
        assert [e.sequence for e in events] == [1, 2, 3, 4, 5]


class TestReject:
    def test_reject_pending_lot(self, lifecycle, operator_ctx, new_lot, session):
        lot_id = new_lot()
        result = lifecycle.reject(operator_ctx, lot_id, "  wrong grade  ")
        assert result.status is LotStatus.REJECTED
        assert session.get(InventoryLot, lot_id).rejection_reason == "wrong grade"
        assert lifecycle.drain_events()[-1].action == LOT_REJECTED

    def test_reason_required(self, lifecycle, operator_ctx, new_lot):
        with pytest.raises(ReasonRequiredError):
            lifecycle.reject(operator_ctx, new_lot(), "   ")

    def test_cannot_reject_stored_lot(self, lifecycle, operator_ctx, stored_lot):
        with pytest.raises(InvalidTransitionError):
            lifecycle.reject(operator_ctx, stored_lot, "late")


class TestCorrectAttributes:
    def test_restates_location_length(self, lifecycle, operator_ctx, stored_lot, casing_attributes, session):
        corrected = {**casing_attributes.to_dict(), "nominal_length_m": "11.5"}
        result = lifecycle.correct_attributes(operator_ctx, stored_lot, corrected, "tally sheet")

        assert result.status is LotStatus.IN_STORAGE
        lot = session.get(InventoryLot, stored_lot)
        assert lot.item_attributes["nominal_length_m"] == "11.5"
        assert _location(session, LINEAR_RACK).occupied_meters == Decimal("1150.0")

        (event,) = lifecycle.drain_events()
        assert event.action == ATTRIBUTES_CORRECTED
        assert event.from_status is event.to_status is LotStatus.IN_STORAGE
        assert event.detail["previous"]["nominal_length_m"] == "12"
        assert event.detail["current"]["nominal_length_m"] == "11.5"

    def test_pending_lot_has_no_location_to_restate(self, lifecycle, operator_ctx, new_lot, casing_attributes):
        lot_id = new_lot()
        corrected = {**casing_attributes.to_dict(), "grade": "P110"}
        lifecycle.correct_attributes(operator_ctx, lot_id, corrected, "mill cert")

    def test_terminal_lot_rejected(self, lifecycle, operator_ctx, new_lot, casing_attributes):
        lot_id = new_lot()
        lifecycle.reject(operator_ctx, lot_id, "damaged")
        with pytest.raises(InvalidTransitionError):
            lifecycle.correct_attributes(operator_ctx, lot_id, casing_attributes, "late fix")

    def test_reason_required(self, lifecycle, operator_ctx, new_lot, casing_attributes):
        with pytest.raises(ReasonRequiredError):
            lifecycle.correct_attributes(operator_ctx, new_lot(), casing_attributes, "")


class TestWorkflowCapacityEffects:
    def test_arrival_effect_comes_from_workflow(
        self, session, deterministic_clock, locations, operator_ctx, casing_attributes
    ):
        transitions = tuple(
            replace(t, capacity_effect=CapacityEffect.NONE) if t.action == CONFIRM_ARRIVAL else t
            for t in LOT_WORKFLOW.transitions
        )
        engine = LifecycleEngine(
            session,
            deterministic_clock,
            ReconciliationPolicy(),
            workflow=replace(LOT_WORKFLOW, transitions=transitions),
        )
        lot_id = engine.create_lot(operator_ctx, TENANT_A, "PO-1", casing_attributes, 40)

        engine.confirm_arrival(operator_ctx, lot_id, LINEAR_RACK, 40)

        assert session.get(InventoryLot, lot_id).status == LotStatus.IN_STORAGE.value
        assert _location(session, LINEAR_RACK).occupied == 0

    def test_default_workflow_reserves_and_releases(self, lifecycle, operator_ctx, stored_lot, session):
        assert _location(session, LINEAR_RACK).occupied == 100
        lifecycle.schedule_pickup(operator_ctx, stored_lot, 100, "OUT-1")
        assert _location(session, LINEAR_RACK).occupied == 100
        lifecycle.confirm_departure(operator_ctx, stored_lot)
        assert _location(session, LINEAR_RACK).occupied == 0
