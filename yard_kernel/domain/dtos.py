"""
DTOs -- immutable data returned across the kernel boundary.

Responsibility:
    Read models (LotInfo, LocationOccupancy, summaries), operation results
    (ArrivalResult, PickupResult, TransitionResult) and the change event
    published to downstream collaborators (LotChangeEvent).

Architecture position:
    Kernel > Domain -- pure data.  ``from_model()`` class methods are the
    boundary converters; they are only invoked from services and selectors,
    never from domain logic, and ORM types are imported for type checking
    only.

Invariants enforced:
    - Callers never receive ORM entities.
    - Status fields are always ``LotStatus`` members, whatever form the
      store returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from yard_kernel.domain.reconciliation import ReconciliationResult
from yard_kernel.domain.values import AllocationMode, ItemAttributes, LotStatus

if TYPE_CHECKING:
    from yard_kernel.models.capacity_movement import CapacityMovement as CapacityMovementModel
    from yard_kernel.models.inventory_lot import InventoryLot as InventoryLotModel
    from yard_kernel.models.lot_event import LotEvent as LotEventModel
    from yard_kernel.models.storage_location import StorageLocation as StorageLocationModel


_PCT = Decimal("0.01")


def utilization_pct(occupied: int, capacity: int) -> Decimal:
    """Occupied share of capacity as a percentage with two decimals."""
    if capacity <= 0:
        return Decimal("0.00")
    return (Decimal(occupied) * 100 / Decimal(capacity)).quantize(_PCT, rounding=ROUND_HALF_UP)


# -----------------------------------------------------------------------------
# Read models
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LotInfo:
    """Snapshot of one inventory lot."""

    id: UUID
    tenant_id: str
    reference_id: str
    item_attributes: ItemAttributes
    quantity: int
    estimated_quantity: int
    status: LotStatus
    location_id: str | None
    inbound_shipment_id: str | None
    outbound_shipment_id: str | None
    parent_lot_id: UUID | None
    rejection_reason: str | None
    discrepancy_flagged: bool
    created_at: datetime
    status_changed_at: datetime

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal and self.quantity > 0

    @property
    def stored_length_m(self) -> Decimal:
        return self.item_attributes.length_for(self.quantity)

    @classmethod
    def from_model(cls, lot: InventoryLotModel) -> LotInfo:
        return cls(
            id=lot.id,
            tenant_id=lot.tenant_id,
            reference_id=lot.reference_id,
            item_attributes=ItemAttributes.from_mapping(lot.item_attributes),
            quantity=lot.quantity,
            estimated_quantity=lot.estimated_quantity,
            status=LotStatus(lot.status),
            location_id=lot.location_id,
            inbound_shipment_id=lot.inbound_shipment_id,
            outbound_shipment_id=lot.outbound_shipment_id,
            parent_lot_id=lot.parent_lot_id,
            rejection_reason=lot.rejection_reason,
            discrepancy_flagged=lot.discrepancy_flagged,
            created_at=lot.created_at,
            status_changed_at=lot.status_changed_at,
        )


@dataclass(frozen=True)
class LocationOccupancy:
    """Capacity view of one storage location."""

    location_id: str
    area_id: str
    allocation_mode: AllocationMode
    capacity: int
    occupied: int
    utilization_pct: Decimal
    stored_joints: int
    occupant_tenant_id: str | None
    capacity_meters: Decimal
    occupied_meters: Decimal

    @property
    def free_units(self) -> int:
        return self.capacity - self.occupied

    @classmethod
    def from_model(cls, location: StorageLocationModel) -> LocationOccupancy:
        return cls(
            location_id=location.id,
            area_id=location.area_id,
            allocation_mode=AllocationMode(location.allocation_mode),
            capacity=location.capacity,
            occupied=location.occupied,
            utilization_pct=utilization_pct(location.occupied, location.capacity),
            stored_joints=location.stored_joints,
            occupant_tenant_id=location.occupant_tenant_id,
            capacity_meters=Decimal(location.capacity_meters),
            occupied_meters=Decimal(location.occupied_meters),
        )


@dataclass(frozen=True)
class AreaUtilization:
    """Aggregate occupancy of all locations in one area."""

    area_id: str
    location_count: int
    empty_locations: int
    capacity: int
    occupied: int
    stored_joints: int
    utilization_pct: Decimal


@dataclass(frozen=True)
class TenantInventorySummary:
    """Joint counts for one tenant, broken down by status."""

    tenant_id: str
    lot_count: int
    joints_by_status: Mapping[LotStatus, int]

    @property
    def joints_in_storage(self) -> int:
        """Joints physically on racks (including those awaiting pickup)."""
        return self.joints_by_status.get(LotStatus.IN_STORAGE, 0) + self.joints_by_status.get(
            LotStatus.PENDING_PICKUP, 0
        )

    @property
    def joints_picked_up(self) -> int:
        return self.joints_by_status.get(LotStatus.IN_TRANSIT, 0) + self.joints_by_status.get(
            LotStatus.DELIVERED, 0
        )


@dataclass(frozen=True)
class CapacityMovementInfo:
    """One reserve/release against a location."""

    id: UUID
    location_id: str
    sequence: int
    lot_id: UUID
    tenant_id: str
    action: str
    units: int
    occupied_before: int
    occupied_after: int
    occurred_at: datetime

    @classmethod
    def from_model(cls, movement: CapacityMovementModel) -> CapacityMovementInfo:
        return cls(
            id=movement.id,
            location_id=movement.location_id,
            sequence=movement.sequence,
            lot_id=movement.lot_id,
            tenant_id=movement.tenant_id,
            action=movement.action,
            units=movement.units,
            occupied_before=movement.occupied_before,
            occupied_after=movement.occupied_after,
            occurred_at=movement.occurred_at,
        )


# -----------------------------------------------------------------------------
# Change events
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LotChangeEvent:
    """
    Change notification for downstream collaborators.

    ``from_status`` is None for lot creation.  ``detail`` is read-only.
    """

    event_id: UUID
    lot_id: UUID
    sequence: int
    tenant_id: str
    from_status: LotStatus | None
    to_status: LotStatus
    action: str
    occurred_at: datetime
    detail: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_model(cls, event: LotEventModel) -> LotChangeEvent:
        return cls(
            event_id=event.id,
            lot_id=event.lot_id,
            sequence=event.sequence,
            tenant_id=event.tenant_id,
            from_status=LotStatus(event.from_status) if event.from_status else None,
            to_status=LotStatus(event.to_status),
            action=event.action,
            occurred_at=event.occurred_at,
            detail=MappingProxyType(dict(event.detail or {})),
        )


# -----------------------------------------------------------------------------
# Operation results
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionResult:
    """Result of a single-lot status transition."""

    lot_id: UUID
    status: LotStatus


@dataclass(frozen=True)
class ArrivalResult:
    """
    Result of confirm_arrival.

    ``flagged`` is advisory: the arrival succeeded, but the measured
    quantity differs from the estimate by more than the threshold.
    """

    lot_id: UUID
    status: LotStatus
    location_id: str
    quantity: int
    flagged: bool
    reconciliation: ReconciliationResult | None


@dataclass(frozen=True)
class PickupResult:
    """
    Result of schedule_pickup.

    For a full pickup ``pickup_lot_id == lot_id`` and ``split_lot_id`` is
    None.  For a partial pickup the new lot carries the shipment and
    ``pickup_lot_id == split_lot_id``.
    """

    lot_id: UUID
    split_lot_id: UUID | None
    remaining_quantity: int

    @property
    def pickup_lot_id(self) -> UUID:
        return self.split_lot_id or self.lot_id
