"""
CapacityLedger -- the only writer of storage location occupancy.

Responsibility:
    Locks a location row, hands its occupancy snapshot to the allocation
    strategy for the location's mode, applies the returned snapshot, and
    appends a CapacityMovement row describing the change.

Architecture position:
    Kernel > Services -- imperative shell around the pure strategies in
    ``yard_kernel.domain.allocation``.  Called only by LifecycleEngine, after
    it has locked the lot, so the lock order is always lot then location.

Invariants enforced:
    - 0 <= occupied <= capacity after every call.
    - A rejected reservation leaves the location row untouched.
    - Every applied change has a matching CapacityMovement row in the same
      transaction.

Failure modes:
    - LocationNotFoundError: unknown location id.
    - CapacityExceededError / SlotOccupiedError: reservation infeasible.
    - InvalidQuantityError: non-positive unit count.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from yard_kernel.domain.allocation import OccupancySnapshot, strategy_for
from yard_kernel.domain.clock import Clock, SystemClock
from yard_kernel.domain.dtos import CapacityMovementInfo
from yard_kernel.exceptions import AllocationError, LocationNotFoundError
from yard_kernel.logging_config import get_logger
from yard_kernel.models.capacity_movement import CapacityMovement
from yard_kernel.models.storage_location import StorageLocation
from yard_kernel.services.base import BaseService

logger = get_logger("services.capacity_ledger")

RESERVE = "reserve"
RELEASE = "release"


class CapacityLedger(BaseService[StorageLocation]):
    """
    Applies reserve/release effects to storage locations.

    Contract:
        ``reserve`` and ``release`` lock the location row, flush the new
        occupancy and return the recorded movement.  Nothing is committed.

    Non-goals:
        - Does NOT know about lot statuses; the LifecycleEngine decides
          when capacity moves.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get_for_update(self, location_id: str) -> StorageLocation:
        """Load and lock a location row."""
        location = self.session.execute(
            select(StorageLocation)
            .where(StorageLocation.id == location_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(location_id)
        return location

    def reserve(
        self,
        location_id: str,
        lot_id: UUID,
        tenant_id: str,
        units: int,
        length_m: Decimal = Decimal("0"),
    ) -> CapacityMovementInfo:
        """
        Reserve ``units`` at ``location_id`` for a lot.

        Raises:
            CapacityExceededError: linear rack would overflow.
            SlotOccupiedError: slot already claimed.
        """
        location = self.get_for_update(location_id)
        before = location.snapshot()
        strategy = strategy_for(location.allocation_mode)
        try:
            after = strategy.reserve(before, units, tenant_id, length_m)
        except AllocationError as exc:
            logger.warning(
                "capacity_reservation_rejected",
                extra={
                    "location_id": location_id,
                    "lot_id": str(lot_id),
                    "requested": units,
                    "occupied": before.occupied,
                    "capacity": before.capacity,
                    "error_code": exc.code,
                },
            )
            raise
        return self._apply(location, before, after, lot_id, tenant_id, RESERVE, units)

    def release(
        self,
        location_id: str,
        lot_id: UUID,
        tenant_id: str,
        units: int,
        length_m: Decimal = Decimal("0"),
    ) -> CapacityMovementInfo:
        """Release ``units`` previously reserved at ``location_id``."""
        location = self.get_for_update(location_id)
        before = location.snapshot()
        after = strategy_for(location.allocation_mode).release(before, units, length_m)
        return self._apply(location, before, after, lot_id, tenant_id, RELEASE, units)

    def restate_length(self, location_id: str, delta_m: Decimal) -> None:
        """Adjust occupied_meters after a lot's nominal joint length was corrected."""
        if not delta_m:
            return
        location = self.get_for_update(location_id)
        location.occupied_meters = max(Decimal("0"), Decimal(location.occupied_meters) + delta_m)
        self.session.flush()
        logger.info(
            "location_length_restated",
            extra={"location_id": location_id, "delta_m": delta_m},
        )

    def _next_sequence(self, location_id: str) -> int:
        current = self.session.execute(
            select(func.max(CapacityMovement.sequence)).where(CapacityMovement.location_id == location_id)
        ).scalar_one()
        return (current or 0) + 1

    def _apply(
        self,
        location: StorageLocation,
        before: OccupancySnapshot,
        after: OccupancySnapshot,
        lot_id: UUID,
        tenant_id: str,
        action: str,
        units: int,
    ) -> CapacityMovementInfo:
        location.occupied = after.occupied
        location.stored_joints = after.stored_joints
        location.occupied_meters = after.occupied_meters
        location.occupant_tenant_id = after.occupant_tenant_id

        movement = CapacityMovement(
            id=uuid4(),
            location_id=location.id,
            sequence=self._next_sequence(location.id),
            lot_id=lot_id,
            tenant_id=tenant_id,
            action=action,
            units=units,
            occupied_before=before.occupied,
            occupied_after=after.occupied,
            occurred_at=self._clock.now(),
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "capacity_reserved" if action == RESERVE else "capacity_released",
            extra={
                "location_id": location.id,
                "lot_id": str(lot_id),
                "units": units,
                "occupied_before": before.occupied,
                "occupied_after": after.occupied,
                "capacity": location.capacity,
            },
        )
        return CapacityMovementInfo.from_model(movement)
