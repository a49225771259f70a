"""
Allocation strategies -- how a rack turns joints into occupancy.

Responsibility:
    Two interchangeable policies, selected by the location's
    ``AllocationMode``:

    LINEAR_CAPACITY  capacity counted in joints; any number of lots and
                     tenants share the rack up to its capacity.
    SLOT             binary occupancy; the slot is either empty or wholly
                     claimed by one tenant regardless of joint count.

    Strategies are pure: they take an ``OccupancySnapshot`` and return the
    next snapshot, or raise without producing one.  The CapacityLedger
    service applies the returned snapshot to the locked location row.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - 0 <= occupied <= capacity in every snapshot a strategy returns.
    - Slot: occupied > 0 iff occupant_tenant_id is set; the occupant is
      only cleared by release.
    - Failures raise before any snapshot is produced (no partial effect).

Failure modes:
    - CapacityExceededError: linear reservation beyond capacity.
    - SlotOccupiedError: slot already claimed (same or other tenant).
    - InvalidQuantityError: non-positive unit count.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import ClassVar

from yard_kernel.domain.values import AllocationMode
from yard_kernel.exceptions import (
    AllocationError,
    CapacityExceededError,
    InvalidQuantityError,
    SlotOccupiedError,
)

_ZERO = Decimal("0")


@dataclass(frozen=True)
class OccupancySnapshot:
    """Point-in-time occupancy of one storage location."""

    location_id: str
    mode: AllocationMode
    capacity: int
    occupied: int
    stored_joints: int = 0
    occupied_meters: Decimal = _ZERO
    occupant_tenant_id: str | None = None

    @property
    def free_units(self) -> int:
        return self.capacity - self.occupied

    @property
    def is_empty(self) -> bool:
        return self.occupied == 0


def _require_positive(units: int) -> None:
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise InvalidQuantityError(units, "allocation units must be a positive integer")


class AllocationStrategy(ABC):
    """
    Capacity policy for one allocation mode.

    Contract:
        ``check`` raises if a reservation is infeasible; ``reserve`` and
        ``release`` return a new snapshot and never mutate their input.
    """

    mode: ClassVar[AllocationMode]

    @abstractmethod
    def check(self, snapshot: OccupancySnapshot, units: int, tenant_id: str) -> None:
        """Raise an AllocationError if ``units`` cannot be reserved."""

    @abstractmethod
    def reserve(
        self,
        snapshot: OccupancySnapshot,
        units: int,
        tenant_id: str,
        length_m: Decimal = _ZERO,
    ) -> OccupancySnapshot:
        ...

    @abstractmethod
    def release(
        self,
        snapshot: OccupancySnapshot,
        units: int,
        length_m: Decimal = _ZERO,
    ) -> OccupancySnapshot:
        ...

    def can_reserve(self, snapshot: OccupancySnapshot, units: int, tenant_id: str) -> bool:
        """Non-raising feasibility query."""
        try:
            self.check(snapshot, units, tenant_id)
        except AllocationError:
            return False
        return True


class LinearCapacityStrategy(AllocationStrategy):
    """Joint-counted racks shared by any number of lots and tenants."""

    mode = AllocationMode.LINEAR_CAPACITY

    def check(self, snapshot: OccupancySnapshot, units: int, tenant_id: str) -> None:
        _require_positive(units)
        if snapshot.occupied + units > snapshot.capacity:
            raise CapacityExceededError(
                location_id=snapshot.location_id,
                capacity=snapshot.capacity,
                occupied=snapshot.occupied,
                requested=units,
            )

    def reserve(self, snapshot, units, tenant_id, length_m=_ZERO):
        self.check(snapshot, units, tenant_id)
        occupied = snapshot.occupied + units
        return replace(
            snapshot,
            occupied=occupied,
            stored_joints=occupied,
            occupied_meters=snapshot.occupied_meters + length_m,
        )

    def release(self, snapshot, units, length_m=_ZERO):
        _require_positive(units)
        occupied = max(0, snapshot.occupied - units)
        return replace(
            snapshot,
            occupied=occupied,
            stored_joints=occupied,
            occupied_meters=max(_ZERO, snapshot.occupied_meters - length_m),
        )


class SlotStrategy(AllocationStrategy):
    """
    Single-tenant slots.

    A claimed slot reports ``occupied == 1``; ``stored_joints`` carries the
    joint count for display.  A partial departure only lowers
    ``stored_joints``; the slot is cleared when no joints remain.
    """

    mode = AllocationMode.SLOT

    def check(self, snapshot: OccupancySnapshot, units: int, tenant_id: str) -> None:
        _require_positive(units)
        if snapshot.occupied > 0:
            raise SlotOccupiedError(
                location_id=snapshot.location_id,
                occupant_tenant_id=snapshot.occupant_tenant_id,
                requesting_tenant_id=tenant_id,
            )

    def reserve(self, snapshot, units, tenant_id, length_m=_ZERO):
        self.check(snapshot, units, tenant_id)
        return replace(
            snapshot,
            occupied=1,
            stored_joints=units,
            occupied_meters=length_m,
            occupant_tenant_id=tenant_id,
        )

    def release(self, snapshot, units, length_m=_ZERO):
        _require_positive(units)
        remaining = max(0, snapshot.stored_joints - units)
        if remaining == 0:
            return replace(
                snapshot,
                occupied=0,
                stored_joints=0,
                occupied_meters=_ZERO,
                occupant_tenant_id=None,
            )
        return replace(
            snapshot,
            stored_joints=remaining,
            occupied_meters=max(_ZERO, snapshot.occupied_meters - length_m),
        )


_STRATEGIES: dict[AllocationMode, AllocationStrategy] = {
    AllocationMode.LINEAR_CAPACITY: LinearCapacityStrategy(),
    AllocationMode.SLOT: SlotStrategy(),
}


def strategy_for(mode: AllocationMode | str) -> AllocationStrategy:
    """Return the strategy registered for ``mode``."""
    return _STRATEGIES[AllocationMode(mode)]
