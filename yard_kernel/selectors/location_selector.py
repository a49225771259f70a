"""
LocationSelector -- read access to storage locations and their occupancy.

Occupancy figures are those committed by the CapacityLedger; nothing here
recomputes them from lots.
"""

from uuid import UUID

from sqlalchemy import select

from yard_kernel.domain.allocation import strategy_for
from yard_kernel.domain.dtos import (
    AreaUtilization,
    CapacityMovementInfo,
    LocationOccupancy,
    utilization_pct,
)
from yard_kernel.exceptions import LocationNotFoundError
from yard_kernel.models.capacity_movement import CapacityMovement
from yard_kernel.models.storage_location import StorageLocation
from yard_kernel.selectors.base import BaseSelector


class LocationSelector(BaseSelector[StorageLocation]):
    """Query occupancy, utilization and capacity movements."""

    def occupancy(self, location_id: str) -> LocationOccupancy:
        """
        Raises:
            LocationNotFoundError: unknown location id.
        """
        return LocationOccupancy.from_model(self._get(location_id))

    def list_locations(self, area_id: str | None = None) -> list[LocationOccupancy]:
        stmt = select(StorageLocation)
        if area_id is not None:
            stmt = stmt.where(StorageLocation.area_id == area_id)
        stmt = stmt.order_by(StorageLocation.area_id, StorageLocation.id)
        return [LocationOccupancy.from_model(loc) for loc in self.session.execute(stmt).scalars()]

    def area_utilization(self, area_id: str) -> AreaUtilization:
        locations = self.list_locations(area_id)
        capacity = sum(loc.capacity for loc in locations)
        occupied = sum(loc.occupied for loc in locations)
        return AreaUtilization(
            area_id=area_id,
            location_count=len(locations),
            empty_locations=sum(1 for loc in locations if loc.occupied == 0),
            capacity=capacity,
            occupied=occupied,
            stored_joints=sum(loc.stored_joints for loc in locations),
            utilization_pct=utilization_pct(occupied, capacity),
        )

    def find_available_locations(
        self,
        units: int,
        tenant_id: str,
        area_id: str | None = None,
    ) -> list[LocationOccupancy]:
        """
        Locations that could take ``units`` joints for ``tenant_id`` right
        now, most free capacity first.

        Advisory only: a concurrent arrival may claim the space before the
        caller confirms its own.
        """
        stmt = select(StorageLocation)
        if area_id is not None:
            stmt = stmt.where(StorageLocation.area_id == area_id)

        available = [
            loc
            for loc in self.session.execute(stmt).scalars()
            if strategy_for(loc.allocation_mode).can_reserve(loc.snapshot(), units, tenant_id)
        ]
        available.sort(key=lambda loc: (-(loc.capacity - loc.occupied), loc.id))
        return [LocationOccupancy.from_model(loc) for loc in available]

    def movements(self, location_id: str, lot_id: UUID | None = None) -> list[CapacityMovementInfo]:
        """Capacity movements at a location, oldest first."""
        self._get(location_id)
        stmt = select(CapacityMovement).where(CapacityMovement.location_id == location_id)
        if lot_id is not None:
            stmt = stmt.where(CapacityMovement.lot_id == lot_id)
        stmt = stmt.order_by(CapacityMovement.sequence)
        return [CapacityMovementInfo.from_model(m) for m in self.session.execute(stmt).scalars()]

    def _get(self, location_id: str) -> StorageLocation:
        location = self.session.get(StorageLocation, location_id)
        if location is None:
            raise LocationNotFoundError(location_id)
        return location
