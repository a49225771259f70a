"""
FacilityService -- provisions storage locations from a facility layout.

Responsibility:
    Creates the StorageLocation rows described by a layout (yards -> areas
    -> racks).  Provisioning is idempotent: racks that already exist are
    left exactly as they are, including their occupancy.

Architecture position:
    Kernel > Services.  Called by ``scripts/provision_yard.py`` and tests.
    Takes any object shaped like ``yard_config.schema.FacilityLayout``; the
    kernel does not import the config package.

Invariants enforced:
    - Existing locations are never modified here; occupancy only moves
      through the CapacityLedger.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select

from yard_kernel.domain.values import AllocationMode
from yard_kernel.logging_config import get_logger
from yard_kernel.models.storage_location import StorageLocation
from yard_kernel.services.base import BaseService

logger = get_logger("services.facility")


@dataclass(frozen=True)
class ProvisionResult:
    created: tuple[str, ...]
    existing: tuple[str, ...]


def _check_capacity(mode: AllocationMode, capacity: int, where: str) -> None:
    if mode is AllocationMode.SLOT and capacity != 1:
        raise ValueError(f"{where}: slot locations have capacity 1, got {capacity}")
    if capacity <= 0:
        raise ValueError(f"{where}: capacity must be > 0, got {capacity}")


class FacilityService(BaseService[StorageLocation]):
    """Create racks and slots."""

    def provision(self, layout: Any) -> ProvisionResult:
        """
        Create every rack in ``layout`` that does not exist yet.

        Returns:
            The ids created and the ids that were already present.

        Raises:
            ValueError: an area breaks the capacity rules; nothing is added.
        """
        for yard in layout.yards:
            for area in yard.areas:
                _check_capacity(
                    AllocationMode(area.allocation_mode), area.capacity, area.area_id(yard.code)
                )

        existing_ids = set(self.session.execute(select(StorageLocation.id)).scalars())
        created: list[str] = []
        existing: list[str] = []

        for yard in layout.yards:
            for area in yard.areas:
                for number in range(1, area.rack_count + 1):
                    rack_id = area.rack_id(yard.code, number)
                    if rack_id in existing_ids:
                        existing.append(rack_id)
                        continue
                    self.session.add(
                        StorageLocation(
                            id=rack_id,
                            area_id=area.area_id(yard.code),
                            name=area.rack_name(number),
                            allocation_mode=AllocationMode(area.allocation_mode).value,
                            capacity=area.capacity,
                            occupied=0,
                            stored_joints=0,
                            capacity_meters=Decimal(area.capacity_meters),
                            occupied_meters=Decimal("0"),
                        )
                    )
                    created.append(rack_id)

        self.session.flush()
        logger.info(
            "facility_provisioned",
            extra={
                "layout": layout.name,
                "created_count": len(created),
                "existing_count": len(existing),
            },
        )
        return ProvisionResult(created=tuple(created), existing=tuple(existing))

    def add_location(
        self,
        location_id: str,
        area_id: str,
        allocation_mode: AllocationMode | str,
        capacity: int,
        name: str | None = None,
        capacity_meters: Decimal = Decimal("0"),
    ) -> StorageLocation:
        """Create a single location (ad hoc racks, tests)."""
        mode = AllocationMode(allocation_mode)
        _check_capacity(mode, capacity, location_id)
        location = StorageLocation(
            id=location_id,
            area_id=area_id,
            name=name or location_id,
            allocation_mode=mode.value,
            capacity=capacity,
            occupied=0,
            stored_joints=0,
            capacity_meters=capacity_meters,
            occupied_meters=Decimal("0"),
        )
        self.session.add(location)
        self.session.flush()
        logger.info(
            "location_added",
            extra={"location_id": location_id, "allocation_mode": mode.value, "capacity": capacity},
        )
        return location
