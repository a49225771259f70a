"""
Module: yard_kernel.models.storage_location
Responsibility: ORM persistence for racks and slots -- the physical places a
    lot can be stored, together with their live occupancy.
Architecture position: Kernel > Models.  May import from db/base.py and
    the pure domain layer only.

Invariants enforced:
    - 0 <= occupied <= capacity (ck_location_occupied_range).
    - capacity > 0 (ck_location_capacity_positive).
    - occupied only changes through CapacityLedger, inside the same
      transaction as the lot transition that causes it; every change is
      recorded as a CapacityMovement row.
    - Slot locations: occupied is 0 or 1, and occupant_tenant_id is set
      exactly when occupied is 1.

Failure modes:
    - IntegrityError if a write would violate the occupancy check
      constraints (a ledger bug; the strategies reject such writes first).
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from yard_kernel.db.base import Base
from yard_kernel.domain.allocation import OccupancySnapshot
from yard_kernel.domain.values import AllocationMode


class StorageLocation(Base):
    """
    A rack (linear capacity) or slot (binary occupancy).

    Contract:
        The primary key is the facility's own rack code
        (``<yard>-<area>-<n>``, e.g. ``B-N-3``); locations are provisioned
        from the facility layout and never renamed.

    Guarantees:
        - occupied stays within [0, capacity].
        - stored_joints and occupied_meters mirror occupied for linear racks;
          for slots they carry the occupant's joint count and length.

    Non-goals:
        - This model does NOT decide whether a reservation fits; the
          allocation strategies do.
    """

    __tablename__ = "storage_locations"

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_location_capacity_positive"),
        CheckConstraint(
            "occupied >= 0 AND occupied <= capacity",
            name="ck_location_occupied_range",
        ),
        CheckConstraint("stored_joints >= 0", name="ck_location_stored_joints"),
        Index("idx_location_area", "area_id"),
    )

    # Rack code, e.g. "A-A1-4" or "B-N-3"
    id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
    )

    # Area code, e.g. "B-N"
    area_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Display label ("A1-4", "Rack 3")
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    allocation_mode: Mapped[AllocationMode] = mapped_column(
        String(20),
        nullable=False,
    )

    capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    occupied: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    stored_joints: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    capacity_meters: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        default=Decimal("0"),
        nullable=False,
    )

    occupied_meters: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        default=Decimal("0"),
        nullable=False,
    )

    # Slot mode only
    occupant_tenant_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StorageLocation {self.id} {self.allocation_mode} "
            f"{self.occupied}/{self.capacity}>"
        )

    def snapshot(self) -> OccupancySnapshot:
        """Current occupancy as the value the allocation strategies work on."""
        return OccupancySnapshot(
            location_id=self.id,
            mode=AllocationMode(self.allocation_mode),
            capacity=self.capacity,
            occupied=self.occupied,
            stored_joints=self.stored_joints,
            occupied_meters=Decimal(self.occupied_meters),
            occupant_tenant_id=self.occupant_tenant_id,
        )
