"""
Module: yard_kernel.models.capacity_movement
Responsibility: Append-only record of every reserve and release applied to a
    storage location.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are inserted in the same transaction as the occupancy change they
      describe and are never updated.
    - For a linear rack, occupied equals the sum of reserved units minus the
      sum of released units over its movements.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from yard_kernel.db.base import Base, UTCDateTime, UUIDString


class CapacityMovement(Base):
    """One occupancy change on one location."""

    __tablename__ = "capacity_movements"

    __table_args__ = (
        UniqueConstraint("location_id", "sequence", name="uq_movement_sequence"),
        Index("idx_movement_lot", "lot_id"),
    )

    location_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("storage_locations.id"),
        nullable=False,
    )

    # 1-based position in the location's movement history
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=False,
    )

    tenant_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # "reserve" or "release"
    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    units: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    occupied_before: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    occupied_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
