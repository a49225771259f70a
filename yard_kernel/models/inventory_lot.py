"""
Module: yard_kernel.models.inventory_lot
Responsibility: ORM persistence for inventory lots -- a tenant's batch of
    identical joints moving through delivery, storage and pickup.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - (tenant_id, reference_id) is unique (uq_lot_tenant_reference).
    - quantity > 0 (ck_lot_quantity_positive).
    - location_id is set iff status is in_storage or pending_pickup; the
      LifecycleEngine maintains this together with the capacity ledger.
    - Status only changes through a transition of LOT_WORKFLOW.

Failure modes:
    - IntegrityError on a duplicate (tenant_id, reference_id); surfaced as
      DuplicateReferenceError by the LotStore.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from yard_kernel.db.base import Base, UTCDateTime, UUIDString
from yard_kernel.domain.values import LotStatus


class InventoryLot(Base):
    """
    One tenant-owned batch of joints.

    Contract:
        Rows are never deleted.  Partial pickups split the row: the original
        keeps the remaining joints and a child row (parent_lot_id set) takes
        the extracted joints, so the total across a lineage is conserved.

    Guarantees:
        - estimated_quantity keeps the intake estimate after arrival
          reconciliation replaces quantity with the measured count.
        - discrepancy_flagged records an advisory manifest/estimate mismatch;
          it never blocks a transition.

    Non-goals:
        - Shipment ids are opaque references to transport records owned by
          another system; they are not foreign keys.
    """

    __tablename__ = "inventory_lots"

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference_id", name="uq_lot_tenant_reference"),
        CheckConstraint("quantity > 0", name="ck_lot_quantity_positive"),
        Index("idx_lot_tenant_status", "tenant_id", "status"),
        Index("idx_lot_location", "location_id"),
        Index("idx_lot_parent", "parent_lot_id"),
    )

    tenant_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Tenant-facing reference (order or ticket number); split lots get
    # "<parent reference>/<n>"
    reference_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # ItemAttributes.to_dict()
    item_attributes: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    estimated_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[LotStatus] = mapped_column(
        String(30),
        default=LotStatus.PENDING_DELIVERY.value,
        nullable=False,
    )

    location_id: Mapped[str | None] = mapped_column(
        String(50),
        ForeignKey("storage_locations.id"),
        nullable=True,
    )

    inbound_shipment_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    outbound_shipment_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    parent_lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=True,
    )

    rejection_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    discrepancy_flagged: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    status_changed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<InventoryLot {self.tenant_id}/{self.reference_id} {self.status} x{self.quantity}>"
