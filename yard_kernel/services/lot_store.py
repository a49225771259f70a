"""
LotStore -- persistence of inventory lots.

Responsibility:
    Creates lots, loads them under a row lock with tenant scoping, and
    applies split plans.  Status and location changes are made by the
    LifecycleEngine on the rows this store returns.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - (tenant_id, reference_id) unique; a clash surfaces as
      DuplicateReferenceError whether it is caught by the pre-check or by
      the database constraint under a race.
    - Tenant-scoped callers never observe another tenant's lot: it is
      reported exactly like a missing lot.
    - Split conserves quantity and never touches the capacity ledger.

Failure modes:
    - LotNotFoundError: unknown lot, or a lot of another tenant.
    - DuplicateReferenceError: reference already used by the tenant.
    - InvalidReferenceError: empty reference, or longer than the column.
    - InvalidQuantityError: non-positive estimate, or an invalid split.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from yard_kernel.domain.clock import Clock, SystemClock
from yard_kernel.domain.split import MAX_REFERENCE_LENGTH, SplitPlan, plan_split, split_reference
from yard_kernel.domain.values import AuthContext, ItemAttributes, LotStatus
from yard_kernel.exceptions import (
    DuplicateReferenceError,
    InvalidQuantityError,
    InvalidReferenceError,
    LotNotFoundError,
)
from yard_kernel.logging_config import get_logger
from yard_kernel.models.inventory_lot import InventoryLot
from yard_kernel.services.base import BaseService

logger = get_logger("services.lot_store")


class LotStore(BaseService[InventoryLot]):
    """Create, lock and split inventory lot rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create(
        self,
        tenant_id: str,
        reference_id: str,
        item_attributes: ItemAttributes,
        estimated_quantity: int,
        inbound_shipment_id: str | None = None,
    ) -> InventoryLot:
        """
        Insert a PENDING_DELIVERY lot.

        Raises:
            InvalidQuantityError: estimated_quantity is not a positive int.
            InvalidReferenceError: reference_id empty or too long.
            DuplicateReferenceError: (tenant_id, reference_id) exists.
        """
        if (
            isinstance(estimated_quantity, bool)
            or not isinstance(estimated_quantity, int)
            or estimated_quantity <= 0
        ):
            raise InvalidQuantityError(
                estimated_quantity, "estimated quantity must be a positive integer"
            )

        if not reference_id or not reference_id.strip():
            raise InvalidReferenceError(reference_id, "reference id is required")
        if len(reference_id) > MAX_REFERENCE_LENGTH:
            raise InvalidReferenceError(
                reference_id, f"reference id exceeds {MAX_REFERENCE_LENGTH} characters"
            )

        if self._reference_taken(tenant_id, reference_id):
            raise DuplicateReferenceError(tenant_id, reference_id)

        now = self._clock.now()
        lot = InventoryLot(
            id=uuid4(),
            tenant_id=tenant_id,
            reference_id=reference_id,
            item_attributes=item_attributes.to_dict(),
            quantity=estimated_quantity,
            estimated_quantity=estimated_quantity,
            status=LotStatus.PENDING_DELIVERY.value,
            inbound_shipment_id=inbound_shipment_id,
            discrepancy_flagged=False,
            created_at=now,
            status_changed_at=now,
        )
        self.session.add(lot)
        try:
            self.session.flush()
        except IntegrityError:
            # Concurrent insert won the unique constraint; the caller's
            # transaction is rolled back by its owner.
            logger.warning(
                "duplicate_reference_conflict",
                extra={"tenant_id": tenant_id, "reference_id": reference_id},
            )
            raise DuplicateReferenceError(tenant_id, reference_id)

        logger.info(
            "lot_created",
            extra={
                "lot_id": str(lot.id),
                "tenant_id": tenant_id,
                "reference_id": reference_id,
                "estimated_quantity": estimated_quantity,
            },
        )
        return lot

    def get(self, ctx: AuthContext, lot_id: UUID) -> InventoryLot:
        """Load a lot without locking it."""
        lot = self.session.get(InventoryLot, lot_id)
        return self._visible(ctx, lot_id, lot)

    def get_for_update(self, ctx: AuthContext, lot_id: UUID) -> InventoryLot:
        """Load and lock a lot row (SELECT ... FOR UPDATE)."""
        lot = self.session.execute(
            select(InventoryLot)
            .where(InventoryLot.id == lot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._visible(ctx, lot_id, lot)

    def split(
        self,
        lot: InventoryLot,
        extract: int,
        status: LotStatus,
        outbound_shipment_id: str | None,
        now: datetime | None = None,
    ) -> tuple[InventoryLot, SplitPlan]:
        """
        Carve ``extract`` joints out of a locked lot into a new lot.

        The new lot shares tenant, item attributes and location with the
        original, takes ``status`` and ``outbound_shipment_id`` from the
        caller, and records the original as its parent.

        Raises:
            InvalidQuantityError: unless 0 < extract < lot.quantity.
        """
        plan = plan_split(lot.quantity, extract)
        now = now or self._clock.now()

        reference_id = self._free_split_reference(lot)
        child = InventoryLot(
            id=uuid4(),
            tenant_id=lot.tenant_id,
            reference_id=reference_id,
            item_attributes=dict(lot.item_attributes),
            quantity=plan.extracted_quantity,
            estimated_quantity=plan.extracted_quantity,
            status=LotStatus(status).value,
            location_id=lot.location_id,
            inbound_shipment_id=lot.inbound_shipment_id,
            outbound_shipment_id=outbound_shipment_id,
            parent_lot_id=lot.id,
            discrepancy_flagged=False,
            created_at=now,
            status_changed_at=now,
        )
        lot.quantity = plan.remainder_quantity
        self.session.add(child)
        try:
            self.session.flush()
        except IntegrityError:
            # A concurrent create_lot took the reference after the check.
            logger.warning(
                "split_reference_conflict",
                extra={"tenant_id": lot.tenant_id, "reference_id": reference_id},
            )
            raise DuplicateReferenceError(lot.tenant_id, reference_id)

        logger.info(
            "lot_split",
            extra={
                "lot_id": str(lot.id),
                "split_lot_id": str(child.id),
                "extracted_quantity": plan.extracted_quantity,
                "split_reference_id": reference_id,
                "remainder_quantity": plan.remainder_quantity,
            },
        )
        return child, plan

    def _free_split_reference(self, lot: InventoryLot) -> str:
        """First ``<parent>/<n>`` the tenant does not use, from n = children + 1.

        The parent row is locked by the caller, so sibling splits cannot
        race for the same ordinal.
        """
        ordinal = self._child_count(lot.id) + 1
        candidate = split_reference(lot.reference_id, ordinal)
        while self._reference_taken(lot.tenant_id, candidate):
            ordinal += 1
            candidate = split_reference(lot.reference_id, ordinal)
        return candidate

    def _reference_taken(self, tenant_id: str, reference_id: str) -> bool:
        return (
            self.session.execute(
                select(InventoryLot.id).where(
                    InventoryLot.tenant_id == tenant_id,
                    InventoryLot.reference_id == reference_id,
                )
            ).first()
            is not None
        )

    def _child_count(self, lot_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(InventoryLot).where(InventoryLot.parent_lot_id == lot_id)
        ).scalar_one()

    @staticmethod
    def _visible(ctx: AuthContext, lot_id: UUID, lot: InventoryLot | None) -> InventoryLot:
        if lot is None or not ctx.can_see(lot.tenant_id):
            raise LotNotFoundError(str(lot_id))
        return lot
