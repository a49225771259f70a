"""
LotSelector -- read access to inventory lots and their history.

All queries are tenant scoped through the caller's ``AuthContext``: a
tenant never sees another tenant's lots, and a lot it cannot see is
reported as not found.
"""

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select

from yard_kernel.domain.dtos import LotChangeEvent, LotInfo, TenantInventorySummary
from yard_kernel.domain.values import AuthContext, LotStatus
from yard_kernel.exceptions import LotNotFoundError
from yard_kernel.models.inventory_lot import InventoryLot
from yard_kernel.models.lot_event import LotEvent
from yard_kernel.selectors.base import BaseSelector


class LotSelector(BaseSelector[InventoryLot]):
    """Query lots, lineage, summaries and event history."""

    def get(self, ctx: AuthContext, lot_id: UUID) -> LotInfo:
        """
        Raises:
            LotNotFoundError: unknown lot, or a lot of another tenant.
        """
        return LotInfo.from_model(self._visible(ctx, lot_id))

    def find_by_reference(self, ctx: AuthContext, tenant_id: str, reference_id: str) -> LotInfo | None:
        if not ctx.can_see(tenant_id):
            return None
        lot = self.session.execute(
            select(InventoryLot).where(
                InventoryLot.tenant_id == tenant_id,
                InventoryLot.reference_id == reference_id,
            )
        ).scalar_one_or_none()
        return LotInfo.from_model(lot) if lot is not None else None

    def list_lots(
        self,
        ctx: AuthContext,
        tenant_id: str | None = None,
        statuses: Iterable[LotStatus | str] | None = None,
        location_id: str | None = None,
    ) -> list[LotInfo]:
        """
        Lots visible to ``ctx``, oldest first.

        A tenant-scoped context always queries its own tenant; an operator
        may pass ``tenant_id`` to narrow the result or None for all tenants.
        """
        if tenant_id is not None:
            ctx.require_tenant(tenant_id)
        tenant = ctx.tenant_id or tenant_id

        stmt = select(InventoryLot)
        if tenant is not None:
            stmt = stmt.where(InventoryLot.tenant_id == tenant)
        if statuses is not None:
            stmt = stmt.where(InventoryLot.status.in_([LotStatus(s).value for s in statuses]))
        if location_id is not None:
            stmt = stmt.where(InventoryLot.location_id == location_id)
        stmt = stmt.order_by(InventoryLot.created_at, InventoryLot.reference_id)

        return [LotInfo.from_model(lot) for lot in self.session.execute(stmt).scalars()]

    def lineage(self, ctx: AuthContext, lot_id: UUID) -> list[LotInfo]:
        """
        The lot followed by every lot split from it, directly or through
        intermediate splits, in creation order.
        """
        root = self._visible(ctx, lot_id)
        result = [root]
        frontier = [root.id]
        while frontier:
            children = list(
                self.session.execute(
                    select(InventoryLot)
                    .where(InventoryLot.parent_lot_id.in_(frontier))
                    .order_by(InventoryLot.created_at, InventoryLot.reference_id)
                ).scalars()
            )
            result.extend(children)
            frontier = [c.id for c in children]
        return [LotInfo.from_model(lot) for lot in result]

    def tenant_summary(self, ctx: AuthContext, tenant_id: str) -> TenantInventorySummary:
        """Joint counts for one tenant grouped by status."""
        ctx.require_tenant(tenant_id)
        rows = self.session.execute(
            select(InventoryLot.status, func.count(), func.sum(InventoryLot.quantity))
            .where(InventoryLot.tenant_id == tenant_id)
            .group_by(InventoryLot.status)
        ).all()

        joints: dict[LotStatus, int] = defaultdict(int)
        lot_count = 0
        for status, count, total in rows:
            joints[LotStatus(status)] += int(total or 0)
            lot_count += count
        return TenantInventorySummary(
            tenant_id=tenant_id,
            lot_count=lot_count,
            joints_by_status=dict(joints),
        )

    def history(self, ctx: AuthContext, lot_id: UUID) -> list[LotChangeEvent]:
        """Every recorded change of one lot, oldest first."""
        lot = self._visible(ctx, lot_id)
        events = self.session.execute(
            select(LotEvent)
            .where(LotEvent.lot_id == lot.id)
            .order_by(LotEvent.sequence)
        ).scalars()
        return [LotChangeEvent.from_model(e) for e in events]

    def _visible(self, ctx: AuthContext, lot_id: UUID) -> InventoryLot:
        lot = self.session.get(InventoryLot, lot_id)
        if lot is None or not ctx.can_see(lot.tenant_id):
            raise LotNotFoundError(str(lot_id))
        return lot
