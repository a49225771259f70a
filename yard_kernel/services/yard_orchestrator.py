"""
YardOrchestrator -- the kernel's external interface and transaction owner.

Responsibility:
    One method per external event or query.  Each mutating call runs in
    its own transaction: the LifecycleEngine does the work, the
    transaction commits, and only then are the recorded change events
    published.  Read calls use a short-lived session and return DTOs.

Architecture position:
    Kernel > Services -- outermost kernel seam.  Callers (HTTP handlers,
    workers, the scripts) hold one orchestrator per process.

Invariants enforced:
    - Commit on success, rollback on any exception; a failed call leaves
      no trace in lots, locations, movements or the outbox.
    - Events are published only after commit, in recording order.
    - Store failures surface as StoreUnavailableError and are safe to
      retry; a retried confirm_* fails with InvalidTransitionError once
      the first attempt committed.

Failure modes:
    - Every YardKernelError raised by the engine propagates unchanged.
    - StoreUnavailableError wraps OperationalError and pool timeouts.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from yard_kernel.db.engine import get_session_factory
from yard_kernel.domain.clock import Clock, SystemClock
from yard_kernel.domain.dtos import (
    ArrivalResult,
    AreaUtilization,
    CapacityMovementInfo,
    LocationOccupancy,
    LotChangeEvent,
    LotInfo,
    PickupResult,
    TenantInventorySummary,
    TransitionResult,
)
from yard_kernel.domain.reconciliation import ReconciliationPolicy
from yard_kernel.domain.values import AuthContext, ItemAttributes, LotStatus
from yard_kernel.exceptions import StoreUnavailableError, YardKernelError
from yard_kernel.logging_config import LogContext, get_logger
from yard_kernel.selectors.location_selector import LocationSelector
from yard_kernel.selectors.lot_selector import LotSelector
from yard_kernel.services.event_publisher import EventPublisher
from yard_kernel.services.lifecycle_engine import LifecycleEngine

logger = get_logger("services.orchestrator")

T = TypeVar("T")


class YardOrchestrator:
    """
    Transactional facade over the lifecycle engine and selectors.

    Args:
        session_factory: Defaults to the module-level factory from
            ``yard_kernel.db.engine``.
        clock: Time source for every timestamp the kernel writes.
        reconciliation: Estimate/manifest discrepancy policy.
        publisher: Receives change events after commit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        reconciliation: ReconciliationPolicy | None = None,
        publisher: EventPublisher | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._reconciliation = reconciliation or ReconciliationPolicy()
        self.publisher = publisher or EventPublisher()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def create_lot(
        self,
        ctx: AuthContext,
        tenant_id: str,
        reference_id: str,
        item_attributes: ItemAttributes | Mapping[str, Any],
        estimated_quantity: int,
        inbound_shipment_id: str | None = None,
    ) -> UUID:
        return self._execute(
            ctx,
            "create_lot",
            lambda engine: engine.create_lot(
                ctx,
                tenant_id,
                reference_id,
                item_attributes,
                estimated_quantity,
                inbound_shipment_id=inbound_shipment_id,
            ),
        )

    def confirm_arrival(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        location_id: str,
        measured_quantity: int | None,
        inbound_shipment_id: str | None = None,
    ) -> ArrivalResult:
        return self._execute(
            ctx,
            "confirm_arrival",
            lambda engine: engine.confirm_arrival(
                ctx,
                lot_id,
                location_id,
                measured_quantity,
                inbound_shipment_id=inbound_shipment_id,
            ),
            lot_id=lot_id,
        )

    def schedule_pickup(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        pickup_quantity: int,
        outbound_shipment_id: str,
    ) -> PickupResult:
        return self._execute(
            ctx,
            "schedule_pickup",
            lambda engine: engine.schedule_pickup(ctx, lot_id, pickup_quantity, outbound_shipment_id),
            lot_id=lot_id,
        )

    def confirm_departure(self, ctx: AuthContext, lot_id: UUID) -> TransitionResult:
        return self._execute(
            ctx,
            "confirm_departure",
            lambda engine: engine.confirm_departure(ctx, lot_id),
            lot_id=lot_id,
        )

    def confirm_delivery(self, ctx: AuthContext, lot_id: UUID) -> TransitionResult:
        return self._execute(
            ctx,
            "confirm_delivery",
            lambda engine: engine.confirm_delivery(ctx, lot_id),
            lot_id=lot_id,
        )

    def reject(self, ctx: AuthContext, lot_id: UUID, reason: str) -> TransitionResult:
        return self._execute(
            ctx,
            "reject",
            lambda engine: engine.reject(ctx, lot_id, reason),
            lot_id=lot_id,
        )

    def correct_attributes(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        item_attributes: ItemAttributes | Mapping[str, Any],
        reason: str,
    ) -> TransitionResult:
        return self._execute(
            ctx,
            "correct_attributes",
            lambda engine: engine.correct_attributes(ctx, lot_id, item_attributes, reason),
            lot_id=lot_id,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_lot(self, ctx: AuthContext, lot_id: UUID) -> LotInfo:
        return self._read("get_lot", lambda s: LotSelector(s).get(ctx, lot_id))

    def list_lots(
        self,
        ctx: AuthContext,
        tenant_id: str | None = None,
        statuses: Iterable[LotStatus | str] | None = None,
        location_id: str | None = None,
    ) -> list[LotInfo]:
        return self._read(
            "list_lots",
            lambda s: LotSelector(s).list_lots(ctx, tenant_id, statuses, location_id),
        )

    def lot_lineage(self, ctx: AuthContext, lot_id: UUID) -> list[LotInfo]:
        return self._read("lot_lineage", lambda s: LotSelector(s).lineage(ctx, lot_id))

    def lot_history(self, ctx: AuthContext, lot_id: UUID) -> list[LotChangeEvent]:
        return self._read("lot_history", lambda s: LotSelector(s).history(ctx, lot_id))

    def tenant_summary(self, ctx: AuthContext, tenant_id: str) -> TenantInventorySummary:
        return self._read("tenant_summary", lambda s: LotSelector(s).tenant_summary(ctx, tenant_id))

    def get_location_occupancy(self, location_id: str) -> LocationOccupancy:
        return self._read("get_location_occupancy", lambda s: LocationSelector(s).occupancy(location_id))

    def area_utilization(self, area_id: str) -> AreaUtilization:
        return self._read("area_utilization", lambda s: LocationSelector(s).area_utilization(area_id))

    def find_available_locations(
        self,
        units: int,
        tenant_id: str,
        area_id: str | None = None,
    ) -> list[LocationOccupancy]:
        return self._read(
            "find_available_locations",
            lambda s: LocationSelector(s).find_available_locations(units, tenant_id, area_id),
        )

    def location_movements(self, location_id: str) -> list[CapacityMovementInfo]:
        return self._read("location_movements", lambda s: LocationSelector(s).movements(location_id))

    # -------------------------------------------------------------------------
    # Transaction boundary
    # -------------------------------------------------------------------------

    def _execute(
        self,
        ctx: AuthContext,
        operation: str,
        work: Callable[[LifecycleEngine], T],
        lot_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=uuid4(),
            actor_id=ctx.actor_id,
            tenant_id=ctx.tenant_id,
            lot_id=lot_id,
        ):
            session = self._session_factory()
            engine = LifecycleEngine(session, self._clock, self._reconciliation)
            try:
                result = work(engine)
                events = engine.drain_events()
                session.commit()
            except YardKernelError as exc:
                session.rollback()
                engine.discard_events()
                logger.warning(
                    "operation_rejected",
                    extra={"operation": operation, "error_code": exc.code, "error": str(exc)},
                )
                raise
            except (OperationalError, PoolTimeoutError) as exc:
                session.rollback()
                engine.discard_events()
                logger.error(
                    "store_unavailable",
                    exc_info=True,
                    extra={"operation": operation},
                )
                raise StoreUnavailableError(operation, str(exc)) from exc
            except Exception:
                session.rollback()
                engine.discard_events()
                logger.exception("operation_failed", extra={"operation": operation})
                raise
            finally:
                session.close()

            logger.debug(
                "operation_committed",
                extra={"operation": operation, "event_count": len(events)},
            )
            self.publisher.publish_all(events)
            return result

    def _read(self, operation: str, query: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            return query(session)
        except (OperationalError, PoolTimeoutError) as exc:
            logger.error("store_unavailable", exc_info=True, extra={"operation": operation})
            raise StoreUnavailableError(operation, str(exc)) from exc
        finally:
            session.rollback()
            session.close()
