"""
LifecycleEngine -- the only writer of lot status, quantity and location.

Responsibility:
    Drives inventory lots through LOT_WORKFLOW.  Each operation locks the
    lot, resolves the requested action against the lot's status, applies
    the transition's declared capacity effect through the CapacityLedger,
    mutates the lot, and appends LotEvent outbox rows -- all within the
    caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by YardOrchestrator, which owns the transaction and publishes
    the collected events after commit.

Invariants enforced:
    - Status changes only along LOT_WORKFLOW transitions; any other request
      raises InvalidTransitionError before anything is mutated.
    - location_id is set iff the lot's quantity is reserved at that
      location (set on arrival, cleared on departure).
    - Lock order: lot row first, then location row.
    - Capacity for a scheduled pickup is held until departure.
    - Every mutation appends at least one LotEvent in the same transaction.

Failure modes:
    - InvalidTransitionError, InvalidQuantityError, CapacityExceededError,
      SlotOccupiedError, LotNotFoundError, LocationNotFoundError,
      TenantScopeError, ReasonRequiredError, InvalidItemAttributesError,
      DuplicateReferenceError.  All are raised before the first write or
      leave the transaction to be rolled back by its owner.
"""

from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from yard_kernel.domain.clock import Clock, SystemClock
from yard_kernel.domain.dtos import (
    ArrivalResult,
    LotChangeEvent,
    PickupResult,
    TransitionResult,
)
from yard_kernel.domain.reconciliation import ReconciliationPolicy
from yard_kernel.domain.values import AuthContext, ItemAttributes, LotStatus
from yard_kernel.domain.workflow import (
    CONFIRM_ARRIVAL,
    CONFIRM_DELIVERY,
    CONFIRM_DEPARTURE,
    LOT_WORKFLOW,
    CapacityEffect,
    REJECT,
    SCHEDULE_PICKUP,
    Transition,
    Workflow,
)
from yard_kernel.exceptions import (
    InvalidQuantityError,
    InvalidTransitionError,
    ReasonRequiredError,
)
from yard_kernel.logging_config import LogContext, get_logger
from yard_kernel.models.inventory_lot import InventoryLot
from yard_kernel.models.lot_event import LotEvent
from yard_kernel.services.base import BaseService
from yard_kernel.services.capacity_ledger import CapacityLedger
from yard_kernel.services.lot_store import LotStore

logger = get_logger("services.lifecycle")

# Change event actions
LOT_CREATED = "lot_created"
ARRIVAL_CONFIRMED = "arrival_confirmed"
PICKUP_SCHEDULED = "pickup_scheduled"
LOT_SPLIT = "lot_split"
DEPARTURE_CONFIRMED = "departure_confirmed"
DELIVERY_CONFIRMED = "delivery_confirmed"
LOT_REJECTED = "lot_rejected"
ATTRIBUTES_CORRECTED = "attributes_corrected"

CORRECT_ATTRIBUTES = "correct_attributes"


class LifecycleEngine(BaseService[InventoryLot]):
    """
    State machine driver for inventory lots.

    Contract:
        Every public method takes an ``AuthContext`` first, flushes its
        changes, and returns a frozen result DTO.  Events produced by the
        calls are kept until ``drain_events()``; the transaction owner
        publishes them only after a successful commit.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT deliver notifications; it only records change events.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        reconciliation: ReconciliationPolicy | None = None,
        workflow: Workflow = LOT_WORKFLOW,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._reconciliation = reconciliation or ReconciliationPolicy()
        self._workflow = workflow
        self._lots = LotStore(session, self._clock)
        self._ledger = CapacityLedger(session, self._clock)
        self._pending: list[LotEvent] = []

    # -------------------------------------------------------------------------
    # Operations
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
        """
        Register an expected delivery as a PENDING_DELIVERY lot.

        Raises:
            TenantScopeError: ctx is scoped to a different tenant.
            InvalidItemAttributesError: attributes fail validation.
            InvalidQuantityError: estimated_quantity <= 0.
            DuplicateReferenceError: reference already used by the tenant.
        """
        ctx.require_tenant(tenant_id)
        attributes = _as_attributes(item_attributes)
        lot = self._lots.create(
            tenant_id=tenant_id,
            reference_id=reference_id,
            item_attributes=attributes,
            estimated_quantity=estimated_quantity,
            inbound_shipment_id=inbound_shipment_id,
        )
        self._record(
            ctx,
            lot,
            from_status=None,
            action=LOT_CREATED,
            detail={
                "reference_id": reference_id,
                "estimated_quantity": estimated_quantity,
                "inbound_shipment_id": inbound_shipment_id,
            },
        )
        return lot.id

    def confirm_arrival(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        location_id: str,
        measured_quantity: int | None,
        inbound_shipment_id: str | None = None,
    ) -> ArrivalResult:
        """
        Put a delivered lot on a rack.

        The measured quantity (from the delivery manifest) replaces the
        estimate and is reserved at ``location_id``.  ``measured_quantity``
        None means no manifest was available: the estimate is committed
        unchanged and nothing is flagged.

        Raises:
            InvalidTransitionError: lot is not PENDING_DELIVERY.
            InvalidQuantityError: measured_quantity <= 0.
            CapacityExceededError / SlotOccupiedError: location cannot take
                the quantity; the lot stays PENDING_DELIVERY.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id, location_id=location_id):
            transition = self._resolve(lot, CONFIRM_ARRIVAL)

            reconciliation = None
            quantity = lot.quantity
            if measured_quantity is not None:
                reconciliation = self._reconciliation.reconcile(lot.estimated_quantity, measured_quantity)
                quantity = reconciliation.measured
            flagged = bool(reconciliation and reconciliation.flagged)

            self._apply_capacity_effect(lot, transition, location_id, quantity)

            lot.quantity = quantity
            lot.location_id = location_id
            lot.discrepancy_flagged = flagged
            if inbound_shipment_id is not None:
                lot.inbound_shipment_id = inbound_shipment_id
            self._transition(lot, transition)

            detail: dict[str, Any] = {
                "location_id": location_id,
                "quantity": quantity,
                "estimated_quantity": lot.estimated_quantity,
                "manifest_available": measured_quantity is not None,
                "flagged": flagged,
            }
            if reconciliation is not None:
                detail["delta"] = reconciliation.delta
                detail["ratio"] = str(reconciliation.ratio)
            self._record(ctx, lot, transition.from_state, ARRIVAL_CONFIRMED, detail)

            if flagged:
                logger.warning(
                    "quantity_discrepancy_flagged",
                    extra={
                        "estimated_quantity": lot.estimated_quantity,
                        "measured_quantity": quantity,
                        "ratio": reconciliation.ratio,
                        "threshold": self._reconciliation.threshold,
                    },
                )
            logger.info(
                "lot_arrival_confirmed",
                extra={"quantity": quantity, "flagged": flagged},
            )

        return ArrivalResult(
            lot_id=lot.id,
            status=LotStatus(lot.status),
            location_id=location_id,
            quantity=quantity,
            flagged=flagged,
            reconciliation=reconciliation,
        )

    def schedule_pickup(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        pickup_quantity: int,
        outbound_shipment_id: str,
    ) -> PickupResult:
        """
        Earmark stored joints for an outbound shipment.

        Picking up the whole lot moves it to PENDING_PICKUP in place.  A
        partial pickup splits off a new PENDING_PICKUP lot carrying the
        shipment; the original stays IN_STORAGE at the same location with
        the remainder.  The location reservation is unchanged either way.

        Raises:
            InvalidTransitionError: lot is not IN_STORAGE.
            InvalidQuantityError: unless 0 < pickup_quantity <= quantity.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id, location_id=lot.location_id):
            transition = self._resolve(lot, SCHEDULE_PICKUP)
            if (
                isinstance(pickup_quantity, bool)
                or not isinstance(pickup_quantity, int)
                or not 0 < pickup_quantity <= lot.quantity
            ):
                logger.warning(
                    "pickup_quantity_rejected",
                    extra={"pickup_quantity": pickup_quantity, "quantity": lot.quantity},
                )
                raise InvalidQuantityError(
                    pickup_quantity, f"pickup quantity must be between 1 and {lot.quantity}"
                )

            if pickup_quantity == lot.quantity:
                lot.outbound_shipment_id = outbound_shipment_id
                self._apply_capacity_effect(lot, transition, lot.location_id, pickup_quantity)
                self._transition(lot, transition)
                self._record(
                    ctx,
                    lot,
                    transition.from_state,
                    PICKUP_SCHEDULED,
                    {"quantity": pickup_quantity, "outbound_shipment_id": outbound_shipment_id},
                )
                logger.info("lot_pickup_scheduled", extra={"quantity": pickup_quantity})
                return PickupResult(lot_id=lot.id, split_lot_id=None, remaining_quantity=0)

            now = self._clock.now()
            child, plan = self._lots.split(
                lot,
                pickup_quantity,
                status=transition.to_state,
                outbound_shipment_id=outbound_shipment_id,
                now=now,
            )
            self._record(
                ctx,
                lot,
                transition.from_state,
                LOT_SPLIT,
                {
                    "split_lot_id": str(child.id),
                    "extracted_quantity": plan.extracted_quantity,
                    "remainder_quantity": plan.remainder_quantity,
                },
            )
            self._record(
                ctx,
                child,
                None,
                PICKUP_SCHEDULED,
                {
                    "parent_lot_id": str(lot.id),
                    "quantity": plan.extracted_quantity,
                    "outbound_shipment_id": outbound_shipment_id,
                },
            )
            logger.info(
                "lot_pickup_scheduled",
                extra={
                    "quantity": pickup_quantity,
                    "split_lot_id": str(child.id),
                    "remainder_quantity": plan.remainder_quantity,
                },
            )
            return PickupResult(
                lot_id=lot.id,
                split_lot_id=child.id,
                remaining_quantity=plan.remainder_quantity,
            )

    def confirm_departure(self, ctx: AuthContext, lot_id: UUID) -> TransitionResult:
        """
        Record that a scheduled lot left the yard; releases its capacity.

        Raises:
            InvalidTransitionError: lot is not PENDING_PICKUP.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id, location_id=lot.location_id):
            transition = self._resolve(lot, CONFIRM_DEPARTURE)
            location_id = lot.location_id
            self._apply_capacity_effect(lot, transition, location_id, lot.quantity)
            lot.location_id = None
            self._transition(lot, transition)
            self._record(
                ctx,
                lot,
                transition.from_state,
                DEPARTURE_CONFIRMED,
                {"location_id": location_id, "quantity": lot.quantity},
            )
            logger.info("lot_departure_confirmed", extra={"quantity": lot.quantity})
        return TransitionResult(lot_id=lot.id, status=LotStatus(lot.status))

    def confirm_delivery(self, ctx: AuthContext, lot_id: UUID) -> TransitionResult:
        """
        Raises:
            InvalidTransitionError: lot is not IN_TRANSIT.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id):
            transition = self._resolve(lot, CONFIRM_DELIVERY)
            self._apply_capacity_effect(lot, transition, lot.location_id, lot.quantity)
            self._transition(lot, transition)
            self._record(ctx, lot, transition.from_state, DELIVERY_CONFIRMED, {})
            logger.info("lot_delivery_confirmed")
        return TransitionResult(lot_id=lot.id, status=LotStatus(lot.status))

    def reject(self, ctx: AuthContext, lot_id: UUID, reason: str) -> TransitionResult:
        """
        Refuse an expected delivery.

        Raises:
            InvalidTransitionError: lot is not PENDING_DELIVERY.
            ReasonRequiredError: reason is blank.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id):
            transition = self._resolve(lot, REJECT)
            if not reason or not reason.strip():
                raise ReasonRequiredError(str(lot.id), REJECT)
            lot.rejection_reason = reason.strip()
            self._apply_capacity_effect(lot, transition, lot.location_id, lot.quantity)
            self._transition(lot, transition)
            self._record(ctx, lot, transition.from_state, LOT_REJECTED, {"reason": lot.rejection_reason})
            logger.info("lot_rejected", extra={"reason": lot.rejection_reason})
        return TransitionResult(lot_id=lot.id, status=LotStatus(lot.status))

    def correct_attributes(
        self,
        ctx: AuthContext,
        lot_id: UUID,
        item_attributes: ItemAttributes | Mapping[str, Any],
        reason: str,
    ) -> TransitionResult:
        """
        Replace a lot's item attributes.

        Allowed on any non-terminal lot.  The status does not change; the
        event carries the previous and new attributes.  If the lot sits on
        a rack, the rack's occupied length is restated for the new nominal
        joint length.

        Raises:
            InvalidTransitionError: lot is DELIVERED or REJECTED.
            ReasonRequiredError: reason is blank.
            InvalidItemAttributesError: new attributes fail validation.
        """
        lot = self._lots.get_for_update(ctx, lot_id)
        with LogContext.bind(lot_id=lot.id):
            status = LotStatus(lot.status)
            if status.is_terminal:
                logger.warning(
                    "transition_rejected",
                    extra={"status": status.value, "action": CORRECT_ATTRIBUTES},
                )
                raise InvalidTransitionError(str(lot.id), status.value, CORRECT_ATTRIBUTES)
            if not reason or not reason.strip():
                raise ReasonRequiredError(str(lot.id), CORRECT_ATTRIBUTES)

            new = _as_attributes(item_attributes)
            old = ItemAttributes.from_mapping(lot.item_attributes)
            if lot.location_id is not None:
                delta_m: Decimal = new.length_for(lot.quantity) - old.length_for(lot.quantity)
                self._ledger.restate_length(lot.location_id, delta_m)

            lot.item_attributes = new.to_dict()
            self.session.flush()
            self._record(
                ctx,
                lot,
                status,
                ATTRIBUTES_CORRECTED,
                {"reason": reason.strip(), "previous": old.to_dict(), "current": new.to_dict()},
            )
            logger.info("lot_attributes_corrected", extra={"reason": reason.strip()})
        return TransitionResult(lot_id=lot.id, status=status)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def drain_events(self) -> list[LotChangeEvent]:
        """Return and forget the events recorded since the last drain."""
        events = [LotChangeEvent.from_model(row) for row in self._pending]
        self._pending.clear()
        return events

    def discard_events(self) -> None:
        self._pending.clear()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve(self, lot: InventoryLot, action: str) -> Transition:
        try:
            return self._workflow.resolve(str(lot.id), lot.status, action)
        except InvalidTransitionError:
            logger.warning(
                "transition_rejected",
                extra={"status": LotStatus(lot.status).value, "action": action},
            )
            raise

    def _apply_capacity_effect(
        self,
        lot: InventoryLot,
        transition: Transition,
        location_id: str | None,
        units: int,
    ) -> None:
        """Reserve or release ``units`` at ``location_id`` as the transition declares."""
        effect = transition.capacity_effect
        if effect is CapacityEffect.NONE:
            return
        length_m = ItemAttributes.from_mapping(lot.item_attributes).length_for(units)
        if effect is CapacityEffect.RESERVE:
            self._ledger.reserve(
                location_id, lot_id=lot.id, tenant_id=lot.tenant_id, units=units, length_m=length_m
            )
        else:
            self._ledger.release(
                location_id, lot_id=lot.id, tenant_id=lot.tenant_id, units=units, length_m=length_m
            )

    def _transition(self, lot: InventoryLot, transition: Transition) -> None:
        lot.status = transition.to_state.value
        lot.status_changed_at = self._clock.now()
        self.session.flush()

    def _next_sequence(self, lot_id: UUID) -> int:
        current = self.session.execute(
            select(func.max(LotEvent.sequence)).where(LotEvent.lot_id == lot_id)
        ).scalar_one()
        return (current or 0) + 1

    def _record(
        self,
        ctx: AuthContext,
        lot: InventoryLot,
        from_status: LotStatus | None,
        action: str,
        detail: Mapping[str, Any],
    ) -> LotEvent:
        event = LotEvent(
            id=uuid4(),
            lot_id=lot.id,
            sequence=self._next_sequence(lot.id),
            tenant_id=lot.tenant_id,
            from_status=LotStatus(from_status).value if from_status is not None else None,
            to_status=LotStatus(lot.status).value,
            action=action,
            actor_id=ctx.actor_id,
            occurred_at=self._clock.now(),
            detail=dict(detail),
        )
        self.session.add(event)
        self.session.flush()
        self._pending.append(event)
        return event


def _as_attributes(value: ItemAttributes | Mapping[str, Any]) -> ItemAttributes:
    if isinstance(value, ItemAttributes):
        return value
    return ItemAttributes.from_mapping(value)
