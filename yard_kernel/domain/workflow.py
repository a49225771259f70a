"""
Lot workflow (``yard_kernel.domain.workflow``).

Responsibility
--------------
Declares the inventory lot state machine as frozen value objects and
resolves an action against a lot's current status.  The Lifecycle Engine
asks this module which transition applies and what capacity effect it
carries; it never hard-codes status pairs itself.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Each (from_state, action) pair resolves to at most one transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from yard_kernel.domain.values import LotStatus
from yard_kernel.exceptions import InvalidTransitionError


class CapacityEffect(str, Enum):
    """What a transition does to the lot's storage location."""

    NONE = "none"
    RESERVE = "reserve"
    RELEASE = "release"


@dataclass(frozen=True)
class Transition:
    """A permitted status change and its capacity side effect."""

    from_state: LotStatus
    to_state: LotStatus
    action: str
    capacity_effect: CapacityEffect = CapacityEffect.NONE


@dataclass(frozen=True)
class Workflow:
    """
    A state machine definition for the lot lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    initial_state: LotStatus
    states: tuple[LotStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[LotStatus, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"initial_state {self.initial_state} is not a workflow state")
        seen: set[tuple[LotStatus, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t.action} references an unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"Terminal state {t.from_state} has outgoing transition {t.action}")
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(f"Ambiguous transition {t.action} from {t.from_state}")
            seen.add(key)

    def find(self, from_state: LotStatus, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def resolve(self, lot_id: str, from_state: LotStatus | str, action: str) -> Transition:
        """
        Return the transition for ``action`` from ``from_state``.

        Raises:
            InvalidTransitionError: no transition with that action leaves
                the current state.
        """
        status = LotStatus(from_state)
        transition = self.find(status, action)
        if transition is None:
            raise InvalidTransitionError(str(lot_id), status.value, action)
        return transition

    def actions_from(self, from_state: LotStatus) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

CONFIRM_ARRIVAL = "confirm_arrival"
REJECT = "reject"
SCHEDULE_PICKUP = "schedule_pickup"
CONFIRM_DEPARTURE = "confirm_departure"
CONFIRM_DELIVERY = "confirm_delivery"


LOT_WORKFLOW = Workflow(
    name="inventory_lot",
    initial_state=LotStatus.PENDING_DELIVERY,
    states=tuple(LotStatus),
    transitions=(
        Transition(
            LotStatus.PENDING_DELIVERY,
            LotStatus.IN_STORAGE,
            action=CONFIRM_ARRIVAL,
            capacity_effect=CapacityEffect.RESERVE,
        ),
        Transition(LotStatus.PENDING_DELIVERY, LotStatus.REJECTED, action=REJECT),
        Transition(LotStatus.IN_STORAGE, LotStatus.PENDING_PICKUP, action=SCHEDULE_PICKUP),
        Transition(
            LotStatus.PENDING_PICKUP,
            LotStatus.IN_TRANSIT,
            action=CONFIRM_DEPARTURE,
            capacity_effect=CapacityEffect.RELEASE,
        ),
        Transition(LotStatus.IN_TRANSIT, LotStatus.DELIVERED, action=CONFIRM_DELIVERY),
    ),
    terminal_states=(LotStatus.DELIVERED, LotStatus.REJECTED),
)
