"""
Value objects shared by every layer of the yard kernel.

Responsibility:
    Lot status and allocation mode enumerations, the typed ``ItemAttributes``
    record that replaces the free-form request payload at the boundary, and
    the explicit ``AuthContext`` passed into every kernel call.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Models import the enums from here so
    that the stored values and the domain values are the same objects.

Failure modes:
    - InvalidItemAttributesError from ``ItemAttributes.from_mapping`` and
      ``__post_init__`` when a field is missing, blank, or non-positive.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from yard_kernel.exceptions import InvalidItemAttributesError, TenantScopeError


class LotStatus(str, Enum):
    """Lifecycle status of an inventory lot."""

    PENDING_DELIVERY = "pending_delivery"
    IN_STORAGE = "in_storage"
    PENDING_PICKUP = "pending_pickup"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    REJECTED = "rejected"

    @property
    def holds_location(self) -> bool:
        """True for statuses in which the lot sits on a rack."""
        return self in (LotStatus.IN_STORAGE, LotStatus.PENDING_PICKUP)

    @property
    def is_terminal(self) -> bool:
        return self in (LotStatus.DELIVERED, LotStatus.REJECTED)


class AllocationMode(str, Enum):
    """How a storage location measures capacity."""

    LINEAR_CAPACITY = "linear_capacity"
    SLOT = "slot"


def _required_text(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None or not str(value).strip():
        raise InvalidItemAttributesError(name, "required")
    return str(value).strip()


def _optional_text(data: Mapping[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _positive_decimal(data: Mapping[str, Any], name: str) -> Decimal:
    raw = data.get(name)
    if raw is None:
        raise InvalidItemAttributesError(name, "required")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise InvalidItemAttributesError(name, f"not a number: {raw!r}")
    if not value.is_finite() or value <= 0:
        raise InvalidItemAttributesError(name, "must be greater than zero")
    return value


@dataclass(frozen=True)
class ItemAttributes:
    """
    Descriptive attributes of the joints in a lot.

    Contract:
        Built once at the boundary from whatever the intake form or manifest
        extraction produced; afterwards only the explicit correction
        operation may replace it.

    Guarantees:
        - item_type and grade are non-blank.
        - outer_diameter_in, nominal_length_m and unit_weight_lb_ft are
          finite Decimals greater than zero.
    """

    item_type: str
    grade: str
    outer_diameter_in: Decimal
    nominal_length_m: Decimal
    unit_weight_lb_ft: Decimal
    connection: str | None = None
    thread_type: str | None = None

    def __post_init__(self) -> None:
        for name in ("item_type", "grade"):
            if not getattr(self, name) or not str(getattr(self, name)).strip():
                raise InvalidItemAttributesError(name, "required")
        for name in ("outer_diameter_in", "nominal_length_m", "unit_weight_lb_ft"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
                raise InvalidItemAttributesError(name, "must be a Decimal greater than zero")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ItemAttributes:
        """Validate an untyped payload (form fields, JSON column) into attributes."""
        return cls(
            item_type=_required_text(data, "item_type"),
            grade=_required_text(data, "grade"),
            outer_diameter_in=_positive_decimal(data, "outer_diameter_in"),
            nominal_length_m=_positive_decimal(data, "nominal_length_m"),
            unit_weight_lb_ft=_positive_decimal(data, "unit_weight_lb_ft"),
            connection=_optional_text(data, "connection"),
            thread_type=_optional_text(data, "thread_type"),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation (Decimals as strings)."""
        return {
            key: (str(value) if isinstance(value, Decimal) else value)
            for key, value in asdict(self).items()
        }

    def length_for(self, joints: int) -> Decimal:
        """Total nominal length in meters of ``joints`` joints."""
        return self.nominal_length_m * joints


@dataclass(frozen=True)
class AuthContext:
    """
    Explicit identity for every kernel call.

    ``tenant_id`` set: the caller acts for that tenant only and cannot see
    other tenants' lots.  ``tenant_id`` None with ``is_operator`` True: a
    yard operator acting across tenants.

    Authorization policy (who may call which operation) belongs to the
    calling layer; the kernel only enforces tenant scoping.
    """

    actor_id: str
    tenant_id: str | None = None
    is_operator: bool = False

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("actor_id is required")
        if self.tenant_id is None and not self.is_operator:
            raise ValueError("A non-operator context must name its tenant")

    @classmethod
    def operator(cls, actor_id: str) -> AuthContext:
        return cls(actor_id=actor_id, is_operator=True)

    @classmethod
    def for_tenant(cls, actor_id: str, tenant_id: str) -> AuthContext:
        return cls(actor_id=actor_id, tenant_id=tenant_id)

    def can_see(self, tenant_id: str) -> bool:
        return self.tenant_id is None or self.tenant_id == tenant_id

    def require_tenant(self, tenant_id: str) -> None:
        """Raise TenantScopeError if this context may not act for ``tenant_id``."""
        if not self.can_see(tenant_id):
            raise TenantScopeError(self.tenant_id, tenant_id)
