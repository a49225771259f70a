"""
Typed Exception Hierarchy for the Yard Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (a web API, an operator console, a batch importer) need
to react to failures precisely: a full rack is shown differently from a lot
that has already moved on.  Every failure therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        orchestrator.confirm_arrival(ctx, lot_id, "B-N-3", measured_quantity=120)
    except CapacityExceededError as e:
        api_response(code=e.code, free=e.capacity - e.occupied)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from YardKernelError:

    YardKernelError (base)
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- ReasonRequiredError
    |
    +-- QuantityError
    |   +-- InvalidQuantityError
    |
    +-- AllocationError
    |   +-- CapacityExceededError
    |   +-- SlotOccupiedError
    |
    +-- NotFoundError
    |   +-- LotNotFoundError
    |   +-- LocationNotFoundError
    |
    +-- LotRecordError
    |   +-- DuplicateReferenceError
    |   +-- InvalidReferenceError
    |   +-- InvalidItemAttributesError
    |
    +-- TenantScopeError
    |
    +-- StoreUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                     | When Raised
------------|--------------------------|------------------------------------------
Lifecycle   | INVALID_TRANSITION       | Operation not allowed from current status
            | REASON_REQUIRED          | Rejection/correction without a reason
------------|--------------------------|------------------------------------------
Quantity    | INVALID_QUANTITY         | Zero, negative or out-of-range quantity
------------|--------------------------|------------------------------------------
Allocation  | CAPACITY_EXCEEDED        | Linear rack would exceed its capacity
            | SLOT_OCCUPIED            | Slot already claimed (any tenant)
------------|--------------------------|------------------------------------------
Not found   | LOT_NOT_FOUND            | Lot missing or outside caller's tenant
            | LOCATION_NOT_FOUND       | Storage location does not exist
------------|--------------------------|------------------------------------------
Lot record  | DUPLICATE_REFERENCE      | (tenant, reference) already used
            | INVALID_REFERENCE        | Reference empty or too long
            | INVALID_ITEM_ATTRIBUTES  | Item attributes failed validation
------------|--------------------------|------------------------------------------
Tenancy     | TENANT_SCOPE_VIOLATION   | Tenant context acting for another tenant
------------|--------------------------|------------------------------------------
Store       | STORE_UNAVAILABLE        | Backing store failed; attempt rolled back

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ALLOCATION FAILURES ARE ORDINARY OUTCOMES:

    except AllocationError as e:
        offer_other_racks(e.location_id)

2. INVALID TRANSITIONS MEAN "RE-READ STATE":

    except InvalidTransitionError as e:
        lot = orchestrator.get_lot(ctx, e.lot_id)

3. STORE FAILURES ARE SAFE TO RETRY (nothing was applied):

    except StoreUnavailableError:
        retry_later()

Reconciliation discrepancy flags are NOT errors; they are returned on the
successful ArrivalResult.
"""


class YardKernelError(Exception):
    """
    Base exception for all yard kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "YARD_KERNEL_ERROR"


# Lifecycle exceptions


class LifecycleError(YardKernelError):
    """Base exception for lot lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Operation attempted from a status that does not permit it."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, lot_id: str, current_status: str, action: str):
        self.lot_id = lot_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} lot {lot_id}: current status is {current_status}"
        )


class ReasonRequiredError(LifecycleError):
    """A rejection or correction was submitted without a reason."""

    code: str = "REASON_REQUIRED"

    def __init__(self, lot_id: str, action: str):
        self.lot_id = lot_id
        self.action = action
        super().__init__(f"A reason is required to {action} lot {lot_id}")


# Quantity exceptions


class QuantityError(YardKernelError):
    """Base exception for quantity errors."""

    code: str = "QUANTITY_ERROR"


class InvalidQuantityError(QuantityError):
    """Quantity argument is zero, negative, or outside the allowed range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, detail: str):
        self.quantity = quantity
        self.detail = detail
        super().__init__(f"Invalid quantity {quantity}: {detail}")


# Allocation exceptions


class AllocationError(YardKernelError):
    """Base exception for rack allocation failures."""

    code: str = "ALLOCATION_ERROR"

    location_id: str


class CapacityExceededError(AllocationError):
    """Linear-capacity reservation would exceed the rack's capacity."""

    code: str = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        location_id: str,
        capacity: int,
        occupied: int,
        requested: int,
    ):
        self.location_id = location_id
        self.capacity = capacity
        self.occupied = occupied
        self.requested = requested
        super().__init__(
            f"Location {location_id} cannot take {requested} units: "
            f"{occupied}/{capacity} occupied"
        )


class SlotOccupiedError(AllocationError):
    """Slot-mode reservation contested (including cross-tenant)."""

    code: str = "SLOT_OCCUPIED"

    def __init__(
        self,
        location_id: str,
        occupant_tenant_id: str | None,
        requesting_tenant_id: str,
    ):
        self.location_id = location_id
        self.occupant_tenant_id = occupant_tenant_id
        self.requesting_tenant_id = requesting_tenant_id
        super().__init__(
            f"Slot {location_id} is already claimed by tenant {occupant_tenant_id}"
        )


# Not-found exceptions


class NotFoundError(YardKernelError):
    """Base exception for references that do not resolve."""

    code: str = "NOT_FOUND"


class LotNotFoundError(NotFoundError):
    """Lot does not exist, or is not visible to the caller's tenant."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str):
        self.lot_id = lot_id
        super().__init__(f"Lot not found: {lot_id}")


class LocationNotFoundError(NotFoundError):
    """Storage location does not exist."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Storage location not found: {location_id}")


# Lot record exceptions


class LotRecordError(YardKernelError):
    """Base exception for lot record validation errors."""

    code: str = "LOT_RECORD_ERROR"


class DuplicateReferenceError(LotRecordError):
    """The tenant already has a lot with this reference id."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, tenant_id: str, reference_id: str):
        self.tenant_id = tenant_id
        self.reference_id = reference_id
        super().__init__(
            f"Tenant {tenant_id} already has a lot with reference {reference_id}"
        )


class InvalidReferenceError(LotRecordError):
    """Reference id is empty or longer than the column allows."""

    code: str = "INVALID_REFERENCE"

    def __init__(self, reference_id: str, detail: str):
        self.reference_id = reference_id
        self.detail = detail
        super().__init__(f"Invalid reference '{reference_id}': {detail}")


class InvalidItemAttributesError(LotRecordError):
    """Item attributes failed boundary validation."""

    code: str = "INVALID_ITEM_ATTRIBUTES"

    def __init__(self, field_name: str, detail: str):
        self.field_name = field_name
        self.detail = detail
        super().__init__(f"Invalid item attribute '{field_name}': {detail}")


# Tenancy


class TenantScopeError(YardKernelError):
    """A tenant-scoped caller attempted to act on behalf of another tenant."""

    code: str = "TENANT_SCOPE_VIOLATION"

    def __init__(self, context_tenant_id: str, target_tenant_id: str):
        self.context_tenant_id = context_tenant_id
        self.target_tenant_id = target_tenant_id
        super().__init__(
            f"Tenant {context_tenant_id} cannot act for tenant {target_tenant_id}"
        )


# Store


class StoreUnavailableError(YardKernelError):
    """The backing store failed; the attempt was fully rolled back."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")
