"""
Typed Exception Hierarchy for the Warehouse Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Custody errors are surfaced to a human operator (a warehouseman or a
technician on site). Callers must be able to tell "you do not hold this
device" apart from "this device is locked by a transfer" without parsing
message strings.

Every exception:
  1. Has its own class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (item id, current status, ...)

Example:
    try:
        api.issue(actor, item_id, technician_id)
    except TransferInProgressError as e:
        show_banner(f"Item {e.item_id} is waiting for a transfer decision")
    except InvalidStateTransitionError as e:
        show_banner(f"Cannot {e.operation} an item that is {e.current_status}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WarehouseKernelError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- OrderNotFoundError
    |   +-- HistoryNotFoundError
    |   +-- RateDefinitionNotFoundError
    |
    +-- OwnershipViolationError
    +-- InvalidStateTransitionError
    +-- TransferInProgressError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ValidationError
    |   +-- DuplicateSerialNumberError
    |   +-- InsufficientQuantityError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|-----------------------------------------------
ITEM_NOT_FOUND              | Item id / serial absent (or other tenant)
ORDER_NOT_FOUND             | Order id absent (or other tenant)
HISTORY_NOT_FOUND           | No history for a material name
RATE_DEFINITION_NOT_FOUND   | Pricing a code with no rate definition
OWNERSHIP_VIOLATION         | Caller lacks custody or role rights
INVALID_STATE_TRANSITION    | Operation not legal from current status
TRANSFER_IN_PROGRESS        | Item locked by a pending transfer
CONCURRENT_MODIFICATION     | Item changed by another transaction
VALIDATION_ERROR            | Malformed quantity, missing required field
DUPLICATE_SERIAL_NUMBER     | Serial already registered for the tenant
INSUFFICIENT_QUANTITY       | Material lot holds less than requested
IMMUTABILITY_VIOLATION      | Update/delete of an append-only record

===============================================================================
RETRY POLICY
===============================================================================

   - ConcurrentModificationError -> retry once (see warehouse_services)
   - everything else -> terminal for the request, surface to the operator

===============================================================================
"""


class WarehouseKernelError(Exception):
    """
    Base exception for all warehouse kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WAREHOUSE_KERNEL_ERROR"


# Lookup failures


class NotFoundError(WarehouseKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Inventory item with given id or serial was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_ref: str):
        self.item_ref = item_ref
        super().__init__(f"Inventory item not found: {item_ref}")


class OrderNotFoundError(NotFoundError):
    """Order with given id was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class HistoryNotFoundError(NotFoundError):
    """No history exists for the requested material name."""

    code: str = "HISTORY_NOT_FOUND"

    def __init__(self, item_name: str):
        self.item_name = item_name
        super().__init__(f"No history for material: {item_name}")


class RateDefinitionNotFoundError(NotFoundError):
    """A settlement code has no rate definition to price it."""

    code: str = "RATE_DEFINITION_NOT_FOUND"

    def __init__(self, rate_code: str):
        self.rate_code = rate_code
        super().__init__(f"Rate definition not found: {rate_code}")


# Custody failures


class OwnershipViolationError(WarehouseKernelError):
    """Caller does not hold custody rights over the item."""

    code: str = "OWNERSHIP_VIOLATION"

    def __init__(self, item_id: str, actor_id: str, reason: str):
        self.item_id = item_id
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not operate on item {item_id}: {reason}"
        )


class InvalidStateTransitionError(WarehouseKernelError):
    """Requested operation is not legal from the item's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, item_id: str, current_status: str, operation: str):
        self.item_id = item_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} item {item_id} in status {current_status}"
        )


class TransferInProgressError(WarehouseKernelError):
    """Item is locked by a pending transfer."""

    code: str = "TRANSFER_IN_PROGRESS"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} has a pending transfer")


# Concurrency


class ConcurrencyError(WarehouseKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic check failed: the item changed underneath the caller."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Input validation


class ValidationError(WarehouseKernelError):
    """Malformed input (quantity, missing field)."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class DuplicateSerialNumberError(ValidationError):
    """Serial number already registered for the tenant."""

    code: str = "DUPLICATE_SERIAL_NUMBER"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__("serial_number", f"{serial_number} already exists")


class InsufficientQuantityError(ValidationError):
    """Material lot holds less than the requested quantity."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(self, item_id: str, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            "quantity",
            f"requested {requested} from item {item_id}, only {available} on hand",
        )


# Immutability


class ImmutabilityError(WarehouseKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    HistoryEntry rows are immutable from creation; OrderAssignment rows
    may only be closed once; InventoryItem rows are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
