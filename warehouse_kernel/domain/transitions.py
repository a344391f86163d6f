"""
Custody state machine -- which operation is legal from which status.

Responsibility:
    Pure legality table for the transition engine and transfer protocol.
    Ownership, transfer locks and persistence are handled by the services;
    this module only answers "may operation X run on an item in status S".

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every ItemStatus is handled by an explicit ``match`` arm; an unknown
      status string is rejected with InvalidStateTransitionError instead of
      falling through to a default.
    - RETURNED_TO_OPERATOR is terminal: no operation is legal from it.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from warehouse_kernel.exceptions import InvalidStateTransitionError
from warehouse_kernel.models.inventory_item import ItemStatus


class Operation(str, Enum):
    ISSUE = "issue"
    RETURN = "return"
    RETURN_TO_OPERATOR = "return_to_operator"
    ASSIGN_TO_ORDER = "assign_to_order"
    REMOVE_FROM_ORDER = "remove_from_order"
    PROPOSE_TECHNICIAN_TRANSFER = "propose_technician_transfer"
    PROPOSE_LOCATION_TRANSFER = "propose_location_transfer"


def allowed_operations(status: ItemStatus) -> frozenset[Operation]:
    """Operations legal from ``status``."""
    match status:
        case ItemStatus.AVAILABLE:
            return frozenset({
                Operation.ISSUE,
                Operation.RETURN_TO_OPERATOR,
                Operation.PROPOSE_LOCATION_TRANSFER,
            })
        case ItemStatus.ASSIGNED:
            return frozenset({
                Operation.RETURN,
                Operation.ASSIGN_TO_ORDER,
                Operation.PROPOSE_TECHNICIAN_TRANSFER,
            })
        case ItemStatus.ASSIGNED_TO_ORDER:
            return frozenset({Operation.REMOVE_FROM_ORDER})
        case ItemStatus.RETURNED:
            # Client-collected devices waiting to go back to the operator
            return frozenset({Operation.RETURN_TO_OPERATOR})
        case ItemStatus.RETURNED_TO_OPERATOR:
            return frozenset()


LEGAL_TRANSITIONS: dict[ItemStatus, frozenset[Operation]] = {
    status: allowed_operations(status) for status in ItemStatus
}


def parse_status(item_id: UUID | str, raw: str | ItemStatus, operation: Operation) -> ItemStatus:
    """Coerce a stored status, rejecting values outside the enum."""
    try:
        return ItemStatus(raw)
    except ValueError:
        raise InvalidStateTransitionError(
            item_id=str(item_id),
            current_status=str(raw),
            operation=operation.value,
        ) from None


def validate_transition(
    item_id: UUID | str,
    status: str | ItemStatus,
    operation: Operation,
) -> ItemStatus:
    """
    Check that ``operation`` is legal from ``status``.

    Returns:
        The parsed current status.

    Raises:
        InvalidStateTransitionError: status unknown or operation not legal.
    """
    current = parse_status(item_id, status, operation)
    if operation not in LEGAL_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            item_id=str(item_id),
            current_status=current.value,
            operation=operation.value,
        )
    return current
