"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Custody history must reconstruct where every device has been.  A single
edited or deleted history row breaks that reconstruction, so the ledger is
append-only.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | Rule
-----------------|-----------------------------------------------------------
HistoryEntry     | No UPDATE, no DELETE, ever
OrderAssignment  | No DELETE; UPDATE may only set removed_at/removed_by_id,
                 | and only while removed_at is still unset
InventoryItem    | No DELETE (items leave custody via RETURNED_TO_OPERATOR)

===============================================================================
USAGE
===============================================================================

    init_engine_from_url() calls register_immutability_listeners(); code
    that builds its own engine calls it once at startup.

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from warehouse_kernel.exceptions import ImmutabilityViolationError
from warehouse_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_ASSIGNMENT_CLOSING_FIELDS = frozenset({"removed_at", "removed_by_id"})


def _block(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_history_entry_update(mapper, connection, target):
    """History entries are immutable from creation."""
    _block("HistoryEntry", target.id, "UPDATE", "history entries are append-only")


def _check_history_entry_delete(mapper, connection, target):
    _block("HistoryEntry", target.id, "DELETE", "history entries are append-only")


def _check_order_assignment_update(mapper, connection, target):
    """
    Allow exactly one closing update on an OrderAssignment.

    The closing update sets removed_at (and removed_by_id) on an active
    assignment.  Any other field change, or re-closing an assignment that
    was already closed, is blocked.
    """
    state = inspect(target)
    changed = {
        attr.key
        for attr in state.attrs
        if attr.key in mapper.column_attrs and attr.history.has_changes()
    }
    illegal = changed - _ASSIGNMENT_CLOSING_FIELDS
    if illegal:
        _block(
            "OrderAssignment",
            target.id,
            "UPDATE",
            f"fields are immutable: {', '.join(sorted(illegal))}",
        )

    removed_history = get_history(target, "removed_at")
    if removed_history.deleted and removed_history.deleted[0] is not None:
        _block("OrderAssignment", target.id, "UPDATE", "assignment already closed")


def _check_order_assignment_delete(mapper, connection, target):
    _block("OrderAssignment", target.id, "DELETE", "assignments are never deleted")


def _check_inventory_item_delete(mapper, connection, target):
    _block("InventoryItem", target.id, "DELETE", "inventory items are never deleted")


_LISTENERS: list[tuple[str, str, object]] = [
    ("HistoryEntry", "before_update", _check_history_entry_update),
    ("HistoryEntry", "before_delete", _check_history_entry_delete),
    ("OrderAssignment", "before_update", _check_order_assignment_update),
    ("OrderAssignment", "before_delete", _check_order_assignment_delete),
    ("InventoryItem", "before_delete", _check_inventory_item_delete),
]


def _models() -> dict:
    from warehouse_kernel.models.history import HistoryEntry
    from warehouse_kernel.models.inventory_item import InventoryItem, OrderAssignment

    return {
        "HistoryEntry": HistoryEntry,
        "OrderAssignment": OrderAssignment,
        "InventoryItem": InventoryItem,
    }


def register_immutability_listeners():
    """
    Register all ORM listeners.  Safe to call more than once.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        model = models[model_name]
        if not event.contains(model, event_name, fn):
            event.listen(model, event_name, fn)

    logger.info(
        "immutability_listeners_registered",
        extra={"listener_count": len(_LISTENERS)},
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove all ORM listeners.  TESTS ONLY.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        _safe_remove_listener(models[model_name], event_name, fn)
