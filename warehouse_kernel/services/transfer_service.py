"""
TransferService -- two-party custody handoff.

Responsibility:
    Propose, accept, reject, cancel and expire transfers between technicians
    (ASSIGNED -> ASSIGNED) or between warehouse locations
    (AVAILABLE -> AVAILABLE).

Architecture position:
    Kernel > Services.  Built on the same checks as TransitionEngine; the
    pending flag on InventoryItem is the lock every other operation honours.

Invariants enforced:
    - At most one pending transfer per item.  While pending, every other
      custody operation fails with TransferInProgressError.
    - Proposing never changes custody.  A split packet gets a RECEIVED
      entry linked to its source lot when it is created.  Accepting
      changes custody and writes exactly one TRANSFER entry.  Rejecting,
      cancelling and expiring write no history and leave custody unchanged.
    - Resolving an already resolved transfer fails with
      InvalidStateTransitionError, so a double accept can never produce a
      second TRANSFER row.
    - A partial material quantity is split off as its own packet lot before
      locking, so the remainder of the lot stays usable.
    - An accepted location transfer also moves the item's home location,
      the default return target.

Failure modes:
    - ItemNotFoundError, TransferInProgressError, OwnershipViolationError,
      InvalidStateTransitionError, ValidationError,
      ConcurrentModificationError.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from sqlalchemy import select

from warehouse_kernel.domain.actor import Actor
from warehouse_kernel.domain.dtos import ItemSnapshot
from warehouse_kernel.domain.transitions import Operation, validate_transition
from warehouse_kernel.exceptions import (
    InvalidStateTransitionError,
    OwnershipViolationError,
    ValidationError,
)
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.history import HistoryAction
from warehouse_kernel.models.inventory_item import InventoryItem, ItemStatus
from warehouse_kernel.selectors.inventory_selector import InventorySelector
from warehouse_kernel.services.base import BaseService
from warehouse_kernel.services.history_ledger import HistoryLedger
from warehouse_kernel.services.lots import take_quantity
from warehouse_kernel.services.transition_engine import (
    check_not_locked,
    check_ownership,
)

logger = get_logger("services.transfer_service")


def _clear_transfer(item: InventoryItem) -> None:
    item.transfer_pending = False
    item.transfer_to_technician_id = None
    item.transfer_to_location_id = None
    item.transfer_requested_by_id = None
    item.transfer_requested_at = None


def _require_pending(item: InventoryItem, operation: str) -> None:
    if not item.transfer_pending:
        raise InvalidStateTransitionError(
            item_id=str(item.id),
            current_status=ItemStatus(item.status).value,
            operation=operation,
        )


def _is_counterparty(actor: Actor, item: InventoryItem) -> bool:
    if item.transfer_to_technician_id is not None:
        return actor.id == item.transfer_to_technician_id
    return actor.manages_location(item.transfer_to_location_id)


class TransferService(BaseService):
    """Transfer Protocol on top of the custody state machine."""

    def _load(self, actor: Actor, item_id: UUID) -> InventoryItem:
        return InventorySelector(self.session, actor.tenant).load(item_id)

    def propose_transfer(
        self,
        actor: Actor,
        item_id: UUID,
        *,
        to_technician_id: UUID | None = None,
        to_location_id: UUID | None = None,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        """
        Lock an item for handoff to a technician or a location.

        Exactly one of ``to_technician_id`` / ``to_location_id`` is given.
        Returns the locked item, which is a new packet lot when only part of
        a material lot is transferred.
        """
        if (to_technician_id is None) == (to_location_id is None):
            raise ValidationError(
                "target", "exactly one of to_technician_id, to_location_id is required"
            )

        item = self._load(actor, item_id)
        check_not_locked(item)

        if to_technician_id is not None:
            check_ownership(actor, item)
            validate_transition(item.id, item.status, Operation.PROPOSE_TECHNICIAN_TRANSFER)
            if item.assigned_to_id == to_technician_id:
                raise ValidationError("to_technician_id", "item is already held by this technician")
        else:
            actor.require_privileged(item.id, "location transfer")
            validate_transition(item.id, item.status, Operation.PROPOSE_LOCATION_TRANSFER)
            if item.location_id == to_location_id:
                raise ValidationError("to_location_id", "destination equals the current location")

        moving, source_id = take_quantity(self.session, item, quantity, actor.id)
        if source_id is not None:
            # The packet is a new lot; it starts its own history here.
            HistoryLedger(self.session, self.clock).append(
                moving,
                HistoryAction.RECEIVED,
                actor.id,
                assigned_to_id=moving.assigned_to_id,
                to_location_id=moving.location_id,
                quantity=moving.quantity,
                notes="split for transfer",
                related_item_id=source_id,
            )
        moving.transfer_pending = True
        moving.transfer_to_technician_id = to_technician_id
        moving.transfer_to_location_id = to_location_id
        moving.transfer_requested_by_id = actor.id
        moving.transfer_requested_at = self.clock.now_utc()
        moving.updated_by_id = actor.id
        self._flush("InventoryItem", item.id)

        logger.info(
            "transfer_proposed",
            extra={
                "item_id": str(moving.id),
                "source_item_id": str(source_id) if source_id else None,
                "to_technician_id": str(to_technician_id) if to_technician_id else None,
                "to_location_id": str(to_location_id) if to_location_id else None,
                "quantity": moving.quantity,
            },
        )
        return ItemSnapshot.from_model(moving)

    def accept_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        """Hand custody to the proposed counterparty and record TRANSFER."""
        item = self._load(actor, item_id)
        _require_pending(item, "accept_transfer")
        if not _is_counterparty(actor, item):
            raise OwnershipViolationError(
                item_id=str(item.id),
                actor_id=str(actor.id),
                reason="only the proposed recipient may accept a transfer",
            )

        sender_id = item.transfer_requested_by_id or actor.id
        ledger = HistoryLedger(self.session, self.clock)
        if item.transfer_to_technician_id is not None:
            previous_owner = item.assigned_to_id
            receiver = item.transfer_to_technician_id
            item.assigned_to_id = receiver
            item.status = ItemStatus.ASSIGNED
            ledger.append(
                item,
                HistoryAction.TRANSFER,
                sender_id,
                assigned_to_id=receiver,
                quantity=None if item.is_device else item.quantity,
                notes=f"from technician {previous_owner}",
                related_item_id=item.split_from_id,
            )
        else:
            from_location = item.location_id
            to_location = item.transfer_to_location_id
            item.location_id = to_location
            item.home_location_id = to_location
            ledger.append(
                item,
                HistoryAction.TRANSFER,
                sender_id,
                from_location_id=from_location,
                to_location_id=to_location,
                quantity=None if item.is_device else item.quantity,
                related_item_id=item.split_from_id,
            )
        _clear_transfer(item)
        item.updated_by_id = actor.id
        self._flush("InventoryItem", item.id)

        logger.info(
            "transfer_accepted",
            extra={"item_id": str(item.id), "sender_id": str(sender_id)},
        )
        return ItemSnapshot.from_model(item)

    def reject_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        """Recipient declines.  Custody unchanged, no history entry."""
        item = self._load(actor, item_id)
        _require_pending(item, "reject_transfer")
        if not (actor.is_privileged or _is_counterparty(actor, item)):
            raise OwnershipViolationError(
                item_id=str(item.id),
                actor_id=str(actor.id),
                reason="only the proposed recipient may reject a transfer",
            )
        _clear_transfer(item)
        item.updated_by_id = actor.id
        self._flush("InventoryItem", item.id)

        logger.info("transfer_rejected", extra={"item_id": str(item.id)})
        return ItemSnapshot.from_model(item)

    def cancel_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        """Sender withdraws a pending proposal.  Same effects as reject."""
        item = self._load(actor, item_id)
        _require_pending(item, "cancel_transfer")
        if not (actor.is_privileged or actor.id == item.transfer_requested_by_id):
            raise OwnershipViolationError(
                item_id=str(item.id),
                actor_id=str(actor.id),
                reason="only the sender may cancel a transfer",
            )
        _clear_transfer(item)
        item.updated_by_id = actor.id
        self._flush("InventoryItem", item.id)

        logger.info("transfer_cancelled", extra={"item_id": str(item.id)})
        return ItemSnapshot.from_model(item)

    def expire_stale_transfers(self, tenant: str, ttl: timedelta) -> list[UUID]:
        """
        Auto-reject transfers proposed more than ``ttl`` ago.

        Returns:
            Ids of the items whose pending transfer was cleared, oldest first.
        """
        cutoff = self.clock.now_utc() - ttl
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.tenant == tenant,
                InventoryItem.transfer_pending.is_(True),
                InventoryItem.transfer_requested_at <= cutoff,
            )
            .order_by(InventoryItem.transfer_requested_at, InventoryItem.id)
        )
        expired: list[UUID] = []
        for item in self.session.execute(stmt).scalars():
            requested_at = item.transfer_requested_at
            _clear_transfer(item)
            expired.append(item.id)
            logger.info(
                "transfer_expired",
                extra={
                    "item_id": str(item.id),
                    "requested_at": requested_at.isoformat() if requested_at else None,
                    "ttl_seconds": int(ttl.total_seconds()),
                },
            )
        if expired:
            self._flush("InventoryItem", expired[0])
        return expired
