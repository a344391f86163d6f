"""
HistoryLedger -- the append side of the History Ledger.

Responsibility:
    Create exactly one HistoryEntry per custody transition, stamped with the
    injected clock and the next per-item sequence number.

Architecture position:
    Kernel > Services.  Called only by TransitionEngine and TransferService,
    inside the same transaction as the item change it records.

Invariants enforced:
    - Pure insert: entries are never updated or deleted (see
      db/immutability.py).
    - The per-item sequence comes from InventoryItem.history_seq, which is
      bumped on the item being changed.  The item's version check at flush
      therefore also guards the sequence, and appends on different items
      never contend.

Failure modes:
    - Storage errors only; validation happens in the calling service.
"""

from uuid import UUID

from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.history import HistoryAction, HistoryEntry
from warehouse_kernel.models.inventory_item import InventoryItem
from warehouse_kernel.services.base import BaseService

logger = get_logger("services.history_ledger")


class HistoryLedger(BaseService):
    """Appends history entries; reading is done by HistorySelector."""

    def append(
        self,
        item: InventoryItem,
        action: HistoryAction,
        performed_by_id: UUID,
        *,
        assigned_to_id: UUID | None = None,
        assigned_order_id: UUID | None = None,
        from_location_id: UUID | None = None,
        to_location_id: UUID | None = None,
        quantity: int | None = None,
        notes: str | None = None,
        related_item_id: UUID | None = None,
    ) -> HistoryEntry:
        """
        Record one transition of ``item``.

        The entry is added to the session; the caller's flush writes it
        together with the item change.
        """
        item.history_seq = (item.history_seq or 0) + 1
        entry = HistoryEntry(
            tenant=item.tenant,
            item_id=item.id,
            sequence=item.history_seq,
            action=action,
            action_date=self.clock.now_utc(),
            performed_by_id=performed_by_id,
            assigned_to_id=assigned_to_id,
            assigned_order_id=assigned_order_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=quantity,
            notes=notes,
            related_item_id=related_item_id,
        )
        self.session.add(entry)

        logger.debug(
            "history_appended",
            extra={
                "item_id": str(item.id),
                "action": action.value,
                "sequence": entry.sequence,
            },
        )
        return entry
