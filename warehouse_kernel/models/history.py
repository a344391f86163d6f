"""
Module: warehouse_kernel.models.history
Responsibility: ORM persistence for the inventory History Ledger -- one
    immutable row per custody transition.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners in
      db/immutability.py, PostgreSQL triggers in db/triggers.py).
    - (item_id, sequence) is unique.  sequence is per item, assigned from
      InventoryItem.history_seq inside the same transaction that changes the
      item, so two writers on one item collide on the item's version check
      and two writers on different items never contend.
    - Chronological order is (action_date, sequence).

Failure modes:
    - ImmutabilityViolationError on any UPDATE or DELETE through the ORM.
    - IntegrityError on a duplicate (item_id, sequence).
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from warehouse_kernel.models.inventory_item import InventoryItem


class HistoryAction(str, Enum):
    """Kind of custody change recorded by a history entry."""

    RECEIVED = "RECEIVED"
    ISSUED = "ISSUED"
    RETURNED = "RETURNED"
    RETURNED_TO_OPERATOR = "RETURNED_TO_OPERATOR"
    RETURNED_TO_TECHNICIAN = "RETURNED_TO_TECHNICIAN"
    TRANSFER = "TRANSFER"
    ASSIGNED_TO_ORDER = "ASSIGNED_TO_ORDER"
    COLLECTED_FROM_CLIENT = "COLLECTED_FROM_CLIENT"


class HistoryEntry(Base):
    """
    Immutable audit record of one custody transition.

    Contract:
        Written only by HistoryLedger.append(), as a side effect of a
        transition engine or transfer protocol operation.

    Guarantees:
        - Never modified after INSERT.
        - sequence strictly increases per item.
    """

    __tablename__ = "inventory_history"

    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_history_item_sequence"),
        Index("idx_history_item_date", "item_id", "action_date", "sequence"),
        Index("idx_history_tenant_date", "tenant", "action_date"),
        Index("idx_history_related_item", "related_item_id"),
        Index("idx_history_action", "action"),
    )

    tenant: Mapped[str] = mapped_column(String(50), nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[HistoryAction] = mapped_column(String(30), nullable=False)

    action_date: Mapped[datetime] = mapped_column(nullable=False)

    performed_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    assigned_to_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assigned_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    from_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    to_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Other lot involved in a split (source of an issued/transferred packet)
    related_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Orders the flush so the item row is written before its entries
    item: Mapped["InventoryItem"] = relationship()

    def __repr__(self) -> str:
        return f"<HistoryEntry {self.item_id}#{self.sequence} {self.action}>"
