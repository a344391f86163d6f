"""
Module: warehouse_kernel.models.inventory_item
Responsibility: ORM persistence for inventory items (one serialized device or
    one fungible material lot) and their order assignments.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Custody is a discriminated union over status:
        AVAILABLE            -> location_id set, assigned_to_id null
        ASSIGNED             -> assigned_to_id set, location_id null
        ASSIGNED_TO_ORDER    -> exactly one active OrderAssignment, both null
        RETURNED             -> location_id set (awaiting the operator)
        RETURNED_TO_OPERATOR -> no custody (terminal)
      The transition engine is the only writer; custody_is_consistent()
      is the checkable form of the rule.
    - Serial numbers are unique per tenant (uq_inventory_tenant_serial).
    - version is the optimistic-concurrency counter (version_id_col): a
      write against a stale version raises StaleDataError at flush.
    - At most one active OrderAssignment per item (partial unique index
      uq_order_assignment_active on item_id WHERE removed_at IS NULL).
    - OrderAssignment rows are never deleted; removed_at is set once.

Failure modes:
    - IntegrityError on duplicate serial or on a second active assignment.
    - StaleDataError on concurrent modification of the same item.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import Base, TrackedBase, UUIDString


class ItemType(str, Enum):
    """Device (serialized, quantity 1) or material (fungible lot)."""

    DEVICE = "DEVICE"
    MATERIAL = "MATERIAL"


class ItemStatus(str, Enum):
    """Custody status of an inventory item."""

    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    ASSIGNED_TO_ORDER = "ASSIGNED_TO_ORDER"
    RETURNED = "RETURNED"
    RETURNED_TO_OPERATOR = "RETURNED_TO_OPERATOR"


class DeviceCategory(str, Enum):
    """Device classification used by settlement code resolution."""

    MODEM = "MODEM"
    DECODER_1_WAY = "DECODER_1_WAY"
    DECODER_2_WAY = "DECODER_2_WAY"
    ONT = "ONT"
    AMPLIFIER = "AMPLIFIER"
    OTHER = "OTHER"


class InventoryItem(TrackedBase):
    """
    One physical device or one material lot.

    Contract:
        Rows are created by the transition engine (receive, partial issue,
        partial transfer, collect from client) and are never deleted.
        Every status/custody change is paired with exactly one HistoryEntry
        in the same transaction.

    Non-goals:
        - This model does NOT validate transitions; see
          warehouse_kernel.domain.transitions.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("tenant", "serial_number", name="uq_inventory_tenant_serial"),
        Index("idx_inventory_location", "tenant", "location_id"),
        Index("idx_inventory_assigned_to", "tenant", "assigned_to_id"),
        Index("idx_inventory_status", "status"),
        Index("idx_inventory_transfer_pending", "transfer_pending"),
    )

    tenant: Mapped[str] = mapped_column(String(50), nullable=False)

    item_type: Mapped[ItemType] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[DeviceCategory | None] = mapped_column(String(30), nullable=True)

    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Material catalog code
    index: Mapped[str | None] = mapped_column(String(50), nullable=True)

    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[ItemStatus] = mapped_column(
        String(30),
        nullable=False,
        default=ItemStatus.AVAILABLE,
    )

    # Custody
    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assigned_to_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    home_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Transfer lock
    transfer_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    transfer_to_technician_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    transfer_to_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    transfer_requested_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    transfer_requested_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Lot lineage
    split_from_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=True,
    )

    # Devices picked up at a client site
    collected_from_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Last assigned per-item history sequence
    history_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    order_assignments: Mapped[list["OrderAssignment"]] = relationship(
        back_populates="item",
        order_by="OrderAssignment.assigned_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_device(self) -> bool:
        return self.item_type == ItemType.DEVICE

    @property
    def active_assignment(self) -> "OrderAssignment | None":
        """The assignment with removed_at unset, if any."""
        for assignment in self.order_assignments:
            if assignment.removed_at is None:
                return assignment
        return None

    def custody_is_consistent(self) -> bool:
        """Check the custody discriminated union for the current status."""
        has_location = self.location_id is not None
        has_owner = self.assigned_to_id is not None
        has_order = self.active_assignment is not None
        match ItemStatus(self.status):
            case ItemStatus.AVAILABLE | ItemStatus.RETURNED:
                return has_location and not has_owner and not has_order
            case ItemStatus.ASSIGNED:
                return has_owner and not has_location and not has_order
            case ItemStatus.ASSIGNED_TO_ORDER:
                return has_order and not has_location and not has_owner
            case ItemStatus.RETURNED_TO_OPERATOR:
                return not (has_location or has_owner or has_order)

    def __repr__(self) -> str:
        ref = self.serial_number or self.index or self.name
        return f"<InventoryItem {ref} [{self.status}]>"


class OrderAssignment(Base):
    """
    Link between an item and the order it was installed on.

    Contract:
        Append-only.  Created by assign_to_order, closed by remove_from_order
        (removed_at / removed_by_id set once), never deleted.  technician_id
        records who held the item when it was assigned, so removal can
        restore that custody.
    """

    __tablename__ = "order_assignments"

    __table_args__ = (
        Index("idx_order_assignment_order", "order_id"),
        Index(
            "uq_order_assignment_active",
            "item_id",
            unique=True,
            postgresql_where=text("removed_at IS NULL"),
            sqlite_where=text("removed_at IS NULL"),
        ),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    technician_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    assigned_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    removed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    removed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    item: Mapped[InventoryItem] = relationship(back_populates="order_assignments")

    @property
    def is_active(self) -> bool:
        return self.removed_at is None
