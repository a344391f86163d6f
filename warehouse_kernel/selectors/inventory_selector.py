"""
Module: warehouse_kernel.selectors.inventory_selector
Responsibility: Inventory Store read side -- look up items by id or serial
    and list stock by custody holder.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No raw status mutation is exposed here or anywhere else; all writes go
      through TransitionEngine / TransferService.
    - Items of another tenant raise ItemNotFoundError exactly like missing
      items.

Failure modes:
    - ItemNotFoundError for unknown ids/serials.
"""

from uuid import UUID

from sqlalchemy import or_, select

from warehouse_kernel.domain.dtos import ItemSnapshot
from warehouse_kernel.exceptions import ItemNotFoundError
from warehouse_kernel.models.inventory_item import (
    InventoryItem,
    ItemStatus,
    OrderAssignment,
)
from warehouse_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector):
    """Read access to inventory items."""

    def load(self, item_id: UUID) -> InventoryItem:
        """
        Load the ORM row for a service that is about to mutate it.

        Raises:
            ItemNotFoundError: item missing or owned by another tenant.
        """
        item = self.session.get(InventoryItem, item_id)
        if item is None or item.tenant != self.tenant:
            raise ItemNotFoundError(str(item_id))
        return item

    def get(self, item_id: UUID) -> ItemSnapshot:
        return ItemSnapshot.from_model(self.load(item_id))

    def get_by_serial(self, serial_number: str) -> ItemSnapshot:
        stmt = select(InventoryItem).where(
            InventoryItem.tenant == self.tenant,
            InventoryItem.serial_number == serial_number.strip(),
        )
        item = self.session.execute(stmt).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(serial_number)
        return ItemSnapshot.from_model(item)

    def find_by_serial(self, serial_number: str) -> ItemSnapshot | None:
        stmt = select(InventoryItem).where(
            InventoryItem.tenant == self.tenant,
            InventoryItem.serial_number == serial_number.strip(),
        )
        item = self.session.execute(stmt).scalar_one_or_none()
        return ItemSnapshot.from_model(item) if item else None

    def list_by_location(self, location_id: UUID) -> list[ItemSnapshot]:
        """Items held at a warehouse location (AVAILABLE or RETURNED)."""
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.tenant == self.tenant,
                InventoryItem.location_id == location_id,
                InventoryItem.status.in_([ItemStatus.AVAILABLE, ItemStatus.RETURNED]),
            )
            .order_by(InventoryItem.name, InventoryItem.serial_number, InventoryItem.id)
        )
        return [ItemSnapshot.from_model(i) for i in self.session.execute(stmt).scalars()]

    def list_by_technician(self, technician_id: UUID) -> list[ItemSnapshot]:
        """Items in a technician's personal stock (ASSIGNED)."""
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.tenant == self.tenant,
                InventoryItem.assigned_to_id == technician_id,
                InventoryItem.status == ItemStatus.ASSIGNED,
            )
            .order_by(InventoryItem.name, InventoryItem.serial_number, InventoryItem.id)
        )
        return [ItemSnapshot.from_model(i) for i in self.session.execute(stmt).scalars()]

    def list_by_order(self, order_id: UUID) -> list[ItemSnapshot]:
        """Items with an active assignment to the order."""
        stmt = (
            select(InventoryItem)
            .join(OrderAssignment, OrderAssignment.item_id == InventoryItem.id)
            .where(
                InventoryItem.tenant == self.tenant,
                OrderAssignment.order_id == order_id,
                OrderAssignment.removed_at.is_(None),
            )
            .order_by(InventoryItem.name, InventoryItem.id)
        )
        return [ItemSnapshot.from_model(i) for i in self.session.execute(stmt).scalars()]

    def incoming_transfers(
        self,
        technician_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> list[ItemSnapshot]:
        """Items with a pending transfer addressed to a technician or location."""
        if technician_id is None and location_id is None:
            return []
        targets = []
        if technician_id is not None:
            targets.append(InventoryItem.transfer_to_technician_id == technician_id)
        if location_id is not None:
            targets.append(InventoryItem.transfer_to_location_id == location_id)
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.tenant == self.tenant,
                InventoryItem.transfer_pending.is_(True),
                or_(*targets),
            )
            .order_by(InventoryItem.transfer_requested_at, InventoryItem.id)
        )
        return [ItemSnapshot.from_model(i) for i in self.session.execute(stmt).scalars()]
