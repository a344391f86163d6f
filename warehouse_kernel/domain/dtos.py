"""
Immutable DTOs returned across the kernel boundary.

Selectors and services convert ORM rows into these frozen dataclasses so
callers never hold a live ORM object outside its session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from warehouse_kernel.models.history import HistoryAction, HistoryEntry
from warehouse_kernel.models.inventory_item import (
    InventoryItem,
    ItemStatus,
    ItemType,
    OrderAssignment,
)


@dataclass(frozen=True)
class OrderAssignmentInfo:
    order_id: UUID
    technician_id: UUID | None
    location_id: UUID | None
    assigned_at: datetime
    removed_at: datetime | None

    @property
    def is_active(self) -> bool:
        return self.removed_at is None

    @classmethod
    def from_model(cls, assignment: OrderAssignment) -> OrderAssignmentInfo:
        return cls(
            order_id=assignment.order_id,
            technician_id=assignment.technician_id,
            location_id=assignment.location_id,
            assigned_at=assignment.assigned_at,
            removed_at=assignment.removed_at,
        )


@dataclass(frozen=True)
class ItemSnapshot:
    """Point-in-time view of an inventory item and its custody."""

    id: UUID
    tenant: str
    item_type: ItemType
    name: str
    category: str | None
    serial_number: str | None
    index: str | None
    unit: str | None
    quantity: int
    price: Decimal
    status: ItemStatus
    location_id: UUID | None
    assigned_to_id: UUID | None
    home_location_id: UUID | None
    transfer_pending: bool
    transfer_to_technician_id: UUID | None
    transfer_to_location_id: UUID | None
    transfer_requested_by_id: UUID | None
    split_from_id: UUID | None
    collected_from_client: bool
    version: int
    order_assignments: tuple[OrderAssignmentInfo, ...]

    @property
    def active_order_id(self) -> UUID | None:
        for assignment in self.order_assignments:
            if assignment.is_active:
                return assignment.order_id
        return None

    @classmethod
    def from_model(cls, item: InventoryItem) -> ItemSnapshot:
        return cls(
            id=item.id,
            tenant=item.tenant,
            item_type=ItemType(item.item_type),
            name=item.name,
            category=item.category,
            serial_number=item.serial_number,
            index=item.index,
            unit=item.unit,
            quantity=item.quantity,
            price=item.price,
            status=ItemStatus(item.status),
            location_id=item.location_id,
            assigned_to_id=item.assigned_to_id,
            home_location_id=item.home_location_id,
            transfer_pending=item.transfer_pending,
            transfer_to_technician_id=item.transfer_to_technician_id,
            transfer_to_location_id=item.transfer_to_location_id,
            transfer_requested_by_id=item.transfer_requested_by_id,
            split_from_id=item.split_from_id,
            collected_from_client=item.collected_from_client,
            version=item.version,
            order_assignments=tuple(
                OrderAssignmentInfo.from_model(a) for a in item.order_assignments
            ),
        )


@dataclass(frozen=True)
class HistoryRecord:
    """One row of the History Ledger."""

    id: UUID
    item_id: UUID
    sequence: int
    action: HistoryAction
    action_date: datetime
    performed_by_id: UUID
    assigned_to_id: UUID | None
    assigned_order_id: UUID | None
    from_location_id: UUID | None
    to_location_id: UUID | None
    quantity: int | None
    notes: str | None
    related_item_id: UUID | None

    @classmethod
    def from_model(cls, entry: HistoryEntry) -> HistoryRecord:
        return cls(
            id=entry.id,
            item_id=entry.item_id,
            sequence=entry.sequence,
            action=HistoryAction(entry.action),
            action_date=entry.action_date,
            performed_by_id=entry.performed_by_id,
            assigned_to_id=entry.assigned_to_id,
            assigned_order_id=entry.assigned_order_id,
            from_location_id=entry.from_location_id,
            to_location_id=entry.to_location_id,
            quantity=entry.quantity,
            notes=entry.notes,
            related_item_id=entry.related_item_id,
        )


@dataclass(frozen=True)
class HistoryFilter:
    """Optional narrowing for history queries.  Empty filter = everything."""

    actions: frozenset[HistoryAction] = frozenset()
    performed_by_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass(frozen=True)
class HistoryPage:
    records: tuple[HistoryRecord, ...]
    total: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class SettlementLine:
    code: str
    quantity: int
    amount: Decimal | None = None


@dataclass(frozen=True)
class SettlementResult:
    """Settlement persisted for an order; empty unless the order is COMPLETED."""

    order_id: UUID
    lines: tuple[SettlementLine, ...]
    total: Decimal

    @property
    def pairs(self) -> list[tuple[str, int]]:
        return [(line.code, line.quantity) for line in self.lines]


@dataclass(frozen=True)
class RateInfo:
    code: str
    amount: Decimal
