"""ORM models for the warehouse kernel."""

from warehouse_kernel.models.history import HistoryAction, HistoryEntry
from warehouse_kernel.models.inventory_item import (
    DeviceCategory,
    InventoryItem,
    ItemStatus,
    ItemType,
    OrderAssignment,
)
from warehouse_kernel.models.order import (
    Order,
    OrderService,
    OrderStatus,
    OrderType,
    RateDefinition,
    ServiceType,
    SettlementEntry,
)

__all__ = [
    "DeviceCategory",
    "HistoryAction",
    "HistoryEntry",
    "InventoryItem",
    "ItemStatus",
    "ItemType",
    "Order",
    "OrderAssignment",
    "OrderService",
    "OrderStatus",
    "OrderType",
    "RateDefinition",
    "ServiceType",
    "SettlementEntry",
]
