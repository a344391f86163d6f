"""
warehouse_services -- the external interface of the warehouse.

Usage:
    from warehouse_services import InventoryAPI

    api = InventoryAPI.from_config()
    snapshot = api.issue(actor, item_id, technician_id)
"""

from warehouse_services.inventory_api import InventoryAPI

__all__ = ["InventoryAPI"]
