"""
Warehouse Kernel

Custody tracking core for field-service inventory:
- Inventory store with a discriminated custody state
- Append-only history ledger
- Validated state transitions with optimistic concurrency
- Two-phase transfers between technicians and locations
"""

__version__ = "0.1.0"
