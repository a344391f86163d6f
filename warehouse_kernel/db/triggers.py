"""
Module: warehouse_kernel.db.triggers
Responsibility: Installing and removing PostgreSQL immutability triggers
    (Layer 2 of 2).  The database-level complement to the ORM listeners in
    db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/, domain/, or outer layers.

Invariants enforced:
    - inventory_history rows: no UPDATE, no DELETE.
    - order_assignments rows: no DELETE; UPDATE only closes an active row.
    - inventory_items rows: no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any violation (surfaced by SQLAlchemy as
      InternalError / DBAPIError).
    - Callers must only invoke these on a PostgreSQL engine.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from warehouse_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

_INSTALL_SQL = [
    """
    CREATE OR REPLACE FUNCTION wh_block_history_mutation() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: inventory_history row % is append-only', OLD.id;
    END;
    $$ LANGUAGE plpgsql;
    """,
    """
    CREATE OR REPLACE TRIGGER trg_history_immutability_update
        BEFORE UPDATE ON inventory_history
        FOR EACH ROW EXECUTE FUNCTION wh_block_history_mutation();
    """,
    """
    CREATE OR REPLACE TRIGGER trg_history_immutability_delete
        BEFORE DELETE ON inventory_history
        FOR EACH ROW EXECUTE FUNCTION wh_block_history_mutation();
    """,
    """
    CREATE OR REPLACE FUNCTION wh_check_assignment_update() RETURNS trigger AS $$
    BEGIN
        IF OLD.removed_at IS NOT NULL THEN
            RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: order_assignment % already closed', OLD.id;
        END IF;
        IF NEW.item_id IS DISTINCT FROM OLD.item_id
           OR NEW.order_id IS DISTINCT FROM OLD.order_id
           OR NEW.technician_id IS DISTINCT FROM OLD.technician_id
           OR NEW.location_id IS DISTINCT FROM OLD.location_id
           OR NEW.assigned_at IS DISTINCT FROM OLD.assigned_at
           OR NEW.assigned_by_id IS DISTINCT FROM OLD.assigned_by_id THEN
            RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: order_assignment % may only be closed', OLD.id;
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;
    """,
    """
    CREATE OR REPLACE TRIGGER trg_order_assignment_update
        BEFORE UPDATE ON order_assignments
        FOR EACH ROW EXECUTE FUNCTION wh_check_assignment_update();
    """,
    """
    CREATE OR REPLACE FUNCTION wh_block_delete() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: % row % may not be deleted', TG_TABLE_NAME, OLD.id;
    END;
    $$ LANGUAGE plpgsql;
    """,
    """
    CREATE OR REPLACE TRIGGER trg_order_assignment_delete
        BEFORE DELETE ON order_assignments
        FOR EACH ROW EXECUTE FUNCTION wh_block_delete();
    """,
    """
    CREATE OR REPLACE TRIGGER trg_inventory_item_delete
        BEFORE DELETE ON inventory_items
        FOR EACH ROW EXECUTE FUNCTION wh_block_delete();
    """,
]

_DROP_SQL = [
    # CASCADE drops the dependent triggers
    "DROP FUNCTION IF EXISTS wh_block_history_mutation() CASCADE",
    "DROP FUNCTION IF EXISTS wh_check_assignment_update() CASCADE",
    "DROP FUNCTION IF EXISTS wh_block_delete() CASCADE",
]

ALL_TRIGGER_NAMES = [
    "trg_history_immutability_update",
    "trg_history_immutability_delete",
    "trg_order_assignment_update",
    "trg_order_assignment_delete",
    "trg_inventory_item_delete",
]


def install_immutability_triggers(engine: Engine) -> None:
    """Install all triggers in one transaction (PostgreSQL 14+)."""
    with engine.begin() as conn:
        for statement in _INSTALL_SQL:
            conn.execute(text(statement))
    logger.info(
        "immutability_triggers_installed",
        extra={"trigger_count": len(ALL_TRIGGER_NAMES)},
    )


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Drop all triggers and their functions.  Tables may not exist yet."""
    with engine.begin() as conn:
        for statement in _DROP_SQL:
            conn.execute(text(statement))


def triggers_installed(engine: Engine) -> bool:
    """Check that every expected trigger exists."""
    with engine.connect() as conn:
        rows = conn.execute(
            text(
                "SELECT tgname FROM pg_trigger "
                "WHERE NOT tgisinternal AND tgname = ANY(:names)"
            ),
            {"names": ALL_TRIGGER_NAMES},
        ).scalars().all()
    return set(rows) == set(ALL_TRIGGER_NAMES)
