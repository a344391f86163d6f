"""
warehouse_services.inventory_api -- External interface of the warehouse.

Responsibility:
    One method per query or mutation.  Each call opens its own transaction
    (``session_scope``), wires the kernel services for it, binds the log
    context, and returns frozen DTOs only.  ORM objects never leave this
    module.

Architecture position:
    Services -- top of the stack.  Constructs TransitionEngine,
    TransferService, SettlementService and the selectors per call; reads
    configuration through ``warehouse_config.get_active_config()``.

Invariants enforced:
    - Transaction per call: the item change and its history entry commit
      together or not at all.
    - A ConcurrentModificationError is retried exactly once in a fresh
      transaction, so the retry re-validates against the winner's state.
      A second conflict propagates.
    - Every call carries the actor's tenant; nothing is shared across
      tenants.

Failure modes:
    - Every WarehouseKernelError subclass propagates unchanged.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from warehouse_config import WarehouseConfig, get_active_config
from warehouse_config.bridges import build_pattern_table, transfer_ttl
from warehouse_engines.rate_codes import DEFAULT_PATTERN_TABLE
from warehouse_kernel.db.engine import session_scope
from warehouse_kernel.domain.actor import Actor
from warehouse_kernel.domain.clock import Clock, SystemClock
from warehouse_kernel.domain.dtos import (
    HistoryFilter,
    HistoryPage,
    HistoryRecord,
    ItemSnapshot,
    SettlementResult,
)
from warehouse_kernel.exceptions import ConcurrentModificationError, ValidationError
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.inventory_item import DeviceCategory, ItemType
from warehouse_kernel.selectors.history_selector import HistorySelector
from warehouse_kernel.selectors.inventory_selector import InventorySelector
from warehouse_kernel.services.settlement_service import SettlementService
from warehouse_kernel.services.transfer_service import TransferService
from warehouse_kernel.services.transition_engine import TransitionEngine

logger = get_logger("services.inventory_api")

T = TypeVar("T")

_DEFAULT_TRANSFER_TTL = timedelta(hours=72)


class InventoryAPI:
    """Facade over the warehouse kernel.

    Contract:
        Receives an optional session factory, clock and configuration.
        Every public method takes the acting ``Actor`` first.

    Non-goals:
        - Does NOT authenticate; the caller supplies a trusted Actor.
        - Does NOT cache anything between calls.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        config: WarehouseConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config
        if config is not None:
            self._patterns = build_pattern_table(config)
            self._transfer_ttl = transfer_ttl(config)
        else:
            self._patterns = DEFAULT_PATTERN_TABLE
            self._transfer_ttl = _DEFAULT_TRANSFER_TTL

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ) -> "InventoryAPI":
        """Build an API bound to ``get_active_config()``."""
        return cls(session_factory, clock, get_active_config())

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(self, actor: Actor, operation: str, work: Callable[[Session], T]) -> T:
        """Run ``work`` in one transaction, retrying a lost race once."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.id),
            tenant=actor.tenant,
        ):
            retried = False
            while True:
                try:
                    with session_scope(self._session_factory) as session:
                        return work(session)
                except ConcurrentModificationError:
                    if retried:
                        raise
                    retried = True
                    logger.warning(
                        "concurrent_modification_retry",
                        extra={"operation": operation},
                    )

    def _engine(self, session: Session) -> TransitionEngine:
        return TransitionEngine(session, self._clock)

    def _transfers(self, session: Session) -> TransferService:
        return TransferService(session, self._clock)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_item(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        return self._run(
            actor, "get_item",
            lambda s: InventorySelector(s, actor.tenant).get(item_id),
        )

    def get_item_by_serial(self, actor: Actor, serial_number: str) -> ItemSnapshot:
        return self._run(
            actor, "get_item_by_serial",
            lambda s: InventorySelector(s, actor.tenant).get_by_serial(serial_number),
        )

    def list_stock(
        self,
        actor: Actor,
        *,
        location_id: UUID | None = None,
        technician_id: UUID | None = None,
    ) -> list[ItemSnapshot]:
        """Stock of one warehouse location or one technician."""
        if (location_id is None) == (technician_id is None):
            raise ValidationError("target", "exactly one of location_id, technician_id is required")

        def work(session: Session) -> list[ItemSnapshot]:
            selector = InventorySelector(session, actor.tenant)
            if location_id is not None:
                return selector.list_by_location(location_id)
            return selector.list_by_technician(technician_id)

        return self._run(actor, "list_stock", work)

    def list_order_equipment(self, actor: Actor, order_id: UUID) -> list[ItemSnapshot]:
        return self._run(
            actor, "list_order_equipment",
            lambda s: InventorySelector(s, actor.tenant).list_by_order(order_id),
        )

    def get_history(
        self,
        actor: Actor,
        *,
        item_id: UUID | None = None,
        item_name: str | None = None,
        history_filter: HistoryFilter | None = None,
        technician_id: UUID | None = None,
    ) -> list[HistoryRecord]:
        """History of one item, or of every material lot sharing a name."""
        if (item_id is None) == (item_name is None):
            raise ValidationError("target", "exactly one of item_id, item_name is required")

        def work(session: Session) -> list[HistoryRecord]:
            selector = HistorySelector(session, actor.tenant)
            if item_id is not None:
                InventorySelector(session, actor.tenant).load(item_id)
                return selector.query_by_item(item_id, history_filter, technician_id)
            return selector.query_by_name(item_name, history_filter)

        return self._run(actor, "get_history", work)

    def warehouse_history(
        self,
        actor: Actor,
        page: int = 1,
        page_size: int = 50,
        history_filter: HistoryFilter | None = None,
    ) -> HistoryPage:
        return self._run(
            actor, "warehouse_history",
            lambda s: HistorySelector(s, actor.tenant).warehouse_history(
                page, page_size, history_filter
            ),
        )

    def incoming_transfers(
        self,
        actor: Actor,
        *,
        technician_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> list[ItemSnapshot]:
        """Pending transfers addressed to a technician (default: the actor)."""
        if technician_id is None and location_id is None:
            technician_id = actor.id
        return self._run(
            actor, "incoming_transfers",
            lambda s: InventorySelector(s, actor.tenant).incoming_transfers(
                technician_id, location_id
            ),
        )

    # ------------------------------------------------------------------
    # Custody mutations
    # ------------------------------------------------------------------

    def receive(
        self,
        actor: Actor,
        *,
        item_type: ItemType,
        name: str,
        location_id: UUID,
        serial_number: str | None = None,
        category: DeviceCategory | str | None = None,
        index: str | None = None,
        unit: str | None = None,
        quantity: int = 1,
        price: Decimal = Decimal("0"),
        notes: str | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "receive",
            lambda s: self._engine(s).receive(
                actor,
                item_type=item_type,
                name=name,
                location_id=location_id,
                serial_number=serial_number,
                category=category,
                index=index,
                unit=unit,
                quantity=quantity,
                price=price,
                notes=notes,
            ),
        )

    def issue(
        self,
        actor: Actor,
        item_id: UUID,
        technician_id: UUID,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "issue",
            lambda s: self._engine(s).issue(actor, item_id, technician_id, quantity),
        )

    def return_item(
        self,
        actor: Actor,
        item_id: UUID,
        location_id: UUID | None = None,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "return_item",
            lambda s: self._engine(s).return_item(actor, item_id, location_id, quantity),
        )

    def return_to_operator(
        self,
        actor: Actor,
        item_id: UUID,
        quantity: int | None = None,
        notes: str | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "return_to_operator",
            lambda s: self._engine(s).return_to_operator(actor, item_id, quantity, notes),
        )

    def assign_to_order(
        self,
        actor: Actor,
        item_id: UUID,
        order_id: UUID,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "assign_to_order",
            lambda s: self._engine(s).assign_to_order(actor, item_id, order_id, quantity),
        )

    def remove_from_order(self, actor: Actor, item_id: UUID, order_id: UUID) -> ItemSnapshot:
        return self._run(
            actor, "remove_from_order",
            lambda s: self._engine(s).remove_from_order(actor, item_id, order_id),
        )

    def collect_from_client(
        self,
        actor: Actor,
        order_id: UUID,
        *,
        name: str,
        serial_number: str,
        category: DeviceCategory | str | None = None,
        technician_id: UUID | None = None,
        price: Decimal = Decimal("0"),
        notes: str | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "collect_from_client",
            lambda s: self._engine(s).collect_from_client(
                actor,
                order_id,
                name=name,
                serial_number=serial_number,
                category=category,
                technician_id=technician_id,
                price=price,
                notes=notes,
            ),
        )

    def sync_order_equipment(
        self,
        actor: Actor,
        order_id: UUID,
        item_ids: list[UUID],
    ) -> tuple[list[ItemSnapshot], list[ItemSnapshot]]:
        return self._run(
            actor, "sync_order_equipment",
            lambda s: self._engine(s).sync_order_equipment(actor, order_id, item_ids),
        )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def propose_transfer(
        self,
        actor: Actor,
        item_id: UUID,
        *,
        to_technician_id: UUID | None = None,
        to_location_id: UUID | None = None,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        return self._run(
            actor, "propose_transfer",
            lambda s: self._transfers(s).propose_transfer(
                actor,
                item_id,
                to_technician_id=to_technician_id,
                to_location_id=to_location_id,
                quantity=quantity,
            ),
        )

    def accept_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        return self._run(
            actor, "accept_transfer",
            lambda s: self._transfers(s).accept_transfer(actor, item_id),
        )

    def reject_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        return self._run(
            actor, "reject_transfer",
            lambda s: self._transfers(s).reject_transfer(actor, item_id),
        )

    def cancel_transfer(self, actor: Actor, item_id: UUID) -> ItemSnapshot:
        return self._run(
            actor, "cancel_transfer",
            lambda s: self._transfers(s).cancel_transfer(actor, item_id),
        )

    def expire_stale_transfers(
        self,
        actor: Actor,
        ttl: timedelta | None = None,
    ) -> list[UUID]:
        """Auto-reject the tenant's transfers older than ``ttl`` (default: config)."""
        actor.require_privileged("*", "expire_stale_transfers")
        return self._run(
            actor, "expire_stale_transfers",
            lambda s: self._transfers(s).expire_stale_transfers(
                actor.tenant, ttl or self._transfer_ttl
            ),
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def compute_settlement(self, actor: Actor, order_id: UUID) -> SettlementResult:
        """Recompute and persist the settlement of an order."""
        return self._run(
            actor, "compute_settlement",
            lambda s: SettlementService(s, self._clock, self._patterns).recompute(
                actor.tenant, order_id
            ),
        )
