"""
TransitionEngine -- validated custody changes for inventory items.

Responsibility:
    Receive, issue, return, return to operator, assign to / remove from an
    order, collect from a client, and sync an order's equipment.  Each
    operation validates, then writes the new item state and exactly one
    HistoryEntry in the caller's transaction.

Architecture position:
    Kernel > Services.  Uses InventorySelector / OrderSelector to load rows,
    domain.transitions for legality, HistoryLedger for the audit row.

Invariants enforced:
    - Checks run in a fixed order: NotFound, TransferInProgress,
      OwnershipViolation, InvalidStateTransition.
    - Privileged actors bypass ownership, never the state machine.
    - Custody is a discriminated union: each operation clears the old holder
      when it sets the new one (see InventoryItem.custody_is_consistent).
    - At most one active OrderAssignment per item.
    - Compare-and-swap: the item's version is checked at flush; a concurrent
      writer turns this write into ConcurrentModificationError.

Failure modes:
    - ItemNotFoundError / OrderNotFoundError
    - TransferInProgressError
    - OwnershipViolationError
    - InvalidStateTransitionError
    - ValidationError (DuplicateSerialNumberError, InsufficientQuantityError)
    - ConcurrentModificationError
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError

from warehouse_kernel.domain.actor import Actor
from warehouse_kernel.domain.dtos import ItemSnapshot
from warehouse_kernel.domain.transitions import Operation, validate_transition
from warehouse_kernel.exceptions import (
    DuplicateSerialNumberError,
    InvalidStateTransitionError,
    OwnershipViolationError,
    TransferInProgressError,
    ValidationError,
)
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.history import HistoryAction
from warehouse_kernel.models.inventory_item import (
    DeviceCategory,
    InventoryItem,
    ItemStatus,
    ItemType,
    OrderAssignment,
)
from warehouse_kernel.selectors.inventory_selector import InventorySelector
from warehouse_kernel.selectors.order_selector import OrderSelector
from warehouse_kernel.services.base import BaseService
from warehouse_kernel.services.history_ledger import HistoryLedger
from warehouse_kernel.services.lots import take_quantity

logger = get_logger("services.transition_engine")


def custodian_of(item: InventoryItem) -> UUID | None:
    """Technician holding the item, directly or through an order."""
    if item.status == ItemStatus.ASSIGNED:
        return item.assigned_to_id
    if item.status == ItemStatus.ASSIGNED_TO_ORDER:
        assignment = item.active_assignment
        return assignment.technician_id if assignment else None
    return None


def check_not_locked(item: InventoryItem) -> None:
    if item.transfer_pending:
        raise TransferInProgressError(str(item.id))


def check_ownership(actor: Actor, item: InventoryItem) -> None:
    """Non-privileged actors may only touch items they hold."""
    if actor.is_privileged:
        return
    if custodian_of(item) != actor.id:
        raise OwnershipViolationError(
            item_id=str(item.id),
            actor_id=str(actor.id),
            reason="item is not in the actor's custody",
        )


class TransitionEngine(BaseService):
    """
    State Transition Engine.

    All public methods take the acting ``Actor`` first and return an
    ``ItemSnapshot`` (or snapshots) of the item that moved.
    """

    def _ledger(self) -> HistoryLedger:
        return HistoryLedger(self.session, self.clock)

    def _load(self, actor: Actor, item_id: UUID) -> InventoryItem:
        return InventorySelector(self.session, actor.tenant).load(item_id)

    # ------------------------------------------------------------------
    # receive
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
        """
        Register a new item at a warehouse location (status AVAILABLE).

        Devices need a serial number unique within the tenant and always
        have quantity 1.  Materials may be received with any quantity >= 0.
        """
        actor.require_privileged("new", "receive")
        item_type = ItemType(item_type)
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "is required")
        if price < 0:
            raise ValidationError("price", "must not be negative")

        if item_type == ItemType.DEVICE:
            serial_number = (serial_number or "").strip()
            if not serial_number:
                raise ValidationError("serial_number", "is required for devices")
            if quantity != 1:
                raise ValidationError("quantity", "devices are received one at a time")
            selector = InventorySelector(self.session, actor.tenant)
            if selector.find_by_serial(serial_number) is not None:
                raise DuplicateSerialNumberError(serial_number)
        else:
            serial_number = None
            if quantity < 0:
                raise ValidationError("quantity", "must not be negative")

        item = InventoryItem(
            id=uuid4(),
            tenant=actor.tenant,
            item_type=item_type,
            name=name,
            category=DeviceCategory(category) if category else None,
            serial_number=serial_number,
            index=index,
            unit=unit,
            quantity=quantity,
            price=price,
            status=ItemStatus.AVAILABLE,
            location_id=location_id,
            home_location_id=location_id,
            transfer_pending=False,
            collected_from_client=False,
            history_seq=0,
            created_by_id=actor.id,
        )
        self.session.add(item)
        self._ledger().append(
            item,
            HistoryAction.RECEIVED,
            actor.id,
            to_location_id=location_id,
            quantity=quantity,
            notes=notes,
        )
        try:
            self._flush("InventoryItem", item.id)
        except IntegrityError as exc:
            if serial_number:
                raise DuplicateSerialNumberError(serial_number) from exc
            raise

        logger.info(
            "item_received",
            extra={
                "item_id": str(item.id),
                "item_type": item_type.value,
                "location_id": str(location_id),
                "quantity": quantity,
            },
        )
        return ItemSnapshot.from_model(item)

    # ------------------------------------------------------------------
    # issue / return / return to operator
    # ------------------------------------------------------------------

    def issue(
        self,
        actor: Actor,
        item_id: UUID,
        technician_id: UUID,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        """
        Move an item (or part of a material lot) from a warehouse location
        to a technician.  AVAILABLE -> ASSIGNED.
        """
        item = self._load(actor, item_id)
        check_not_locked(item)
        actor.require_privileged(item.id, "issue")
        validate_transition(item.id, item.status, Operation.ISSUE)

        moving, source_id = take_quantity(self.session, item, quantity, actor.id)
        from_location = moving.location_id
        moving.location_id = None
        moving.assigned_to_id = technician_id
        moving.status = ItemStatus.ASSIGNED
        moving.updated_by_id = actor.id

        self._ledger().append(
            moving,
            HistoryAction.ISSUED,
            actor.id,
            assigned_to_id=technician_id,
            from_location_id=from_location,
            quantity=None if moving.is_device else moving.quantity,
            related_item_id=source_id,
        )
        self._flush("InventoryItem", item.id)

        logger.info(
            "item_issued",
            extra={
                "item_id": str(moving.id),
                "source_item_id": str(source_id) if source_id else None,
                "technician_id": str(technician_id),
                "quantity": moving.quantity,
            },
        )
        return ItemSnapshot.from_model(moving)

    def return_item(
        self,
        actor: Actor,
        item_id: UUID,
        location_id: UUID | None = None,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        """
        Return an item from a technician to a warehouse location.

        ASSIGNED -> AVAILABLE at ``location_id`` (default: the location the
        item was received into).  A device collected from a client goes to
        RETURNED instead, where it waits to be sent back to the operator.
        """
        item = self._load(actor, item_id)
        check_not_locked(item)
        check_ownership(actor, item)
        validate_transition(item.id, item.status, Operation.RETURN)

        target = location_id or item.home_location_id
        if target is None:
            raise ValidationError("location_id", "item has no home location, pass one")

        moving, source_id = take_quantity(self.session, item, quantity, actor.id)
        previous_owner = moving.assigned_to_id
        moving.assigned_to_id = None
        moving.location_id = target
        moving.status = (
            ItemStatus.RETURNED
            if moving.is_device and moving.collected_from_client
            else ItemStatus.AVAILABLE
        )
        moving.updated_by_id = actor.id

        self._ledger().append(
            moving,
            HistoryAction.RETURNED,
            actor.id,
            assigned_to_id=previous_owner,
            to_location_id=target,
            quantity=None if moving.is_device else moving.quantity,
            related_item_id=source_id,
        )
        self._flush("InventoryItem", item.id)

        logger.info(
            "item_returned",
            extra={
                "item_id": str(moving.id),
                "location_id": str(target),
                "status": moving.status,
            },
        )
        return ItemSnapshot.from_model(moving)

    def return_to_operator(
        self,
        actor: Actor,
        item_id: UUID,
        quantity: int | None = None,
        notes: str | None = None,
    ) -> ItemSnapshot:
        """
        Send an item back to the operator.  AVAILABLE or RETURNED ->
        RETURNED_TO_OPERATOR (terminal, no custody).
        """
        item = self._load(actor, item_id)
        check_not_locked(item)
        actor.require_privileged(item.id, "return_to_operator")
        validate_transition(item.id, item.status, Operation.RETURN_TO_OPERATOR)

        moving, source_id = take_quantity(self.session, item, quantity, actor.id)
        from_location = moving.location_id
        moving.location_id = None
        moving.status = ItemStatus.RETURNED_TO_OPERATOR
        moving.updated_by_id = actor.id

        self._ledger().append(
            moving,
            HistoryAction.RETURNED_TO_OPERATOR,
            actor.id,
            from_location_id=from_location,
            quantity=None if moving.is_device else moving.quantity,
            notes=notes,
            related_item_id=source_id,
        )
        self._flush("InventoryItem", item.id)

        logger.info(
            "item_returned_to_operator",
            extra={"item_id": str(moving.id), "from_location_id": str(from_location)},
        )
        return ItemSnapshot.from_model(moving)

    # ------------------------------------------------------------------
    # orders
    # ------------------------------------------------------------------

    def assign_to_order(
        self,
        actor: Actor,
        item_id: UUID,
        order_id: UUID,
        quantity: int | None = None,
    ) -> ItemSnapshot:
        """
        Install an item on an order.  ASSIGNED -> ASSIGNED_TO_ORDER.

        The holding technician is recorded on the assignment so removal can
        give the item back to them.
        """
        item = self._load(actor, item_id)
        OrderSelector(self.session, actor.tenant).load(order_id)
        check_not_locked(item)
        check_ownership(actor, item)
        validate_transition(item.id, item.status, Operation.ASSIGN_TO_ORDER)

        moving, source_id = take_quantity(self.session, item, quantity, actor.id)
        technician_id = moving.assigned_to_id
        now = self.clock.now_utc()
        assignment = OrderAssignment(
            id=uuid4(),
            item_id=moving.id,
            order_id=order_id,
            technician_id=technician_id,
            location_id=moving.home_location_id,
            assigned_at=now,
            assigned_by_id=actor.id,
        )
        moving.order_assignments.append(assignment)
        moving.assigned_to_id = None
        moving.status = ItemStatus.ASSIGNED_TO_ORDER
        moving.updated_by_id = actor.id

        self._ledger().append(
            moving,
            HistoryAction.ASSIGNED_TO_ORDER,
            actor.id,
            assigned_to_id=technician_id,
            assigned_order_id=order_id,
            quantity=None if moving.is_device else moving.quantity,
            related_item_id=source_id,
        )
        self._flush("InventoryItem", item.id)

        logger.info(
            "item_assigned_to_order",
            extra={"item_id": str(moving.id), "order_id": str(order_id)},
        )
        return ItemSnapshot.from_model(moving)

    def remove_from_order(
        self,
        actor: Actor,
        item_id: UUID,
        order_id: UUID,
    ) -> ItemSnapshot:
        """
        Take an item off an order.  ASSIGNED_TO_ORDER -> ASSIGNED to the
        technician who installed it, or AVAILABLE at the warehouse when the
        assignment had no technician.
        """
        item = self._load(actor, item_id)
        OrderSelector(self.session, actor.tenant).load(order_id)
        check_not_locked(item)
        check_ownership(actor, item)
        validate_transition(item.id, item.status, Operation.REMOVE_FROM_ORDER)

        assignment = item.active_assignment
        if assignment is None or assignment.order_id != order_id:
            raise InvalidStateTransitionError(
                item_id=str(item.id),
                current_status=ItemStatus(item.status).value,
                operation=f"remove_from_order({order_id})",
            )

        assignment.removed_at = self.clock.now_utc()
        assignment.removed_by_id = actor.id

        if assignment.technician_id is not None:
            item.assigned_to_id = assignment.technician_id
            item.status = ItemStatus.ASSIGNED
            action = HistoryAction.RETURNED_TO_TECHNICIAN
            to_location = None
        else:
            to_location = assignment.location_id or item.home_location_id
            if to_location is None:
                raise ValidationError("location_id", "item has no warehouse to return to")
            item.location_id = to_location
            item.status = ItemStatus.AVAILABLE
            action = HistoryAction.RETURNED
        item.updated_by_id = actor.id

        self._ledger().append(
            item,
            action,
            actor.id,
            assigned_to_id=assignment.technician_id,
            assigned_order_id=order_id,
            to_location_id=to_location,
            quantity=None if item.is_device else item.quantity,
        )
        self._flush("InventoryItem", item.id)

        logger.info(
            "item_removed_from_order",
            extra={
                "item_id": str(item.id),
                "order_id": str(order_id),
                "status": item.status,
            },
        )
        return ItemSnapshot.from_model(item)

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
        """
        Register a device a technician picked up at a client site.

        The device enters the technician's stock (ASSIGNED) flagged as
        collected, and returns to RETURNED rather than AVAILABLE.
        """
        OrderSelector(self.session, actor.tenant).load(order_id)
        holder = technician_id or actor.id
        if not actor.is_privileged and holder != actor.id:
            raise OwnershipViolationError(
                item_id="new",
                actor_id=str(actor.id),
                reason="technicians may only collect devices for themselves",
            )
        name = (name or "").strip()
        serial_number = (serial_number or "").strip()
        if not name:
            raise ValidationError("name", "is required")
        if not serial_number:
            raise ValidationError("serial_number", "is required for devices")
        if InventorySelector(self.session, actor.tenant).find_by_serial(serial_number):
            raise DuplicateSerialNumberError(serial_number)

        item = InventoryItem(
            id=uuid4(),
            tenant=actor.tenant,
            item_type=ItemType.DEVICE,
            name=name,
            category=DeviceCategory(category) if category else None,
            serial_number=serial_number,
            quantity=1,
            price=price,
            status=ItemStatus.ASSIGNED,
            assigned_to_id=holder,
            transfer_pending=False,
            collected_from_client=True,
            source_order_id=order_id,
            history_seq=0,
            created_by_id=actor.id,
        )
        self.session.add(item)
        self._ledger().append(
            item,
            HistoryAction.COLLECTED_FROM_CLIENT,
            actor.id,
            assigned_to_id=holder,
            assigned_order_id=order_id,
            notes=notes,
        )
        try:
            self._flush("InventoryItem", item.id)
        except IntegrityError as exc:
            raise DuplicateSerialNumberError(serial_number) from exc

        logger.info(
            "item_collected_from_client",
            extra={
                "item_id": str(item.id),
                "order_id": str(order_id),
                "technician_id": str(holder),
            },
        )
        return ItemSnapshot.from_model(item)

    def sync_order_equipment(
        self,
        actor: Actor,
        order_id: UUID,
        item_ids: list[UUID],
    ) -> tuple[list[ItemSnapshot], list[ItemSnapshot]]:
        """
        Make the order's installed devices equal ``item_ids``.

        Items no longer listed are removed from the order; new ones are
        assigned.  Each move is an ordinary transition with its own history
        entry.

        Returns:
            (removed, added) snapshots.
        """
        inventory = InventorySelector(self.session, actor.tenant)
        OrderSelector(self.session, actor.tenant).load(order_id)
        current = {snap.id for snap in inventory.list_by_order(order_id)}
        desired = set(item_ids)

        with LogContext.bind(actor_id=str(actor.id), tenant=actor.tenant):
            removed = [
                self.remove_from_order(actor, item_id, order_id)
                for item_id in sorted(current - desired, key=str)
            ]
            added = [
                self.assign_to_order(actor, item_id, order_id)
                for item_id in sorted(desired - current, key=str)
            ]

        logger.info(
            "order_equipment_synced",
            extra={
                "order_id": str(order_id),
                "removed_count": len(removed),
                "added_count": len(added),
            },
        )
        return removed, added
