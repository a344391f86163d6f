"""
Material lot splitting.

A partial quantity of a material lot moves as its own lot (a "packet"): the
source keeps the remainder in its current custody and the packet starts with
the same custody, ready for the caller to move it.  Devices never split.
"""

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from warehouse_kernel.exceptions import InsufficientQuantityError, ValidationError
from warehouse_kernel.models.inventory_item import InventoryItem


def take_quantity(
    session: Session,
    item: InventoryItem,
    quantity: int | None,
    actor_id: UUID,
) -> tuple[InventoryItem, UUID | None]:
    """
    Select what moves: the whole item, or a packet split off a material lot.

    Args:
        session: Session the packet is added to.
        item: Source item, already validated by the caller.
        quantity: Units to move; None moves the whole item.
        actor_id: Recorded as the packet's creator.

    Returns:
        (item_to_move, source_lot_id).  source_lot_id is None when the
        whole item moves.

    Raises:
        ValidationError: quantity given for a device, or not positive.
        InsufficientQuantityError: more requested than the lot holds.
    """
    if item.is_device:
        if quantity not in (None, 1):
            raise ValidationError("quantity", "devices move as a single unit")
        return item, None

    wanted = item.quantity if quantity is None else quantity
    if wanted <= 0:
        raise ValidationError("quantity", f"must be positive, got {wanted}")
    if wanted > item.quantity:
        raise InsufficientQuantityError(str(item.id), wanted, item.quantity)
    if wanted == item.quantity:
        return item, None

    item.quantity -= wanted
    packet = InventoryItem(
        id=uuid4(),
        tenant=item.tenant,
        item_type=item.item_type,
        name=item.name,
        category=item.category,
        index=item.index,
        unit=item.unit,
        quantity=wanted,
        price=item.price,
        status=item.status,
        location_id=item.location_id,
        assigned_to_id=item.assigned_to_id,
        home_location_id=item.home_location_id,
        transfer_pending=False,
        split_from_id=item.id,
        collected_from_client=False,
        history_seq=0,
        created_by_id=actor_id,
    )
    session.add(packet)
    return packet, item.id
