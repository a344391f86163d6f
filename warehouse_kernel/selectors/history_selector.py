"""
Module: warehouse_kernel.selectors.history_selector
Responsibility: History Ledger read side -- chronological custody history per
    item, per material name, per technician, and paginated tenant-wide.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Chronological order is (action_date, sequence).  sequence breaks ties
      between entries written with the same timestamp.
    - History of a lot includes entries recorded on lots split from it
      (related_item_id), so the packet that left a lot stays visible there.
    - Queries see the caller's transaction snapshot; nothing is cached.

Failure modes:
    - HistoryNotFoundError when a material name has no history at all.
"""

from uuid import UUID

from sqlalchemy import func, or_, select

from warehouse_kernel.domain.dtos import HistoryFilter, HistoryPage, HistoryRecord
from warehouse_kernel.exceptions import HistoryNotFoundError
from warehouse_kernel.models.history import HistoryAction, HistoryEntry
from warehouse_kernel.models.inventory_item import InventoryItem, ItemType
from warehouse_kernel.selectors.base import BaseSelector


class HistorySelector(BaseSelector):
    """Read access to the History Ledger."""

    def _apply_filter(self, stmt, history_filter: HistoryFilter | None):
        if history_filter is None:
            return stmt
        if history_filter.actions:
            stmt = stmt.where(HistoryEntry.action.in_(list(history_filter.actions)))
        if history_filter.performed_by_id is not None:
            stmt = stmt.where(HistoryEntry.performed_by_id == history_filter.performed_by_id)
        if history_filter.date_from is not None:
            stmt = stmt.where(HistoryEntry.action_date >= history_filter.date_from)
        if history_filter.date_to is not None:
            stmt = stmt.where(HistoryEntry.action_date <= history_filter.date_to)
        return stmt

    def query_by_item(
        self,
        item_id: UUID,
        history_filter: HistoryFilter | None = None,
        technician_id: UUID | None = None,
    ) -> list[HistoryRecord]:
        """
        Chronological history of one item.

        Args:
            item_id: The item (or lot) whose history to return.
            history_filter: Optional action / performer / date narrowing.
            technician_id: When set, only entries where this technician was
                the performer or the assignee ("technician" scope).
        """
        stmt = select(HistoryEntry).where(
            HistoryEntry.tenant == self.tenant,
            or_(
                HistoryEntry.item_id == item_id,
                HistoryEntry.related_item_id == item_id,
            ),
        )
        stmt = self._apply_filter(stmt, history_filter)
        if technician_id is not None:
            stmt = stmt.where(
                or_(
                    HistoryEntry.performed_by_id == technician_id,
                    HistoryEntry.assigned_to_id == technician_id,
                )
            )
        stmt = stmt.order_by(
            HistoryEntry.action_date,
            HistoryEntry.sequence,
            HistoryEntry.item_id,
        )
        return [HistoryRecord.from_model(e) for e in self.session.execute(stmt).scalars()]

    def _edge_of_type(self, item_id: UUID, action: HistoryAction, last: bool) -> HistoryRecord | None:
        stmt = select(HistoryEntry).where(
            HistoryEntry.tenant == self.tenant,
            HistoryEntry.item_id == item_id,
            HistoryEntry.action == action,
        )
        if last:
            stmt = stmt.order_by(HistoryEntry.action_date.desc(), HistoryEntry.sequence.desc())
        else:
            stmt = stmt.order_by(HistoryEntry.action_date, HistoryEntry.sequence)
        entry = self.session.execute(stmt.limit(1)).scalar_one_or_none()
        return HistoryRecord.from_model(entry) if entry else None

    def last_of_type(self, item_id: UUID, action: HistoryAction) -> HistoryRecord | None:
        return self._edge_of_type(item_id, action, last=True)

    def first_of_type(self, item_id: UUID, action: HistoryAction) -> HistoryRecord | None:
        return self._edge_of_type(item_id, action, last=False)

    def query_by_name(
        self,
        name: str,
        history_filter: HistoryFilter | None = None,
    ) -> list[HistoryRecord]:
        """
        History of every material lot with the given catalog name.

        Raises:
            HistoryNotFoundError: no history exists for the name.
        """
        stmt = (
            select(HistoryEntry)
            .join(InventoryItem, InventoryItem.id == HistoryEntry.item_id)
            .where(
                HistoryEntry.tenant == self.tenant,
                InventoryItem.tenant == self.tenant,
                InventoryItem.item_type == ItemType.MATERIAL,
                InventoryItem.name == name,
            )
        )
        stmt = self._apply_filter(stmt, history_filter)
        stmt = stmt.order_by(
            HistoryEntry.action_date,
            HistoryEntry.sequence,
            HistoryEntry.item_id,
        )
        records = [HistoryRecord.from_model(e) for e in self.session.execute(stmt).scalars()]
        if not records:
            raise HistoryNotFoundError(name)
        return records

    def warehouse_history(
        self,
        page: int = 1,
        page_size: int = 50,
        history_filter: HistoryFilter | None = None,
    ) -> HistoryPage:
        """Tenant-wide history, newest first, one page at a time."""
        page = max(page, 1)
        base = self._apply_filter(
            select(HistoryEntry).where(HistoryEntry.tenant == self.tenant),
            history_filter,
        )
        total = self.session.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()
        stmt = (
            base.order_by(
                HistoryEntry.action_date.desc(),
                HistoryEntry.sequence.desc(),
                HistoryEntry.id,
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        records = tuple(
            HistoryRecord.from_model(e) for e in self.session.execute(stmt).scalars()
        )
        return HistoryPage(records=records, total=total, page=page, page_size=page_size)
