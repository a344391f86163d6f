"""
Module: warehouse_kernel.selectors.order_selector
Responsibility: Read access to orders, their activated services, and the
    rate catalog, in the shapes the settlement engine consumes.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The previous-attempt chain is walked one id at a time through
      previous_order_id; a cycle in stored data ends the walk instead of
      looping.
"""

from uuid import UUID

from sqlalchemy import select

from warehouse_kernel.domain.dtos import RateInfo
from warehouse_kernel.exceptions import OrderNotFoundError
from warehouse_kernel.models.order import Order, RateDefinition, SettlementEntry
from warehouse_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector):
    """Order and rate lookups for assignment checks and settlement."""

    def load(self, order_id: UUID) -> Order:
        order = self.session.get(Order, order_id)
        if order is None or order.tenant != self.tenant:
            raise OrderNotFoundError(str(order_id))
        return order

    def exists(self, order_id: UUID) -> bool:
        order = self.session.get(Order, order_id)
        return order is not None and order.tenant == self.tenant

    def attempt_chain(self, order_id: UUID) -> list[UUID]:
        """
        Ids of an order and all its earlier attempts, newest first.

        Raises:
            OrderNotFoundError: the starting order does not exist.
        """
        chain: list[UUID] = []
        seen: set[UUID] = set()
        current: UUID | None = self.load(order_id).id
        while current is not None and current not in seen:
            seen.add(current)
            chain.append(current)
            current = self.session.execute(
                select(Order.previous_order_id).where(
                    Order.id == current,
                    Order.tenant == self.tenant,
                )
            ).scalar_one_or_none()
        return chain

    def rates(self) -> list[RateInfo]:
        """Tenant rate catalog in rate-table order (sort_order, code)."""
        stmt = (
            select(RateDefinition)
            .where(RateDefinition.tenant == self.tenant)
            .order_by(RateDefinition.sort_order, RateDefinition.code)
        )
        return [
            RateInfo(code=r.code, amount=r.amount)
            for r in self.session.execute(stmt).scalars()
        ]

    def settlement_entries(self, order_id: UUID) -> list[tuple[str, int]]:
        """Persisted settlement of an order in computed order."""
        self.load(order_id)
        stmt = (
            select(SettlementEntry.code, SettlementEntry.quantity)
            .where(SettlementEntry.order_id == order_id)
            .order_by(SettlementEntry.position)
        )
        return [(code, qty) for code, qty in self.session.execute(stmt)]
