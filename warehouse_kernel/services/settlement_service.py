"""
SettlementService -- persist the Settlement Computer's output for an order.

Responsibility:
    Load an order's activated services and the tenant rate catalog, run the
    pure settlement engine, and replace the order's SettlementEntry rows.

Architecture position:
    Kernel > Services.  The only caller of warehouse_engines.settlement that
    touches the database.  Never mutates inventory state.

Invariants enforced:
    - Recompute replaces entries wholesale: existing rows are deleted first,
      so recomputing twice on unchanged inputs leaves identical rows.
    - Orders not in COMPLETED status end up with no entries.

Failure modes:
    - OrderNotFoundError for unknown or foreign orders.
    - RateDefinitionNotFoundError cannot occur for computed lines, since
      every code is resolved from the same rate catalog.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete

from warehouse_engines.rate_codes import DEFAULT_PATTERN_TABLE, RateCodePatternTable
from warehouse_engines.settlement import (
    ServiceInput,
    compute_settlement,
    settlement_total,
)
from warehouse_kernel.domain.clock import Clock
from warehouse_kernel.domain.dtos import SettlementLine, SettlementResult
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.order import OrderStatus, SettlementEntry
from warehouse_kernel.selectors.order_selector import OrderSelector
from warehouse_kernel.services.base import BaseService

logger = get_logger("services.settlement_service")


class SettlementService(BaseService):
    """Recomputes and stores order settlements."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        patterns: RateCodePatternTable = DEFAULT_PATTERN_TABLE,
    ):
        super().__init__(session, clock)
        self.patterns = patterns

    def recompute(self, tenant: str, order_id: UUID) -> SettlementResult:
        """
        Replace the settlement of ``order_id``.

        Returns:
            The persisted lines with their amounts, empty for orders that
            are not COMPLETED.
        """
        orders = OrderSelector(self.session, tenant)
        order = orders.load(order_id)

        self.session.execute(
            delete(SettlementEntry).where(SettlementEntry.order_id == order.id)
        )

        if order.status != OrderStatus.COMPLETED:
            self.session.flush()
            logger.info(
                "settlement_cleared",
                extra={"order_id": str(order.id), "status": order.status},
            )
            return SettlementResult(order_id=order.id, lines=(), total=Decimal("0"))

        rates = orders.rates()
        services = [
            ServiceInput(
                service_type=str(getattr(s.service_type, "value", s.service_type)),
                device_category=s.device_category,
                has_secondary_device=bool(s.has_secondary_device),
                extra_device_count=s.extra_device_count or 0,
            )
            for s in order.services
        ]
        entries = compute_settlement(
            services=services,
            rate_codes=[rate.code for rate in rates],
            riser_count=order.riser_count,
            trunk_count=order.trunk_count,
            patterns=self.patterns,
        )

        for position, (code, quantity) in enumerate(entries):
            self.session.add(
                SettlementEntry(
                    id=uuid4(),
                    order_id=order.id,
                    code=code,
                    quantity=quantity,
                    position=position,
                )
            )
        self.session.flush()

        amounts = {rate.code: rate.amount for rate in rates}
        lines = tuple(
            SettlementLine(code=code, quantity=qty, amount=amounts[code] * qty)
            for code, qty in entries
        )
        total = settlement_total(entries, rates)

        logger.info(
            "settlement_computed",
            extra={
                "order_id": str(order.id),
                "line_count": len(lines),
                "total": total,
                "pattern_version": self.patterns.version,
            },
        )
        return SettlementResult(order_id=order.id, lines=lines, total=total)
