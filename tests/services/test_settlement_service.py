"""
Tests for SettlementService -- persisted settlements of completed orders.

Covers:
- completed order: lines persisted in computed order with amounts and total
- recompute replaces earlier entries
- non-completed order ends with no entries
- riser / trunk counts read from the order
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from tests.conftest import TENANT
from warehouse_kernel.exceptions import OrderNotFoundError
from warehouse_kernel.models.order import OrderStatus, ServiceType, SettlementEntry
from warehouse_kernel.selectors.order_selector import OrderSelector
from warehouse_kernel.services.settlement_service import SettlementService

RATES = [
    ("GNIAZDO", 5),
    ("PRZYLACZE", 10),
    ("MODEM_NET_TEL", 7),
    ("DEKODER_1WAY", 6),
    ("PION", 4),
]


@pytest.fixture
def settlement(session, clock):
    return SettlementService(session, clock)


@pytest.fixture
def completed_order(make_order, make_rates):
    make_rates(RATES)
    return make_order(
        services=[ServiceType.NET, (ServiceType.DTV, {"device_category": "DECODER_1_WAY"})],
        status=OrderStatus.COMPLETED,
    )


class TestRecompute:
    def test_completed_order(self, session, settlement, completed_order):
        result = settlement.recompute(TENANT, completed_order.id)

        assert result.pairs == [
            ("GNIAZDO", 2),
            ("PRZYLACZE", 1),
            ("MODEM_NET_TEL", 1),
            ("DEKODER_1WAY", 1),
        ]
        assert result.total == Decimal("33")
        assert result.lines[0].amount == Decimal("10")
        assert OrderSelector(session, TENANT).settlement_entries(completed_order.id) == result.pairs

    def test_recompute_replaces_entries(self, session, settlement, completed_order):
        settlement.recompute(TENANT, completed_order.id)
        settlement.recompute(TENANT, completed_order.id)

        rows = session.execute(
            select(SettlementEntry).where(SettlementEntry.order_id == completed_order.id)
        ).scalars().all()
        assert len(rows) == 4

    def test_not_completed_clears_entries(self, session, settlement, completed_order):
        settlement.recompute(TENANT, completed_order.id)
        completed_order.status = OrderStatus.NOT_COMPLETED
        session.flush()

        result = settlement.recompute(TENANT, completed_order.id)

        assert result.lines == ()
        assert result.total == Decimal("0")
        assert OrderSelector(session, TENANT).settlement_entries(completed_order.id) == []

    def test_riser_count_from_order(self, settlement, make_order, make_rates):
        make_rates(RATES)
        order = make_order(
            services=[ServiceType.ATV],
            status=OrderStatus.COMPLETED,
            riser_count=2,
        )

        result = settlement.recompute(TENANT, order.id)

        assert result.pairs == [("GNIAZDO", 1), ("PRZYLACZE", 1), ("PION", 2)]

    def test_unknown_order(self, settlement):
        with pytest.raises(OrderNotFoundError):
            settlement.recompute(TENANT, uuid4())

    def test_logs_settlement_computed(self, settlement, completed_order, captured_logs):
        settlement.recompute(TENANT, completed_order.id)

        records = [r for r in captured_logs() if r["message"] == "settlement_computed"]
        assert records[0]["line_count"] == 4
        assert Decimal(records[0]["total"]) == Decimal("33")
