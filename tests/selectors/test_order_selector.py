"""Tests for OrderSelector: attempt chain walk and rate catalog order."""

from decimal import Decimal
from uuid import uuid4

import pytest

from tests.conftest import TENANT
from warehouse_kernel.exceptions import OrderNotFoundError
from warehouse_kernel.selectors.order_selector import OrderSelector


class TestAttemptChain:
    def test_walks_previous_attempts_newest_first(self, session, make_order):
        first = make_order(order_number="A-1")
        second = make_order(order_number="A-1", previous_order_id=first.id)
        third = make_order(order_number="A-1", previous_order_id=second.id)

        chain = OrderSelector(session, TENANT).attempt_chain(third.id)

        assert chain == [third.id, second.id, first.id]

    def test_single_attempt(self, session, make_order):
        order = make_order()
        assert OrderSelector(session, TENANT).attempt_chain(order.id) == [order.id]

    def test_cycle_terminates(self, session, make_order):
        first = make_order()
        second = make_order(previous_order_id=first.id)
        first.previous_order_id = second.id
        session.flush()

        chain = OrderSelector(session, TENANT).attempt_chain(second.id)

        assert chain == [second.id, first.id]

    def test_unknown_order(self, session):
        with pytest.raises(OrderNotFoundError):
            OrderSelector(session, TENANT).attempt_chain(uuid4())

    def test_other_tenant_order_hidden(self, session, make_order):
        order = make_order(tenant="opl")
        assert not OrderSelector(session, TENANT).exists(order.id)
        with pytest.raises(OrderNotFoundError):
            OrderSelector(session, TENANT).load(order.id)


class TestRates:
    def test_rate_table_order(self, session, make_rates):
        make_rates([("PRZYLACZE", 10), ("GNIAZDO", 5)])
        make_rates([("GNIAZDO", 99)], tenant="opl")

        rates = OrderSelector(session, TENANT).rates()

        assert [r.code for r in rates] == ["PRZYLACZE", "GNIAZDO"]
        assert rates[1].amount == Decimal("5")
