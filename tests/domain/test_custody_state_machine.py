"""
Tests for the pure custody state machine and the Actor value object.

No database: these exercise warehouse_kernel.domain only.
"""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from tests.conftest import WAREHOUSE_A, WAREHOUSE_B
from warehouse_kernel.domain.actor import Actor, ActorRole
from warehouse_kernel.domain.clock import DeterministicClock
from warehouse_kernel.domain.transitions import (
    LEGAL_TRANSITIONS,
    Operation,
    allowed_operations,
    validate_transition,
)
from warehouse_kernel.exceptions import InvalidStateTransitionError, OwnershipViolationError
from warehouse_kernel.models.inventory_item import ItemStatus


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(LEGAL_TRANSITIONS) == set(ItemStatus)

    def test_operator_return_is_terminal(self):
        assert allowed_operations(ItemStatus.RETURNED_TO_OPERATOR) == frozenset()

    @pytest.mark.parametrize(
        "status, operation",
        [
            (ItemStatus.AVAILABLE, Operation.ISSUE),
            (ItemStatus.AVAILABLE, Operation.PROPOSE_LOCATION_TRANSFER),
            (ItemStatus.ASSIGNED, Operation.RETURN),
            (ItemStatus.ASSIGNED, Operation.ASSIGN_TO_ORDER),
            (ItemStatus.ASSIGNED, Operation.PROPOSE_TECHNICIAN_TRANSFER),
            (ItemStatus.ASSIGNED_TO_ORDER, Operation.REMOVE_FROM_ORDER),
            (ItemStatus.RETURNED, Operation.RETURN_TO_OPERATOR),
        ],
    )
    def test_legal(self, status, operation):
        assert validate_transition(uuid4(), status, operation) == status

    @pytest.mark.parametrize(
        "status, operation",
        [
            (ItemStatus.ASSIGNED, Operation.ISSUE),
            (ItemStatus.AVAILABLE, Operation.RETURN),
            (ItemStatus.ASSIGNED_TO_ORDER, Operation.RETURN),
            (ItemStatus.RETURNED, Operation.ISSUE),
            (ItemStatus.AVAILABLE, Operation.PROPOSE_TECHNICIAN_TRANSFER),
        ],
    )
    def test_illegal(self, status, operation):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_transition("item-1", status, operation)
        assert exc_info.value.current_status == status.value
        assert exc_info.value.operation == operation.value

    def test_stored_string_status_accepted(self):
        assert validate_transition("item-1", "ASSIGNED", Operation.RETURN) == ItemStatus.ASSIGNED

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_transition("item-1", "LOST", Operation.ISSUE)
        assert exc_info.value.current_status == "LOST"

    @given(st.sampled_from(list(Operation)))
    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_nothing_leaves_operator(self, operation):
        with pytest.raises(InvalidStateTransitionError):
            validate_transition("item-1", ItemStatus.RETURNED_TO_OPERATOR, operation)


class TestActor:
    @pytest.mark.parametrize(
        "role, privileged",
        [
            (ActorRole.ADMIN, True),
            (ActorRole.COORDINATOR, True),
            (ActorRole.WAREHOUSEMAN, True),
            (ActorRole.TECHNICIAN, False),
        ],
    )
    def test_privileged_roles(self, role, privileged):
        assert Actor(id=uuid4(), role=role, tenant="vectra").is_privileged is privileged

    def test_scoped_warehouseman(self, warehouseman):
        assert warehouseman.manages_location(WAREHOUSE_B)
        assert not warehouseman.manages_location(WAREHOUSE_A)

    def test_unscoped_admin_manages_everything(self, admin):
        assert admin.manages_location(WAREHOUSE_A)
        assert admin.manages_location(uuid4())

    def test_technician_manages_nothing(self, tech1):
        assert not tech1.manages_location(WAREHOUSE_A)

    def test_require_privileged(self, tech1, admin):
        admin.require_privileged("item-1", "receive")
        with pytest.raises(OwnershipViolationError):
            tech1.require_privileged("item-1", "receive")


class TestDeterministicClock:
    def test_advance(self):
        clock = DeterministicClock()
        start = clock.now_utc()
        clock.advance(90)
        assert (clock.now_utc() - start).total_seconds() == 90

    def test_tick(self):
        clock = DeterministicClock()
        start = clock.now()
        assert (clock.tick() - start).total_seconds() == 1
