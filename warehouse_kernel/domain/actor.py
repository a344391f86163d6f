"""
Actor -- the caller of a custody operation.

Responsibility:
    Carries who is acting, under which role, and for which tenant.  Every
    transition engine and transfer protocol operation takes an Actor as its
    first argument; authentication itself happens outside the kernel.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Invariants enforced:
    - Privileged roles (ADMIN, COORDINATOR, WAREHOUSEMAN) bypass the
      ownership check but never the state machine.
    - Warehouse-side operations (receive, issue, return to operator,
      location transfers) require a privileged role.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from warehouse_kernel.exceptions import OwnershipViolationError


class ActorRole(str, Enum):
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"
    WAREHOUSEMAN = "WAREHOUSEMAN"
    TECHNICIAN = "TECHNICIAN"


PRIVILEGED_ROLES = frozenset(
    {ActorRole.ADMIN, ActorRole.COORDINATOR, ActorRole.WAREHOUSEMAN}
)


@dataclass(frozen=True)
class Actor:
    """
    Immutable caller identity.

    location_ids lists the warehouse locations the actor manages.  An empty
    set on a privileged actor means "all locations of the tenant".
    """

    id: UUID
    role: ActorRole
    tenant: str
    location_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    def manages_location(self, location_id: UUID | None) -> bool:
        if not self.is_privileged:
            return False
        return not self.location_ids or location_id in self.location_ids

    def require_privileged(self, item_id: UUID | str, operation: str) -> None:
        """Raise OwnershipViolationError unless the actor is privileged."""
        if not self.is_privileged:
            raise OwnershipViolationError(
                item_id=str(item_id),
                actor_id=str(self.id),
                reason=f"{operation} requires a warehouse role, actor is {self.role.value}",
            )
