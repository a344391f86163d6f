"""
Module: warehouse_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but never
      add, delete, flush or commit.
    - DTO return convention: public methods return frozen dataclasses, not
      ORM instances.
    - Tenant scoping: every selector is bound to one tenant; rows of another
      tenant are treated as absent.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session and a tenant from the caller, perform
        read-only queries, and return DTOs.  They reflect whatever the
        caller's transaction can see.
    """

    def __init__(self, session: Session, tenant: str):
        """
        Args:
            session: SQLAlchemy session for database operations.
            tenant: Operator brand the queries are scoped to.
        """
        self.session = session
        self.tenant = tenant
