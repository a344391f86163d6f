"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and flush contract for every service in
    the kernel layer.  Services receive a SQLAlchemy ``Session`` and an
    injected ``Clock``; they use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.  The transaction boundary belongs
    to the caller (``warehouse_services.InventoryAPI`` or a test).

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back, so an item update and its history entry are always
      committed or discarded together.
    - A flush that hits a stale InventoryItem.version surfaces as
      ConcurrentModificationError, never as a raw StaleDataError.
"""

from abc import ABC

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from warehouse_kernel.domain.clock import Clock, SystemClock
from warehouse_kernel.exceptions import ConcurrentModificationError


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only query methods -- those belong in
          ``warehouse_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for history and assignment timestamps.
        """
        self.session = session
        self.clock = clock or SystemClock()

    def _flush(self, entity_type: str, entity_id) -> None:
        """Flush pending writes, translating optimistic-lock failures."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity_type, str(entity_id)) from exc
