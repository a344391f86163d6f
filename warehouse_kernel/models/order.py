"""
Module: warehouse_kernel.models.order
Responsibility: ORM persistence for the order-side inputs of settlement:
    orders, their activated services, the rate catalog, and the persisted
    settlement entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Orders chain to earlier attempts through previous_order_id only.  No
      relationship() is declared for the chain, so loading an order never
      walks the attempt history.
    - (tenant, code) is unique in rate_definitions.
    - (order_id, code) is unique in settlement_entries.  Entries are
      replaced wholesale on recompute, never patched.

Failure modes:
    - IntegrityError on duplicate rate codes or duplicate settlement codes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import Base, TrackedBase, UUIDString


class OrderType(str, Enum):
    INSTALLATION = "INSTALLATION"
    SERVICE = "SERVICE"
    OUTAGE = "OUTAGE"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    NOT_COMPLETED = "NOT_COMPLETED"


class ServiceType(str, Enum):
    NET = "NET"
    TEL = "TEL"
    DTV = "DTV"
    ATV = "ATV"


class Order(TrackedBase):
    """
    One attempt at a unit of billable field work.

    Owned by the order module; the warehouse core reads it for order
    assignment checks and settlement.
    """

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_order_number", "tenant", "order_number"),
        Index("idx_order_previous", "previous_order_id"),
        Index("idx_order_status", "tenant", "status"),
    )

    tenant: Mapped[str] = mapped_column(String(50), nullable=False)

    order_number: Mapped[str] = mapped_column(String(100), nullable=False)

    order_type: Mapped[OrderType] = mapped_column(
        String(20),
        nullable=False,
        default=OrderType.INSTALLATION,
    )

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    assigned_to_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    previous_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=True,
    )

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Manual riser ("pion") and trunk ("listwa") counts
    riser_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trunk_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    services: Mapped[list["OrderService"]] = relationship(
        back_populates="order",
        order_by="OrderService.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} [{self.status}]>"


class OrderService(Base):
    """An activated service on an order (NET/TEL/DTV/ATV)."""

    __tablename__ = "order_services"

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_order_service_position"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    service_type: Mapped[ServiceType] = mapped_column(String(10), nullable=False)

    device_category: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Serial of the installed device, informational only
    device_serial: Mapped[str | None] = mapped_column(String(100), nullable=True)

    has_secondary_device: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    extra_device_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order: Mapped[Order] = relationship(back_populates="services")


class RateDefinition(TrackedBase):
    """Admin-maintained billable work code."""

    __tablename__ = "rate_definitions"

    __table_args__ = (
        UniqueConstraint("tenant", "code", name="uq_rate_tenant_code"),
    )

    tenant: Mapped[str] = mapped_column(String(50), nullable=False)

    code: Mapped[str] = mapped_column(String(100), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Rate-table order used for first-match code resolution
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<RateDefinition {self.code}={self.amount}>"


class SettlementEntry(Base):
    """Persisted (code, quantity) for a completed order."""

    __tablename__ = "settlement_entries"

    __table_args__ = (
        UniqueConstraint("order_id", "code", name="uq_settlement_order_code"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Position in the computed output
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
