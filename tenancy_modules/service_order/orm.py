"""
Module: tenancy_modules.service_order.orm
Responsibility:
    SQLAlchemy ORM persistence models for service orders, their status
    history, and expenses.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - At most one expense references a service order
      (``uq_expense_source_service_order``).
    - Status history rows are append-only.

Failure modes:
    - IntegrityError on a second expense for the same service order.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy_kernel.db.base import TrackedBase, UUIDString


# =============================================================================
# Service Order
# =============================================================================


class ServiceOrderModel(TrackedBase):
    """
    A tenant service request.

    Guarantees:
        - ``reservation_id`` references reservation_reservations.id.
        - ``status`` is one of: pending, in-progress, completed, rejected.
    """

    __tablename__ = "service_orders"

    __table_args__ = (
        Index("idx_service_order_reservation", "reservation_id"),
        Index("idx_service_order_status", "status"),
    )

    reservation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reservation_reservations.id"),
        nullable=False,
    )
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    service_subtype: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    service_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    history: Mapped[list["ServiceOrderStatusChangeModel"]] = relationship(
        "ServiceOrderStatusChangeModel",
        back_populates="service_order",
        order_by="ServiceOrderStatusChangeModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self):
        from tenancy_modules.service_order.models import (
            ServiceOrder,
            ServiceOrderStatus,
            ServiceType,
        )

        return ServiceOrder(
            id=self.id,
            reservation_id=self.reservation_id,
            requested_by=self.requested_by,
            service_type=ServiceType(self.service_type),
            service_subtype=self.service_subtype,
            description=self.description,
            status=ServiceOrderStatus(self.status),
            service_price=self.service_price,
            history=tuple(h.to_dto() for h in self.history),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ServiceOrderModel":
        return cls(
            id=dto.id,
            reservation_id=dto.reservation_id,
            requested_by=dto.requested_by,
            service_type=dto.service_type.value,
            service_subtype=dto.service_subtype,
            description=dto.description,
            status=dto.status.value,
            service_price=dto.service_price,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto, updated_by_id: UUID) -> None:
        """Copy status and price; append history entries not yet stored."""
        self.status = dto.status.value
        self.service_price = dto.service_price
        self.updated_by_id = updated_by_id
        for position, change in enumerate(dto.history[len(self.history):], start=len(self.history)):
            self.history.append(
                ServiceOrderStatusChangeModel.from_dto(change, position, created_by_id=updated_by_id)
            )

    def __repr__(self) -> str:
        return (
            f"<ServiceOrderModel {self.service_type}/{self.service_subtype} "
            f"({self.status})>"
        )


class ServiceOrderStatusChangeModel(TrackedBase):
    """One recorded status change of a service order."""

    __tablename__ = "service_order_status_changes"

    __table_args__ = (
        UniqueConstraint(
            "service_order_id", "position", name="uq_service_order_status_position",
        ),
    )

    service_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("service_orders.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_on: Mapped[date] = mapped_column(Date, nullable=False)
    changed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    service_order: Mapped["ServiceOrderModel"] = relationship(
        "ServiceOrderModel",
        back_populates="history",
    )

    def to_dto(self):
        from tenancy_modules.service_order.models import ServiceOrderStatus, StatusChange

        return StatusChange(
            status=ServiceOrderStatus(self.status),
            changed_on=self.changed_on,
            changed_by=self.changed_by,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, position: int, created_by_id: UUID) -> "ServiceOrderStatusChangeModel":
        return cls(
            position=position,
            status=dto.status.value,
            changed_on=dto.changed_on,
            changed_by=dto.changed_by,
            notes=dto.notes,
            created_by_id=created_by_id,
        )


# =============================================================================
# Expense
# =============================================================================


class ExpenseModel(TrackedBase):
    """
    A cost record.

    Guarantees:
        - ``source_service_order_id`` is unique when set
          (uq_expense_source_service_order).
    """

    __tablename__ = "expenses"

    __table_args__ = (
        UniqueConstraint("source_service_order_id", name="uq_expense_source_service_order"),
        Index("idx_expense_reservation", "reservation_id"),
        Index("idx_expense_date", "expense_date"),
    )

    expense_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reservation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reservation_reservations.id"),
        nullable=False,
    )
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    source_service_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("service_orders.id"),
        nullable=True,
    )
    responsible_party: Mapped[str] = mapped_column(String(50), default="owner")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from tenancy_modules.service_order.models import (
            Expense,
            ExpenseType,
            ResponsibleParty,
        )

        return Expense(
            id=self.id,
            expense_type=ExpenseType(self.expense_type),
            amount=self.amount,
            reservation_id=self.reservation_id,
            expense_date=self.expense_date,
            source_service_order_id=self.source_service_order_id,
            responsible_party=ResponsibleParty(self.responsible_party),
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ExpenseModel":
        return cls(
            id=dto.id,
            expense_type=dto.expense_type.value,
            amount=dto.amount,
            reservation_id=dto.reservation_id,
            expense_date=dto.expense_date,
            source_service_order_id=dto.source_service_order_id,
            responsible_party=dto.responsible_party.value,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.expense_type} amount={self.amount}>"
