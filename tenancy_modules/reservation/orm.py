"""
Module: tenancy_modules.reservation.orm
Responsibility:
    SQLAlchemy ORM persistence models for the reservation module.  Maps the
    frozen dataclass DTOs from ``tenancy_modules.reservation.models`` to
    relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``
    (kernel DB base).

Invariants enforced:
    - All monetary fields use Decimal (maps to Numeric(38,9) via TrackedBase).
    - Enum fields stored as String(50) for safe serialization.
    - At most one reservation per unit has status ``active``
      (partial unique index ``uq_reservation_active_unit``).
    - Payments are never deleted; cancellation is a status.

Failure modes:
    - IntegrityError on a second active reservation for the same unit.
    - ForeignKey violation on a payment for an unknown reservation.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy_kernel.db.base import TrackedBase, UUIDString


def _value(field):
    return field.value if hasattr(field, "value") else field


# =============================================================================
# Reservation
# =============================================================================


class ReservationModel(TrackedBase):
    """
    A tenancy contract for one unit.

    Guarantees:
        - ``status`` is one of: pending, active, expired, cancelled.
        - Only one row per ``unit_id`` may be ``active``.
        - ``deposit_amount`` is NULL unless ``includes_deposit``.
    """

    __tablename__ = "reservation_reservations"

    __table_args__ = (
        Index(
            "uq_reservation_active_unit",
            "unit_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_reservation_unit", "unit_id"),
        Index("idx_reservation_tenant", "tenant_id"),
        Index("idx_reservation_status", "status"),
        Index("idx_reservation_end_date", "end_date"),
    )

    unit_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_type: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_schedule: Mapped[str] = mapped_column(String(50), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    includes_deposit: Mapped[bool] = mapped_column(Boolean, default=False)
    deposit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    deposit_payment_method: Mapped[str] = mapped_column(String(50), default="cash")
    deposit_status: Mapped[str] = mapped_column(String(50), default="unpaid")
    deposit_paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    deposit_returned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    deposit_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payments: Mapped[list["PaymentModel"]] = relationship(
        "PaymentModel",
        back_populates="reservation",
        order_by="PaymentModel.sequence",
        lazy="selectin",
    )

    def to_dto(self):
        from tenancy_modules.reservation.models import (
            ContractType,
            DepositPaymentMethod,
            DepositStatus,
            PaymentMethod,
            PaymentScheduleType,
            Reservation,
            ReservationStatus,
        )

        return Reservation(
            id=self.id,
            unit_id=self.unit_id,
            tenant_id=self.tenant_id,
            contract_type=ContractType(self.contract_type),
            start_date=self.start_date,
            end_date=self.end_date,
            payment_method=PaymentMethod(self.payment_method),
            payment_schedule=PaymentScheduleType(self.payment_schedule),
            total_amount=self.total_amount,
            status=ReservationStatus(self.status),
            includes_deposit=self.includes_deposit,
            deposit_amount=self.deposit_amount,
            deposit_payment_method=DepositPaymentMethod(self.deposit_payment_method),
            deposit_status=DepositStatus(self.deposit_status),
            deposit_paid_date=self.deposit_paid_date,
            deposit_returned_date=self.deposit_returned_date,
            deposit_notes=self.deposit_notes,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReservationModel":
        return cls(
            id=dto.id,
            unit_id=dto.unit_id,
            tenant_id=dto.tenant_id,
            contract_type=_value(dto.contract_type),
            start_date=dto.start_date,
            end_date=dto.end_date,
            payment_method=_value(dto.payment_method),
            payment_schedule=_value(dto.payment_schedule),
            total_amount=dto.total_amount,
            status=_value(dto.status),
            includes_deposit=dto.includes_deposit,
            deposit_amount=dto.deposit_amount,
            deposit_payment_method=_value(dto.deposit_payment_method),
            deposit_status=_value(dto.deposit_status),
            deposit_paid_date=dto.deposit_paid_date,
            deposit_returned_date=dto.deposit_returned_date,
            deposit_notes=dto.deposit_notes,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto, updated_by_id: UUID) -> None:
        """Copy the mutable fields of ``dto`` onto this row."""
        self.contract_type = _value(dto.contract_type)
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.payment_method = _value(dto.payment_method)
        self.payment_schedule = _value(dto.payment_schedule)
        self.total_amount = dto.total_amount
        self.status = _value(dto.status)
        self.includes_deposit = dto.includes_deposit
        self.deposit_amount = dto.deposit_amount
        self.deposit_payment_method = _value(dto.deposit_payment_method)
        self.deposit_status = _value(dto.deposit_status)
        self.deposit_paid_date = dto.deposit_paid_date
        self.deposit_returned_date = dto.deposit_returned_date
        self.deposit_notes = dto.deposit_notes
        self.notes = dto.notes
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return (
            f"<ReservationModel unit={self.unit_id} "
            f"({self.status} {self.start_date}..{self.end_date})>"
        )


# =============================================================================
# Payment
# =============================================================================


class PaymentModel(TrackedBase):
    """
    A scheduled installment or deposit of a reservation.

    Guarantees:
        - ``reservation_id`` references reservation_reservations.id.
        - ``kind`` is one of: installment, deposit.
        - ``due_date`` is the generated date; ``payment_date`` the actual one.
    """

    __tablename__ = "reservation_payments"

    __table_args__ = (
        Index("idx_payment_reservation", "reservation_id"),
        Index("idx_payment_status", "status"),
        Index("idx_payment_due_date", "due_date"),
    )

    reservation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reservation_reservations.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    kind: Mapped[str] = mapped_column(String(50), default="installment")
    sequence: Mapped[int] = mapped_column(default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_image_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    late_fee: Mapped[Decimal | None] = mapped_column(nullable=True)

    reservation: Mapped["ReservationModel"] = relationship(
        "ReservationModel",
        back_populates="payments",
    )

    def to_dto(self):
        from tenancy_modules.reservation.models import Payment, PaymentKind, PaymentStatus

        return Payment(
            id=self.id,
            reservation_id=self.reservation_id,
            amount=self.amount,
            due_date=self.due_date,
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            status=PaymentStatus(self.status),
            kind=PaymentKind(self.kind),
            sequence=self.sequence,
            notes=self.notes,
            check_image_ref=self.check_image_ref,
            late_fee=self.late_fee,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PaymentModel":
        return cls(
            id=dto.id,
            reservation_id=dto.reservation_id,
            amount=dto.amount,
            due_date=dto.due_date,
            payment_date=dto.payment_date,
            payment_method=dto.payment_method,
            status=_value(dto.status),
            kind=_value(dto.kind),
            sequence=dto.sequence,
            notes=dto.notes,
            check_image_ref=dto.check_image_ref,
            late_fee=dto.late_fee,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto, updated_by_id: UUID) -> None:
        self.amount = dto.amount
        self.due_date = dto.due_date
        self.payment_date = dto.payment_date
        self.payment_method = dto.payment_method
        self.status = _value(dto.status)
        self.notes = dto.notes
        self.check_image_ref = dto.check_image_ref
        self.late_fee = dto.late_fee
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return (
            f"<PaymentModel #{self.sequence} {self.kind} "
            f"amount={self.amount} due={self.due_date} {self.status}>"
        )
