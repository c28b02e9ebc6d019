"""
Reservation Domain Models (``tenancy_modules.reservation.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of the reservation
lifecycle: reservations, payments, generated schedules and their
installments, and the one-time deposit item.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by the
schedule generator, lifecycle planner, consistency checker and
``ReservationService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``Reservation``: ``end_date > start_date``; ``total_amount > 0``;
  ``deposit_amount`` is set and positive iff ``includes_deposit``.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
* Construction that violates a reservation invariant raises
  ``InvalidDateRangeError`` or ``InvalidAmountError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from tenancy_kernel.exceptions import InvalidAmountError, InvalidDateRangeError
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.reservation.models")


class ContractType(Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


class PaymentMethod(Enum):
    CASH = "cash"
    CHECKS = "checks"


class PaymentScheduleType(Enum):
    """Installment cadence of a reservation."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    TRIANNUAL = "triannual"
    BIANNUAL = "biannual"
    ANNUAL = "annual"


class ReservationStatus(Enum):
    """Reservation lifecycle states."""
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class DepositPaymentMethod(Enum):
    CASH = "cash"
    CHECK = "check"


class DepositStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    RETURNED = "returned"


class PaymentStatus(Enum):
    """Stored payment states.  ``DELAYED`` is only stored by an explicit action."""
    PENDING = "pending"
    PAID = "paid"
    DELAYED = "delayed"
    CANCELLED = "cancelled"


class PaymentKind(Enum):
    INSTALLMENT = "installment"
    DEPOSIT = "deposit"


@dataclass(frozen=True)
class Reservation:
    """A tenancy contract binding a tenant to a unit for a period."""
    id: UUID
    unit_id: UUID
    tenant_id: UUID
    contract_type: ContractType
    start_date: date
    end_date: date
    payment_method: PaymentMethod
    payment_schedule: PaymentScheduleType
    total_amount: Decimal
    status: ReservationStatus = ReservationStatus.PENDING
    includes_deposit: bool = False
    deposit_amount: Decimal | None = None
    deposit_payment_method: DepositPaymentMethod = DepositPaymentMethod.CASH
    deposit_status: DepositStatus = DepositStatus.UNPAID
    deposit_paid_date: date | None = None
    deposit_returned_date: date | None = None
    deposit_notes: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.end_date <= self.start_date:
            raise InvalidDateRangeError(self.start_date, self.end_date)
        if self.total_amount <= 0:
            raise InvalidAmountError("total_amount", self.total_amount)
        if self.includes_deposit:
            if self.deposit_amount is None or self.deposit_amount <= 0:
                raise InvalidAmountError("deposit_amount", self.deposit_amount)
        elif self.deposit_amount is not None:
            raise InvalidAmountError("deposit_amount", self.deposit_amount)


@dataclass(frozen=True)
class Payment:
    """
    A payment record of a reservation.

    ``due_date`` is the scheduled date and never changes once generated;
    ``payment_date`` starts equal to it and becomes the actual date when the
    payment is recorded as paid.
    """
    id: UUID
    reservation_id: UUID
    amount: Decimal
    due_date: date
    payment_date: date
    payment_method: str
    status: PaymentStatus = PaymentStatus.PENDING
    kind: PaymentKind = PaymentKind.INSTALLMENT
    sequence: int = 0
    notes: str | None = None
    check_image_ref: str | None = None
    late_fee: Decimal | None = None

    @property
    def is_installment(self) -> bool:
        return self.kind == PaymentKind.INSTALLMENT


@dataclass(frozen=True)
class Installment:
    """One scheduled due payment produced by the generator."""
    sequence: int
    due_date: date
    amount: Decimal


@dataclass(frozen=True)
class DepositItem:
    """The one-time deposit, due on the contract start date."""
    due_date: date
    amount: Decimal


@dataclass(frozen=True)
class PaymentSchedule:
    """The generated schedule: periodic installments plus the optional deposit."""
    schedule_type: PaymentScheduleType
    installments: tuple[Installment, ...]
    deposit: DepositItem | None = None

    @property
    def total(self) -> Decimal:
        return sum((i.amount for i in self.installments), Decimal("0"))

    @property
    def due_dates(self) -> tuple[date, ...]:
        return tuple(i.due_date for i in self.installments)


@dataclass(frozen=True)
class PaymentChange:
    """
    A change the lifecycle planner wants applied to a stored payment.

    ``payment_id`` is None for a newly generated payment.
    """
    payment_id: UUID | None
    status: PaymentStatus
    amount: Decimal | None = None
    due_date: date | None = None
    sequence: int | None = None
    kind: PaymentKind = PaymentKind.INSTALLMENT
    notes: str | None = None


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of planning a lifecycle step: the new reservation and payment changes."""
    reservation: Reservation
    payment_changes: tuple[PaymentChange, ...] = field(default_factory=tuple)
    regenerated: bool = False
