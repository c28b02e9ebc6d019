"""
Reservation/Payment Consistency Checker.

Validates the recorded payments of a reservation against the rules of its
generated schedule.  The checker only reports; repairing a schedule is the
explicit ``ReservationService.repair_schedule`` operation.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from tenancy_kernel.exceptions import ScheduleInconsistentError
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.reservation.calculations import installment_total
from tenancy_modules.reservation.models import (
    Payment,
    PaymentKind,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)

logger = get_logger("modules.reservation.consistency")

DEFAULT_TOLERANCE = Decimal("0.01")


class ViolationCode:
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    DUPLICATE_PENDING_DUE_DATE = "DUPLICATE_PENDING_DUE_DATE"
    FOREIGN_PAYMENT = "FOREIGN_PAYMENT"
    DUE_AFTER_END = "DUE_AFTER_END"
    DEPOSIT_MISMATCH = "DEPOSIT_MISMATCH"


@dataclass(frozen=True)
class ConsistencyViolation:
    code: str
    message: str
    payment_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class ConsistencyReport:
    reservation_id: UUID
    checked_on: date
    violations: tuple[ConsistencyViolation, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.violations

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(v.code for v in self.violations)


def effective_status(payment: Payment, today: date) -> PaymentStatus:
    """
    Status a payment should be shown with on ``today``.

    A pending payment whose due date is strictly before today reads as
    delayed; an explicitly delayed payment stays delayed.
    """
    if payment.status == PaymentStatus.DELAYED:
        return PaymentStatus.DELAYED
    if payment.status == PaymentStatus.PENDING and payment.due_date < today:
        return PaymentStatus.DELAYED
    return payment.status


def check_consistency(
    reservation: Reservation,
    payments: Sequence[Payment],
    today: date,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ConsistencyReport:
    """Check recorded payments against the reservation's schedule rules."""
    violations: list[ConsistencyViolation] = []

    foreign = [p for p in payments if p.reservation_id != reservation.id]
    if foreign:
        violations.append(ConsistencyViolation(
            ViolationCode.FOREIGN_PAYMENT,
            f"{len(foreign)} payment(s) belong to another reservation",
            tuple(p.id for p in foreign),
        ))
    own = [p for p in payments if p.reservation_id == reservation.id]

    # Cancelled contracts keep only their paid history.
    cancelled = reservation.status == ReservationStatus.CANCELLED

    live = installment_total(own)
    if not cancelled and abs(live - reservation.total_amount) > tolerance:
        violations.append(ConsistencyViolation(
            ViolationCode.TOTAL_MISMATCH,
            f"installments sum to {live}, contract total is {reservation.total_amount}",
        ))

    pending_by_due: dict[date, list[Payment]] = defaultdict(list)
    for p in own:
        if p.is_installment and p.status == PaymentStatus.PENDING:
            pending_by_due[p.due_date].append(p)
    for due, group in sorted(pending_by_due.items()):
        if len(group) > 1:
            violations.append(ConsistencyViolation(
                ViolationCode.DUPLICATE_PENDING_DUE_DATE,
                f"{len(group)} pending installments due on {due.isoformat()}",
                tuple(p.id for p in group),
            ))

    late = [
        p for p in own
        if p.is_installment
        and p.status != PaymentStatus.CANCELLED
        and p.due_date >= reservation.end_date
    ]
    if late:
        violations.append(ConsistencyViolation(
            ViolationCode.DUE_AFTER_END,
            f"{len(late)} installment(s) due on or after the end date",
            tuple(p.id for p in late),
        ))

    deposits = [
        p for p in own
        if p.kind == PaymentKind.DEPOSIT and p.status != PaymentStatus.CANCELLED
    ]
    expected_deposits = 1 if reservation.includes_deposit else 0
    if not cancelled and len(deposits) != expected_deposits:
        violations.append(ConsistencyViolation(
            ViolationCode.DEPOSIT_MISMATCH,
            f"expected {expected_deposits} deposit payment(s), found {len(deposits)}",
            tuple(p.id for p in deposits),
        ))

    report = ConsistencyReport(
        reservation_id=reservation.id,
        checked_on=today,
        violations=tuple(violations),
    )
    if not report.is_consistent:
        logger.warning("schedule_inconsistent", extra={
            "reservation_id": str(reservation.id),
            "violation_codes": list(report.codes),
        })
    return report


def assert_consistent(report: ConsistencyReport) -> None:
    if not report.is_consistent:
        raise ScheduleInconsistentError(
            report.reservation_id,
            [f"{v.code}: {v.message}" for v in report.violations],
        )
