"""
Payment Schedule Pure Calculation Functions.

Domain math for reservation schedules:
- Installment due dates from contract start/end and cadence
- Exact amount splitting (remainder on the last installment)
- Deposit as a separate one-time item
- Regeneration of the unpaid part of an existing schedule
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Sequence

from tenancy_kernel.domain.calendar import add_months, interval_months
from tenancy_kernel.exceptions import (
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidScheduleError,
)
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.reservation.models import (
    DepositItem,
    Installment,
    Payment,
    PaymentKind,
    PaymentSchedule,
    PaymentScheduleType,
    PaymentStatus,
)

logger = get_logger("modules.reservation.calculations")

DEFAULT_QUANTUM = Decimal("0.01")


def _to_schedule_type(schedule_type: str | Enum) -> PaymentScheduleType:
    value = schedule_type.value if isinstance(schedule_type, Enum) else schedule_type
    try:
        return PaymentScheduleType(value)
    except ValueError:
        raise InvalidScheduleError(str(value)) from None


def due_dates(
    start_date: date,
    end_date: date,
    schedule_type: str | Enum,
) -> list[date]:
    """
    Installment due dates: start plus whole intervals, while before end.

    Each date is computed from ``start_date`` directly so a 31st start does
    not drift to the 28th after February.
    """
    step = interval_months(schedule_type)
    dates: list[date] = []
    i = 0
    while True:
        due = add_months(start_date, i * step)
        if due >= end_date:
            break
        dates.append(due)
        i += 1
    return dates


def split_amount(
    total: Decimal,
    count: int,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> list[Decimal]:
    """
    Split ``total`` into ``count`` shares that sum to ``total`` exactly.

    Every share is ``total / count`` rounded down to ``quantum``; the last
    share absorbs the remainder.  A total smaller than one ``quantum`` per
    share is rejected rather than split into zero shares.
    """
    if count <= 0:
        return []
    if total < quantum * count:
        raise InvalidAmountError("total_amount", total)
    base = (total / count).quantize(quantum, rounding=ROUND_DOWN)
    shares = [base] * count
    shares[-1] = total - base * (count - 1)
    return shares


def generate_schedule(
    start_date: date,
    end_date: date,
    schedule_type: str | Enum,
    total_amount: Decimal,
    deposit_amount: Decimal | None = None,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> PaymentSchedule:
    """
    Build the installment schedule of a contract.

    Validation happens in order: date range, schedule type, total, deposit.
    A contract shorter than one interval gets a single installment for the
    full amount.  The total must cover at least one ``quantum`` per
    installment.
    """
    if end_date <= start_date:
        raise InvalidDateRangeError(start_date, end_date)
    kind = _to_schedule_type(schedule_type)
    if total_amount <= 0:
        raise InvalidAmountError("total_amount", total_amount)
    if deposit_amount is not None and deposit_amount <= 0:
        raise InvalidAmountError("deposit_amount", deposit_amount)

    dates = due_dates(start_date, end_date, kind)
    amounts = split_amount(total_amount, len(dates), quantum)

    installments = tuple(
        Installment(sequence=n, due_date=d, amount=a)
        for n, (d, a) in enumerate(zip(dates, amounts), start=1)
    )
    deposit = (
        DepositItem(due_date=start_date, amount=deposit_amount)
        if deposit_amount is not None
        else None
    )

    logger.debug("schedule_generated", extra={
        "schedule_type": kind.value,
        "installment_count": len(installments),
        "total_amount": str(total_amount),
        "has_deposit": deposit is not None,
    })
    return PaymentSchedule(schedule_type=kind, installments=installments, deposit=deposit)


def regenerate_unpaid(
    start_date: date,
    end_date: date,
    schedule_type: str | Enum,
    total_amount: Decimal,
    payments: Sequence[Payment],
    quantum: Decimal = DEFAULT_QUANTUM,
) -> tuple[Installment, ...]:
    """
    New installments replacing every unpaid installment of a schedule.

    Paid installments are history: their amounts are subtracted from the
    total and the remainder is spread over the due dates of the new schedule
    that fall strictly after the last paid due date.  When no such date is
    left, the remainder becomes a single installment on the final due date.
    A remainder too small for one ``quantum`` per date is spread over the
    earliest dates only.  Sequence numbers continue after the paid
    installments.
    """
    schedule = generate_schedule(start_date, end_date, schedule_type, total_amount, quantum=quantum)

    paid = sorted(
        (p for p in payments if p.is_installment and p.status == PaymentStatus.PAID),
        key=lambda p: (p.due_date, p.sequence),
    )
    if not paid:
        return schedule.installments

    remaining = total_amount - sum((p.amount for p in paid), Decimal("0"))
    if remaining <= 0:
        return ()

    last_paid_due = paid[-1].due_date
    next_sequence = max(p.sequence for p in paid) + 1
    dates = [d for d in schedule.due_dates if d > last_paid_due]
    if not dates:
        dates = [schedule.due_dates[-1]]
    dates = dates[:max(1, int(remaining / quantum))]

    amounts = split_amount(remaining, len(dates), quantum)
    return tuple(
        Installment(sequence=n, due_date=d, amount=a)
        for n, (d, a) in enumerate(zip(dates, amounts), start=next_sequence)
    )


def installment_total(payments: Sequence[Payment]) -> Decimal:
    """Sum of the amounts of non-cancelled installments."""
    return sum(
        (
            p.amount
            for p in payments
            if p.kind == PaymentKind.INSTALLMENT and p.status != PaymentStatus.CANCELLED
        ),
        Decimal("0"),
    )
