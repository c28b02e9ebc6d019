"""
Reservation Lifecycle Planner (``tenancy_modules.reservation.lifecycle``).

Responsibility
--------------
Pure functions that decide what a lifecycle step does: which status the
reservation moves to and which payments are created, cancelled or
superseded as a side effect.  Callers (``ReservationService``) apply the
returned ``TransitionOutcome`` in a single transaction.

Architecture position
---------------------
**Modules layer** -- pure functions over frozen value objects.  ZERO I/O,
no clock access: "today" is always a parameter.

Invariants enforced
-------------------
* Only transitions declared in ``RESERVATION_LIFECYCLE_WORKFLOW`` fire.
* At most one reservation per unit is ``active``: activation or active
  creation fails with ``UnitAlreadyReservedError`` and plans nothing.
* Cancellation cancels ``pending`` payments only; ``paid`` and stored
  ``delayed`` payments are left as they are.
* Expiry never creates or cancels payments.
* Amendments regenerate only installments that are not ``paid``.
* Amendments touch only ``AMENDABLE_FIELDS``; deposit terms are frozen once
  the deposit has been paid.

Failure modes
-------------
* ``InvalidTransitionError`` -- no such transition from the current state.
* ``UnitAlreadyReservedError`` -- single-active-per-unit violated.
* ``FieldNotAmendableError`` -- an edit names a field outside
  ``AMENDABLE_FIELDS`` (status, unit, tenant, deposit bookkeeping).
* ``InvalidDateRangeError`` / ``InvalidAmountError`` /
  ``InvalidScheduleError`` -- amended terms are invalid.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from tenancy_kernel.domain.workflow import Workflow
from tenancy_kernel.exceptions import (
    FieldNotAmendableError,
    InvalidTransitionError,
    UnitAlreadyReservedError,
)
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.reservation.calculations import (
    DEFAULT_QUANTUM,
    _to_schedule_type,
    generate_schedule,
    regenerate_unpaid,
)
from tenancy_modules.reservation.models import (
    DepositStatus,
    Payment,
    PaymentChange,
    PaymentKind,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    TransitionOutcome,
)
from tenancy_modules.reservation.workflows import (
    CANCEL_PENDING_PAYMENTS,
    DEPOSIT_WORKFLOW,
    PAYMENT_WORKFLOW,
    RESERVATION_LIFECYCLE_WORKFLOW,
    UNIT_AVAILABLE,
)

logger = get_logger("modules.reservation.lifecycle")

SUPERSEDED_NOTE = "superseded by schedule regeneration"
CANCELLED_WITH_RESERVATION_NOTE = "cancelled with reservation"
DEPOSIT_REMOVED_NOTE = "deposit removed from reservation"

AMENDABLE_FIELDS = frozenset({
    "contract_type",
    "start_date",
    "end_date",
    "payment_method",
    "payment_schedule",
    "total_amount",
    "includes_deposit",
    "deposit_amount",
    "deposit_payment_method",
    "notes",
})

_SCHEDULE_FIELDS = ("start_date", "end_date", "payment_schedule", "total_amount")


def _status(value: str | Enum, enum_cls: type[Enum]):
    return value if isinstance(value, enum_cls) else enum_cls(value)


def ensure_unit_available(
    reservation: Reservation,
    unit_reservations: Iterable[Reservation],
) -> None:
    """Raise if another reservation of the same unit is already active."""
    for other in unit_reservations:
        if (
            other.id != reservation.id
            and other.unit_id == reservation.unit_id
            and other.status == ReservationStatus.ACTIVE
        ):
            raise UnitAlreadyReservedError(reservation.unit_id, other.id)


def _require_transition(workflow: Workflow, entity: str, from_state: str, to_state: str):
    transition = workflow.find_transition(from_state, to_state)
    if transition is None:
        logger.info("transition_refused", extra={
            "entity": entity,
            "from_state": from_state,
            "to_state": to_state,
            "allowed_targets": list(workflow.allowed_targets(from_state)),
        })
        raise InvalidTransitionError(entity, from_state, to_state)
    return transition


def plan_creation(
    reservation: Reservation,
    unit_reservations: Iterable[Reservation] = (),
    quantum: Decimal = DEFAULT_QUANTUM,
) -> TransitionOutcome:
    """
    Plan the creation of a reservation and its payment schedule.

    Reservations start ``pending`` or ``active``; an active start is held to
    the single-active-per-unit rule.
    """
    if reservation.status.value not in RESERVATION_LIFECYCLE_WORKFLOW.initial_states:
        raise InvalidTransitionError("reservation", "(none)", reservation.status.value)
    if reservation.status == ReservationStatus.ACTIVE:
        ensure_unit_available(reservation, unit_reservations)

    schedule = generate_schedule(
        reservation.start_date,
        reservation.end_date,
        reservation.payment_schedule,
        reservation.total_amount,
        reservation.deposit_amount if reservation.includes_deposit else None,
        quantum=quantum,
    )

    changes = [
        PaymentChange(
            payment_id=None,
            status=PaymentStatus.PENDING,
            amount=i.amount,
            due_date=i.due_date,
            sequence=i.sequence,
        )
        for i in schedule.installments
    ]
    if schedule.deposit is not None:
        changes.append(PaymentChange(
            payment_id=None,
            status=PaymentStatus.PENDING,
            amount=schedule.deposit.amount,
            due_date=schedule.deposit.due_date,
            sequence=0,
            kind=PaymentKind.DEPOSIT,
        ))

    return TransitionOutcome(
        reservation=reservation,
        payment_changes=tuple(changes),
        regenerated=True,
    )


def transition_reservation(
    reservation: Reservation,
    target_status: str | ReservationStatus,
    payments: Sequence[Payment] = (),
    unit_reservations: Iterable[Reservation] = (),
    today: date | None = None,
) -> TransitionOutcome:
    """
    Plan a status change of a reservation.

    Activation checks the unit's other reservations; cancellation cancels
    every ``pending`` payment; expiry only changes the status.  Expiring
    before ``end_date`` is allowed as an explicit override and is logged.
    """
    target = _status(target_status, ReservationStatus)
    transition = _require_transition(
        RESERVATION_LIFECYCLE_WORKFLOW, "reservation", reservation.status.value, target.value
    )

    if transition.guard == UNIT_AVAILABLE:
        ensure_unit_available(reservation, unit_reservations)

    if target == ReservationStatus.EXPIRED and today is not None and today < reservation.end_date:
        logger.info("reservation_expiry_override", extra={
            "reservation_id": str(reservation.id),
            "end_date": reservation.end_date.isoformat(),
            "today": today.isoformat(),
        })

    changes: tuple[PaymentChange, ...] = ()
    if transition.side_effect == CANCEL_PENDING_PAYMENTS:
        changes = tuple(
            PaymentChange(
                payment_id=p.id,
                status=PaymentStatus.CANCELLED,
                kind=p.kind,
                notes=CANCELLED_WITH_RESERVATION_NOTE,
            )
            for p in payments
            if p.reservation_id == reservation.id and p.status == PaymentStatus.PENDING
        )

    logger.debug("reservation_transition_planned", extra={
        "reservation_id": str(reservation.id),
        "from_state": reservation.status.value,
        "to_state": target.value,
        "action": transition.action,
        "payment_changes": len(changes),
    })
    return TransitionOutcome(
        reservation=replace(reservation, status=target),
        payment_changes=changes,
    )


def is_due_for_expiry(reservation: Reservation, today: date) -> bool:
    """True when the reservation is pending/active and its end date is reached."""
    return (
        reservation.status in (ReservationStatus.PENDING, ReservationStatus.ACTIVE)
        and today >= reservation.end_date
    )


def expire_if_due(reservation: Reservation, today: date) -> TransitionOutcome | None:
    """Plan expiry when the end date has been reached, else None."""
    if not is_due_for_expiry(reservation, today):
        return None
    return transition_reservation(reservation, ReservationStatus.EXPIRED, today=today)


def amend_reservation(
    reservation: Reservation,
    payments: Sequence[Payment],
    quantum: Decimal = DEFAULT_QUANTUM,
    **updates,
) -> TransitionOutcome:
    """
    Plan an edit of a reservation that keeps its status.

    Only ``AMENDABLE_FIELDS`` may change.  When a schedule-shaping field
    (dates, cadence, total) changes, every unpaid installment is superseded
    (cancelled) and replaced by a regenerated one; paid installments are kept
    as history.  Deposit edits add, resize or cancel the pending deposit
    payment; a pending deposit also follows a moved start date.
    """
    if reservation.status == ReservationStatus.CANCELLED:
        raise InvalidTransitionError("reservation", reservation.status.value, "amended")
    not_amendable = set(updates) - AMENDABLE_FIELDS
    if not_amendable:
        raise FieldNotAmendableError(not_amendable)
    if "payment_schedule" in updates:
        updates["payment_schedule"] = _to_schedule_type(updates["payment_schedule"])
    if updates.get("includes_deposit") is False and "deposit_amount" not in updates:
        updates["deposit_amount"] = None

    amended = replace(reservation, **updates)
    deposit_changes = _plan_deposit_amendment(reservation, amended, payments)
    reshaped = any(
        getattr(amended, name) != getattr(reservation, name) for name in _SCHEDULE_FIELDS
    )
    if not reshaped:
        return TransitionOutcome(reservation=amended, payment_changes=deposit_changes)

    outcome = plan_regeneration(amended, payments, quantum=quantum)
    return replace(outcome, payment_changes=outcome.payment_changes + deposit_changes)


def _plan_deposit_amendment(
    reservation: Reservation,
    amended: Reservation,
    payments: Sequence[Payment],
) -> tuple[PaymentChange, ...]:
    """
    Deposit payment changes that keep the deposit row in step with an edit.

    Only a pending deposit row is ever touched.  Changing the deposit terms
    once the deposit has been paid, delayed or returned is refused.
    """
    deposits = [
        p for p in payments
        if p.reservation_id == reservation.id
        and p.kind == PaymentKind.DEPOSIT
        and p.status != PaymentStatus.CANCELLED
    ]
    terms_changed = (
        amended.includes_deposit != reservation.includes_deposit
        or amended.deposit_amount != reservation.deposit_amount
    )
    if terms_changed:
        if reservation.deposit_status != DepositStatus.UNPAID:
            raise InvalidTransitionError("deposit", reservation.deposit_status.value, "amended")
        for p in deposits:
            if p.status != PaymentStatus.PENDING:
                raise InvalidTransitionError("deposit", p.status.value, "amended")

    pending = [p for p in deposits if p.status == PaymentStatus.PENDING]
    if not amended.includes_deposit:
        return tuple(
            PaymentChange(
                payment_id=p.id,
                status=PaymentStatus.CANCELLED,
                kind=PaymentKind.DEPOSIT,
                notes=DEPOSIT_REMOVED_NOTE,
            )
            for p in pending
        )
    if not deposits:
        return (PaymentChange(
            payment_id=None,
            status=PaymentStatus.PENDING,
            amount=amended.deposit_amount,
            due_date=amended.start_date,
            sequence=0,
            kind=PaymentKind.DEPOSIT,
        ),)
    return tuple(
        PaymentChange(
            payment_id=p.id,
            status=p.status,
            amount=amended.deposit_amount,
            due_date=amended.start_date,
            kind=PaymentKind.DEPOSIT,
        )
        for p in pending
        if p.amount != amended.deposit_amount or p.due_date != amended.start_date
    )


def plan_regeneration(
    reservation: Reservation,
    payments: Sequence[Payment],
    quantum: Decimal = DEFAULT_QUANTUM,
) -> TransitionOutcome:
    """
    Plan the replacement of every unpaid installment from the current terms.

    Used by amendments and by explicit schedule repair.  Deposits are left
    alone.
    """
    if reservation.status == ReservationStatus.CANCELLED:
        raise InvalidTransitionError("reservation", reservation.status.value, "regenerated")

    own = [p for p in payments if p.reservation_id == reservation.id]
    installments = regenerate_unpaid(
        reservation.start_date,
        reservation.end_date,
        reservation.payment_schedule,
        reservation.total_amount,
        own,
        quantum=quantum,
    )

    changes: list[PaymentChange] = [
        PaymentChange(
            payment_id=p.id,
            status=PaymentStatus.CANCELLED,
            notes=SUPERSEDED_NOTE,
        )
        for p in own
        if p.is_installment and p.status in (PaymentStatus.PENDING, PaymentStatus.DELAYED)
    ]
    changes.extend(
        PaymentChange(
            payment_id=None,
            status=PaymentStatus.PENDING,
            amount=i.amount,
            due_date=i.due_date,
            sequence=i.sequence,
        )
        for i in installments
    )

    logger.debug("schedule_regeneration_planned", extra={
        "reservation_id": str(reservation.id),
        "superseded": len(changes) - len(installments),
        "regenerated": len(installments),
    })
    return TransitionOutcome(reservation=reservation, payment_changes=tuple(changes), regenerated=True)


def transition_payment(
    payment: Payment,
    target_status: str | PaymentStatus,
    *,
    paid_on: date | None = None,
    amount: Decimal | None = None,
    late_fee: Decimal | None = None,
    notes: str | None = None,
    check_image_ref: str | None = None,
    payment_method: str | None = None,
) -> Payment:
    """
    Apply a recording action to one payment.

    ``paid`` sets the actual payment date.  A late fee can only be set by
    marking the payment ``delayed``; a later ``paid`` keeps it.
    """
    target = _status(target_status, PaymentStatus)
    _require_transition(PAYMENT_WORKFLOW, "payment", payment.status.value, target.value)

    changes: dict = {"status": target}
    if target == PaymentStatus.PAID and paid_on is not None:
        changes["payment_date"] = paid_on
    if amount is not None:
        changes["amount"] = amount
    if target == PaymentStatus.DELAYED:
        changes["late_fee"] = late_fee
    if notes is not None:
        changes["notes"] = notes
    if check_image_ref is not None:
        changes["check_image_ref"] = check_image_ref
    if payment_method is not None:
        changes["payment_method"] = payment_method
    return replace(payment, **changes)


def transition_deposit(
    reservation: Reservation,
    target_status: str | DepositStatus,
    on: date,
    notes: str | None = None,
) -> Reservation:
    """Move the deposit of a reservation to ``paid`` or ``returned``."""
    target = _status(target_status, DepositStatus)
    if not reservation.includes_deposit:
        raise InvalidTransitionError("deposit", "none", target.value)
    _require_transition(DEPOSIT_WORKFLOW, "deposit", reservation.deposit_status.value, target.value)

    changes: dict = {"deposit_status": target}
    if target == DepositStatus.PAID:
        changes["deposit_paid_date"] = on
    else:
        changes["deposit_returned_date"] = on
    if notes is not None:
        changes["deposit_notes"] = notes
    return replace(reservation, **changes)
