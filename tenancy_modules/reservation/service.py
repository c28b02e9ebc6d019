"""
Reservation Module Service (``tenancy_modules.reservation.service``).

Responsibility
--------------
Orchestrates reservation operations -- creation with schedule generation,
activation, expiry, cancellation, amendment, payment recording, deposit
handling, consistency checks and schedule repair -- by delegating decisions
to the pure ``lifecycle`` / ``calculations`` / ``consistency`` functions and
persisting the resulting ``TransitionOutcome`` through the ORM.

Architecture position
---------------------
**Modules layer** -- ``ReservationService`` is the sole public entry point
for reservation writes.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` on failure or exception).
* Local validation happens before any store access.
* Activation locks the unit's reservations (``SELECT ... FOR UPDATE`` where
  the store supports it); the partial unique index is the last line.
* Generated schedule shape is only written here; payments are never deleted.

Failure modes
-------------
* ``ValidationError`` subclasses -- rejected before the store is touched.
* ``InvalidTransitionError`` / ``UnitAlreadyReservedError`` -- session
  rolled back, nothing persisted.
* ``RemoteFailureError`` -- any other store failure; session rolled back.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.exceptions import (
    InvalidAmountError,
    PaymentNotFoundError,
    RemoteFailureError,
    ReservationNotFoundError,
    TenancyError,
    UnitAlreadyReservedError,
)
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.reservation.calculations import _to_schedule_type, generate_schedule
from tenancy_modules.reservation.config import ReservationConfig
from tenancy_modules.reservation.consistency import (
    ConsistencyReport,
    check_consistency,
    effective_status,
)
from tenancy_modules.reservation.lifecycle import (
    amend_reservation,
    expire_if_due,
    plan_creation,
    plan_regeneration,
    transition_deposit,
    transition_payment,
    transition_reservation,
)
from tenancy_modules.reservation.models import (
    ContractType,
    DepositPaymentMethod,
    DepositStatus,
    Payment,
    PaymentKind,
    PaymentMethod,
    PaymentSchedule,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    TransitionOutcome,
)
from tenancy_modules.reservation.orm import PaymentModel, ReservationModel

logger = get_logger("modules.reservation.service")


class ReservationService:
    """
    Reservation lifecycle and payment recording against the store.

    Guarantees
    ----------
    * Clock is injectable for deterministic testing; "today" is always
      ``clock.today()``.
    * Every write method returns frozen DTOs read back from the committed
      rows.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReservationConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReservationConfig.with_defaults()

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        unit_id: UUID | None = None,
    ) -> Iterator[None]:
        """Commit on success; roll back and translate store errors on failure."""
        try:
            yield
            self._session.commit()
        except TenancyError:
            self._session.rollback()
            raise
        except IntegrityError as exc:
            self._session.rollback()
            if unit_id is not None:
                logger.warning("reservation_unit_conflict", extra={
                    "operation": operation,
                    "unit_id": str(unit_id),
                })
                raise UnitAlreadyReservedError(unit_id) from exc
            raise RemoteFailureError(operation, exc) from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error("reservation_store_failure", extra={
                "operation": operation,
                "error": str(exc),
            })
            raise RemoteFailureError(operation, exc) from exc
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self, reservation_id: UUID, for_update: bool = False) -> ReservationModel:
        stmt = select(ReservationModel).where(ReservationModel.id == reservation_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise ReservationNotFoundError(reservation_id)
        return row

    def _load_payment(self, payment_id: UUID, for_update: bool = False) -> PaymentModel:
        stmt = select(PaymentModel).where(PaymentModel.id == payment_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise PaymentNotFoundError(payment_id)
        return row

    def _payment_rows(self, reservation_id: UUID) -> list[PaymentModel]:
        return list(self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.reservation_id == reservation_id)
            .order_by(PaymentModel.kind, PaymentModel.sequence, PaymentModel.due_date)
        ).scalars())

    def _unit_reservations(self, unit_id: UUID, for_update: bool = False) -> list[Reservation]:
        stmt = select(ReservationModel).where(ReservationModel.unit_id == unit_id)
        if for_update:
            stmt = stmt.with_for_update()
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    def _apply(self, row: ReservationModel, outcome: TransitionOutcome, actor_id: UUID) -> None:
        """Write a planned outcome onto the reservation row and its payments."""
        reservation = outcome.reservation
        row.apply_dto(reservation, updated_by_id=actor_id)

        existing = {p.id: p for p in self._payment_rows(reservation.id)} if outcome.payment_changes else {}
        for change in outcome.payment_changes:
            if change.payment_id is None:
                method = (
                    reservation.deposit_payment_method.value
                    if change.kind == PaymentKind.DEPOSIT
                    else reservation.payment_method.value
                )
                self._session.add(PaymentModel.from_dto(
                    Payment(
                        id=uuid4(),
                        reservation_id=reservation.id,
                        amount=change.amount,
                        due_date=change.due_date,
                        payment_date=change.due_date,
                        payment_method=method,
                        status=change.status,
                        kind=change.kind,
                        sequence=change.sequence or 0,
                        notes=change.notes,
                    ),
                    created_by_id=actor_id,
                ))
                continue

            payment_row = existing[change.payment_id]
            payment_row.status = change.status.value
            if change.amount is not None:
                payment_row.amount = change.amount
            if change.due_date is not None:
                payment_row.due_date = change.due_date
                payment_row.payment_date = change.due_date
            if change.notes is not None:
                payment_row.notes = change.notes
            payment_row.updated_by_id = actor_id

        self._session.flush()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_reservation(
        self,
        unit_id: UUID,
        tenant_id: UUID,
        contract_type: str | ContractType,
        start_date: date,
        end_date: date,
        payment_method: str | PaymentMethod,
        payment_schedule: str,
        total_amount: Decimal,
        actor_id: UUID,
        status: str | ReservationStatus = ReservationStatus.PENDING,
        includes_deposit: bool = False,
        deposit_amount: Decimal | None = None,
        deposit_payment_method: str | DepositPaymentMethod = DepositPaymentMethod.CASH,
        notes: str | None = None,
    ) -> tuple[Reservation, tuple[Payment, ...]]:
        """
        Create a reservation and generate its payment schedule atomically.

        A reservation created ``active`` is held to the single-active-per-unit
        rule exactly like an activation.
        """
        reservation = Reservation(
            id=uuid4(),
            unit_id=unit_id,
            tenant_id=tenant_id,
            contract_type=ContractType(contract_type),
            start_date=start_date,
            end_date=end_date,
            payment_method=PaymentMethod(payment_method),
            payment_schedule=_to_schedule_type(payment_schedule),
            total_amount=Decimal(str(total_amount)),
            status=ReservationStatus(status),
            includes_deposit=includes_deposit,
            deposit_amount=Decimal(str(deposit_amount)) if deposit_amount is not None else None,
            deposit_payment_method=DepositPaymentMethod(deposit_payment_method),
            notes=notes,
        )
        # Schedule validity is checked before the store is touched.
        plan_creation(reservation, (), quantum=self._config.amount_quantum)

        with LogContext.bind(reservation_id=reservation.id, unit_id=unit_id, actor_id=actor_id):
            with self._unit_of_work("create_reservation", unit_id=(
                unit_id if reservation.status == ReservationStatus.ACTIVE else None
            )):
                unit_reservations = (
                    self._unit_reservations(unit_id, for_update=True)
                    if reservation.status == ReservationStatus.ACTIVE
                    else ()
                )
                outcome = plan_creation(
                    reservation, unit_reservations, quantum=self._config.amount_quantum,
                )
                row = ReservationModel.from_dto(reservation, created_by_id=actor_id)
                self._session.add(row)
                self._session.flush()
                self._apply(row, outcome, actor_id)

            logger.info("reservation_created", extra={
                "status": reservation.status.value,
                "payment_schedule": reservation.payment_schedule.value,
                "total_amount": str(reservation.total_amount),
                "installment_count": sum(
                    1 for c in outcome.payment_changes if c.kind == PaymentKind.INSTALLMENT
                ),
                "includes_deposit": reservation.includes_deposit,
            })
        return self.get_reservation(reservation.id), self.list_payments(reservation.id)

    def preview_schedule(
        self,
        start_date: date,
        end_date: date,
        payment_schedule: str,
        total_amount: Decimal,
        deposit_amount: Decimal | None = None,
    ) -> PaymentSchedule:
        """Generate a schedule without persisting anything."""
        return generate_schedule(
            start_date,
            end_date,
            payment_schedule,
            total_amount,
            deposit_amount,
            quantum=self._config.amount_quantum,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def transition(
        self,
        reservation_id: UUID,
        target_status: str | ReservationStatus,
        actor_id: UUID,
    ) -> Reservation:
        """Move a reservation to ``target_status`` with its side effects."""
        target = ReservationStatus(target_status)
        unit_id = self.get_reservation(reservation_id).unit_id
        with LogContext.bind(reservation_id=reservation_id, unit_id=unit_id, actor_id=actor_id):
            with self._unit_of_work("transition_reservation", unit_id=(
                unit_id if target == ReservationStatus.ACTIVE else None
            )):
                row = self._load(reservation_id, for_update=True)
                current = row.to_dto()
                unit_reservations = (
                    self._unit_reservations(current.unit_id, for_update=True)
                    if target == ReservationStatus.ACTIVE
                    else ()
                )
                payments = [p.to_dto() for p in self._payment_rows(reservation_id)]
                outcome = transition_reservation(
                    current,
                    target,
                    payments,
                    unit_reservations,
                    today=self._clock.today(),
                )
                self._apply(row, outcome, actor_id)

            logger.info("reservation_transitioned", extra={
                "from_state": current.status.value,
                "to_state": target.value,
                "payments_cancelled": len(outcome.payment_changes),
            })
        return self.get_reservation(reservation_id)

    def activate_reservation(self, reservation_id: UUID, actor_id: UUID) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.ACTIVE, actor_id)

    def expire_reservation(self, reservation_id: UUID, actor_id: UUID) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.EXPIRED, actor_id)

    def cancel_reservation(self, reservation_id: UUID, actor_id: UUID) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.CANCELLED, actor_id)

    def expire_overdue(self, actor_id: UUID) -> list[Reservation]:
        """
        Expire every pending/active reservation whose end date is reached.

        One transaction for the whole sweep.
        """
        today = self._clock.today()
        expired: list[Reservation] = []
        with self._unit_of_work("expire_overdue"):
            rows = self._session.execute(
                select(ReservationModel)
                .where(
                    ReservationModel.status.in_(
                        [ReservationStatus.PENDING.value, ReservationStatus.ACTIVE.value]
                    ),
                    ReservationModel.end_date <= today,
                )
                .with_for_update()
            ).scalars().all()
            for row in rows:
                outcome = expire_if_due(row.to_dto(), today)
                if outcome is None:
                    continue
                self._apply(row, outcome, actor_id)
                expired.append(outcome.reservation)

        logger.info("reservation_expiry_sweep", extra={
            "today": today.isoformat(),
            "expired_count": len(expired),
        })
        return expired

    def amend_reservation(self, reservation_id: UUID, actor_id: UUID, **updates) -> Reservation:
        """
        Edit reservation terms.

        Changing dates, cadence or total regenerates the unpaid installments.
        """
        return self.update_reservation(reservation_id, actor_id, **updates)

    def update_reservation(
        self,
        reservation_id: UUID,
        actor_id: UUID,
        status: str | ReservationStatus | None = None,
        **updates,
    ) -> Reservation:
        """
        Edit reservation terms and optionally move its status, atomically.

        Field changes are planned first; a ``status`` different from the
        current one is then planned against the amended reservation and the
        payments the edit left behind.  Either step failing rolls back both.
        """
        target = ReservationStatus(status) if status is not None else None
        if "total_amount" in updates:
            updates["total_amount"] = Decimal(str(updates["total_amount"]))
        if updates.get("deposit_amount") is not None:
            updates["deposit_amount"] = Decimal(str(updates["deposit_amount"]))
        for key, enum_cls in (
            ("contract_type", ContractType),
            ("payment_method", PaymentMethod),
            ("deposit_payment_method", DepositPaymentMethod),
        ):
            if key in updates:
                updates[key] = enum_cls(updates[key])

        with LogContext.bind(reservation_id=reservation_id, actor_id=actor_id):
            before = self.get_reservation(reservation_id)
            activating = target == ReservationStatus.ACTIVE and before.status != target
            with self._unit_of_work("update_reservation", unit_id=(
                before.unit_id if activating else None
            )):
                row = self._load(reservation_id, for_update=True)
                current = row.to_dto()
                regenerated = False
                if updates:
                    payments = [p.to_dto() for p in self._payment_rows(reservation_id)]
                    outcome = amend_reservation(
                        current, payments, quantum=self._config.amount_quantum, **updates,
                    )
                    self._apply(row, outcome, actor_id)
                    current = outcome.reservation
                    regenerated = outcome.regenerated

                moved = target is not None and target != current.status
                if moved:
                    unit_reservations = (
                        self._unit_reservations(current.unit_id, for_update=True)
                        if target == ReservationStatus.ACTIVE
                        else ()
                    )
                    payments = [p.to_dto() for p in self._payment_rows(reservation_id)]
                    outcome = transition_reservation(
                        current,
                        target,
                        payments,
                        unit_reservations,
                        today=self._clock.today(),
                    )
                    self._apply(row, outcome, actor_id)

            if updates:
                logger.info("reservation_amended", extra={
                    "fields": sorted(updates),
                    "regenerated": regenerated,
                })
            if moved:
                logger.info("reservation_transitioned", extra={
                    "from_state": current.status.value,
                    "to_state": target.value,
                    "payments_cancelled": len(outcome.payment_changes),
                })
        return self.get_reservation(reservation_id)

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        status: str | PaymentStatus = PaymentStatus.PAID,
        paid_on: date | None = None,
        amount: Decimal | None = None,
        late_fee: Decimal | None = None,
        notes: str | None = None,
        check_image_ref: str | None = None,
        payment_method: str | None = None,
    ) -> Payment:
        """
        Record a status change on one payment.

        ``paid`` defaults the payment date to today.  Recording the deposit
        row as paid also marks the reservation's deposit as paid.
        """
        target = PaymentStatus(status)
        if amount is not None:
            amount = Decimal(str(amount))
            if amount <= 0:
                raise InvalidAmountError("amount", amount)
        if late_fee is not None:
            late_fee = Decimal(str(late_fee))
            if late_fee <= 0:
                raise InvalidAmountError("late_fee", late_fee)

        with LogContext.bind(actor_id=actor_id):
            with self._unit_of_work("record_payment"):
                row = self._load_payment(payment_id, for_update=True)
                current = row.to_dto()
                updated = transition_payment(
                    current,
                    target,
                    paid_on=paid_on or self._clock.today(),
                    amount=amount,
                    late_fee=late_fee,
                    notes=notes,
                    check_image_ref=check_image_ref,
                    payment_method=payment_method,
                )
                row.apply_dto(updated, updated_by_id=actor_id)

                if current.kind == PaymentKind.DEPOSIT and target == PaymentStatus.PAID:
                    reservation_row = self._load(current.reservation_id, for_update=True)
                    reservation = reservation_row.to_dto()
                    if reservation.deposit_status == DepositStatus.UNPAID:
                        reservation_row.apply_dto(
                            transition_deposit(reservation, DepositStatus.PAID, updated.payment_date),
                            updated_by_id=actor_id,
                        )
                self._session.flush()

            logger.info("payment_recorded", extra={
                "payment_id": str(payment_id),
                "reservation_id": str(current.reservation_id),
                "from_state": current.status.value,
                "to_state": target.value,
                "amount": str(updated.amount),
            })
        return updated

    def mark_payment_delayed(
        self,
        payment_id: UUID,
        actor_id: UUID,
        late_fee: Decimal | None = None,
        notes: str | None = None,
    ) -> Payment:
        return self.record_payment(
            payment_id, actor_id, status=PaymentStatus.DELAYED, late_fee=late_fee, notes=notes,
        )

    # =========================================================================
    # Deposit
    # =========================================================================

    def _move_deposit(
        self,
        reservation_id: UUID,
        target: DepositStatus,
        actor_id: UUID,
        on: date | None,
        notes: str | None,
    ) -> Reservation:
        on = on or self._clock.today()
        with LogContext.bind(reservation_id=reservation_id, actor_id=actor_id):
            with self._unit_of_work(f"deposit_{target.value}"):
                row = self._load(reservation_id, for_update=True)
                updated = transition_deposit(row.to_dto(), target, on, notes)
                row.apply_dto(updated, updated_by_id=actor_id)
                if target == DepositStatus.PAID:
                    for payment_row in self._payment_rows(reservation_id):
                        if (
                            payment_row.kind == PaymentKind.DEPOSIT.value
                            and payment_row.status == PaymentStatus.PENDING.value
                        ):
                            payment_row.apply_dto(
                                transition_payment(payment_row.to_dto(), PaymentStatus.PAID, paid_on=on),
                                updated_by_id=actor_id,
                            )
                self._session.flush()

            logger.info("reservation_deposit_changed", extra={
                "deposit_status": target.value,
                "on": on.isoformat(),
            })
        return updated

    def record_deposit(
        self,
        reservation_id: UUID,
        actor_id: UUID,
        paid_on: date | None = None,
        notes: str | None = None,
    ) -> Reservation:
        return self._move_deposit(reservation_id, DepositStatus.PAID, actor_id, paid_on, notes)

    def return_deposit(
        self,
        reservation_id: UUID,
        actor_id: UUID,
        returned_on: date | None = None,
        notes: str | None = None,
    ) -> Reservation:
        return self._move_deposit(reservation_id, DepositStatus.RETURNED, actor_id, returned_on, notes)

    # =========================================================================
    # Consistency
    # =========================================================================

    def check_consistency(self, reservation_id: UUID) -> ConsistencyReport:
        """Report schedule violations.  Read-only."""
        reservation = self.get_reservation(reservation_id)
        return check_consistency(
            reservation,
            self.list_payments(reservation_id),
            self._clock.today(),
            tolerance=self._config.consistency_tolerance,
        )

    def repair_schedule(self, reservation_id: UUID, actor_id: UUID) -> ConsistencyReport:
        """Regenerate unpaid installments from the current terms and re-check."""
        with LogContext.bind(reservation_id=reservation_id, actor_id=actor_id):
            with self._unit_of_work("repair_schedule"):
                row = self._load(reservation_id, for_update=True)
                payments = [p.to_dto() for p in self._payment_rows(reservation_id)]
                outcome = plan_regeneration(
                    row.to_dto(), payments, quantum=self._config.amount_quantum,
                )
                self._apply(row, outcome, actor_id)

            logger.info("reservation_schedule_repaired", extra={
                "payment_changes": len(outcome.payment_changes),
            })
        return self.check_consistency(reservation_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_reservation(self, reservation_id: UUID) -> Reservation:
        try:
            return self._load(reservation_id).to_dto()
        except SQLAlchemyError as exc:
            raise RemoteFailureError("get_reservation", exc) from exc

    def list_reservations_for_unit(self, unit_id: UUID) -> tuple[Reservation, ...]:
        try:
            rows = self._session.execute(
                select(ReservationModel)
                .where(ReservationModel.unit_id == unit_id)
                .order_by(ReservationModel.start_date)
            ).scalars()
            return tuple(row.to_dto() for row in rows)
        except SQLAlchemyError as exc:
            raise RemoteFailureError("list_reservations_for_unit", exc) from exc

    def get_payment(self, payment_id: UUID) -> Payment:
        try:
            return self._load_payment(payment_id).to_dto()
        except SQLAlchemyError as exc:
            raise RemoteFailureError("get_payment", exc) from exc

    def list_payments(self, reservation_id: UUID) -> tuple[Payment, ...]:
        try:
            return tuple(p.to_dto() for p in self._payment_rows(reservation_id))
        except SQLAlchemyError as exc:
            raise RemoteFailureError("list_payments", exc) from exc

    def payment_statuses(self, reservation_id: UUID) -> dict[UUID, PaymentStatus]:
        """Effective status of each payment as of today."""
        today = self._clock.today()
        return {p.id: effective_status(p, today) for p in self.list_payments(reservation_id)}

