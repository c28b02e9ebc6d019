"""
Integration tests for ReservationService against the store.

Verifies:
- Creation persists the reservation and its schedule atomically
- The single-active-per-unit rule, including the store's partial unique index
- Cancellation, expiry and the expiry sweep
- Amendment regeneration, payment recording and the deposit lifecycle
- Consistency check and schedule repair
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tenancy_kernel.exceptions import (
    FieldNotAmendableError,
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidScheduleError,
    InvalidTransitionError,
    PaymentNotFoundError,
    RemoteFailureError,
    ReservationNotFoundError,
    UnitAlreadyReservedError,
)
from tenancy_modules.reservation.consistency import ViolationCode
from tenancy_modules.reservation.lifecycle import SUPERSEDED_NOTE
from tenancy_modules.reservation.models import (
    DepositStatus,
    PaymentKind,
    PaymentStatus,
    ReservationStatus,
)
from tenancy_modules.reservation.orm import PaymentModel, ReservationModel
from tests.modules.conftest import JAN_1, JUL_1, OTHER_UNIT_ID, TENANT_ID, UNIT_ID

APR_1 = date(2024, 4, 1)


def _installments(payments):
    return [p for p in payments if p.kind == PaymentKind.INSTALLMENT]


class TestCreateReservation:

    def test_persists_reservation_and_schedule(self, create_reservation, session):
        reservation, payments = create_reservation()

        assert reservation.status == ReservationStatus.PENDING
        assert reservation.unit_id == UNIT_ID
        assert [(p.due_date, p.amount, p.status) for p in payments] == [
            (JAN_1, Decimal("600"), PaymentStatus.PENDING),
            (APR_1, Decimal("600"), PaymentStatus.PENDING),
        ]
        assert all(p.payment_date == p.due_date for p in payments)
        assert session.execute(select(PaymentModel)).scalars().all()

    def test_deposit_row_created(self, create_reservation):
        reservation, payments = create_reservation(
            includes_deposit=True, deposit_amount=Decimal("500"), deposit_payment_method="check",
        )

        deposits = [p for p in payments if p.kind == PaymentKind.DEPOSIT]
        assert reservation.deposit_status == DepositStatus.UNPAID
        assert len(deposits) == 1
        assert deposits[0].amount == Decimal("500")
        assert deposits[0].payment_method == "check"
        assert sum(p.amount for p in _installments(payments)) == Decimal("1200")

    def test_created_reservation_is_consistent(self, create_reservation, reservation_service):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("300"))
        assert reservation_service.check_consistency(reservation.id).is_consistent

    @pytest.mark.parametrize("overrides,error", [
        ({"end_date": JAN_1}, InvalidDateRangeError),
        ({"payment_schedule": "weekly"}, InvalidScheduleError),
        ({"total_amount": Decimal("0")}, InvalidAmountError),
        ({"includes_deposit": True, "deposit_amount": Decimal("-1")}, InvalidAmountError),
    ])
    def test_invalid_terms_store_nothing(self, create_reservation, session, overrides, error):
        with pytest.raises(error):
            create_reservation(**overrides)
        assert session.execute(select(ReservationModel)).scalars().all() == []

    def test_active_creation_conflict(self, create_reservation, session):
        create_reservation(status="active")
        with pytest.raises(UnitAlreadyReservedError):
            create_reservation(status="active")
        assert len(session.execute(select(ReservationModel)).scalars().all()) == 1
        assert len(session.execute(select(PaymentModel)).scalars().all()) == 2

    def test_pending_creation_store_conflict_is_remote_failure(self, create_reservation, session, monkeypatch):
        def reject(*args, **kwargs):
            raise IntegrityError("INSERT INTO payments", {}, Exception("constraint failed"))

        monkeypatch.setattr(session, "flush", reject)
        with pytest.raises(RemoteFailureError) as exc_info:
            create_reservation()
        assert exc_info.value.operation == "create_reservation"

    def test_active_creation_store_conflict_is_unit_conflict(self, create_reservation, session, monkeypatch):
        def reject(*args, **kwargs):
            raise IntegrityError("INSERT INTO reservations", {}, Exception("constraint failed"))

        monkeypatch.setattr(session, "flush", reject)
        with pytest.raises(UnitAlreadyReservedError) as exc_info:
            create_reservation(status="active")
        assert exc_info.value.unit_id == str(UNIT_ID)

    def test_created_event_logged(self, create_reservation, captured_logs):
        create_reservation()
        created = [r for r in captured_logs() if r["message"] == "reservation_created"]
        assert created[0]["installment_count"] == 2
        assert created[0]["total_amount"] == "1200"

    def test_preview_does_not_persist(self, reservation_service, session):
        schedule = reservation_service.preview_schedule(JAN_1, JUL_1, "quarterly", Decimal("1200"))
        assert len(schedule.installments) == 2
        assert session.execute(select(ReservationModel)).scalars().all() == []


class TestActivation:

    def test_activate(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation()
        active = reservation_service.activate_reservation(reservation.id, test_actor_id)
        assert active.status == ReservationStatus.ACTIVE

    def test_conflict_leaves_both_unchanged(self, create_reservation, reservation_service, test_actor_id):
        first, _ = create_reservation()
        second, _ = create_reservation(start_date=JUL_1, end_date=date(2025, 1, 1))
        reservation_service.activate_reservation(first.id, test_actor_id)

        with pytest.raises(UnitAlreadyReservedError) as exc_info:
            reservation_service.activate_reservation(second.id, test_actor_id)

        assert exc_info.value.active_reservation_id == str(first.id)
        assert reservation_service.get_reservation(first.id).status == ReservationStatus.ACTIVE
        assert reservation_service.get_reservation(second.id).status == ReservationStatus.PENDING

    def test_different_units_both_active(self, create_reservation, reservation_service, test_actor_id):
        a, _ = create_reservation()
        b, _ = create_reservation(unit_id=OTHER_UNIT_ID)
        reservation_service.activate_reservation(a.id, test_actor_id)
        assert reservation_service.activate_reservation(b.id, test_actor_id).status == ReservationStatus.ACTIVE

    def test_store_index_rejects_second_active_row(self, create_reservation, session, test_actor_id):
        """The partial unique index holds even when the planner is bypassed."""
        create_reservation(status="active")
        second, _ = create_reservation()
        row = session.get(ReservationModel, second.id)
        row.status = "active"
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_unknown_reservation(self, reservation_service, test_actor_id):
        with pytest.raises(ReservationNotFoundError):
            reservation_service.activate_reservation(uuid4(), test_actor_id)


class TestCancellation:

    def test_cancel_cancels_pending_keeps_paid(self, create_reservation, reservation_service, test_actor_id):
        reservation, payments = create_reservation()
        reservation_service.record_payment(payments[0].id, test_actor_id, paid_on=JAN_1)

        cancelled = reservation_service.cancel_reservation(reservation.id, test_actor_id)

        assert cancelled.status == ReservationStatus.CANCELLED
        statuses = {p.due_date: p.status for p in reservation_service.list_payments(reservation.id)}
        assert statuses == {JAN_1: PaymentStatus.PAID, APR_1: PaymentStatus.CANCELLED}
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_cancelled_cannot_be_reactivated(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation()
        reservation_service.cancel_reservation(reservation.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            reservation_service.activate_reservation(reservation.id, test_actor_id)

    def test_cancel_frees_the_unit(self, create_reservation, reservation_service, test_actor_id):
        first, _ = create_reservation(status="active")
        second, _ = create_reservation()
        reservation_service.cancel_reservation(first.id, test_actor_id)
        assert reservation_service.activate_reservation(second.id, test_actor_id).status == ReservationStatus.ACTIVE


class TestExpiry:

    def test_sweep_expires_reached_end_dates(self, create_reservation, reservation_service, clock, test_actor_id):
        ended, _ = create_reservation(status="active")
        running, _ = create_reservation(unit_id=OTHER_UNIT_ID, end_date=date(2025, 1, 1))

        clock.advance_days(200)  # 2024-07-19
        expired = reservation_service.expire_overdue(test_actor_id)

        assert [r.id for r in expired] == [ended.id]
        assert reservation_service.get_reservation(ended.id).status == ReservationStatus.EXPIRED
        assert reservation_service.get_reservation(running.id).status == ReservationStatus.PENDING

    def test_expiry_keeps_unpaid_installments_pending(self, create_reservation, reservation_service, clock, test_actor_id):
        reservation, _ = create_reservation()
        clock.advance_days(200)
        reservation_service.expire_overdue(test_actor_id)
        payments = reservation_service.list_payments(reservation.id)
        assert {p.status for p in payments} == {PaymentStatus.PENDING}
        assert set(reservation_service.payment_statuses(reservation.id).values()) == {PaymentStatus.DELAYED}

    def test_sweep_is_idempotent(self, create_reservation, reservation_service, clock, test_actor_id):
        create_reservation()
        clock.advance_days(200)
        reservation_service.expire_overdue(test_actor_id)
        assert reservation_service.expire_overdue(test_actor_id) == []

    def test_explicit_early_expiry(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(status="active")
        expired = reservation_service.expire_reservation(reservation.id, test_actor_id)
        assert expired.status == ReservationStatus.EXPIRED


class TestAmendment:

    def test_cadence_change_regenerates_unpaid(self, create_reservation, reservation_service, test_actor_id):
        reservation, payments = create_reservation()
        reservation_service.record_payment(payments[0].id, test_actor_id, paid_on=JAN_1)

        amended = reservation_service.amend_reservation(
            reservation.id, test_actor_id, payment_schedule="monthly",
        )

        assert amended.payment_schedule.value == "monthly"
        stored = reservation_service.list_payments(reservation.id)
        live = [p for p in stored if p.status != PaymentStatus.CANCELLED]
        superseded = [p for p in stored if p.status == PaymentStatus.CANCELLED]
        assert [p.due_date for p in superseded] == [APR_1]
        assert superseded[0].notes == SUPERSEDED_NOTE
        assert sum(p.amount for p in live) == Decimal("1200")
        assert sorted(p.due_date for p in live if p.status == PaymentStatus.PENDING) == [
            date(2024, m, 1) for m in range(2, 7)
        ]
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_notes_edit_keeps_schedule(self, create_reservation, reservation_service, test_actor_id):
        reservation, payments = create_reservation()
        reservation_service.amend_reservation(reservation.id, test_actor_id, notes="second floor")
        assert reservation_service.list_payments(reservation.id) == payments
        assert reservation_service.get_reservation(reservation.id).notes == "second floor"

    def test_invalid_amendment_rolls_back(self, create_reservation, reservation_service, test_actor_id):
        reservation, payments = create_reservation()
        with pytest.raises(InvalidDateRangeError):
            reservation_service.amend_reservation(reservation.id, test_actor_id, end_date=date(2023, 1, 1))
        assert reservation_service.get_reservation(reservation.id) == reservation
        assert reservation_service.list_payments(reservation.id) == payments

    def test_adding_deposit_creates_pending_row(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation()

        amended = reservation_service.amend_reservation(
            reservation.id, test_actor_id, includes_deposit=True, deposit_amount=500,
        )

        assert amended.includes_deposit
        assert amended.deposit_amount == Decimal("500")
        deposits = [p for p in reservation_service.list_payments(reservation.id) if p.kind == PaymentKind.DEPOSIT]
        assert [(p.amount, p.due_date, p.status) for p in deposits] == [
            (Decimal("500"), JAN_1, PaymentStatus.PENDING),
        ]
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_removing_deposit_cancels_pending_row(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))

        amended = reservation_service.amend_reservation(reservation.id, test_actor_id, includes_deposit=False)

        assert not amended.includes_deposit
        assert amended.deposit_amount is None
        deposits = [p for p in reservation_service.list_payments(reservation.id) if p.kind == PaymentKind.DEPOSIT]
        assert [p.status for p in deposits] == [PaymentStatus.CANCELLED]
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_deposit_resize_updates_pending_row(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))

        reservation_service.amend_reservation(reservation.id, test_actor_id, deposit_amount=Decimal("750"))

        deposits = [p for p in reservation_service.list_payments(reservation.id) if p.kind == PaymentKind.DEPOSIT]
        assert [(p.amount, p.status) for p in deposits] == [(Decimal("750"), PaymentStatus.PENDING)]
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_paid_deposit_terms_frozen(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))
        reservation_service.record_deposit(reservation.id, test_actor_id, paid_on=JAN_1)
        before = reservation_service.list_payments(reservation.id)

        with pytest.raises(InvalidTransitionError):
            reservation_service.amend_reservation(reservation.id, test_actor_id, deposit_amount=Decimal("750"))

        assert reservation_service.get_reservation(reservation.id).deposit_amount == Decimal("500")
        assert reservation_service.list_payments(reservation.id) == before

    @pytest.mark.parametrize("field, value", [
        ("unit_id", OTHER_UNIT_ID),
        ("tenant_id", uuid4()),
        ("deposit_status", "paid"),
    ])
    def test_identity_and_bookkeeping_not_amendable(
        self, create_reservation, reservation_service, test_actor_id, field, value,
    ):
        reservation, payments = create_reservation()
        with pytest.raises(FieldNotAmendableError) as exc_info:
            reservation_service.amend_reservation(reservation.id, test_actor_id, **{field: value})
        assert exc_info.value.fields == [field]
        assert reservation_service.get_reservation(reservation.id) == reservation
        assert reservation_service.list_payments(reservation.id) == payments


class TestUpdateReservation:

    def test_amend_and_activate_together(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation()

        updated = reservation_service.update_reservation(
            reservation.id, test_actor_id, status="active", payment_schedule="monthly",
        )

        assert updated.status == ReservationStatus.ACTIVE
        assert updated.payment_schedule.value == "monthly"
        assert reservation_service.check_consistency(reservation.id).is_consistent

    def test_conflicting_activation_rolls_back_the_edit(self, create_reservation, reservation_service, test_actor_id):
        create_reservation(status="active")
        pending, payments = create_reservation()

        with pytest.raises(UnitAlreadyReservedError):
            reservation_service.update_reservation(
                pending.id, test_actor_id, status="active", payment_schedule="monthly",
            )

        assert reservation_service.get_reservation(pending.id) == pending
        assert reservation_service.list_payments(pending.id) == payments

    def test_cancel_after_regeneration_cancels_new_rows(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation()

        reservation_service.update_reservation(
            reservation.id, test_actor_id, status="cancelled", total_amount=Decimal("1500"),
        )

        stored = reservation_service.list_payments(reservation.id)
        assert {p.status for p in stored} == {PaymentStatus.CANCELLED}
        assert reservation_service.get_reservation(reservation.id).total_amount == Decimal("1500")


class TestPayments:

    def test_record_paid(self, create_reservation, reservation_service, test_actor_id):
        _, payments = create_reservation(payment_method="checks")
        paid = reservation_service.record_payment(
            payments[1].id, test_actor_id, paid_on=date(2024, 4, 5), check_image_ref="checks/17.png",
        )
        stored = reservation_service.get_payment(payments[1].id)
        assert paid.status == PaymentStatus.PAID
        assert stored.payment_date == date(2024, 4, 5)
        assert stored.due_date == APR_1
        assert stored.check_image_ref == "checks/17.png"

    def test_paid_on_defaults_to_today(self, create_reservation, reservation_service, clock, test_actor_id):
        _, payments = create_reservation()
        paid = reservation_service.record_payment(payments[0].id, test_actor_id)
        assert paid.payment_date == clock.today()

    def test_mark_delayed_with_late_fee(self, create_reservation, reservation_service, test_actor_id):
        _, payments = create_reservation()
        delayed = reservation_service.mark_payment_delayed(payments[0].id, test_actor_id, late_fee=Decimal("25"))
        paid = reservation_service.record_payment(payments[0].id, test_actor_id)
        assert delayed.status == PaymentStatus.DELAYED
        assert paid.late_fee == Decimal("25")

    def test_non_positive_amount_rejected(self, create_reservation, reservation_service, test_actor_id):
        _, payments = create_reservation()
        with pytest.raises(InvalidAmountError):
            reservation_service.record_payment(payments[0].id, test_actor_id, amount=Decimal("0"))
        assert reservation_service.get_payment(payments[0].id).status == PaymentStatus.PENDING

    def test_paid_cannot_be_reopened(self, create_reservation, reservation_service, test_actor_id):
        _, payments = create_reservation()
        reservation_service.record_payment(payments[0].id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            reservation_service.record_payment(payments[0].id, test_actor_id, status="pending")

    def test_unknown_payment(self, reservation_service, test_actor_id):
        with pytest.raises(PaymentNotFoundError):
            reservation_service.record_payment(uuid4(), test_actor_id)

    def test_effective_status_on_read(self, create_reservation, reservation_service, clock):
        reservation, payments = create_reservation()
        clock.advance_days(1)  # 2024-01-02
        statuses = reservation_service.payment_statuses(reservation.id)
        assert statuses[payments[0].id] == PaymentStatus.DELAYED
        assert statuses[payments[1].id] == PaymentStatus.PENDING


class TestDeposit:

    def test_record_and_return(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))

        paid = reservation_service.record_deposit(reservation.id, test_actor_id, paid_on=JAN_1)
        returned = reservation_service.return_deposit(
            reservation.id, test_actor_id, returned_on=JUL_1, notes="no damage",
        )

        assert paid.deposit_status == DepositStatus.PAID
        assert returned.deposit_status == DepositStatus.RETURNED
        assert returned.deposit_returned_date == JUL_1
        deposit_rows = [p for p in reservation_service.list_payments(reservation.id) if p.kind == PaymentKind.DEPOSIT]
        assert deposit_rows[0].status == PaymentStatus.PAID

    def test_paying_deposit_row_marks_deposit_paid(self, create_reservation, reservation_service, test_actor_id):
        reservation, payments = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))
        deposit = next(p for p in payments if p.kind == PaymentKind.DEPOSIT)

        reservation_service.record_payment(deposit.id, test_actor_id, paid_on=date(2024, 1, 3))

        stored = reservation_service.get_reservation(reservation.id)
        assert stored.deposit_status == DepositStatus.PAID
        assert stored.deposit_paid_date == date(2024, 1, 3)

    def test_return_before_paid_refused(self, create_reservation, reservation_service, test_actor_id):
        reservation, _ = create_reservation(includes_deposit=True, deposit_amount=Decimal("500"))
        with pytest.raises(InvalidTransitionError):
            reservation_service.return_deposit(reservation.id, test_actor_id)


class TestRepair:

    def test_repair_replaces_inconsistent_rows(self, create_reservation, reservation_service, session, test_actor_id):
        reservation, payments = create_reservation()
        row = session.get(PaymentModel, payments[1].id)
        row.amount = Decimal("100")
        session.commit()

        before = reservation_service.check_consistency(reservation.id)
        assert before.codes == (ViolationCode.TOTAL_MISMATCH,)

        after = reservation_service.repair_schedule(reservation.id, test_actor_id)
        assert after.is_consistent
        live = [p for p in reservation_service.list_payments(reservation.id) if p.status == PaymentStatus.PENDING]
        assert sorted((p.due_date, p.amount) for p in live) == [
            (JAN_1, Decimal("600")),
            (APR_1, Decimal("600")),
        ]

    def test_list_reservations_for_unit(self, create_reservation, reservation_service):
        later, _ = create_reservation(start_date=JUL_1, end_date=date(2025, 1, 1))
        earlier, _ = create_reservation()
        create_reservation(unit_id=OTHER_UNIT_ID, tenant_id=TENANT_ID)
        listed = reservation_service.list_reservations_for_unit(UNIT_ID)
        assert [r.id for r in listed] == [earlier.id, later.id]
