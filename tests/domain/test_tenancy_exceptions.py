"""
Tests for the typed exception hierarchy (tenancy_kernel.exceptions).

Callers catch by type and read structured attributes, so every class must
carry a stable code and its data fields.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from tenancy_kernel.exceptions import (
    AlreadyConvertedError,
    ConsistencyError,
    ExpenseBridgeError,
    FieldNotAmendableError,
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidScheduleError,
    InvalidServiceSubtypeError,
    InvalidTransitionError,
    LifecycleError,
    NotEligibleError,
    NotFoundError,
    PaymentNotFoundError,
    PermissionDeniedError,
    RemoteFailureError,
    ReservationNotFoundError,
    ScheduleInconsistentError,
    ServiceOrderNotFoundError,
    TenancyError,
    UnitAlreadyReservedError,
    ValidationError,
)


class TestCodes:

    @pytest.mark.parametrize("exc,code", [
        (InvalidAmountError("total_amount", Decimal("0")), "INVALID_AMOUNT"),
        (InvalidScheduleError("weekly"), "INVALID_SCHEDULE"),
        (InvalidDateRangeError(date(2024, 2, 1), date(2024, 1, 1)), "INVALID_DATE_RANGE"),
        (InvalidServiceSubtypeError("maintenance", "payment_issue"), "INVALID_SERVICE_SUBTYPE"),
        (FieldNotAmendableError(["unit_id"]), "FIELD_NOT_AMENDABLE"),
        (InvalidTransitionError("reservation", "cancelled", "active"), "INVALID_TRANSITION"),
        (UnitAlreadyReservedError(uuid4()), "UNIT_ALREADY_RESERVED"),
        (ScheduleInconsistentError(uuid4(), ["TOTAL_MISMATCH: x"]), "SCHEDULE_INCONSISTENT"),
        (NotEligibleError(uuid4(), "not completed"), "NOT_ELIGIBLE"),
        (AlreadyConvertedError(uuid4()), "ALREADY_CONVERTED"),
        (PermissionDeniedError("tenant", "cancel_reservation"), "PERMISSION_DENIED"),
        (ReservationNotFoundError(uuid4()), "RESERVATION_NOT_FOUND"),
        (PaymentNotFoundError(uuid4()), "PAYMENT_NOT_FOUND"),
        (ServiceOrderNotFoundError(uuid4()), "SERVICE_ORDER_NOT_FOUND"),
        (RemoteFailureError("create_reservation", RuntimeError("down")), "REMOTE_FAILURE"),
    ])
    def test_code_and_base(self, exc, code):
        assert exc.code == code
        assert isinstance(exc, TenancyError)


class TestHierarchy:

    def test_categories(self):
        assert issubclass(InvalidAmountError, ValidationError)
        assert issubclass(InvalidDateRangeError, ValidationError)
        assert issubclass(FieldNotAmendableError, ValidationError)
        assert issubclass(UnitAlreadyReservedError, LifecycleError)
        assert issubclass(ScheduleInconsistentError, ConsistencyError)
        assert issubclass(AlreadyConvertedError, ExpenseBridgeError)
        assert issubclass(PaymentNotFoundError, NotFoundError)

    def test_conflicts_are_retryable_after_refresh(self):
        assert UnitAlreadyReservedError.retryable_after_refresh is True
        assert AlreadyConvertedError.retryable_after_refresh is True
        assert InvalidAmountError.retryable_after_refresh is False


class TestStructuredData:

    def test_amount_stored_as_string(self):
        exc = InvalidAmountError("deposit_amount", Decimal("-5.00"))
        assert exc.field == "deposit_amount"
        assert exc.amount == "-5.00"

    def test_unit_conflict_carries_ids(self):
        unit_id, active_id = uuid4(), uuid4()
        exc = UnitAlreadyReservedError(unit_id, active_id)
        assert exc.unit_id == str(unit_id)
        assert exc.active_reservation_id == str(active_id)

    def test_unit_conflict_without_known_holder(self):
        assert UnitAlreadyReservedError(uuid4()).active_reservation_id is None

    def test_remote_failure_wraps_cause(self):
        cause = RuntimeError("connection reset")
        exc = RemoteFailureError("record_payment", cause)
        assert exc.cause is cause
        assert exc.detail == "connection reset"
        assert exc.operation == "record_payment"

    def test_inconsistency_lists_violations(self):
        exc = ScheduleInconsistentError(uuid4(), ["A: one", "B: two"])
        assert exc.violations == ["A: one", "B: two"]
        assert "2 schedule violation(s)" in str(exc)
