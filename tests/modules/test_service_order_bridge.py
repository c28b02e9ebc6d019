"""
Tests for the service order workflow and the service-to-expense bridge.

Pure functions -- no database.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from tenancy_kernel.exceptions import (
    AlreadyConvertedError,
    InvalidAmountError,
    InvalidServiceSubtypeError,
    InvalidTransitionError,
    NotEligibleError,
)
from tenancy_modules.service_order.bridge import check_eligible, convert_to_expense
from tenancy_modules.service_order.lifecycle import set_price, transition_service_order
from tenancy_modules.service_order.models import (
    Expense,
    ExpenseType,
    ResponsibleParty,
    ServiceOrder,
    ServiceOrderStatus,
    ServiceType,
    validate_subtype,
)
from tests.modules.conftest import MANAGER_ID, RESERVATION_ID, TENANT_ID

TODAY = date(2024, 3, 15)


def _order(**overrides) -> ServiceOrder:
    values = dict(
        id=uuid4(),
        reservation_id=RESERVATION_ID,
        requested_by=TENANT_ID,
        service_type=ServiceType.MAINTENANCE,
        service_subtype="plumbing",
        description="Kitchen sink leaking",
    )
    values.update(overrides)
    return ServiceOrder(**values)


def _completed(price: str | None = "150") -> ServiceOrder:
    return _order(
        status=ServiceOrderStatus.COMPLETED,
        service_price=Decimal(price) if price is not None else None,
    )


class TestSubtypes:

    @pytest.mark.parametrize("service_type,subtype", [
        ("maintenance", "ac"),
        ("financial", "deposit_refund"),
        ("administrative", "early_termination"),
        ("financial", "other"),
    ])
    def test_valid(self, service_type, subtype):
        validate_subtype(service_type, subtype)

    def test_subtype_of_other_type_rejected(self):
        with pytest.raises(InvalidServiceSubtypeError) as exc_info:
            _order(service_type=ServiceType.MAINTENANCE, service_subtype="payment_issue")
        assert exc_info.value.service_type == "maintenance"

    def test_unknown_service_type(self):
        with pytest.raises(InvalidServiceSubtypeError):
            validate_subtype("legal", "other")

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidAmountError):
            _order(service_price=Decimal("-1"))


class TestServiceOrderWorkflow:

    def test_start_then_complete_appends_history(self):
        order = _order()
        started = transition_service_order(order, "in-progress", TODAY, MANAGER_ID)
        done = transition_service_order(started, ServiceOrderStatus.COMPLETED, TODAY, MANAGER_ID, "fixed")

        assert done.status == ServiceOrderStatus.COMPLETED
        assert [h.status for h in done.history] == [
            ServiceOrderStatus.IN_PROGRESS,
            ServiceOrderStatus.COMPLETED,
        ]
        assert done.history[-1].notes == "fixed"
        assert done.history[-1].changed_by == MANAGER_ID
        assert order.history == ()

    def test_pending_can_be_rejected(self):
        assert transition_service_order(_order(), "rejected", TODAY).status == ServiceOrderStatus.REJECTED

    def test_completed_is_final(self):
        with pytest.raises(InvalidTransitionError):
            transition_service_order(_completed(), "in-progress", TODAY)

    def test_price_until_completion(self):
        priced = set_price(_order(status=ServiceOrderStatus.IN_PROGRESS), Decimal("80"))
        assert priced.service_price == Decimal("80")
        assert priced.is_priced

    def test_price_after_completion_refused(self):
        with pytest.raises(InvalidTransitionError):
            set_price(_completed(), Decimal("80"))

    def test_zero_price_refused(self):
        with pytest.raises(InvalidAmountError):
            set_price(_order(), Decimal("0"))


class TestConvertToExpense:

    def test_completed_priced_order_converts(self):
        order = _completed("150")
        expense = convert_to_expense(order, None, "tenant", "tenant damage", TODAY)

        assert expense.amount == Decimal("150")
        assert expense.source_service_order_id == order.id
        assert expense.reservation_id == RESERVATION_ID
        assert expense.responsible_party == ResponsibleParty.TENANT
        assert expense.expense_type == ExpenseType.MAINTENANCE
        assert expense.expense_date == TODAY
        assert expense.notes == "tenant damage"

    def test_expense_type_override(self):
        expense = convert_to_expense(_completed(), None, ResponsibleParty.OWNER, None, TODAY, ExpenseType.REPAIRS)
        assert expense.expense_type == ExpenseType.REPAIRS

    @pytest.mark.parametrize("status", [
        ServiceOrderStatus.PENDING,
        ServiceOrderStatus.IN_PROGRESS,
        ServiceOrderStatus.REJECTED,
    ])
    def test_not_completed(self, status):
        order = _order(status=status, service_price=Decimal("150"))
        with pytest.raises(NotEligibleError) as exc_info:
            convert_to_expense(order, None, "owner", None, TODAY)
        assert "not completed" in exc_info.value.reason

    @pytest.mark.parametrize("price", [None, "0"])
    def test_not_priced(self, price):
        with pytest.raises(NotEligibleError) as exc_info:
            convert_to_expense(_completed(price), None, "owner", None, TODAY)
        assert exc_info.value.reason == "service price is not set"

    def test_second_conversion_refused(self):
        order = _completed()
        first = convert_to_expense(order, None, "owner", None, TODAY)
        with pytest.raises(AlreadyConvertedError) as exc_info:
            convert_to_expense(order, first, "owner", None, TODAY)
        assert exc_info.value.expense_id == str(first.id)

    def test_already_converted_checked_before_status(self):
        order = _order()
        existing = Expense(
            id=uuid4(),
            expense_type=ExpenseType.MAINTENANCE,
            amount=Decimal("10"),
            reservation_id=RESERVATION_ID,
            expense_date=TODAY,
            source_service_order_id=order.id,
        )
        with pytest.raises(AlreadyConvertedError):
            check_eligible(order, existing)

    def test_expense_amount_must_be_positive(self):
        with pytest.raises(InvalidAmountError):
            Expense(
                id=uuid4(),
                expense_type=ExpenseType.OTHER,
                amount=Decimal("0"),
                reservation_id=RESERVATION_ID,
                expense_date=TODAY,
            )
