"""
Service-to-Expense Bridge (``tenancy_modules.service_order.bridge``).

Responsibility
--------------
Turns a completed, priced service order into exactly one expense record.

Architecture position
---------------------
**Modules layer** -- pure function over frozen value objects.  The
exactly-once guarantee under concurrency comes from the unique constraint
on ``expense.source_service_order_id`` applied by ``ServiceOrderService``.

Invariants enforced
-------------------
* Only ``completed`` orders with ``service_price > 0`` are eligible.
* An order already referenced by an expense is never converted again.
* The expense amount equals the service price.

Failure modes
-------------
* ``NotEligibleError`` -- wrong status or no positive price.
* ``AlreadyConvertedError`` -- an expense already references the order.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from tenancy_kernel.exceptions import AlreadyConvertedError, NotEligibleError
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.service_order.models import (
    Expense,
    ExpenseType,
    ResponsibleParty,
    ServiceOrder,
    ServiceOrderStatus,
)

logger = get_logger("modules.service_order.bridge")


def check_eligible(order: ServiceOrder, existing_expense: Expense | None = None) -> None:
    """Raise unless ``order`` may be converted into an expense."""
    if existing_expense is not None:
        raise AlreadyConvertedError(order.id, existing_expense.id)
    if order.status != ServiceOrderStatus.COMPLETED:
        raise NotEligibleError(order.id, f"status is {order.status.value}, not completed")
    if not order.is_priced:
        raise NotEligibleError(order.id, "service price is not set")


def convert_to_expense(
    order: ServiceOrder,
    existing_expense: Expense | None,
    responsible_party: str | ResponsibleParty,
    notes: str | None,
    expense_date: date,
    expense_type: ExpenseType = ExpenseType.MAINTENANCE,
    expense_id: UUID | None = None,
) -> Expense:
    """
    Build the expense for a completed service order.

    ``existing_expense`` is the expense already referencing the order, if
    the caller found one.
    """
    check_eligible(order, existing_expense)

    expense = Expense(
        id=expense_id or uuid4(),
        expense_type=expense_type,
        amount=order.service_price,
        reservation_id=order.reservation_id,
        expense_date=expense_date,
        source_service_order_id=order.id,
        responsible_party=ResponsibleParty(responsible_party),
        notes=notes,
    )
    logger.debug("service_order_expense_built", extra={
        "service_order_id": str(order.id),
        "expense_type": expense_type.value,
        "amount": str(expense.amount),
        "responsible_party": expense.responsible_party.value,
    })
    return expense
