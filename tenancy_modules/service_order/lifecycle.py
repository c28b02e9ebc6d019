"""
Service order status changes and pricing.  Pure functions, no I/O.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from tenancy_kernel.exceptions import InvalidAmountError, InvalidTransitionError
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.service_order.models import (
    ServiceOrder,
    ServiceOrderStatus,
    StatusChange,
)
from tenancy_modules.service_order.workflows import (
    APPEND_STATUS_HISTORY,
    SERVICE_ORDER_WORKFLOW,
)

logger = get_logger("modules.service_order.lifecycle")


def transition_service_order(
    order: ServiceOrder,
    target_status: str | ServiceOrderStatus,
    on: date,
    actor_id: UUID | None = None,
    notes: str | None = None,
) -> ServiceOrder:
    """Move a service order along its workflow, appending to its history."""
    target = ServiceOrderStatus(target_status)
    transition = SERVICE_ORDER_WORKFLOW.find_transition(order.status.value, target.value)
    if transition is None:
        raise InvalidTransitionError("service_order", order.status.value, target.value)

    history = order.history
    if transition.side_effect == APPEND_STATUS_HISTORY:
        history = history + (StatusChange(target, on, actor_id, notes),)
    return replace(order, status=target, history=history)


def set_price(order: ServiceOrder, price: Decimal) -> ServiceOrder:
    """Price an order.  Allowed until the order is completed or rejected."""
    if order.status.value in SERVICE_ORDER_WORKFLOW.terminal_states:
        raise InvalidTransitionError("service_order", order.status.value, "priced")
    if price <= 0:
        raise InvalidAmountError("service_price", price)
    return replace(order, service_price=price)
