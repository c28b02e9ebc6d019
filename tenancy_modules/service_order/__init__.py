"""
Service Order Module (``tenancy_modules.service_order``).

Responsibility
--------------
Tenant service requests (maintenance, financial, administrative), their
pending/in-progress/completed/rejected workflow with status history, and
the bridge that converts a completed, priced order into an expense exactly
once.

Failure modes
-------------
* ``InvalidServiceSubtypeError`` -- subtype outside the type's catalogue.
* ``NotEligibleError`` / ``AlreadyConvertedError`` -- conversion refused.
"""

from tenancy_modules.service_order.bridge import convert_to_expense
from tenancy_modules.service_order.config import ServiceOrderConfig
from tenancy_modules.service_order.models import (
    SERVICE_SUBTYPES,
    Expense,
    ExpenseType,
    ResponsibleParty,
    ServiceOrder,
    ServiceOrderStatus,
    ServiceType,
    StatusChange,
)

__all__ = [
    "SERVICE_SUBTYPES",
    "Expense",
    "ExpenseType",
    "ResponsibleParty",
    "ServiceOrder",
    "ServiceOrderConfig",
    "ServiceOrderStatus",
    "ServiceType",
    "StatusChange",
    "convert_to_expense",
]
