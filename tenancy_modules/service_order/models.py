"""
Service Order Domain Models (``tenancy_modules.service_order.models``).

Responsibility
--------------
Frozen dataclass value objects for tenant service requests, their status
history, and the expense records a completed request is converted into.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``ServiceOrder.service_subtype`` belongs to the catalogue of its
  ``service_type``.
* ``ServiceOrder.service_price`` is None (unpriced) or non-negative.
* ``Expense.amount`` is positive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from tenancy_kernel.exceptions import InvalidAmountError, InvalidServiceSubtypeError
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.service_order.models")


class ServiceType(Enum):
    MAINTENANCE = "maintenance"
    FINANCIAL = "financial"
    ADMINISTRATIVE = "administrative"


class ServiceOrderStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ExpenseType(Enum):
    MAINTENANCE = "maintenance"
    UTILITIES = "utilities"
    INSURANCE = "insurance"
    CLEANING = "cleaning"
    SECURITY = "security"
    MANAGEMENT = "management"
    REPAIRS = "repairs"
    OTHER = "other"


class ResponsibleParty(Enum):
    """Who bears the cost of an expense."""
    OWNER = "owner"
    TENANT = "tenant"


SERVICE_SUBTYPES: dict[ServiceType, frozenset[str]] = {
    ServiceType.MAINTENANCE: frozenset({
        "plumbing",
        "electrical",
        "ac",
        "appliance",
        "structural",
        "painting",
        "doors_windows",
        "flooring",
        "carpentry",
        "cleaning",
        "pest_control",
        "other",
    }),
    ServiceType.FINANCIAL: frozenset({
        "payment_issue",
        "contract_renewal",
        "deposit_refund",
        "payment_schedule",
        "invoice_request",
        "other",
    }),
    ServiceType.ADMINISTRATIVE: frozenset({
        "contract_change",
        "tenant_info_update",
        "complaint",
        "neighbor_issue",
        "permission_request",
        "early_termination",
        "other",
    }),
}


def validate_subtype(service_type: ServiceType | str, service_subtype: str) -> None:
    try:
        kind = ServiceType(service_type)
    except ValueError:
        raise InvalidServiceSubtypeError(str(service_type), service_subtype) from None
    if service_subtype not in SERVICE_SUBTYPES[kind]:
        raise InvalidServiceSubtypeError(kind.value, service_subtype)


@dataclass(frozen=True)
class StatusChange:
    """One entry of a service order's status history."""
    status: ServiceOrderStatus
    changed_on: date
    changed_by: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ServiceOrder:
    """A service request raised against a reservation."""
    id: UUID
    reservation_id: UUID
    requested_by: UUID
    service_type: ServiceType
    service_subtype: str
    description: str
    status: ServiceOrderStatus = ServiceOrderStatus.PENDING
    service_price: Decimal | None = None
    history: tuple[StatusChange, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        validate_subtype(self.service_type, self.service_subtype)
        if self.service_price is not None and self.service_price < 0:
            raise InvalidAmountError("service_price", self.service_price)

    @property
    def is_priced(self) -> bool:
        return self.service_price is not None and self.service_price > 0


@dataclass(frozen=True)
class Expense:
    """A cost record; when converted from a service order it references it."""
    id: UUID
    expense_type: ExpenseType
    amount: Decimal
    reservation_id: UUID
    expense_date: date
    source_service_order_id: UUID | None = None
    responsible_party: ResponsibleParty = ResponsibleParty.OWNER
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise InvalidAmountError("amount", self.amount)
