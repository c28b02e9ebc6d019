"""
Service Order Module Configuration Schema.

Defines which expense category a converted service order is booked under.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

from tenancy_kernel.logging_config import get_logger
from tenancy_modules.service_order.models import ExpenseType, ServiceType

logger = get_logger("modules.service_order.config")


def _default_expense_types() -> dict[ServiceType, ExpenseType]:
    return {
        ServiceType.MAINTENANCE: ExpenseType.MAINTENANCE,
        ServiceType.FINANCIAL: ExpenseType.OTHER,
        ServiceType.ADMINISTRATIVE: ExpenseType.MANAGEMENT,
    }


@dataclass
class ServiceOrderConfig:
    """Configuration schema for the service order module."""

    # Expense category used when converting a completed order
    expense_type_by_service_type: dict[ServiceType, ExpenseType] = field(
        default_factory=_default_expense_types,
    )

    def __post_init__(self):
        missing = [t.value for t in ServiceType if t not in self.expense_type_by_service_type]
        if missing:
            raise ValueError(f"expense type mapping missing for: {', '.join(missing)}")
        for value in self.expense_type_by_service_type.values():
            if not isinstance(value, ExpenseType):
                raise ValueError(f"not an expense type: {value!r}")

        logger.info(
            "service_order_config_initialized",
            extra={
                "expense_type_by_service_type": {
                    k.value: v.value for k, v in self.expense_type_by_service_type.items()
                },
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    def expense_type_for(self, service_type: ServiceType) -> ExpenseType:
        return self.expense_type_by_service_type[service_type]
