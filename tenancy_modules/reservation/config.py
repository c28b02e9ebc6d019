"""
Reservation Module Configuration Schema.

Defines currency precision for schedule amounts and the tolerance the
consistency checker allows between recorded payments and the contract total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from tenancy_config.schema import TenancyConfig
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.reservation.config")


@dataclass
class ReservationConfig:
    """Configuration schema for the reservation module."""

    # Smallest currency unit installments are rounded to
    amount_quantum: Decimal = Decimal("0.01")

    # Allowed gap between sum of live installments and the contract total
    consistency_tolerance: Decimal = Decimal("0.01")

    currency: str = "USD"

    def __post_init__(self):
        if self.amount_quantum <= 0:
            raise ValueError("amount_quantum must be positive")
        if self.consistency_tolerance < 0:
            raise ValueError("consistency_tolerance cannot be negative")

        logger.info(
            "reservation_config_initialized",
            extra={
                "amount_quantum": str(self.amount_quantum),
                "consistency_tolerance": str(self.consistency_tolerance),
                "currency": self.currency,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with cent precision."""
        return cls()

    @classmethod
    def from_config(cls, config: TenancyConfig) -> Self:
        return cls(
            amount_quantum=config.amount_quantum,
            consistency_tolerance=config.consistency_tolerance,
            currency=config.currency,
        )
