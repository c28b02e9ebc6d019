"""
Configuration Schema (``tenancy_config.schema``).

Responsibility
--------------
Frozen dataclass describing the runtime configuration of the tenancy back
office: store connection, currency precision, consistency tolerance,
logging level and the expiry sweep switch.

Invariants enforced
-------------------
* ``amount_quantum`` is a positive power of ten (0.01, 1, 0.001 ...).
* ``consistency_tolerance`` is non-negative.
* ``currency`` is a three-letter code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TenancyConfig:
    """Runtime configuration for the tenancy back office."""

    database_url: str = "sqlite://"
    currency: str = "USD"
    amount_quantum: Decimal = Decimal("0.01")
    consistency_tolerance: Decimal = Decimal("0.01")
    log_level: str = "INFO"
    expiry_sweep_enabled: bool = True

    def __post_init__(self) -> None:
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")
        if self.amount_quantum <= 0:
            raise ValueError("amount_quantum must be positive")
        if self.amount_quantum != Decimal(1).scaleb(self.amount_quantum.adjusted()):
            raise ValueError(
                f"amount_quantum must be a power of ten, got {self.amount_quantum}"
            )
        if self.consistency_tolerance < 0:
            raise ValueError("consistency_tolerance cannot be negative")
