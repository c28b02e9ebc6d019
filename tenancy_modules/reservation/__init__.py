"""
Reservation Module (``tenancy_modules.reservation``).

Responsibility
--------------
Reservation lifecycle and payment-schedule engine: schedule generation from
contract dates and cadence, the pending/active/expired/cancelled state
machine, deposit handling, and the payment consistency checker.

Architecture position
---------------------
**Modules layer** -- pure calculations and planners (``calculations``,
``lifecycle``, ``consistency``) plus ``ReservationService``, which owns
persistence and the transaction boundary.

Invariants enforced
-------------------
* Installments sum exactly to the contract total.
* At most one active reservation per unit.
* Paid payments are never rewritten by cancellation or regeneration.

Failure modes
-------------
* ``InvalidAmountError`` / ``InvalidScheduleError`` /
  ``InvalidDateRangeError`` -- rejected terms.
* ``InvalidTransitionError`` / ``UnitAlreadyReservedError`` -- lifecycle.
"""

from tenancy_modules.reservation.calculations import generate_schedule
from tenancy_modules.reservation.config import ReservationConfig
from tenancy_modules.reservation.consistency import (
    ConsistencyReport,
    ConsistencyViolation,
    check_consistency,
    effective_status,
)
from tenancy_modules.reservation.lifecycle import transition_reservation
from tenancy_modules.reservation.models import (
    ContractType,
    DepositStatus,
    Installment,
    Payment,
    PaymentMethod,
    PaymentSchedule,
    PaymentScheduleType,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)

__all__ = [
    "ConsistencyReport",
    "ConsistencyViolation",
    "ContractType",
    "DepositStatus",
    "Installment",
    "Payment",
    "PaymentMethod",
    "PaymentSchedule",
    "PaymentScheduleType",
    "PaymentStatus",
    "Reservation",
    "ReservationConfig",
    "ReservationStatus",
    "check_consistency",
    "effective_status",
    "generate_schedule",
    "transition_reservation",
]
