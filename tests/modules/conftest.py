"""
Shared fixtures for tenancy module tests.

Provides deterministic ids, frozen reservation/payment builders for the pure
planners, and store-backed services wired to a ``DeterministicClock``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from tenancy_kernel.domain.clock import DeterministicClock
from tenancy_modules.reservation.config import ReservationConfig
from tenancy_modules.reservation.models import (
    ContractType,
    Payment,
    PaymentKind,
    PaymentMethod,
    PaymentScheduleType,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from tenancy_modules.reservation.service import ReservationService
from tenancy_modules.service_order.service import ServiceOrderService

# ---------------------------------------------------------------------------
# Deterministic IDs
# ---------------------------------------------------------------------------

UNIT_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_UNIT_ID = UUID("00000000-0000-0000-0000-0000000000a2")
TENANT_ID = UUID("00000000-0000-0000-0000-0000000000b1")
OTHER_TENANT_ID = UUID("00000000-0000-0000-0000-0000000000b2")
MANAGER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
RESERVATION_ID = UUID("00000000-0000-0000-0000-0000000000d1")

JAN_1 = date(2024, 1, 1)
JUL_1 = date(2024, 7, 1)


def make_reservation(**overrides) -> Reservation:
    """A pending quarterly 1200 contract for Jan..Jul 2024 on UNIT_ID."""
    values = dict(
        id=RESERVATION_ID,
        unit_id=UNIT_ID,
        tenant_id=TENANT_ID,
        contract_type=ContractType.RESIDENTIAL,
        start_date=JAN_1,
        end_date=JUL_1,
        payment_method=PaymentMethod.CASH,
        payment_schedule=PaymentScheduleType.QUARTERLY,
        total_amount=Decimal("1200"),
        status=ReservationStatus.PENDING,
    )
    values.update(overrides)
    return Reservation(**values)


def make_payment(
    due_date: date,
    amount: Decimal | str = "600",
    status: PaymentStatus = PaymentStatus.PENDING,
    reservation_id: UUID = RESERVATION_ID,
    kind: PaymentKind = PaymentKind.INSTALLMENT,
    sequence: int = 1,
) -> Payment:
    return Payment(
        id=uuid4(),
        reservation_id=reservation_id,
        amount=Decimal(str(amount)),
        due_date=due_date,
        payment_date=due_date,
        payment_method="cash",
        status=status,
        kind=kind,
        sequence=sequence,
    )


@pytest.fixture
def reservation() -> Reservation:
    return make_reservation()


@pytest.fixture
def clock() -> DeterministicClock:
    """Clock on 2024-01-01, the start of the default contract."""
    return DeterministicClock.on(JAN_1)


@pytest.fixture
def reservation_service(session, clock) -> ReservationService:
    return ReservationService(session, clock, ReservationConfig.with_defaults())


@pytest.fixture
def service_order_service(session, clock) -> ServiceOrderService:
    return ServiceOrderService(session, clock)


@pytest.fixture
def create_reservation(reservation_service, test_actor_id):
    """Factory creating a stored reservation with the default contract terms."""

    def _create(**overrides):
        values = dict(
            unit_id=UNIT_ID,
            tenant_id=TENANT_ID,
            contract_type="residential",
            start_date=JAN_1,
            end_date=JUL_1,
            payment_method="cash",
            payment_schedule="quarterly",
            total_amount=Decimal("1200"),
            actor_id=test_actor_id,
        )
        values.update(overrides)
        return reservation_service.create_reservation(**values)

    return _create
