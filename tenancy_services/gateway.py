"""
tenancy_services.gateway -- Logical operations exposed to the API layer.

Responsibility:
    One facade per request: checks the session role against the action,
    binds the log context, and delegates to ``ReservationService`` and
    ``ServiceOrderService``.  Every operation returns a frozen dataclass
    payload or raises a typed ``TenancyError``.

Architecture position:
    Services layer.  Composes module services; holds no domain rules of its
    own beyond role gating.

Invariants:
    - Role checks happen before any module call.
    - Tenants only see their own reservations and payments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tenancy_config.schema import TenancyConfig
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.exceptions import PermissionDeniedError
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.reservation.config import ReservationConfig
from tenancy_modules.reservation.consistency import ConsistencyReport, effective_status
from tenancy_modules.reservation.models import (
    Payment,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from tenancy_modules.reservation.service import ReservationService
from tenancy_modules.service_order.models import Expense, ServiceOrder
from tenancy_modules.service_order.service import ServiceOrderService
from tenancy_services.authority import TENANT, check_permission

logger = get_logger("services.gateway")


@dataclass(frozen=True)
class PaymentView:
    """A stored payment with the status it is shown with today."""
    payment: Payment
    effective_status: PaymentStatus


@dataclass(frozen=True)
class ReservationPayload:
    reservation: Reservation
    payments: tuple[PaymentView, ...] = ()


class TenancyGateway:
    """
    Request-scoped entry point for reservation, payment and service order
    operations.

    Args:
        session: Store session for this request.
        actor_id: The authenticated user.
        role: Session role (admin, manager, tenant).
        clock: Injectable clock; system clock by default.
        config: Runtime configuration; module defaults when omitted.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        role: str,
        clock: Clock | None = None,
        config: TenancyConfig | None = None,
    ):
        self._actor_id = actor_id
        self._role = role
        self._clock = clock or SystemClock()
        reservation_config = (
            ReservationConfig.from_config(config) if config is not None else None
        )
        self._reservations = ReservationService(session, self._clock, reservation_config)
        self._service_orders = ServiceOrderService(session, self._clock)

    # =========================================================================
    # Boundary helpers
    # =========================================================================

    def _authorize(self, action: str) -> None:
        allowed, reason = check_permission(self._role, action)
        if not allowed:
            logger.warning("gateway_permission_denied", extra={
                "action": action,
                "actor_role": self._role,
                "reason": reason,
            })
            raise PermissionDeniedError(str(self._role), action)

    def _ensure_visible(self, reservation: Reservation, action: str) -> None:
        if self._role == TENANT and reservation.tenant_id != self._actor_id:
            raise PermissionDeniedError(self._role, action)

    def _views(self, payments: tuple[Payment, ...]) -> tuple[PaymentView, ...]:
        today = self._clock.today()
        return tuple(PaymentView(p, effective_status(p, today)) for p in payments)

    def _payload(self, reservation: Reservation) -> ReservationPayload:
        return ReservationPayload(
            reservation=reservation,
            payments=self._views(self._reservations.list_payments(reservation.id)),
        )

    # =========================================================================
    # Reservations
    # =========================================================================

    def create_reservation(
        self,
        unit_id: UUID,
        tenant_id: UUID,
        contract_type: str,
        start_date: date,
        end_date: date,
        payment_method: str,
        payment_schedule: str,
        total_amount: Decimal,
        status: str = "pending",
        includes_deposit: bool = False,
        deposit_amount: Decimal | None = None,
        deposit_payment_method: str = "cash",
        notes: str | None = None,
    ) -> ReservationPayload:
        self._authorize("create_reservation")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            reservation, _ = self._reservations.create_reservation(
                unit_id=unit_id,
                tenant_id=tenant_id,
                contract_type=contract_type,
                start_date=start_date,
                end_date=end_date,
                payment_method=payment_method,
                payment_schedule=payment_schedule,
                total_amount=total_amount,
                actor_id=self._actor_id,
                status=status,
                includes_deposit=includes_deposit,
                deposit_amount=deposit_amount,
                deposit_payment_method=deposit_payment_method,
                notes=notes,
            )
            return self._payload(reservation)

    def update_reservation(
        self,
        reservation_id: UUID,
        status: str | None = None,
        **changes,
    ) -> ReservationPayload:
        """
        Edit a reservation.

        Field changes are applied first (regenerating unpaid installments when
        the schedule shape changes); a ``status`` change is applied after, in
        the same transaction.
        """
        self._authorize("update_reservation")
        if status == ReservationStatus.CANCELLED.value:
            self._authorize("cancel_reservation")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._payload(self._reservations.update_reservation(
                reservation_id, self._actor_id, status=status, **changes,
            ))

    def cancel_reservation(self, reservation_id: UUID) -> ReservationPayload:
        self._authorize("cancel_reservation")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._payload(
                self._reservations.cancel_reservation(reservation_id, self._actor_id)
            )

    def get_reservation(self, reservation_id: UUID) -> ReservationPayload:
        self._authorize("get_reservation")
        reservation = self._reservations.get_reservation(reservation_id)
        self._ensure_visible(reservation, "get_reservation")
        return self._payload(reservation)

    def list_reservations_for_unit(self, unit_id: UUID) -> tuple[Reservation, ...]:
        self._authorize("list_reservations_for_unit")
        reservations = self._reservations.list_reservations_for_unit(unit_id)
        if self._role == TENANT:
            reservations = tuple(r for r in reservations if r.tenant_id == self._actor_id)
        return reservations

    def expire_overdue(self) -> tuple[Reservation, ...]:
        self._authorize("expire_overdue")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return tuple(self._reservations.expire_overdue(self._actor_id))

    def check_consistency(self, reservation_id: UUID) -> ConsistencyReport:
        self._authorize("check_consistency")
        return self._reservations.check_consistency(reservation_id)

    def repair_schedule(self, reservation_id: UUID) -> ConsistencyReport:
        self._authorize("repair_schedule")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._reservations.repair_schedule(reservation_id, self._actor_id)

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        payment_id: UUID,
        status: str = "paid",
        paid_on: date | None = None,
        amount: Decimal | None = None,
        late_fee: Decimal | None = None,
        notes: str | None = None,
        check_image_ref: str | None = None,
        payment_method: str | None = None,
    ) -> PaymentView:
        self._authorize("record_payment")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            payment = self._reservations.record_payment(
                payment_id,
                self._actor_id,
                status=status,
                paid_on=paid_on,
                amount=amount,
                late_fee=late_fee,
                notes=notes,
                check_image_ref=check_image_ref,
                payment_method=payment_method,
            )
        return PaymentView(payment, effective_status(payment, self._clock.today()))

    def list_payments_for_reservation(self, reservation_id: UUID) -> tuple[PaymentView, ...]:
        self._authorize("list_payments_for_reservation")
        reservation = self._reservations.get_reservation(reservation_id)
        self._ensure_visible(reservation, "list_payments_for_reservation")
        return self._views(self._reservations.list_payments(reservation_id))

    def record_deposit(self, reservation_id: UUID, paid_on: date | None = None,
                       notes: str | None = None) -> Reservation:
        self._authorize("record_deposit")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._reservations.record_deposit(reservation_id, self._actor_id, paid_on, notes)

    def return_deposit(self, reservation_id: UUID, returned_on: date | None = None,
                       notes: str | None = None) -> Reservation:
        self._authorize("return_deposit")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._reservations.return_deposit(reservation_id, self._actor_id, returned_on, notes)

    # =========================================================================
    # Service orders
    # =========================================================================

    def create_service_order(
        self,
        reservation_id: UUID,
        service_type: str,
        service_subtype: str,
        description: str,
    ) -> ServiceOrder:
        self._authorize("create_service_order")
        reservation = self._reservations.get_reservation(reservation_id)
        self._ensure_visible(reservation, "create_service_order")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._service_orders.create_service_order(
                reservation_id,
                self._actor_id,
                service_type,
                service_subtype,
                description,
            )

    def get_service_order(self, service_order_id: UUID) -> ServiceOrder:
        self._authorize("get_service_order")
        order = self._service_orders.get_service_order(service_order_id)
        self._ensure_visible(
            self._reservations.get_reservation(order.reservation_id), "get_service_order",
        )
        return order

    def start_service_order(self, service_order_id: UUID) -> ServiceOrder:
        self._authorize("update_service_order")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._service_orders.start_service_order(service_order_id, self._actor_id)

    def complete_service_order(
        self,
        service_order_id: UUID,
        service_price: Decimal | None = None,
        notes: str | None = None,
    ) -> ServiceOrder:
        self._authorize("complete_service_order")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._service_orders.complete_service_order(
                service_order_id, self._actor_id, service_price=service_price, notes=notes,
            )

    def create_expense_from_service(
        self,
        service_order_id: UUID,
        responsible_party: str = "owner",
        notes: str | None = None,
        expense_type: str | None = None,
    ) -> Expense:
        self._authorize("create_expense_from_service")
        with LogContext.bind(actor_id=self._actor_id, actor_role=self._role):
            return self._service_orders.create_expense_from_service(
                service_order_id,
                self._actor_id,
                responsible_party=responsible_party,
                notes=notes,
                expense_type=expense_type,
            )
