"""
Service Order Module Service (``tenancy_modules.service_order.service``).

Responsibility
--------------
Records tenant service requests, moves them through their workflow, prices
them, and converts completed orders into expenses exactly once.

Architecture position
---------------------
**Modules layer** -- ``ServiceOrderService`` owns persistence and the
transaction boundary; decisions are delegated to ``lifecycle`` and
``bridge``.

Invariants enforced
-------------------
* Each public write method commits on success and rolls back on failure.
* A racing second conversion surfaces as ``AlreadyConvertedError`` via the
  unique constraint on ``expenses.source_service_order_id``.

Failure modes
-------------
* ``InvalidServiceSubtypeError`` / ``InvalidAmountError`` -- rejected input.
* ``InvalidTransitionError`` -- illegal status change.
* ``NotEligibleError`` / ``AlreadyConvertedError`` -- conversion refused.
* ``RemoteFailureError`` -- any other store failure.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.exceptions import (
    AlreadyConvertedError,
    RemoteFailureError,
    ReservationNotFoundError,
    ServiceOrderNotFoundError,
    TenancyError,
)
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.reservation.orm import ReservationModel
from tenancy_modules.service_order.bridge import convert_to_expense
from tenancy_modules.service_order.config import ServiceOrderConfig
from tenancy_modules.service_order.lifecycle import set_price, transition_service_order
from tenancy_modules.service_order.models import (
    Expense,
    ExpenseType,
    ResponsibleParty,
    ServiceOrder,
    ServiceOrderStatus,
    ServiceType,
    StatusChange,
)
from tenancy_modules.service_order.orm import ExpenseModel, ServiceOrderModel

logger = get_logger("modules.service_order.service")


class ServiceOrderService:
    """Service requests and their conversion into expenses."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ServiceOrderConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ServiceOrderConfig.with_defaults()

    def _load(self, service_order_id: UUID, for_update: bool = False) -> ServiceOrderModel:
        stmt = select(ServiceOrderModel).where(ServiceOrderModel.id == service_order_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise ServiceOrderNotFoundError(service_order_id)
        return row

    def _expense_for(self, service_order_id: UUID) -> ExpenseModel | None:
        return self._session.execute(
            select(ExpenseModel).where(ExpenseModel.source_service_order_id == service_order_id)
        ).scalar_one_or_none()

    # =========================================================================
    # Requests
    # =========================================================================

    def create_service_order(
        self,
        reservation_id: UUID,
        requested_by: UUID,
        service_type: str | ServiceType,
        service_subtype: str,
        description: str,
        service_price: Decimal | None = None,
    ) -> ServiceOrder:
        order = ServiceOrder(
            id=uuid4(),
            reservation_id=reservation_id,
            requested_by=requested_by,
            service_type=ServiceType(service_type),
            service_subtype=service_subtype,
            description=description,
            service_price=Decimal(str(service_price)) if service_price is not None else None,
            history=(StatusChange(ServiceOrderStatus.PENDING, self._clock.today(), requested_by),),
        )

        with LogContext.bind(service_order_id=order.id, reservation_id=reservation_id):
            try:
                if self._session.get(ReservationModel, reservation_id) is None:
                    raise ReservationNotFoundError(reservation_id)
                row = ServiceOrderModel.from_dto(order, created_by_id=requested_by)
                self._session.add(row)
                self._session.flush()
                row.apply_dto(order, updated_by_id=requested_by)
                self._session.commit()
            except TenancyError:
                self._session.rollback()
                raise
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise RemoteFailureError("create_service_order", exc) from exc

            logger.info("service_order_created", extra={
                "service_type": order.service_type.value,
                "service_subtype": order.service_subtype,
            })
        return self.get_service_order(order.id)

    def _update(
        self,
        operation: str,
        service_order_id: UUID,
        actor_id: UUID,
        change,
    ) -> ServiceOrder:
        with LogContext.bind(service_order_id=service_order_id, actor_id=actor_id):
            try:
                row = self._load(service_order_id, for_update=True)
                before = row.to_dto()
                after = change(before)
                row.apply_dto(after, updated_by_id=actor_id)
                self._session.commit()
            except TenancyError:
                self._session.rollback()
                raise
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise RemoteFailureError(operation, exc) from exc

            logger.info("service_order_updated", extra={
                "operation": operation,
                "from_state": before.status.value,
                "to_state": after.status.value,
                "service_price": str(after.service_price) if after.service_price is not None else None,
            })
        return self.get_service_order(service_order_id)

    def change_status(
        self,
        service_order_id: UUID,
        target_status: str | ServiceOrderStatus,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ServiceOrder:
        today = self._clock.today()
        return self._update(
            "change_status",
            service_order_id,
            actor_id,
            lambda order: transition_service_order(order, target_status, today, actor_id, notes),
        )

    def start_service_order(self, service_order_id: UUID, actor_id: UUID) -> ServiceOrder:
        return self.change_status(service_order_id, ServiceOrderStatus.IN_PROGRESS, actor_id)

    def reject_service_order(
        self,
        service_order_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ServiceOrder:
        return self.change_status(service_order_id, ServiceOrderStatus.REJECTED, actor_id, notes)

    def set_service_price(
        self,
        service_order_id: UUID,
        price: Decimal,
        actor_id: UUID,
    ) -> ServiceOrder:
        price = Decimal(str(price))
        return self._update(
            "set_service_price",
            service_order_id,
            actor_id,
            lambda order: set_price(order, price),
        )

    def complete_service_order(
        self,
        service_order_id: UUID,
        actor_id: UUID,
        service_price: Decimal | None = None,
        notes: str | None = None,
    ) -> ServiceOrder:
        """Complete an order, optionally pricing it in the same transaction."""
        today = self._clock.today()
        price = Decimal(str(service_price)) if service_price is not None else None

        def complete(order: ServiceOrder) -> ServiceOrder:
            if price is not None:
                order = set_price(order, price)
            return transition_service_order(
                order, ServiceOrderStatus.COMPLETED, today, actor_id, notes,
            )

        return self._update("complete_service_order", service_order_id, actor_id, complete)

    # =========================================================================
    # Expense bridge
    # =========================================================================

    def create_expense_from_service(
        self,
        service_order_id: UUID,
        actor_id: UUID,
        responsible_party: str | ResponsibleParty = ResponsibleParty.OWNER,
        notes: str | None = None,
        expense_date: date | None = None,
        expense_type: str | ExpenseType | None = None,
    ) -> Expense:
        """
        Convert a completed service order into its expense, exactly once.

        The expense type defaults to the configured category of the order's
        service type.
        """
        party = ResponsibleParty(responsible_party)
        with LogContext.bind(service_order_id=service_order_id, actor_id=actor_id):
            try:
                row = self._load(service_order_id, for_update=True)
                order = row.to_dto()
                existing = self._expense_for(service_order_id)
                kind = (
                    ExpenseType(expense_type)
                    if expense_type is not None
                    else self._config.expense_type_for(order.service_type)
                )
                expense = convert_to_expense(
                    order,
                    existing.to_dto() if existing is not None else None,
                    party,
                    notes,
                    expense_date or self._clock.today(),
                    expense_type=kind,
                )
                self._session.add(ExpenseModel.from_dto(expense, created_by_id=actor_id))
                self._session.flush()
                self._session.commit()
            except TenancyError:
                self._session.rollback()
                raise
            except IntegrityError as exc:
                self._session.rollback()
                logger.warning("service_order_conversion_conflict", extra={
                    "service_order_id": str(service_order_id),
                })
                raise AlreadyConvertedError(service_order_id) from exc
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise RemoteFailureError("create_expense_from_service", exc) from exc

            logger.info("service_order_converted", extra={
                "expense_id": str(expense.id),
                "expense_type": expense.expense_type.value,
                "amount": str(expense.amount),
                "responsible_party": party.value,
            })
        return expense

    # =========================================================================
    # Queries
    # =========================================================================

    def get_service_order(self, service_order_id: UUID) -> ServiceOrder:
        try:
            return self._load(service_order_id).to_dto()
        except SQLAlchemyError as exc:
            raise RemoteFailureError("get_service_order", exc) from exc

    def list_service_orders_for_reservation(self, reservation_id: UUID) -> tuple[ServiceOrder, ...]:
        try:
            rows = self._session.execute(
                select(ServiceOrderModel)
                .where(ServiceOrderModel.reservation_id == reservation_id)
                .order_by(ServiceOrderModel.created_at)
            ).scalars()
            return tuple(row.to_dto() for row in rows)
        except SQLAlchemyError as exc:
            raise RemoteFailureError("list_service_orders_for_reservation", exc) from exc

    def get_expense_for_service_order(self, service_order_id: UUID) -> Expense | None:
        try:
            row = self._expense_for(service_order_id)
            return row.to_dto() if row is not None else None
        except SQLAlchemyError as exc:
            raise RemoteFailureError("get_expense_for_service_order", exc) from exc
