"""
Typed Exception Hierarchy for the Tenancy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The reservation lifecycle fails in a handful of well-defined ways, and the
UI/CLI shell has to react differently to each of them: a bad amount is a form
error, a unit that is already let is a "refresh and try again" conflict, and a
store failure means the whole operation must be re-issued.  Callers therefore
catch by TYPE and read structured attributes, never parse messages.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Example:
    try:
        service.activate(reservation_id, actor_id)
    except UnitAlreadyReservedError as e:
        show_conflict(e.unit_id, e.active_reservation_id)
    except RemoteFailureError as e:
        log.error("store failure", extra={"detail": e.detail})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TenancyError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidScheduleError
    |   +-- InvalidDateRangeError
    |   +-- FieldNotAmendableError
    |   +-- InvalidServiceSubtypeError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- UnitAlreadyReservedError
    |
    +-- ConsistencyError
    |   +-- ScheduleInconsistentError
    |
    +-- ExpenseBridgeError
    |   +-- NotEligibleError
    |   +-- AlreadyConvertedError
    |
    +-- PermissionDeniedError
    |
    +-- NotFoundError
    |   +-- ReservationNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ServiceOrderNotFoundError
    |
    +-- RemoteFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|--------------------------------------
Validation  | INVALID_AMOUNT            | Total/deposit/price zero or negative
            | INVALID_SCHEDULE          | Schedule type not in the known set
            | INVALID_DATE_RANGE        | end_date <= start_date
            | FIELD_NOT_AMENDABLE       | Edit names a field that is not editable
            | INVALID_SERVICE_SUBTYPE   | Subtype not valid for service type
------------|---------------------------|--------------------------------------
Lifecycle   | INVALID_TRANSITION        | No transition from state via action
            | UNIT_ALREADY_RESERVED     | Unit already has an active reservation
------------|---------------------------|--------------------------------------
Consistency | SCHEDULE_INCONSISTENT     | Payments disagree with the schedule
------------|---------------------------|--------------------------------------
Bridge      | NOT_ELIGIBLE              | Order not completed or not priced
            | ALREADY_CONVERTED         | Order already backs an expense
------------|---------------------------|--------------------------------------
Access      | PERMISSION_DENIED         | Role may not perform the action
------------|---------------------------|--------------------------------------
Not found   | RESERVATION_NOT_FOUND     | Unknown reservation id
            | PAYMENT_NOT_FOUND         | Unknown payment id
            | SERVICE_ORDER_NOT_FOUND   | Unknown service order id
------------|---------------------------|--------------------------------------
Remote      | REMOTE_FAILURE            | Transport/storage failure

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors are raised BEFORE any store access.  Nothing to undo.

2. Conflict errors (``retryable_after_refresh = True``) mean another actor got
   there first.  Re-fetch current state, show it to the user, let them decide.
   Never auto-retry.

3. RemoteFailureError wraps the underlying store exception in ``cause`` and
   its text in ``detail``.  Treat as non-recoverable locally.
"""


class TenancyError(Exception):
    """
    Base exception for all tenancy errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "TENANCY_ERROR"
    retryable_after_refresh: bool = False


# Validation


class ValidationError(TenancyError):
    """Base exception for local input validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """An amount that must be positive is zero or negative."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount):
        self.field = field
        self.amount = str(amount)
        super().__init__(f"{field} must be positive, got {amount}")


class InvalidScheduleError(ValidationError):
    """Payment schedule type is not one of the known cadences."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, schedule_type: str):
        self.schedule_type = schedule_type
        super().__init__(f"Unknown payment schedule: {schedule_type!r}")


class InvalidDateRangeError(ValidationError):
    """Contract end date is not strictly after its start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date, end_date):
        self.start_date = str(start_date)
        self.end_date = str(end_date)
        super().__init__(
            f"end_date {end_date} must be after start_date {start_date}"
        )


class FieldNotAmendableError(ValidationError):
    """An edit names a reservation field that cannot be changed by editing."""

    code: str = "FIELD_NOT_AMENDABLE"

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Reservation fields cannot be amended: {', '.join(self.fields)}")


class InvalidServiceSubtypeError(ValidationError):
    """Service subtype is not valid for the given service type."""

    code: str = "INVALID_SERVICE_SUBTYPE"

    def __init__(self, service_type: str, service_subtype: str):
        self.service_type = service_type
        self.service_subtype = service_subtype
        super().__init__(
            f"Subtype {service_subtype!r} is not valid for {service_type!r} services"
        )


# Lifecycle


class LifecycleError(TenancyError):
    """Base exception for reservation state machine errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """No transition exists from the current state to the requested one."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity: str, from_state: str, to_state: str):
        self.entity = entity
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Cannot move {entity} from {from_state!r} to {to_state!r}"
        )


class UnitAlreadyReservedError(LifecycleError):
    """
    The unit already has an active reservation.

    Raised both by the local check and when the store's uniqueness guarantee
    rejects a concurrent activation.
    """

    code: str = "UNIT_ALREADY_RESERVED"
    retryable_after_refresh = True

    def __init__(self, unit_id, active_reservation_id=None):
        self.unit_id = str(unit_id)
        self.active_reservation_id = (
            str(active_reservation_id) if active_reservation_id is not None else None
        )
        super().__init__(f"Unit {unit_id} already has an active reservation")


# Consistency


class ConsistencyError(TenancyError):
    """Base exception for schedule consistency errors."""

    code: str = "CONSISTENCY_ERROR"


class ScheduleInconsistentError(ConsistencyError):
    """Recorded payments disagree with the reservation's schedule."""

    code: str = "SCHEDULE_INCONSISTENT"

    def __init__(self, reservation_id, violations: list[str]):
        self.reservation_id = str(reservation_id)
        self.violations = violations
        super().__init__(
            f"Reservation {reservation_id} has {len(violations)} schedule "
            f"violation(s): {', '.join(violations)}"
        )


# Service-to-expense bridge


class ExpenseBridgeError(TenancyError):
    """Base exception for service order to expense conversion errors."""

    code: str = "EXPENSE_BRIDGE_ERROR"


class NotEligibleError(ExpenseBridgeError):
    """Service order is not completed or has no positive price."""

    code: str = "NOT_ELIGIBLE"

    def __init__(self, service_order_id, reason: str):
        self.service_order_id = str(service_order_id)
        self.reason = reason
        super().__init__(
            f"Service order {service_order_id} cannot become an expense: {reason}"
        )


class AlreadyConvertedError(ExpenseBridgeError):
    """Service order already backs an expense."""

    code: str = "ALREADY_CONVERTED"
    retryable_after_refresh = True

    def __init__(self, service_order_id, expense_id=None):
        self.service_order_id = str(service_order_id)
        self.expense_id = str(expense_id) if expense_id is not None else None
        super().__init__(
            f"Service order {service_order_id} was already converted to an expense"
        )


# Access


class PermissionDeniedError(TenancyError):
    """The caller's role may not perform the requested action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role {role!r} may not perform {action!r}")


# Not found


class NotFoundError(TenancyError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ReservationNotFoundError(NotFoundError):
    """Reservation with given ID was not found."""

    code: str = "RESERVATION_NOT_FOUND"

    def __init__(self, reservation_id):
        self.reservation_id = str(reservation_id)
        super().__init__(f"Reservation not found: {reservation_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id):
        self.payment_id = str(payment_id)
        super().__init__(f"Payment not found: {payment_id}")


class ServiceOrderNotFoundError(NotFoundError):
    """Service order with given ID was not found."""

    code: str = "SERVICE_ORDER_NOT_FOUND"

    def __init__(self, service_order_id):
        self.service_order_id = str(service_order_id)
        super().__init__(f"Service order not found: {service_order_id}")


# Remote


class RemoteFailureError(TenancyError):
    """
    Transport or storage failure.

    The caller must inspect current state and re-issue the whole operation.
    """

    code: str = "REMOTE_FAILURE"

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.detail = str(cause)
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")
