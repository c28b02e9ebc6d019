"""Reservation Workflows.

State machines for the reservation lifecycle, the deposit, and individual
payments.
"""

from tenancy_kernel.domain.workflow import Guard, Transition, Workflow
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.reservation.workflows")


UNIT_AVAILABLE = Guard("unit_available", "No other reservation of the unit is active")

CANCEL_PENDING_PAYMENTS = "cancel_pending_payments"


RESERVATION_LIFECYCLE_WORKFLOW = Workflow(
    name="reservation_lifecycle",
    description="Reservation lifecycle from creation to expiry or cancellation",
    initial_states=("pending", "active"),
    states=(
        "pending",
        "active",
        "expired",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "active", action="activate", guard=UNIT_AVAILABLE),
        Transition("pending", "expired", action="expire"),
        Transition("active", "expired", action="expire"),
        Transition("pending", "cancelled", action="cancel", side_effect=CANCEL_PENDING_PAYMENTS),
        Transition("active", "cancelled", action="cancel", side_effect=CANCEL_PENDING_PAYMENTS),
        Transition("expired", "cancelled", action="cancel", side_effect=CANCEL_PENDING_PAYMENTS),
    ),
    terminal_states=("cancelled",),
)


DEPOSIT_WORKFLOW = Workflow(
    name="reservation_deposit",
    description="Deposit received and later returned to the tenant",
    initial_states=("unpaid",),
    states=("unpaid", "paid", "returned"),
    transitions=(
        Transition("unpaid", "paid", action="record"),
        Transition("paid", "returned", action="return"),
    ),
    terminal_states=("returned",),
)


PAYMENT_WORKFLOW = Workflow(
    name="reservation_payment",
    description="Recording actions on a single payment",
    initial_states=("pending",),
    states=("pending", "paid", "delayed", "cancelled"),
    transitions=(
        Transition("pending", "paid", action="record_paid"),
        Transition("pending", "delayed", action="mark_delayed"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("delayed", "paid", action="record_paid"),
        Transition("delayed", "cancelled", action="cancel"),
    ),
    terminal_states=("paid", "cancelled"),
)

for _wf in (RESERVATION_LIFECYCLE_WORKFLOW, DEPOSIT_WORKFLOW, PAYMENT_WORKFLOW):
    logger.info(
        "reservation_workflow_registered",
        extra={
            "workflow_name": _wf.name,
            "state_count": len(_wf.states),
            "transition_count": len(_wf.transitions),
        },
    )
