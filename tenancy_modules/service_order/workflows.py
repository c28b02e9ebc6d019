"""Service Order Workflows.

State machine for tenant service requests.
"""

from tenancy_kernel.domain.workflow import Transition, Workflow
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.service_order.workflows")


APPEND_STATUS_HISTORY = "append_status_history"


SERVICE_ORDER_WORKFLOW = Workflow(
    name="service_order",
    description="Service request from submission to completion or rejection",
    initial_states=("pending",),
    states=(
        "pending",
        "in-progress",
        "completed",
        "rejected",
    ),
    transitions=(
        Transition("pending", "in-progress", action="start", side_effect=APPEND_STATUS_HISTORY),
        Transition("pending", "completed", action="complete", side_effect=APPEND_STATUS_HISTORY),
        Transition("in-progress", "completed", action="complete", side_effect=APPEND_STATUS_HISTORY),
        Transition("pending", "rejected", action="reject", side_effect=APPEND_STATUS_HISTORY),
        Transition("in-progress", "rejected", action="reject", side_effect=APPEND_STATUS_HISTORY),
    ),
    terminal_states=("completed", "rejected"),
)

logger.info(
    "service_order_workflow_registered",
    extra={
        "workflow_name": SERVICE_ORDER_WORKFLOW.name,
        "state_count": len(SERVICE_ORDER_WORKFLOW.states),
        "transition_count": len(SERVICE_ORDER_WORKFLOW.transitions),
    },
)
