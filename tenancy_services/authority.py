"""
tenancy_services.authority -- Role capability check at the gateway boundary.

Responsibility:
    Decide whether a session role (admin, manager, tenant) may perform a
    gateway action.  The lifecycle and schedule code never look at roles.

Architecture position:
    Services layer.  Called by ``TenancyGateway`` before any module call.

Invariants:
    - Identity is not resolved here; the caller supplies the role.
    - Unknown roles and unknown actions are denied.
"""

from __future__ import annotations

ADMIN = "admin"
MANAGER = "manager"
TENANT = "tenant"

ROLES: tuple[str, ...] = (ADMIN, MANAGER, TENANT)

# action -> permission string
ACTION_TO_PERMISSION: dict[str, str] = {
    "create_reservation": "reservation.create",
    "update_reservation": "reservation.update",
    "cancel_reservation": "reservation.cancel",
    "get_reservation": "reservation.view",
    "list_reservations_for_unit": "reservation.view",
    "check_consistency": "reservation.view",
    "repair_schedule": "reservation.update",
    "expire_overdue": "reservation.update",
    "record_payment": "payment.record",
    "record_deposit": "payment.record",
    "return_deposit": "payment.record",
    "list_payments_for_reservation": "payment.view",
    "create_service_order": "service_order.create",
    "get_service_order": "service_order.view",
    "update_service_order": "service_order.update",
    "complete_service_order": "service_order.update",
    "create_expense_from_service": "expense.create",
}

_STAFF_PERMISSIONS = frozenset(ACTION_TO_PERMISSION.values())

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ADMIN: _STAFF_PERMISSIONS,
    MANAGER: _STAFF_PERMISSIONS - {"reservation.cancel"},
    TENANT: frozenset({
        "reservation.view",
        "payment.view",
        "service_order.create",
        "service_order.view",
    }),
}


def get_permission_for_action(action: str) -> str | None:
    """Return the permission required for a gateway action, or None if unknown."""
    return ACTION_TO_PERMISSION.get(action)


def check_permission(role: str | None, action: str) -> tuple[bool, str]:
    """Check whether ``role`` may perform ``action``.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if not role or role not in ROLE_PERMISSIONS:
        return (False, f"unknown role {role!r}")
    permission = get_permission_for_action(action)
    if permission is None:
        return (False, f"unknown action {action!r}")
    if permission not in ROLE_PERMISSIONS[role]:
        return (False, f"permission {permission!r} not granted to {role!r}")
    return (True, "")


def is_permitted(role: str | None, action: str) -> bool:
    return check_permission(role, action)[0]
