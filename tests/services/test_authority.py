"""
Tests for the gateway role capability check (tenancy_services.authority).
"""

import pytest

from tenancy_services.authority import (
    ACTION_TO_PERMISSION,
    ADMIN,
    MANAGER,
    TENANT,
    check_permission,
    get_permission_for_action,
    is_permitted,
)


class TestRoleMatrix:

    @pytest.mark.parametrize("action", sorted(ACTION_TO_PERMISSION))
    def test_admin_may_do_everything(self, action):
        assert is_permitted(ADMIN, action)

    def test_manager_cannot_cancel(self):
        assert not is_permitted(MANAGER, "cancel_reservation")
        assert is_permitted(MANAGER, "update_reservation")
        assert is_permitted(MANAGER, "create_expense_from_service")

    @pytest.mark.parametrize("action", [
        "get_reservation",
        "list_reservations_for_unit",
        "list_payments_for_reservation",
        "create_service_order",
        "get_service_order",
    ])
    def test_tenant_read_and_request(self, action):
        assert is_permitted(TENANT, action)

    @pytest.mark.parametrize("action", [
        "create_reservation",
        "update_reservation",
        "record_payment",
        "complete_service_order",
        "create_expense_from_service",
    ])
    def test_tenant_cannot_write(self, action):
        assert not is_permitted(TENANT, action)


class TestDenials:

    def test_unknown_role(self):
        allowed, reason = check_permission("janitor", "get_reservation")
        assert not allowed
        assert "unknown role" in reason

    def test_missing_role(self):
        assert not is_permitted(None, "get_reservation")

    def test_unknown_action(self):
        allowed, reason = check_permission(ADMIN, "drop_database")
        assert not allowed
        assert "unknown action" in reason
        assert get_permission_for_action("drop_database") is None

    def test_reason_names_permission(self):
        allowed, reason = check_permission(MANAGER, "cancel_reservation")
        assert not allowed
        assert "reservation.cancel" in reason

    def test_allowed_reason_is_empty(self):
        assert check_permission(ADMIN, "cancel_reservation") == (True, "")
