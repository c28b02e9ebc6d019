"""
Tenancy Services.

Boundary facades over the tenancy modules: the request-scoped
``TenancyGateway`` and the role capability predicate.
"""

from tenancy_services.authority import check_permission, is_permitted
from tenancy_services.gateway import PaymentView, ReservationPayload, TenancyGateway

__all__ = [
    "PaymentView",
    "ReservationPayload",
    "TenancyGateway",
    "check_permission",
    "is_permitted",
]
