"""
Tenancy Modules.

Domain modules over the Tenancy Kernel.  Each module contains:
- Domain models (the nouns)
- Pure calculations and lifecycle planners
- Workflows (state machines)
- ORM models and a service that owns the transaction boundary

Modules:
- Reservation: contracts, payment schedules, deposits, consistency checks
- Service order: tenant service requests and their conversion to expenses
"""

from tenancy_modules import reservation, service_order

__all__ = [
    "reservation",
    "service_order",
]
