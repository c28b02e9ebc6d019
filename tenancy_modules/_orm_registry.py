"""
Module ORM Registry (``tenancy_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``tenancy_modules``
packages and from ``tenancy_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``tenancy_kernel``.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import every ``tenancy_modules.*.orm`` module to register ORM models.

    This function is idempotent -- repeated calls are harmless.
    """
    import tenancy_modules.reservation.orm  # noqa: F401
    import tenancy_modules.service_order.orm  # noqa: F401


def create_all_tables() -> None:
    """Register all module ORM models, then create every table.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from tenancy_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
