"""
Pytest fixtures for the tenancy test suite.

Provides:
- Database sessions (in-memory SQLite by default)
- A deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: database URL for the store-backed tests.  Defaults to
  in-memory SQLite (``sqlite://``); a PostgreSQL URL runs the same suite
  against PostgreSQL.
"""

import json
import logging
import os
from datetime import date
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from tenancy_kernel.db.engine import (
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from tenancy_kernel.domain.clock import DeterministicClock
from tenancy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tenancy_modules._orm_registry import create_all_tables


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture tenancy logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, reservation_service):
            reservation_service.create_reservation(...)
            logs = captured_logs()
            assert any(r["message"] == "reservation_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("tenancy")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session with a fresh schema.

    Services commit for real, so isolation comes from recreating the tables
    around every test rather than rolling back an outer transaction.
    """
    create_all_tables()
    sess = get_session()
    yield sess
    try:
        sess.rollback()
        sess.close()
    finally:
        drop_tables()


@pytest.fixture
def test_actor_id():
    """Provide the test actor ID."""
    return TEST_ACTOR_ID


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def today(deterministic_clock) -> date:
    return deterministic_clock.today()
