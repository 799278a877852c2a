"""
Pytest fixtures for the portal kernel test suite.

Provides:
- An in-memory SQLite database per test (schema created from the ORM models)
- Deterministic clocks
- Payment record builders
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from portal_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from portal_kernel.domain.clock import DeterministicClock
from portal_kernel.domain.payment import (
    DocumentAttachment,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from portal_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_CLIENT_ID = UUID("00000000-0000-0000-0000-0000000000c1")


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
    Capture portal_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, state_machine):
            state_machine.attempt_transition(record, PaymentStatus.PAID)
            logs = captured_logs()
            assert any(r["message"] == "payment_transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portal_kernel")
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


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database with all payment tables."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    sess = get_session()
    yield sess
    try:
        sess.close()
        drop_tables()
    finally:
        reset_engine()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Record builders
# =============================================================================


def make_payment(**overrides) -> PaymentRecord:
    """A PENDING office payment of 100.00 due 2024-03-10, with overrides."""
    fields = {
        "id": uuid4(),
        "payment_type": PaymentType.OFFICE,
        "amount": Decimal("100.00"),
        "due_date": date(2024, 3, 10),
        "status": PaymentStatus.PENDING,
        "title": "Office rent",
    }
    fields.update(overrides)
    if fields["payment_type"] == PaymentType.CLIENT:
        fields.setdefault("client_id", TEST_CLIENT_ID)
    if fields["status"] == PaymentStatus.PAID:
        fields.setdefault("payment_date", fields["due_date"])
    return PaymentRecord(**fields)


def make_invoice(
    attached_at: datetime | None = None,
    is_invoice: bool = True,
    document_id: UUID | None = None,
) -> DocumentAttachment:
    return DocumentAttachment(
        document_id=document_id or uuid4(),
        attached_at=attached_at or datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc),
        is_invoice=is_invoice,
        attached_by=TEST_ACTOR_ID,
        title="invoice.pdf" if is_invoice else "notes.pdf",
    )


@pytest.fixture
def payment_factory():
    return make_payment


@pytest.fixture
def invoice_factory():
    return make_invoice
