"""
Tests for the transactional payment service (portal_modules.payments.service).

Runs against an in-memory SQLite database.

Covers:
- Creation with configured defaults
- Persisted transitions and document operations
- Result objects for rejected operations (rollback, nothing written)
- Optimistic version checks
- Recurring occurrence persisted in the same transaction
- Overdue listing
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from portal_config.schema import PaymentsConfig
from portal_kernel.domain.clock import DeterministicClock
from portal_kernel.domain.payment import (
    PaymentStatus,
    PaymentType,
    RecurringFrequency,
)
from portal_kernel.exceptions import PaymentNotFoundError
from portal_modules.payments.orm import PaymentDocumentModel, PaymentModel
from portal_modules.payments.service import (
    PaymentOperationStatus,
    PaymentService,
)
from tests.conftest import TEST_CLIENT_ID, make_invoice


@pytest.fixture
def clock():
    return DeterministicClock.on(date(2024, 3, 5))


@pytest.fixture
def service(session, clock):
    return PaymentService(session, clock=clock)


def _create(service, actor_id, **overrides):
    fields = {
        "payment_type": PaymentType.OFFICE,
        "amount": Decimal("250.00"),
        "due_date": date(2024, 3, 10),
        "actor_id": actor_id,
        "title": "Accounting software",
    }
    fields.update(overrides)
    return service.create_payment(**fields)


class TestCreatePayment:

    def test_creates_pending_payment(self, service, session, test_actor_id):
        result = _create(service, test_actor_id)

        assert result.is_success
        assert result.version == 1
        stored = service.get_payment(result.payment_id)
        assert stored.status == PaymentStatus.PENDING
        assert stored.amount == Decimal("250.00")
        assert stored.title == "Accounting software"
        assert session.scalar(select(func.count()).select_from(PaymentModel)) == 1

    def test_requires_invoice_defaults_from_config(self, session, clock, test_actor_id):
        service = PaymentService(
            session, clock=clock, config=PaymentsConfig(default_requires_invoice=True)
        )
        result = _create(service, test_actor_id)
        assert service.get_payment(result.payment_id).requires_invoice is True

    def test_explicit_requires_invoice_wins(self, session, clock, test_actor_id):
        service = PaymentService(
            session, clock=clock, config=PaymentsConfig(default_requires_invoice=True)
        )
        result = _create(service, test_actor_id, requires_invoice=False)
        assert service.get_payment(result.payment_id).requires_invoice is False

    def test_frequency_alias_accepted(self, service, test_actor_id):
        result = _create(
            service, test_actor_id, is_recurring=True, recurring_frequency="ANNUALLY"
        )
        stored = service.get_payment(result.payment_id)
        assert stored.recurring_frequency == RecurringFrequency.YEARLY

    def test_invalid_data_raises_and_writes_nothing(self, service, session, test_actor_id):
        with pytest.raises(ValueError):
            _create(service, test_actor_id, payment_type=PaymentType.CLIENT)
        assert session.scalar(select(func.count()).select_from(PaymentModel)) == 0

    def test_get_unknown_payment(self, service):
        with pytest.raises(PaymentNotFoundError):
            service.get_payment(uuid4())


class TestTransition:

    def test_mark_paid(self, service, test_actor_id):
        created = _create(service, test_actor_id)

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert result.status == PaymentOperationStatus.SUCCEEDED
        assert result.version == 2
        stored = service.get_payment(created.payment_id)
        assert stored.status == PaymentStatus.PAID
        assert stored.payment_date == date(2024, 3, 5)

    def test_rejected_transition_is_result_not_exception(self, service, test_actor_id):
        created = _create(service, test_actor_id, requires_invoice=True)

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert not result.is_success
        assert result.status == PaymentOperationStatus.REJECTED
        assert result.error_code == "MISSING_EVIDENCE"
        assert service.get_payment(created.payment_id).status == PaymentStatus.PENDING
        assert service.get_version(created.payment_id) == 1

    def test_terminal_rejection(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        service.transition(created.payment_id, PaymentStatus.CANCELED, test_actor_id)

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert result.error_code == "TERMINAL_STATE_VIOLATION"

    def test_unknown_payment(self, service, test_actor_id):
        result = service.transition(uuid4(), PaymentStatus.PAID, test_actor_id)
        assert result.status == PaymentOperationStatus.NOT_FOUND
        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_same_status_unchanged(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        result = service.transition(created.payment_id, PaymentStatus.PENDING, test_actor_id)
        assert result.status == PaymentOperationStatus.UNCHANGED
        assert result.is_success
        assert result.version == 1


class TestOptimisticVersion:

    def test_stale_expected_version(self, service, test_actor_id):
        created = _create(service, test_actor_id, requires_invoice=True)
        service.transition(
            created.payment_id, PaymentStatus.AWAITING_INVOICE, test_actor_id,
            expected_version=created.version,
        )

        result = service.transition(
            created.payment_id, PaymentStatus.CANCELED, test_actor_id,
            expected_version=created.version,
        )

        assert result.status == PaymentOperationStatus.CONFLICT
        assert result.error_code == "OPTIMISTIC_LOCK_CONFLICT"
        assert service.get_payment(created.payment_id).status == PaymentStatus.AWAITING_INVOICE

    def test_current_expected_version(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        result = service.transition(
            created.payment_id, PaymentStatus.CANCELED, test_actor_id,
            expected_version=created.version,
        )
        assert result.is_success
        assert result.version == created.version + 1


class TestDocuments:

    def test_attach_invoice_moves_pending_to_ready(self, service, test_actor_id):
        created = _create(
            service, test_actor_id,
            payment_type=PaymentType.CLIENT, client_id=TEST_CLIENT_ID,
            requires_invoice=True,
        )
        invoice = make_invoice()

        result = service.attach_document(created.payment_id, invoice, test_actor_id)

        assert result.is_success
        stored = service.get_payment(created.payment_id)
        assert stored.status == PaymentStatus.READY_TO_PAY
        assert stored.attached_documents == (invoice,)
        assert stored.invoice_attached_at == datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    def test_attach_order_preserved(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        docs = [make_invoice(is_invoice=False) for _ in range(3)]
        for doc in docs:
            service.attach_document(created.payment_id, doc, test_actor_id)

        stored = service.get_payment(created.payment_id)
        assert [d.document_id for d in stored.attached_documents] == [
            d.document_id for d in docs
        ]

    def test_document_only_change_bumps_version(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        result = service.attach_document(
            created.payment_id, make_invoice(is_invoice=False), test_actor_id
        )
        assert result.version == 2

    def test_duplicate_attach_unchanged(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        doc = make_invoice(is_invoice=False)
        service.attach_document(created.payment_id, doc, test_actor_id)

        result = service.attach_document(created.payment_id, doc, test_actor_id)

        assert result.status == PaymentOperationStatus.UNCHANGED

    def test_detach(self, service, session, test_actor_id):
        created = _create(service, test_actor_id)
        keep = make_invoice(is_invoice=False)
        drop = make_invoice(is_invoice=False)
        service.attach_document(created.payment_id, keep, test_actor_id)
        service.attach_document(created.payment_id, drop, test_actor_id)

        result = service.detach_document(created.payment_id, drop.document_id, test_actor_id)

        assert result.is_success
        stored = service.get_payment(created.payment_id)
        assert stored.attached_documents == (keep,)
        assert session.scalar(select(func.count()).select_from(PaymentDocumentModel)) == 1

    def test_detach_locked_invoice(self, service, test_actor_id):
        created = _create(service, test_actor_id, requires_invoice=True)
        invoice = make_invoice()
        service.attach_document(created.payment_id, invoice, test_actor_id)

        result = service.detach_document(created.payment_id, invoice.document_id, test_actor_id)

        assert result.error_code == "EVIDENCE_WITHDRAWAL_VIOLATION"
        assert service.get_payment(created.payment_id).attached_documents == (invoice,)

    def test_detach_unknown(self, service, test_actor_id):
        created = _create(service, test_actor_id)
        result = service.detach_document(created.payment_id, uuid4(), test_actor_id)
        assert result.error_code == "DOCUMENT_NOT_ATTACHED"


class TestRecurringPersistence:

    def test_next_occurrence_stored_with_settlement(self, service, session, test_actor_id):
        created = _create(
            service, test_actor_id,
            due_date=date(2024, 1, 31),
            is_recurring=True,
            recurring_frequency=RecurringFrequency.MONTHLY,
        )

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert result.next_occurrence is not None
        follow_up = service.get_payment(result.next_occurrence.id)
        assert follow_up.due_date == date(2024, 2, 29)
        assert follow_up.parent_payment_id == created.payment_id
        assert follow_up.status == PaymentStatus.PENDING
        assert session.scalar(select(func.count()).select_from(PaymentModel)) == 2

    def test_month_end_anchor_survives_storage(self, service, test_actor_id):
        created = _create(
            service, test_actor_id,
            due_date=date(2024, 1, 31),
            is_recurring=True,
            recurring_frequency=RecurringFrequency.MONTHLY,
        )
        february = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        march = service.transition(
            february.next_occurrence.id, PaymentStatus.PAID, test_actor_id
        )

        assert march.next_occurrence.due_date == date(2024, 3, 31)
        assert service.get_payment(march.next_occurrence.id).recurring_day_of_month == 31

    def test_deleted_client_rolls_back_settlement(self, session, clock, test_actor_id):
        service = PaymentService(session, clock=clock, client_exists=lambda client_id: False)
        created = _create(
            service, test_actor_id,
            payment_type=PaymentType.CLIENT,
            client_id=TEST_CLIENT_ID,
            is_recurring=True,
            recurring_frequency=RecurringFrequency.MONTHLY,
        )

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert result.status == PaymentOperationStatus.RECURRENCE_FAILED
        assert result.error_code == "CLIENT_REFERENCE_MISSING"
        assert service.get_payment(created.payment_id).status == PaymentStatus.PENDING
        assert session.scalar(select(func.count()).select_from(PaymentModel)) == 1

    def test_missing_frequency_rolls_back(self, service, test_actor_id):
        created = _create(service, test_actor_id, is_recurring=True)

        result = service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        assert result.error_code == "INVALID_FREQUENCY"
        assert service.get_payment(created.payment_id).payment_date is None


class TestListOverdue:

    def test_lists_open_past_due_payments(self, service, test_actor_id):
        old = _create(service, test_actor_id, due_date=date(2024, 1, 1))
        older = _create(service, test_actor_id, due_date=date(2023, 12, 1))
        _create(service, test_actor_id, due_date=date(2024, 12, 1))
        paid = _create(service, test_actor_id, due_date=date(2023, 11, 1))
        service.transition(paid.payment_id, PaymentStatus.PAID, test_actor_id)

        overdue = service.list_overdue(date(2024, 6, 1))

        assert [r.id for r in overdue] == [older.payment_id, old.payment_id]

    def test_defaults_to_clock(self, service, test_actor_id):
        created = _create(service, test_actor_id, due_date=date(2024, 3, 4))
        assert [r.id for r in service.list_overdue()] == [created.payment_id]

    def test_stored_status_not_rewritten(self, service, test_actor_id):
        created = _create(service, test_actor_id, due_date=date(2024, 1, 1))
        service.list_overdue(date(2024, 6, 1))
        assert service.get_payment(created.payment_id).status == PaymentStatus.PENDING


class TestServiceLogging:

    def test_rejection_logged_with_context(self, service, test_actor_id, captured_logs):
        created = _create(service, test_actor_id, requires_invoice=True)
        service.transition(created.payment_id, PaymentStatus.PAID, test_actor_id)

        rejected = [
            r for r in captured_logs() if r["message"] == "payment_operation_rejected"
        ]
        assert rejected[0]["error_code"] == "MISSING_EVIDENCE"
        assert rejected[0]["payment_id"] == str(created.payment_id)
        assert rejected[0]["actor_id"] == str(test_actor_id)
