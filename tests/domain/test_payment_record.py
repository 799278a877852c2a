"""
Tests for payment value objects (portal_kernel.domain.payment).

Covers:
- Construction invariants of PaymentRecord
- Status and frequency parsing
- Document lookup
"""

from dataclasses import FrozenInstanceError, replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_kernel.domain.payment import (
    PaymentStatus,
    PaymentType,
    RecurringFrequency,
)
from tests.conftest import TEST_CLIENT_ID, make_invoice, make_payment


class TestPaymentRecordInvariants:
    """Construction-time checks."""

    def test_valid_office_payment(self):
        record = make_payment()
        assert record.status == PaymentStatus.PENDING
        assert record.client_id is None
        assert not record.is_terminal

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            make_payment(amount=Decimal("0"))
        with pytest.raises(ValueError, match="positive"):
            make_payment(amount=Decimal("-5.00"))

    def test_amount_must_be_decimal(self):
        with pytest.raises(ValueError, match="Decimal"):
            make_payment(amount=100.0)

    def test_client_payment_requires_client_id(self):
        with pytest.raises(ValueError, match="client_id"):
            make_payment(payment_type=PaymentType.CLIENT, client_id=None)

    def test_office_payment_rejects_client_id(self):
        with pytest.raises(ValueError, match="client_id"):
            make_payment(client_id=TEST_CLIENT_ID)

    def test_overdue_is_never_stored(self):
        with pytest.raises(ValueError, match="OVERDUE"):
            make_payment(status=PaymentStatus.OVERDUE)

    def test_paid_requires_payment_date(self):
        with pytest.raises(ValueError, match="payment_date"):
            make_payment(status=PaymentStatus.PAID, payment_date=None)

    def test_payment_date_only_when_paid(self):
        with pytest.raises(ValueError, match="payment_date"):
            make_payment(payment_date=date(2024, 3, 1))

    def test_recurring_day_of_month_range(self):
        with pytest.raises(ValueError, match="1-31"):
            make_payment(recurring_day_of_month=32)
        assert make_payment(recurring_day_of_month=31).recurring_day_of_month == 31

    def test_duplicate_document_ids_rejected(self):
        doc = make_invoice()
        with pytest.raises(ValueError, match="duplicate"):
            make_payment(attached_documents=(doc, doc))

    def test_frozen(self):
        record = make_payment()
        with pytest.raises(FrozenInstanceError):
            record.status = PaymentStatus.PAID

    def test_replace_revalidates(self):
        record = make_payment()
        with pytest.raises(ValueError):
            replace(record, status=PaymentStatus.PAID)


class TestTerminalStatuses:

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (PaymentStatus.PENDING, False),
            (PaymentStatus.AWAITING_INVOICE, False),
            (PaymentStatus.READY_TO_PAY, False),
            (PaymentStatus.AWAITING_VALIDATION, False),
            (PaymentStatus.PAID, True),
            (PaymentStatus.CANCELED, True),
        ],
    )
    def test_is_terminal(self, status, terminal):
        assert make_payment(status=status).is_terminal is terminal


class TestEnumParsing:

    def test_cancelled_spelling_accepted(self):
        assert PaymentStatus("CANCELLED") is PaymentStatus.CANCELED

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("MONTHLY", RecurringFrequency.MONTHLY),
            ("quarterly", RecurringFrequency.QUARTERLY),
            ("SEMIANNUAL", RecurringFrequency.SEMI_ANNUALLY),
            ("semi_annual", RecurringFrequency.SEMI_ANNUALLY),
            ("ANNUALLY", RecurringFrequency.YEARLY),
            ("annual", RecurringFrequency.YEARLY),
        ],
    )
    def test_frequency_aliases(self, raw, expected):
        assert RecurringFrequency(raw) is expected

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            RecurringFrequency("WEEKLY")

    def test_frequency_months(self):
        assert [f.months for f in RecurringFrequency] == [1, 3, 6, 12]


class TestDocumentLookup:

    def test_find_document(self):
        doc = make_invoice()
        record = make_payment(attached_documents=(doc,))
        assert record.find_document(doc.document_id) == doc
        assert record.find_document(uuid4()) is None
