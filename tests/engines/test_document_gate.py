"""Tests for the invoice evidence predicate (portal_engines.document_gate)."""

from datetime import datetime, timezone

from portal_engines.document_gate import DocumentGate
from tests.conftest import make_invoice, make_payment

STAMP = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)


class TestHasRequiredEvidence:
    """Invoice evidence is needed only when the payment requires one."""

    def setup_method(self):
        self.gate = DocumentGate()

    def test_no_invoice_required(self):
        assert self.gate.has_required_evidence(make_payment(requires_invoice=False))

    def test_required_and_missing(self):
        assert not self.gate.has_required_evidence(make_payment(requires_invoice=True))

    def test_invoice_flag_and_stamp_present(self):
        record = make_payment(
            requires_invoice=True,
            attached_documents=(make_invoice(),),
            invoice_attached_at=STAMP,
        )
        assert self.gate.has_required_evidence(record)

    def test_flagged_document_without_stamp(self):
        record = make_payment(
            requires_invoice=True,
            attached_documents=(make_invoice(),),
        )
        assert not self.gate.has_required_evidence(record)

    def test_stamp_without_flagged_document(self):
        record = make_payment(
            requires_invoice=True,
            attached_documents=(make_invoice(is_invoice=False),),
            invoice_attached_at=STAMP,
        )
        assert not self.gate.has_required_evidence(record)


class TestInvoiceDocuments:

    def test_returns_flagged_documents_in_order(self):
        first = make_invoice()
        other = make_invoice(is_invoice=False)
        second = make_invoice()
        record = make_payment(attached_documents=(first, other, second))

        assert DocumentGate().invoice_documents(record) == (first, second)
