"""
Module: portal_engines.document_gate
Responsibility:
    Decide whether a payment carries the evidence its configuration demands:
    an attached, invoice-flagged document when ``requires_invoice`` is set.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import portal_kernel domain and logging.

Invariants enforced:
    - Purity: no clock access, no side effects.
    - Consulted by the payment state machine before any transition into
      READY_TO_PAY or PAID.

Usage:
    from portal_engines.document_gate import DocumentGate

    if not DocumentGate().has_required_evidence(record):
        ...
"""

from __future__ import annotations

from portal_kernel.domain.payment import DocumentAttachment, PaymentRecord


class DocumentGate:
    """
    Pure evidence predicate over a payment snapshot.

    Contract:
        Reads only ``requires_invoice``, ``invoice_attached_at`` and the
        invoice flag of each attachment.
    Guarantees:
        - ``has_required_evidence`` is True for records that do not require
          an invoice.
        - For records that do, both an invoice-flagged attachment and the
          ``invoice_attached_at`` stamp must be present.
    """

    def invoice_documents(
        self, record: PaymentRecord
    ) -> tuple[DocumentAttachment, ...]:
        """Invoice-flagged attachments in attach order."""
        return tuple(doc for doc in record.attached_documents if doc.is_invoice)

    def has_invoice(self, record: PaymentRecord) -> bool:
        return record.invoice_attached_at is not None and any(
            doc.is_invoice for doc in record.attached_documents
        )

    def has_required_evidence(self, record: PaymentRecord) -> bool:
        if not record.requires_invoice:
            return True
        return self.has_invoice(record)
