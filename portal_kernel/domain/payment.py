"""
Payment value objects (``portal_kernel.domain.payment``).

Responsibility
--------------
Frozen snapshots of the nouns of the payment lifecycle: the payment record
itself, the documents attached to it, and the evidence events that drive
gated transitions (invoice attachment, client proof of payment, accountant
approval).

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions.  No I/O, no database.
Records flow *into* the state machine and engines and *out of* them as new
snapshots; nothing here is ever mutated in place.

Invariants enforced
-------------------
* ``amount > 0`` and uses ``Decimal``.
* ``CLIENT`` payments carry a ``client_id``; ``OFFICE`` payments do not.
  Checked at construction, not re-checked per transition.
* ``payment_date`` is set if and only if ``status == PAID``.
* ``OVERDUE`` is never stored; it is derived at read time.
* Attached document ids are unique within a record.

Failure modes
-------------
* ``ValueError`` from ``__post_init__`` when a construction invariant fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PaymentStatus(str, Enum):
    """Payment lifecycle states.  ``OVERDUE`` is display-only."""

    PENDING = "PENDING"
    AWAITING_INVOICE = "AWAITING_INVOICE"
    READY_TO_PAY = "READY_TO_PAY"
    AWAITING_VALIDATION = "AWAITING_VALIDATION"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELED = "CANCELED"

    @classmethod
    def _missing_(cls, value: object) -> PaymentStatus | None:
        # Older clients spell it with a double L.
        if isinstance(value, str) and value.upper() == "CANCELLED":
            return cls.CANCELED
        return None


TERMINAL_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PAID, PaymentStatus.CANCELED}
)


class PaymentType(str, Enum):
    """Who the obligation belongs to."""

    CLIENT = "CLIENT"
    OFFICE = "OFFICE"


class RecurringFrequency(str, Enum):
    """How often a recurring payment comes due."""

    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUALLY = "SEMI_ANNUALLY"
    YEARLY = "YEARLY"

    @property
    def months(self) -> int:
        return _FREQUENCY_MONTHS[self]

    @classmethod
    def _missing_(cls, value: object) -> RecurringFrequency | None:
        if isinstance(value, str):
            return _FREQUENCY_ALIASES.get(value.strip().upper())
        return None


_FREQUENCY_MONTHS = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.SEMI_ANNUALLY: 6,
    RecurringFrequency.YEARLY: 12,
}

# Spellings used by the portal's personal-finance and payments screens
_FREQUENCY_ALIASES = {
    "MONTHLY": RecurringFrequency.MONTHLY,
    "QUARTERLY": RecurringFrequency.QUARTERLY,
    "SEMI_ANNUALLY": RecurringFrequency.SEMI_ANNUALLY,
    "SEMIANNUAL": RecurringFrequency.SEMI_ANNUALLY,
    "SEMI_ANNUAL": RecurringFrequency.SEMI_ANNUALLY,
    "YEARLY": RecurringFrequency.YEARLY,
    "ANNUALLY": RecurringFrequency.YEARLY,
    "ANNUAL": RecurringFrequency.YEARLY,
}


@dataclass(frozen=True)
class DocumentAttachment:
    """A document linked to a payment.

    Only the invoice flag and the attach timestamp matter to the lifecycle;
    file bytes and content type stay with the document store.
    """
    document_id: UUID
    attached_at: datetime
    is_invoice: bool = False
    attached_by: UUID | None = None
    title: str | None = None


@dataclass(frozen=True)
class ProofOfPayment:
    """Client-side submission that a payment was made."""
    submitted_by: UUID | None = None
    receipt: DocumentAttachment | None = None
    note: str | None = None


@dataclass(frozen=True)
class ApprovalSignal:
    """Accountant approval of a submitted proof of payment."""
    approved_by: UUID | None = None
    note: str | None = None


Evidence = DocumentAttachment | ProofOfPayment | ApprovalSignal


@dataclass(frozen=True)
class PaymentRecord:
    """A single obligation tracked by the portal.

    Contract: frozen; every change produces a new record.
    Guarantees: construction invariants listed in the module docstring.
    Non-goals: does not know whether it is overdue -- see
    ``portal_engines.overdue``.
    """
    id: UUID
    payment_type: PaymentType
    amount: Decimal
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    title: str = ""
    client_id: UUID | None = None
    accountant_id: UUID | None = None
    payment_date: date | None = None
    requires_invoice: bool = False
    invoice_attached_at: datetime | None = None
    invoice_attached_by: UUID | None = None
    attached_documents: tuple[DocumentAttachment, ...] = field(default_factory=tuple)
    is_recurring: bool = False
    recurring_frequency: RecurringFrequency | None = None
    recurring_day_of_month: int | None = None
    recurring_end_date: date | None = None
    parent_payment_id: UUID | None = None
    payment_method: str | None = None
    reference: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValueError(
                f"amount must be Decimal, got {type(self.amount).__name__}"
            )
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")
        if self.payment_type == PaymentType.CLIENT and self.client_id is None:
            raise ValueError("CLIENT payments require a client_id")
        if self.payment_type == PaymentType.OFFICE and self.client_id is not None:
            raise ValueError("OFFICE payments cannot carry a client_id")
        if self.status == PaymentStatus.OVERDUE:
            raise ValueError("OVERDUE is derived at read time and is never stored")
        if (self.payment_date is not None) != (self.status == PaymentStatus.PAID):
            raise ValueError("payment_date must be set if and only if status is PAID")
        if self.recurring_day_of_month is not None and not (
            1 <= self.recurring_day_of_month <= 31
        ):
            raise ValueError(
                f"recurring_day_of_month must be 1-31, got {self.recurring_day_of_month}"
            )
        ids = [doc.document_id for doc in self.attached_documents]
        if len(ids) != len(set(ids)):
            raise ValueError("attached_documents contains duplicate document ids")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def find_document(self, document_id: UUID) -> DocumentAttachment | None:
        for doc in self.attached_documents:
            if doc.document_id == document_id:
                return doc
        return None
