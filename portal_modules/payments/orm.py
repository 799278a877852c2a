"""
Payments ORM Models (``portal_modules.payments.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the payments module.  Maps the frozen
``PaymentRecord`` snapshot and its ``DocumentAttachment`` tuple to the
``payments`` and ``payment_documents`` tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``portal_kernel.db.base``
and kernel domain types.  MUST NOT be imported by ``portal_kernel`` at
module level.

Invariants enforced
-------------------
* ``payments.version`` is the SQLAlchemy ``version_id_col``: an UPDATE that
  races another writer fails with ``StaleDataError``.
* Attachment order is preserved through ``payment_documents.position``.
* A document id is attached at most once per payment
  (uq_payment_documents_payment_document).
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_kernel.db.base import TrackedBase, UUIDString
from portal_kernel.domain.payment import (
    DocumentAttachment,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    RecurringFrequency,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back naive
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# 1. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments.

    Maps to the ``PaymentRecord`` frozen dataclass.  Attachments live in
    the ``payment_documents`` child table via ``documents``.

    Guarantees:
        - status, payment_type and recurring_frequency stored as enum values.
        - amount uses Decimal (Numeric(38,9) via type_annotation_map).
        - OVERDUE is never written; it is not a stored status.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_status", "status"),
        Index("idx_payments_due_date", "due_date"),
        Index("idx_payments_client_id", "client_id"),
        Index("idx_payments_accountant_id", "accountant_id"),
        Index("idx_payments_parent_payment_id", "parent_payment_id"),
    )

    payment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=PaymentStatus.PENDING.value
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    accountant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    requires_invoice: Mapped[bool] = mapped_column(Boolean, default=False)
    invoice_attached_at: Mapped[datetime | None] = mapped_column(nullable=True)
    invoice_attached_by: Mapped[UUID | None] = mapped_column(nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_frequency: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )
    recurring_day_of_month: Mapped[int | None] = mapped_column(nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    parent_payment_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationship to attached documents, in attach order
    documents: Mapped[list["PaymentDocumentModel"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentDocumentModel.position",
    )

    def to_dto(self) -> PaymentRecord:
        """Convert ORM model to frozen dataclass."""
        return PaymentRecord(
            id=self.id,
            payment_type=PaymentType(self.payment_type),
            amount=self.amount,
            due_date=self.due_date,
            status=PaymentStatus(self.status),
            title=self.title,
            client_id=self.client_id,
            accountant_id=self.accountant_id,
            payment_date=self.payment_date,
            requires_invoice=self.requires_invoice,
            invoice_attached_at=_as_utc(self.invoice_attached_at),
            invoice_attached_by=self.invoice_attached_by,
            attached_documents=tuple(doc.to_dto() for doc in self.documents),
            is_recurring=self.is_recurring,
            recurring_frequency=(
                RecurringFrequency(self.recurring_frequency)
                if self.recurring_frequency
                else None
            ),
            recurring_day_of_month=self.recurring_day_of_month,
            recurring_end_date=self.recurring_end_date,
            parent_payment_id=self.parent_payment_id,
            payment_method=self.payment_method,
            reference=self.reference,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: PaymentRecord, created_by_id: UUID) -> "PaymentModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        model._copy_scalars(dto)
        model.documents = [
            PaymentDocumentModel.from_dto(doc, dto.id, position, created_by_id)
            for position, doc in enumerate(dto.attached_documents)
        ]
        return model

    def apply_dto(self, dto: PaymentRecord, updated_by_id: UUID) -> None:
        """Bring this row in line with a newer snapshot of the same payment.

        Documents are synchronised in place: rows for detached documents are
        removed, new ones appended, surviving ones renumbered.
        """
        if dto.id != self.id:
            raise ValueError(f"Cannot apply payment {dto.id} onto row {self.id}")
        self._copy_scalars(dto)
        self.updated_by_id = updated_by_id

        wanted = {doc.document_id: pos for pos, doc in enumerate(dto.attached_documents)}
        for row in list(self.documents):
            if row.document_id not in wanted:
                self.documents.remove(row)
        existing = {row.document_id: row for row in self.documents}
        for position, doc in enumerate(dto.attached_documents):
            row = existing.get(doc.document_id)
            if row is None:
                self.documents.append(
                    PaymentDocumentModel.from_dto(doc, dto.id, position, updated_by_id)
                )
            elif row.position != position:
                row.position = position

    def _copy_scalars(self, dto: PaymentRecord) -> None:
        self.payment_type = dto.payment_type.value
        self.status = dto.status.value
        self.title = dto.title
        self.amount = dto.amount
        self.due_date = dto.due_date
        self.payment_date = dto.payment_date
        self.client_id = dto.client_id
        self.accountant_id = dto.accountant_id
        self.requires_invoice = dto.requires_invoice
        self.invoice_attached_at = dto.invoice_attached_at
        self.invoice_attached_by = dto.invoice_attached_by
        self.is_recurring = dto.is_recurring
        self.recurring_frequency = (
            dto.recurring_frequency.value if dto.recurring_frequency else None
        )
        self.recurring_day_of_month = dto.recurring_day_of_month
        self.recurring_end_date = dto.recurring_end_date
        self.parent_payment_id = dto.parent_payment_id
        self.payment_method = dto.payment_method
        self.reference = dto.reference
        self.notes = dto.notes

    def __repr__(self) -> str:
        return (
            f"<PaymentModel {self.id} status={self.status} "
            f"amount={self.amount} due={self.due_date}>"
        )


# ---------------------------------------------------------------------------
# 2. PaymentDocumentModel
# ---------------------------------------------------------------------------


class PaymentDocumentModel(TrackedBase):
    """
    ORM model for a document attached to a payment.

    Maps to the ``DocumentAttachment`` frozen dataclass.  Only the
    reference and its invoice flag are stored; bytes stay in the document
    store.
    """

    __tablename__ = "payment_documents"

    __table_args__ = (
        UniqueConstraint(
            "payment_id",
            "document_id",
            name="uq_payment_documents_payment_document",
        ),
        Index("idx_payment_documents_payment_id", "payment_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=False
    )
    document_id: Mapped[UUID] = mapped_column(nullable=False)
    position: Mapped[int] = mapped_column(nullable=False)
    is_invoice: Mapped[bool] = mapped_column(Boolean, default=False)
    attached_at: Mapped[datetime] = mapped_column(nullable=False)
    attached_by: Mapped[UUID | None] = mapped_column(nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationship to parent payment
    payment: Mapped["PaymentModel"] = relationship(
        back_populates="documents",
    )

    def to_dto(self) -> DocumentAttachment:
        """Convert ORM model to frozen dataclass."""
        return DocumentAttachment(
            document_id=self.document_id,
            attached_at=_as_utc(self.attached_at),
            is_invoice=self.is_invoice,
            attached_by=self.attached_by,
            title=self.title,
        )

    @classmethod
    def from_dto(
        cls,
        dto: DocumentAttachment,
        payment_id: UUID,
        position: int,
        created_by_id: UUID,
    ) -> "PaymentDocumentModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            payment_id=payment_id,
            document_id=dto.document_id,
            position=position,
            is_invoice=dto.is_invoice,
            attached_at=dto.attached_at,
            attached_by=dto.attached_by,
            title=dto.title,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PaymentDocumentModel {self.document_id} "
            f"payment={self.payment_id} invoice={self.is_invoice}>"
        )
