"""
Module: portal_engines.recurrence
Responsibility:
    Produce the next occurrence of a recurring payment once the current one
    has been paid.  A pure factory: the paid record is never touched.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Client existence is asked
    through an injected predicate; the engine never queries storage.

Invariants enforced:
    - Due dates advance by whole months (1, 3, 6 or 12) with end-of-month
      clamping: Jan 31 + 1 month is Feb 29 in a leap year, Feb 28 otherwise.
    - The day anchor is ``recurring_day_of_month`` when set, otherwise the
      day of the prior due date, and is carried onto the next occurrence so
      a clamped month does not shift later due dates.
    - The next occurrence starts clean: PENDING (AWAITING_INVOICE when an
      invoice is required), no payment date, no attachments, no invoice stamp.

Failure modes:
    - InvalidFrequencyError when a recurring record has no usable frequency.
    - ClientReferenceError when the payment's client no longer exists.
    - ValueError when called on a record that is not recurring or not PAID.

Usage:
    from portal_engines.recurrence import RecurringPaymentGenerator

    generator = RecurringPaymentGenerator(client_exists=directory.exists)
    next_record = generator.generate_next(paid_record)
"""

from __future__ import annotations

import calendar
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from portal_engines.tracer import traced_engine
from portal_kernel.domain.payment import (
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    RecurringFrequency,
)
from portal_kernel.exceptions import ClientReferenceError, InvalidFrequencyError
from portal_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")


def add_months(start: date, months: int, day: int | None = None) -> date:
    """Advance ``start`` by ``months``, clamping ``day`` to the target month.

    ``day`` defaults to ``start.day``.
    """
    total = start.month - 1 + months
    year = start.year + total // 12
    month = total % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day or start.day, last_day))


class RecurringPaymentGenerator:
    """
    Factory for the next occurrence of a recurring payment.

    Contract:
        Given a PAID recurring record, returns a new record (or None when
        the series has ended).
    Guarantees:
        - The input record is not mutated.
        - ``parent_payment_id`` of the new record points at the first
          occurrence of the series.
    Non-goals:
        - Does not persist anything; the caller stores the new record.
    """

    def __init__(
        self,
        client_exists: Callable[[UUID], bool] | None = None,
        id_factory: Callable[[], UUID] = uuid4,
    ):
        self._client_exists = client_exists
        self._id_factory = id_factory

    def resolve_frequency(self, record: PaymentRecord) -> RecurringFrequency:
        """Frequency of a recurring record, or InvalidFrequencyError."""
        raw = record.recurring_frequency
        if raw is None:
            raise InvalidFrequencyError(str(record.id))
        if isinstance(raw, RecurringFrequency):
            return raw
        try:
            return RecurringFrequency(raw)
        except ValueError:
            raise InvalidFrequencyError(str(record.id), str(raw)) from None

    def next_due_date(self, record: PaymentRecord) -> date:
        frequency = self.resolve_frequency(record)
        return add_months(
            record.due_date,
            frequency.months,
            day=record.recurring_day_of_month,
        )

    @traced_engine("recurrence", "1.0", fingerprint_fields=("record",))
    def generate_next(self, record: PaymentRecord) -> PaymentRecord | None:
        if not record.is_recurring:
            raise ValueError(f"Payment {record.id} is not recurring")
        if record.status != PaymentStatus.PAID:
            raise ValueError(
                f"Payment {record.id} is {record.status.value}; "
                "next occurrence is generated only after PAID"
            )

        due_date = self.next_due_date(record)

        if record.recurring_end_date is not None and due_date > record.recurring_end_date:
            logger.info(
                "recurring_series_ended",
                extra={
                    "payment_id": str(record.id),
                    "next_due_date": due_date,
                    "recurring_end_date": record.recurring_end_date,
                },
            )
            return None

        if (
            record.payment_type == PaymentType.CLIENT
            and self._client_exists is not None
            and not self._client_exists(record.client_id)
        ):
            logger.warning(
                "recurring_client_missing",
                extra={
                    "payment_id": str(record.id),
                    "client_id": str(record.client_id),
                },
            )
            raise ClientReferenceError(str(record.id), str(record.client_id))

        next_record = replace(
            record,
            id=self._id_factory(),
            status=(
                PaymentStatus.AWAITING_INVOICE
                if record.requires_invoice
                else PaymentStatus.PENDING
            ),
            due_date=due_date,
            payment_date=None,
            attached_documents=(),
            invoice_attached_at=None,
            invoice_attached_by=None,
            parent_payment_id=record.parent_payment_id or record.id,
            recurring_day_of_month=record.recurring_day_of_month or record.due_date.day,
        )

        logger.info(
            "recurring_occurrence_generated",
            extra={
                "payment_id": str(record.id),
                "next_payment_id": str(next_record.id),
                "frequency": self.resolve_frequency(record).value,
                "next_due_date": due_date,
            },
        )
        return next_record
