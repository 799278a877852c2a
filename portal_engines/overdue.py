"""
Module: portal_engines.overdue
Responsibility:
    Derive, at read time, whether a payment is overdue.  The stored status is
    never rewritten to OVERDUE; listings and reports consult this engine in
    addition to the stored status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Now" is always passed in;
    callers obtain it from an injected Clock.

Invariants enforced:
    - PAID and CANCELED payments are never overdue.
    - Date-only comparison: time of day is ignored, and a payment due today
      is not overdue.

Failure modes:
    - TypeError when ``now`` is neither a date nor a datetime.

Usage:
    from portal_engines.overdue import OverdueDeriver

    deriver = OverdueDeriver()
    deriver.is_overdue(record, clock.now())
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from portal_engines.tracer import traced_engine
from portal_kernel.domain.payment import PaymentRecord, PaymentStatus
from portal_kernel.logging_config import get_logger

logger = get_logger("engines.overdue")


def _as_date(now: date | datetime) -> date:
    # datetime is a subclass of date; check it first
    if isinstance(now, datetime):
        return now.date()
    if isinstance(now, date):
        return now
    raise TypeError(f"now must be a date or datetime, got {type(now).__name__}")


class OverdueDeriver:
    """
    Read-time overdue derivation.

    Contract:
        Pure functions of (record, now).
    Guarantees:
        - ``is_overdue`` is False whenever ``record.is_terminal``.
        - ``display_status`` returns OVERDUE only when ``is_overdue`` is True.
    """

    def is_overdue(self, record: PaymentRecord, now: date | datetime) -> bool:
        if record.is_terminal:
            return False
        return record.due_date < _as_date(now)

    def days_overdue(self, record: PaymentRecord, now: date | datetime) -> int:
        """Whole days past the due date; 0 when not overdue."""
        if not self.is_overdue(record, now):
            return 0
        return (_as_date(now) - record.due_date).days

    def display_status(
        self, record: PaymentRecord, now: date | datetime
    ) -> PaymentStatus:
        """Status to show in listings: OVERDUE layered over the stored status."""
        if self.is_overdue(record, now):
            return PaymentStatus.OVERDUE
        return record.status

    @traced_engine("overdue", "1.0", fingerprint_fields=("now",))
    def overdue_records(
        self,
        records: Iterable[PaymentRecord],
        now: date | datetime,
    ) -> tuple[PaymentRecord, ...]:
        """Overdue records, oldest due date first."""
        overdue = [r for r in records if self.is_overdue(r, now)]
        overdue.sort(key=lambda r: (r.due_date, str(r.id)))
        logger.debug(
            "overdue_records_derived",
            extra={"as_of": _as_date(now), "overdue_count": len(overdue)},
        )
        return tuple(overdue)
