"""
Payments Module Service (``portal_modules.payments.service``).

Responsibility
--------------
Persists payment lifecycle operations: creating payments, moving them
between statuses, attaching and detaching documents, and listing overdue
payments.  All decisions are delegated to ``PaymentStateMachine`` and the
engines; this service loads snapshots, stores results and owns the
transaction.

Architecture position
---------------------
**Modules layer** -- thin coordinator.  ``PaymentService`` is the sole
public entry point for payment writes.  Composes ``PaymentStateMachine``
(pure) and ``OverdueDeriver`` (pure engine) over a SQLAlchemy session.

Invariants enforced
-------------------
* Each public write owns the transaction boundary (``commit`` on success,
  ``rollback`` on failure or exception).
* Per-payment ordering through the ``payments.version`` column: a caller
  holding a stale ``expected_version``, or losing a race at flush time,
  gets a CONFLICT result and nothing is written.
* A settled recurring payment and its generated next occurrence are
  written in the same transaction.

Failure modes
-------------
* Lifecycle, recurrence or concurrency errors  -> ``PaymentOperationResult``
  with ``is_success == False`` and the error ``code``; session rolled back.
* ``ValueError`` on invalid payment data and unexpected exceptions  ->
  session rolled back, exception re-raised.

Audit relevance
---------------
Structured log events at operation start, commit and rejection, bound to
the payment and actor through ``LogContext``.

Usage::

    service = PaymentService(session, clock=clock, config=config.payments)
    created = service.create_payment(
        payment_type=PaymentType.OFFICE,
        amount=Decimal("120.00"),
        due_date=date(2024, 3, 10),
        actor_id=actor_id,
    )
    result = service.transition(
        created.payment_id, PaymentStatus.PAID, actor_id=actor_id,
        expected_version=created.version,
    )
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from portal_config.schema import PaymentsConfig
from portal_engines.overdue import OverdueDeriver
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.payment import (
    TERMINAL_STATUSES,
    DocumentAttachment,
    Evidence,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    RecurringFrequency,
)
from portal_kernel.exceptions import (
    ConcurrencyError,
    OptimisticLockError,
    PaymentNotFoundError,
    PortalKernelError,
    RecurrenceError,
)
from portal_kernel.logging_config import LogContext, get_logger
from portal_modules.payments.orm import PaymentModel
from portal_modules.payments.state_machine import PaymentStateMachine, TransitionOutcome

logger = get_logger("modules.payments.service")


class PaymentOperationStatus(str, Enum):
    """Status of a payment write operation."""

    SUCCEEDED = "succeeded"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    RECURRENCE_FAILED = "recurrence_failed"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class PaymentOperationResult:
    """Result of a payment write operation."""

    status: PaymentOperationStatus
    payment_id: UUID
    record: PaymentRecord | None = None
    version: int | None = None
    next_occurrence: PaymentRecord | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (
            PaymentOperationStatus.SUCCEEDED,
            PaymentOperationStatus.UNCHANGED,
        )


def _failure_status(exc: PortalKernelError) -> PaymentOperationStatus:
    if isinstance(exc, PaymentNotFoundError):
        return PaymentOperationStatus.NOT_FOUND
    if isinstance(exc, ConcurrencyError):
        return PaymentOperationStatus.CONFLICT
    if isinstance(exc, RecurrenceError):
        return PaymentOperationStatus.RECURRENCE_FAILED
    return PaymentOperationStatus.REJECTED


class PaymentService:
    """
    Orchestrates payment persistence over ``PaymentStateMachine``.

    Transaction boundary: this service commits on success, rolls back on
    failure.  Callers pass the session; the service never opens one.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PaymentsConfig | None = None,
        client_exists: Callable[[UUID], bool] | None = None,
        state_machine: PaymentStateMachine | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or PaymentsConfig()
        self._state_machine = state_machine or PaymentStateMachine(
            clock=self._clock,
            config=self._config,
            client_exists=client_exists,
        )
        self._overdue = OverdueDeriver()

    # =========================================================================
    # Writes
    # =========================================================================

    def create_payment(
        self,
        payment_type: PaymentType | str,
        amount: Decimal,
        due_date: date,
        actor_id: UUID,
        payment_id: UUID | None = None,
        client_id: UUID | None = None,
        title: str = "",
        accountant_id: UUID | None = None,
        requires_invoice: bool | None = None,
        is_recurring: bool = False,
        recurring_frequency: RecurringFrequency | str | None = None,
        recurring_day_of_month: int | None = None,
        recurring_end_date: date | None = None,
        payment_method: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> PaymentOperationResult:
        """Store a new PENDING payment.

        ``requires_invoice`` defaults to the configured
        ``default_requires_invoice``.

        Raises:
            ValueError: the payment data violates a record invariant.
        """
        try:
            record = PaymentRecord(
                id=payment_id or uuid4(),
                payment_type=PaymentType(payment_type),
                amount=amount,
                due_date=due_date,
                title=title,
                client_id=client_id,
                accountant_id=accountant_id,
                requires_invoice=(
                    self._config.default_requires_invoice
                    if requires_invoice is None
                    else requires_invoice
                ),
                is_recurring=is_recurring,
                recurring_frequency=(
                    RecurringFrequency(recurring_frequency)
                    if recurring_frequency is not None
                    else None
                ),
                recurring_day_of_month=recurring_day_of_month,
                recurring_end_date=recurring_end_date,
                payment_method=payment_method,
                reference=reference,
                notes=notes,
            )
            model = PaymentModel.from_dto(record, created_by_id=actor_id)
            self._session.add(model)
            self._session.flush()
            version = model.version
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "payment_created",
            extra={
                "payment_id": str(record.id),
                "payment_type": record.payment_type.value,
                "amount": str(record.amount),
                "due_date": record.due_date,
                "requires_invoice": record.requires_invoice,
                "is_recurring": record.is_recurring,
            },
        )
        return PaymentOperationResult(
            status=PaymentOperationStatus.SUCCEEDED,
            payment_id=record.id,
            record=record,
            version=version,
        )

    def transition(
        self,
        payment_id: UUID,
        target_status: PaymentStatus | str,
        actor_id: UUID,
        evidence: Evidence | None = None,
        expected_version: int | None = None,
    ) -> PaymentOperationResult:
        """Move a stored payment to ``target_status``."""
        return self._execute(
            "transition",
            payment_id,
            actor_id,
            expected_version,
            lambda record: self._state_machine.attempt_transition(
                record, target_status, evidence
            ),
        )

    def attach_document(
        self,
        payment_id: UUID,
        attachment: DocumentAttachment,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> PaymentOperationResult:
        return self._execute(
            "attach_document",
            payment_id,
            actor_id,
            expected_version,
            lambda record: self._state_machine.attach_document(record, attachment),
        )

    def detach_document(
        self,
        payment_id: UUID,
        document_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> PaymentOperationResult:
        def detach(record: PaymentRecord) -> TransitionOutcome:
            return TransitionOutcome(
                record=self._state_machine.detach_document(record, document_id),
                previous_status=record.status,
                status_changed=False,
            )

        return self._execute(
            "detach_document", payment_id, actor_id, expected_version, detach
        )

    def _execute(
        self,
        operation: str,
        payment_id: UUID,
        actor_id: UUID,
        expected_version: int | None,
        apply: Callable[[PaymentRecord], TransitionOutcome],
    ) -> PaymentOperationResult:
        with LogContext.bind(payment_id=payment_id, actor_id=actor_id):
            logger.info(
                "payment_operation_started",
                extra={"operation": operation, "expected_version": expected_version},
            )
            try:
                model = self._load(payment_id)
                if expected_version is not None and model.version != expected_version:
                    raise OptimisticLockError("payment", str(payment_id))

                current = model.to_dto()
                outcome = apply(current)

                if outcome.record == current:
                    version = model.version
                    self._session.rollback()
                    return PaymentOperationResult(
                        status=PaymentOperationStatus.UNCHANGED,
                        payment_id=payment_id,
                        record=current,
                        version=version,
                    )

                model.apply_dto(outcome.record, updated_by_id=actor_id)
                # document-only changes still bump the row version
                flag_modified(model, "updated_by_id")
                if outcome.next_occurrence is not None:
                    self._session.add(
                        PaymentModel.from_dto(
                            outcome.next_occurrence, created_by_id=actor_id
                        )
                    )
                self._session.flush()
                version = model.version
                self._session.commit()

            except StaleDataError:
                self._session.rollback()
                exc = OptimisticLockError("payment", str(payment_id))
                return self._rejected(operation, payment_id, exc)
            except PortalKernelError as exc:
                self._session.rollback()
                return self._rejected(operation, payment_id, exc)
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "payment_operation_committed",
                extra={
                    "operation": operation,
                    "status": outcome.record.status.value,
                    "version": version,
                    "next_payment_id": (
                        str(outcome.next_occurrence.id)
                        if outcome.next_occurrence
                        else None
                    ),
                },
            )
            return PaymentOperationResult(
                status=PaymentOperationStatus.SUCCEEDED,
                payment_id=payment_id,
                record=outcome.record,
                version=version,
                next_occurrence=outcome.next_occurrence,
            )

    def _rejected(
        self, operation: str, payment_id: UUID, exc: PortalKernelError
    ) -> PaymentOperationResult:
        logger.warning(
            "payment_operation_rejected",
            extra={"operation": operation, "error_code": exc.code},
        )
        return PaymentOperationResult(
            status=_failure_status(exc),
            payment_id=payment_id,
            error_code=exc.code,
            message=str(exc),
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def _load(self, payment_id: UUID) -> PaymentModel:
        model = self._session.get(PaymentModel, payment_id)
        if model is None:
            raise PaymentNotFoundError(str(payment_id))
        return model

    def get_payment(self, payment_id: UUID) -> PaymentRecord:
        """Current snapshot of a payment.

        Raises:
            PaymentNotFoundError: no payment with this id.
        """
        return self._load(payment_id).to_dto()

    def get_version(self, payment_id: UUID) -> int:
        return self._load(payment_id).version

    def list_overdue(self, now: date | datetime | None = None) -> list[PaymentRecord]:
        """Open payments whose due date has passed, oldest first."""
        as_of = now if now is not None else self._clock.now()
        cutoff = as_of.date() if isinstance(as_of, datetime) else as_of
        open_statuses = [
            status.value
            for status in PaymentStatus
            if status not in TERMINAL_STATUSES and status != PaymentStatus.OVERDUE
        ]
        rows = self._session.scalars(
            select(PaymentModel).where(
                PaymentModel.status.in_(open_statuses),
                PaymentModel.due_date < cutoff,
            )
        ).all()
        return self._overdue.overdue_records([row.to_dto() for row in rows], as_of)
