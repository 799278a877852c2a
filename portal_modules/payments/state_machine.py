"""
portal_modules.payments.state_machine -- Payment status transitions.

Responsibility:
    Applies one status transition to an immutable ``PaymentRecord``
    snapshot.  Evaluates the guards declared on ``PAYMENT_WORKFLOW``,
    applies supplied evidence, checks the document gate, stamps the
    payment date on settlement and asks the recurrence engine for the next
    occurrence.  Also owns attach/detach of documents, since attaching an
    invoice can itself move a payment forward.

Architecture position:
    Modules layer.  Pure: no session, no I/O.  Delegates evidence checks to
    ``DocumentGate`` and occurrence generation to
    ``RecurringPaymentGenerator`` (both in portal_engines).  Persistence is
    the caller's job (see ``PaymentService``).

Invariants enforced:
    - PAID and CANCELED accept no transition of any kind.
    - OVERDUE is never a transition target.
    - Moving into READY_TO_PAY or PAID requires the invoice evidence when
      the payment requires an invoice.
    - ``payment_date`` is set exactly when PAID is entered.
    - Either every effect of a transition is applied or none is: the input
      snapshot is never mutated and errors are raised before a new record
      is returned.

Failure modes:
    - TerminalStateViolationError, IllegalTransitionError,
      MissingEvidenceError raised by ``attempt_transition``.
    - EvidenceWithdrawalViolationError, DocumentNotAttachedError raised by
      ``detach_document``.
    - InvalidFrequencyError, ClientReferenceError propagate from the
      recurrence engine when a recurring payment settles.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID

from portal_config.schema import PaymentsConfig
from portal_engines.document_gate import DocumentGate
from portal_engines.recurrence import RecurringPaymentGenerator
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.payment import (
    ApprovalSignal,
    DocumentAttachment,
    Evidence,
    PaymentRecord,
    PaymentStatus,
    ProofOfPayment,
)
from portal_kernel.domain.workflow import Transition, Workflow
from portal_kernel.exceptions import (
    DocumentNotAttachedError,
    EvidenceWithdrawalViolationError,
    IllegalTransitionError,
    MissingEvidenceError,
    PaymentLifecycleError,
    TerminalStateViolationError,
)
from portal_kernel.logging_config import get_logger
from portal_modules.payments.workflows import EVIDENCE_GUARDS, PAYMENT_WORKFLOW

logger = get_logger("modules.payments.state_machine")

# Statuses in which an attached invoice is already relied upon
_INVOICE_LOCKED_STATUSES = frozenset(
    {
        PaymentStatus.READY_TO_PAY,
        PaymentStatus.AWAITING_VALIDATION,
        PaymentStatus.PAID,
    }
)

# Targets that pass through the document gate
_GATED_TARGETS = frozenset({PaymentStatus.READY_TO_PAY, PaymentStatus.PAID})


# ---------------------------------------------------------------------------
# Guard predicates, keyed by Guard.name
# ---------------------------------------------------------------------------


def _requires_invoice(record: PaymentRecord, evidence: Evidence | None) -> bool:
    return record.requires_invoice


def _invoice_attachment(record: PaymentRecord, evidence: Evidence | None) -> bool:
    return isinstance(evidence, DocumentAttachment) and evidence.is_invoice


def _proof_of_payment(record: PaymentRecord, evidence: Evidence | None) -> bool:
    return isinstance(evidence, ProofOfPayment)


def _accountant_approval(record: PaymentRecord, evidence: Evidence | None) -> bool:
    return isinstance(evidence, ApprovalSignal)


GUARD_PREDICATES: dict[str, Callable[[PaymentRecord, Evidence | None], bool]] = {
    "requires_invoice": _requires_invoice,
    "invoice_attachment": _invoice_attachment,
    "proof_of_payment": _proof_of_payment,
    "accountant_approval": _accountant_approval,
}


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of a successful transition or document operation.

    ``next_occurrence`` is the generated follow-up of a recurring payment,
    present only when this outcome settled one.
    """

    record: PaymentRecord
    previous_status: PaymentStatus
    status_changed: bool
    next_occurrence: PaymentRecord | None = None
    action: str | None = None


class PaymentStateMachine:
    """
    Evaluates payment transitions against ``PAYMENT_WORKFLOW``.

    Contract:
        Every method takes a snapshot and returns a new snapshot (wrapped in
        a ``TransitionOutcome`` where the status may change).
    Guarantees:
        - The clock is the only source of "now".
        - Re-entering the current non-terminal status succeeds without
          changing anything.
    Non-goals:
        - No persistence, no locking; see ``PaymentService``.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        workflow: Workflow = PAYMENT_WORKFLOW,
        document_gate: DocumentGate | None = None,
        generator: RecurringPaymentGenerator | None = None,
        config: PaymentsConfig | None = None,
        client_exists: Callable[[UUID], bool] | None = None,
    ):
        self._clock = clock or SystemClock()
        self._workflow = workflow
        self._gate = document_gate or DocumentGate()
        self._config = config or PaymentsConfig()
        if generator is None:
            generator = RecurringPaymentGenerator(
                client_exists=(
                    client_exists
                    if self._config.enforce_client_reference_on_recurrence
                    else None
                ),
            )
        self._generator = generator

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def attempt_transition(
        self,
        record: PaymentRecord,
        target_status: PaymentStatus | str,
        evidence: Evidence | None = None,
    ) -> TransitionOutcome:
        """Move ``record`` to ``target_status``.

        Args:
            record: Current snapshot.
            target_status: Requested status.
            evidence: Invoice attachment, proof of payment or approval
                signal, as the transition demands.  A document attachment
                supplied with any transition is recorded on the payment.

        Raises:
            TerminalStateViolationError: record is PAID or CANCELED.
            IllegalTransitionError: no such transition, or a precondition
                on the record itself fails.
            MissingEvidenceError: required evidence was not supplied.
        """
        target = PaymentStatus(target_status)
        try:
            outcome = self._apply(record, target, evidence)
        except PaymentLifecycleError as exc:
            logger.warning(
                "payment_transition_rejected",
                extra={
                    "payment_id": str(record.id),
                    "from_status": record.status.value,
                    "to_status": target.value,
                    "error_code": exc.code,
                },
            )
            raise

        if outcome.status_changed:
            logger.info(
                "payment_transition_applied",
                extra={
                    "payment_id": str(record.id),
                    "action": outcome.action,
                    "from_status": outcome.previous_status.value,
                    "to_status": outcome.record.status.value,
                    "next_payment_id": (
                        str(outcome.next_occurrence.id)
                        if outcome.next_occurrence
                        else None
                    ),
                },
            )
        return outcome

    def _apply(
        self,
        record: PaymentRecord,
        target: PaymentStatus,
        evidence: Evidence | None,
    ) -> TransitionOutcome:
        payment_id = str(record.id)

        if record.is_terminal:
            raise TerminalStateViolationError(
                payment_id, record.status.value, target.value
            )
        if target == record.status:
            return TransitionOutcome(
                record=record,
                previous_status=record.status,
                status_changed=False,
            )

        transition = self._workflow.find_transition(record.status.value, target.value)
        if transition is None:
            raise IllegalTransitionError(
                payment_id, record.status.value, target.value
            )

        self._check_guard(record, transition, evidence)

        updated = self._record_evidence(record, evidence)
        if target in _GATED_TARGETS and not self._gate.has_required_evidence(updated):
            raise MissingEvidenceError(payment_id, target.value, "invoice")

        # status and payment_date must change together
        changes: dict[str, Any] = {"status": target}
        if transition.settles:
            changes["payment_date"] = self._clock.today()
        updated = replace(updated, **changes)

        next_occurrence = None
        if (
            transition.settles
            and updated.is_recurring
            and self._config.generate_recurring_on_paid
        ):
            next_occurrence = self._generator.generate_next(updated)

        return TransitionOutcome(
            record=updated,
            previous_status=record.status,
            status_changed=True,
            next_occurrence=next_occurrence,
            action=transition.action,
        )

    def _check_guard(
        self,
        record: PaymentRecord,
        transition: Transition,
        evidence: Evidence | None,
    ) -> None:
        guard = transition.guard
        if guard is None:
            return
        predicate = GUARD_PREDICATES.get(guard.name)
        if predicate is None:
            raise ValueError(f"No predicate registered for guard {guard.name!r}")
        if predicate(record, evidence):
            return
        evidence_kind = EVIDENCE_GUARDS.get(guard.name)
        if evidence_kind is not None:
            raise MissingEvidenceError(
                str(record.id), transition.to_state, evidence_kind
            )
        raise IllegalTransitionError(
            str(record.id),
            transition.from_state,
            transition.to_state,
            reason=guard.description,
        )

    def _record_evidence(
        self, record: PaymentRecord, evidence: Evidence | None
    ) -> PaymentRecord:
        if isinstance(evidence, DocumentAttachment):
            return self._append_document(record, evidence)
        if isinstance(evidence, ProofOfPayment) and evidence.receipt is not None:
            return self._append_document(record, evidence.receipt)
        return record

    def _append_document(
        self, record: PaymentRecord, attachment: DocumentAttachment
    ) -> PaymentRecord:
        if record.find_document(attachment.document_id) is not None:
            return record
        changes: dict[str, Any] = {
            "attached_documents": record.attached_documents + (attachment,),
        }
        if attachment.is_invoice and record.invoice_attached_at is None:
            changes["invoice_attached_at"] = self._clock.now()
            changes["invoice_attached_by"] = attachment.attached_by
        return replace(record, **changes)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def attach_document(
        self, record: PaymentRecord, attachment: DocumentAttachment
    ) -> TransitionOutcome:
        """Attach a document, advancing the payment when it is the invoice.

        An invoice attached to a PENDING payment that requires one moves it
        through AWAITING_INVOICE to READY_TO_PAY.  Attaching a document id
        that is already attached changes nothing.
        """
        if record.find_document(attachment.document_id) is not None:
            return TransitionOutcome(
                record=record,
                previous_status=record.status,
                status_changed=False,
            )

        if attachment.is_invoice and record.requires_invoice:
            if record.status == PaymentStatus.AWAITING_INVOICE:
                return self.attempt_transition(
                    record, PaymentStatus.READY_TO_PAY, attachment
                )
            if record.status == PaymentStatus.PENDING:
                requested = self.attempt_transition(
                    record, PaymentStatus.AWAITING_INVOICE
                )
                ready = self.attempt_transition(
                    requested.record, PaymentStatus.READY_TO_PAY, attachment
                )
                return replace(ready, previous_status=record.status)

        updated = self._append_document(record, attachment)
        logger.info(
            "payment_document_attached",
            extra={
                "payment_id": str(record.id),
                "document_id": str(attachment.document_id),
                "is_invoice": attachment.is_invoice,
                "status": record.status.value,
            },
        )
        return TransitionOutcome(
            record=updated,
            previous_status=record.status,
            status_changed=False,
        )

    def detach_document(
        self, record: PaymentRecord, document_id: UUID
    ) -> PaymentRecord:
        """Remove an attached document.

        Raises:
            DocumentNotAttachedError: the document is not on this payment.
            EvidenceWithdrawalViolationError: the document is an invoice the
                current status relies upon.
        """
        document = record.find_document(document_id)
        if document is None:
            raise DocumentNotAttachedError(str(record.id), str(document_id))
        if document.is_invoice and record.status in _INVOICE_LOCKED_STATUSES:
            logger.warning(
                "payment_evidence_withdrawal_rejected",
                extra={
                    "payment_id": str(record.id),
                    "document_id": str(document_id),
                    "status": record.status.value,
                },
            )
            raise EvidenceWithdrawalViolationError(
                str(record.id), str(document_id), record.status.value
            )

        remaining = tuple(
            doc for doc in record.attached_documents if doc.document_id != document_id
        )
        changes: dict[str, Any] = {"attached_documents": remaining}
        if document.is_invoice and not any(doc.is_invoice for doc in remaining):
            changes["invoice_attached_at"] = None
            changes["invoice_attached_by"] = None

        logger.info(
            "payment_document_detached",
            extra={
                "payment_id": str(record.id),
                "document_id": str(document_id),
                "is_invoice": document.is_invoice,
            },
        )
        return replace(record, **changes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def available_transitions(
        self, record: PaymentRecord
    ) -> tuple[PaymentStatus, ...]:
        """Targets reachable from the current status.

        Preconditions on the record are evaluated now.  Evidence guards are
        assumed satisfiable by the caller supplying the evidence, but a
        settlement that would still fail the document gate is excluded.
        """
        if record.is_terminal:
            return ()
        targets: list[PaymentStatus] = []
        for transition in self._workflow.transitions_from(record.status.value):
            guard = transition.guard
            if guard is not None and guard.name not in EVIDENCE_GUARDS:
                if not GUARD_PREDICATES[guard.name](record, None):
                    continue
            target = PaymentStatus(transition.to_state)
            if (
                target == PaymentStatus.PAID
                and not self._gate.has_required_evidence(record)
            ):
                continue
            targets.append(target)
        return tuple(targets)
