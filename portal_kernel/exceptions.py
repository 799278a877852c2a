"""
Typed Exception Hierarchy for the Portal Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection of a payment transition or plan change is surfaced to the
immediate caller as a typed failure.  The caller decides the user-facing
message; it must never have to parse ours.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        outcome = machine.attempt_transition(record, PaymentStatus.PAID)
    except MissingEvidenceError as e:
        api_response(code=e.code, payment=e.payment_id, needs=e.evidence_kind)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PortalKernelError (base)
    |
    +-- PaymentLifecycleError
    |   +-- IllegalTransitionError
    |   +-- TerminalStateViolationError
    |   +-- MissingEvidenceError
    |   +-- EvidenceWithdrawalViolationError
    |   +-- DocumentNotAttachedError
    |   +-- PaymentNotFoundError
    |
    +-- RecurrenceError
    |   +-- InvalidFrequencyError
    |   +-- ClientReferenceError
    |
    +-- PlanChangeError
    |   +-- NoOpSamePlanError
    |   +-- PlanNotBillableError
    |   +-- PlanNotFoundError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------------
Lifecycle    | ILLEGAL_TRANSITION            | Target not reachable from current status
             | TERMINAL_STATE_VIOLATION      | Any transition on PAID / CANCELED
             | MISSING_EVIDENCE              | Invoice / proof / approval not supplied
             | EVIDENCE_WITHDRAWAL_VIOLATION | Detaching an invoice already relied upon
             | DOCUMENT_NOT_ATTACHED         | Detaching a document that is not there
             | PAYMENT_NOT_FOUND             | Payment ID doesn't exist
-------------|-------------------------------|----------------------------------------
Recurrence   | INVALID_FREQUENCY             | Recurring record without a frequency
             | CLIENT_REFERENCE_MISSING      | Client gone before next occurrence
-------------|-------------------------------|----------------------------------------
Plan change  | NO_OP_SAME_PLAN               | Target is the currently active plan
             | PLAN_NOT_BILLABLE             | Checkout needed, no billing price ids
             | PLAN_NOT_FOUND                | Unknown plan id
-------------|-------------------------------|----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Record changed since it was read

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError.  Domain rejections are catchable
   as a group and never mix with programming errors.
2. ``code`` is a class attribute, so ``MissingEvidenceError.code`` works
   without an instance.
3. No error here is retried inside the kernel.  Retries belong to the I/O
   layer (e.g. re-reading a record after an OptimisticLockError).
"""


class PortalKernelError(Exception):
    """
    Base exception for all portal kernel errors.

    All subclasses carry a ``code`` class attribute.
    """

    code: str = "PORTAL_KERNEL_ERROR"


# Payment lifecycle exceptions


class PaymentLifecycleError(PortalKernelError):
    """Base exception for payment status and evidence errors."""

    code: str = "PAYMENT_LIFECYCLE_ERROR"


class IllegalTransitionError(PaymentLifecycleError):
    """Requested target status is not reachable from the current status."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        payment_id: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ):
        self.payment_id = payment_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        message = f"Payment {payment_id}: cannot move from {from_status} to {to_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class TerminalStateViolationError(PaymentLifecycleError):
    """A transition was attempted on a PAID or CANCELED payment."""

    code: str = "TERMINAL_STATE_VIOLATION"

    def __init__(self, payment_id: str, status: str, requested_status: str):
        self.payment_id = payment_id
        self.status = status
        self.requested_status = requested_status
        super().__init__(
            f"Payment {payment_id} is {status} (terminal); "
            f"cannot move to {requested_status}"
        )


class MissingEvidenceError(PaymentLifecycleError):
    """
    Evidence required by a gated transition is absent.

    ``evidence_kind`` is one of ``invoice``, ``proof_of_payment`` or
    ``approval``.
    """

    code: str = "MISSING_EVIDENCE"

    def __init__(self, payment_id: str, to_status: str, evidence_kind: str):
        self.payment_id = payment_id
        self.to_status = to_status
        self.evidence_kind = evidence_kind
        super().__init__(
            f"Payment {payment_id}: {evidence_kind} evidence required "
            f"to move to {to_status}"
        )


class EvidenceWithdrawalViolationError(PaymentLifecycleError):
    """Attempt to detach an invoice-flagged document already relied upon."""

    code: str = "EVIDENCE_WITHDRAWAL_VIOLATION"

    def __init__(self, payment_id: str, document_id: str, status: str):
        self.payment_id = payment_id
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"Payment {payment_id} is {status}; invoice document "
            f"{document_id} cannot be detached"
        )


class DocumentNotAttachedError(PaymentLifecycleError):
    """The document to detach is not attached to the payment."""

    code: str = "DOCUMENT_NOT_ATTACHED"

    def __init__(self, payment_id: str, document_id: str):
        self.payment_id = payment_id
        self.document_id = document_id
        super().__init__(
            f"Document {document_id} is not attached to payment {payment_id}"
        )


class PaymentNotFoundError(PaymentLifecycleError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# Recurrence exceptions


class RecurrenceError(PortalKernelError):
    """Base exception for recurring payment generation errors."""

    code: str = "RECURRENCE_ERROR"


class InvalidFrequencyError(RecurrenceError):
    """Recurring payment has no (or an unknown) frequency at generation time."""

    code: str = "INVALID_FREQUENCY"

    def __init__(self, payment_id: str, frequency: str | None = None):
        self.payment_id = payment_id
        self.frequency = frequency
        if frequency is None:
            message = f"Recurring payment {payment_id} has no recurring frequency"
        else:
            message = (
                f"Recurring payment {payment_id} has unknown frequency {frequency!r}"
            )
        super().__init__(message)


class ClientReferenceError(RecurrenceError):
    """The client of a recurring payment no longer exists."""

    code: str = "CLIENT_REFERENCE_MISSING"

    def __init__(self, payment_id: str, client_id: str):
        self.payment_id = payment_id
        self.client_id = client_id
        super().__init__(
            f"Cannot generate next occurrence of payment {payment_id}: "
            f"client {client_id} no longer exists"
        )


# Plan change exceptions


class PlanChangeError(PortalKernelError):
    """Base exception for subscription plan change errors."""

    code: str = "PLAN_CHANGE_ERROR"


class NoOpSamePlanError(PlanChangeError):
    """Plan change request targets the currently active plan."""

    code: str = "NO_OP_SAME_PLAN"

    def __init__(self, plan_ref: str):
        self.plan_ref = plan_ref
        super().__init__(f"Plan {plan_ref} is already the active plan")


class PlanNotBillableError(PlanChangeError):
    """Checkout is required but the target plan has no billing price ids."""

    code: str = "PLAN_NOT_BILLABLE"

    def __init__(self, plan_ref: str):
        self.plan_ref = plan_ref
        super().__init__(
            f"Plan {plan_ref} has no billing prices configured; "
            "checkout cannot be started"
        )


class PlanNotFoundError(PlanChangeError):
    """Plan with given ID is not in the catalog."""

    code: str = "PLAN_NOT_FOUND"

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


# Concurrency exceptions


class ConcurrencyError(PortalKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
