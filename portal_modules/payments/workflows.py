"""
Payment Workflow (``portal_modules.payments.workflows``).

Responsibility
--------------
Declares the payment status lifecycle as a frozen ``Workflow``.  Guards name
the precondition or the evidence each transition needs; ``settles=True``
marks transitions into PAID, which stamp the payment date and may spawn the
next occurrence of a recurring payment.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition.  Imports canonical
Guard, Transition, Workflow from ``portal_kernel.domain.workflow``.
Evaluated at runtime by ``PaymentStateMachine``.

Invariants enforced
-------------------
* PAID and CANCELED are terminal: no outgoing transitions.
* OVERDUE is not a workflow state; it is derived at read time.
* Every non-terminal state can be canceled.
"""

from portal_kernel.domain.payment import PaymentStatus
from portal_kernel.domain.workflow import Guard, Transition, Workflow
from portal_kernel.logging_config import get_logger

logger = get_logger("modules.payments.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REQUIRES_INVOICE = Guard(
    name="requires_invoice",
    description="Payment was created with requires_invoice set",
)

INVOICE_ATTACHMENT = Guard(
    name="invoice_attachment",
    description="An invoice-flagged document is attached in this request",
)

PROOF_OF_PAYMENT = Guard(
    name="proof_of_payment",
    description="Client submitted proof that the payment was made",
)

ACCOUNTANT_APPROVAL = Guard(
    name="accountant_approval",
    description="Accountant approved the submitted proof of payment",
)

# Guard name -> kind of evidence reported when the guard fails.
# Guards absent from this map are preconditions on the record itself.
EVIDENCE_GUARDS: dict[str, str] = {
    INVOICE_ATTACHMENT.name: "invoice",
    PROOF_OF_PAYMENT.name: "proof_of_payment",
    ACCOUNTANT_APPROVAL.name: "approval",
}


# -----------------------------------------------------------------------------
# Payment Workflow
# -----------------------------------------------------------------------------

_PENDING = PaymentStatus.PENDING.value
_AWAITING_INVOICE = PaymentStatus.AWAITING_INVOICE.value
_READY_TO_PAY = PaymentStatus.READY_TO_PAY.value
_AWAITING_VALIDATION = PaymentStatus.AWAITING_VALIDATION.value
_PAID = PaymentStatus.PAID.value
_CANCELED = PaymentStatus.CANCELED.value

PAYMENT_WORKFLOW = Workflow(
    name="payment",
    description="Money owed, evidenced and reconciled",
    initial_state=_PENDING,
    states=(
        _PENDING,
        _AWAITING_INVOICE,
        _READY_TO_PAY,
        _AWAITING_VALIDATION,
        _PAID,
        _CANCELED,
    ),
    terminal_states=(_PAID, _CANCELED),
    transitions=(
        Transition(_PENDING, _AWAITING_INVOICE, action="request_invoice", guard=REQUIRES_INVOICE),
        Transition(_PENDING, _PAID, action="mark_paid", settles=True),
        Transition(_PENDING, _CANCELED, action="cancel"),
        Transition(_AWAITING_INVOICE, _READY_TO_PAY, action="attach_invoice", guard=INVOICE_ATTACHMENT),
        Transition(_AWAITING_INVOICE, _CANCELED, action="cancel"),
        Transition(_READY_TO_PAY, _PAID, action="mark_paid", settles=True),
        Transition(_READY_TO_PAY, _AWAITING_VALIDATION, action="submit_proof", guard=PROOF_OF_PAYMENT),
        Transition(_READY_TO_PAY, _CANCELED, action="cancel"),
        Transition(
            _AWAITING_VALIDATION,
            _PAID,
            action="approve",
            guard=ACCOUNTANT_APPROVAL,
            settles=True,
        ),
        Transition(_AWAITING_VALIDATION, _CANCELED, action="cancel"),
    ),
)

logger.info(
    "payment_workflow_registered",
    extra={
        "workflow": PAYMENT_WORKFLOW.name,
        "state_count": len(PAYMENT_WORKFLOW.states),
        "transition_count": len(PAYMENT_WORKFLOW.transitions),
    },
)
