"""
Payments Module (``portal_modules.payments``).

Responsibility
--------------
Payment status lifecycle for the accountant portal: the declarative
workflow, the pure state machine that applies it, the ORM projection and
the transactional service facade.

Architecture position
---------------------
**Modules layer** -- delegates evidence checks, overdue derivation and
recurrence to ``portal_engines``; persistence through ``portal_kernel.db``.
"""

from portal_modules.payments.service import (
    PaymentOperationResult,
    PaymentOperationStatus,
    PaymentService,
)
from portal_modules.payments.state_machine import PaymentStateMachine, TransitionOutcome
from portal_modules.payments.workflows import PAYMENT_WORKFLOW

__all__ = [
    "PAYMENT_WORKFLOW",
    "PaymentOperationResult",
    "PaymentOperationStatus",
    "PaymentService",
    "PaymentStateMachine",
    "TransitionOutcome",
]
