"""
Pure domain layer.

Value objects shared by engines and modules, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (except SystemClock, the sanctioned time boundary)

All domain objects are immutable.
"""

from portal_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)
from portal_kernel.domain.payment import (
    TERMINAL_STATUSES,
    ApprovalSignal,
    DocumentAttachment,
    Evidence,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    ProofOfPayment,
    RecurringFrequency,
)
from portal_kernel.domain.subscription import (
    BillingInterval,
    PlanChangeAction,
    PlanDisplayAction,
    SubscriptionState,
    SubscriptionStatus,
)
from portal_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SequentialClock",
    "SystemClock",
    "TERMINAL_STATUSES",
    "ApprovalSignal",
    "DocumentAttachment",
    "Evidence",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentType",
    "ProofOfPayment",
    "RecurringFrequency",
    "BillingInterval",
    "PlanChangeAction",
    "PlanDisplayAction",
    "SubscriptionState",
    "SubscriptionStatus",
    "Guard",
    "Transition",
    "Workflow",
]
