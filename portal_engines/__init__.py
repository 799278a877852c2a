"""
Module: portal_engines
Responsibility:
    Package entrypoint re-exporting the pure engines of the payment
    lifecycle and subscription plan changes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import portal_kernel (domain, exceptions, logging).
    MUST NOT import portal_modules or portal_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The current time is passed in by the caller.
    - Decimal-only arithmetic for amounts and prices.

Usage:
    from portal_engines import DocumentGate, OverdueDeriver
    from portal_engines import RecurringPaymentGenerator, SubscriptionPlanResolver
"""

from portal_engines.document_gate import DocumentGate
from portal_engines.overdue import OverdueDeriver
from portal_engines.plan_resolver import SubscriptionPlanResolver
from portal_engines.recurrence import RecurringPaymentGenerator, add_months
from portal_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DocumentGate",
    "OverdueDeriver",
    "SubscriptionPlanResolver",
    "RecurringPaymentGenerator",
    "add_months",
    "compute_input_fingerprint",
    "traced_engine",
]
