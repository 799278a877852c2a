"""
Subscriptions Module (``portal_modules.subscriptions``).

Responsibility
--------------
Turns an accountant's plan selection into a billing decision.  The plan
catalog comes from configuration; classification is delegated to
``portal_engines.plan_resolver``.  No billing provider is called here.
"""

from portal_modules.subscriptions.service import (
    PlanChangeDecision,
    PlanChangeService,
    PlanOption,
)

__all__ = [
    "PlanChangeDecision",
    "PlanChangeService",
    "PlanOption",
]
