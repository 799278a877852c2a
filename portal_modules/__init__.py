"""
Portal Modules.

Thin orchestration layers over the portal kernel and engines.
Each module contains:
- Workflows (state machines)
- ORM models (persistence of domain records)
- A service facade owning the transaction boundary

Modules:
- Payments: status lifecycle, document evidence, recurring occurrences
- Subscriptions: plan catalog and plan-change decisions

Actual calculation logic lives in the engines.
"""
