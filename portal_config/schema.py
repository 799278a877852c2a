"""
Configuration Schema (``portal_config.schema``).

Responsibility
--------------
Frozen dataclasses describing one configuration set: payment lifecycle
settings and the subscription plan catalog.  Instances are produced by
``portal_config.loader`` from YAML and validated at construction.

Architecture position
---------------------
**Config layer** -- pure data.  Imports only kernel domain enums.  Modules
consume these objects; they never read YAML themselves.

Invariants enforced
-------------------
* All prices are ``Decimal`` and non-negative.
* Plan ids and slugs are unique within a catalog.
* ``trial_plan_slug``, when set, names a plan in the catalog.

Failure modes
-------------
* ``ValueError`` at construction when any constraint is violated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from portal_kernel.domain.subscription import BillingInterval


@dataclass(frozen=True)
class PaymentsConfig:
    """Payment lifecycle settings.

    Field defaults mirror how the portal has been operated:

        config = PaymentsConfig(default_requires_invoice=True)
    """

    # New payments demand an invoice unless the creator says otherwise
    default_requires_invoice: bool = False
    # Spawn the next occurrence of a recurring payment on PAID
    generate_recurring_on_paid: bool = True
    # Refuse to generate an occurrence for a client that no longer exists
    enforce_client_reference_on_recurrence: bool = True


@dataclass(frozen=True)
class PlanDefinition:
    """A subscription plan offered to accountants.

    A plan is billable when at least one billing-provider price id is set.
    """

    id: str
    slug: str
    name: str
    price_monthly: Decimal
    price_yearly: Decimal
    billing_price_id_monthly: str | None = None
    billing_price_id_yearly: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.slug:
            raise ValueError("Plan id and slug must be non-empty")
        if self.price_monthly < 0 or self.price_yearly < 0:
            raise ValueError(f"Plan {self.slug}: prices cannot be negative")

    @property
    def billing_price_ids(self) -> tuple[str, ...]:
        return tuple(
            pid
            for pid in (self.billing_price_id_monthly, self.billing_price_id_yearly)
            if pid
        )

    @property
    def is_billable(self) -> bool:
        return bool(self.billing_price_ids)

    def price_for(self, interval: BillingInterval) -> Decimal:
        if interval == BillingInterval.YEARLY:
            return self.price_yearly
        return self.price_monthly

    def billing_price_id_for(self, interval: BillingInterval) -> str | None:
        """Price id for ``interval``, falling back to the other interval."""
        if interval == BillingInterval.YEARLY:
            return self.billing_price_id_yearly or self.billing_price_id_monthly
        return self.billing_price_id_monthly or self.billing_price_id_yearly


@dataclass(frozen=True)
class SubscriptionsConfig:
    """Plan catalog and trial settings."""

    plans: tuple[PlanDefinition, ...] = field(default_factory=tuple)
    trial_plan_slug: str | None = None
    default_interval: BillingInterval = BillingInterval.MONTHLY

    def __post_init__(self) -> None:
        ids = [p.id for p in self.plans]
        if len(ids) != len(set(ids)):
            raise ValueError("Plan ids must be unique")
        slugs = [p.slug for p in self.plans]
        if len(slugs) != len(set(slugs)):
            raise ValueError("Plan slugs must be unique")
        if self.trial_plan_slug is not None and self.trial_plan_slug not in slugs:
            raise ValueError(
                f"trial_plan_slug {self.trial_plan_slug!r} is not a configured plan"
            )

    def find_plan(self, plan_id: str) -> PlanDefinition | None:
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None

    def find_plan_by_slug(self, slug: str) -> PlanDefinition | None:
        for plan in self.plans:
            if plan.slug == slug:
                return plan
        return None


@dataclass(frozen=True)
class PortalConfiguration:
    """One loaded configuration set."""

    config_id: str
    version: int
    payments: PaymentsConfig
    subscriptions: SubscriptionsConfig
    checksum: str = ""
