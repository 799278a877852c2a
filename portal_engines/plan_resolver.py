"""
Module: portal_engines.plan_resolver
Responsibility:
    Classify a requested subscription plan change: must it go through a new
    checkout session, or can the existing billing subscription be upgraded
    or downgraded in place?

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The billing provider is
    never called from here; the returned classification tells the caller
    which provider operation to run.

Invariants enforced:
    - Rule order: (1) trial or no external billing subscription means
      checkout; (2) otherwise price comparison decides upgrade/downgrade.
    - Checkout is never selected for a plan with no billing price ids.
    - Selecting the plan already in force is not a change request.

Failure modes:
    - PlanNotBillableError when checkout is needed and the target plan has no
      billing price ids.
    - NoOpSamePlanError when an in-place change targets the current price.
    - ValueError on a negative target price.

Usage:
    from portal_engines.plan_resolver import SubscriptionPlanResolver

    action = SubscriptionPlanResolver().resolve(
        state, Decimal("99.00"), billing_price_ids=("price_pro_monthly",),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from portal_engines.tracer import traced_engine
from portal_kernel.domain.subscription import (
    PlanChangeAction,
    PlanDisplayAction,
    SubscriptionState,
)
from portal_kernel.exceptions import NoOpSamePlanError, PlanNotBillableError
from portal_kernel.logging_config import get_logger

logger = get_logger("engines.plan_resolver")

_ZERO = Decimal("0")


class SubscriptionPlanResolver:
    """
    Plan-change classifier.

    Contract:
        Reads a SubscriptionState snapshot, never mutates it.
    Guarantees:
        - TRIALING always yields REQUIRES_CHECKOUT (or PlanNotBillableError),
          whatever the prices.
    """

    def requires_checkout(self, current: SubscriptionState) -> bool:
        return current.is_trialing or not current.has_external_billing_subscription

    @traced_engine(
        "plan_resolver",
        "1.0",
        fingerprint_fields=("current", "target_plan_price", "billing_price_ids"),
    )
    def resolve(
        self,
        current: SubscriptionState,
        target_plan_price: Decimal,
        billing_price_ids: Sequence[str | None],
        plan_ref: str | None = None,
    ) -> PlanChangeAction:
        """Classify a plan change.

        Args:
            current: The caller's billing state.
            target_plan_price: Price of the requested plan.
            billing_price_ids: Billing-provider price ids configured for the
                requested plan; empty or None entries are ignored.  An
                empty sequence means the plan cannot be bought through
                checkout.
            plan_ref: Plan identifier used in error messages.
        """
        if target_plan_price < 0:
            raise ValueError(
                f"target_plan_price cannot be negative, got {target_plan_price}"
            )
        ref = plan_ref or str(target_plan_price)

        if self.requires_checkout(current):
            if not any(billing_price_ids):
                logger.warning(
                    "plan_change_not_billable",
                    extra={
                        "plan": ref,
                        "subscription_status": current.status.value,
                    },
                )
                raise PlanNotBillableError(ref)
            return PlanChangeAction.REQUIRES_CHECKOUT

        if target_plan_price > current.current_plan_price:
            return PlanChangeAction.IN_PLACE_UPGRADE
        if target_plan_price < current.current_plan_price:
            return PlanChangeAction.IN_PLACE_DOWNGRADE
        raise NoOpSamePlanError(ref)

    def effective_current_price(self, current: SubscriptionState) -> Decimal:
        """Price the caller is paying now; a trial counts as nothing paid."""
        if current.is_trialing:
            return _ZERO
        return current.current_plan_price

    def classify_display(
        self,
        current: SubscriptionState,
        plan_price: Decimal,
        is_current_plan: bool = False,
    ) -> PlanDisplayAction:
        """Label for a plan in a listing: current plan, upgrade or downgrade.

        A plan priced the same as the current one, other than the current
        plan itself, is labelled DOWNGRADE.
        """
        if is_current_plan:
            return PlanDisplayAction.CURRENT
        if plan_price > self.effective_current_price(current):
            return PlanDisplayAction.UPGRADE
        return PlanDisplayAction.DOWNGRADE
