"""
Subscriptions Module Service (``portal_modules.subscriptions.service``).

Responsibility
--------------
Dispatcher between a plan selection and the billing provider: looks the
plan up in the configured catalog, asks ``SubscriptionPlanResolver`` how
the change must happen and names the billing operation to run.

Architecture position
---------------------
**Modules layer** -- thin coordinator.  Pure: no session, no provider
calls.  The returned ``PlanChangeDecision`` is executed by the caller.

Failure modes
-------------
* ``PlanNotFoundError`` -- the plan id is not in the catalog.
* ``NoOpSamePlanError`` -- the caller selected the plan already in force.
* ``PlanNotBillableError`` -- checkout needed but the plan has no billing
  price id.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from portal_config.schema import PlanDefinition, SubscriptionsConfig
from portal_engines.plan_resolver import SubscriptionPlanResolver
from portal_kernel.domain.subscription import (
    BillingInterval,
    PlanChangeAction,
    PlanDisplayAction,
    SubscriptionState,
)
from portal_kernel.exceptions import NoOpSamePlanError, PlanNotFoundError
from portal_kernel.logging_config import get_logger

logger = get_logger("modules.subscriptions.service")

# Billing-provider operation for each classification
BILLING_OPERATIONS: dict[PlanChangeAction, str] = {
    PlanChangeAction.REQUIRES_CHECKOUT: "create_checkout_session",
    PlanChangeAction.IN_PLACE_UPGRADE: "upgrade_subscription",
    PlanChangeAction.IN_PLACE_DOWNGRADE: "downgrade_subscription",
}


@dataclass(frozen=True)
class PlanChangeDecision:
    """What the billing collaborator must do for a plan change."""

    action: PlanChangeAction
    plan_id: str
    billing_price_id: str | None
    billing_operation: str
    interval: BillingInterval


@dataclass(frozen=True)
class PlanOption:
    """One row of a plan listing."""

    plan: PlanDefinition
    price: Decimal
    display_action: PlanDisplayAction


class PlanChangeService:
    """
    Resolves plan changes against the configured catalog.

    Contract:
        Reads a SubscriptionState snapshot and the catalog; never mutates
        either.
    """

    def __init__(
        self,
        config: SubscriptionsConfig,
        resolver: SubscriptionPlanResolver | None = None,
    ):
        self._config = config
        self._resolver = resolver or SubscriptionPlanResolver()

    def decide(
        self,
        current: SubscriptionState,
        target_plan_id: str,
        interval: BillingInterval | None = None,
    ) -> PlanChangeDecision:
        """Classify a change to ``target_plan_id``.

        ``interval`` defaults to the caller's current billing interval.

        Raises:
            PlanNotFoundError: unknown plan id.
            NoOpSamePlanError: the target is the current plan.
            PlanNotBillableError: checkout needed, no billing price id.
        """
        plan = self._config.find_plan(target_plan_id)
        if plan is None:
            raise PlanNotFoundError(target_plan_id)
        if current.current_plan_id is not None and current.current_plan_id == plan.id:
            raise NoOpSamePlanError(plan.id)

        billing_interval = interval or current.billing_interval
        # Prices compare in the interval the current plan is billed in
        action = self._resolver.resolve(
            current,
            plan.price_for(current.billing_interval),
            billing_price_ids=plan.billing_price_ids,
            plan_ref=plan.id,
        )
        decision = PlanChangeDecision(
            action=action,
            plan_id=plan.id,
            billing_price_id=plan.billing_price_id_for(billing_interval),
            billing_operation=BILLING_OPERATIONS[action],
            interval=billing_interval,
        )

        logger.info(
            "plan_change_resolved",
            extra={
                "plan_id": plan.id,
                "current_plan_id": current.current_plan_id,
                "subscription_status": current.status.value,
                "action": action.value,
                "billing_operation": decision.billing_operation,
                "interval": billing_interval.value,
            },
        )
        return decision

    def plan_actions(
        self,
        current: SubscriptionState,
        interval: BillingInterval | None = None,
    ) -> tuple[PlanOption, ...]:
        """Every catalog plan labelled CURRENT, UPGRADE or DOWNGRADE."""
        billing_interval = interval or current.billing_interval
        options = []
        for plan in self._config.plans:
            price = plan.price_for(billing_interval)
            options.append(
                PlanOption(
                    plan=plan,
                    price=price,
                    display_action=self._resolver.classify_display(
                        current,
                        plan.price_for(current.billing_interval),
                        is_current_plan=plan.id == current.current_plan_id,
                    ),
                )
            )
        return tuple(options)
