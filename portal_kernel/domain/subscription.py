"""
Subscription value objects (``portal_kernel.domain.subscription``).

Read-only snapshots of the caller's billing state and the plan-change
classifications returned to the billing collaborator.  The kernel never
mutates a subscription; the billing provider does.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class SubscriptionStatus(str, Enum):
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"
    INCOMPLETE = "INCOMPLETE"


class BillingInterval(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class PlanChangeAction(str, Enum):
    """How a plan change must be carried out by the billing provider."""

    REQUIRES_CHECKOUT = "REQUIRES_CHECKOUT"
    IN_PLACE_UPGRADE = "IN_PLACE_UPGRADE"
    IN_PLACE_DOWNGRADE = "IN_PLACE_DOWNGRADE"


class PlanDisplayAction(str, Enum):
    """Label class for a plan in a plan listing."""

    CURRENT = "CURRENT"
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"


@dataclass(frozen=True)
class SubscriptionState:
    """The caller's current billing state.

    ``current_plan_price`` of 0 means "no paid plan yet" while trialing.
    """
    status: SubscriptionStatus
    current_plan_price: Decimal
    has_external_billing_subscription: bool
    current_plan_id: str | None = None
    billing_interval: BillingInterval = BillingInterval.MONTHLY

    def __post_init__(self) -> None:
        if self.current_plan_price < 0:
            raise ValueError(
                f"current_plan_price cannot be negative, got {self.current_plan_price}"
            )

    @property
    def is_trialing(self) -> bool:
        return self.status == SubscriptionStatus.TRIALING
