"""
Subscription resolver.

Maps the shop's active app subscription to how many variants may carry
a B2B price, and reports current usage against that capacity.
"""

from typing import Optional
import structlog

from integrations.shopify import ShopifyClient
from models.subscription import (
    PlanTier,
    PlanCapacity,
    ActiveSubscription,
    SubscriptionStatusResponse,
)
from exceptions import ShopifyError

logger = structlog.get_logger(__name__)


FREE_PLAN_LIMIT = 5

SUBSCRIPTION_TIERS: list[PlanTier] = [
    PlanTier(name="Free", limit=FREE_PLAN_LIMIT),
    PlanTier(name="Startup", limit=10),
    PlanTier(name="Growth", limit=15),
    PlanTier(name="Expand", limit=None),
]


def get_variant_limit_for_plan(plan_name: Optional[str]) -> Optional[int]:
    """
    Variant capacity for a plan name.

    Matching is a case-insensitive substring test so "Growth (annual)"
    still resolves. Unknown names fall back to the free limit.

    Returns:
        Limit, or None for unlimited
    """
    if not plan_name:
        return FREE_PLAN_LIMIT

    name = plan_name.lower()
    if "startup" in name:
        return 10
    if "growth" in name:
        return 15
    if "expand" in name:
        return None
    return FREE_PLAN_LIMIT


class SubscriptionService:
    """Plan capacity lookups for one shop."""

    def __init__(self, client: ShopifyClient):
        self.client = client

    def get_plan_capacity(self) -> PlanCapacity:
        """
        Resolve the active plan and its limit.

        Raises:
            ShopifyError: If subscriptions cannot be read
        """
        plan_name = self.client.get_active_plan_name()
        limit = get_variant_limit_for_plan(plan_name)

        logger.info(
            "plan_capacity_resolved",
            shop=self.client.shop.shop,
            plan=plan_name or "Free",
            limit=limit
        )

        return PlanCapacity(plan_name=plan_name, limit=limit)

    def get_subscription_status(self, used: int) -> SubscriptionStatusResponse:
        """
        Current plan with usage.

        Args:
            used: Variants currently carrying a B2B price

        Returns:
            SubscriptionStatusResponse
        """
        subscriptions = self.client.get_active_subscriptions()
        subscription = ActiveSubscription(**subscriptions[0]) if subscriptions else None
        plan_name = subscription.name if subscription else None
        limit = get_variant_limit_for_plan(plan_name)

        remaining = None if limit is None else max(0, limit - used)

        return SubscriptionStatusResponse(
            subscription=subscription,
            plan_name=plan_name or "Free",
            limit=limit,
            used=used,
            remaining=remaining,
            manage_url=(
                f"https://admin.shopify.com/store/{self.client.shop.shop_name}"
                f"/charges/pricing_plans"
            ),
        )

    def cancel(self, subscription_id: str) -> None:
        """
        Cancel a subscription.

        Raises:
            ShopifyError: If Shopify rejects the cancellation
        """
        logger.info("cancelling_subscription", subscription_id=subscription_id)

        errors = self.client.cancel_subscription(subscription_id)
        if errors:
            logger.error(
                "cancel_subscription_failed",
                subscription_id=subscription_id,
                error=errors[0]
            )
            raise ShopifyError(f"Failed to cancel subscription: {errors[0]}")

        logger.info("subscription_cancelled", subscription_id=subscription_id)
