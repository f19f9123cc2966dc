"""
Plan enforcement.

When a shop moves to a smaller plan, B2B prices above the new limit are
removed, least recently updated variants first.
"""

from typing import Optional
import structlog

from integrations.shopify import ShopifyClient
from models.subscription import PlanChangeResult
from services.admission_service import select_evictions
from services.snapshot_service import SnapshotLoader
from services.subscription_service import get_variant_limit_for_plan
from exceptions import ShopifyError

logger = structlog.get_logger(__name__)


class PlanEnforcementService:
    """Applies a plan's capacity to existing B2B prices."""

    def __init__(self, client: ShopifyClient, loader: Optional[SnapshotLoader] = None):
        self.client = client
        self.loader = loader or SnapshotLoader(client)

    def apply_plan_change(self, plan_name: Optional[str]) -> PlanChangeResult:
        """
        Trim B2B prices to fit the plan.

        Deletions are attempted one by one; failures are collected in the
        result rather than raised.

        Args:
            plan_name: New active plan name, None for free

        Returns:
            PlanChangeResult

        Raises:
            SnapshotLoadError: If the catalog cannot be read
        """
        limit = get_variant_limit_for_plan(plan_name)
        result = PlanChangeResult(plan_name=plan_name or "Free", limit=limit)

        logger.info("applying_plan_change", shop=self.client.shop.shop, plan=result.plan_name, limit=limit)

        if limit is None:
            return result

        snapshot = self.loader.load_snapshot()
        result.current_count = snapshot.special_price_count

        evictions = select_evictions(snapshot.variants, limit)
        if not evictions:
            logger.info("plan_within_limit", current_count=result.current_count, limit=limit)
            return result

        for variant in evictions:
            try:
                errors = self.client.delete_special_prices([variant.id])
            except ShopifyError as e:
                errors = [e.message]

            if errors:
                logger.warning("special_price_removal_failed", variant_id=variant.id, error=errors[0])
                result.errors.append(f"Variant {variant.id}: {errors[0]}")
            else:
                result.removed_variant_ids.append(variant.id)

        logger.info(
            "plan_change_applied",
            shop=self.client.shop.shop,
            removed=len(result.removed_variant_ids),
            failed=len(result.errors)
        )

        return result
