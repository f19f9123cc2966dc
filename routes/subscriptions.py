"""
Subscription API routes.

Plan status, cancellation, and the app_subscriptions/update webhook
that trims B2B prices when a shop moves to a smaller plan.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header
from fastapi.responses import JSONResponse
import structlog

from integrations.shopify import get_shopify_client
from models.shop import ShopContext
from models.subscription import (
    CancelSubscriptionRequest,
    PlanChangeResult,
    SubscriptionStatusResponse,
)
from routes.dependencies import get_shop_context
from services.plan_enforcement_service import PlanEnforcementService
from services.snapshot_service import SnapshotLoader
from services.subscription_service import SubscriptionService
from exceptions import AppError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Subscription"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/api/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription(shop: ShopContext = Depends(get_shop_context)):
    """Active plan, its B2B price limit and current usage."""
    try:
        client = get_shopify_client(shop)
        snapshot = SnapshotLoader(client).load_snapshot()

        return SubscriptionService(client).get_subscription_status(used=snapshot.special_price_count)

    except Exception as e:
        return handle_error(e)


@router.post("/api/subscription/cancel")
async def cancel_subscription(
    data: CancelSubscriptionRequest,
    shop: ShopContext = Depends(get_shop_context),
):
    """Cancel an app subscription."""
    try:
        SubscriptionService(get_shopify_client(shop)).cancel(data.subscription_id)
        return {"success": True}

    except Exception as e:
        return handle_error(e)


@router.post("/webhooks/app/subscriptions/update", response_model=PlanChangeResult)
async def subscription_updated(
    payload: dict[str, Any] = Body(...),
    x_shopify_shop_domain: Optional[str] = Header(None),
    x_shopify_access_token: Optional[str] = Header(None),
):
    """
    Handle app_subscriptions/update.

    Removes the oldest B2B prices when the new plan allows fewer.
    """
    try:
        subscription = payload.get("app_subscription")
        if not subscription:
            raise ValidationError(message="Invalid payload", details={"missing": "app_subscription"})

        shop = get_shop_context(x_shopify_shop_domain, x_shopify_access_token)
        plan_name = subscription.get("name") or None

        logger.info("subscription_webhook_received", shop=shop.shop, plan=plan_name or "Free")

        return PlanEnforcementService(get_shopify_client(shop)).apply_plan_change(plan_name)

    except Exception as e:
        return handle_error(e)
