"""
Subscription and plan capacity schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional

from models.base import BaseSchema


class PlanTier(BaseSchema):
    """A billing tier and how many variants may carry a B2B price."""

    name: str
    limit: Optional[int] = Field(None, description="None means unlimited")


class PlanCapacity(BaseSchema):
    """Resolved capacity for the shop's active plan."""

    plan_name: Optional[str] = Field(None, description="Active plan, None on the free tier")
    limit: Optional[int] = Field(None, description="None means unlimited")

    @property
    def display_name(self) -> str:
        return self.plan_name or "Free"

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None


class ActiveSubscription(BaseSchema):
    """App subscription as returned by Shopify."""

    id: str
    name: str
    status: Optional[str] = None
    test: bool = False


class SubscriptionStatusResponse(BaseSchema):
    """Current plan, its capacity and how much of it is used."""

    subscription: Optional[ActiveSubscription] = None
    plan_name: str
    limit: Optional[int] = None
    used: int = Field(..., description="Variants currently carrying a B2B price")
    remaining: Optional[int] = Field(None, description="None means unlimited")
    manage_url: str


class CancelSubscriptionRequest(BaseModel):
    """Cancel an app subscription."""

    subscription_id: str = Field(..., min_length=1)


class PlanChangeResult(BaseSchema):
    """Outcome of enforcing a new plan's capacity on existing B2B prices."""

    plan_name: str
    limit: Optional[int] = None
    current_count: int = 0
    removed_variant_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
