"""
Base schemas and mixins shared by API models.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Build from Supabase rows or objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class TimestampMixin(BaseModel):
    """Stored rows carry created/updated timestamps."""
    created_at: datetime
    updated_at: Optional[datetime] = None


class ShopScopedMixin(BaseModel):
    """Rows owned by one shop; every query filters on it."""
    shop: str = Field(..., description="Shop domain", examples=["my-store.myshopify.com"])
