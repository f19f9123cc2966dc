"""
Shop context passed explicitly into every Shopify-facing operation.
"""

from pydantic import Field, field_validator

from models.base import BaseSchema


class ShopContext(BaseSchema):
    """
    Which shop a request acts on, and how to reach it.

    Built per request from headers (or the default shop in settings)
    and handed to the Shopify client; nothing reads a global session.
    """

    shop: str = Field(
        ...,
        min_length=1,
        description="Shop domain",
        examples=["my-store.myshopify.com"]
    )
    access_token: str = Field(
        ...,
        min_length=1,
        description="Admin API access token"
    )
    api_version: str = Field(
        default="2025-10",
        description="Admin GraphQL API version"
    )

    @field_validator("shop")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """
        Normalize to a bare myshopify domain.

        "my-store" -> "my-store.myshopify.com"
        "https://my-store.myshopify.com/" -> "my-store.myshopify.com"
        """
        v = v.replace("https://", "").replace("http://", "").rstrip("/").lower()
        if not v.endswith(".myshopify.com"):
            v = f"{v}.myshopify.com"
        return v

    @property
    def shop_name(self) -> str:
        """Shop handle without the myshopify suffix."""
        return self.shop.replace(".myshopify.com", "")
