"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Shop credentials are optional here; the Shopify client raises
ShopifyNotConfiguredError when it is built without them.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SHOPIFY
    # ===================
    shopify_shop_domain: Optional[str] = Field(
        None,
        description="Default shop domain (my-store.myshopify.com)"
    )
    shopify_access_token: Optional[str] = Field(
        None,
        description="Admin API access token for the default shop"
    )
    shopify_api_version: str = Field(
        default="2025-10",
        description="Admin GraphQL API version"
    )
    shopify_request_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Seconds before a GraphQL request times out"
    )
    shopify_upload_timeout: int = Field(
        default=300,
        ge=10,
        le=1800,
        description="Seconds before a staged upload or result download times out"
    )

    # ===================
    # SPECIAL PRICE STORAGE
    # ===================
    special_price_namespace: str = Field(
        default="$app",
        description="Metafield namespace holding the B2B price"
    )
    special_price_key: str = Field(
        default="gd_b2b_price",
        description="Metafield key holding the B2B price"
    )
    b2b_customer_tag: str = Field(
        default="B2B",
        description="Tag applied to customers created from approved submissions"
    )

    # ===================
    # RECONCILIATION
    # ===================
    variant_page_size: int = Field(
        default=250,
        ge=1,
        le=250,
        description="Variants fetched per page when loading the catalog snapshot"
    )
    bulk_row_threshold: int = Field(
        default=20,
        ge=0,
        le=1000,
        description="Admitted operations above this count go through a bulk job"
    )
    price_epsilon: float = Field(
        default=0.001,
        gt=0,
        le=1,
        description="Absolute tolerance when comparing prices"
    )
    bulk_poll_interval_seconds: int = Field(
        default=2,
        ge=1,
        le=60,
        description="Suggested interval between job polls (returned to callers)"
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/public key"
    )
    # ===================
    # FORMS
    # ===================
    max_forms_per_shop: int = Field(
        default=1,
        ge=1,
        le=50,
        description="Lead-capture forms a shop may create"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def shopify_configured(self) -> bool:
        """Check if default shop credentials are present."""
        return bool(self.shopify_shop_domain and self.shopify_access_token)

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase is properly configured."""
        return bool(self.supabase_url and self.supabase_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
