"""
Shared route dependencies.
"""

from typing import Optional

from fastapi import Header

from config import settings
from models.shop import ShopContext
from exceptions import ShopifyNotConfiguredError


def get_shop_context(
    x_shop_domain: Optional[str] = Header(None),
    x_shopify_access_token: Optional[str] = Header(None),
) -> ShopContext:
    """
    Shop a request acts on.

    Headers win; otherwise the default shop from settings.

    Raises:
        ShopifyNotConfiguredError: Neither headers nor settings name a shop
    """
    shop = x_shop_domain or settings.shopify_shop_domain
    token = x_shopify_access_token or settings.shopify_access_token

    if not shop or not token:
        raise ShopifyNotConfiguredError()

    return ShopContext(shop=shop, access_token=token, api_version=settings.shopify_api_version)
