"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.prices import router as prices_router
from routes.subscriptions import router as subscriptions_router
from routes.forms import router as forms_router
from routes.storefront import router as storefront_router

__all__ = [
    "prices_router",
    "subscriptions_router",
    "forms_router",
    "storefront_router",
]
