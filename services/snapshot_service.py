"""
Snapshot loader.

Reads every variant of the shop once at the start of a run. A snapshot
is all-or-nothing: a failed page aborts the load, so nothing is ever
classified against a partial catalog.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
import structlog

from config import settings
from integrations.shopify import ShopifyClient
from models.pricing import VariantSnapshot, CatalogSnapshot
from exceptions import ShopifyError, SnapshotLoadError

logger = structlog.get_logger(__name__)


def parse_money(value) -> Optional[Decimal]:
    """Shopify money string to Decimal. None for blank or unparsable."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 timestamp from Shopify ("2025-01-31T10:00:00Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def variant_from_node(node: dict) -> VariantSnapshot:
    """Build a VariantSnapshot from a productVariants node."""
    metafield = node.get("metafield") or {}
    product = node.get("product") or {}

    return VariantSnapshot(
        id=node["id"],
        product_id=product.get("id", ""),
        sku=(node.get("sku") or "").strip(),
        price=parse_money(node.get("price")) or Decimal("0"),
        compare_at_price=parse_money(node.get("compareAtPrice")),
        # Unparsable metafield values count as not set
        special_price=parse_money(metafield.get("value")),
        special_price_handle=metafield.get("id"),
        updated_at=parse_timestamp(node.get("updatedAt")),
    )


class SnapshotLoader:
    """Loads a complete CatalogSnapshot through the Shopify client."""

    def __init__(self, client: ShopifyClient, page_size: Optional[int] = None):
        self.client = client
        self.page_size = page_size or settings.variant_page_size

    def load_snapshot(self) -> CatalogSnapshot:
        """
        Page through all variants.

        Returns:
            CatalogSnapshot indexed by normalized SKU and by id

        Raises:
            SnapshotLoadError: If any page fails
        """
        logger.info("loading_snapshot", shop=self.client.shop.shop, page_size=self.page_size)

        snapshot = CatalogSnapshot()
        cursor = None
        pages = 0

        while True:
            try:
                page = self.client.list_variants(cursor=cursor, first=self.page_size)
            except ShopifyError as e:
                logger.error(
                    "snapshot_page_failed",
                    shop=self.client.shop.shop,
                    page=pages + 1,
                    error=e.message
                )
                raise SnapshotLoadError(e.message, details={"page": pages + 1}) from e

            pages += 1
            for node in page.nodes:
                variant = variant_from_node(node)
                if not snapshot.add(variant):
                    logger.warning(
                        "duplicate_catalog_sku",
                        sku=variant.sku,
                        variant_id=variant.id,
                        kept_variant_id=snapshot.get_by_sku(variant.sku).id
                    )

            if not page.has_next_page:
                break
            if not page.end_cursor:
                raise SnapshotLoadError(
                    "next page reported without a cursor",
                    details={"page": pages}
                )
            cursor = page.end_cursor

        logger.info(
            "snapshot_loaded",
            shop=self.client.shop.shop,
            pages=pages,
            variants=len(snapshot.by_id),
            special_price_count=snapshot.special_price_count
        )

        return snapshot
