"""
Shopify Admin GraphQL integration.

The only path to the remote catalog: variant pages, point mutations,
staged uploads, bulk operations, subscriptions and customers.
Every call is a plain synchronous request; callers decide when to poll.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests
import structlog

from config import settings
from exceptions import ShopifyError, ShopifyNotConfiguredError, StagingUploadError
from models.reconciliation import BulkJobHandle
from models.shop import ShopContext

logger = structlog.get_logger(__name__)

# Pause when the leaky bucket runs low
THROTTLE_FLOOR = 100
THROTTLE_PAUSE_SECONDS = 2

BULK_UPLOAD_FILENAME = "price_updates.jsonl"
BULK_UPLOAD_MIME_TYPE = "text/jsonl"


# ===================
# QUERIES
# ===================

VARIANTS_PAGE_QUERY = """
query getPriceData($first: Int!, $after: String, $namespace: String!, $key: String!) {
    productVariants(first: $first, after: $after) {
        pageInfo { hasNextPage endCursor }
        edges {
            node {
                id
                sku
                price
                compareAtPrice
                updatedAt
                metafield(namespace: $namespace, key: $key) {
                    id
                    value
                }
                product { id }
            }
        }
    }
}
"""

VARIANTS_BULK_UPDATE_MUTATION = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
    productVariantsBulkUpdate(productId: $productId, variants: $variants) {
        productVariants { id }
        userErrors { field message }
    }
}
"""

METAFIELDS_DELETE_MUTATION = """
mutation metafieldsDelete($metafields: [MetafieldIdentifierInput!]!) {
    metafieldsDelete(metafields: $metafields) {
        deletedMetafields { key namespace ownerId }
        userErrors { field message }
    }
}
"""

STAGED_UPLOADS_CREATE_MUTATION = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
    stagedUploadsCreate(input: $input) {
        stagedTargets { url resourceUrl parameters { name value } }
        userErrors { field message }
    }
}
"""

BULK_OPERATION_RUN_MUTATION = """
mutation bulkOperationRunMutation($mutation: String!, $stagedUploadPath: String!) {
    bulkOperationRunMutation(mutation: $mutation, stagedUploadPath: $stagedUploadPath) {
        bulkOperation { id status }
        userErrors { field message }
    }
}
"""

BULK_OPERATION_QUERY = """
query($id: ID!) {
    node(id: $id) {
        ... on BulkOperation {
            id
            status
            errorCode
            objectCount
            url
        }
    }
}
"""

CURRENT_BULK_MUTATION_QUERY = """
query {
    currentBulkOperation(type: MUTATION) {
        id
        status
        errorCode
        objectCount
        url
    }
}
"""

BULK_OPERATION_CANCEL_MUTATION = """
mutation bulkOperationCancel($id: ID!) {
    bulkOperationCancel(id: $id) {
        bulkOperation { id status }
        userErrors { field message }
    }
}
"""

ACTIVE_SUBSCRIPTIONS_QUERY = """
query {
    currentAppInstallation {
        activeSubscriptions {
            id
            name
            status
            test
        }
    }
}
"""

SUBSCRIPTION_CANCEL_MUTATION = """
mutation AppSubscriptionCancel($id: ID!) {
    appSubscriptionCancel(id: $id) {
        appSubscription { id status test }
        userErrors { field message }
    }
}
"""

METAFIELD_DEFINITION_QUERY = """
query getDefinition($namespace: String!, $key: String!) {
    metafieldDefinitions(first: 1, namespace: $namespace, key: $key, ownerType: PRODUCTVARIANT) {
        edges { node { id access { admin } } }
    }
}
"""

METAFIELD_DEFINITION_CREATE_MUTATION = """
mutation CreateMetafieldDefinition($definition: MetafieldDefinitionInput!) {
    metafieldDefinitionCreate(definition: $definition) {
        createdDefinition { id access { admin } }
        userErrors { field message }
    }
}
"""

METAFIELD_DEFINITION_UPDATE_MUTATION = """
mutation UpdateMetafieldDefinition($definition: MetafieldDefinitionUpdateInput!) {
    metafieldDefinitionUpdate(definition: $definition) {
        updatedDefinition { id access { admin } }
        userErrors { field message }
    }
}
"""

CUSTOMER_CREATE_MUTATION = """
mutation customerCreate($input: CustomerInput!) {
    customerCreate(input: $input) {
        customer { id email tags }
        userErrors { field message }
    }
}
"""


@dataclass
class VariantPage:
    """One page of raw variant nodes."""
    nodes: list[dict]
    has_next_page: bool
    end_cursor: Optional[str]


@dataclass
class StagedUpload:
    """Where a bulk payload was uploaded."""
    upload_url: str
    upload_path: str


def _first_error(user_errors: Optional[list[dict]]) -> Optional[str]:
    """First userErrors message, or None."""
    if not user_errors:
        return None
    return user_errors[0].get("message") or "Unknown error"


class ShopifyClient:
    """
    Shopify Admin GraphQL client for one shop.

    Raises ShopifyError on transport failures, non-200 responses and
    top-level GraphQL errors. Mutation userErrors are returned to the
    caller, except on the staging path where they raise StagingUploadError.
    """

    def __init__(self, shop: ShopContext, session: Optional[requests.Session] = None):
        self.shop = shop
        self.endpoint = f"https://{shop.shop}/admin/api/{shop.api_version}/graphql.json"
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": shop.access_token,
        })
        self.namespace = settings.special_price_namespace
        self.key = settings.special_price_key

    # ===================
    # TRANSPORT
    # ===================

    def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        Run a GraphQL document and return its `data` object.

        Raises:
            ShopifyError: Transport failure, HTTP error or GraphQL errors
        """
        payload = {"query": query, "variables": variables or {}}

        try:
            resp = self.session.post(
                self.endpoint,
                json=payload,
                timeout=settings.shopify_request_timeout
            )
        except requests.RequestException as e:
            logger.error("shopify_request_failed", shop=self.shop.shop, error=str(e))
            raise ShopifyError(f"Shopify request failed: {e}") from e

        if resp.status_code != 200:
            logger.error(
                "shopify_http_error",
                shop=self.shop.shop,
                status_code=resp.status_code
            )
            raise ShopifyError(
                f"GraphQL HTTP {resp.status_code}",
                details={"status_code": resp.status_code, "body": resp.text[:500]}
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise ShopifyError("Shopify returned a non-JSON response") from e

        if body.get("errors"):
            errors = body["errors"]
            message = errors[0].get("message") if isinstance(errors, list) else str(errors)
            logger.error("shopify_graphql_errors", shop=self.shop.shop, error=message)
            raise ShopifyError(f"GraphQL error: {message}", details={"errors": errors})

        available = (
            body.get("extensions", {})
            .get("cost", {})
            .get("throttleStatus", {})
            .get("currentlyAvailable")
        )
        if available is not None and available < THROTTLE_FLOOR:
            logger.debug("shopify_throttle_pause", available=available)
            time.sleep(THROTTLE_PAUSE_SECONDS)

        return body.get("data") or {}

    # ===================
    # CATALOG
    # ===================

    def list_variants(self, cursor: Optional[str] = None, first: int = 250) -> VariantPage:
        """Fetch one page of variants with their special price metafield."""
        data = self.graphql(
            VARIANTS_PAGE_QUERY,
            {"first": first, "after": cursor, "namespace": self.namespace, "key": self.key}
        )
        connection = data.get("productVariants")
        if connection is None:
            raise ShopifyError("productVariants missing from response")

        page_info = connection.get("pageInfo") or {}
        return VariantPage(
            nodes=[edge["node"] for edge in connection.get("edges", [])],
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    def set_variant_attributes(self, product_id: str, variants: list[dict]) -> list[str]:
        """
        Update several variants of one product.

        Returns:
            userErrors messages (empty on success)
        """
        data = self.graphql(
            VARIANTS_BULK_UPDATE_MUTATION,
            {"productId": product_id, "variants": variants}
        )
        result = data.get("productVariantsBulkUpdate") or {}
        return [e.get("message", "") for e in result.get("userErrors") or []]

    def delete_special_prices(self, variant_ids: list[str]) -> list[str]:
        """Delete the special price metafield from each variant."""
        if not variant_ids:
            return []
        data = self.graphql(
            METAFIELDS_DELETE_MUTATION,
            {
                "metafields": [
                    {"ownerId": vid, "namespace": self.namespace, "key": self.key}
                    for vid in variant_ids
                ]
            }
        )
        result = data.get("metafieldsDelete") or {}
        return [e.get("message", "") for e in result.get("userErrors") or []]

    # ===================
    # BULK OPERATIONS
    # ===================

    def stage_upload(self, payload: str) -> StagedUpload:
        """
        Create a staged upload target and upload the JSONL payload to it.

        Raises:
            StagingUploadError: No target, target errors, or upload failure
        """
        try:
            data = self.graphql(
                STAGED_UPLOADS_CREATE_MUTATION,
                {
                    "input": [{
                        "filename": BULK_UPLOAD_FILENAME,
                        "mimeType": BULK_UPLOAD_MIME_TYPE,
                        "httpMethod": "POST",
                        "resource": "BULK_MUTATION_VARIABLES",
                    }]
                }
            )
        except ShopifyError as e:
            raise StagingUploadError(f"Failed to create upload target: {e.message}") from e

        result = data.get("stagedUploadsCreate") or {}
        message = _first_error(result.get("userErrors"))
        if message:
            raise StagingUploadError(f"Failed to create upload target: {message}")

        targets = result.get("stagedTargets") or []
        if not targets:
            raise StagingUploadError("Failed to get upload target URL")

        target = targets[0]
        params = {p["name"]: p["value"] for p in target.get("parameters") or []}
        upload_path = params.get("key")
        if not upload_path:
            raise StagingUploadError("Upload target did not include a staged path")

        try:
            resp = requests.post(
                target["url"],
                data=params,
                files={"file": (BULK_UPLOAD_FILENAME, payload.encode("utf-8"), BULK_UPLOAD_MIME_TYPE)},
                timeout=settings.shopify_upload_timeout,
            )
        except requests.RequestException as e:
            raise StagingUploadError(f"Upload failed: {e}") from e

        if not resp.ok:
            raise StagingUploadError(
                f"Upload failed: {resp.reason}",
                details={"status_code": resp.status_code}
            )

        logger.info("bulk_payload_staged", shop=self.shop.shop, upload_path=upload_path, bytes=len(payload))
        return StagedUpload(upload_url=target["url"], upload_path=upload_path)

    def create_bulk_job(self, mutation: str, staged_upload_path: str) -> str:
        """
        Start a bulk mutation over a staged payload.

        Returns:
            Bulk operation id

        Raises:
            StagingUploadError: Shopify refused the job or returned no id
        """
        try:
            data = self.graphql(
                BULK_OPERATION_RUN_MUTATION,
                {"mutation": mutation, "stagedUploadPath": staged_upload_path}
            )
        except ShopifyError as e:
            raise StagingUploadError(f"Bulk Mutation Error: {e.message}") from e

        result = data.get("bulkOperationRunMutation") or {}
        message = _first_error(result.get("userErrors"))
        if message:
            raise StagingUploadError(f"Bulk Mutation Error: {message}")

        job_id = (result.get("bulkOperation") or {}).get("id")
        if not job_id:
            raise StagingUploadError("Failed to trigger backend bulk operation (No ID returned)")

        logger.info("bulk_job_created", shop=self.shop.shop, job_id=job_id)
        return job_id

    def get_job_status(self, job_id: str) -> Optional[BulkJobHandle]:
        """Current state of a bulk operation, or None if Shopify does not know it."""
        data = self.graphql(BULK_OPERATION_QUERY, {"id": job_id})
        return self._to_handle(data.get("node"))

    def get_current_bulk_mutation(self) -> Optional[BulkJobHandle]:
        """The shop's most recent bulk mutation, if any."""
        data = self.graphql(CURRENT_BULK_MUTATION_QUERY)
        return self._to_handle(data.get("currentBulkOperation"))

    def cancel_bulk_job(self, job_id: str) -> list[str]:
        """Ask Shopify to cancel a bulk operation."""
        data = self.graphql(BULK_OPERATION_CANCEL_MUTATION, {"id": job_id})
        result = data.get("bulkOperationCancel") or {}
        return [e.get("message", "") for e in result.get("userErrors") or []]

    def fetch_result_file(self, url: str) -> str:
        """Download a bulk operation result file."""
        try:
            resp = requests.get(url, timeout=settings.shopify_upload_timeout)
        except requests.RequestException as e:
            raise ShopifyError(f"Failed to download bulk results: {e}") from e
        if not resp.ok:
            raise ShopifyError(
                f"Failed to download bulk results: HTTP {resp.status_code}",
                details={"status_code": resp.status_code}
            )
        return resp.text

    @staticmethod
    def _to_handle(node: Optional[dict]) -> Optional[BulkJobHandle]:
        if not node or not node.get("id"):
            return None
        object_count = node.get("objectCount")
        return BulkJobHandle(
            id=node["id"],
            status=node.get("status") or "UNKNOWN",
            object_count=int(object_count) if object_count is not None else None,
            result_url=node.get("url"),
            error_code=node.get("errorCode"),
        )

    # ===================
    # BILLING
    # ===================

    def get_active_subscriptions(self) -> list[dict]:
        """Active app subscriptions, newest first as Shopify returns them."""
        data = self.graphql(ACTIVE_SUBSCRIPTIONS_QUERY)
        installation = data.get("currentAppInstallation") or {}
        return installation.get("activeSubscriptions") or []

    def get_active_plan_name(self) -> Optional[str]:
        """Name of the first active subscription, None on the free tier."""
        subscriptions = self.get_active_subscriptions()
        if not subscriptions:
            return None
        return subscriptions[0].get("name") or None

    def cancel_subscription(self, subscription_id: str) -> list[str]:
        """Cancel an app subscription."""
        data = self.graphql(SUBSCRIPTION_CANCEL_MUTATION, {"id": subscription_id})
        result = data.get("appSubscriptionCancel") or {}
        return [e.get("message", "") for e in result.get("userErrors") or []]

    # ===================
    # METAFIELD DEFINITION
    # ===================

    def upsert_special_price_definition(self) -> dict:
        """
        Create or update the variant metafield definition for the B2B price.

        Merchants can read but not edit it in the admin; the storefront
        can read it for price display.
        """
        # App-owned "$app" resolves to "app" in definition queries
        namespace = self.namespace.lstrip("$")
        access = {"admin": "MERCHANT_READ", "storefront": "PUBLIC_READ"}

        data = self.graphql(METAFIELD_DEFINITION_QUERY, {"namespace": namespace, "key": self.key})
        edges = (data.get("metafieldDefinitions") or {}).get("edges") or []
        existing_id = edges[0]["node"]["id"] if edges else None

        if existing_id:
            result = self.graphql(
                METAFIELD_DEFINITION_UPDATE_MUTATION,
                {"definition": {"id": existing_id, "access": access}}
            ).get("metafieldDefinitionUpdate") or {}
            action = "updated"
        else:
            result = self.graphql(
                METAFIELD_DEFINITION_CREATE_MUTATION,
                {
                    "definition": {
                        "name": "Original Price (B2B)",
                        "namespace": namespace,
                        "key": self.key,
                        "description": "Original price of the product for B2B calculations.",
                        "type": "number_decimal",
                        "ownerType": "PRODUCTVARIANT",
                        "access": access,
                    }
                }
            ).get("metafieldDefinitionCreate") or {}
            action = "created"

        errors = [e.get("message", "") for e in result.get("userErrors") or []]
        logger.info("special_price_definition_upserted", action=action, errors=len(errors))
        return {"action": action, "id": existing_id, "errors": errors}

    # ===================
    # CUSTOMERS
    # ===================

    def create_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        tags: Optional[list[str]] = None,
        note: Optional[str] = None,
    ) -> str:
        """
        Create a customer.

        Returns:
            Customer id

        Raises:
            ShopifyError: Request failed or Shopify rejected the customer
        """
        customer_input: dict[str, Any] = {"email": email, "tags": tags or []}
        if first_name:
            customer_input["firstName"] = first_name
        if last_name:
            customer_input["lastName"] = last_name
        if phone:
            customer_input["phone"] = phone
        if note:
            customer_input["note"] = note

        data = self.graphql(CUSTOMER_CREATE_MUTATION, {"input": customer_input})
        result = data.get("customerCreate") or {}
        message = _first_error(result.get("userErrors"))
        if message:
            raise ShopifyError(f"Customer create failed: {message}")

        customer_id = (result.get("customer") or {}).get("id")
        if not customer_id:
            raise ShopifyError("Customer create returned no id")
        return customer_id


def get_shopify_client(shop: Optional[ShopContext] = None) -> ShopifyClient:
    """
    Build a client for the given shop, or the default shop from settings.

    Raises:
        ShopifyNotConfiguredError: No shop given and no default configured
    """
    if shop is None:
        if not settings.shopify_configured:
            raise ShopifyNotConfiguredError()
        shop = ShopContext(
            shop=settings.shopify_shop_domain,
            access_token=settings.shopify_access_token,
            api_version=settings.shopify_api_version,
        )
    return ShopifyClient(shop)


def dump_jsonl(records: list[dict]) -> str:
    """Serialize records as JSON Lines."""
    return "\n".join(json.dumps(r, separators=(",", ":")) for r in records)
