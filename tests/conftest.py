"""
Shared test fixtures.

Two fakes stand in for the outside world:
    MockSupabaseClient  chainable query builder over fixed table data
    FakeShopifyClient   in-memory shop that applies mutations to its variants
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator, Optional

from integrations.shopify import StagedUpload, VariantPage
from models.reconciliation import BulkJobHandle
from models.shop import ShopContext
from exceptions import ShopifyError

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods. Filters are ignored."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        for item in data:
            item.setdefault("id", "test-uuid-123")
            item["created_at"] = datetime.utcnow().isoformat() + "Z"
            item["updated_at"] = datetime.utcnow().isoformat() + "Z"
        self._data = data
        return self

    def update(self, data):
        # Simulate update - merge with existing data
        updated_data = []
        for item in self._data:
            merged = {**item, **data}
            merged["updated_at"] = datetime.utcnow().isoformat() + "Z"
            updated_data.append(merged)
        self._data = updated_data if updated_data else [data]
        return self

    def delete(self):
        return self

    def eq(self, column, value):
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._data.copy(), self._count)

    def insert(self, data):
        query = MockSupabaseQuery(self._data.copy(), self._count)
        return query.insert(data)

    def update(self, data):
        # For update, pass the existing data so it can be merged
        query = MockSupabaseQuery(self._data.copy(), self._count)
        return query.update(data)

    def delete(self):
        return MockSupabaseQuery(self._data.copy(), self._count)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseTable(config["data"], config["count"])


# ===================
# FAKE SHOPIFY CLIENT
# ===================

class FakeShopifyClient:
    """
    In-memory shop.

    Variants are productVariants nodes; point mutations and metafield
    deletions are applied to them so a second run sees the new state.
    """

    def __init__(self, nodes: Optional[list[dict]] = None, plan_name: Optional[str] = None):
        self.shop = ShopContext(shop="test-shop.myshopify.com", access_token="shpat_test")
        self.nodes = {n["id"]: n for n in (nodes or [])}
        self.plan_name = plan_name

        self.page_calls: list[Optional[str]] = []
        self.point_calls: list[tuple[str, list[dict]]] = []
        self.deleted: list[str] = []
        self.uploads: list[str] = []
        self.bulk_mutations: list[str] = []
        self.jobs: dict[str, BulkJobHandle] = {}
        self.result_files: dict[str, str] = {}
        self.cancelled_jobs: list[str] = []
        self.customers: list[dict] = []

        self.fail_pages_after: Optional[int] = None
        self.point_errors: dict[str, list[str]] = {}
        self.stage_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.current_job: Optional[BulkJobHandle] = None

    # Catalog

    def list_variants(self, cursor=None, first=250) -> VariantPage:
        self.page_calls.append(cursor)
        if self.fail_pages_after is not None and len(self.page_calls) > self.fail_pages_after:
            raise ShopifyError("GraphQL HTTP 502")

        ordered = list(self.nodes.values())
        start = int(cursor) if cursor else 0
        chunk = ordered[start:start + first]
        end = start + len(chunk)
        return VariantPage(
            nodes=[dict(n) for n in chunk],
            has_next_page=end < len(ordered),
            end_cursor=str(end) if end < len(ordered) else None,
        )

    def set_variant_attributes(self, product_id: str, variants: list[dict]) -> list[str]:
        self.point_calls.append((product_id, variants))
        if product_id in self.point_errors:
            return self.point_errors[product_id]
        for v in variants:
            node = self.nodes[v["id"]]
            if "price" in v:
                node["price"] = v["price"]
            if "compareAtPrice" in v:
                node["compareAtPrice"] = v["compareAtPrice"]
            for m in v.get("metafields", []):
                node["metafield"] = {"id": m.get("id") or f"gid://shopify/Metafield/{v['id'][-4:]}", "value": m["value"]}
        return []

    def delete_special_prices(self, variant_ids: list[str]) -> list[str]:
        self.deleted.extend(variant_ids)
        for vid in variant_ids:
            self.nodes[vid]["metafield"] = None
        return []

    # Bulk

    def stage_upload(self, payload: str) -> StagedUpload:
        if self.stage_error:
            raise self.stage_error
        self.uploads.append(payload)
        return StagedUpload(upload_url="https://uploads.example.com", upload_path="tmp/price_updates.jsonl")

    def create_bulk_job(self, mutation: str, staged_upload_path: str) -> str:
        self.bulk_mutations.append(mutation)
        job_id = f"gid://shopify/BulkOperation/{len(self.jobs) + 1}"
        self.jobs[job_id] = BulkJobHandle(id=job_id, status="CREATED", object_count=0)
        return job_id

    def get_job_status(self, job_id: str) -> Optional[BulkJobHandle]:
        if self.status_error:
            raise self.status_error
        return self.jobs.get(job_id)

    def get_current_bulk_mutation(self) -> Optional[BulkJobHandle]:
        return self.current_job

    def cancel_bulk_job(self, job_id: str) -> list[str]:
        self.cancelled_jobs.append(job_id)
        return []

    def fetch_result_file(self, url: str) -> str:
        if url not in self.result_files:
            raise ShopifyError("Failed to download bulk results: HTTP 404")
        return self.result_files[url]

    def complete_job(self, job_id: str, result_text: str = "", object_count: int = 0):
        url = f"https://results.example.com/{job_id.rsplit('/', 1)[-1]}.jsonl"
        self.result_files[url] = result_text
        self.jobs[job_id] = BulkJobHandle(id=job_id, status="COMPLETED", object_count=object_count, result_url=url)

    # Billing

    def get_active_subscriptions(self) -> list[dict]:
        if not self.plan_name:
            return []
        return [{"id": "gid://shopify/AppSubscription/1", "name": self.plan_name, "status": "ACTIVE", "test": True}]

    def get_active_plan_name(self) -> Optional[str]:
        return self.plan_name

    def cancel_subscription(self, subscription_id: str) -> list[str]:
        return []

    # Customers

    def create_customer(self, email, first_name=None, last_name=None, phone=None, tags=None, note=None) -> str:
        self.customers.append({
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "tags": tags,
            "note": note,
        })
        return f"gid://shopify/Customer/{len(self.customers)}"


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("forms", [
                {"id": "1", "shop": "x.myshopify.com", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("forms", [...])
            # Now any service using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.form_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.submission_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def fake_shop() -> FakeShopifyClient:
    """
    Empty in-memory shop on the free plan.

    Usage:
        def test_something(fake_shop):
            fake_shop.nodes = {n["id"]: n for n in VariantNodeFactory.create_batch(3)}
    """
    return FakeShopifyClient()


@pytest.fixture
def shop_headers() -> dict:
    """Headers naming the shop a request acts on."""
    return {
        "X-Shop-Domain": "test-shop.myshopify.com",
        "X-Shopify-Access-Token": "shpat_test",
    }


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_mock_db(mock_supabase):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("forms", [...])
            response = test_client_with_mock_db.get("/api/forms", headers=...)
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.form_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.submission_service.get_supabase_client", return_value=mock_supabase):
                with patch("services.form_service._form_service", None):
                    with patch("services.submission_service._submission_service", None):
                        yield TestClient(app)
