"""
API tests through the FastAPI TestClient.

Shopify is replaced by FakeShopifyClient; Supabase by the mock client.

Run: pytest tests/unit/test_routes.py -v
"""

import json
from io import BytesIO
from unittest.mock import patch

import pandas as pd
import pytest
from openpyxl import load_workbook

from config import settings
from tests.conftest import FakeShopifyClient
from tests.factories import FormFactory, SubmissionFactory, VariantNodeFactory


def create_price_sheet(rows: list[dict]) -> bytes:
    output = BytesIO()
    df = pd.DataFrame(rows, columns=["SKU", "Price", "B2B Price"])
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Prices", index=False)
    return output.getvalue()


@pytest.fixture
def shop() -> FakeShopifyClient:
    return FakeShopifyClient(nodes=[
        VariantNodeFactory.create(sku="A", price="10.00"),
        VariantNodeFactory.create(sku="B", price="11.00", special_price="8.00"),
    ])


@pytest.fixture
def patched_shop(shop):
    """Every route builds its Shopify client from the fake shop."""
    with patch("routes.prices.get_shopify_client", return_value=shop):
        with patch("routes.subscriptions.get_shopify_client", return_value=shop):
            with patch("routes.forms.get_shopify_client", return_value=shop):
                yield shop


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200

    def test_missing_shop_is_unauthorized(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "shopify_shop_domain", None)
        monkeypatch.setattr(settings, "shopify_access_token", None)

        response = test_client.get("/api/prices/export")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SHOPIFY_NOT_CONFIGURED"


class TestPriceRoutes:
    """Tests for /api/prices"""

    def test_reconcile_rows(self, test_client, shop_headers, patched_shop):
        # Act
        response = test_client.post(
            "/api/prices/reconcile",
            json={"rows": [
                {"sku": "A", "price": "12.00"},
                {"sku": "B", "special_price": "null"},
                {"sku": "NOPE", "price": "1"},
            ]},
            headers=shop_headers,
        )

        # Assert
        assert response.status_code == 200
        report = response.json()
        assert report["updated"] == 2
        assert report["updated_special"] == 1
        assert report["errors"] == ["Variant not found for SKU: NOPE"]
        assert report["job_id"] is None

    def test_reconcile_numeric_values(self, test_client, shop_headers, patched_shop):
        response = test_client.post(
            "/api/prices/reconcile",
            json={"rows": [
                {"sku": "A", "price": 12.5},
                {"sku": "B", "special_price": 7},
            ]},
            headers=shop_headers,
        )

        assert response.status_code == 200
        report = response.json()
        assert report["updated"] == 2
        assert report["updated_price"] == 1
        assert report["updated_special"] == 1
        assert report["errors"] == []

    def test_import_sheet_starts_bulk_job(self, test_client, shop_headers, patched_shop):
        content = create_price_sheet([
            {"SKU": "A", "Price": 12, "B2B Price": 9},
            {"SKU": "B", "Price": None, "B2B Price": None},
        ])

        response = test_client.post(
            "/api/prices/import",
            files={"file": ("prices.xlsx", content, "application/octet-stream")},
            headers=shop_headers,
        )

        assert response.status_code == 200
        report = response.json()
        assert report["total"] == 2
        assert report["job_id"] == "gid://shopify/BulkOperation/1"
        assert report["expected_update_count"] == 1
        assert len(patched_shop.uploads) == 1

    def test_import_rejects_other_files(self, test_client, shop_headers, patched_shop):
        response = test_client.post(
            "/api/prices/import",
            files={"file": ("prices.csv", b"SKU,Price\nA,1", "text/csv")},
            headers=shop_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "PRICE_SHEET_PARSE_ERROR"

    def test_poll_merges_pending_report(self, test_client, shop_headers, patched_shop):
        # Arrange
        started = test_client.post(
            "/api/prices/reconcile",
            json={"rows": [{"sku": "A", "price": "12.00"}], "force_bulk": True},
            headers=shop_headers,
        ).json()
        line = json.dumps({"data": {"productVariantsBulkUpdate": {"userErrors": [{"message": "Bad price"}]}}})
        patched_shop.complete_job(started["job_id"], result_text=line, object_count=1)

        # Act
        response = test_client.post(
            f"/api/prices/jobs/{started['job_id']}/poll",
            json={"report": started},
            headers=shop_headers,
        )

        # Assert
        assert response.status_code == 200
        result = response.json()
        assert result["terminal"] is True
        assert result["merged_report"]["errors"] == ["Bad price"]
        assert result["merged_report"]["updated"] == 1

    def test_poll_without_body(self, test_client, shop_headers, patched_shop):
        job_id = patched_shop.create_bulk_job("mutation", "tmp/x")

        response = test_client.post(f"/api/prices/jobs/{job_id}/poll", headers=shop_headers)

        assert response.status_code == 200
        assert response.json()["terminal"] is False

    def test_export(self, test_client, shop_headers, patched_shop):
        response = test_client.get("/api/prices/export", headers=shop_headers)

        assert response.status_code == 200
        assert "product_prices.xlsx" in response.headers["content-disposition"]
        ws = load_workbook(BytesIO(response.content)).active
        assert ws["A2"].value == "A"

    def test_snapshot_failure_is_503(self, test_client, shop_headers, patched_shop):
        patched_shop.fail_pages_after = 0

        response = test_client.post(
            "/api/prices/reconcile",
            json={"rows": [{"sku": "A", "price": "12.00"}]},
            headers=shop_headers,
        )

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SNAPSHOT_LOAD_FAILED"


class TestSubscriptionRoutes:
    """Tests for subscription endpoints and the plan webhook."""

    def test_subscription_status(self, test_client, shop_headers, patched_shop):
        response = test_client.get("/api/subscription", headers=shop_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["plan_name"] == "Free"
        assert data["used"] == 1
        assert data["remaining"] == 4

    def test_webhook_requires_subscription(self, test_client, patched_shop):
        response = test_client.post(
            "/webhooks/app/subscriptions/update",
            json={},
            headers={"X-Shopify-Shop-Domain": "test-shop.myshopify.com", "X-Shopify-Access-Token": "t"},
        )

        assert response.status_code == 422

    def test_webhook_applies_plan(self, test_client, patched_shop):
        response = test_client.post(
            "/webhooks/app/subscriptions/update",
            json={"app_subscription": {"name": "Growth", "status": "ACTIVE"}},
            headers={"X-Shopify-Shop-Domain": "test-shop.myshopify.com", "X-Shopify-Access-Token": "t"},
        )

        assert response.status_code == 200
        assert response.json()["limit"] == 15
        assert patched_shop.deleted == []


class TestFormRoutes:
    """Tests for /api/forms and /api/storefront"""

    def test_list_forms(self, test_client_with_mock_db, mock_supabase, shop_headers):
        mock_supabase.set_table_data("forms", [FormFactory.create(id="form-1")])

        response = test_client_with_mock_db.get("/api/forms", headers=shop_headers)

        assert response.status_code == 200
        assert response.json()[0]["id"] == "form-1"

    def test_create_form_over_limit(self, test_client_with_mock_db, mock_supabase, shop_headers):
        mock_supabase.set_table_data("forms", [FormFactory.create()])

        response = test_client_with_mock_db.post("/api/forms", json={"title": "Another"}, headers=shop_headers)

        assert response.status_code == 409

    def test_public_form(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_data("forms", [FormFactory.create(id="form-1")])

        response = test_client_with_mock_db.get("/api/storefront/forms/form-1")

        assert response.status_code == 200
        assert "shop" not in response.json()

    def test_submit_form(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_data("forms", [FormFactory.create(id="form-1")])

        response = test_client_with_mock_db.post(
            "/api/storefront/forms/submit",
            json={"formId": "form-1", "data": {"Company": "Acme", "Email": "a@b.test"}},
        )

        assert response.status_code == 201
        assert response.json()["success"] is True

    def test_approve_submission(self, test_client_with_mock_db, mock_supabase, shop_headers, patched_shop):
        mock_supabase.set_table_data("forms", [FormFactory.create(id="form-1")])
        mock_supabase.set_table_data("form_submissions", [SubmissionFactory.create(id="s1")])

        response = test_client_with_mock_db.post(
            "/api/forms/form-1/submissions/s1/approve",
            headers=shop_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert patched_shop.customers[0]["tags"] == ["B2B"]
