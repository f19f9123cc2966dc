"""
Unit tests for the Shopify GraphQL client.

HTTP is mocked at the requests level.

Run: pytest tests/unit/test_shopify_client.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from exceptions import ShopifyError, ShopifyNotConfiguredError, StagingUploadError
from integrations.shopify import ShopifyClient, dump_jsonl, get_shopify_client
from models.shop import ShopContext


def make_response(status_code: int = 200, body=None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.reason = "Forbidden" if status_code == 403 else "OK"
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(session) -> ShopifyClient:
    shop = ShopContext(shop="test-shop", access_token="shpat_test")
    return ShopifyClient(shop, session=session)


def respond(session: MagicMock, *bodies: dict) -> None:
    session.post.side_effect = [make_response(body=b) for b in bodies]


class TestTransport:
    """Tests for ShopifyClient.graphql()"""

    def test_endpoint_and_headers(self, client, session):
        assert client.endpoint == "https://test-shop.myshopify.com/admin/api/2025-10/graphql.json"
        session.headers.update.assert_called_once()
        headers = session.headers.update.call_args[0][0]
        assert headers["X-Shopify-Access-Token"] == "shpat_test"

    def test_returns_data(self, client, session):
        respond(session, {"data": {"shop": {"name": "x"}}})

        assert client.graphql("{ shop { name } }") == {"shop": {"name": "x"}}

    def test_http_error(self, client, session):
        session.post.return_value = make_response(status_code=502, text="bad gateway")

        with pytest.raises(ShopifyError) as exc_info:
            client.graphql("{ shop { name } }")

        assert exc_info.value.message == "GraphQL HTTP 502"

    def test_graphql_errors(self, client, session):
        respond(session, {"errors": [{"message": "Throttled"}]})

        with pytest.raises(ShopifyError) as exc_info:
            client.graphql("{ shop { name } }")

        assert exc_info.value.message == "GraphQL error: Throttled"

    def test_transport_failure(self, client, session):
        session.post.side_effect = requests.ConnectionError("reset")

        with pytest.raises(ShopifyError):
            client.graphql("{ shop { name } }")

    def test_non_json(self, client, session):
        session.post.return_value = make_response(body=None)

        with pytest.raises(ShopifyError):
            client.graphql("{ shop { name } }")

    def test_pauses_when_bucket_low(self, client, session):
        respond(session, {
            "data": {},
            "extensions": {"cost": {"throttleStatus": {"currentlyAvailable": 20}}}
        })

        with patch("integrations.shopify.time.sleep") as sleep:
            client.graphql("{ shop { name } }")

        sleep.assert_called_once()


class TestCatalog:
    """Tests for catalog reads and point writes."""

    def test_list_variants(self, client, session):
        respond(session, {"data": {"productVariants": {
            "edges": [{"node": {"id": "v1"}}, {"node": {"id": "v2"}}],
            "pageInfo": {"hasNextPage": True, "endCursor": "abc"},
        }}})

        page = client.list_variants(first=2)

        assert [n["id"] for n in page.nodes] == ["v1", "v2"]
        assert page.has_next_page is True
        assert page.end_cursor == "abc"
        variables = session.post.call_args.kwargs["json"]["variables"]
        assert variables["namespace"] == "$app"

    def test_list_variants_missing_connection(self, client, session):
        respond(session, {"data": {}})

        with pytest.raises(ShopifyError):
            client.list_variants()

    def test_set_variant_attributes_returns_user_errors(self, client, session):
        respond(session, {"data": {"productVariantsBulkUpdate": {
            "userErrors": [{"field": ["price"], "message": "Price is invalid"}]
        }}})

        assert client.set_variant_attributes("p1", [{"id": "v1", "price": "-1"}]) == ["Price is invalid"]

    def test_delete_special_prices_noop_when_empty(self, client, session):
        assert client.delete_special_prices([]) == []
        session.post.assert_not_called()


class TestBulkOperations:
    """Tests for staging, job creation and status."""

    STAGED = {"data": {"stagedUploadsCreate": {
        "stagedTargets": [{
            "url": "https://uploads.example.com",
            "resourceUrl": None,
            "parameters": [{"name": "key", "value": "tmp/123/price_updates.jsonl"}],
        }],
        "userErrors": [],
    }}}

    def test_stage_upload(self, client, session):
        respond(session, self.STAGED)

        with patch("integrations.shopify.requests.post", return_value=make_response(status_code=201)) as post:
            staged = client.stage_upload('{"productId":"p1"}')

        assert staged.upload_path == "tmp/123/price_updates.jsonl"
        assert post.call_args.kwargs["data"] == {"key": "tmp/123/price_updates.jsonl"}

    def test_stage_upload_no_target(self, client, session):
        respond(session, {"data": {"stagedUploadsCreate": {"stagedTargets": [], "userErrors": []}}})

        with pytest.raises(StagingUploadError) as exc_info:
            client.stage_upload("{}")

        assert exc_info.value.message == "Failed to get upload target URL"

    def test_stage_upload_rejected(self, client, session):
        respond(session, self.STAGED)

        with patch("integrations.shopify.requests.post", return_value=make_response(status_code=403)):
            with pytest.raises(StagingUploadError) as exc_info:
                client.stage_upload("{}")

        assert exc_info.value.message == "Upload failed: Forbidden"

    def test_create_bulk_job(self, client, session):
        respond(session, {"data": {"bulkOperationRunMutation": {
            "bulkOperation": {"id": "gid://shopify/BulkOperation/7", "status": "CREATED"},
            "userErrors": [],
        }}})

        assert client.create_bulk_job("mutation", "tmp/x") == "gid://shopify/BulkOperation/7"

    def test_create_bulk_job_user_error(self, client, session):
        respond(session, {"data": {"bulkOperationRunMutation": {
            "bulkOperation": None,
            "userErrors": [{"message": "A bulk mutation operation is already in progress"}],
        }}})

        with pytest.raises(StagingUploadError) as exc_info:
            client.create_bulk_job("mutation", "tmp/x")

        assert exc_info.value.message.startswith("Bulk Mutation Error:")

    def test_create_bulk_job_no_id(self, client, session):
        respond(session, {"data": {"bulkOperationRunMutation": {"bulkOperation": None, "userErrors": []}}})

        with pytest.raises(StagingUploadError):
            client.create_bulk_job("mutation", "tmp/x")

    def test_get_job_status(self, client, session):
        respond(session, {"data": {"node": {
            "id": "j1", "status": "COMPLETED", "errorCode": None, "objectCount": "12", "url": "https://r"
        }}})

        job = client.get_job_status("j1")

        assert job.status == "COMPLETED"
        assert job.object_count == 12
        assert job.result_url == "https://r"

    def test_get_job_status_unknown(self, client, session):
        respond(session, {"data": {"node": None}})

        assert client.get_job_status("j1") is None

    def test_fetch_result_file_error(self, client):
        with patch("integrations.shopify.requests.get", return_value=make_response(status_code=404)):
            with pytest.raises(ShopifyError):
                client.fetch_result_file("https://r")


class TestBillingAndCustomers:
    """Tests for subscriptions, definitions and customers."""

    def test_active_plan_name(self, client, session):
        respond(session, {"data": {"currentAppInstallation": {"activeSubscriptions": [
            {"id": "s1", "name": "Growth", "status": "ACTIVE", "test": False}
        ]}}})

        assert client.get_active_plan_name() == "Growth"

    def test_no_active_plan(self, client, session):
        respond(session, {"data": {"currentAppInstallation": {"activeSubscriptions": []}}})

        assert client.get_active_plan_name() is None

    def test_definition_created_when_missing(self, client, session):
        respond(
            session,
            {"data": {"metafieldDefinitions": {"edges": []}}},
            {"data": {"metafieldDefinitionCreate": {"createdDefinition": {"id": "d1"}, "userErrors": []}}},
        )

        result = client.upsert_special_price_definition()

        assert result["action"] == "created"
        create_vars = session.post.call_args.kwargs["json"]["variables"]["definition"]
        assert create_vars["namespace"] == "app"
        assert create_vars["ownerType"] == "PRODUCTVARIANT"

    def test_definition_updated_when_present(self, client, session):
        respond(
            session,
            {"data": {"metafieldDefinitions": {"edges": [{"node": {"id": "d1"}}]}}},
            {"data": {"metafieldDefinitionUpdate": {"updatedDefinition": {"id": "d1"}, "userErrors": []}}},
        )

        result = client.upsert_special_price_definition()

        assert result == {"action": "updated", "id": "d1", "errors": []}

    def test_create_customer(self, client, session):
        respond(session, {"data": {"customerCreate": {
            "customer": {"id": "gid://shopify/Customer/1"}, "userErrors": []
        }}})

        customer_id = client.create_customer("a@b.test", first_name="Ana", tags=["B2B"])

        assert customer_id == "gid://shopify/Customer/1"
        customer_input = session.post.call_args.kwargs["json"]["variables"]["input"]
        assert customer_input == {"email": "a@b.test", "tags": ["B2B"], "firstName": "Ana"}

    def test_create_customer_rejected(self, client, session):
        respond(session, {"data": {"customerCreate": {
            "customer": None, "userErrors": [{"message": "Email has already been taken"}]
        }}})

        with pytest.raises(ShopifyError) as exc_info:
            client.create_customer("a@b.test")

        assert exc_info.value.message == "Customer create failed: Email has already been taken"


class TestModuleHelpers:
    """Tests for get_shopify_client() and dump_jsonl()"""

    def test_get_client_without_default_shop(self):
        with patch("integrations.shopify.settings") as mock_settings:
            mock_settings.shopify_configured = False
            with pytest.raises(ShopifyNotConfiguredError):
                get_shopify_client()

    def test_get_client_for_explicit_shop(self):
        client = get_shopify_client(ShopContext(shop="other", access_token="t"))

        assert client.shop.shop == "other.myshopify.com"

    def test_dump_jsonl(self):
        assert dump_jsonl([{"a": 1}, {"b": [1, 2]}]) == '{"a":1}\n{"b":[1,2]}'
