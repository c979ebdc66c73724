"""
Tests for fulfillment response classification and the fulfillment client.
"""

import json

import httpx
import pytest

from checkout.config import Settings
from checkout.core.errors import ErrorCategory
from checkout.core.purchase import (
    FulfillmentClient,
    FulfillmentStatus,
    PurchaseIntent,
    classify_fulfillment_response,
)
from checkout.providers.supabase import SupabaseProvider


# =============================================================================
# Classifier
# =============================================================================

class TestClassifier:

    def test_success_with_unit(self):
        result = classify_fulfillment_response(
            {"success": True, "unit_id": "u1", "serial_number": 7, "max_supply": 1000}
        )

        assert result.status == FulfillmentStatus.SUCCESS
        assert result.unit.serial_label == "7 of 1000"

    def test_success_with_nested_unit(self):
        result = classify_fulfillment_response(
            {"success": True, "unit": {"id": "u2", "serial_number": 1, "name": "Crate Skin"}}
        )

        assert result.is_success
        assert result.unit.unit_id == "u2"
        assert result.unit.name == "Crate Skin"

    @pytest.mark.parametrize("error", [
        "still confirming",
        "Transaction not found",
        "Payment not yet confirmed, try again",
        "Pending confirmation",
    ])
    def test_not_yet_visible_is_retryable(self, error):
        result = classify_fulfillment_response({"error": error})

        assert result.status == FulfillmentStatus.RETRYABLE
        assert result.category == ErrorCategory.NOT_PROPAGATED
        assert result.to_result().retryable

    @pytest.mark.parametrize("error,category", [
        ("Item sold out", ErrorCategory.SOLD_OUT),
        ("Insufficient payment amount", ErrorCategory.INSUFFICIENT_FUNDS),
        ("Signature already used", ErrorCategory.DUPLICATE),
        ("Invalid signature", ErrorCategory.INVALID_SIGNATURE),
        ("Something else entirely", ErrorCategory.FULFILLMENT),
    ])
    def test_business_errors_are_fatal(self, error, category):
        result = classify_fulfillment_response({"error": error})

        assert result.status == FulfillmentStatus.FATAL
        assert result.category == category
        assert result.reason == error
        assert not result.to_result().retryable

    @pytest.mark.parametrize("error,category", [
        ("Insufficient funds, please try again", ErrorCategory.INSUFFICIENT_FUNDS),
        ("Item sold out, try again later", ErrorCategory.SOLD_OUT),
        ("Transaction not found: signature already used", ErrorCategory.DUPLICATE),
        ("Pack not yet available", ErrorCategory.FULFILLMENT),
        ("Server busy, try again", ErrorCategory.FULFILLMENT),
    ])
    def test_business_failure_wins_over_retry_wording(self, error, category):
        result = classify_fulfillment_response({"error": error})

        assert result.status == FulfillmentStatus.FATAL
        assert result.category == category

    def test_error_object(self):
        result = classify_fulfillment_response({"error": {"message": "sold out"}})

        assert result.category == ErrorCategory.SOLD_OUT

    @pytest.mark.parametrize("body", [
        None,
        [],
        {},
        {"success": False},
        {"success": True},
        {"success": True, "unit": {"serial_number": 1}},
    ])
    def test_malformed_bodies_are_fatal(self, body):
        assert classify_fulfillment_response(body).status == FulfillmentStatus.FATAL

    def test_classification_is_deterministic(self):
        body = {"error": "still confirming"}

        results = {classify_fulfillment_response(body) for _ in range(5)}

        assert len(results) == 1


# =============================================================================
# Client
# =============================================================================

def make_client(settings, handler):
    backend = SupabaseProvider(settings, transport=httpx.MockTransport(handler))
    return FulfillmentClient(backend, settings=settings)


class TestFulfillmentClient:

    @pytest.mark.asyncio
    async def test_item_request_shape(self, settings, payer):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"success": True, "unit_id": "u1", "serial_number": 7, "max_supply": 1000})

        client = make_client(settings, handler)
        intent = PurchaseIntent.item("skin-1", "5", payer)

        result = await client.fulfill("abc123", payer, intent)

        assert result.is_success
        assert len(requests) == 1
        request = requests[0]
        assert request.url == "https://proj.supabase.co/functions/v1/purchase-item"
        assert request.headers["authorization"] == "Bearer anon-key"
        assert request.headers["apikey"] == "anon-key"
        assert json.loads(request.content) == {
            "tx_signature": "abc123",
            "wallet_address": payer,
            "item_id": "skin-1",
            "expected_amount": 5.0,
        }

    @pytest.mark.asyncio
    async def test_pack_uses_pack_function(self, settings, payer):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "reward": {"unit_id": "u9"}})

        client = make_client(settings, handler)
        result = await client.fulfill("abc123", payer, PurchaseIntent.pack("pack-1", "0.10", payer))

        assert result.is_success
        path, body = seen[0]
        assert path == "/functions/v1/open-pack"
        assert body["pack_id"] == "pack-1"
        assert "item_id" not in body

    @pytest.mark.asyncio
    async def test_error_status_with_json_body_is_classified(self, settings, payer):
        client = make_client(settings, lambda request: httpx.Response(400, json={"error": "sold out"}))

        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.FATAL
        assert result.category == ErrorCategory.SOLD_OUT

    @pytest.mark.asyncio
    async def test_unreadable_5xx_is_retryable(self, settings, payer):
        client = make_client(settings, lambda request: httpx.Response(502, text="Bad Gateway"))

        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.RETRYABLE

    @pytest.mark.asyncio
    async def test_unreadable_4xx_is_fatal(self, settings, payer):
        client = make_client(settings, lambda request: httpx.Response(404, text="not here"))

        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.FATAL

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, settings, payer):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(settings, handler)
        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.RETRYABLE
        assert result.category == ErrorCategory.TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self, settings, payer):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(settings, handler)
        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.RETRYABLE
        assert result.category == ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_unconfigured_backend_is_fatal(self, payer):
        settings = Settings(_env_file=None, supabase_url="", supabase_anon_key="")
        client = make_client(settings, lambda request: httpx.Response(200, json={}))

        assert await client.ready() is False
        result = await client.fulfill("abc123", payer, PurchaseIntent.item("skin-1", "5", payer))

        assert result.status == FulfillmentStatus.FATAL
        assert result.category == ErrorCategory.CONFIGURATION
