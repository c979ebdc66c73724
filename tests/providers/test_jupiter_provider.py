"""
Tests for Jupiter quotes and swap transaction building.
"""

import json
import time
from dataclasses import replace
from decimal import Decimal

import httpx
import pytest

from checkout.config import Settings
from checkout.core.constants import SOL_MINT, TRENCH_MINT, USDC_MINT
from checkout.core.errors import BuildFailedError, QuoteUnavailableError
from checkout.core.wallet.addresses import treasury_token_account
from checkout.providers.jupiter import JupiterQuoteProvider, JupiterTransactionBuilder, Quote

QUOTE_BODY = {
    "inputMint": USDC_MINT,
    "outputMint": TRENCH_MINT,
    "inAmount": "5000000",
    "outAmount": "50000",
    "otherAmountThreshold": "48500",
    "swapMode": "ExactIn",
    "slippageBps": 300,
    "priceImpactPct": "0.0012",
    "routePlan": [
        {"swapInfo": {"ammKey": "amm1", "label": "Raydium"}, "percent": 100},
        {"swapInfo": {"ammKey": "amm2"}, "percent": 100},
    ],
    "contextSlot": 123,
}


def quote_handler(requests, body=None, status=200):
    def handler(request):
        requests.append(request)
        return httpx.Response(status, json=body if body is not None else QUOTE_BODY)
    return handler


class TestQuoteProvider:

    @pytest.mark.asyncio
    async def test_get_quote(self, settings):
        requests = []
        provider = JupiterQuoteProvider(settings, transport=httpx.MockTransport(quote_handler(requests)))

        quote = await provider.get_quote(Decimal("5"))

        params = requests[0].url.params
        assert params["inputMint"] == USDC_MINT
        assert params["outputMint"] == TRENCH_MINT
        assert params["amount"] == "5000000"
        assert params["swapMode"] == "ExactIn"
        assert params["slippageBps"] == "300"
        assert requests[0].headers["x-api-key"] == "test-key"

        assert quote.in_amount == 5_000_000
        assert quote.out_amount == 50_000
        assert quote.min_out_amount == 48_500
        assert quote.out_amount_ui == Decimal("0.05")
        assert quote.route_description == "2 hop(s): Raydium -> amm2"
        assert quote.context_slot == 123
        assert quote.quote_response == QUOTE_BODY

    @pytest.mark.asyncio
    async def test_sol_quote_uses_nine_decimals(self, settings):
        requests = []
        provider = JupiterQuoteProvider(settings, transport=httpx.MockTransport(quote_handler(requests)))

        await provider.get_sol_quote(Decimal("0.5"))

        assert requests[0].url.params["inputMint"] == SOL_MINT
        assert requests[0].url.params["amount"] == "500000000"

    @pytest.mark.asyncio
    async def test_exact_out_quote(self, settings):
        requests = []
        body = dict(QUOTE_BODY, swapMode="ExactOut")
        provider = JupiterQuoteProvider(settings, transport=httpx.MockTransport(quote_handler(requests, body)))

        quote = await provider.get_exact_out_quote(50_000)

        assert requests[0].url.params["swapMode"] == "ExactOut"
        assert requests[0].url.params["amount"] == "50000"
        assert quote.min_out_amount == quote.out_amount

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("0.0000001")])
    async def test_rejects_non_positive_amounts(self, settings, amount):
        requests = []
        provider = JupiterQuoteProvider(settings, transport=httpx.MockTransport(quote_handler(requests)))

        with pytest.raises(ValueError):
            await provider.get_quote(amount)
        assert requests == []

    @pytest.mark.asyncio
    async def test_http_error(self, settings):
        provider = JupiterQuoteProvider(
            settings,
            transport=httpx.MockTransport(quote_handler([], {"error": "No routes found"}, status=400)),
        )

        with pytest.raises(QuoteUnavailableError, match="400"):
            await provider.get_quote(Decimal("5"))

    @pytest.mark.asyncio
    async def test_error_body(self, settings):
        provider = JupiterQuoteProvider(
            settings,
            transport=httpx.MockTransport(quote_handler([], {"error": "Could not find any route"})),
        )

        with pytest.raises(QuoteUnavailableError, match="route"):
            await provider.get_quote(Decimal("5"))

    @pytest.mark.asyncio
    async def test_malformed_body(self, settings):
        provider = JupiterQuoteProvider(
            settings,
            transport=httpx.MockTransport(quote_handler([], {"inputMint": USDC_MINT})),
        )

        with pytest.raises(QuoteUnavailableError, match="Malformed"):
            await provider.get_quote(Decimal("5"))

    @pytest.mark.asyncio
    async def test_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = JupiterQuoteProvider(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(QuoteUnavailableError):
            await provider.get_quote(Decimal("5"))

    @pytest.mark.asyncio
    async def test_ready_requires_api_key(self):
        provider = JupiterQuoteProvider(Settings(_env_file=None, jupiter_api_key=""))

        assert await provider.ready() is False
        assert (await provider.health_check())["status"] == "unavailable"


class TestTransactionBuilder:

    def builder(self, settings, requests, swap_tx, body=None):
        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=body or {"swapTransaction": swap_tx, "lastValidBlockHeight": 99})
        return JupiterTransactionBuilder(settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_build_pays_treasury(self, settings, payer, swap_tx):
        requests = []
        builder = self.builder(settings, requests, swap_tx)
        quote = Quote.from_api(QUOTE_BODY, 300)

        tx = await builder.build_transaction(quote, payer)

        body = json.loads(requests[0].content)
        assert body["quoteResponse"] == QUOTE_BODY
        assert body["userPublicKey"] == payer
        assert body["destinationTokenAccount"] == treasury_token_account(TRENCH_MINT)
        assert body["wrapAndUnwrapSol"] is True
        assert body["dynamicComputeUnitLimit"] is True
        assert body["prioritizationFeeLamports"] == "auto"

        assert tx.serialized == swap_tx
        assert tx.destination_account == treasury_token_account()
        assert tx.quote_id == quote.quote_id
        assert tx.last_valid_block_height == 99
        assert builder.is_consumed(quote)

    @pytest.mark.asyncio
    async def test_quote_cannot_be_reused(self, settings, payer, swap_tx):
        requests = []
        builder = self.builder(settings, requests, swap_tx)
        quote = Quote.from_api(QUOTE_BODY, 300)

        await builder.build_transaction(quote, payer)
        with pytest.raises(BuildFailedError, match="already been used"):
            await builder.build_transaction(quote, payer)

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_failed_build_still_consumes_quote(self, settings, payer):
        def handler(request):
            return httpx.Response(500, text="boom")

        builder = JupiterTransactionBuilder(settings, transport=httpx.MockTransport(handler))
        quote = Quote.from_api(QUOTE_BODY, 300)

        with pytest.raises(BuildFailedError):
            await builder.build_transaction(quote, payer)
        with pytest.raises(BuildFailedError, match="already been used"):
            await builder.build_transaction(quote, payer)

    @pytest.mark.asyncio
    async def test_stale_quote_rejected(self, settings, payer, swap_tx):
        requests = []
        builder = self.builder(settings, requests, swap_tx)
        quote = replace(Quote.from_api(QUOTE_BODY, 300), fetched_at=time.time() - 31)

        with pytest.raises(BuildFailedError, match="expired"):
            await builder.build_transaction(quote, payer)
        assert requests == []

    @pytest.mark.asyncio
    async def test_missing_payer(self, settings, swap_tx):
        builder = self.builder(settings, [], swap_tx)

        with pytest.raises(BuildFailedError):
            await builder.build_transaction(Quote.from_api(QUOTE_BODY, 300), "")

    @pytest.mark.asyncio
    async def test_invalid_transaction_payload(self, settings, payer):
        builder = self.builder(settings, [], "unused", body={"swapTransaction": "!!not base64!!"})

        with pytest.raises(BuildFailedError):
            await builder.build_transaction(Quote.from_api(QUOTE_BODY, 300), payer)

    @pytest.mark.asyncio
    async def test_missing_transaction(self, settings, payer):
        builder = self.builder(settings, [], "unused", body={"lastValidBlockHeight": 1})

        with pytest.raises(BuildFailedError, match="Malformed"):
            await builder.build_transaction(Quote.from_api(QUOTE_BODY, 300), payer)
