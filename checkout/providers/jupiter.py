"""
Jupiter swap quotes and transaction building for shop purchases.

Purchases are paid by swapping the buyer's settlement currency (USDC) into
the game token, with the output delivered straight to the treasury's token
account. Jupiter returns the unsigned transaction; signing happens in the
buyer's wallet.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx

from ..config import Settings, settings as default_settings
from ..core.constants import (
    MINT_DECIMALS,
    SOL_MINT,
    SWAP_MODE_EXACT_IN,
    SWAP_MODE_EXACT_OUT,
    TRENCH_MINT,
    USDC_MINT,
    to_raw_amount,
    to_ui_amount,
)
from ..core.errors import BuildFailedError, QuoteUnavailableError
from ..core.wallet.addresses import treasury_token_account
from ..core.wallet.base58 import decode_base64
from .base import Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutePlanStep:
    """A single step in the swap route."""
    label: str
    percent: int  # Percentage of input going through this route


@dataclass(frozen=True)
class Quote:
    """
    Quote response from Jupiter.

    Consumed at most once by the transaction builder; a new purchase attempt
    always requests a new quote.
    """
    input_mint: str
    output_mint: str
    in_amount: int                              # In smallest units
    out_amount: int                             # In smallest units
    other_amount_threshold: int                 # Slippage-adjusted bound
    swap_mode: str                              # "ExactIn" or "ExactOut"
    slippage_bps: int
    price_impact_pct: float
    route_plan: Tuple[RoutePlanStep, ...]
    context_slot: Optional[int] = None

    # Raw response, sent back verbatim when building the transaction
    quote_response: Dict[str, Any] = field(default_factory=dict, compare=False)

    quote_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    fetched_at: float = field(default_factory=time.time)

    @property
    def age_seconds(self) -> float:
        return time.time() - self.fetched_at

    def is_fresh(self, ttl_seconds: float) -> bool:
        return self.age_seconds < ttl_seconds

    @property
    def route_description(self) -> str:
        if not self.route_plan:
            return "direct"
        labels = " -> ".join(step.label for step in self.route_plan)
        return f"{len(self.route_plan)} hop(s): {labels}"

    @property
    def in_amount_ui(self) -> Decimal:
        return to_ui_amount(self.in_amount, MINT_DECIMALS.get(self.input_mint, 0))

    @property
    def out_amount_ui(self) -> Decimal:
        return to_ui_amount(self.out_amount, MINT_DECIMALS.get(self.output_mint, 0))

    @property
    def min_out_amount(self) -> int:
        """Minimum acceptable output; for ExactOut quotes the output is fixed."""
        if self.swap_mode == SWAP_MODE_EXACT_IN:
            return self.other_amount_threshold
        return self.out_amount

    @classmethod
    def from_api(cls, data: Dict[str, Any], slippage_bps: int) -> "Quote":
        route_plan = []
        for step in data.get("routePlan") or []:
            swap_info = step.get("swapInfo") or {}
            route_plan.append(RoutePlanStep(
                label=swap_info.get("label") or swap_info.get("ammKey") or "unknown",
                percent=int(step.get("percent", 100)),
            ))

        return cls(
            input_mint=data["inputMint"],
            output_mint=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            other_amount_threshold=int(data.get("otherAmountThreshold", data["outAmount"])),
            swap_mode=data.get("swapMode", SWAP_MODE_EXACT_IN),
            slippage_bps=int(data.get("slippageBps", slippage_bps)),
            price_impact_pct=float(data.get("priceImpactPct") or 0),
            route_plan=tuple(route_plan),
            context_slot=data.get("contextSlot"),
            quote_response=data,
        )


@dataclass(frozen=True)
class UnsignedTransaction:
    """Serialized, unsigned swap transaction ready for the wallet."""
    serialized: str                             # Base64 encoded VersionedTransaction
    payer_address: str
    destination_account: str
    quote_id: str
    last_valid_block_height: int = 0
    priority_fee_lamports: int = 0

    def to_bytes(self) -> bytes:
        return decode_base64(self.serialized)


class _JupiterProvider(Provider):
    """Shared HTTP plumbing for the Jupiter swap API."""

    name = "jupiter"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or default_settings
        self._transport = transport
        self.timeout_s = self._settings.request_timeout_seconds

    async def ready(self) -> bool:
        """The v1 swap API requires a portal API key."""
        return self._settings.has_jupiter_key

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Jupiter API key not configured"}
        return {"status": "configured"}

    def _headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if self._settings.jupiter_api_key:
            headers["x-api-key"] = self._settings.jupiter_api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)


class JupiterQuoteProvider(_JupiterProvider):
    """
    Price quotes for shop purchases.

    Usage:
        provider = JupiterQuoteProvider()
        quote = await provider.get_quote(Decimal("5"))   # $5 USDC -> game token
    """

    async def get_quote(
        self,
        spend_amount: Decimal,
        input_mint: str = USDC_MINT,
        output_mint: str = TRENCH_MINT,
    ) -> Quote:
        """
        Quote an ExactIn swap of `spend_amount` (display units of the input asset).

        Args:
            spend_amount: Amount to spend, must be > 0
            input_mint: Asset paid by the buyer (default: USDC)
            output_mint: Asset delivered to the treasury (default: game token)

        Returns:
            Quote with route and amounts
        """
        spend = Decimal(spend_amount)
        if spend <= 0:
            raise ValueError("Spend amount must be greater than zero")

        decimals = MINT_DECIMALS.get(input_mint)
        if decimals is None:
            raise QuoteUnavailableError(f"Unknown decimals for input mint {input_mint}")

        raw_amount = to_raw_amount(spend, decimals)
        if raw_amount <= 0:
            raise ValueError("Spend amount is below the input asset's smallest unit")

        return await self._request_quote(input_mint, output_mint, raw_amount, SWAP_MODE_EXACT_IN)

    async def get_sol_quote(self, sol_amount: Decimal, output_mint: str = TRENCH_MINT) -> Quote:
        """Quote an ExactIn swap paying `sol_amount` SOL."""
        return await self.get_quote(sol_amount, SOL_MINT, output_mint)

    async def get_exact_out_quote(
        self,
        out_raw_amount: int,
        input_mint: str = SOL_MINT,
        output_mint: str = TRENCH_MINT,
    ) -> Quote:
        """Quote how much of `input_mint` buys exactly `out_raw_amount` output units."""
        if out_raw_amount <= 0:
            raise ValueError("Output amount must be greater than zero")
        return await self._request_quote(input_mint, output_mint, out_raw_amount, SWAP_MODE_EXACT_OUT)

    async def _request_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        swap_mode: str,
    ) -> Quote:
        slippage_bps = self._settings.slippage_bps
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "swapMode": swap_mode,
            "slippageBps": str(slippage_bps),
        }

        try:
            async with self._client() as client:
                response = await client.get(
                    self._settings.jupiter_quote_url,
                    params=params,
                    headers=self._headers(),
                )
            if response.is_error:
                raise QuoteUnavailableError(
                    f"Jupiter quote failed ({response.status_code}): {response.text[:200]}"
                )
            data = response.json()

            if not isinstance(data, dict):
                raise QuoteUnavailableError("Unexpected quote response from Jupiter")
            if "error" in data:
                raise QuoteUnavailableError(f"Jupiter quote error: {data['error']}")

            quote = Quote.from_api(data, slippage_bps)

        except QuoteUnavailableError:
            raise
        except httpx.HTTPError as e:
            raise QuoteUnavailableError(f"Jupiter quote request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteUnavailableError(f"Malformed Jupiter quote: {e}") from e

        logger.info(
            "Quote %s: %s %s -> %s %s (%s)",
            quote.quote_id,
            quote.in_amount,
            input_mint,
            quote.out_amount,
            output_mint,
            quote.route_description,
        )
        return quote


class JupiterTransactionBuilder(_JupiterProvider):
    """
    Builds unsigned swap transactions that pay the treasury.

    The destination is always the treasury token account derived for the
    quote's output mint; it is never taken from the caller.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(settings, transport=transport)
        self._consumed: Set[str] = set()

    async def build_transaction(self, quote: Quote, payer_address: str) -> UnsignedTransaction:
        """
        Build a swap transaction from a quote.

        Args:
            quote: A fresh, never-used quote
            payer_address: Buyer's wallet public key; pays fees and input

        Returns:
            UnsignedTransaction with a base64 encoded transaction
        """
        if not quote.quote_response:
            raise BuildFailedError("Quote response required for swap transaction")
        if quote.quote_id in self._consumed:
            raise BuildFailedError("Quote has already been used, please get a new quote")
        if not quote.is_fresh(self._settings.quote_ttl_seconds):
            raise BuildFailedError("Quote has expired, please get a new quote")
        if not payer_address:
            raise BuildFailedError("Payer address required")

        self._consumed.add(quote.quote_id)

        try:
            destination = treasury_token_account(quote.output_mint)
        except ValueError as e:
            raise BuildFailedError(f"Cannot derive treasury account: {e}") from e

        payload: Dict[str, Any] = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": payer_address,
            "destinationTokenAccount": destination,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": "auto",
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    self._settings.jupiter_swap_url,
                    json=payload,
                    headers=self._headers(),
                )
            if response.is_error:
                raise BuildFailedError(
                    f"Jupiter swap build failed ({response.status_code}): {response.text[:200]}"
                )
            data = response.json()

            if not isinstance(data, dict):
                raise BuildFailedError("Unexpected swap response from Jupiter")
            if "error" in data:
                raise BuildFailedError(f"Jupiter swap error: {data['error']}")

            serialized = data["swapTransaction"]
            decode_base64(serialized)

            tx = UnsignedTransaction(
                serialized=serialized,
                payer_address=payer_address,
                destination_account=destination,
                quote_id=quote.quote_id,
                last_valid_block_height=int(data.get("lastValidBlockHeight") or 0),
                priority_fee_lamports=int(data.get("prioritizationFeeLamports") or 0),
            )

        except BuildFailedError:
            raise
        except httpx.HTTPError as e:
            raise BuildFailedError(f"Jupiter swap request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise BuildFailedError(f"Malformed Jupiter swap response: {e}") from e

        logger.info("Built swap transaction for quote %s -> %s", quote.quote_id, destination)
        return tx

    def is_consumed(self, quote: Quote) -> bool:
        return quote.quote_id in self._consumed


__all__ = [
    "JupiterQuoteProvider",
    "JupiterTransactionBuilder",
    "Quote",
    "RoutePlanStep",
    "UnsignedTransaction",
]
