"""
Solana JSON-RPC balance provider.

Read-only queries used to refresh the player's displayed balances.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..core.constants import LAMPORTS_PER_SOL, to_ui_amount
from .base import Provider


class SolanaRpcError(Exception):
    """Error returned by the Solana RPC node."""
    pass


class SolanaRpcProvider(Provider):
    """Fetch native and SPL token balances over JSON-RPC."""

    name = "solana-rpc"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        commitment: str = "confirmed",
    ) -> None:
        cfg = settings or default_settings
        self.rpc_url = cfg.solana_rpc_url
        self.timeout_s = cfg.request_timeout_seconds
        self.commitment = commitment
        self._transport = transport

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "RPC URL not configured"}
        try:
            await self._rpc_call("getHealth", [])
            return {"status": "healthy"}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _rpc_call(self, method: str, params: List[Any]) -> Dict[str, Any]:
        """Make one RPC call; retries belong to the caller."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, dict):
            raise SolanaRpcError("Unexpected response from Solana RPC")
        if "error" in data:
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise SolanaRpcError(f"RPC error: {message}")

        return data

    async def get_balance(self, address: str) -> int:
        """
        Get SOL balance for an address.

        Args:
            address: Wallet address (base58)

        Returns:
            Balance in lamports
        """
        result = await self._rpc_call(
            "getBalance",
            [address, {"commitment": self.commitment}],
        )
        return int((result.get("result") or {}).get("value", 0))

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """
        Get the raw balance of `mint` held by `owner` across all its token accounts.

        Works for both the classic token program and Token-2022, since the
        filter is by mint.
        """
        result = await self._rpc_call(
            "getTokenAccountsByOwner",
            [
                owner,
                {"mint": mint},
                {"encoding": "jsonParsed", "commitment": self.commitment},
            ],
        )

        total = 0
        for item in (result.get("result") or {}).get("value", []):
            parsed = item.get("account", {}).get("data", {}).get("parsed", {})
            amount = parsed.get("info", {}).get("tokenAmount", {}).get("amount", 0)
            total += int(amount)
        return total


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(int(lamports)) / LAMPORTS_PER_SOL


def token_amount_to_ui(raw: int, decimals: int = 6) -> Decimal:
    return to_ui_amount(raw, decimals)
