"""Async client for the shop's Supabase backend (player rows, RPCs, edge functions)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from .base import Provider


class SupabaseProvider(Provider):
    """Thin wrapper around the PostgREST and Functions endpoints of one project."""

    name = "supabase"
    timeout_s = 20

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or default_settings
        self.base_url = self._settings.supabase_url
        self._transport = transport

    async def ready(self) -> bool:
        return self._settings.has_supabase_credentials

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Supabase URL or anon key not configured"}
        return {"status": "configured"}

    def _headers(self) -> Dict[str, str]:
        key = self._settings.supabase_anon_key
        return {
            "apikey": key,
            "authorization": f"Bearer {key}",
            "accept": "application/json",
            "content-type": "application/json",
        }

    async def invoke_function(
        self,
        function_name: str,
        payload: Dict[str, Any],
        *,
        timeout_s: Optional[float] = None,
    ) -> httpx.Response:
        """POST to an edge function and return the raw response, whatever its status."""
        await self.require_ready()
        url = f"{self.base_url}/functions/v1/{function_name}"
        async with httpx.AsyncClient(
            timeout=timeout_s or self._settings.fulfillment_timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.post(url, json=payload, headers=self._headers())

    async def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        await self.require_ready()
        url = f"{self.base_url}/rest/v1/rpc/{function_name}"
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(url, json=params, headers=self._headers())
            response.raise_for_status()
            return response.json() if response.content else None

    async def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        await self.require_ready()
        url = f"{self.base_url}/rest/v1/{table}"
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
            rows = response.json()

        if not isinstance(rows, list):
            raise ValueError(f"Unexpected response selecting from {table}")
        return [row for row in rows if isinstance(row, dict)]

    async def ensure_player(self, wallet_address: str) -> None:
        await self.rpc("ensure_player", {"p_wallet": wallet_address})

    async def get_player(self, wallet_address: str) -> Optional[Dict[str, Any]]:
        rows = await self._select(
            "players",
            {"wallet_address": f"eq.{wallet_address}", "select": "*", "limit": "1"},
        )
        return rows[0] if rows else None

    async def get_player_units(self, wallet_address: str) -> List[Dict[str, Any]]:
        return await self._select(
            "player_units",
            {
                "wallet_address": f"eq.{wallet_address}",
                "select": "*",
                "order": "created_at.desc",
            },
        )
