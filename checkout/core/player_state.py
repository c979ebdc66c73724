"""
Local player state.

An explicitly owned store for the connected player's balance, name and
inventory. The UI reads `state` at any time; writes happen only through an
explicit user refresh or the orchestrator's reconcile step after a
confirmed purchase. Each write swaps in a new immutable snapshot.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ..config import Settings, settings as default_settings
from ..providers.solana import SolanaRpcProvider, lamports_to_sol, token_amount_to_ui
from ..providers.supabase import SupabaseProvider
from .constants import TRENCH_DECIMALS, TRENCH_MINT
from .purchase.models import GrantedUnit, PurchaseIntent, PurchaseKind
from .recovery import Result, RetryConfig, RetryStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerState:
    wallet_address: Optional[str] = None
    name: Optional[str] = None
    currency: int = 0
    sol_balance: Optional[Decimal] = None
    token_balance: Optional[Decimal] = None
    purchased_items: Mapping[str, str] = field(default_factory=dict)
    units: Tuple[GrantedUnit, ...] = ()
    refreshed_at: Optional[float] = None

    def owns(self, item_id: str) -> bool:
        return item_id in self.purchased_items or any(u.item_id == item_id for u in self.units)


class PlayerStateStore:
    """Owns the cached PlayerState for the connected wallet."""

    def __init__(
        self,
        players: SupabaseProvider,
        balances: SolanaRpcProvider,
        *,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        token_mint: str = TRENCH_MINT,
        token_decimals: int = TRENCH_DECIMALS,
    ) -> None:
        cfg = settings or default_settings
        self._players = players
        self._balances = balances
        self._token_mint = token_mint
        self._token_decimals = token_decimals
        self._state = PlayerState()
        self._balance_retry = RetryStrategy(
            RetryConfig(
                max_attempts=cfg.balance_refresh_max_attempts,
                delay_seconds=cfg.balance_refresh_delay_seconds,
            ),
            sleep=sleep,
            logger=logger,
        )

    @property
    def state(self) -> PlayerState:
        return self._state

    def clear(self) -> None:
        self._state = PlayerState()

    def _for_address(self, address: str) -> PlayerState:
        if self._state.wallet_address != address:
            self._state = PlayerState(wallet_address=address)
        return self._state

    async def refresh(self, address: str) -> PlayerState:
        """User-initiated refresh of balances and the player record."""
        self._for_address(address)
        await self.refresh_balance(address)
        await self.refresh_player(address, ensure=True)
        return self._state

    async def refresh_balance(self, address: str) -> bool:
        """Best-effort balance refresh under its own retry budget."""
        self._for_address(address)

        async def fetch() -> Result[Tuple[int, int]]:
            lamports = await self._balances.get_balance(address)
            token_raw = await self._balances.get_token_balance(address, self._token_mint)
            return Result.succeeded((lamports, token_raw))

        result = await self._balance_retry.execute(fetch, operation_name="balance refresh")
        if not result.is_ok:
            logger.warning("Balance refresh for %s failed: %s", address, result.failure.message)  # type: ignore[union-attr]
            return False

        lamports, token_raw = result.unwrap()
        if self._state.wallet_address != address:
            return False
        self._state = replace(
            self._state,
            sol_balance=lamports_to_sol(lamports),
            token_balance=token_amount_to_ui(token_raw, self._token_decimals),
            refreshed_at=time.time(),
        )
        return True

    async def refresh_player(self, address: str, *, ensure: bool = False) -> bool:
        self._for_address(address)
        try:
            if ensure:
                await self._players.ensure_player(address)
            row = await self._players.get_player(address)
            unit_rows = await self._players.get_player_units(address)
        except Exception as e:
            logger.warning("Player refresh for %s failed: %s", address, e)
            return False

        if self._state.wallet_address != address:
            return False

        remote_units = []
        for unit_row in unit_rows:
            try:
                remote_units.append(GrantedUnit.from_payload(unit_row))
            except ValueError:
                logger.debug("Skipping unit row without id: %s", unit_row)

        # Grants recorded locally may not be visible remotely yet
        remote_ids = {u.unit_id for u in remote_units}
        local_only = [u for u in self._state.units if u.unit_id not in remote_ids]

        updates: Dict[str, Any] = {
            "units": (*local_only, *remote_units),
            "refreshed_at": time.time(),
        }
        if row:
            purchased = dict(row.get("purchased_items") or {})
            for item_id, status in self._state.purchased_items.items():
                purchased.setdefault(item_id, status)
            updates["name"] = row.get("name")
            updates["currency"] = int(row.get("currency") or 0)
            updates["purchased_items"] = purchased
        self._state = replace(self._state, **updates)
        return True

    def record_grant(self, intent: PurchaseIntent, unit: GrantedUnit) -> PlayerState:
        """Merge a confirmed grant into the local snapshot."""
        state = self._for_address(intent.payer_address)
        if any(existing.unit_id == unit.unit_id for existing in state.units):
            return state

        purchased = dict(state.purchased_items)
        if intent.kind is PurchaseKind.ITEM:
            purchased[intent.identifier] = "owned"
        elif unit.item_id:
            purchased[unit.item_id] = "owned"

        self._state = replace(state, units=(unit, *state.units), purchased_items=purchased)
        return self._state

    async def reconcile(self, intent: PurchaseIntent, unit: GrantedUnit) -> None:
        """Record the grant, then refresh remote state. Never raises."""
        try:
            self.record_grant(intent, unit)
            balance_ok = await self.refresh_balance(intent.payer_address)
            player_ok = await self.refresh_player(intent.payer_address)
            if not (balance_ok and player_ok):
                logger.info("Post-purchase refresh incomplete for %s; showing cached state", intent.payer_address)
        except Exception:
            logger.exception("Post-purchase reconcile failed for %s", intent.payer_address)
