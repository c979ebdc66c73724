#!/usr/bin/env python3
"""Simple CLI for checking the shop's checkout plumbing locally"""

import argparse
import asyncio
from decimal import Decimal, InvalidOperation

from checkout.config import settings
from checkout.core.constants import TRENCH_MINT, TREASURY_WALLET, USDC_MINT
from checkout.core.errors import CheckoutError
from checkout.core.player_state import PlayerState, PlayerStateStore
from checkout.logging_config import setup_logging
from checkout.providers.jupiter import JupiterQuoteProvider, Quote
from checkout.providers.solana import SolanaRpcProvider, lamports_to_sol, token_amount_to_ui
from checkout.providers.supabase import SupabaseProvider
from checkout.core.wallet.addresses import treasury_token_account


def print_quote(quote: Quote):
    """Pretty print a swap quote"""
    print("\n💱 Quote")
    print("=" * 50)
    print(f"Quote ID:     {quote.quote_id}")
    print(f"Mode:         {quote.swap_mode}")
    print(f"You pay:      {quote.in_amount_ui} ({quote.in_amount} raw)")
    print(f"Treasury gets: {quote.out_amount_ui} ({quote.out_amount} raw)")
    print(f"Min received: {quote.min_out_amount} raw @ {quote.slippage_bps} bps slippage")
    print(f"Price impact: {quote.price_impact_pct:.4f}%")
    print(f"Route:        {quote.route_description}")


def print_player(state: PlayerState):
    """Pretty print a player snapshot"""
    print("\n🎮 Player")
    print("=" * 50)
    print(f"Wallet:   {state.wallet_address}")
    print(f"Name:     {state.name or '-'}")
    print(f"Currency: {state.currency}")
    sol = f"{state.sol_balance}" if state.sol_balance is not None else "unavailable"
    token = f"{state.token_balance}" if state.token_balance is not None else "unavailable"
    print(f"SOL:      {sol}")
    print(f"TRENCH:   {token}")

    if state.units:
        print("\nUnits:")
        print("-" * 50)
        for i, unit in enumerate(state.units, 1):
            serial = unit.serial_label or "-"
            print(f"{i:2d}. {unit.name or unit.item_id or unit.unit_id:<24} {serial:>14} {unit.rarity or ''}")


async def cli_quote(amount: Decimal):
    """Quote spending `amount` USDC on the game token"""
    if not settings.has_jupiter_key:
        print("❌ JUPITER_API_KEY is not configured")
        return

    print(f"🔍 Quoting ${amount} USDC -> TRENCH...")
    try:
        quote = await JupiterQuoteProvider().get_quote(amount, USDC_MINT, TRENCH_MINT)
        print_quote(quote)
    except CheckoutError as e:
        print(f"❌ Error: {e}")
        if e.suggested_action:
            print(f"   {e.suggested_action}")
    except ValueError as e:
        print(f"❌ Error: {e}")


def cli_treasury():
    """Show the derived treasury token account"""
    print(f"Treasury owner:   {TREASURY_WALLET}")
    print(f"Mint:             {TRENCH_MINT}")
    print(f"Receiving account: {treasury_token_account()}")


async def cli_balance(address: str):
    """Fetch SOL and game-token balances for an address"""
    rpc = SolanaRpcProvider()
    print(f"🔍 Fetching balances for {address}...")
    try:
        lamports = await rpc.get_balance(address)
        token_raw = await rpc.get_token_balance(address, TRENCH_MINT)
    except Exception as e:
        print(f"❌ Error: {e}")
        return

    print(f"SOL:    {lamports_to_sol(lamports)}")
    print(f"TRENCH: {token_amount_to_ui(token_raw)}")


async def cli_player(address: str):
    """Refresh and print the player record"""
    supabase = SupabaseProvider()
    if not await supabase.ready():
        print("❌ SUPABASE_URL / SUPABASE_ANON_KEY are not configured")
        return

    store = PlayerStateStore(supabase, SolanaRpcProvider())
    print(f"🔍 Loading player {address}...")
    state = await store.refresh(address)
    print_player(state)


def _decimal(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value}")
    if amount <= 0:
        raise argparse.ArgumentTypeError("amount must be positive")
    return amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trenches checkout CLI")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    quote_parser = subparsers.add_parser("quote", help="Quote a USDC -> TRENCH swap")
    quote_parser.add_argument("amount", type=_decimal, help="Amount in USD")

    subparsers.add_parser("treasury", help="Show the treasury receiving account")

    balance_parser = subparsers.add_parser("balance", help="Show wallet balances")
    balance_parser.add_argument("address", help="Wallet address")

    player_parser = subparsers.add_parser("player", help="Show player record and units")
    player_parser.add_argument("address", help="Wallet address")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return

    command = args.command.lower()

    if command == "quote":
        await cli_quote(args.amount)

    elif command == "treasury":
        cli_treasury()

    elif command == "balance":
        await cli_balance(args.address)

    elif command == "player":
        await cli_player(args.address)

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


if __name__ == "__main__":
    asyncio.run(main())
