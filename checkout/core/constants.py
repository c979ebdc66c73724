"""Chain constants for the shop's payment flow."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

# Game token mint (pump.fun, Token-2022)
TRENCH_MINT = "BzyKa1FGjs2EUpu3GGDibY4xdygn5evAiRboKmETpump"
TRENCH_DECIMALS = 6

# Wrapped SOL mint
SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9

# Settlement currency
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_DECIMALS = 6

# Owner of the account that receives swapped proceeds
TREASURY_WALLET = "7ErEChc5iUg7689dmWEyPanByDtsnu35DdTdd3PyqZGa"

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

SWAP_MODE_EXACT_IN = "ExactIn"
SWAP_MODE_EXACT_OUT = "ExactOut"

LAMPORTS_PER_SOL = Decimal(1_000_000_000)

MINT_DECIMALS: Dict[str, int] = {
    TRENCH_MINT: TRENCH_DECIMALS,
    SOL_MINT: SOL_DECIMALS,
    USDC_MINT: USDC_DECIMALS,
}

EXPLORER_TX_URL = "https://solscan.io/tx/{signature}"


def to_raw_amount(amount: Decimal, decimals: int) -> int:
    """Convert a display amount to integer base units (half-up rounding)."""
    scaled = Decimal(amount) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def to_ui_amount(raw: int, decimals: int) -> Decimal:
    """Convert integer base units to a display amount."""
    return Decimal(int(raw)) / (Decimal(10) ** decimals)


__all__ = [
    "TRENCH_MINT",
    "TRENCH_DECIMALS",
    "SOL_MINT",
    "SOL_DECIMALS",
    "USDC_MINT",
    "USDC_DECIMALS",
    "TREASURY_WALLET",
    "TOKEN_PROGRAM_ID",
    "TOKEN_2022_PROGRAM_ID",
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "SWAP_MODE_EXACT_IN",
    "SWAP_MODE_EXACT_OUT",
    "LAMPORTS_PER_SOL",
    "MINT_DECIMALS",
    "EXPLORER_TX_URL",
    "to_raw_amount",
    "to_ui_amount",
]
