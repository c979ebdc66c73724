"""
Associated token accounts.

The treasury's receiving account is the associated token account of the
treasury owner for the game-token mint. Sending proceeds to a wrong
account is unrecoverable, so the address is derived locally and can be
re-checked with `verify_treasury_account`.
"""

from __future__ import annotations

from functools import lru_cache

from solders.pubkey import Pubkey

from ..constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    TREASURY_WALLET,
    TRENCH_MINT,
)


def parse_public_key(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as exc:
        raise ValueError(f"Invalid Solana public key {address!r}") from exc


@lru_cache(maxsize=64)
def get_associated_token_address(
    owner: str,
    mint: str,
    token_program_id: str = TOKEN_2022_PROGRAM_ID,
) -> str:
    seeds = [
        bytes(parse_public_key(owner)),
        bytes(parse_public_key(token_program_id)),
        bytes(parse_public_key(mint)),
    ]
    address, _bump = Pubkey.find_program_address(seeds, parse_public_key(ASSOCIATED_TOKEN_PROGRAM_ID))
    return str(address)


def treasury_token_account(
    mint: str = TRENCH_MINT,
    owner: str = TREASURY_WALLET,
    token_program_id: str = TOKEN_2022_PROGRAM_ID,
) -> str:
    """The account that must receive swapped proceeds for `mint`."""
    return get_associated_token_address(owner, mint, token_program_id)


def verify_treasury_account(
    address: str,
    mint: str = TRENCH_MINT,
    owner: str = TREASURY_WALLET,
    token_program_id: str = TOKEN_2022_PROGRAM_ID,
) -> bool:
    return address == treasury_token_account(mint, owner, token_program_id)
