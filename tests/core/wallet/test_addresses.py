"""
Tests for base58 helpers and associated token account derivation.
"""

import pytest
from solders.pubkey import Pubkey

from checkout.core.constants import (
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    TREASURY_WALLET,
    TRENCH_MINT,
    USDC_MINT,
)
from checkout.core.wallet.addresses import (
    get_associated_token_address,
    parse_public_key,
    treasury_token_account,
    verify_treasury_account,
)
from checkout.core.wallet.base58 import base58_decode, base58_encode, decode_base64, looks_base58

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"

# Token-2022 associated account of the treasury owner for the game-token mint
TREASURY_TOKEN_ACCOUNT = "Bd9ccsDq5a6gAHfYv1RYvjUqRwh6rA92FDW89VtJVQ4G"


class TestBase58:

    def test_leading_zero_bytes_map_to_ones(self):
        assert base58_encode(b"\x00\x00\x01") == "112"
        assert base58_decode("112") == b"\x00\x00\x01"

    def test_system_program_is_all_zero(self):
        assert base58_decode(SYSTEM_PROGRAM_ID) == bytes(32)

    def test_invalid_character(self):
        with pytest.raises(ValueError):
            base58_decode("0OIl")

    def test_looks_base58(self):
        assert looks_base58("abc123")
        assert not looks_base58("")
        assert not looks_base58("abc+/==")

    def test_decode_base64_urlsafe_without_padding(self):
        assert decode_base64("_-8") == b"\xff\xef"

    def test_decode_base64_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_base64("%%%")


class TestAssociatedTokenAccounts:

    def test_treasury_account_is_pinned(self):
        assert treasury_token_account() == TREASURY_TOKEN_ACCOUNT
        assert verify_treasury_account(TREASURY_TOKEN_ACCOUNT)
        assert not verify_treasury_account(TREASURY_WALLET)

    def test_treasury_account_uses_token_2022_program(self):
        classic = get_associated_token_address(TREASURY_WALLET, TRENCH_MINT, TOKEN_PROGRAM_ID)

        assert classic != TREASURY_TOKEN_ACCOUNT
        assert get_associated_token_address(TREASURY_WALLET, TRENCH_MINT) == TREASURY_TOKEN_ACCOUNT

    def test_derived_account_is_off_curve(self):
        token_2022 = get_associated_token_address(TREASURY_WALLET, TRENCH_MINT, TOKEN_2022_PROGRAM_ID)

        assert len(base58_decode(token_2022)) == 32
        assert not Pubkey.from_string(token_2022).is_on_curve()
        assert Pubkey.from_string(TREASURY_WALLET).is_on_curve()

    def test_invalid_public_key(self):
        with pytest.raises(ValueError):
            parse_public_key("abc")

    def test_treasury_account_differs_per_mint(self):
        assert treasury_token_account(USDC_MINT) != treasury_token_account(TRENCH_MINT)
