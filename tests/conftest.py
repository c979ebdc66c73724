"""Shared fixtures for checkout tests."""

import base64
from typing import List, Optional

import pytest

from checkout.config import Settings
from checkout.core.wallet.signer import AppIdentity, Authorization, SignerHandle

PAYER = "Payer11111111111111111111111111111111111111"
SWAP_TX = base64.b64encode(b"\x01" + bytes(255)).decode()


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeWallet(SignerHandle):
    """In-process signer used in place of an external wallet app."""

    name = "fake-wallet"

    def __init__(self):
        self.available = True
        self.signatures: list = ["abc123"]
        self.sign_error: Optional[Exception] = None
        self.reauthorize_error: Optional[Exception] = None
        self.authorize_error: Optional[Exception] = None
        self.authorize_calls: List[Optional[str]] = []
        self.identities: List[AppIdentity] = []
        self.sent: List[List[bytes]] = []
        self._issued = 0

    async def ready(self) -> bool:
        return self.available

    async def health_check(self):
        return {"status": "ok" if self.available else "unavailable"}

    async def authorize(self, *, cluster, identity, auth_token=None):
        self.authorize_calls.append(auth_token)
        self.identities.append(identity)
        if auth_token is not None and self.reauthorize_error is not None:
            raise self.reauthorize_error
        if self.authorize_error is not None:
            raise self.authorize_error
        self._issued += 1
        return Authorization(auth_token=f"token-{self._issued}", accounts=[PAYER])

    async def sign_and_send_transactions(self, transactions):
        self.sent.append(list(transactions))
        if self.sign_error is not None:
            raise self.sign_error
        return list(self.signatures)


@pytest.fixture
def settings() -> Settings:
    """Fully configured settings with the production timing constants."""
    return Settings(
        jupiter_api_key="test-key",
        supabase_url="https://proj.supabase.co/",
        supabase_anon_key="anon-key",
        solana_rpc_url="https://rpc.test",
        solana_cluster="mainnet-beta",
        settle_delay_seconds=5,
        fulfillment_max_attempts=8,
        fulfillment_retry_delay_seconds=3,
        fulfillment_timeout_seconds=30,
        balance_refresh_max_attempts=3,
        balance_refresh_delay_seconds=2,
        quote_ttl_seconds=30,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def payer() -> str:
    return PAYER


@pytest.fixture
def swap_tx() -> str:
    return SWAP_TX
