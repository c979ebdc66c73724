from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Strip trailing slashes so URL joins stay predictable."""

        super().model_post_init(__context)

        for name in ("supabase_url", "solana_rpc_url"):
            value = getattr(self, name)
            if value.endswith("/"):
                object.__setattr__(self, name, value.rstrip("/"))

    log_level: str = Field(default="INFO", description="Logging level")

    # Jupiter swap API
    jupiter_quote_url: str = Field(
        default="https://api.jup.ag/swap/v1/quote",
        description="Jupiter quote endpoint",
    )
    jupiter_swap_url: str = Field(
        default="https://api.jup.ag/swap/v1/swap",
        description="Jupiter swap transaction build endpoint",
    )
    jupiter_api_key: str = Field(
        default="",
        description="Jupiter portal API key (sent as x-api-key)",
        validation_alias=AliasChoices("jupiter_api_key", "JUP_API_KEY"),
    )
    slippage_bps: int = Field(default=300, ge=0, le=10_000, description="Swap slippage tolerance in basis points")
    quote_ttl_seconds: float = Field(default=30.0, gt=0, description="Seconds a quote may be used to build a transaction")
    request_timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout for quote/build/RPC calls")

    # Supabase backend (player records and fulfillment functions)
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_anon_key: str = Field(default="", description="Supabase anon key used as bearer credential")
    fulfillment_item_function: str = Field(default="purchase-item", description="Edge function that grants purchased items")
    fulfillment_pack_function: str = Field(default="open-pack", description="Edge function that rolls and grants pack rewards")
    fulfillment_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for a single fulfillment call")

    # Solana
    solana_rpc_url: str = Field(default="https://api.mainnet-beta.solana.com", description="Solana JSON-RPC endpoint")
    solana_cluster: str = Field(default="mainnet-beta", description="Cluster passed to the wallet on authorize")

    # Wallet identity presented in the signer UI
    wallet_identity_name: str = Field(default="Trenches", description="dApp name shown by the wallet")
    wallet_identity_uri: str = Field(default="https://trenchesgame.com", description="dApp URI shown by the wallet")
    wallet_identity_icon: str = Field(default="favicon.ico", description="Icon path relative to the identity URI")

    # Purchase protocol timing
    settle_delay_seconds: float = Field(default=5.0, ge=0, description="Wait between broadcast and first fulfillment call")
    fulfillment_max_attempts: int = Field(default=8, ge=1, description="Fulfillment attempts before giving up")
    fulfillment_retry_delay_seconds: float = Field(default=3.0, ge=0, description="Fixed delay between fulfillment attempts")
    balance_refresh_max_attempts: int = Field(default=3, ge=1, description="Balance refresh attempts after a purchase")
    balance_refresh_delay_seconds: float = Field(default=2.0, ge=0, description="Fixed delay between balance refresh attempts")

    # Default pack price while packs are in testing
    default_pack_price_usd: Decimal = Field(default=Decimal("0.10"), gt=0, description="Pack price in settlement currency")

    @property
    def has_jupiter_key(self) -> bool:
        return bool(self.jupiter_api_key)

    @property
    def has_supabase_credentials(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def fulfillment_ceiling_seconds(self) -> float:
        """Upper bound for the whole verification phase."""
        return self.fulfillment_max_attempts * (
            self.fulfillment_timeout_seconds + self.fulfillment_retry_delay_seconds
        )


# Global settings instance
settings = Settings()
