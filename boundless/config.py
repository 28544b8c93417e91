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
        """Normalize base URLs so providers can append paths directly."""

        super().model_post_init(__context)

        object.__setattr__(self, "zerion_base_url", self.zerion_base_url.rstrip("/"))
        object.__setattr__(self, "lifi_base_url", self.lifi_base_url.rstrip("/"))

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Balance indexer (Zerion)
    zerion_api_key: str = Field(
        default="",
        description="Zerion API key used for wallet positions",
        validation_alias=AliasChoices("zerion_api_key", "ZERION_API_KEY", "NEXT_PUBLIC_ZERION_API_KEY"),
    )
    zerion_base_url: str = Field(
        default="https://api.zerion.io/v1",
        description="Base URL for the Zerion API",
    )
    balance_cache_ttl_seconds: int = Field(
        default=60,
        ge=1,
        description="How long a fetched portfolio is served from cache",
    )
    chart_cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="How long a fetched wallet value chart is served from cache",
    )

    # Routing service (LI.FI)
    lifi_base_url: str = Field(default="https://li.quest/v1", description="Base URL for the LI.FI API")
    lifi_api_key: str = Field(default="", description="Optional LI.FI API key (raises rate limits)")
    lifi_integrator: str = Field(default="stoneplace", description="Integrator name reported to LI.FI")
    integrator_fee: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        lt=1,
        description="Integrator fee applied by LI.FI on every route (fraction)",
    )
    default_slippage: Decimal = Field(
        default=Decimal("0.005"),
        gt=0,
        lt=1,
        description="Slippage tolerance sent with every route request (fraction)",
    )

    # Feature Flags
    enable_auto_deposit: bool = Field(
        default=False,
        description="Bundle the Aave supply call into cross-chain zap routes (contract calls)",
    )

    # Execution
    request_timeout_seconds: int = Field(default=30, description="HTTP request timeout")
    wallet_rpc_url: str = Field(
        default="http://127.0.0.1:1248",
        description="JSON-RPC endpoint of the signing wallet (Frame's default port)",
    )
    receipt_timeout_seconds: int = Field(
        default=600,
        ge=1,
        description="Give up waiting for a transaction receipt after this many seconds",
    )
    post_bridge_settle_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before reading the bridged balance on the destination chain",
    )
    status_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Interval between LI.FI cross-chain status polls",
    )
    status_poll_timeout_seconds: int = Field(
        default=1800,
        ge=1,
        description="Give up waiting for a cross-chain transfer after this many seconds",
    )

    @property
    def has_zerion_key(self) -> bool:
        return bool(self.zerion_api_key)

    @property
    def has_lifi_key(self) -> bool:
        return bool(self.lifi_api_key)


# Global settings instance
settings = Settings()
