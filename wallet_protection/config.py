"""Configuration settings for Wallet Protection Monitor."""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Wallet Protection Monitor"
    app_version: str = "0.1.0"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 8002

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Ledger node (JSON-RPC)
    rpc_url: Optional[str] = Field(
        default=None,
        description="JSON-RPC endpoint of the ledger node; unset means offline mode"
    )
    rpc_timeout_seconds: float = 15.0

    # Ledger contract emitting Transfer / Approval
    ledger_contract_address: Optional[str] = None
    start_block: Optional[int] = Field(
        default=None,
        description="First block to index; defaults to the chain head at startup"
    )
    poll_interval_seconds: float = 5.0
    max_blocks_per_poll: int = 2000

    # Enforcement (guard) contract
    guard_contract_address: Optional[str] = None
    monitor_address: Optional[str] = Field(
        default=None,
        description="Node-managed account that signs guard contract transactions"
    )
    receipt_timeout_seconds: float = 60.0
    receipt_poll_seconds: float = 2.0

    # Notifications
    alert_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving admin and judge notifications as JSON"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def ledger_configured(self) -> bool:
        return bool(self.rpc_url and self.ledger_contract_address)

    @property
    def guard_configured(self) -> bool:
        return bool(self.rpc_url and self.guard_contract_address and self.monitor_address)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
