"""Application settings for token_swap."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Dict

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    APP_NAME: str = "token_swap"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Asset catalog upstream
    CATALOG_BASE_URL: str = "http://catalog:8000"
    CATALOG_TIMEOUT_SEC: float = 5.0
    CATALOG_RETRIES: int = 2
    CATALOG_LOAD_TIMEOUT_SEC: float = 20.0

    # Execution service upstream; submissions are never retried
    EXECUTION_BASE_URL: str = "http://execution:8000"
    EXECUTION_TIMEOUT_SEC: float = 30.0

    DEFAULT_SOURCE_SYMBOL: str = "ETH"
    DEFAULT_TARGET_SYMBOL: str = "USDT"
    AMOUNT_DECIMALS: int = 4

    # JSON in env, e.g. WALLET_BALANCES='{"ETH": "2.5", "USDT": "1000"}'
    WALLET_BALANCES: Dict[str, Decimal] = {}

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_precision(self) -> None:
        if self.AMOUNT_DECIMALS != 4:
            raise ValueError("AMOUNT_DECIMALS is fixed at 4 for display stability")

    def wallet_balances(self) -> Dict[str, Decimal]:
        balances: Dict[str, Decimal] = {}
        for symbol, amount in self.WALLET_BALANCES.items():
            if amount < 0:
                raise ValueError(f"negative wallet balance for {symbol}")
            balances[symbol.upper()] = amount
        return balances


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.validate_precision()
    return settings


settings = get_settings()
