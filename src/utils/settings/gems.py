"""Gem ledger settings configuration."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class GemSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # "sql" talks to the hosted database, "memory" keeps balances in-process
    GEM_STORE_BACKEND: Literal["sql", "memory"] = "sql"

    # Cost charged for feature keys missing from both cost tables
    DEFAULT_FEATURE_COST: int = 1
    FEATURE_COSTS_CACHE_TTL: int = 300

    # Balance reads are idempotent and may be retried
    BALANCE_READ_ATTEMPTS: int = 2
    BALANCE_RETRY_BASE_DELAY: float = 0.25

    # Account standing checks (blocked / admin)
    STATUS_CHECK_TIMEOUT_SECONDS: float = 4.0
    STATUS_RETRY_ATTEMPTS: int = 3
    STATUS_RETRY_BASE_DELAY: float = 1.0
    STATUS_RETRY_MAX_DELAY: float = 10.0
    BLOCKED_STATUS_CACHE_TTL: int = 60

    # Idle ledger sessions are dropped after this many seconds
    SESSION_TTL_SECONDS: int = 1800
    SESSION_CACHE_SIZE: int = 1000


__all__ = ["GemSettings"]
