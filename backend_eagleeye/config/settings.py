"""
Application settings and environment configuration.

Responsibilities:
- Read configuration from environment variables and .env (via config.env).
- Validate values and provide documented defaults.
- Expose typed settings for the ledger client, batch worker, report store
  and API server. get_settings() is cached; call reset_settings() in tests
  after changing the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from backend_eagleeye.config.env import (
    get_database_url,
    get_float_env,
    get_int_env,
    get_ledger_base_url,
    get_str_env,
)
from backend_eagleeye.core.exceptions import InvalidConfiguration
from backend_eagleeye.ledger_client.client import (
    DEFAULT_CACHE_TTL_SEC,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RATE_LIMIT_PER_SEC,
    DEFAULT_RETRY_DELAY_SEC,
    DEFAULT_TIMEOUT_SEC,
    ClientConfig,
)

DEFAULT_BATCH_SIZE = 10
DEFAULT_INTER_BATCH_DELAY_SEC = 1.0
DEFAULT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class Settings:
    """Typed process settings; one instance per environment snapshot."""

    ledger_base_url: str
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    max_retries: int = DEFAULT_MAX_RETRIES
    cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC
    rate_limit_per_sec: float = DEFAULT_RATE_LIMIT_PER_SEC
    retry_delay_sec: float = DEFAULT_RETRY_DELAY_SEC
    batch_size: int = DEFAULT_BATCH_SIZE
    inter_batch_delay_sec: float = DEFAULT_INTER_BATCH_DELAY_SEC
    default_window_days: int = DEFAULT_WINDOW_DAYS
    database_url: str = "sqlite:///eagleeye_reports.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def client_config(self) -> ClientConfig:
        """Build the ledger ClientConfig from these settings."""
        values = {
            "base_url": self.ledger_base_url,
            "timeout_sec": self.timeout_sec,
            "max_retries": self.max_retries,
            "cache_ttl_sec": self.cache_ttl_sec,
            "rate_limit_per_sec": self.rate_limit_per_sec,
            "retry_delay_sec": self.retry_delay_sec,
        }
        return ClientConfig(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings.

    Raises InvalidConfiguration when an environment value cannot be parsed,
    so a misconfigured process fails before any request is served.
    """
    try:
        return Settings(
            ledger_base_url=get_ledger_base_url(),
            timeout_sec=get_float_env("LEDGER_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
            max_retries=get_int_env("LEDGER_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            cache_ttl_sec=get_float_env("LEDGER_CACHE_TTL_SEC", DEFAULT_CACHE_TTL_SEC),
            rate_limit_per_sec=get_float_env("LEDGER_RATE_LIMIT_PER_SEC", DEFAULT_RATE_LIMIT_PER_SEC),
            retry_delay_sec=get_float_env("LEDGER_RETRY_DELAY_SEC", DEFAULT_RETRY_DELAY_SEC),
            batch_size=get_int_env("BATCH_SIZE", DEFAULT_BATCH_SIZE),
            inter_batch_delay_sec=get_float_env("INTER_BATCH_DELAY_SEC", DEFAULT_INTER_BATCH_DELAY_SEC),
            default_window_days=get_int_env("DEFAULT_WINDOW_DAYS", DEFAULT_WINDOW_DAYS),
            database_url=get_database_url(),
            api_host=get_str_env("API_HOST", "0.0.0.0"),
            api_port=get_int_env("API_PORT", 8000),
        )
    except ValueError as e:
        raise InvalidConfiguration(str(e)) from e


def reset_settings() -> None:
    """Drop the cached Settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
