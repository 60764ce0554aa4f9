"""Ledger REST API client: rate limiting, retries, TTL cache and record models."""

from backend_eagleeye.ledger_client.cache import CacheEntry, CacheKey, ResponseCache
from backend_eagleeye.ledger_client.client import ClientConfig, LedgerClient
from backend_eagleeye.ledger_client.models import (
    NATIVE_COIN_TYPE,
    AccountSnapshot,
    EventKind,
    LedgerEvent,
    RawTransaction,
    parse_timestamp,
)
from backend_eagleeye.ledger_client.rate_limiter import RateLimiter

__all__ = [
    "AccountSnapshot",
    "CacheEntry",
    "CacheKey",
    "ClientConfig",
    "EventKind",
    "LedgerClient",
    "LedgerEvent",
    "NATIVE_COIN_TYPE",
    "RateLimiter",
    "RawTransaction",
    "ResponseCache",
    "parse_timestamp",
]
