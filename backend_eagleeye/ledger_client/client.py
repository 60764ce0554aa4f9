"""
Rate-limited, retrying, caching client for the ledger REST API.

Responsibilities:
- Validate addresses before any network traffic.
- Serve repeated reads from a per-client TTL cache (explicit CacheKey).
- Admit every HTTP attempt through a min-interval rate limiter.
- Retry timeouts, transport errors, 5xx and 429 with exponential backoff;
  reject other 4xx immediately.

Use as an async context manager so the underlying httpx.AsyncClient is
released:

    async with LedgerClient(ClientConfig(base_url=...)) as client:
        deposits = await client.fetch_deposit_events(addr, NATIVE_COIN_TYPE)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from backend_eagleeye.core.exceptions import InvalidConfiguration, RemoteRejected, RemoteUnavailable
from backend_eagleeye.eagleeye_logging import get_logger, short_id
from backend_eagleeye.ledger_client.cache import CacheKey, ResponseCache
from backend_eagleeye.ledger_client.models import (
    COIN_STORE_PREFIX,
    NATIVE_COIN_TYPE,
    AccountSnapshot,
    EventKind,
    LedgerEvent,
    RawTransaction,
)
from backend_eagleeye.ledger_client.rate_limiter import RateLimiter
from backend_eagleeye.utils.wallet_utils import normalize_address, validate_address

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_CACHE_TTL_SEC = 300.0
DEFAULT_RATE_LIMIT_PER_SEC = 10.0
DEFAULT_RETRY_DELAY_SEC = 1.0
DEFAULT_MAX_RETRY_DELAY_SEC = 30.0
DEFAULT_EVENT_LIMIT = 100

_EVENT_HANDLES = {
    EventKind.DEPOSIT: "deposit_events",
    EventKind.WITHDRAWAL: "withdraw_events",
}


class _RetryableStatus(Exception):
    """Internal: HTTP status worth another attempt (5xx, 429)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@dataclass
class ClientConfig:
    """Connection, retry and cache settings for one LedgerClient."""

    base_url: str
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    max_retries: int = DEFAULT_MAX_RETRIES
    cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC
    rate_limit_per_sec: float = DEFAULT_RATE_LIMIT_PER_SEC
    retry_delay_sec: float = DEFAULT_RETRY_DELAY_SEC
    max_retry_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC
    enable_cache: bool = True

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or "").strip().rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise InvalidConfiguration(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.timeout_sec <= 0:
            raise InvalidConfiguration("timeout_sec must be > 0")
        if self.max_retries < 0:
            raise InvalidConfiguration("max_retries must be >= 0")
        if self.cache_ttl_sec < 0:
            raise InvalidConfiguration("cache_ttl_sec must be >= 0")
        if self.rate_limit_per_sec <= 0:
            raise InvalidConfiguration("rate_limit_per_sec must be > 0")
        if self.retry_delay_sec < 0 or self.max_retry_delay_sec < 0:
            raise InvalidConfiguration("retry delays must be >= 0")


class LedgerClient:
    """
    Async ledger API client. Cache, rate limiter and hit/miss counters are
    owned by the instance; share one instance across a batch so they apply
    job-wide.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_sec,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._cache = ResponseCache(config.cache_ttl_sec, clock=clock)
        self._rate_limiter = RateLimiter(config.rate_limit_per_sec, clock=clock)
        self._sleep = sleep
        self.cache_hits = 0
        self.cache_misses = 0
        self.requests_sent = 0

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.release()

    async def release(self) -> None:
        await self._http.aclose()

    # --- public operations -------------------------------------------------

    async def fetch_deposit_events(
        self, address: str, token_type: str = NATIVE_COIN_TYPE, limit: int = DEFAULT_EVENT_LIMIT
    ) -> tuple[LedgerEvent, ...]:
        return await self._fetch_events(EventKind.DEPOSIT, address, token_type, limit)

    async def fetch_withdrawal_events(
        self, address: str, token_type: str = NATIVE_COIN_TYPE, limit: int = DEFAULT_EVENT_LIMIT
    ) -> tuple[LedgerEvent, ...]:
        return await self._fetch_events(EventKind.WITHDRAWAL, address, token_type, limit)

    async def fetch_account_snapshot(self, address: str) -> AccountSnapshot:
        """Account metadata plus coin-store / token resources."""
        validate_address(address)
        addr = normalize_address(address)

        async def load() -> AccountSnapshot:
            account = await self._get_json(f"/accounts/{addr}")
            resources = await self._get_json(f"/accounts/{addr}/resources")
            return AccountSnapshot.from_api(
                addr,
                account if isinstance(account, dict) else {},
                resources if isinstance(resources, list) else [],
            )

        return await self._cached(CacheKey("account_snapshot", addr), load)

    async def fetch_transaction_page(
        self, address: str, offset: int = 0, page_size: int = 100
    ) -> tuple[RawTransaction, ...]:
        """One page of the account transaction feed, newest first. The node pages with ?start=&limit=."""
        validate_address(address)
        addr = normalize_address(address)
        cursor = f"{offset}:{page_size}"

        async def load() -> tuple[RawTransaction, ...]:
            body = await self._get_json(
                f"/accounts/{addr}/transactions",
                params={"start": offset, "limit": page_size},
            )
            items = body if isinstance(body, list) else []
            return tuple(RawTransaction.from_api_item(item) for item in items if isinstance(item, dict))

        return await self._cached(CacheKey("transactions", addr, cursor=cursor), load)

    def cache_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = dict(self._cache.stats())
        lookups = self.cache_hits + self.cache_misses
        stats["hits"] = self.cache_hits
        stats["misses"] = self.cache_misses
        stats["hit_rate"] = round(self.cache_hits / lookups, 4) if lookups else 0.0
        stats["requests_sent"] = self.requests_sent
        return stats

    def clear_cache(self) -> None:
        self._cache.clear()

    # --- internals ---------------------------------------------------------

    async def _fetch_events(
        self, kind: EventKind, address: str, token_type: str, limit: int
    ) -> tuple[LedgerEvent, ...]:
        validate_address(address)
        addr = normalize_address(address)
        handle = _EVENT_HANDLES[kind]

        async def load() -> tuple[LedgerEvent, ...]:
            struct = f"{COIN_STORE_PREFIX}{token_type}>"
            body = await self._get_json(f"/accounts/{addr}/events/{struct}/{handle}", params={"limit": limit})
            events: list[LedgerEvent] = []
            skipped = 0
            for item in body if isinstance(body, list) else []:
                event = LedgerEvent.from_api_item(item, kind, token_type)
                if event is None:
                    skipped += 1
                    continue
                events.append(event)
            if skipped:
                logger.debug("ledger_events_skipped", wallet_id=short_id(addr), kind=kind.value, skipped=skipped)
            return tuple(events)

        return await self._cached(CacheKey(f"{kind.value}_events", addr, token_type, str(limit)), load)

    async def _cached(self, key: CacheKey, load: Callable[[], Awaitable[Any]]) -> Any:
        if self.config.enable_cache:
            found, value = self._cache.get(key)
            if found:
                self.cache_hits += 1
                return value
        self.cache_misses += 1
        value = await load()
        if self.config.enable_cache:
            self._cache.put(key, value)
        return value

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET with rate limiting and retry; returns the decoded JSON body."""
        cfg = self.config
        delay = cfg.retry_delay_sec
        last_error: BaseException | None = None
        attempts = cfg.max_retries + 1

        for attempt in range(attempts):
            await self._rate_limiter.acquire()
            self.requests_sent += 1
            try:
                resp = await self._http.get(path, params=params)
                if resp.status_code == 429 or resp.status_code >= 500:
                    raise _RetryableStatus(resp.status_code)
                if resp.status_code >= 400:
                    logger.warning("ledger_client_rejected", path=path, status_code=resp.status_code)
                    raise RemoteRejected(
                        f"Ledger API rejected {path}: HTTP {resp.status_code}",
                        status_code=resp.status_code,
                    )
                try:
                    return resp.json()
                except ValueError as e:
                    raise RemoteRejected(f"Ledger API returned malformed JSON for {path}") from e
            except (httpx.TimeoutException, httpx.TransportError, _RetryableStatus) as e:
                last_error = e
                logger.warning(
                    "ledger_client_retry",
                    path=path,
                    attempt=attempt + 1,
                    max_retries=cfg.max_retries,
                    error=str(e) or type(e).__name__,
                )
                if attempt + 1 < attempts:
                    await self._sleep(delay)
                    delay = min(delay * 2, cfg.max_retry_delay_sec)

        logger.error(
            "ledger_client_give_up",
            path=path,
            max_retries=cfg.max_retries,
            error=str(last_error),
        )
        raise RemoteUnavailable(
            f"Ledger API unavailable for {path} after {attempts} attempts: {last_error}",
            last_error=last_error,
            attempts=attempts,
        )

