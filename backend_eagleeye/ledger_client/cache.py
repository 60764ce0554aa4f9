"""
TTL response cache for the ledger client.

Keys are explicit CacheKey records (operation, address, token type, cursor)
compared by value. Entries past their expiry are never served: a read that
finds one evicts it and reports a miss.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class CacheKey:
    operation: str
    address: str
    token_type: str | None = None
    cursor: str | None = None


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class ResponseCache:
    """In-memory TTL cache; owned by a single client instance."""

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_sec
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    def get(self, key: CacheKey) -> tuple[bool, Any]:
        """Return (found, value). Expired entries are evicted and reported as not found."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False, None
        return True, entry.value

    def put(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if e.is_expired(now))
        return {"total": len(self._entries), "valid": len(self._entries) - expired, "expired": expired}
