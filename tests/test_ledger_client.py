"""
Tests for LedgerClient: caching, retries, rejection, configuration and rate limiting.

The remote API is FakeLedger behind httpx.MockTransport; backoff sleeps are
recorded instead of awaited.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import make_address, make_tx
from backend_eagleeye.core.exceptions import InvalidAddress, InvalidConfiguration, RemoteRejected, RemoteUnavailable
from backend_eagleeye.ledger_client.cache import CacheKey, ResponseCache
from backend_eagleeye.ledger_client.client import ClientConfig
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE, EventKind, parse_amount, parse_timestamp
from backend_eagleeye.ledger_client.rate_limiter import RateLimiter

ADDR = make_address(1)


def test_deposit_events_parsed_as_int_minor_units(fake_ledger, run):
    fake_ledger.deposits[ADDR] = [100_000_000, 50_000_000]

    async def scenario():
        async with fake_ledger.client() as client:
            return await client.fetch_deposit_events(ADDR, NATIVE_COIN_TYPE, 100)

    events = run(scenario())
    assert [e.amount for e in events] == [100_000_000, 50_000_000]
    assert all(e.kind is EventKind.DEPOSIT for e in events)
    assert all(isinstance(e.amount, int) for e in events)
    assert events[0].timestamp is None
    path = fake_ledger.paths()[0]
    assert path.endswith("/deposit_events")
    assert f"CoinStore<{NATIVE_COIN_TYPE}>" in path


def test_second_identical_call_served_from_cache(fake_ledger, run):
    """Two identical calls inside the TTL: one network request, identical results, one hit."""
    fake_ledger.withdrawals[ADDR] = [7, 8, 9]

    async def scenario():
        async with fake_ledger.client() as client:
            first = await client.fetch_withdrawal_events(ADDR)
            second = await client.fetch_withdrawal_events(ADDR.upper().replace("0X", "0x"))
            return first, second, client.cache_hits, client.cache_misses, client.cache_stats()

    first, second, hits, misses, stats = run(scenario())
    assert first == second
    assert len(fake_ledger.requests) == 1
    assert (hits, misses) == (1, 1)
    assert stats["hits"] == 1 and stats["misses"] == 1 and stats["hit_rate"] == 0.5
    assert stats["total"] == 1 and stats["valid"] == 1
    assert stats["requests_sent"] == 1


def test_cache_disabled_always_hits_network(fake_ledger, run):
    fake_ledger.deposits[ADDR] = [1]

    async def scenario():
        async with fake_ledger.client(enable_cache=False) as client:
            await client.fetch_deposit_events(ADDR)
            await client.fetch_deposit_events(ADDR)
            return client.cache_hits

    assert run(scenario()) == 0
    assert len(fake_ledger.requests) == 2


def test_expired_entry_is_never_served():
    now = [100.0]
    cache = ResponseCache(ttl_sec=10, clock=lambda: now[0])
    key = CacheKey("deposit_events", ADDR, NATIVE_COIN_TYPE, "100")
    cache.put(key, ("cached",))
    assert cache.get(key) == (True, ("cached",))
    now[0] = 110.0  # expires_at == now counts as expired
    assert cache.get(key) == (False, None)
    assert len(cache) == 0


def test_cache_keys_compare_by_value():
    assert CacheKey("transactions", ADDR, cursor="0:100") == CacheKey("transactions", ADDR, cursor="0:100")
    assert CacheKey("transactions", ADDR, cursor="0:100") != CacheKey("transactions", ADDR, cursor="100:100")


def test_retries_server_errors_then_succeeds(fake_ledger, run):
    fake_ledger.deposits[ADDR] = [5]
    fake_ledger.scripted = [503, 500]

    async def scenario():
        async with fake_ledger.client(max_retries=3, retry_delay_sec=0.5) as client:
            return await client.fetch_deposit_events(ADDR), client.cache_stats()

    events, stats = run(scenario())
    assert [e.amount for e in events] == [5]
    assert len(fake_ledger.requests) == 3
    assert fake_ledger.sleeps == [0.5, 1.0]
    assert stats["requests_sent"] == 3


def test_rate_limited_429_is_retried(fake_ledger, run):
    fake_ledger.deposits[ADDR] = [5]
    fake_ledger.scripted = [429]

    async def scenario():
        async with fake_ledger.client() as client:
            return await client.fetch_deposit_events(ADDR)

    assert len(run(scenario())) == 1
    assert len(fake_ledger.requests) == 2


def test_timeouts_exhaust_retries_into_remote_unavailable(fake_ledger, run):
    fake_ledger.scripted = [httpx.ReadTimeout("slow", request=None)] * 4

    async def scenario():
        async with fake_ledger.client(max_retries=3, retry_delay_sec=1.0, max_retry_delay_sec=1.5) as client:
            await client.fetch_deposit_events(ADDR)

    with pytest.raises(RemoteUnavailable) as exc_info:
        run(scenario())
    assert isinstance(exc_info.value.last_error, httpx.ReadTimeout)
    assert exc_info.value.attempts == 4
    assert len(fake_ledger.requests) == 4
    # backoff doubles and is capped at max_retry_delay_sec
    assert fake_ledger.sleeps == [1.0, 1.5, 1.5]


def test_client_error_rejected_without_retry(fake_ledger, run):
    fake_ledger.fail_status[ADDR] = 404

    async def scenario():
        async with fake_ledger.client(max_retries=3) as client:
            await client.fetch_account_snapshot(ADDR)

    with pytest.raises(RemoteRejected) as exc_info:
        run(scenario())
    assert exc_info.value.status_code == 404
    assert len(fake_ledger.requests) == 1
    assert fake_ledger.sleeps == []


def test_malformed_json_is_rejected(run):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    async def scenario():
        from backend_eagleeye.ledger_client.client import LedgerClient

        async with LedgerClient(
            ClientConfig(base_url="https://ledger.test/v1"), transport=httpx.MockTransport(handler)
        ) as client:
            await client.fetch_deposit_events(ADDR)

    with pytest.raises(RemoteRejected, match="malformed JSON"):
        run(scenario())


def test_invalid_address_never_reaches_network(fake_ledger, run):
    async def scenario():
        async with fake_ledger.client() as client:
            await client.fetch_transaction_page("0x1234")

    with pytest.raises(InvalidAddress):
        run(scenario())
    assert fake_ledger.requests == []


def test_unrecognized_event_shapes_skipped(run):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"sequence_number": "0", "data": {"amount": "10"}},
                {"sequence_number": "1", "data": {"note": "no amount"}},
                {"sequence_number": "2", "data": {"amount": 1.5}},
                {"sequence_number": "3"},
                "garbage",
            ],
        )

    async def scenario():
        from backend_eagleeye.ledger_client.client import LedgerClient

        async with LedgerClient(
            ClientConfig(base_url="https://ledger.test/v1"), transport=httpx.MockTransport(handler)
        ) as client:
            return await client.fetch_deposit_events(ADDR)

    events = run(scenario())
    assert [e.amount for e in events] == [10]


def test_account_snapshot_splits_resources(fake_ledger, run):
    fake_ledger.deposits[ADDR] = [300]
    fake_ledger.sequence_numbers[ADDR] = 42

    async def scenario():
        async with fake_ledger.client() as client:
            return await client.fetch_account_snapshot(ADDR)

    snap = run(scenario())
    assert snap.sequence_number == 42
    assert len(snap.coin_resources) == 1
    assert len(snap.token_resources) == 1
    assert snap.coin_balance() == 300
    assert snap.coin_balance("0xdead::x::Y") is None


def test_transaction_page_passes_start_and_limit(fake_ledger, run):
    async def scenario():
        async with fake_ledger.client() as client:
            return await client.fetch_transaction_page(ADDR, offset=200, page_size=100)

    assert run(scenario()) == ()
    params = fake_ledger.requests[0].url.params
    assert params["start"] == "200"
    assert "offset" not in params
    assert params["limit"] == "100"


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": "ftp://nope"},
        {"base_url": ""},
        {"timeout_sec": 0},
        {"max_retries": -1},
        {"cache_ttl_sec": -5},
        {"rate_limit_per_sec": 0},
        {"retry_delay_sec": -1},
    ],
)
def test_invalid_configuration_rejected(overrides):
    values = {"base_url": "https://ledger.test/v1", **overrides}
    with pytest.raises(InvalidConfiguration):
        ClientConfig(**values)


def test_rate_limiter_spaces_acquires(monkeypatch):
    """Each acquire after the first waits out the remaining interval; callers never fail."""
    now = [0.0]
    waits: list[float] = []
    original_sleep = asyncio.sleep

    async def fake_sleep(delay: float) -> None:
        waits.append(delay)
        now[0] += delay
        await original_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    async def scenario():
        limiter = RateLimiter(rate_per_sec=2.0, clock=lambda: now[0])
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(scenario())
    assert waits == [0.5, 0.5]


def test_parse_timestamp_units():
    from datetime import datetime, timezone

    expected = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    seconds = int(expected.timestamp())
    assert parse_timestamp(str(seconds * 1_000_000)) == expected
    assert parse_timestamp(seconds * 1_000) == expected
    assert parse_timestamp(seconds) == expected
    assert parse_timestamp("2024-01-02T03:04:05Z") == expected
    assert parse_timestamp("not a time") is None
    assert parse_timestamp(None) is None


def test_parse_timestamp_out_of_range_is_none():
    assert parse_timestamp("99999999999999999999999") is None
    assert parse_timestamp(-(10**30)) is None
    assert parse_timestamp("²³") is None


def test_parse_amount_only_ascii_digits():
    assert parse_amount("42") == 42
    assert parse_amount(" 7 ") == 7
    assert parse_amount("²") is None
    assert parse_amount("١٢") is None  # Arabic-Indic digits
    assert parse_amount("-5") is None
    assert parse_amount(1.0) is None


def test_malformed_records_in_page_do_not_fail_it(fake_ledger, run):
    from datetime import datetime, timezone

    when = datetime(2024, 2, 1, tzinfo=timezone.utc)
    broken = {**make_tx(2, when, ADDR), "timestamp": "99999999999999999999999"}
    fake_ledger.transactions[ADDR] = [broken, make_tx(1, when, ADDR)]

    async def scenario():
        async with fake_ledger.client() as client:
            return await client.fetch_transaction_page(ADDR)

    page = run(scenario())
    assert [tx.version for tx in page] == ["2", "1"]
    assert page[0].timestamp is None
    assert page[1].timestamp == when


def test_non_ascii_amount_event_skipped(run):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"sequence_number": "0", "data": {"amount": "²"}},
                {"sequence_number": "1", "data": {"amount": "12"}},
            ],
        )

    async def scenario():
        from backend_eagleeye.ledger_client.client import LedgerClient

        async with LedgerClient(
            ClientConfig(base_url="https://ledger.test/v1"), transport=httpx.MockTransport(handler)
        ) as client:
            return await client.fetch_withdrawal_events(ADDR)

    assert [e.amount for e in run(scenario())] == [12]
