"""
Pytest fixtures for Eagle Eye tests.

The ledger REST API is faked with httpx.MockTransport (FakeLedger); the
report store uses a temporary SQLite DB.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from backend_eagleeye.ledger_client.client import ClientConfig, LedgerClient
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE

BASE_URL = "https://ledger.test/v1"


def make_address(n: int) -> str:
    """Deterministic valid address: 0x + 64 hex digits."""
    return "0x" + f"{n:064x}"


def micros(dt: datetime) -> str:
    """Ledger-native timestamp string (microseconds since epoch)."""
    return str(int(dt.replace(tzinfo=timezone.utc).timestamp()) * 1_000_000)


def coin_event(kind: str, owner: str, amount: int | str, seq: int = 0, coin_type: str | None = None) -> dict[str, Any]:
    struct = "DepositEvent" if kind == "deposit" else "WithdrawEvent"
    data: dict[str, Any] = {"amount": str(amount)}
    if coin_type:
        data["coin_type"] = coin_type
    return {
        "type": f"0x1::coin::{struct}",
        "guid": {"creation_number": "2", "account_address": owner},
        "sequence_number": str(seq),
        "data": data,
    }


def make_tx(
    version: int,
    when: datetime,
    sender: str,
    events: list[dict[str, Any]] | None = None,
    arguments: list[Any] | None = None,
    type_arguments: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "type": "user_transaction",
        "version": str(version),
        "hash": f"0x{version:064x}",
        "sender": sender,
        "timestamp": micros(when),
        "success": True,
        "payload": {
            "function": "0x1::aptos_account::transfer",
            "type_arguments": type_arguments or [],
            "arguments": arguments or [],
        },
        "events": events or [],
    }


class FakeLedger:
    """
    In-memory ledger REST API. Per-address data:

    - deposits / withdrawals: lists of minor-unit amounts (event handle endpoints)
    - transactions: newest-first transaction dicts (served by start / limit)
    - fail_status: address -> HTTP status returned for every request on it
    """

    def __init__(self) -> None:
        self.deposits: dict[str, list[int]] = {}
        self.withdrawals: dict[str, list[int]] = {}
        self.transactions: dict[str, list[dict[str, Any]]] = {}
        self.sequence_numbers: dict[str, int] = {}
        self.fail_status: dict[str, int] = {}
        self.scripted: list[Any] = []
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.scripted:
            step = self.scripted.pop(0)
            if isinstance(step, Exception):
                raise step
            if isinstance(step, int):
                return httpx.Response(step, json={"message": "scripted"})
        parts = request.url.path.split("/")
        idx = parts.index("accounts")
        address = parts[idx + 1].lower()
        rest = parts[idx + 2 :]
        if address in self.fail_status:
            return httpx.Response(self.fail_status[address], json={"message": "failure"})
        if not rest:
            return httpx.Response(
                200,
                json={"sequence_number": str(self.sequence_numbers.get(address, 0)), "authentication_key": address},
            )
        if rest == ["resources"]:
            balance = sum(self.deposits.get(address, [])) - sum(self.withdrawals.get(address, []))
            return httpx.Response(
                200,
                json=[
                    {
                        "type": f"0x1::coin::CoinStore<{NATIVE_COIN_TYPE}>",
                        "data": {"coin": {"value": str(max(balance, 0))}},
                    },
                    {"type": "0x3::token::TokenStore", "data": {"tokens": {}}},
                    {"type": "0x1::account::Account", "data": {}},
                ],
            )
        if rest == ["transactions"]:
            offset = int(request.url.params.get("start", "0"))
            limit = int(request.url.params.get("limit", "25"))
            return httpx.Response(200, json=self.transactions.get(address, [])[offset : offset + limit])
        if len(rest) == 3 and rest[0] == "events":
            kind = "deposit" if rest[2] == "deposit_events" else "withdrawal"
            source = self.deposits if kind == "deposit" else self.withdrawals
            limit = int(request.url.params.get("limit", "25"))
            items = [
                {**coin_event(kind, address, amount, seq), "version": str(1000 + seq)}
                for seq, amount in enumerate(source.get(address, [])[:limit])
            ]
            return httpx.Response(200, json=items)
        return httpx.Response(404, json={"message": "not found"})

    async def fake_sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    def client(self, **overrides: Any) -> LedgerClient:
        values: dict[str, Any] = {
            "base_url": BASE_URL,
            "retry_delay_sec": 0.5,
            "rate_limit_per_sec": 1000.0,
        }
        values.update(overrides)
        return LedgerClient(
            ClientConfig(**values),
            transport=httpx.MockTransport(self.handler),
            sleep=self.fake_sleep,
        )

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def run():
    """Drive a coroutine to completion from a sync test."""

    def _run(coro):
        return asyncio.run(coro)

    return _run


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Pin env-driven settings so tests never read a developer .env or hit a real node."""
    from backend_eagleeye.config.settings import reset_settings

    monkeypatch.setenv("APTOS_NODE_URL", BASE_URL)
    monkeypatch.setenv("INTER_BATCH_DELAY_SEC", "0")
    monkeypatch.setenv("REPORTS_DB_PATH", str(tmp_path / "reports.db"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def report_store(tmp_path):
    """SqlReportStore on a temporary SQLite file with tables created."""
    from backend_eagleeye.database.report_store import SqlReportStore

    store = SqlReportStore(f"sqlite:///{tmp_path / 'reports_test.db'}")
    store.init_db()
    yield store
    store.dispose()


@pytest.fixture
def api_client(fake_ledger, report_store):
    """FastAPI TestClient with the ledger and report store dependencies overridden."""
    from fastapi.testclient import TestClient

    from backend_eagleeye.api_server.server import app, get_ledger_client, get_report_store

    async def _ledger_override():
        async with fake_ledger.client() as client:
            yield client

    app.dependency_overrides[get_ledger_client] = _ledger_override
    app.dependency_overrides[get_report_store] = lambda: report_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
