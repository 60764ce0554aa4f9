"""
Environment variable loading for Eagle Eye.

- APTOS_NODE_URL: ledger REST endpoint (default: Aptos mainnet fullnode)
- LEDGER_*: client timeout, retries, cache TTL, rate limit, retry delay
- BATCH_SIZE / INTER_BATCH_DELAY_SEC: batch worker defaults
- DATABASE_URL / REPORTS_DB_PATH: report store
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_eagleeye/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_NODE_URL = "https://fullnode.mainnet.aptoslabs.com/v1"
TESTNET_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
DEFAULT_REPORTS_DB_PATH = "eagleeye_reports.db"


def load_eagleeye_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def get_str_env(name: str, default: str = "") -> str:
    load_eagleeye_env()
    return (os.getenv(name) or "").strip() or default


def get_float_env(name: str, default: float) -> float:
    """Read a float from env; empty falls back to default, garbage raises ValueError naming the variable."""
    raw = get_str_env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def get_int_env(name: str, default: int) -> int:
    raw = get_str_env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def get_ledger_network() -> str:
    """
    Return LEDGER_NETWORK from env: mainnet | testnet.
    Default: mainnet.
    """
    raw = get_str_env("LEDGER_NETWORK", "mainnet").lower()
    return "testnet" if raw == "testnet" else "mainnet"


def get_ledger_base_url() -> str:
    """
    Resolve the ledger REST endpoint.
    Order: APTOS_NODE_URL > network default.
    """
    url = get_str_env("APTOS_NODE_URL")
    if url:
        return url.rstrip("/")
    return TESTNET_NODE_URL if get_ledger_network() == "testnet" else MAINNET_NODE_URL


def get_database_url() -> str:
    """Return DATABASE_URL when set; else SQLite at REPORTS_DB_PATH (or the default file)."""
    url = get_str_env("DATABASE_URL")
    if url:
        return url
    path = get_str_env("REPORTS_DB_PATH", DEFAULT_REPORTS_DB_PATH)
    return f"sqlite:///{path}"
