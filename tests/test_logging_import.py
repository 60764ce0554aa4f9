"""
Test that eagleeye_logging can be imported without circular import and logger works.
"""

from __future__ import annotations

import structlog

from backend_eagleeye.eagleeye_logging import bind_wallet, get_logger, short_id


def test_logging_import():
    """Import get_logger from eagleeye_logging and use the logger."""
    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_short_id_truncates_addresses():
    addr = "0x" + "ab" * 32
    assert short_id(addr) == addr[:16] + "..."
    assert short_id("0x1") == "0x1"
    assert short_id(None) == "?"


def test_bind_wallet_binds_short_id_and_logger_name():
    addr = "0x" + "cd" * 32
    log = bind_wallet(addr, "backend_eagleeye.analytics.wallet_analysis")
    context = structlog.get_context(log)
    assert context["wallet_id"] == short_id(addr)
    assert context["logger"] == "backend_eagleeye.analytics.wallet_analysis"
    log.info("wallet_bound")
