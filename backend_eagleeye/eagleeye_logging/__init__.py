"""
Structured logging for Backend Eagle Eye.

JSON logs with timestamp, wallet_id, event_type.
Use get_logger() in all pipeline modules for aggregation-friendly output.
"""

from backend_eagleeye.eagleeye_logging.logger import bind_wallet, get_logger, short_id

__all__ = ["bind_wallet", "get_logger", "short_id"]
