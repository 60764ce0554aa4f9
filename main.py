"""
Main entrypoint: FastAPI server for Eagle Eye.

Settings come from env / .env (APTOS_NODE_URL, LEDGER_*, DATABASE_URL,
API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT). Misconfiguration is reported and
exits non-zero before the server starts.

Equivalent: uvicorn backend_eagleeye.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os
import sys

# Configure structured JSON logging before other imports that may log
from backend_eagleeye.eagleeye_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Validate settings, then run the FastAPI server in the main thread."""
    from backend_eagleeye.config.settings import get_settings
    from backend_eagleeye.core.exceptions import InvalidConfiguration

    try:
        settings = get_settings()
        settings.client_config()
    except InvalidConfiguration as e:
        logger.error("main_config_error", message=e.message)
        sys.exit(1)

    from backend_eagleeye.api_server.app import app
    import uvicorn

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        ledger_base_url=settings.ledger_base_url,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
