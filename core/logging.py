"""
Unified Logging Configuration

Central logging setup for the library. Every module logs through a child
of the "coinbridge" logger obtained from ``get_logger`` instead of using
print() statements.

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Fetching open orders")

Log Levels used by the connectors:
    DEBUG    - Request/response details (never credentials)
    INFO     - High-level operations (e.g., "Loading poloniex markets")
    WARNING  - Orders assumed closed by reconciliation, pending cancels
    ERROR    - Unclassified exchange errors and failed initialization

Configuration:
    Log level is controlled by the LOG_LEVEL setting (environment or .env).
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the library logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured "coinbridge" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Exchanges initialized")
        2024-01-01 12:00:00 [INFO] coinbridge Exchanges initialized
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger("coinbridge")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    # Settings not importable yet (during initial import)
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger of "coinbridge".

    Example:
        # In exchanges/poloniex/__init__.py:
        logger = get_logger(__name__)  # "coinbridge.exchanges.poloniex"
    """
    return logging.getLogger(f"coinbridge.{name}")


def set_log_level(level: str) -> None:
    """Change the log level at runtime."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, endpoint: str, params: dict = None) -> None:
    """
    Log an outgoing API request.

    Example:
        >>> log_api_request("poloniex", "GET /public", {"command": "returnTicker"})
        [DEBUG] API Request: poloniex GET /public | Params: {'command': 'returnTicker'}
    """
    if params:
        logger.debug(f"API Request: {exchange} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("binance", "GET /api/v3/account", 200, 0.342)
        [DEBUG] API Response: binance GET /api/v3/account | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
