"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Relay started")

    log = get_logger(__name__)
    log.debug("Signed GET /fapi/v2/account")

Secrets:
    Credentials are never passed to the logger. Request parameters go through
    `redact_params()` so a signature never lands in the log either.

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Any, Dict, Mapping, Optional


REDACTED_PARAMS = ("signature",)


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] relaybot: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger("relaybot")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module.

    Example:
        >>> get_logger("exchanges.binance.api_client").name
        'relaybot.exchanges.binance.api_client'
    """
    return logging.getLogger(f"relaybot.{name}")


# ============================================
# Log Helper Functions
# ============================================

def redact_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of params with signing material masked."""
    if not params:
        return {}
    return {k: ("***" if k in REDACTED_PARAMS else v) for k, v in params.items()}


def log_api_request(exchange: str, method: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> None:
    """
    Log an outbound API request with consistent formatting.

    Example:
        >>> log_api_request("binance", "POST", "/fapi/v1/leverage", {"symbol": "BTCUSDT", "leverage": "10"})
        [DEBUG] API Request: binance POST /fapi/v1/leverage | Params: {'symbol': 'BTCUSDT', 'leverage': '10'}
    """
    if params:
        logger.debug(f"API Request: {exchange} {method} {endpoint} | Params: {redact_params(params)}")
    else:
        logger.debug(f"API Request: {exchange} {method} {endpoint}")


def log_api_response(exchange: str, method: str, endpoint: str, status: int, response_time: Optional[float] = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("binance", "GET", "/fapi/v2/account", 200, 0.342)
        [DEBUG] API Response: binance GET /fapi/v2/account | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    level = logging.DEBUG if status < 400 else logging.WARNING
    logger.log(level, f"API Response: {exchange} {method} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(exchange: str, event: str, symbol: Optional[str] = None, details: Optional[str] = None) -> None:
    """
    Log a WebSocket lifecycle event with consistent formatting.

    Example:
        >>> log_websocket_event("binance", "connected", "BTCUSDT")
        [INFO] WebSocket: binance connected | Symbol: BTCUSDT

        >>> log_websocket_event("binance", "error", "ETHUSDT", details="Connection reset")
        [ERROR] WebSocket: binance error | Symbol: ETHUSDT | Connection reset
    """
    symbol_str = f" | Symbol: {symbol}" if symbol else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: {exchange} {event}{symbol_str}{details_str}")


logger.debug("Logging system initialized")
