"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads Binance credentials and endpoints from .env file
- Builds the immutable Credentials object used for request signing
- Validates stream interval, port and log level on startup
- Converts comma-separated CORS origins to a list

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.binance_futures_base_url)
    credentials = settings.credentials()  # raises ConfigurationError if missing
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

from core.errors import ConfigurationError
from core.schemas import Credentials


VALID_INTERVALS = ["1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "8h", "12h", "1d", "3d", "1w", "1M"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        binance_api_key: API key sent in the X-MBX-APIKEY header
        binance_secret_key: Secret key used to sign requests (never sent)
        binance_spot_base_url: Base URL for Binance spot REST API
        binance_futures_base_url: Base URL for Binance USD-M futures REST API
        binance_ws_url: Base URL for Binance futures market streams
        kline_interval: Candle interval used for bot subscriptions
        request_timeout: Optional total timeout for signed requests (seconds)
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        log_level: Logging level
        cors_origins: Comma-separated list of allowed CORS origins
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_api_key: str = Field(
        default="",
        description="Binance API key (required for signed endpoints)"
    )

    binance_secret_key: str = Field(
        default="",
        description="Binance secret key (required for signed endpoints)"
    )

    binance_spot_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance spot API base URL"
    )

    binance_futures_base_url: str = Field(
        default="https://fapi.binance.com",
        description="Binance Futures API base URL"
    )

    binance_ws_url: str = Field(
        default="wss://fstream.binance.com/ws",
        description="Binance Futures WebSocket base URL"
    )

    kline_interval: str = Field(
        default="1m",
        description="Kline interval streamed for each bot symbol"
    )

    request_timeout: Optional[float] = Field(
        default=None,
        description="Total timeout for signed requests in seconds (unset = transport default)"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("port", "app_port"),
        description="FastAPI server port"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True
    )

    # ============================================
    # Properties
    # ============================================

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def has_credentials(self) -> bool:
        """True when both API key and secret key are configured."""
        return bool(self.binance_api_key.strip() and self.binance_secret_key.strip())

    def credentials(self) -> Credentials:
        """
        Build the signing credentials.

        Returns:
            Credentials: Frozen API key / secret pair

        Raises:
            ConfigurationError: If either key is missing or blank
        """
        if not self.has_credentials:
            raise ConfigurationError("Binance API credentials not configured")
        return Credentials(
            api_key=self.binance_api_key.strip(),
            secret_key=self.binance_secret_key.strip()
        )


# Single instance imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Optional[Settings] = None) -> None:
    """
    Validate configuration settings on application startup.

    Missing credentials are reported but not fatal here: the relay still serves
    its status routes, and every signed call fails with ConfigurationError.

    Raises:
        ValueError: If interval, port or log level is invalid
    """
    # logging.py imports config.py, so import lazily
    from core.logging import logger

    config = config or settings

    if config.kline_interval not in VALID_INTERVALS:
        raise ValueError(
            f"Invalid KLINE_INTERVAL: '{config.kline_interval}'. "
            f"Must be one of: {', '.join(VALID_INTERVALS)}"
        )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    if config.log_level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if config.request_timeout is not None and config.request_timeout <= 0:
        raise ValueError(f"Invalid REQUEST_TIMEOUT: {config.request_timeout}. Must be positive")

    if not config.has_credentials:
        logger.warning("Binance API credentials not configured - signed endpoints will fail")

    logger.info("Configuration validated successfully")
    logger.info(f"Binance Futures API: {config.binance_futures_base_url}")
    logger.info(f"Binance Spot API: {config.binance_spot_base_url}")
    logger.info(f"Market streams: {config.binance_ws_url} (kline_{config.kline_interval})")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
