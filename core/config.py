"""
Configuration Management Module

Loads library configuration from environment variables (or a .env file)
through Pydantic Settings, which validates and converts the values.

Key Features:
- Per-exchange API credentials and base URLs
- Request timeout and Binance receive window
- Comma-separated list of exchanges the ExchangeManager registers
- Log level

Usage:
    from core.config import settings

    print(settings.poloniex_base_url)
    print(settings.enabled_exchanges_list)  # ["poloniex", "cryptopia", "binance"]

Credentials are optional: public endpoints work without them, private
endpoints raise AuthenticationError when they are missing.
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

KNOWN_EXCHANGES = ("poloniex", "cryptopia", "binance")


class Settings(BaseSettings):
    """
    Library Settings

    Attributes:
        poloniex_base_url: Poloniex REST base URL
        poloniex_api_key: Poloniex API key
        poloniex_secret: Poloniex API secret
        cryptopia_base_url: Cryptopia REST base URL
        cryptopia_api_key: Cryptopia API key
        cryptopia_secret: Cryptopia API secret (base64 as issued)
        binance_base_url: Binance REST base URL
        binance_api_key: Binance API key
        binance_secret_key: Binance secret key
        binance_recv_window: Validity window of signed Binance requests (ms)
        enabled_exchanges: Comma-separated exchange ids to register
        log_level: Logging level
        request_timeout: Timeout for HTTP requests in seconds
    """

    # ============================================
    # Poloniex API Configuration
    # ============================================

    poloniex_base_url: str = Field(
        default="https://poloniex.com",
        description="Poloniex API base URL"
    )

    poloniex_api_key: str = Field(
        default="",
        description="Poloniex API key (optional for public endpoints)"
    )

    poloniex_secret: str = Field(
        default="",
        description="Poloniex API secret (optional for public endpoints)"
    )

    # ============================================
    # Cryptopia API Configuration
    # ============================================

    cryptopia_base_url: str = Field(
        default="https://www.cryptopia.co.nz",
        description="Cryptopia API base URL"
    )

    cryptopia_api_key: str = Field(
        default="",
        description="Cryptopia API key (optional for public endpoints)"
    )

    cryptopia_secret: str = Field(
        default="",
        description="Cryptopia API secret, base64 encoded (optional for public endpoints)"
    )

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance spot API base URL"
    )

    binance_api_key: str = Field(
        default="",
        description="Binance API key (optional for public endpoints)"
    )

    binance_secret_key: str = Field(
        default="",
        description="Binance secret key (optional for public endpoints)"
    )

    binance_recv_window: int = Field(
        default=5000,
        description="Milliseconds a signed Binance request stays valid"
    )

    # ============================================
    # Application Configuration
    # ============================================

    enabled_exchanges: str = Field(
        default="poloniex,cryptopia,binance",
        description="Comma-separated list of exchanges registered by the ExchangeManager"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    @property
    def enabled_exchanges_list(self) -> List[str]:
        """
        Convert the comma-separated exchange string to a list.

        Example:
            >>> settings.enabled_exchanges_list
            ['poloniex', 'cryptopia', 'binance']
        """
        return [e.strip().lower() for e in self.enabled_exchanges.split(",") if e.strip()]


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration() -> None:
    """
    Validate configuration settings before exchanges are created.

    Raises:
        ValueError: If a setting is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    if not settings.enabled_exchanges_list:
        raise ValueError("ENABLED_EXCHANGES must contain at least one exchange")

    for exchange in settings.enabled_exchanges_list:
        if exchange not in KNOWN_EXCHANGES:
            raise ValueError(
                f"Unknown exchange: '{exchange}'. "
                f"Must be one of: {', '.join(KNOWN_EXCHANGES)}"
            )

    if settings.request_timeout <= 0:
        raise ValueError(f"Invalid REQUEST_TIMEOUT: {settings.request_timeout}. Must be positive")

    if settings.binance_recv_window <= 0 or settings.binance_recv_window > 60000:
        raise ValueError(
            f"Invalid BINANCE_RECV_WINDOW: {settings.binance_recv_window}. "
            f"Must be between 1 and 60000"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Enabled exchanges: {', '.join(settings.enabled_exchanges_list)}")
    logger.info(f"Request timeout: {settings.request_timeout}s")
    logger.info(f"Log level: {settings.log_level.upper()}")
