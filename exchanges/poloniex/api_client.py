"""
Poloniex REST API Client

Async client for the Poloniex public and trading APIs. It builds and
signs requests and turns error replies into core.errors exceptions;
normalization is left to exchanges.poloniex.parsers.

API Documentation:
    https://docs.poloniex.com

Request shapes:
    Public:  GET  {base}/public?command=<command>&<params>
    Trading: POST {base}/tradingApi, form body command=<command>&nonce=<ms>&<params>
             headers Key=<api key>, Sign=HMAC-SHA512(body, secret) hex

Errors arrive as HTTP 200 with {"error": "..."} and are classified with
the exact/broad tables below.

Usage:
    async with PoloniexAPIClient(api_key, secret) as client:
        tickers = await client.public("returnTicker")
        balances = await client.private("returnCompleteBalances", {"account": "all"})
"""

import hashlib
import hmac
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from core.errors import (
    AccountSuspended,
    AuthenticationError,
    CancelPending,
    DDoSProtection,
    ErrorClassifier,
    ExchangeNotAvailable,
    InsufficientFunds,
    InvalidNonce,
    InvalidOrder,
    OrderNotFound,
    PermissionDenied,
    RequestTimeout,
)
from core.transport import RestClient
from core.utils.time import milliseconds

EXCEPTIONS = ErrorClassifier(
    exact={
        "You may only place orders that reduce your position.": InvalidOrder,
        "Invalid order number, or you are not the person who placed the order.": OrderNotFound,
        "Permission denied": PermissionDenied,
        "Connection timed out. Please try again.": RequestTimeout,
        "Internal error. Please try again.": ExchangeNotAvailable,
        "Order not found, or you are not the person who placed it.": OrderNotFound,
        "Invalid API key/secret pair.": AuthenticationError,
        "Please do not make more than 8 API calls per second.": DDoSProtection,
        "Rate must be greater than zero.": InvalidOrder,
    },
    broad=(
        ("Total must be at least", InvalidOrder),
        ("This account is frozen.", AccountSuspended),
        ("Not enough", InsufficientFunds),
        ("Nonce must be greater", InvalidNonce),
        ("You have already called cancelOrder or moveOrder on this order.", CancelPending),
        ("Amount must be at least", InvalidOrder),
        ("is either completed or does not exist", InvalidOrder),
    ),
)


class PoloniexAPIClient(RestClient):
    """
    Async HTTP client for the Poloniex REST API.

    Attributes:
        api_key: API key sent in the Key header of trading calls
        secret: API secret used to sign trading calls

    Example:
        >>> async with PoloniexAPIClient() as client:
        ...     book = await client.public("returnOrderBook", {"currencyPair": "BTC_ETH"})
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        from core.config import settings

        super().__init__("poloniex", base_url or settings.poloniex_base_url, timeout)
        self.api_key = api_key if api_key is not None else settings.poloniex_api_key
        self.secret = secret if secret is not None else settings.poloniex_secret
        self._last_nonce = 0

    def nonce(self) -> int:
        """Millisecond nonce, strictly increasing within this client."""
        self._last_nonce = max(milliseconds(), self._last_nonce + 1)
        return self._last_nonce

    def check_required_credentials(self) -> None:
        if not self.api_key or not self.secret:
            raise AuthenticationError(
                "poloniex requires apiKey and secret for trading API calls",
                exchange=self.exchange
            )

    def sign(self, body: str) -> str:
        return hmac.new(self.secret.encode(), body.encode(), hashlib.sha512).hexdigest()

    # ============================================
    # API Methods
    # ============================================

    async def public(self, command: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a public command.

        Args:
            command: Poloniex command name (e.g., "returnTicker")
            params: Extra query parameters

        Returns:
            Parsed JSON reply
        """
        query = urlencode({"command": command, **(params or {})})
        return await self._fetch("GET", f"{self.base_url}/public?{query}")

    async def private(self, command: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a signed trading command.

        Raises:
            AuthenticationError: If credentials are missing
        """
        self.check_required_credentials()
        body = urlencode({"command": command, **(params or {}), "nonce": self.nonce()})
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Key": self.api_key,
            "Sign": self.sign(body),
        }
        self.logger.debug(f"poloniex trading command {command}")
        return await self._fetch("POST", f"{self.base_url}/tradingApi", headers, body)

    # ============================================
    # Error Handling
    # ============================================

    def handle_errors(self, status: int, body: str, payload: Any) -> None:
        """Raise for {"error": "..."} replies."""
        if not isinstance(payload, dict) or "error" not in payload:
            return
        message = str(payload["error"])
        feedback = f"{self.exchange} {body}"
        if EXCEPTIONS.lookup(message) is None:
            self.logger.error(f"Unclassified poloniex error: {message}")
        EXCEPTIONS.raise_for(message, feedback, exchange=self.exchange, http_status=status, body=body)
