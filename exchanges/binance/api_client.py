"""
Binance REST API Client

This module provides an async HTTP client for the Binance spot REST API
and the wallet (wapi) API. It handles:
- Request signing (HMAC-SHA256 over the query string)
- Server time offset for the signed timestamp
- Error classification of {"code": -NNNN, "msg": "..."} replies

API Documentation:
    https://github.com/binance-exchange/binance-official-api-docs/blob/master/rest-api.md
    https://github.com/binance-exchange/binance-official-api-docs/blob/master/wapi-api.md

Request shapes:
    Public: GET {base}/api/v1/... or /api/v3/... with a plain query string
    Signed: query += timestamp=<ms>&recvWindow=<ms>&signature=<hex>
            header X-MBX-APIKEY; GET/DELETE and wapi calls carry the query in
            the URL, POST calls send it as a form body

Usage:
    async with BinanceAPIClient(api_key, secret) as client:
        info = await client.public("/api/v1/exchangeInfo")
        account = await client.private("GET", "/api/v3/account")
"""

import hashlib
import hmac
import json
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from core.errors import (
    AuthenticationError,
    DDoSProtection,
    ErrorClassifier,
    ExchangeError,
    ExchangeNotAvailable,
    InsufficientFunds,
    InvalidNonce,
    InvalidOrder,
    OrderNotFound,
)
from core.transport import RestClient
from core.utils.fields import safe_string, safe_value
from core.utils.time import milliseconds

# Keyed by message text and by error code rendered as a string
EXCEPTIONS = ErrorClassifier(
    exact={
        "API key does not exist": AuthenticationError,
        "Order would trigger immediately.": InvalidOrder,
        "Account has insufficient balance for requested action.": InsufficientFunds,
        "Rest API trading is not enabled.": ExchangeNotAvailable,
        "-1000": ExchangeNotAvailable,
        "-1013": InvalidOrder,
        "-1021": InvalidNonce,
        "-1022": AuthenticationError,
        "-1100": InvalidOrder,
        "-1104": ExchangeError,
        "-1128": ExchangeError,
        "-2010": ExchangeError,
        "-2011": OrderNotFound,
        "-2013": OrderNotFound,
        "-2014": AuthenticationError,
        "-2015": AuthenticationError,
    },
)

# Matched against the raw body of HTTP >= 400 replies
BODY_EXCEPTIONS = ErrorClassifier(
    broad=(
        ("Price * QTY is zero or less", InvalidOrder),
        ("LOT_SIZE", InvalidOrder),
        ("PRICE_FILTER", InvalidOrder),
    ),
)

# Reported for bad keys, but also by Binance under load once keys have worked
INVALID_KEY_CODE = "-2015"


class BinanceAPIClient(RestClient):
    """
    Async HTTP client for the Binance REST API

    Attributes:
        api_key: API key sent in the X-MBX-APIKEY header
        secret: Secret key used to sign requests
        recv_window: Validity window of signed requests in milliseconds
        time_difference: Local clock minus server clock, in milliseconds
        has_authenticated: True once a signed call succeeded

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     book = await client.public("/api/v3/depth", {"symbol": "ETHBTC"})
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        recv_window: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        from core.config import settings

        super().__init__("binance", base_url or settings.binance_base_url, timeout)
        self.api_key = api_key if api_key is not None else settings.binance_api_key
        self.secret = secret if secret is not None else settings.binance_secret_key
        self.recv_window = recv_window if recv_window is not None else settings.binance_recv_window
        self.time_difference = 0
        self.has_authenticated = False

    def nonce(self) -> int:
        return milliseconds() - self.time_difference

    def check_required_credentials(self) -> None:
        if not self.api_key or not self.secret:
            raise AuthenticationError(
                "binance requires apiKey and secret for signed API calls",
                exchange=self.exchange
            )

    def sign(self, query: str) -> str:
        return hmac.new(self.secret.encode(), query.encode(), hashlib.sha256).hexdigest()

    async def load_time_difference(self) -> int:
        """Measure the offset between the local clock and the server clock."""
        response = await self.public("/api/v1/time")
        self.time_difference = milliseconds() - int(response["serverTime"])
        self.logger.info(f"Binance clock offset: {self.time_difference}ms")
        return self.time_difference

    # ============================================
    # API Methods
    # ============================================

    async def public(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a public endpoint.

        Args:
            path: Endpoint path (e.g., "/api/v1/exchangeInfo")
            params: Query parameters
        """
        url = f"{self.base_url}{path}"
        if params:
            url += f"?{urlencode(params)}"
        return await self._fetch("GET", url)

    async def private(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a signed endpoint (/api/v3/... or /wapi/v3/....html).

        Raises:
            AuthenticationError: If credentials are missing
        """
        self.check_required_credentials()
        query = urlencode({"timestamp": self.nonce(), "recvWindow": self.recv_window, **(params or {})})
        query += f"&signature={self.sign(query)}"
        headers = {"X-MBX-APIKEY": self.api_key}
        url = f"{self.base_url}{path}"
        body = None
        if method in ("GET", "DELETE") or path.startswith("/wapi/"):
            url += f"?{query}"
        else:
            body = query
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        response = await self._fetch(method, url, headers, body)
        self.has_authenticated = True
        return response

    # ============================================
    # Error Handling
    # ============================================

    def handle_errors(self, status: int, body: str, payload: Any) -> None:
        """
        Classify error replies.

        Order: rate-limit statuses, known filter failures in the body of
        HTTP >= 400 replies, then the message/code tables.
        """
        details = {"exchange": self.exchange, "http_status": status, "body": body}
        feedback = f"{self.exchange} {body}"
        if status in (418, 429):
            raise DDoSProtection(feedback, **details)
        if status >= 400 and BODY_EXCEPTIONS.lookup(body) is not None:
            BODY_EXCEPTIONS.raise_for(body, feedback, **details)
        if not isinstance(payload, dict):
            return

        # wapi replies {"success": false, "msg": "<json of the actual error>"}
        success = safe_value(payload, "success", True)
        if not success:
            try:
                nested = json.loads(payload.get("msg") or "")
            except ValueError:
                nested = None
            if isinstance(nested, dict):
                payload = nested

        message = safe_string(payload, "msg")
        if message is not None and message in EXCEPTIONS.exact:
            EXCEPTIONS.raise_for(message, feedback, **details)
        code = safe_string(payload, "code")
        if code is not None:
            if code == INVALID_KEY_CODE and self.has_authenticated:
                raise DDoSProtection(feedback, **details)
            if EXCEPTIONS.lookup(code) is None:
                self.logger.error(f"Unclassified binance error code {code}: {message}")
            EXCEPTIONS.raise_for(code, feedback, **details)
        if not success:
            raise ExchangeError(feedback, **details)
