"""
Cryptopia REST API Client

Async client for the Cryptopia public, private and web (chart) APIs.

Request shapes:
    Public:  GET  {base}/api/<Method>/<path params>?<query>
    Web:     GET  {base}/<path>?<query>
    Private: POST {base}/api/<Method>, JSON body
             Authorization: amx <key>:<signature>:<nonce>

Private signature:
    md5    = base64(MD5(json body))
    uri    = lowercase(percent-encoded url)
    signed = api_key + "POST" + uri + nonce + md5
    signature = base64(HMAC-SHA256(signed, base64decode(secret)))

Errors arrive as HTTP 200 with {"Success": false, "Error": "..."}; the
message is matched against the broad table below.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from core.errors import (
    AuthenticationError,
    ErrorClassifier,
    InsufficientFunds,
    InvalidNonce,
    InvalidOrder,
    OrderNotFound,
)
from core.transport import RestClient
from core.utils.time import milliseconds

EXCEPTIONS = ErrorClassifier(
    broad=(
        ("Invalid trade amount", InvalidOrder),
        ("No matching trades found", OrderNotFound),
        ("does not exist", OrderNotFound),
        ("Insufficient Funds", InsufficientFunds),
        ("Nonce has already been used", InvalidNonce),
    ),
)


def encode_uri_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="!*'()")


class CryptopiaAPIClient(RestClient):
    """
    Async HTTP client for the Cryptopia API.

    Example:
        >>> async with CryptopiaAPIClient() as client:
        ...     pairs = await client.public("GetTradePairs")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        from core.config import settings

        super().__init__("cryptopia", base_url or settings.cryptopia_base_url, timeout)
        self.api_key = api_key if api_key is not None else settings.cryptopia_api_key
        self.secret = secret if secret is not None else settings.cryptopia_secret
        self._last_nonce = 0

    def nonce(self) -> int:
        self._last_nonce = max(milliseconds(), self._last_nonce + 1)
        return self._last_nonce

    def check_required_credentials(self) -> None:
        if not self.api_key or not self.secret:
            raise AuthenticationError(
                "cryptopia requires apiKey and secret for private API calls",
                exchange=self.exchange
            )

    def authorization(self, method: str, url: str, body: str, nonce: int) -> str:
        """Build the amx Authorization header value."""
        body_hash = base64.b64encode(hashlib.md5(body.encode()).digest()).decode()
        signed = f"{self.api_key}{method}{encode_uri_component(url).lower()}{nonce}{body_hash}"
        signature = hmac.new(base64.b64decode(self.secret), signed.encode(), hashlib.sha256).digest()
        return f"amx {self.api_key}:{base64.b64encode(signature).decode()}:{nonce}"

    # ============================================
    # API Methods
    # ============================================

    async def public(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a public method.

        Args:
            path: Method and path parameters (e.g., "GetMarketOrders/DOT_BTC")
            params: Query parameters
        """
        url = f"{self.base_url}/api/{path}"
        if params:
            url += f"?{urlencode(params)}"
        return await self._fetch("GET", url)

    async def web(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a website endpoint (used for candles)."""
        url = f"{self.base_url}/{path}"
        if params:
            url += f"?{urlencode(params)}"
        return await self._fetch("GET", url)

    async def private(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a signed private method with a JSON body.

        Raises:
            AuthenticationError: If credentials are missing
        """
        self.check_required_credentials()
        url = f"{self.base_url}/api/{method}"
        body = json.dumps(params or {}, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "Authorization": self.authorization("POST", url, body, self.nonce()),
        }
        self.logger.debug(f"cryptopia private method {method}")
        return await self._fetch("POST", url, headers, body)

    # ============================================
    # Error Handling
    # ============================================

    def handle_errors(self, status: int, body: str, payload: Any) -> None:
        """Raise for {"Success": false, "Error": "..."} replies."""
        if not isinstance(payload, dict) or payload.get("Success") is None:
            return
        if payload["Success"]:
            return
        error = payload.get("Error")
        message = error if isinstance(error, str) else None
        if EXCEPTIONS.lookup(message) is None:
            self.logger.error(f"Unclassified cryptopia error: {error}")
        EXCEPTIONS.raise_for(
            message,
            f"{self.exchange} {body}",
            exchange=self.exchange,
            http_status=status,
            body=body
        )
