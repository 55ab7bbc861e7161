"""
HTTP Transport

``RestClient`` is the base of every exchange API client. It owns the
aiohttp ClientSession and turns one HTTP exchange into an ``HttpResponse``
(status, body text, parsed JSON), then runs the error checks before the
payload is handed back:

    _send()               -> raw response, or RequestTimeout / ExchangeNotAvailable
    handle_errors()       -> exchange-specific body inspection (overridden)
    handle_http_status()  -> generic HTTP status mapping

Nothing is retried here; a failure surfaces as one of the errors in
core.errors and the caller decides what to do.

Usage:
    class MyExchangeAPIClient(RestClient):
        def handle_errors(self, status, body, payload):
            if isinstance(payload, dict) and "error" in payload:
                EXCEPTIONS.raise_for(payload["error"], f"{self.exchange} {body}")

    async with MyExchangeAPIClient("myexchange", "https://api.example.com") as client:
        data = await client._fetch("GET", "https://api.example.com/ticker")
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import aiohttp

from core.errors import ExchangeNotAvailable, RequestTimeout, error_for_http_status
from core.logging import get_logger, log_api_request, log_api_response


@dataclass
class HttpResponse:
    """Raw outcome of one HTTP request."""

    status: int
    body: str
    json: Any = None


def parse_json(body: str) -> Any:
    """Parse a body as JSON when it looks like JSON; None otherwise."""
    if body and body.lstrip()[:1] in ("{", "["):
        try:
            return json.loads(body)
        except ValueError:
            return None
    return None


class RestClient:
    """
    Async HTTP client base with session management and error dispatch.

    Attributes:
        exchange: Exchange identifier used in logs and errors
        base_url: Root URL of the exchange API
        timeout: Total request timeout in seconds
        session: aiohttp ClientSession (created on enter)
        logger: Logger instance
    """

    def __init__(self, exchange: str, base_url: str, timeout: Optional[float] = None):
        from core.config import settings

        self.exchange = exchange
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(f"exchanges.{exchange}.api_client")

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """Create the HTTP session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug(f"{self.exchange} API client session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug(f"{self.exchange} API client session closed")

    # ============================================
    # HTTP Request Handling
    # ============================================

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None
    ) -> HttpResponse:
        """
        Perform one HTTP request.

        Raises:
            RuntimeError: If the session was not created ('async with' missing)
            RequestTimeout: If the request exceeded the timeout
            ExchangeNotAvailable: If the connection failed
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        endpoint = f"{method} {urlsplit(url).path}"
        log_api_request(self.exchange, endpoint)
        started = time.monotonic()

        try:
            async with self.session.request(
                method,
                url,
                headers=headers,
                data=body,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                text = await resp.text()
                status = resp.status
        except asyncio.TimeoutError as e:
            raise RequestTimeout(
                f"{self.exchange} {method} {url} request timed out ({self.timeout}s)",
                exchange=self.exchange
            ) from e
        except aiohttp.ClientError as e:
            raise ExchangeNotAvailable(
                f"{self.exchange} {method} {url} {type(e).__name__}: {e}",
                exchange=self.exchange
            ) from e

        log_api_response(self.exchange, endpoint, status, time.monotonic() - started)
        return HttpResponse(status=status, body=text, json=parse_json(text))

    async def _fetch(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None
    ) -> Any:
        """Send a request, run the error checks and return the parsed JSON payload."""
        response = await self._send(method, url, headers, body)
        self.handle_errors(response.status, response.body, response.json)
        self.handle_http_status(response.status, response.body, response.json)
        return response.json

    # ============================================
    # Error Handling
    # ============================================

    def handle_errors(self, status: int, body: str, payload: Any) -> None:
        """Exchange-specific inspection of a response; raises on an error reply."""

    def handle_http_status(self, status: int, body: str, payload: Any) -> None:
        """
        Generic mapping of failing HTTP statuses, and of non-JSON replies.

        Raises:
            BaseError: The class given by core.errors.error_for_http_status,
                or ExchangeNotAvailable for a non-JSON body
        """
        kind = error_for_http_status(status)
        if kind is not None:
            raise kind(
                f"{self.exchange} {status} {body}",
                exchange=self.exchange,
                http_status=status,
                body=body
            )
        if payload is None:
            raise ExchangeNotAvailable(
                f"{self.exchange} returned a non-JSON reply: {body[:200]}",
                exchange=self.exchange,
                http_status=status,
                body=body
            )
