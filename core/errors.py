"""
Exchange Error Taxonomy

Every failure raised by this library is one of the classes below. Callers
catch by family (``ExchangeError`` for business errors reported by the
exchange or detected locally, ``NetworkError`` for transport-level trouble)
or by the specific kind.

Hierarchy:
    BaseError
    ├── ExchangeError
    │   ├── AuthenticationError
    │   │   ├── PermissionDenied
    │   │   └── AccountSuspended
    │   ├── InsufficientFunds
    │   ├── InvalidOrder
    │   │   ├── OrderNotFound
    │   │   │   └── OrderNotCached
    │   │   └── CancelPending
    │   ├── InvalidAddress
    │   ├── ArgumentsRequired
    │   ├── BadSymbol
    │   └── NotSupported
    └── NetworkError
        ├── DDoSProtection
        ├── RequestTimeout
        ├── ExchangeNotAvailable
        └── InvalidNonce

Exchanges report business errors as free-form text inside a 200 response.
``ErrorClassifier`` maps that text onto the hierarchy with two tables:
an exact table (full message match) and an ordered broad table (substring
match, first hit wins).

Usage:
    from core.errors import ErrorClassifier, InsufficientFunds, InvalidOrder

    classifier = ErrorClassifier(
        exact={"Permission denied.": PermissionDenied},
        broad={"Not enough": InsufficientFunds},
    )
    classifier.raise_for("Not enough BTC.", feedback="poloniex {...}")
"""

from typing import Dict, Mapping, Optional, Tuple, Type, Union


class BaseError(Exception):
    """
    Root of all errors raised by the library.

    Attributes:
        message: Human readable error text (the raw exchange text when known)
        exchange: Exchange identifier that produced the error, if any
        http_status: HTTP status of the response that triggered the error
        body: Raw response body that triggered the error
    """

    def __init__(
        self,
        message: str = "",
        exchange: Optional[str] = None,
        http_status: Optional[int] = None,
        body: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.exchange = exchange
        self.http_status = http_status
        self.body = body


# ============================================
# Business Errors
# ============================================

class ExchangeError(BaseError):
    """Catch-all for errors reported by an exchange or detected locally."""


class AuthenticationError(ExchangeError):
    pass


class PermissionDenied(AuthenticationError):
    pass


class AccountSuspended(AuthenticationError):
    pass


class InsufficientFunds(ExchangeError):
    pass


class InvalidOrder(ExchangeError):
    pass


class OrderNotFound(InvalidOrder):
    pass


class OrderNotCached(OrderNotFound):
    """The order was never observed by this client, so it cannot be looked up locally."""


class CancelPending(InvalidOrder):
    """A cancel (or move) was already requested for the order."""


class InvalidAddress(ExchangeError):
    pass


class ArgumentsRequired(ExchangeError):
    pass


class BadSymbol(ExchangeError):
    pass


class NotSupported(ExchangeError):
    pass


# ============================================
# Network Errors
# ============================================

class NetworkError(BaseError):
    """Transport-level failure; the request may or may not have reached the exchange."""


class DDoSProtection(NetworkError):
    pass


class RequestTimeout(NetworkError):
    pass


class ExchangeNotAvailable(NetworkError):
    pass


class InvalidNonce(NetworkError):
    pass


ErrorKind = Type[BaseError]


# ============================================
# Message Classification
# ============================================

class ErrorClassifier:
    """
    Two-tier classifier mapping exchange error text onto the hierarchy.

    Attributes:
        exact: Message (or error code rendered as a string) -> error class
        broad: Ordered (substring, error class) pairs; the first substring
            contained in the message wins

    Example:
        >>> classifier = ErrorClassifier(broad={"Not enough": InsufficientFunds})
        >>> classifier.classify("Not enough BTC.")
        <class 'core.errors.InsufficientFunds'>
        >>> classifier.classify("Something else")
        <class 'core.errors.ExchangeError'>
    """

    def __init__(
        self,
        exact: Optional[Mapping[str, ErrorKind]] = None,
        broad: Optional[Union[Mapping[str, ErrorKind], Tuple[Tuple[str, ErrorKind], ...]]] = None
    ):
        self.exact: Dict[str, ErrorKind] = dict(exact or {})
        if isinstance(broad, Mapping):
            broad = tuple(broad.items())
        self.broad: Tuple[Tuple[str, ErrorKind], ...] = tuple(broad or ())

    def find_broad_key(self, message: str) -> Optional[str]:
        """First broad substring contained in ``message``, in table order."""
        for key, _ in self.broad:
            if key in message:
                return key
        return None

    def lookup(self, message: Optional[str]) -> Optional[ErrorKind]:
        """
        Return the mapped error class for a message, or None when unmapped.

        Exact matches take priority over broad ones.
        """
        if message is None:
            return None
        if message in self.exact:
            return self.exact[message]
        key = self.find_broad_key(message)
        if key is None:
            return None
        return next(kind for broad_key, kind in self.broad if broad_key == key)

    def classify(self, message: Optional[str]) -> ErrorKind:
        return self.lookup(message) or ExchangeError

    def raise_for(
        self,
        message: Optional[str],
        feedback: Optional[str] = None,
        exchange: Optional[str] = None,
        http_status: Optional[int] = None,
        body: Optional[str] = None
    ) -> None:
        """
        Raise the classified error for ``message``.

        Args:
            message: Error text reported by the exchange
            feedback: Text carried by the raised error (defaults to message)
            exchange: Exchange identifier
            http_status: HTTP status of the response
            body: Raw response body

        Raises:
            BaseError: Always; the class depends on the tables
        """
        kind = self.classify(message)
        raise kind(
            feedback if feedback is not None else (message or ""),
            exchange=exchange,
            http_status=http_status,
            body=body
        )


# ============================================
# HTTP Status Classification
# ============================================

def error_for_http_status(status: int) -> Optional[ErrorKind]:
    """
    Map an HTTP status code onto the hierarchy.

    Returns:
        The error class for a failing status, or None for a successful one

    Example:
        >>> error_for_http_status(429)
        <class 'core.errors.DDoSProtection'>
        >>> error_for_http_status(200) is None
        True
    """
    if status in (418, 429):
        return DDoSProtection
    if status == 401:
        return AuthenticationError
    if status == 403:
        return PermissionDenied
    if status in (408, 504):
        return RequestTimeout
    if status >= 500:
        return ExchangeNotAvailable
    if status >= 400:
        return ExchangeError
    return None
