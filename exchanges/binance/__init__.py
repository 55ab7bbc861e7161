"""
Binance Exchange Connector

This module implements the ExchangeInterface for the Binance spot market.

Unlike Poloniex and Cryptopia, Binance keeps a full order history, so
fetch_order, fetch_orders and fetch_closed_orders are native calls. Most
order endpoints require a symbol.

API Documentation:
    https://github.com/binance-exchange/binance-official-api-docs/blob/master/rest-api.md

Endpoints Used:
    Public:
        - GET /api/v1/exchangeInfo - Markets and filters
        - GET /api/v1/ticker/24hr - 24h statistics
        - GET /api/v3/depth - Order book
        - GET /api/v1/aggTrades - Public trades
        - GET /api/v3/klines - Candles
    Signed:
        - GET /api/v3/account - Balances
        - POST /api/v3/order, DELETE /api/v3/order, GET /api/v3/order
        - GET /api/v3/openOrders, /api/v3/allOrders, /api/v3/myTrades
        - GET /wapi/v3/depositHistory.html, withdrawHistory.html, depositAddress.html
        - POST /wapi/v3/withdraw.html
"""

from typing import Any, Dict, List, Optional

from core.balance import WalletBalanceAggregator
from core.errors import InvalidAddress, InvalidOrder, NotSupported, OrderNotFound
from core.exchange_interface import ExchangeInterface
from core.schemas import (
    CLOSED,
    OHLCV,
    Balances,
    DepositAddress,
    Market,
    Order,
    OrderBook,
    Ticker,
    Trade,
    Transaction,
    WalletBalance,
    WithdrawalReceipt,
)
from core.utils.fields import filter_by_since_limit, safe_float, safe_string, safe_value, sort_by_timestamp
from .api_client import BinanceAPIClient
from .parsers import (
    parse_balance,
    parse_market,
    parse_ohlcv,
    parse_order,
    parse_order_book,
    parse_ticker,
    parse_trades,
    parse_transaction,
)

# Parameters each order type requires
ORDER_TYPE_REQUIREMENTS = {
    "LIMIT": {"price": True, "time_in_force": True, "stop_price": False},
    "MARKET": {"price": False, "time_in_force": False, "stop_price": False},
    "STOP_LOSS": {"price": False, "time_in_force": False, "stop_price": True},
    "TAKE_PROFIT": {"price": False, "time_in_force": False, "stop_price": True},
    "STOP_LOSS_LIMIT": {"price": True, "time_in_force": True, "stop_price": True},
    "TAKE_PROFIT_LIMIT": {"price": True, "time_in_force": True, "stop_price": True},
    "LIMIT_MAKER": {"price": True, "time_in_force": False, "stop_price": False},
}

# ACK (id only), RESULT (order) or FULL (order with fills)
NEW_ORDER_RESPONSE_TYPES = {
    "market": "FULL",
    "limit": "RESULT",
}

DEFAULT_TIME_IN_FORCE = "GTC"

# Depth sizes accepted by /api/v3/depth
ORDER_BOOK_LIMITS = (5, 10, 20, 50, 100, 500, 1000, 5000)

KLINES_PER_REQUEST = 500

AGG_TRADES_WINDOW = 3600000


class BinanceExchange(ExchangeInterface):
    """
    Binance Spot Exchange Connector

    Attributes:
        name: Exchange identifier ("binance")
        capabilities: Dictionary of supported features
        adjust_for_time_difference: Measure the server clock offset on market load

    Example:
        >>> async with BinanceExchange(api_key="...", secret="...") as exchange:
        ...     order = await exchange.create_order("ETH/BTC", "limit", "buy", 1.0, 0.05)
        ...     order = await exchange.fetch_order(order.id, "ETH/BTC")

    Notes:
        - BCC stays BCC (not remapped to BCH)
        - Order lookups, cancels and account trades require a symbol
    """

    # ============================================
    # Class Attributes
    # ============================================

    name = "binance"

    capabilities = {
        "fetch_markets": True,
        "fetch_currencies": False,
        "fetch_ticker": True,
        "fetch_tickers": True,
        "fetch_order_book": True,
        "fetch_ohlcv": True,
        "fetch_trades": True,
        "fetch_my_trades": True,
        "fetch_balance": True,
        "fetch_wallet_balance": True,
        "create_order": True,
        "create_market_order": True,
        "cancel_order": True,
        "fetch_order": True,
        "fetch_orders": True,
        "fetch_open_orders": True,
        "fetch_closed_orders": True,
        "fetch_order_status": True,
        "fetch_deposit_address": True,
        "withdraw": True,
        "fetch_deposits": True,
        "fetch_withdrawals": True,
        "fetch_transactions": False,
    }

    common_currencies = {
        "BCC": "BCC",
        "YOYO": "YOYOW",
    }

    timeframes = {
        timeframe: timeframe
        for timeframe in (
            "1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h",
            "6h", "8h", "12h", "1d", "3d", "1w", "1M",
        )
    }

    # ============================================
    # Initialization
    # ============================================

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        common_currencies: Optional[Dict[str, str]] = None,
        client: Optional[BinanceAPIClient] = None,
        adjust_for_time_difference: bool = False
    ):
        """
        Args:
            api_key: Binance API key (defaults to settings)
            secret: Binance secret key (defaults to settings)
            common_currencies: Extra currency renames layered over the defaults
            client: Preconfigured API client
            adjust_for_time_difference: Sync the signing clock with the server
        """
        super().__init__(common_currencies)
        self.client = client or BinanceAPIClient(api_key, secret)
        self.adjust_for_time_difference = adjust_for_time_difference

    # ============================================
    # Markets & Market Data
    # ============================================

    async def fetch_markets(self) -> List[Market]:
        response = await self.client.public("/api/v1/exchangeInfo")
        if self.adjust_for_time_difference:
            await self.client.load_time_difference()
        markets = []
        for raw in safe_value(response, "symbols", []):
            # "123456" is a test market
            if raw.get("symbol") == "123456":
                continue
            markets.append(parse_market(raw, self.index))
        return markets

    async def fetch_ticker(self, symbol: str) -> Ticker:
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.public("/api/v1/ticker/24hr", {"symbol": market.id})
        return parse_ticker(response, self.index, market)

    async def fetch_tickers(self, symbols: Optional[List[str]] = None) -> Dict[str, Ticker]:
        await self.load_markets()
        response = await self.client.public("/api/v1/ticker/24hr")
        result = {}
        for raw in response or []:
            ticker = parse_ticker(raw, self.index)
            if ticker.symbol is not None and (symbols is None or ticker.symbol in symbols):
                result[ticker.symbol] = ticker
        return result

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        """The depth endpoint only accepts fixed sizes; the next size up is fetched and trimmed."""
        await self.load_markets()
        market = self.market(symbol)
        request: Dict[str, Any] = {"symbol": market.id}
        if limit is not None:
            request["limit"] = next((size for size in ORDER_BOOK_LIMITS if size >= limit), ORDER_BOOK_LIMITS[-1])
        response = await self.client.public("/api/v3/depth", request)
        return parse_order_book(response, market.symbol, limit)

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1m",
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[OHLCV]:
        """
        Fetch candles, paging forward from ``since`` until ``limit`` candles
        are collected or the history runs out.
        """
        if timeframe not in self.timeframes:
            raise NotSupported(f"binance does not support timeframe {timeframe}", exchange=self.name)
        await self.load_markets()
        market = self.market(symbol)
        candles: List[OHLCV] = []
        start = since
        while True:
            request: Dict[str, Any] = {"symbol": market.id, "interval": self.timeframes[timeframe]}
            if start is not None:
                request["startTime"] = start
            batch_size = min(limit - len(candles), KLINES_PER_REQUEST) if limit is not None else None
            if batch_size is not None:
                request["limit"] = batch_size
            response = await self.client.public("/api/v3/klines", request)
            batch = [parse_ohlcv(raw) for raw in response or []]
            candles.extend(batch)
            if batch_size is None or not batch or len(batch) < batch_size or len(candles) >= limit:
                break
            start = batch[-1][0] + 1
        return candles[:limit] if limit is not None else candles

    async def fetch_trades(
        self,
        symbol: str,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        """Aggregate trades; with ``since`` the one-hour window starting there."""
        await self.load_markets()
        market = self.market(symbol)
        request: Dict[str, Any] = {"symbol": market.id}
        if since is not None:
            request["startTime"] = since
            request["endTime"] = since + AGG_TRADES_WINDOW
        if limit is not None:
            request["limit"] = limit
        response = await self.client.public("/api/v1/aggTrades", request)
        trades = sort_by_timestamp(parse_trades(response, self.index, market))
        return filter_by_since_limit(trades, since, limit)

    # ============================================
    # Account
    # ============================================

    async def fetch_my_trades(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        self.check_required_symbol("fetch_my_trades", symbol)
        await self.load_markets()
        market = self.market(symbol)
        request: Dict[str, Any] = {"symbol": market.id}
        if limit is not None:
            request["limit"] = limit
        response = await self.client.private("GET", "/api/v3/myTrades", request)
        trades = sort_by_timestamp(parse_trades(response, self.index, market))
        return filter_by_since_limit(trades, since, limit)

    async def fetch_balance(self) -> Balances:
        await self.load_markets()
        response = await self.client.private("GET", "/api/v3/account")
        return parse_balance(response, self.index)

    async def fetch_wallet_balance(self) -> Dict[str, Dict[str, WalletBalance]]:
        """Exchange-wallet balances (free -> available, locked -> on_orders); zero rows skipped."""
        await self.load_markets()
        response = await self.client.private("GET", "/api/v3/account")
        aggregator = WalletBalanceAggregator()
        for balance in safe_value(response, "balances", []):
            free = safe_float(balance, "free", 0.0)
            locked = safe_float(balance, "locked", 0.0)
            if free + locked == 0:
                continue
            code = self.common_currency_code(balance["asset"])
            aggregator.add_available(code, "exchange", free)
            aggregator.add_on_orders(code, "exchange", locked)
        return aggregator.finalize()

    # ============================================
    # Orders
    # ============================================

    def _order_id(self, id: str) -> int:
        """
        Binance order ids are integers.

        Raises:
            OrderNotFound: If the id is not numeric
        """
        try:
            return int(id)
        except (TypeError, ValueError):
            raise OrderNotFound(f"binance order id {id!r} is not numeric", exchange=self.name) from None

    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Order:
        """
        Place an order.

        Extra params: ``stopPrice`` for stop orders, ``test=True`` to hit the
        test endpoint (validated, never executed).

        Raises:
            InvalidOrder: For an unknown order type or a missing price / stopPrice
        """
        params = dict(params or {})
        order_type = type.upper()
        requirements = ORDER_TYPE_REQUIREMENTS.get(order_type)
        if requirements is None:
            raise InvalidOrder(f"binance does not support {type} orders", exchange=self.name)
        await self.load_markets()
        market = self.market(symbol)
        path = "/api/v3/order/test" if params.pop("test", False) else "/api/v3/order"
        request: Dict[str, Any] = {
            "symbol": market.id,
            "quantity": self.amount_to_precision(symbol, amount),
            "type": order_type,
            "side": side.upper(),
            "newOrderRespType": NEW_ORDER_RESPONSE_TYPES.get(type.lower(), "RESULT"),
        }
        if requirements["price"]:
            if price is None:
                raise InvalidOrder(
                    f"binance create_order requires a price argument for a {type} order",
                    exchange=self.name
                )
            request["price"] = self.price_to_precision(symbol, price)
        if requirements["time_in_force"]:
            request["timeInForce"] = DEFAULT_TIME_IN_FORCE
        if requirements["stop_price"]:
            stop_price = safe_float(params, "stopPrice")
            if stop_price is None:
                raise InvalidOrder(
                    f"binance create_order requires a stopPrice extra param for a {type} order",
                    exchange=self.name
                )
            params.pop("stopPrice")
            request["stopPrice"] = self.price_to_precision(symbol, stop_price)
        response = await self.client.private("POST", path, {**request, **params})
        order = parse_order(response, self.index, market)
        self.logger.info(f"Placed binance {type} {side} order {order.id} on {symbol}")
        return self._cache_order(order)

    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> Order:
        self.check_required_symbol("cancel_order", symbol)
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.private("DELETE", "/api/v3/order", {
            "symbol": market.id,
            "orderId": self._order_id(id),
        })
        self.orders.mark_canceled(str(id))
        return parse_order(response, self.index, market)

    async def fetch_order(self, id: str, symbol: Optional[str] = None) -> Order:
        self.check_required_symbol("fetch_order", symbol)
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.private("GET", "/api/v3/order", {
            "symbol": market.id,
            "orderId": self._order_id(id),
        })
        return parse_order(response, self.index, market)

    async def fetch_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        self.check_required_symbol("fetch_orders", symbol)
        await self.load_markets()
        market = self.market(symbol)
        request: Dict[str, Any] = {"symbol": market.id}
        if since is not None:
            request["startTime"] = since
        if limit is not None:
            request["limit"] = limit
        response = await self.client.private("GET", "/api/v3/allOrders", request)
        orders = [parse_order(raw, self.index, market) for raw in response or []]
        return filter_by_since_limit(sort_by_timestamp(orders), since, limit)

    async def fetch_open_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        await self.load_markets()
        market = None
        request = {}
        if symbol is not None:
            market = self.market(symbol)
            request["symbol"] = market.id
        else:
            self.logger.warning("binance fetch_open_orders without a symbol is rate-limited heavily")
        response = await self.client.private("GET", "/api/v3/openOrders", request)
        orders = [parse_order(raw, self.index, market) for raw in response or []]
        return filter_by_since_limit(sort_by_timestamp(orders), since, limit)

    async def fetch_closed_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        orders = await self.fetch_orders(symbol, since, limit)
        return [order for order in orders if order.status == CLOSED]

    # ============================================
    # Funding
    # ============================================

    async def fetch_deposit_address(self, code: str) -> DepositAddress:
        """
        Raises:
            InvalidAddress: If no deposit address was created for the asset yet
        """
        await self.load_markets()
        currency = self.currency(code)
        response = await self.client.private("GET", "/wapi/v3/depositAddress.html", {"asset": currency.id})
        if not safe_value(response, "success"):
            raise InvalidAddress(
                "binance fetch_deposit_address returned an empty response, "
                "create the deposit address in the user settings first",
                exchange=self.name
            )
        address = self.check_address(safe_string(response, "address"))
        return DepositAddress(
            currency=code,
            address=address,
            tag=safe_string(response, "addressTag"),
            info=response,
        )

    async def withdraw(
        self,
        code: str,
        amount: float,
        address: str,
        tag: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> WithdrawalReceipt:
        self.check_address(address)
        await self.load_markets()
        currency = self.currency(code)
        request: Dict[str, Any] = {
            "asset": currency.id,
            "address": address,
            "amount": float(amount),
            "name": address[:20],
            **(params or {}),
        }
        if tag is not None:
            request["addressTag"] = tag
        response = await self.client.private("POST", "/wapi/v3/withdraw.html", request)
        self.logger.info(f"Requested binance withdrawal of {amount} {code}")
        return WithdrawalReceipt(id=safe_string(response, "id"), info=response)

    async def _fetch_history(
        self,
        path: str,
        key: str,
        type: str,
        code: Optional[str],
        since: Optional[int],
        limit: Optional[int]
    ) -> List[Transaction]:
        await self.load_markets()
        request: Dict[str, Any] = {}
        if code is not None:
            request["asset"] = self.currency(code).id
        if since is not None:
            request["startTime"] = since
        response = await self.client.private("GET", path, request)
        transactions = [parse_transaction(raw, self.index, type) for raw in safe_value(response, key, [])]
        return filter_by_since_limit(sort_by_timestamp(transactions), since, limit)

    async def fetch_deposits(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        return await self._fetch_history("/wapi/v3/depositHistory.html", "depositList", "deposit", code, since, limit)

    async def fetch_withdrawals(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        return await self._fetch_history(
            "/wapi/v3/withdrawHistory.html", "withdrawList", "withdrawal", code, since, limit
        )


__all__ = ["BinanceExchange", "BinanceAPIClient"]
