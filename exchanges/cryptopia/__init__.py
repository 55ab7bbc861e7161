"""
Cryptopia Exchange Connector

Implements ExchangeInterface for the Cryptopia spot API.

API Documentation:
    https://support.cryptopia.co.nz/csm?id=kb_article&sys_id=a75703dcdbb9130084ed147a3a9619bc (public)
    https://support.cryptopia.co.nz/csm?id=kb_article&sys_id=40e9c310dbf9130084ed147a3a9619eb (private)

Endpoints Used:
    Public:  GetTradePairs, GetCurrencies, GetMarket/{id}, GetMarkets,
             GetMarketOrders/{id}, GetMarketOrderGroups/{ids},
             GetMarketHistory/{id}/{hours}
    Web:     Exchange/GetTradePairChart (candles)
    Private: GetBalance, SubmitTrade, CancelTrade, GetOpenOrders,
             GetTradeHistory, GetDepositAddress, SubmitWithdraw, GetTransactions

Order History:
    Cryptopia lists open orders only, so fetch_orders, fetch_closed_orders
    and fetch_order are emulated with the instance's OrderCache.
"""

from typing import Any, Dict, List, Optional

from core.errors import ExchangeError, InvalidOrder, NotSupported
from core.exchange_interface import ExchangeInterface
from core.schemas import (
    CLOSED,
    CANCELED,
    OHLCV,
    OPEN,
    Balances,
    Currency,
    DepositAddress,
    Market,
    Order,
    OrderBook,
    Ticker,
    Trade,
    Transaction,
    WithdrawalReceipt,
)
from core.utils.fields import filter_by_since_limit, safe_string, safe_value, sort_by_timestamp
from core.utils.time import milliseconds, seconds
from .api_client import CryptopiaAPIClient
from .parsers import (
    parse_balance,
    parse_currency,
    parse_deposit_address,
    parse_market,
    parse_ohlcv,
    parse_order,
    parse_order_book,
    parse_ticker,
    parse_trades,
    parse_transaction,
    resolve_market,
)

# SubmitTrade "Type" per (side, order type)
ORDER_ENDPOINTS = {
    ("buy", "limit"): "Buy",
    ("sell", "limit"): "Sell",
}

# Chart history windows in seconds, indexed by the dataRange parameter
CHART_DATA_RANGES = (86400, 172800, 604800, 1209600, 2592000, 7776000, 15552000)

MAX_ORDER_BOOK_SYMBOLS = 5


def data(response: Any, default: Any = None) -> Any:
    """Payload of a {"Success": true, "Data": ...} reply."""
    return safe_value(response, "Data", default)


class CryptopiaExchange(ExchangeInterface):
    """
    Cryptopia Exchange Connector

    Example:
        >>> async with CryptopiaExchange(api_key="...", secret="...") as exchange:
        ...     book = await exchange.fetch_order_book("DOT/BTC")

    Notes:
        - Limit orders only
        - Pair ids read BASE_QUOTE; payloads may also use the "BASE/QUOTE" label
        - fetch_order_books needs explicit symbols, 5 at most
    """

    # ============================================
    # Class Attributes
    # ============================================

    name = "cryptopia"

    capabilities = {
        "fetch_markets": True,
        "fetch_currencies": True,
        "fetch_ticker": True,
        "fetch_tickers": True,
        "fetch_order_book": True,
        "fetch_order_books": True,
        "fetch_ohlcv": True,
        "fetch_trades": True,
        "fetch_my_trades": True,
        "fetch_balance": True,
        "create_order": True,
        "create_market_order": False,
        "cancel_order": True,
        "fetch_order": "emulated",
        "fetch_orders": "emulated",
        "fetch_open_orders": True,
        "fetch_closed_orders": "emulated",
        "fetch_order_status": "emulated",
        "fetch_deposit_address": True,
        "withdraw": True,
        "fetch_deposits": True,
        "fetch_withdrawals": True,
        "fetch_transactions": False,
    }

    common_currencies = {
        "ACC": "AdCoin",
        "BAT": "BatCoin",
        "BEAN": "BITB",
        "BLZ": "BlazeCoin",
        "BTG": "Bitgem",
        "CAN": "CanYaCoin",
        "CAT": "Catcoin",
        "CC": "CCX",
        "CMT": "Comet",
        "EPC": "ExperienceCoin",
        "FCN": "Facilecoin",
        "FT": "Fabric Token",
        "FUEL": "FC2",
        "HAV": "Havecoin",
        "HC": "Harvest Masternode Coin",
        "HSR": "HC",
        "KARM": "KARMA",
        "LBTC": "LiteBitcoin",
        "LDC": "LADACoin",
        "MARKS": "Bitmark",
        "NET": "NetCoin",
        "PLC": "Polcoin",
        "RED": "RedCoin",
        "STC": "StopTrumpCoin",
        "QBT": "Cubits",
        "WRC": "WarCoin",
    }

    # Candle group size in minutes
    timeframes = {
        "15m": 15,
        "30m": 30,
        "1h": 60,
        "2h": 120,
        "4h": 240,
        "12h": 720,
        "1d": 1440,
        "1w": 10080,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        common_currencies: Optional[Dict[str, str]] = None,
        client: Optional[CryptopiaAPIClient] = None
    ):
        super().__init__(common_currencies)
        self.client = client or CryptopiaAPIClient(api_key, secret)

    # ============================================
    # Markets & Market Data
    # ============================================

    async def fetch_markets(self) -> List[Market]:
        response = await self.client.public("GetTradePairs")
        return [parse_market(raw, self.index) for raw in data(response, [])]

    async def fetch_currencies(self) -> List[Currency]:
        response = await self.client.public("GetCurrencies")
        return [parse_currency(raw, self.index) for raw in data(response, [])]

    async def fetch_ticker(self, symbol: str) -> Ticker:
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.public(f"GetMarket/{market.id}")
        return parse_ticker(data(response, {}), market)

    async def fetch_tickers(self, symbols: Optional[List[str]] = None) -> Dict[str, Ticker]:
        """
        Raises:
            ExchangeError: If the exchange lists a pair that is not loaded
        """
        await self.load_markets()
        response = await self.client.public("GetMarkets")
        result = {}
        for raw in data(response, []):
            market_id = raw["Label"].replace("/", "_")
            market = self.index.market_by_id(market_id)
            if market is None:
                raise ExchangeError(
                    f"cryptopia fetch_tickers returned unrecognized pair id {market_id}",
                    exchange=self.name
                )
            if symbols is None or market.symbol in symbols:
                result[market.symbol] = parse_ticker(raw, market)
        return result

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        await self.load_markets()
        path = f"GetMarketOrders/{self.market_id(symbol)}"
        if limit is not None:
            path += f"/{limit}"
        response = await self.client.public(path)
        return parse_order_book(data(response, {}), symbol)

    async def fetch_order_books(
        self,
        symbols: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> Dict[str, OrderBook]:
        """
        Order books of up to five markets in one request.

        Raises:
            ExchangeError: If no symbols or more than five are given
        """
        await self.load_markets()
        if not symbols:
            raise ExchangeError(
                f"cryptopia fetch_order_books requires the symbols argument "
                f"(up to {MAX_ORDER_BOOK_SYMBOLS} symbols)",
                exchange=self.name
            )
        if len(symbols) > MAX_ORDER_BOOK_SYMBOLS:
            raise ExchangeError(
                f"cryptopia fetch_order_books accepts {MAX_ORDER_BOOK_SYMBOLS} symbols at max",
                exchange=self.name
            )
        path = "GetMarketOrderGroups/" + "-".join(self.market_id(symbol) for symbol in symbols)
        if limit is not None:
            path += f"/{limit}"
        response = await self.client.public(path)
        result = {}
        for raw in data(response, []):
            market_id = safe_string(raw, "Market")
            market = resolve_market(self.index, market_id)
            symbol = market.symbol if market is not None else market_id
            result[symbol] = parse_order_book(raw, symbol)
        return result

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "15m",
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[OHLCV]:
        """
        Candles from the website chart endpoint.

        The endpoint takes a history window rather than a start time; the
        smallest window covering ``since`` is requested.
        """
        if timeframe not in self.timeframes:
            raise NotSupported(f"cryptopia does not support timeframe {timeframe}", exchange=self.name)
        data_range = 0
        if since is not None:
            elapsed = seconds() - since // 1000
            for i in range(1, len(CHART_DATA_RANGES)):
                if elapsed > CHART_DATA_RANGES[i]:
                    data_range = i
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.web("Exchange/GetTradePairChart", {
            "tradePairId": market.numeric_id,
            "dataRange": data_range,
            "dataGroup": self.timeframes[timeframe],
        })
        candles = safe_value(response, "Candle", [])
        volumes = safe_value(response, "Volume", [])
        result = [
            parse_ohlcv(candle, volumes[i] if i < len(volumes) else None)
            for i, candle in enumerate(candles)
        ]
        if since is not None:
            result = [candle for candle in result if candle[0] >= since]
        return result[:limit] if limit is not None else result

    async def fetch_trades(
        self,
        symbol: str,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        """Public trades of the last 24 hours, or of the hours elapsed since ``since``."""
        await self.load_markets()
        market = self.market(symbol)
        hours = 24
        if since is not None:
            hour = 1000 * 60 * 60
            hours = max(1, -(-(milliseconds() - since) // hour))
        response = await self.client.public(f"GetMarketHistory/{market.id}/{hours}")
        trades = sort_by_timestamp(parse_trades(data(response, []), self.index, market))
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
        await self.load_markets()
        request: Dict[str, Any] = {}
        market = None
        if symbol is not None:
            market = self.market(symbol)
            request["Market"] = market.id
        if limit is not None:
            request["Count"] = limit
        response = await self.client.private("GetTradeHistory", request)
        trades = sort_by_timestamp(parse_trades(data(response, []), self.index, market))
        return filter_by_since_limit(trades, since, limit)

    async def fetch_balance(self) -> Balances:
        await self.load_markets()
        response = await self.client.private("GetBalance")
        return parse_balance(data(response, []), self.index, info=response)

    # ============================================
    # Orders
    # ============================================

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
        Submit a limit order.

        An empty OrderId in the reply means the order filled immediately;
        it is returned as closed and not cached.
        """
        trade_type = ORDER_ENDPOINTS.get((side, type))
        if trade_type is None:
            raise InvalidOrder(f"cryptopia allows limit orders only, got {type} {side}", exchange=self.name)
        if price is None:
            raise InvalidOrder("cryptopia limit orders require a price", exchange=self.name)
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.private("SubmitTrade", {
            "Market": market.id,
            "Type": trade_type,
            "Rate": price,
            "Amount": amount,
            **(params or {}),
        })
        if not response:
            raise ExchangeError(f"cryptopia create_order returned unknown error: {response}", exchange=self.name)

        order_id = None
        filled = 0.0
        status = OPEN
        result = data(response, {})
        if isinstance(result, dict) and "OrderId" in result:
            if result["OrderId"]:
                order_id = str(result["OrderId"])
            else:
                filled = amount
                status = CLOSED
        order = Order(
            id=order_id,
            timestamp=milliseconds(),
            status=status,
            symbol=market.symbol,
            type=type,
            side=side,
            price=price,
            cost=price * amount,
            amount=amount,
            remaining=amount - filled,
            filled=filled,
            info=response,
        )
        self.logger.info(f"Placed cryptopia {type} {side} order {order_id or '(filled)'} on {symbol}")
        if order_id is None:
            return order
        return self._cache_order(order)

    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """
        Cancel an order.

        Cryptopia has no way to confirm the outcome; a successful reply
        marks the cached order canceled. The request runs under the order
        cache lock so a concurrent reconcile waits for the outcome.
        """
        await self.load_markets()
        id = str(id)
        async with self.orders.lock:
            response = await self.client.private("CancelTrade", {"Type": "Trade", "OrderId": id})
            cached = self.orders.mark_canceled(id)
        if cached is not None:
            return cached
        return Order(id=id, symbol=symbol, status=CANCELED, info=response)

    async def fetch_open_orders_listing(self, market: Optional[Market] = None) -> List[Order]:
        request = {}
        if market is not None:
            request["Market"] = market.id
        response = await self.client.private("GetOpenOrders", request)
        return [
            parse_order({**raw, "status": OPEN}, self.index, market)
            for raw in data(response, [])
        ]

    # ============================================
    # Funding
    # ============================================

    async def fetch_deposit_address(self, code: str) -> DepositAddress:
        await self.load_markets()
        currency = self.currency(code)
        response = await self.client.private("GetDepositAddress", {"Currency": currency.id})
        parsed = parse_deposit_address(data(response, {}))
        self.check_address(parsed["address"])
        return DepositAddress(currency=code, address=parsed["address"], tag=parsed["tag"], info=response)

    async def withdraw(
        self,
        code: str,
        amount: float,
        address: str,
        tag: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> WithdrawalReceipt:
        """The address must already be in the account's address book."""
        await self.load_markets()
        currency = self.currency(code)
        self.check_address(address)
        request = {"Currency": currency.id, "Amount": amount, "Address": address, **(params or {})}
        if tag:
            request["PaymentId"] = tag
        response = await self.client.private("SubmitWithdraw", request)
        self.logger.info(f"Requested cryptopia withdrawal of {amount} {code}")
        return WithdrawalReceipt(id=safe_string(response, "Data"), info=response)

    async def _fetch_transactions_by_type(
        self,
        type: str,
        code: Optional[str],
        since: Optional[int],
        limit: Optional[int]
    ) -> List[Transaction]:
        await self.load_markets()
        request = {"Type": "Deposit" if type == "deposit" else "Withdraw"}
        response = await self.client.private("GetTransactions", request)
        transactions = [parse_transaction(raw, self.index) for raw in data(response, [])]
        if code is not None:
            transactions = [t for t in transactions if t.currency == code]
        return filter_by_since_limit(sort_by_timestamp(transactions), since, limit)

    async def fetch_deposits(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        return await self._fetch_transactions_by_type("deposit", code, since, limit)

    async def fetch_withdrawals(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        return await self._fetch_transactions_by_type("withdrawal", code, since, limit)


__all__ = ["CryptopiaExchange", "CryptopiaAPIClient"]
