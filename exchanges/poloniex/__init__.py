"""
Poloniex Exchange Connector

Implements ExchangeInterface for the Poloniex spot, margin and lending APIs.

API Documentation:
    https://docs.poloniex.com

Endpoints Used:
    Public (GET /public?command=...):
        - returnTicker, returnCurrencies, returnOrderBook, returnTradeHistory,
          returnChartData, returnLoanOrders
    Trading (POST /tradingApi):
        - buy, sell, marginBuy, marginSell, moveOrder, cancelOrder,
          cancelAllOrders, returnOpenOrders, returnOrderStatus,
          returnOrderTrades, returnTradeHistory
        - returnCompleteBalances, returnAvailableAccountBalances,
          returnFeeInfo, transferBalance
        - generateNewAddress, returnDepositAddresses, withdraw,
          returnDepositsWithdrawals
        - createLoanOffer, cancelLoanOffer, returnOpenLoanOffers,
          returnActiveLoans, returnLendingHistory

Order History:
    Poloniex only lists open orders and can only look up an order by id
    while it is open. Full order history is therefore emulated with the
    instance's OrderCache: fetch_orders, fetch_closed_orders, fetch_order and
    fetch_order_status only know about orders this instance has placed or
    seen open.
"""

from typing import Any, Dict, List, Optional

from core.balance import WalletBalanceAggregator
from core.errors import CancelPending, ExchangeError, InvalidOrder, NotSupported, OrderNotFound
from core.exchange_interface import ExchangeInterface
from core.schemas import (
    CANCELED,
    OHLCV,
    OPEN,
    WALLET_TYPES,
    Balances,
    Currency,
    DepositAddress,
    Fee,
    LoanBookEntry,
    LoanOffer,
    Market,
    Order,
    OrderBook,
    Ticker,
    Trade,
    TradingFees,
    Transaction,
    WalletBalance,
    WithdrawalReceipt,
)
from core.utils.fields import filter_by_since_limit, safe_float, safe_string, safe_value, sort_by_timestamp
from core.utils.precision import TRUNCATE
from core.utils.time import milliseconds, seconds
from .api_client import PoloniexAPIClient
from .parsers import (
    parse_balance,
    parse_currency,
    parse_lending_history,
    parse_loan_offer,
    parse_market,
    parse_ohlcv,
    parse_open_orders,
    parse_order,
    parse_order_book,
    parse_ticker,
    parse_trade,
    parse_trades,
    parse_transaction,
    resolve_symbol,
)

# Trading command per (side, order type)
ORDER_ENDPOINTS = {
    ("buy", "limit"): "buy",
    ("sell", "limit"): "sell",
    ("buy", "margin_limit"): "marginBuy",
    ("sell", "margin_limit"): "marginSell",
}

# Currencies that can be lent on the margin lending market (exchange ids)
LENDING_CURRENCIES = (
    "BTC", "BTS", "CLAM", "DOGE", "DASH", "LTC", "MAID", "STR", "USDT", "XMR",
    "XRP", "ETH", "FCT", "ETC", "EOS", "USDC", "BCHABC", "BCHSV", "ATOM",
)

# Share of lending earnings kept by Poloniex
LENDING_FEE_RATE = 0.02

# 60 * 60 * 24 * 30 * 12
YEAR = 31104000


def as_dict(value: Any) -> Dict[str, Any]:
    """Poloniex replies [] instead of {} when a keyed result is empty."""
    return value if isinstance(value, dict) else {}


class PoloniexExchange(ExchangeInterface):
    """
    Poloniex Exchange Connector

    Attributes:
        name: Exchange identifier ("poloniex")
        capabilities: Supported features; order history is "emulated"
        client: PoloniexAPIClient used for all requests

    Example:
        >>> async with PoloniexExchange(api_key="...", secret="...") as exchange:
        ...     order = await exchange.create_order("ETH/BTC", "limit", "buy", 1.0, 0.05)
        ...     closed = await exchange.fetch_closed_orders("ETH/BTC")

    Notes:
        - Only limit orders are accepted (plus margin_limit on margin)
        - Pair ids read QUOTE_BASE; symbols are BASE/QUOTE
        - STR is exposed as XLM, BCC as BTCtalkcoin
    """

    # ============================================
    # Class Attributes
    # ============================================

    name = "poloniex"

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
        "fetch_wallet_balance": True,
        "fetch_trading_fees": True,
        "create_order": True,
        "create_market_order": False,
        "edit_order": True,
        "cancel_order": True,
        "cancel_all_orders": True,
        "fetch_order": "emulated",
        "fetch_orders": "emulated",
        "fetch_open_order": True,
        "fetch_open_orders": True,
        "fetch_closed_orders": "emulated",
        "fetch_order_status": "emulated",
        "fetch_order_trades": True,
        "create_deposit_address": True,
        "fetch_deposit_address": True,
        "withdraw": True,
        "fetch_deposits": True,
        "fetch_withdrawals": True,
        "fetch_transactions": True,
        "fetch_lending_symbols": True,
        "fetch_loan_balance": True,
        "fetch_loan_book": True,
        "fetch_loan_books": True,
        "fetch_open_loans": True,
        "fetch_active_loans": True,
        "fetch_loans_history": True,
        "create_loan_order": True,
        "cancel_loan_order": True,
        "transfer_balance": True,
    }

    common_currencies = {
        "AIR": "AirCoin",
        "APH": "AphroditeCoin",
        "BCC": "BTCtalkcoin",
        "BDG": "Badgercoin",
        "BTM": "Bitmark",
        "CON": "Coino",
        "GOLD": "GoldEagles",
        "GPUC": "GPU",
        "HOT": "Hotcoin",
        "ITC": "Information Coin",
        "PLX": "ParallaxCoin",
        "KEY": "KEYCoin",
        "STR": "XLM",
        "SOC": "SOCC",
        "XAP": "API Coin",
    }

    # Candle period in seconds
    timeframes = {
        "5m": 300,
        "15m": 900,
        "30m": 1800,
        "2h": 7200,
        "4h": 14400,
        "1d": 86400,
    }

    amount_rounding = TRUNCATE
    price_rounding = TRUNCATE

    # ============================================
    # Initialization
    # ============================================

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret: Optional[str] = None,
        common_currencies: Optional[Dict[str, str]] = None,
        client: Optional[PoloniexAPIClient] = None
    ):
        """
        Args:
            api_key: Poloniex API key (defaults to settings)
            secret: Poloniex API secret (defaults to settings)
            common_currencies: Extra currency renames layered over the defaults
            client: Preconfigured API client
        """
        super().__init__(common_currencies)
        self.client = client or PoloniexAPIClient(api_key, secret)

    # ============================================
    # Markets & Market Data
    # ============================================

    async def fetch_markets(self) -> List[Market]:
        response = await self.client.public("returnTicker")
        return [parse_market(market_id, raw, self.index) for market_id, raw in as_dict(response).items()]

    async def fetch_currencies(self) -> List[Currency]:
        response = await self.client.public("returnCurrencies")
        return [parse_currency(currency_id, raw, self.index) for currency_id, raw in as_dict(response).items()]

    async def fetch_ticker(self, symbol: str) -> Ticker:
        await self.load_markets()
        market = self.market(symbol)
        response = await self.client.public("returnTicker")
        raw = as_dict(response).get(market.id)
        if raw is None:
            raise ExchangeError(f"poloniex returned no ticker for {symbol}", exchange=self.name)
        return parse_ticker(raw, market.symbol)

    async def fetch_tickers(self, symbols: Optional[List[str]] = None) -> Dict[str, Ticker]:
        await self.load_markets()
        response = await self.client.public("returnTicker")
        result = {}
        for market_id, raw in as_dict(response).items():
            symbol = resolve_symbol(self.index, market_id)
            if symbols is None or symbol in symbols:
                result[symbol] = parse_ticker(raw, symbol)
        return result

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        await self.load_markets()
        request = {"currencyPair": self.market_id(symbol)}
        if limit is not None:
            request["depth"] = limit
        response = await self.client.public("returnOrderBook", request)
        return parse_order_book(response, symbol)

    async def fetch_order_books(
        self,
        symbols: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> Dict[str, OrderBook]:
        await self.load_markets()
        request = {"currencyPair": "all"}
        if limit is not None:
            request["depth"] = limit
        response = await self.client.public("returnOrderBook", request)
        result = {}
        for market_id, raw in as_dict(response).items():
            symbol = resolve_symbol(self.index, market_id)
            if symbols is None or symbol in symbols:
                result[symbol] = parse_order_book(raw, symbol)
        return result

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "5m",
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[OHLCV]:
        """
        Fetch candles from returnChartData.

        Without ``limit`` the range runs from ``since`` (default: epoch) to now.
        """
        if timeframe not in self.timeframes:
            raise NotSupported(f"poloniex does not support timeframe {timeframe}", exchange=self.name)
        await self.load_markets()
        market = self.market(symbol)
        period = self.timeframes[timeframe]
        start = (since or 0) // 1000
        end = start + limit * period if limit is not None else seconds() + 1
        response = await self.client.public("returnChartData", {
            "currencyPair": market.id,
            "period": period,
            "start": start,
            "end": end,
        })
        candles = [parse_ohlcv(raw) for raw in response or []]
        if since is not None:
            candles = [candle for candle in candles if candle[0] is not None and candle[0] >= since]
        return candles[:limit] if limit is not None else candles

    async def fetch_trades(
        self,
        symbol: str,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        await self.load_markets()
        market = self.market(symbol)
        request = {"currencyPair": market.id}
        if since is not None:
            request["start"] = since // 1000
            request["end"] = seconds()
        response = await self.client.public("returnTradeHistory", request)
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
        """
        Fetch account trades for one market or, without a symbol, for all
        markets (delisted pairs included).
        """
        await self.load_markets()
        market = self.market(symbol) if symbol is not None else None
        request: Dict[str, Any] = {"currencyPair": market.id if market else "all"}
        if since is not None:
            request["start"] = since // 1000
            request["end"] = seconds() + 1
        if limit is not None:
            request["limit"] = int(limit)
        response = await self.client.private("returnTradeHistory", request)

        if market is not None:
            trades = parse_trades(response, self.index, market)
        else:
            trades = []
            for market_id, raws in as_dict(response).items():
                trades.extend(
                    parse_trade({**raw, "currencyPair": market_id}, self.index)
                    for raw in raws
                )
        return filter_by_since_limit(sort_by_timestamp(trades), since, limit)

    async def fetch_balance(self) -> Balances:
        await self.load_markets()
        response = await self.client.private("returnCompleteBalances", {"account": "all"})
        return parse_balance(as_dict(response), self.index)

    async def fetch_wallet_balance(self) -> Dict[str, Dict[str, WalletBalance]]:
        """
        Per-asset balances of the exchange, margin and lending wallets.

        available comes from returnAvailableAccountBalances; on_orders from
        the exchange-wallet onOrders of returnCompleteBalances and from open
        loan offers plus active loans for the lending wallet.
        """
        await self.load_markets()
        self.logger.info("Fetching poloniex wallet balances")
        available = await self.client.private("returnAvailableAccountBalances")
        complete = await self.client.private("returnCompleteBalances")
        open_loans = await self.fetch_open_loans()
        active_loans = await self.fetch_active_loans()

        aggregator = WalletBalanceAggregator()
        for wallet, balances in as_dict(available).items():
            for currency_id, amount in as_dict(balances).items():
                aggregator.add_available(self.common_currency_code(currency_id), wallet, float(amount))
        for currency_id, balance in as_dict(complete).items():
            on_orders = safe_float(balance, "onOrders", 0.0)
            if on_orders:
                aggregator.add_on_orders(self.common_currency_code(currency_id), "exchange", on_orders)
        for loan in open_loans + active_loans:
            aggregator.add_on_orders(loan.symbol, "lending", loan.amount or 0.0)
        return aggregator.finalize()

    async def fetch_trading_fees(self) -> TradingFees:
        await self.load_markets()
        response = await self.client.private("returnFeeInfo")
        return TradingFees(
            maker=safe_float(response, "makerFee"),
            taker=safe_float(response, "takerFee"),
            info=response,
        )

    def calculate_fee(
        self,
        symbol: str,
        side: str,
        amount: float,
        price: float,
        taker_or_maker: str = "taker"
    ) -> Fee:
        """
        Estimate the fee of an order: in quote for a sell, in base for a buy.
        """
        market = self.market(symbol)
        rate = market.taker if taker_or_maker == "taker" else market.maker
        cost = float(self.cost_to_precision(symbol, amount * (rate or 0.0)))
        if side == "sell":
            cost *= price
            currency = market.quote
        else:
            currency = market.base
        return Fee(
            type=taker_or_maker,
            currency=currency,
            rate=rate,
            cost=float(self.fee_to_precision(symbol, cost)),
        )

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
        Place a limit (or margin_limit) order and cache it as open.

        Raises:
            InvalidOrder: For market orders or a missing price
        """
        command = ORDER_ENDPOINTS.get((side, type))
        if command is None:
            raise InvalidOrder(
                f"poloniex allows limit orders only, got {type} {side}",
                exchange=self.name
            )
        if price is None:
            raise InvalidOrder(f"poloniex {type} orders require a price", exchange=self.name)
        await self.load_markets()
        market = self.market(symbol)
        request = {
            "currencyPair": market.id,
            "rate": self.price_to_precision(symbol, price),
            "amount": self.amount_to_precision(symbol, amount),
            **(params or {}),
        }
        response = await self.client.private(command, request)
        order = parse_order({
            "timestamp": milliseconds(),
            "status": OPEN,
            "type": type,
            "side": side,
            "price": price,
            "amount": amount,
            **as_dict(response),
        }, self.index, market)
        self.logger.info(f"Placed poloniex {type} {side} order {order.id} on {symbol}")
        return self._cache_order(order)

    async def edit_order(
        self,
        id: str,
        symbol: str,
        type: str,
        side: str,
        amount: Optional[float] = None,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Order:
        """
        Move an order to a new price (and optionally amount) with moveOrder.

        Poloniex cancels the old order and opens a new one with a new id;
        the cache records the old id as canceled and the new one as open.
        """
        if price is None:
            raise InvalidOrder("poloniex edit_order requires a price", exchange=self.name)
        await self.load_markets()
        id = str(id)
        request = {"orderNumber": id, "rate": self.price_to_precision(symbol, price), **(params or {})}
        if amount is not None:
            request["amount"] = self.amount_to_precision(symbol, amount)
        async with self.orders.lock:
            response = as_dict(await self.client.private("moveOrder", request))
            cached = self.orders.get(id)
            if cached is not None:
                self.orders.mark_canceled(id)
        new_id = safe_string(response, "orderNumber")

        if cached is not None:
            update: Dict[str, Any] = {"id": new_id, "price": float(price), "status": OPEN, "info": response}
            if amount is not None:
                update["amount"] = amount
            order = cached.model_copy(update=update)
        else:
            market = self.market(symbol) if symbol is not None else None
            order = parse_order(response, self.index, market)
            order.status = order.status or OPEN
            order.price = float(price)
        self.logger.info(f"Moved poloniex order {id} -> {new_id}")
        return self._cache_order(order)

    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """
        Cancel an order and mark it canceled in the cache.

        A CancelPending reply means a cancel is already in flight: the order
        is marked canceled anyway and the error re-raised. The order cache
        lock is held while the request is in flight so a concurrent
        reconcile cannot close the order first.
        """
        await self.load_markets()
        id = str(id)
        async with self.orders.lock:
            try:
                response = await self.client.private("cancelOrder", {"orderNumber": id})
            except CancelPending:
                self.logger.warning(f"poloniex cancel already pending for order {id}")
                self.orders.mark_canceled(id)
                raise
            cached = self.orders.mark_canceled(id)
        if cached is not None:
            return cached
        return Order(id=id, symbol=symbol, status=CANCELED, info=response)

    async def cancel_all_orders(self, symbol: Optional[str] = None) -> List[str]:
        """Cancel every open order (of one market when a symbol is given); returns canceled ids."""
        await self.load_markets()
        request = {}
        if symbol is not None:
            request["currencyPair"] = self.market_id(symbol)
        async with self.orders.lock:
            response = await self.client.private("cancelAllOrders", request)
            order_ids = [str(order_id) for order_id in safe_value(response, "orderNumbers", [])]
            for order_id in order_ids:
                self.orders.mark_canceled(order_id)
        self.logger.info(f"Canceled {len(order_ids)} poloniex orders")
        return order_ids

    async def fetch_open_orders_listing(self, market: Optional[Market] = None) -> List[Order]:
        request = {"currencyPair": market.id if market else "all"}
        response = await self.client.private("returnOpenOrders", request)
        if market is not None:
            return parse_open_orders(response, self.index, market)
        orders = []
        for market_id, raws in as_dict(response).items():
            orders.extend(parse_open_orders(
                [{**raw, "currencyPair": market_id} for raw in raws],
                self.index,
                self.index.market_by_id(market_id)
            ))
        return orders

    async def fetch_open_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """
        Look up an open order by id.

        Raises:
            OrderNotFound: If the order is not open (filled, canceled or unknown)
        """
        await self.load_markets()
        id = str(id)
        response = await self.client.private("returnOrderStatus", {"orderNumber": id})
        result = safe_value(safe_value(response, "result"), id)
        if result is None:
            raise OrderNotFound(f"poloniex order id {id} not found", exchange=self.name)
        order = parse_order(result, self.index)
        order.id = id
        return self._cache_order(order)

    async def fetch_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """
        Return an order: live from returnOrderStatus while it is open,
        otherwise from the reconciled cache.

        Raises:
            OrderNotCached: If the order is not open and was never observed
        """
        try:
            return await self.fetch_open_order(id, symbol)
        except OrderNotFound:
            return await super().fetch_order(id, symbol)

    async def fetch_order_trades(self, id: str, symbol: Optional[str] = None) -> List[Trade]:
        await self.load_markets()
        response = await self.client.private("returnOrderTrades", {"orderNumber": str(id)})
        return parse_trades(response, self.index)

    # ============================================
    # Funding
    # ============================================

    def _deposit_address(self, currency: Currency, address: Optional[str], info: Any) -> DepositAddress:
        """Currencies with a shared deposit address use the per-user address as tag."""
        self.check_address(address)
        tag = None
        shared_address = safe_string(currency.info, "depositAddress")
        if shared_address is not None:
            tag = address
            address = shared_address
        return DepositAddress(currency=currency.code, address=address, tag=tag, info=info)

    async def create_deposit_address(self, code: str) -> DepositAddress:
        await self.load_markets()
        currency = self.currency(code)
        response = await self.client.private("generateNewAddress", {"currency": currency.id})
        address = None
        if safe_value(response, "success") == 1:
            address = safe_string(response, "response")
        return self._deposit_address(currency, address, response)

    async def fetch_deposit_address(self, code: str) -> DepositAddress:
        await self.load_markets()
        currency = self.currency(code)
        response = await self.client.private("returnDepositAddresses")
        return self._deposit_address(currency, safe_string(response, currency.id), response)

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
        request = {"currency": currency.id, "amount": amount, "address": address, **(params or {})}
        if tag:
            request["paymentId"] = tag
        response = await self.client.private("withdraw", request)
        self.logger.info(f"Requested poloniex withdrawal of {amount} {code}")
        return WithdrawalReceipt(id=safe_string(response, "response"), info=response)

    async def _fetch_deposits_withdrawals(self, since: Optional[int], limit: Optional[int]) -> Dict[str, Any]:
        now = seconds()
        request = {
            "start": since // 1000 if since is not None else now - 10 * YEAR,
            "end": now,
        }
        if limit is not None:
            request["limit"] = limit
        return as_dict(await self.client.private("returnDepositsWithdrawals", request))

    def _parse_transactions(
        self,
        raws: List[Dict[str, Any]],
        type: str,
        code: Optional[str],
        since: Optional[int],
        limit: Optional[int]
    ) -> List[Transaction]:
        transactions = [parse_transaction(raw, self.index, type) for raw in raws or []]
        if code is not None:
            transactions = [t for t in transactions if t.currency == code]
        return filter_by_since_limit(sort_by_timestamp(transactions), since, limit)

    async def fetch_transactions(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        await self.load_markets()
        response = await self._fetch_deposits_withdrawals(since, limit)
        deposits = self._parse_transactions(response.get("deposits"), "deposit", code, since, None)
        withdrawals = self._parse_transactions(response.get("withdrawals"), "withdrawal", code, since, None)
        return filter_by_since_limit(sort_by_timestamp(deposits + withdrawals), since, limit)

    async def fetch_deposits(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        await self.load_markets()
        response = await self._fetch_deposits_withdrawals(since, limit)
        return self._parse_transactions(response.get("deposits"), "deposit", code, since, limit)

    async def fetch_withdrawals(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        await self.load_markets()
        response = await self._fetch_deposits_withdrawals(since, limit)
        return self._parse_transactions(response.get("withdrawals"), "withdrawal", code, since, limit)

    # ============================================
    # Lending
    # ============================================

    async def fetch_lending_symbols(self) -> List[str]:
        return [self.common_currency_code(currency_id) for currency_id in LENDING_CURRENCIES]

    async def fetch_loan_balance(self) -> Dict[str, float]:
        """Available balance of the lending wallet per currency."""
        response = await self.client.private("returnAvailableAccountBalances", {"account": "lending"})
        lending = as_dict(as_dict(response).get("lending"))
        return {self.common_currency_code(currency_id): float(amount) for currency_id, amount in lending.items()}

    async def fetch_loan_book(self, code: str, limit: Optional[int] = 1) -> List[LoanBookEntry]:
        """Best ``limit`` loan offers for a currency."""
        response = await self.client.public("returnLoanOrders", {"currency": self.currency(code).id})
        offers = safe_value(response, "offers", [])
        if limit is not None:
            offers = offers[:limit]
        return [LoanBookEntry(rate=float(offer["rate"]), amount=float(offer["amount"])) for offer in offers]

    async def fetch_loan_books(self, limit: Optional[int] = 1) -> Dict[str, List[LoanBookEntry]]:
        books = {}
        for code in await self.fetch_lending_symbols():
            books[code] = await self.fetch_loan_book(code, limit)
        return books

    async def fetch_open_loans(self, code: Optional[str] = None) -> List[LoanOffer]:
        """Own loan offers not yet taken, optionally for one currency."""
        response = await self.client.private("returnOpenLoanOffers")
        wanted = self.currency(code).id if code is not None else None
        offers = []
        for currency_id, raws in as_dict(response).items():
            if wanted is None or currency_id == wanted:
                offers.extend(parse_loan_offer(raw, self.index, currency_id) for raw in raws)
        return offers

    async def fetch_active_loans(self, code: Optional[str] = None) -> List[LoanOffer]:
        """Own loan offers that were taken and are running."""
        response = await self.client.private("returnActiveLoans")
        loans = [parse_loan_offer(raw, self.index) for raw in safe_value(response, "provided", [])]
        if code is not None:
            loans = [loan for loan in loans if loan.symbol == code]
        return loans

    async def fetch_loans_history(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[LoanOffer]:
        now = seconds()
        request = {
            "start": since // 1000 if since is not None else now - YEAR,
            "end": until // 1000 if until is not None else now,
        }
        if limit is not None:
            request["limit"] = limit
        response = await self.client.private("returnLendingHistory", request)
        return [parse_lending_history(raw, self.index, LENDING_FEE_RATE) for raw in response or []]

    async def create_loan_order(
        self,
        code: str,
        amount: float,
        rate: float,
        duration: int = 2,
        auto_renew: bool = False
    ) -> LoanOffer:
        response = await self.client.private("createLoanOffer", {
            "currency": self.currency(code).id,
            "amount": amount,
            "duration": duration,
            "autoRenew": 1 if auto_renew else 0,
            "lendingRate": rate,
        })
        if not safe_value(response, "success"):
            raise ExchangeError(f"poloniex {response}", exchange=self.name)
        self.logger.info(f"Placed poloniex loan offer of {amount} {code} at {rate}")
        return LoanOffer(
            order_id=safe_string(response, "orderID"),
            symbol=code,
            rate=rate,
            amount=amount,
            duration=duration,
            auto_renew=auto_renew,
            timestamp=milliseconds(),
            info=response,
        )

    async def cancel_loan_order(self, id: str) -> Dict[str, Any]:
        return await self.client.private("cancelLoanOffer", {"orderNumber": str(id)})

    async def transfer_balance(self, code: str, amount: float, from_account: str, to_account: str) -> Dict[str, Any]:
        """Move funds between the exchange, margin and lending wallets."""
        for account in (from_account, to_account):
            if account not in WALLET_TYPES:
                raise ExchangeError(
                    f"poloniex unknown account '{account}', expected one of {', '.join(WALLET_TYPES)}",
                    exchange=self.name
                )
        return await self.client.private("transferBalance", {
            "currency": self.currency(code).id,
            "amount": amount,
            "fromAccount": from_account,
            "toAccount": to_account,
        })


__all__ = ["PoloniexExchange", "PoloniexAPIClient"]
