"""
Exchange Interface - Contract and Shared Behaviour for All Exchanges

Every exchange connector inherits from ``ExchangeInterface``. The class
fixes the public surface (the same method names and return types for all
exchanges) and implements what every connector shares:

- market loading and symbol/currency lookups (through a MarketIndex)
- decimal formatting of outbound amounts and prices
- the cached-order emulation used by exchanges without order history
  endpoints (through an OrderCache)
- lifecycle: initialize/shutdown of the HTTP session, ``async with`` support

Capabilities System:
    Each connector declares what it supports in ``capabilities``. Values are
    True (native endpoint), "emulated" (built on the order cache) or False.
    Methods an exchange lacks raise NotSupported.

    Example:
        capabilities = {
            "fetch_orders": "emulated",
            "fetch_my_trades": True,
            "withdraw": True,
            "fetch_loan_book": False,
        }

Example:
    async with PoloniexExchange() as exchange:
        await exchange.load_markets()
        ticker = await exchange.fetch_ticker("ETH/BTC")
        order = await exchange.create_order("ETH/BTC", "limit", "buy", 1.0, 0.05)
        orders = await exchange.fetch_orders("ETH/BTC")
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from core.errors import ArgumentsRequired, BaseError, InvalidAddress, NotSupported, OrderNotCached
from core.logging import get_logger
from core.markets import MarketIndex
from core.order_cache import OrderCache
from core.schemas import (
    CLOSED,
    OHLCV,
    OPEN,
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
from core.transport import RestClient
from core.utils.fields import filter_by_since_limit
from core.utils.precision import ROUND, TRUNCATE, decimal_to_precision


class ExchangeInterface(ABC):
    """
    Abstract Base Class for Exchange Connectors

    Subclasses set the class attributes below, create their API client in
    ``__init__`` and implement the abstract methods.

    Attributes:
        name: Exchange identifier (lowercase, e.g., "poloniex")
        capabilities: Feature name -> True / "emulated" / False
        common_currencies: Exchange currency id -> unified code renames
        timeframes: Unified timeframe -> exchange value, for fetch_ohlcv
        amount_rounding, price_rounding, fee_rounding, cost_rounding:
            TRUNCATE or ROUND for each kind of outbound quantity
        index: MarketIndex with the loaded markets and currencies
        orders: OrderCache of the orders this instance has seen
        client: RestClient subclass talking to the exchange
    """

    name: str = ""

    capabilities: Dict[str, Union[bool, str]] = {}

    common_currencies: Dict[str, str] = {}

    timeframes: Dict[str, Any] = {}

    amount_rounding = TRUNCATE
    price_rounding = ROUND
    fee_rounding = ROUND
    cost_rounding = ROUND

    min_address_length = 1

    def __init__(self, common_currencies: Optional[Dict[str, str]] = None):
        self.logger = get_logger(f"exchanges.{self.name}")
        self.index = MarketIndex({**self.common_currencies, **(common_currencies or {})})
        self.orders = OrderCache(self.name)
        self.client: Optional[RestClient] = None
        self._markets_lock = asyncio.Lock()

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        """
        Open the HTTP session of the API client.

        Called by ExchangeManager.initialize_all() or on ``async with``.
        Safe to call more than once.
        """
        if self.client is not None:
            await self.client.__aenter__()
        self.logger.info(f"✓ {self.name} exchange connector initialized")

    async def shutdown(self) -> None:
        """Close the HTTP session. Cached orders and markets are kept."""
        if self.client is not None:
            await self.client.__aexit__(None, None, None)
        self.logger.info(f"✓ {self.name} exchange connector shut down")

    async def health_check(self) -> bool:
        """
        Check that the exchange answers by loading its markets.

        Returns:
            bool: True if the exchange is reachable, False otherwise
        """
        try:
            await self.load_markets()
            return True
        except BaseError as e:
            self.logger.warning(f"{self.name} health check failed: {e}")
            return False

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # ============================================
    # Markets & Currencies
    # ============================================

    async def load_markets(self, reload: bool = False) -> Dict[str, Market]:
        """
        Fetch markets (and currencies, when supported) once per session.

        Args:
            reload: Fetch again even when markets are already loaded

        Returns:
            Dict of symbol -> Market
        """
        if self.index.loaded and not reload:
            return self.index.markets
        async with self._markets_lock:
            if self.index.loaded and not reload:
                return self.index.markets
            self.logger.info(f"Loading {self.name} markets")
            if self.supports("fetch_currencies"):
                self.index.set_currencies(await self.fetch_currencies())
            self.index.set_markets(await self.fetch_markets())
            self.logger.info(f"Loaded {len(self.index.markets)} {self.name} markets")
        return self.index.markets

    @property
    def markets(self) -> Dict[str, Market]:
        return self.index.markets

    @property
    def markets_by_id(self) -> Dict[str, Market]:
        return self.index.markets_by_id

    @property
    def currencies(self) -> Dict[str, Currency]:
        return self.index.currencies

    @property
    def symbols(self) -> List[str]:
        return self.index.symbols

    def market(self, symbol: str) -> Market:
        return self.index.market(symbol)

    def market_id(self, symbol: str) -> str:
        return self.index.market_id(symbol)

    def currency(self, code: str) -> Currency:
        return self.index.currency(code)

    def common_currency_code(self, currency_id: Optional[str]) -> Optional[str]:
        return self.index.common_currency_code(currency_id)

    # ============================================
    # Precision
    # ============================================

    def amount_to_precision(self, symbol: str, amount: float) -> str:
        market = self.market(symbol)
        return decimal_to_precision(amount, self.amount_rounding, market.precision.amount)

    def price_to_precision(self, symbol: str, price: float) -> str:
        market = self.market(symbol)
        return decimal_to_precision(price, self.price_rounding, market.precision.price)

    def fee_to_precision(self, symbol: str, fee: float) -> str:
        market = self.market(symbol)
        return decimal_to_precision(fee, self.fee_rounding, market.precision.price)

    def cost_to_precision(self, symbol: str, cost: float) -> str:
        market = self.market(symbol)
        return decimal_to_precision(cost, self.cost_rounding, market.precision.price)

    def currency_to_precision(self, code: str, amount: float) -> str:
        return decimal_to_precision(amount, self.amount_rounding, self.currency(code).precision)

    def calculate_fee(
        self,
        symbol: str,
        side: str,
        amount: float,
        price: float,
        taker_or_maker: str = "taker"
    ) -> Fee:
        """
        Estimate the trading fee of an order from the market's fee rates.

        A sell pays in quote (amount * rate * price), a buy in base
        (amount * rate).
        """
        market = self.market(symbol)
        rate = market.taker if taker_or_maker == "taker" else market.maker
        cost = amount * (rate or 0.0)
        if side == "sell":
            cost *= price
            currency = market.quote
            digits = market.precision.price
        else:
            currency = market.base
            digits = market.precision.amount
        return Fee(
            type=taker_or_maker,
            currency=currency,
            rate=rate,
            cost=float(decimal_to_precision(cost, self.fee_rounding, digits)),
        )

    # ============================================
    # Argument Checks
    # ============================================

    def check_address(self, address: Optional[str]) -> str:
        """
        Raises:
            InvalidAddress: If the address is missing, blank, contains spaces
                or is made of a single repeated character
        """
        if address is None:
            raise InvalidAddress(f"{self.name} address is undefined", exchange=self.name)
        if len(set(address)) == 1 or len(address) < self.min_address_length or " " in address:
            raise InvalidAddress(
                f"{self.name} address is invalid or has less than "
                f"{self.min_address_length} characters: \"{address}\"",
                exchange=self.name
            )
        return address

    def check_required_symbol(self, method: str, symbol: Optional[str]) -> str:
        if symbol is None:
            raise ArgumentsRequired(
                f"{self.name} {method} requires a symbol argument",
                exchange=self.name
            )
        return symbol

    def supports(self, feature: str) -> bool:
        """
        Check if this exchange supports a feature, natively or emulated.

        Example:
            >>> exchange.supports("fetch_orders")
            True
        """
        return bool(self.capabilities.get(feature, False))

    def _not_supported(self, method: str) -> NotSupported:
        return NotSupported(f"{self.name} {method} is not supported", exchange=self.name)

    # ============================================
    # Abstract Methods (every exchange implements these)
    # ============================================

    @abstractmethod
    async def fetch_markets(self) -> List[Market]:
        """Fetch the list of markets from the exchange."""

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> Ticker:
        """Fetch 24h statistics for one market."""

    @abstractmethod
    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        """Fetch the order book of one market."""

    @abstractmethod
    async def fetch_trades(
        self,
        symbol: str,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        """Fetch public trades of one market."""

    @abstractmethod
    async def fetch_balance(self) -> Balances:
        """Fetch free/used/total per asset."""

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Order:
        """Place an order."""

    @abstractmethod
    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """Cancel an open order."""

    # ============================================
    # Optional Methods (NotSupported unless overridden)
    # ============================================

    async def fetch_currencies(self) -> List[Currency]:
        raise self._not_supported("fetch_currencies")

    async def fetch_tickers(self, symbols: Optional[List[str]] = None) -> Dict[str, Ticker]:
        raise self._not_supported("fetch_tickers")

    async def fetch_order_books(
        self,
        symbols: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> Dict[str, OrderBook]:
        raise self._not_supported("fetch_order_books")

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1d",
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[OHLCV]:
        raise self._not_supported("fetch_ohlcv")

    async def fetch_my_trades(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        raise self._not_supported("fetch_my_trades")

    async def fetch_wallet_balance(self) -> Dict[str, Dict[str, WalletBalance]]:
        raise self._not_supported("fetch_wallet_balance")

    async def fetch_trading_fees(self) -> TradingFees:
        raise self._not_supported("fetch_trading_fees")

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
        raise self._not_supported("edit_order")

    async def cancel_all_orders(self, symbol: Optional[str] = None) -> List[str]:
        raise self._not_supported("cancel_all_orders")

    async def fetch_open_order(self, id: str, symbol: Optional[str] = None) -> Order:
        raise self._not_supported("fetch_open_order")

    async def fetch_order_trades(self, id: str, symbol: Optional[str] = None) -> List[Trade]:
        raise self._not_supported("fetch_order_trades")

    async def create_deposit_address(self, code: str) -> DepositAddress:
        raise self._not_supported("create_deposit_address")

    async def fetch_deposit_address(self, code: str) -> DepositAddress:
        raise self._not_supported("fetch_deposit_address")

    async def withdraw(
        self,
        code: str,
        amount: float,
        address: str,
        tag: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> WithdrawalReceipt:
        raise self._not_supported("withdraw")

    async def fetch_deposits(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        raise self._not_supported("fetch_deposits")

    async def fetch_withdrawals(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        raise self._not_supported("fetch_withdrawals")

    async def fetch_transactions(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        raise self._not_supported("fetch_transactions")

    # Lending

    async def fetch_lending_symbols(self) -> List[str]:
        raise self._not_supported("fetch_lending_symbols")

    async def fetch_loan_balance(self) -> Dict[str, float]:
        raise self._not_supported("fetch_loan_balance")

    async def fetch_loan_book(self, code: str, limit: Optional[int] = 1) -> List[LoanBookEntry]:
        raise self._not_supported("fetch_loan_book")

    async def fetch_loan_books(self, limit: Optional[int] = 1) -> Dict[str, List[LoanBookEntry]]:
        raise self._not_supported("fetch_loan_books")

    async def fetch_open_loans(self, code: Optional[str] = None) -> List[LoanOffer]:
        raise self._not_supported("fetch_open_loans")

    async def fetch_active_loans(self, code: Optional[str] = None) -> List[LoanOffer]:
        raise self._not_supported("fetch_active_loans")

    async def fetch_loans_history(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[LoanOffer]:
        raise self._not_supported("fetch_loans_history")

    async def create_loan_order(
        self,
        code: str,
        amount: float,
        rate: float,
        duration: int = 2,
        auto_renew: bool = False
    ) -> LoanOffer:
        raise self._not_supported("create_loan_order")

    async def cancel_loan_order(self, id: str) -> Dict[str, Any]:
        raise self._not_supported("cancel_loan_order")

    async def transfer_balance(self, code: str, amount: float, from_account: str, to_account: str) -> Dict[str, Any]:
        raise self._not_supported("transfer_balance")

    # ============================================
    # Cached-Order Emulation
    # ============================================

    async def fetch_open_orders_listing(self, market: Optional[Market] = None) -> List[Order]:
        """
        Return the orders currently open on the exchange, normalized.

        Exchanges relying on the order cache implement this; the derived
        fetch_orders / fetch_open_orders / fetch_closed_orders / fetch_order
        methods are built on top of it.
        """
        raise self._not_supported("fetch_orders")

    async def fetch_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        """
        All orders seen by this instance, reconciled with the open listing.

        Orders that left the open listing since the last call are closed;
        see core.order_cache for the rules and limitations.
        """
        await self.load_markets()
        market = self.market(symbol) if symbol is not None else None
        async with self.orders.lock:
            listing = await self.fetch_open_orders_listing(market)
            self.orders.reconcile(listing, symbol=symbol)
            orders = self.orders.view(symbol)
        return filter_by_since_limit(orders, since, limit)

    async def fetch_open_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        orders = await self.fetch_orders(symbol, since)
        return filter_by_since_limit([o for o in orders if o.status == OPEN], limit=limit)

    async def fetch_closed_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Order]:
        orders = await self.fetch_orders(symbol, since)
        return filter_by_since_limit([o for o in orders if o.status == CLOSED], limit=limit)

    async def fetch_order(self, id: str, symbol: Optional[str] = None) -> Order:
        """
        Return a cached order after a reconcile pass.

        Raises:
            OrderNotCached: If this instance never observed the order
        """
        await self.fetch_orders(symbol)
        order = self.orders.get(str(id))
        if order is None:
            raise OrderNotCached(
                f"{self.name} order id {id} is not in the local cache. "
                f"Either the order was closed before it was observed, or it belongs to another session.",
                exchange=self.name
            )
        return order

    async def fetch_order_status(self, id: str, symbol: Optional[str] = None) -> str:
        order = await self.fetch_order(id, symbol)
        return order.status

    def _cache_order(self, order: Order) -> Order:
        """Record an order placed or modified through this instance."""
        return self.orders.upsert(order)

    def __repr__(self) -> str:
        """String representation of the exchange."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
