"""
Normalized Data Schemas

Pydantic models for every entity the exchange connectors return. Whatever
the wire format of an exchange looks like, its payloads are converted into
these models so callers can work with one vocabulary.

Models:
    - Market: A tradable pair with precision and limits (immutable)
    - Currency: An asset with withdrawal limits and fee (immutable)
    - Ticker: 24h statistics for a market
    - OrderBook: Aggregated bids and asks
    - Trade: A single execution, public or private (immutable)
    - Order: An order whose lifecycle is tracked by the order cache (mutable)
    - Balance / Balances: Per-asset free/used/total
    - WalletBalance: Per-asset, per-wallet available/on_orders/total
    - Transaction: A deposit or withdrawal
    - DepositAddress, WithdrawalReceipt
    - LoanOffer, LoanBookEntry: Margin lending entities
    - TradingFees: Account maker/taker fees

Conventions:
    - symbol is "BASE/QUOTE" in unified currency codes (e.g., "ETH/BTC")
    - timestamp is integer milliseconds since epoch (UTC)
    - info holds the raw exchange payload the entity was built from
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Order statuses
OPEN = "open"
CLOSED = "closed"
CANCELED = "canceled"
TERMINAL_STATUSES = (CLOSED, CANCELED)

# Wallet types used by balance aggregation and account transfers
WALLET_TYPES = ("exchange", "margin", "lending")

# [timestamp_ms, open, high, low, close, volume]
OHLCV = List[Optional[Union[int, float]]]


# ============================================
# Market Metadata
# ============================================

class MinMax(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None


class MarketLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: MinMax = Field(default_factory=MinMax)
    price: MinMax = Field(default_factory=MinMax)
    cost: MinMax = Field(default_factory=MinMax)


class MarketPrecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int = 8
    price: int = 8


class Market(BaseModel):
    """
    Tradable Pair

    Created once per session when markets are loaded and never modified
    afterwards. Indexed by ``id`` (exchange-native) and by ``symbol``.

    Attributes:
        id: Exchange-native pair id (e.g., "BTC_ETH" on Poloniex)
        symbol: Unified "BASE/QUOTE" symbol (e.g., "ETH/BTC")
        base, quote: Unified currency codes
        base_id, quote_id: Exchange-native currency ids
        active: False when trading on the pair is suspended
        precision: Decimal places allowed for amount and price
        limits: Min/max amount, price and cost
        maker, taker: Fee rates as fractions (0.001 = 0.1%)
        numeric_id: Numeric pair id, for exchanges that address pairs by number
        label: Human readable pair label, when the exchange has one

    Example:
        >>> Market(id="BTC_ETH", symbol="ETH/BTC", base="ETH", quote="BTC",
        ...        base_id="ETH", quote_id="BTC")
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Exchange-native pair id")
    symbol: str = Field(..., description="Unified BASE/QUOTE symbol")
    base: str
    quote: str
    base_id: str
    quote_id: str
    active: bool = True
    precision: MarketPrecision = Field(default_factory=MarketPrecision)
    limits: MarketLimits = Field(default_factory=MarketLimits)
    maker: Optional[float] = None
    taker: Optional[float] = None
    numeric_id: Optional[int] = None
    label: Optional[str] = None
    info: Any = None


class CurrencyLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: MinMax = Field(default_factory=MinMax)
    price: MinMax = Field(default_factory=MinMax)
    cost: MinMax = Field(default_factory=MinMax)
    withdraw: MinMax = Field(default_factory=MinMax)


class Currency(BaseModel):
    """An asset as listed by the exchange; ``code`` is the unified code."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    numeric_id: Optional[int] = None
    name: Optional[str] = None
    active: bool = True
    fee: Optional[float] = Field(default=None, description="Withdrawal fee")
    precision: int = 8
    limits: CurrencyLimits = Field(default_factory=CurrencyLimits)
    info: Any = None


# ============================================
# Market Data
# ============================================

class Ticker(BaseModel):
    """
    24h Ticker Statistics

    ``base_volume`` is always measured in the base currency and
    ``quote_volume`` in the quote currency, whatever the exchange calls them.
    """

    symbol: Optional[str] = None
    timestamp: Optional[int] = None
    high: Optional[float] = None
    low: Optional[float] = None
    bid: Optional[float] = None
    bid_volume: Optional[float] = None
    ask: Optional[float] = None
    ask_volume: Optional[float] = None
    vwap: Optional[float] = None
    open: Optional[float] = None
    close: Optional[float] = None
    last: Optional[float] = None
    previous_close: Optional[float] = None
    change: Optional[float] = None
    percentage: Optional[float] = None
    average: Optional[float] = None
    base_volume: Optional[float] = None
    quote_volume: Optional[float] = None
    info: Any = None


class OrderBook(BaseModel):
    """Bids sorted by price descending, asks ascending; each level is [price, amount]."""

    symbol: Optional[str] = None
    timestamp: Optional[int] = None
    nonce: Optional[int] = None
    bids: List[List[float]] = Field(default_factory=list)
    asks: List[List[float]] = Field(default_factory=list)


class Fee(BaseModel):
    """
    Fee charged on a trade or order.

    ``cost`` is expressed in ``currency``. For trades where the fee is taken
    out of the received base amount, ``amount`` carries the deducted base
    quantity instead.
    """

    model_config = ConfigDict(frozen=True)

    currency: Optional[str] = None
    cost: Optional[float] = None
    amount: Optional[float] = None
    rate: Optional[float] = None
    type: Optional[Literal["maker", "taker"]] = None


class Trade(BaseModel):
    """
    Single Execution

    Attributes:
        id: Exchange trade id
        order_id: Id of the order the trade belongs to (private trades)
        side: "buy" or "sell" from the perspective of the account (private)
            or of the taker (public)
        taker_or_maker: "taker" / "maker" when known
        amount: Executed amount in base currency
        cost: Quote value of the trade, net of any quote fee
        total: Gross quote value as reported by the exchange
        filled: Base amount received, net of any base fee
        fee: Fee applied to the trade
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    order_id: Optional[str] = None
    timestamp: Optional[int] = None
    symbol: Optional[str] = None
    type: Optional[str] = None
    side: Optional[Literal["buy", "sell"]] = None
    taker_or_maker: Optional[Literal["taker", "maker"]] = None
    price: Optional[float] = None
    amount: Optional[float] = None
    cost: Optional[float] = None
    total: Optional[float] = None
    filled: Optional[float] = None
    fee: Optional[Fee] = None
    info: Any = None


class Order(BaseModel):
    """
    Order

    Unlike the other entities an Order is mutable: the order cache updates
    status, filled, remaining and cost as it learns about the order.
    Status moves open -> closed or open -> canceled and never back.

    Attributes:
        id: Exchange order id
        status: "open", "closed" or "canceled" (some exchanges also report
            "canceling", "rejected" or "expired")
        type: "limit", "market", ... ; None when unknown
        side: "buy" or "sell"
        amount: Original amount in base currency
        filled: Executed amount
        remaining: amount - filled
        cost: Quote value of the executed part
        trades: Executions belonging to the order, when reported
    """

    id: Optional[str] = None
    timestamp: Optional[int] = None
    last_trade_timestamp: Optional[int] = None
    status: Optional[str] = None
    symbol: Optional[str] = None
    type: Optional[str] = None
    side: Optional[Literal["buy", "sell"]] = None
    price: Optional[float] = None
    amount: Optional[float] = None
    filled: Optional[float] = None
    remaining: Optional[float] = None
    cost: Optional[float] = None
    average: Optional[float] = None
    trades: Optional[List[Trade]] = None
    fee: Optional[Fee] = None
    info: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ============================================
# Balances
# ============================================

class Balance(BaseModel):
    """
    Per-asset balance. ``total`` is always derived as ``free + used``;
    a ``total`` passed to the constructor is ignored.

    Example:
        >>> Balance(free=1.5, used=0.5).total
        2.0
    """

    model_config = ConfigDict(frozen=True)

    free: float = 0.0
    used: float = 0.0
    total: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def derive_total(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            free = float(data.get("free") or 0.0)
            used = float(data.get("used") or 0.0)
            data.update(free=free, used=used, total=free + used)
        return data


class Balances(BaseModel):
    """Balances of an account keyed by unified currency code."""

    balances: Dict[str, Balance] = Field(default_factory=dict)
    info: Any = None

    def __getitem__(self, code: str) -> Balance:
        return self.balances[code]

    def __contains__(self, code: str) -> bool:
        return code in self.balances

    @property
    def free(self) -> Dict[str, float]:
        return {code: balance.free for code, balance in self.balances.items()}

    @property
    def used(self) -> Dict[str, float]:
        return {code: balance.used for code, balance in self.balances.items()}

    @property
    def total(self) -> Dict[str, float]:
        return {code: balance.total for code, balance in self.balances.items()}


class WalletBalance(BaseModel):
    """Balance of one asset in one wallet; ``total`` is derived as ``available + on_orders``."""

    model_config = ConfigDict(frozen=True)

    available: float = 0.0
    on_orders: float = 0.0
    total: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def derive_total(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            available = float(data.get("available") or 0.0)
            on_orders = float(data.get("on_orders") or 0.0)
            data.update(available=available, on_orders=on_orders, total=available + on_orders)
        return data


# ============================================
# Funding
# ============================================

class TransactionFee(BaseModel):
    currency: Optional[str] = None
    cost: Optional[float] = None


class Transaction(BaseModel):
    """
    Deposit or Withdrawal

    ``amount`` is what actually moved: for withdrawals where the exchange
    reports a gross amount, the fee has already been subtracted.
    """

    id: Optional[str] = None
    txid: Optional[str] = None
    timestamp: Optional[int] = None
    updated: Optional[int] = None
    currency: Optional[str] = None
    amount: Optional[float] = None
    address: Optional[str] = None
    tag: Optional[str] = None
    status: Optional[Literal["pending", "ok", "failed", "canceled"]] = None
    type: Optional[Literal["deposit", "withdrawal"]] = None
    fee: Optional[TransactionFee] = None
    info: Any = None


class DepositAddress(BaseModel):
    currency: str
    address: Optional[str] = None
    tag: Optional[str] = None
    info: Any = None


class WithdrawalReceipt(BaseModel):
    id: Optional[str] = None
    info: Any = None


# ============================================
# Lending
# ============================================

class LoanOffer(BaseModel):
    """
    Loan offer, active loan or settled loan.

    Attributes:
        order_id: Exchange id of the offer or loan
        symbol: Unified currency code lent
        rate: Daily interest rate
        duration: Loan duration in days
        timestamp: Creation (or close, for history) time in milliseconds
        earned: Interest earned net of the lending fee (history only)
        fee: Lending fee deducted from the interest (history only)
    """

    order_id: Optional[str] = None
    symbol: Optional[str] = None
    rate: Optional[float] = None
    amount: Optional[float] = None
    duration: Optional[int] = None
    auto_renew: Optional[bool] = None
    timestamp: Optional[int] = None
    earned: Optional[float] = None
    fee: Optional[float] = None
    info: Any = None


class LoanBookEntry(BaseModel):
    rate: float
    amount: float


class TradingFees(BaseModel):
    maker: Optional[float] = None
    taker: Optional[float] = None
    info: Any = None
